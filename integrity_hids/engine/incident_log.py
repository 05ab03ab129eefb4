"""Incident log — append-only record of integrity check sessions.

The log is plain UTF-8 text and has to stay readable for the whole operating
life of a host, so the layout is fixed::

    -- 2024-05-01T10:00:00.123456 -- Known files: 3
    [2024-05-01T10:00:00.200000][HASH_MISMATCH]The following file's actual hash does not match the stored hash.
    /etc/hosts
    <blank line>

Every session starts with the ``-- <timestamp> -- Known files: <n>`` header and
is followed by two lines per incident. A blank line (or end of file) closes the
session. Timestamps are local ISO-8601 date-times without an offset.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from operator import attrgetter
from typing import TextIO

from ..errors import (
    IncidentLogWriteError,
    InvalidFileCountError,
    InvalidIncidentLineError,
    InvalidSessionHeaderError,
    UnknownIncidentCodeError,
)
from ..utils.logging import get_logger

logger = get_logger("engine.incident_log")

HEADER_PREFIX = "-- "
KNOWN_FILES_MARKER = " -- Known files: "
INCIDENT_SEPARATOR = "]["


class IncidentCode(Enum):
    MISSING_FILEHASH = "The following file is listed in the configuration file but not in the hashes file."
    MISSING_FILE = "The following file is listed in the configuration file but is not found in the system."
    HASH_MISMATCH = "The following file's actual hash does not match the stored hash."
    UNKNOWN_FILE = "The following file appears in the hash list but is not listed in the configuration file."

    @property
    def description(self) -> str:
        return self.value

    @classmethod
    def from_name(cls, name: str) -> "IncidentCode":
        code = _CODE_NAMES.get(name)
        if code is None:
            raise KeyError(name)
        return code


# Older logs spell the mismatch code HASH_MISSMATCH; both names parse.
_CODE_NAMES = {code.name: code for code in IncidentCode}
_CODE_NAMES["HASH_MISSMATCH"] = IncidentCode.HASH_MISMATCH


def format_timestamp(ts: datetime) -> str:
    return ts.isoformat()


def parse_timestamp(text: str) -> datetime:
    return datetime.fromisoformat(text.strip())


@dataclass(frozen=True)
class Incident:
    """A single deviation between the baseline and a file's observed state."""

    timestamp: datetime
    code: IncidentCode
    path: str

    @classmethod
    def now(cls, code: IncidentCode, path: str) -> "Incident":
        return cls(timestamp=datetime.now(), code=code, path=path)

    def to_log(self) -> str:
        return (
            f"[{format_timestamp(self.timestamp)}][{self.code.name}]{self.code.description}\n"
            f"{self.path}\n"
        )


@dataclass
class CheckSession:
    """One integrity check run: its start time, known file count and incidents.

    Incidents are kept sorted by timestamp. The sort is stable, so incidents
    sharing a timestamp keep the order they were given in.
    """

    start_timestamp: datetime
    file_count: int
    incidents: list[Incident] = field(default_factory=list)

    def __post_init__(self):
        if self.file_count < 0:
            raise ValueError(f"file_count can not be negative: {self.file_count}")
        self.incidents = sorted(self.incidents, key=attrgetter("timestamp"))

    def incidents_by_code(self, code: IncidentCode) -> list[Incident]:
        return [i for i in self.incidents if i.code is code]

    def count_by_code(self) -> dict[IncidentCode, int]:
        counts = {code: 0 for code in IncidentCode}
        for incident in self.incidents:
            counts[incident.code] += 1
        return counts

    def to_log(self) -> str:
        return format_session_header(self.start_timestamp, self.file_count) + "".join(
            incident.to_log() for incident in self.incidents
        )


def format_session_header(start: datetime, file_count: int) -> str:
    return f"{HEADER_PREFIX}{format_timestamp(start)}{KNOWN_FILES_MARKER}{file_count}\n"


def serialize_sessions(sessions: Iterable[CheckSession]) -> str:
    """Render sessions exactly as the writer appends them."""
    return "".join("\n" + session.to_log() for session in sessions)


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------

class IncidentLogWriter:
    """Appends one session to the incident log, flushing after every line group.

    Use as a context manager; the file is opened in append mode on entry and
    closed on exit, so it is never held open between checks.
    """

    def __init__(self, log_path: str):
        self.log_path = log_path
        self._file: TextIO | None = None

    def __enter__(self) -> "IncidentLogWriter":
        try:
            self._file = open(self.log_path, "a", encoding="utf-8", newline="")
        except OSError as e:
            raise IncidentLogWriteError(f"Can not open incident log {self.log_path}: {e}") from e
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # Never mask the exception that is already propagating
        self.close(raise_errors=exc_type is None)

    def close(self, raise_errors: bool = True) -> None:
        if self._file is None:
            return
        f, self._file = self._file, None
        error: OSError | None = None
        try:
            f.flush()
        except OSError as e:
            error = e
        try:
            f.close()
        except OSError as e:
            error = error or e

        if error is None:
            return
        if not raise_errors:
            logger.warning("incident_log_close_failed", path=self.log_path, error=str(error))
            return
        raise IncidentLogWriteError(f"Can not flush incident log {self.log_path}: {error}") from error

    def begin_session(self, start: datetime, file_count: int) -> None:
        self._write("\n" + format_session_header(start, file_count))

    def record(self, incident: Incident) -> None:
        self._write(incident.to_log())
        logger.info(
            "integrity_incident_recorded",
            code=incident.code.name,
            path=incident.path,
        )

    def _write(self, text: str) -> None:
        if self._file is None:
            raise IncidentLogWriteError(f"Incident log {self.log_path} is not open")
        try:
            self._file.write(text)
            self._file.flush()
        except OSError as e:
            raise IncidentLogWriteError(f"Can not append to incident log {self.log_path}: {e}") from e


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def parse_session_header(line: str, line_number: int | None = None) -> tuple[datetime, int]:
    """Extract ``(start_timestamp, file_count)`` from a session header line."""
    if not line.startswith(HEADER_PREFIX):
        raise InvalidSessionHeaderError(
            "Integrity check session start expected", line_number, line
        )
    idx = line.find(KNOWN_FILES_MARKER)
    if idx < 0:
        raise InvalidSessionHeaderError("Invalid session header", line_number, line)

    try:
        start = parse_timestamp(line[len(HEADER_PREFIX):idx])
    except ValueError:
        raise InvalidSessionHeaderError(
            "Invalid date format in session header", line_number, line
        ) from None

    count_text = line[idx + len(KNOWN_FILES_MARKER):].strip()
    try:
        file_count = int(count_text)
    except ValueError:
        raise InvalidFileCountError(
            "Invalid file count in session header (not a number)", line_number, line
        ) from None
    if file_count < 0:
        raise InvalidFileCountError(
            "Invalid file count in session header (negative)", line_number, line
        )
    return start, file_count


def parse_incident_line(line: str, line_number: int | None = None) -> tuple[datetime, IncidentCode]:
    """Extract ``(timestamp, code)`` from ``[timestamp][CODE]description``."""
    end = line.rfind("]")
    if end < 0:
        raise InvalidIncidentLineError("Invalid incident line", line_number, line)

    parts = line[:end + 1].strip().split(INCIDENT_SEPARATOR)
    if len(parts) != 2 or not parts[0].startswith("["):
        raise InvalidIncidentLineError("Invalid incident line", line_number, line)

    try:
        timestamp = parse_timestamp(parts[0][1:])
    except ValueError:
        raise InvalidIncidentLineError(
            "Invalid date format in incident line", line_number, line
        ) from None

    code_name = parts[1][:-1]
    try:
        code = IncidentCode.from_name(code_name)
    except KeyError:
        raise UnknownIncidentCodeError(
            f"Unknown incident code {code_name!r}", line_number, line
        ) from None
    return timestamp, code


def _numbered(lines: Iterable[str]) -> Iterator[tuple[int, str]]:
    for number, raw in enumerate(lines, start=1):
        yield number, raw.rstrip("\r\n")


def parse_incident_lines(lines: Iterable[str]) -> list[CheckSession]:
    """Rebuild every session from an iterable of log lines, in file order."""
    sessions: list[CheckSession] = []
    numbered = _numbered(lines)

    for line_number, line in numbered:
        line = line.strip()
        if not line:
            continue
        start, file_count = parse_session_header(line, line_number)

        incidents: list[Incident] = []
        for inc_number, inc_line in numbered:
            if not inc_line.strip():
                break
            timestamp, code = parse_incident_line(inc_line, inc_number)
            path_entry = next(numbered, None)
            if path_entry is None:
                raise InvalidIncidentLineError(
                    "Incident line is not followed by a file path", inc_number, inc_line
                )
            incidents.append(Incident(timestamp=timestamp, code=code, path=path_entry[1]))

        sessions.append(CheckSession(start, file_count, incidents))

    return sessions


def parse_incident_log(log_path: str) -> list[CheckSession]:
    """Parse the incident log file at ``log_path``.

    Any malformed line aborts the whole parse; a report built from a partial
    history would have wrong ratios and trends.
    """
    with open(log_path, "r", encoding="utf-8", newline="") as f:
        sessions = parse_incident_lines(f)
    logger.info("incident_log_parsed", path=log_path, sessions=len(sessions))
    return sessions
