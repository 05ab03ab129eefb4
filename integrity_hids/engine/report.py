"""Report builder — failure ratios and trend over the incident history."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ..utils.logging import get_logger
from .incident_log import CheckSession, IncidentCode, format_timestamp, parse_incident_log

logger = get_logger("engine.report")

_LABELS = {
    IncidentCode.MISSING_FILEHASH: "Hash not found",
    IncidentCode.MISSING_FILE: "File not found",
    IncidentCode.HASH_MISMATCH: "Integrity fail",
    IncidentCode.UNKNOWN_FILE: "Unknown file",
}


class Tendency(Enum):
    UP = "UP"        # more failures than the previous check
    DOWN = "DOWN"
    EQUAL = "EQUAL"


def raw_failure_ratio(session: CheckSession) -> float:
    """Incidents per known file, uncapped. 0.0 when no files were known."""
    if session.file_count == 0:
        return 0.0
    return len(session.incidents) / session.file_count


def failure_ratio(session: CheckSession) -> float:
    """Incidents per known file, in ``[0.0, 1.0]``.

    Checks can raise more incidents than they have known files (unknown
    leftovers plus unhashed configured files), so the shown ratio is capped
    at 1.0. Tendencies compare the uncapped value.
    """
    return min(1.0, raw_failure_ratio(session))


def tendency_between(previous: float, current: float) -> Tendency:
    if current > previous:
        return Tendency.UP
    if current < previous:
        return Tendency.DOWN
    return Tendency.EQUAL


@dataclass(frozen=True)
class SessionReport:
    session: CheckSession
    ratio: float
    tendency: Tendency | None = None

    def render(self) -> str:
        counts = self.session.count_by_code()
        lines = [
            "",
            f"Check date: {format_timestamp(self.session.start_timestamp)}",
            f"  Configured     : {self.session.file_count}",
        ]
        for code, label in _LABELS.items():
            lines.append(f"  {label:<15}: {counts[code]}")
        lines.append(f"  Failure ratio  : {self.ratio * 100:.2f}%")
        if self.tendency is not None:
            lines.append(f"  Tendency       : {self.tendency.value}")
        return "\n".join(lines) + "\n"


def build_report(sessions: Iterable[CheckSession]) -> list[SessionReport]:
    """Compute ratio and tendency for every session, oldest first."""
    reports: list[SessionReport] = []
    previous: float | None = None
    for session in sessions:
        raw = raw_failure_ratio(session)
        tendency = tendency_between(previous, raw) if previous is not None else None
        reports.append(SessionReport(session=session, ratio=min(1.0, raw), tendency=tendency))
        previous = raw
    return reports


def render_report(reports: Iterable[SessionReport], generated_at: datetime | None = None) -> str:
    generated_at = generated_at or datetime.now()
    return f"Report started at {format_timestamp(generated_at)}\n" + "".join(
        r.render() for r in reports
    )


def write_report(incidents_file: str, indicators_file: str) -> list[SessionReport]:
    """Replay the incident log and write the report to ``indicators_file``."""
    sessions = parse_incident_log(incidents_file)
    reports = build_report(sessions)

    with open(indicators_file, "w", encoding="utf-8") as f:
        f.write(render_report(reports))

    logger.info(
        "report_written",
        incidents_file=incidents_file,
        indicators_file=indicators_file,
        sessions=len(reports),
    )
    return reports
