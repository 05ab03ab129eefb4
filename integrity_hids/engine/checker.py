"""Integrity checker — classifies configured files against the baseline."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType

from ..errors import InvalidPathError, MissingFileError, UnreadableFileError
from ..utils.logging import get_logger
from .digest import DEFAULT_ALGORITHM, HashAlgorithm, digest_hex, digests_equal
from .incident_log import CheckSession, Incident, IncidentCode, IncidentLogWriter

logger = get_logger("engine.checker")


@dataclass(frozen=True)
class CheckSummary:
    total: int
    ok: int
    error: int
    unknown: int

    def to_dict(self) -> dict:
        return {"total": self.total, "ok": self.ok, "error": self.error, "unknown": self.unknown}


@dataclass
class CheckResult:
    session: CheckSession
    summary: CheckSummary

    @property
    def incidents(self) -> list[Incident]:
        return self.session.incidents


def snapshot_baseline(baseline: Mapping[str, str]) -> Mapping[str, str]:
    """Freeze a loaded baseline so repeated checks can never alter it."""
    if isinstance(baseline, MappingProxyType):
        return baseline
    return MappingProxyType(dict(baseline))


class IntegrityChecker:
    """Runs one comparison pass of the configured files against a baseline.

    Every incident is appended to the incident log the moment it is found, so
    a crash in the middle of a check keeps what was already recorded.
    """

    def __init__(
        self,
        incidents_file: str,
        algorithm: HashAlgorithm | str = DEFAULT_ALGORITHM,
    ):
        self.incidents_file = incidents_file
        self.algorithm = HashAlgorithm.parse(algorithm)

    def check(
        self,
        configured_paths: Sequence[str],
        baseline: Mapping[str, str],
    ) -> CheckResult:
        """Classify every configured path and every leftover baseline entry.

        ``baseline`` is never modified; the pass works on its own copy and
        removes entries from it as they are accounted for.
        """
        working = dict(baseline)
        start = datetime.now()
        incidents: list[Incident] = []
        error_count = 0

        logger.info(
            "integrity_check_started",
            files=len(configured_paths),
            known=len(working),
            algorithm=self.algorithm.name,
        )

        with IncidentLogWriter(self.incidents_file) as log:
            log.begin_session(start, len(working))

            def emit(code: IncidentCode, path: str) -> None:
                incident = Incident.now(code, path)
                log.record(incident)
                incidents.append(incident)

            for path in configured_paths:
                code = self._classify(path, working)
                if code is not None:
                    emit(code, path)
                    error_count += 1

            # Anything left was never configured
            for path in list(working):
                logger.warning("integrity_unknown_file", path=path)
                emit(IncidentCode.UNKNOWN_FILE, path)

        total = len(configured_paths)
        summary = CheckSummary(
            total=total,
            ok=total - error_count,
            error=error_count,
            unknown=len(working),
        )
        logger.info("integrity_check_summary", **summary.to_dict())
        return CheckResult(session=CheckSession(start, len(baseline), incidents), summary=summary)

    def _classify(self, path: str, working: dict[str, str]) -> IncidentCode | None:
        """Return the incident code for one configured path, or None if intact."""
        expected = working.get(path)
        if expected is None:
            logger.warning("integrity_missing_filehash", path=path)
            return IncidentCode.MISSING_FILEHASH

        del working[path]
        try:
            actual = digest_hex(path, self.algorithm)
        except (InvalidPathError, MissingFileError, UnreadableFileError) as e:
            logger.warning("integrity_missing_file", path=path, error=str(e))
            return IncidentCode.MISSING_FILE

        if not digests_equal(actual, expected):
            logger.warning("integrity_hash_mismatch", path=path, expected=expected, actual=actual)
            return IncidentCode.HASH_MISMATCH
        return None
