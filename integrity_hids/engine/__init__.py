"""Integrity-check engine — digests, baseline, checks, incident log and reports."""

from .baseline import build_baseline, load_baseline, save_baseline
from .checker import CheckResult, CheckSummary, IntegrityChecker
from .digest import HashAlgorithm, compute_digest, digest_hex
from .incident_log import (
    CheckSession,
    Incident,
    IncidentCode,
    IncidentLogWriter,
    parse_incident_log,
)
from .report import SessionReport, Tendency, build_report, write_report

__all__ = [
    "build_baseline",
    "load_baseline",
    "save_baseline",
    "CheckResult",
    "CheckSummary",
    "IntegrityChecker",
    "HashAlgorithm",
    "compute_digest",
    "digest_hex",
    "CheckSession",
    "Incident",
    "IncidentCode",
    "IncidentLogWriter",
    "parse_incident_log",
    "SessionReport",
    "Tendency",
    "build_report",
    "write_report",
]
