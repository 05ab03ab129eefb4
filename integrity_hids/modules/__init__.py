"""Long-running monitor modules."""

from .integrity_daemon import DaemonState, IntegrityDaemon

__all__ = [
    "DaemonState",
    "IntegrityDaemon",
]
