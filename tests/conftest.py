"""Shared test fixtures."""

import os
import tempfile
from datetime import datetime

import pytest

from integrity_hids.engine.incident_log import CheckSession, Incident, IncidentCode


@pytest.fixture
def workdir():
    """A canonical temporary directory (symlinks such as /tmp -> /private/tmp resolved)."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield os.path.realpath(tmpdir)


@pytest.fixture
def monitored_files(workdir):
    """Three small files to monitor, keyed by short name."""
    files = {}
    for name, content in (
        ("passwd", "root:x:0:0:root:/root:/bin/bash\n"),
        ("hosts", "127.0.0.1 localhost\n"),
        ("fstab", "/dev/sda1 / ext4 defaults 0 1\n"),
    ):
        path = os.path.join(workdir, name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        files[name] = path
    return files


@pytest.fixture
def incidents_file(workdir):
    return os.path.join(workdir, "incidents.txt")


@pytest.fixture
def make_session():
    """Build a CheckSession with ``n_incidents`` incidents one second apart."""
    def _make(file_count: int, n_incidents: int, start: datetime | None = None) -> CheckSession:
        start = start or datetime(2024, 5, 1, 10, 0, 0)
        incidents = [
            Incident(
                timestamp=start.replace(second=i + 1),
                code=IncidentCode.HASH_MISMATCH,
                path=f"/etc/file{i}",
            )
            for i in range(n_incidents)
        ]
        return CheckSession(start, file_count, incidents)

    return _make
