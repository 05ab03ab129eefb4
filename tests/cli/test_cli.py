"""Tests for the command-line execution modes."""

import hashlib
import os
from unittest.mock import patch

import pytest

from integrity_hids.cli import build_parser, main
from integrity_hids.engine.baseline import load_baseline
from integrity_hids.engine.incident_log import IncidentCode, parse_incident_log


@pytest.fixture
def setup_files(workdir, monitored_files):
    """An INI file monitoring the fixture files, with working files in workdir."""
    ini = os.path.join(workdir, "main.conf")
    paths = "\n    ".join(monitored_files.values())
    with open(ini, "w", encoding="utf-8") as f:
        f.write(
            "[daemon]\n"
            f"file = {paths}\n"
            "hash_algorithm = SHA256\n"
            "check_period_minutes = 5\n"
            "[files]\n"
            f"hashes_file = {os.path.join(workdir, 'hashes.lst')}\n"
            f"incidents_file = {os.path.join(workdir, 'incidents.txt')}\n"
            f"indicators_file = {os.path.join(workdir, 'indicators.txt')}\n"
        )
    return {
        "ini": ini,
        "hashes": os.path.join(workdir, "hashes.lst"),
        "incidents": os.path.join(workdir, "incidents.txt"),
        "indicators": os.path.join(workdir, "indicators.txt"),
        "files": monitored_files,
    }


class TestParser:
    def test_default_mode(self):
        args = build_parser().parse_args([])
        assert args.mode == "hash-and-daemon"

    def test_unknown_mode_exits_2(self):
        with pytest.raises(SystemExit) as exc:
            build_parser().parse_args(["explode"])
        assert exc.value.code == 2


class TestModes:
    def test_hash(self, setup_files, capsys):
        assert main(["hash", "--config", setup_files["ini"]]) == 0

        baseline = load_baseline(setup_files["hashes"])
        assert list(baseline) == list(setup_files["files"].values())
        hosts = setup_files["files"]["hosts"]
        with open(hosts, "rb") as f:
            assert baseline[hosts] == hashlib.sha256(f.read()).hexdigest()
        assert f"{baseline[hosts]} : {hosts}" in capsys.readouterr().out

    def test_integrity_check_clean(self, setup_files, capsys):
        main(["hash", "--config", setup_files["ini"]])
        capsys.readouterr()

        assert main(["integrity-check", "--config", setup_files["ini"]]) == 0

        out = capsys.readouterr().out
        assert "Integrity check summary:" in out
        assert " 3 OK" in out
        assert " 0 ERROR" in out
        (session,) = parse_incident_log(setup_files["incidents"])
        assert session.incidents == []

    def test_integrity_check_detects_change(self, setup_files, capsys):
        main(["hash", "--config", setup_files["ini"]])
        with open(setup_files["files"]["passwd"], "a", encoding="utf-8") as f:
            f.write("mallory:x:0:0::/root:/bin/sh\n")

        assert main(["integrity-check", "--config", setup_files["ini"]]) == 0

        (session,) = parse_incident_log(setup_files["incidents"])
        assert [(i.code, i.path) for i in session.incidents] == [
            (IncidentCode.HASH_MISMATCH, setup_files["files"]["passwd"])
        ]
        assert " 1 ERROR" in capsys.readouterr().out

    def test_integrity_check_without_baseline_fails(self, setup_files, capsys):
        assert main(["integrity-check", "--config", setup_files["ini"]]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_algorithm_switch_overrides_ini(self, setup_files):
        main(["hash", "--config", setup_files["ini"], "--algorithm", "MD5"])
        baseline = load_baseline(setup_files["hashes"])
        assert all(len(d) == 32 for d in baseline.values())

    def test_report(self, setup_files, capsys):
        main(["hash", "--config", setup_files["ini"]])
        main(["integrity-check", "--config", setup_files["ini"]])
        os.unlink(setup_files["files"]["fstab"])
        main(["integrity-check", "--config", setup_files["ini"]])
        capsys.readouterr()

        assert main(["report", "--config", setup_files["ini"]]) == 0

        out = capsys.readouterr().out
        assert "The file contains 2 integrity check logs." in out
        with open(setup_files["indicators"], encoding="utf-8") as f:
            report = f.read()
        assert report.startswith("Report started at ")
        assert "  File not found : 1" in report
        assert "  Tendency       : UP" in report

    def test_report_on_corrupt_log(self, setup_files):
        with open(setup_files["incidents"], "w", encoding="utf-8") as f:
            f.write("not a session header\n")
        assert main(["report", "--config", setup_files["ini"]]) == 1

    def test_daemon_runs_until_stopped(self, setup_files):
        main(["hash", "--config", setup_files["ini"]])

        async def _run_once(self):
            await self.start()
            self.request_stop()
            await self.wait()

        with patch("integrity_hids.cli.IntegrityDaemon.run", _run_once):
            assert main(["daemon", "--config", setup_files["ini"]]) == 0

        assert len(parse_incident_log(setup_files["incidents"])) == 1

    def test_hash_and_daemon_uses_fresh_baseline(self, setup_files):
        async def _run_once(self):
            await self.start()
            self.request_stop()
            await self.wait()

        with patch("integrity_hids.cli.IntegrityDaemon.run", _run_once):
            assert main(["hash-and-daemon", "--config", setup_files["ini"]]) == 0

        assert os.path.getsize(setup_files["hashes"]) > 0
        (session,) = parse_incident_log(setup_files["incidents"])
        assert session.incidents == []


class TestConfigErrors:
    def test_missing_config_file(self, workdir, capsys):
        assert main(["hash", "--config", os.path.join(workdir, "absent.conf")]) == 1
        assert "File not found" in capsys.readouterr().err

    def test_invalid_interval_switch(self, setup_files):
        assert main(["daemon", "--config", setup_files["ini"], "--interval", "0"]) == 1
