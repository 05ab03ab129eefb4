"""Tests for the report builder — failure ratios and tendency."""

import os
from datetime import datetime

import pytest

from integrity_hids.engine.incident_log import CheckSession, serialize_sessions
from integrity_hids.engine.report import (
    SessionReport,
    Tendency,
    build_report,
    failure_ratio,
    render_report,
    raw_failure_ratio,
    tendency_between,
    write_report,
)
from integrity_hids.errors import InvalidSessionHeaderError


class TestFailureRatio:
    def test_ratio(self, make_session):
        assert failure_ratio(make_session(4, 1)) == 0.25

    def test_zero_known_files(self, make_session):
        assert failure_ratio(make_session(0, 0)) == 0.0
        assert failure_ratio(make_session(0, 3)) == 0.0

    def test_raw_ratio_not_capped(self, make_session):
        assert raw_failure_ratio(make_session(2, 5)) == 2.5
        assert failure_ratio(make_session(2, 5)) == 1.0
        assert raw_failure_ratio(make_session(0, 3)) == 0.0

    @pytest.mark.parametrize("file_count,incidents", [(1, 0), (1, 1), (3, 2), (2, 5), (10, 10)])
    def test_bounds(self, make_session, file_count, incidents):
        assert 0.0 <= failure_ratio(make_session(file_count, incidents)) <= 1.0


class TestTendency:
    def test_down(self, make_session):
        reports = build_report([make_session(10, 5), make_session(10, 2)])
        assert reports[0].tendency is None
        assert reports[1].tendency is Tendency.DOWN

    def test_up(self, make_session):
        reports = build_report([make_session(10, 2), make_session(10, 5)])
        assert reports[1].tendency is Tendency.UP

    def test_equal(self, make_session):
        reports = build_report([make_session(10, 5), make_session(4, 2)])
        assert reports[1].tendency is Tendency.EQUAL

    def test_compares_with_previous_only(self, make_session):
        reports = build_report([make_session(10, 9), make_session(10, 1), make_session(10, 5)])
        assert [r.tendency for r in reports] == [None, Tendency.DOWN, Tendency.UP]

    def test_tendency_between(self):
        assert tendency_between(0.5, 0.2) is Tendency.DOWN
        assert tendency_between(0.2, 0.5) is Tendency.UP
        assert tendency_between(0.2, 0.2) is Tendency.EQUAL

    def test_uses_uncapped_ratio(self, make_session):
        """Sessions with more incidents than known files still show a trend."""
        reports = build_report([make_session(1, 2), make_session(1, 5), make_session(1, 3)])
        assert [r.tendency for r in reports] == [None, Tendency.UP, Tendency.DOWN]
        assert all(r.ratio == 1.0 for r in reports)

    def test_no_sessions(self):
        assert build_report([]) == []


class TestRender:
    def test_first_block_has_no_tendency(self, make_session):
        block = SessionReport(make_session(4, 1), 0.25).render()
        assert block == (
            "\n"
            "Check date: 2024-05-01T10:00:00\n"
            "  Configured     : 4\n"
            "  Hash not found : 0\n"
            "  File not found : 0\n"
            "  Integrity fail : 1\n"
            "  Unknown file   : 0\n"
            "  Failure ratio  : 25.00%\n"
        )

    def test_tendency_line(self, make_session):
        block = SessionReport(make_session(4, 1), 0.25, Tendency.UP).render()
        assert block.endswith("  Tendency       : UP\n")

    def test_report_header(self, make_session):
        text = render_report(build_report([make_session(2, 1)]), datetime(2024, 6, 1, 8, 30))
        assert text.startswith("Report started at 2024-06-01T08:30:00\n")
        assert "Failure ratio  : 50.00%" in text


class TestWriteReport:
    def test_writes_indicators_file(self, workdir, incidents_file, make_session):
        with open(incidents_file, "w", encoding="utf-8") as f:
            f.write(serialize_sessions([make_session(10, 5), make_session(10, 2)]))
        indicators = os.path.join(workdir, "indicators.txt")

        reports = write_report(incidents_file, indicators)

        assert len(reports) == 2
        with open(indicators, encoding="utf-8") as f:
            content = f.read()
        assert content.count("Check date:") == 2
        assert "Tendency       : DOWN" in content

    def test_corrupt_log_aborts_report(self, workdir, incidents_file):
        with open(incidents_file, "w", encoding="utf-8") as f:
            f.write("-- 2024-05-01T10:00:00 -- Known files: 1\n\nthis is not a header\n")
        indicators = os.path.join(workdir, "indicators.txt")

        with pytest.raises(InvalidSessionHeaderError):
            write_report(incidents_file, indicators)
        assert not os.path.exists(indicators)

    def test_empty_session_list(self, workdir, incidents_file):
        open(incidents_file, "w").close()
        indicators = os.path.join(workdir, "indicators.txt")
        assert write_report(incidents_file, indicators) == []
        with open(indicators, encoding="utf-8") as f:
            assert f.read().startswith("Report started at ")


def test_session_without_known_files():
    session = CheckSession(datetime(2024, 5, 1), 0, [])
    (report,) = build_report([session])
    assert report.ratio == 0.0
