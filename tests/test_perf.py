# Copyright (c) Syntropy Systems
"""Tests for iMC bandwidth measurement."""

import subprocess
from pathlib import Path
from unittest import mock

import pytest

from bwcheck.errors import WorkloadError
from bwcheck.perf import ImcCounter, parse_perf_csv

PERF_OUTPUT = """\
1024.00,MiB,uncore_imc_0/cas_count_read/,1001234567,100.00,,
512.50,MiB,uncore_imc_1/cas_count_read/,1001234567,100.00,,
"""


@pytest.fixture
def event_sources(temp_dir: Path) -> Path:
    """Fake PMU directory with two iMC channels."""
    root = temp_dir / "devices"
    for name in ["uncore_imc_1", "uncore_imc_0", "uncore_cha_0", "cpu"]:
        (root / name).mkdir(parents=True)
    return root


class TestParsePerfCsv:
    """Tests for perf stat CSV parsing."""

    def test_scaled_counters(self):
        """Test MiB counters are summed."""
        assert parse_perf_csv(PERF_OUTPUT) == pytest.approx(1536.5)

    def test_raw_counts(self):
        """Test raw CAS counts use the cache line size."""
        output = "16384,,uncore_imc_0/cas_count_read/,1000,100.00,,\n"

        assert parse_perf_csv(output) == pytest.approx(1.0)

    def test_comments_ignored(self):
        """Test perf's comment lines are skipped."""
        output = "# started on Mon\n\n" + PERF_OUTPUT

        assert parse_perf_csv(output) == pytest.approx(1536.5)

    def test_not_supported(self):
        """Test an uncountable event is an error."""
        output = "<not supported>,,uncore_imc_0/cas_count_read/,0,100.00,,\n"

        with pytest.raises(WorkloadError, match="not supported"):
            _ = parse_perf_csv(output)

    def test_empty(self):
        """Test output without counters is an error."""
        with pytest.raises(WorkloadError, match="no iMC counters"):
            _ = parse_perf_csv("")


class TestImcCounter:
    """Tests for ImcCounter."""

    def test_pmus(self, event_sources: Path):
        """Test only iMC PMUs are listed, sorted."""
        counter = ImcCounter(event_sources=event_sources)

        assert counter.pmus() == ["uncore_imc_0", "uncore_imc_1"]
        assert counter.events() == [
            "uncore_imc_0/cas_count_read/",
            "uncore_imc_1/cas_count_read/",
        ]

    def test_write_events(self, event_sources: Path):
        """Test the writes report counts CAS writes."""
        counter = ImcCounter(event_sources=event_sources, bw_report="writes")

        assert counter.events()[0] == "uncore_imc_0/cas_count_write/"

    def test_unknown_report(self):
        """Test an unknown bandwidth report is rejected."""
        with pytest.raises(ValueError, match="Unknown bandwidth report"):
            _ = ImcCounter(bw_report="total")

    def test_no_pmus(self, temp_dir: Path):
        """Test a machine without iMC PMUs."""
        counter = ImcCounter(event_sources=temp_dir / "none")

        assert counter.pmus() == []

    def test_measure(self, event_sources: Path):
        """Test measure runs perf stat and returns MB per second."""
        counter = ImcCounter(event_sources=event_sources)
        completed = subprocess.CompletedProcess(
            args=[], returncode=0, stdout="", stderr=PERF_OUTPUT
        )

        with mock.patch("bwcheck.perf.shutil.which", return_value="/usr/bin/perf"), \
                mock.patch("bwcheck.perf.subprocess.run", return_value=completed) as run:
            bandwidth = counter.measure(0.5)

        assert bandwidth == pytest.approx(3073.0)
        argv = run.call_args.args[0]
        assert argv[:5] == ["/usr/bin/perf", "stat", "-x", ",", "-a"]
        assert "uncore_imc_0/cas_count_read/,uncore_imc_1/cas_count_read/" in argv
        assert argv[-2:] == ["sleep", "0.5"]

    def test_measure_perf_fails(self, event_sources: Path):
        """Test a non-zero perf exit is an error."""
        counter = ImcCounter(event_sources=event_sources)
        completed = subprocess.CompletedProcess(
            args=[], returncode=129, stdout="", stderr="event syntax error"
        )

        with mock.patch("bwcheck.perf.shutil.which", return_value="/usr/bin/perf"), \
                mock.patch("bwcheck.perf.subprocess.run", return_value=completed), \
                pytest.raises(WorkloadError, match="event syntax error"):
            _ = counter.measure(1.0)

    def test_measure_without_perf(self, event_sources: Path):
        """Test measuring without perf installed."""
        counter = ImcCounter(perf="definitely-not-perf", event_sources=event_sources)

        with pytest.raises(WorkloadError, match="not found"):
            _ = counter.measure(1.0)
