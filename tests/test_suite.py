# Copyright (c) Syntropy Systems
"""Tests for test descriptors and the suite runner."""

from pathlib import Path

import pytest

from bwcheck.config import BwcheckConfig
from bwcheck.errors import AllocationWriteError
from bwcheck.mba import MBA_TEST
from bwcheck.models.results import TestOutcome
from bwcheck.perf import ImcCounter
from bwcheck.resctrl import ResctrlFS
from bwcheck.suite import (
    ResctrlTest,
    TestResult,
    UserParams,
    all_tests,
    get_test,
    overall_exit_code,
    run_one,
)


def make_params(resctrl: ResctrlFS, vendor: str = "intel", **config) -> UserParams:
    """UserParams around a fake resctrl tree."""
    return UserParams(
        config=BwcheckConfig(**config),
        resctrl=resctrl,
        imc=ImcCounter(),
        benchmark=["true"],
        vendor=vendor,
    )


class Recorder:
    """Builds a ResctrlTest whose hooks record their calls."""

    def __init__(self, supported=True, result=None, error=None) -> None:
        self.calls: list[str] = []
        self.supported = supported
        self.result = result
        self.error = error

    def test(self, vendor=None) -> ResctrlTest:
        def feature_check(test, params):
            self.calls.append("feature_check")
            return self.supported

        def run_test(test, params):
            self.calls.append("run_test")
            if self.error is not None:
                raise self.error
            return self.result

        def cleanup(test, params):
            self.calls.append("cleanup")

        return ResctrlTest(
            name="FAKE",
            resource="MB",
            feature_check=feature_check,
            run_test=run_test,
            cleanup=cleanup,
            vendor=vendor,
        )


class TestRunOne:
    """Tests for run_one."""

    def test_pass(self, resctrl: ResctrlFS):
        """Test a passing test runs and cleans up."""
        recorder = Recorder(result=TestResult("FAKE", TestOutcome.PASS))

        result = run_one(recorder.test(), make_params(resctrl))

        assert result.outcome == TestOutcome.PASS
        assert result.exit_code == 0
        assert recorder.calls == ["feature_check", "run_test", "cleanup"]

    def test_vendor_mismatch_skips(self, resctrl: ResctrlFS):
        """Test a vendor-specific test on another vendor."""
        recorder = Recorder()

        result = run_one(recorder.test(vendor="intel"), make_params(resctrl, "amd"))

        assert result.outcome == TestOutcome.SKIP
        assert recorder.calls == []

    def test_unsupported_skips(self, resctrl: ResctrlFS):
        """Test a failed feature check skips without running or cleaning up."""
        recorder = Recorder(supported=False)

        result = run_one(recorder.test(), make_params(resctrl))

        assert result.outcome == TestOutcome.SKIP
        assert result.exit_code == 4
        assert recorder.calls == ["feature_check"]

    def test_error_still_cleans_up(self, resctrl: ResctrlFS):
        """Test a fatal error becomes an error outcome after cleanup."""
        recorder = Recorder(error=AllocationWriteError("Cannot write MB:0=90"))

        result = run_one(recorder.test(), make_params(resctrl))

        assert result.outcome == TestOutcome.ERROR
        assert result.message == "Cannot write MB:0=90"
        assert recorder.calls == ["feature_check", "run_test", "cleanup"]


class TestRegistry:
    """Tests for the test registry."""

    def test_mba_registered(self):
        """Test the MBA descriptor."""
        assert all_tests() == [MBA_TEST]
        assert MBA_TEST.name == "MBA"
        assert MBA_TEST.resource == "MB"
        assert MBA_TEST.vendor == "intel"

    def test_get_test_case_insensitive(self):
        """Test lookup by name."""
        assert get_test("mba") is MBA_TEST

    def test_get_unknown(self):
        """Test an unknown name lists the known tests."""
        with pytest.raises(ValueError, match="Available: MBA"):
            _ = get_test("CAT")

    def test_mba_feature_check(self, resctrl: ResctrlFS, resctrl_tree: Path):
        """Test the MBA feature check against the fake tree."""
        params = make_params(resctrl)

        assert MBA_TEST.feature_check(MBA_TEST, params)

        _ = (resctrl_tree / "info" / "L3_MON" / "mon_features").write_text("")
        assert not MBA_TEST.feature_check(MBA_TEST, params)

    def test_mba_skipped_without_resctrl(self, temp_dir: Path):
        """Test the MBA test skips on a machine without resctrl."""
        params = make_params(ResctrlFS(temp_dir / "none", temp_dir))

        result = run_one(MBA_TEST, params)

        assert result.outcome == TestOutcome.SKIP

    def test_mba_cleanup(self, resctrl: ResctrlFS, in_temp_dir: Path):
        """Test cleanup removes a leftover result log."""
        params = make_params(resctrl)
        leftover = in_temp_dir / "result_mba"
        _ = leftover.write_text("partial\n")

        MBA_TEST.cleanup(MBA_TEST, params)
        MBA_TEST.cleanup(MBA_TEST, params)

        assert not leftover.exists()


class TestOverallExitCode:
    """Tests for the session exit code."""

    @pytest.mark.parametrize(
        ("outcomes", "expected"),
        [
            ([TestOutcome.PASS], 0),
            ([TestOutcome.PASS, TestOutcome.FAIL], 1),
            ([TestOutcome.FAIL, TestOutcome.ERROR], 2),
            ([TestOutcome.SKIP, TestOutcome.PASS], 0),
            ([TestOutcome.SKIP], 4),
            ([], 4),
        ],
    )
    def test_worst_outcome_wins(self, outcomes, expected):
        """Test errors outrank failures, which outrank passes."""
        results = [TestResult("T", outcome) for outcome in outcomes]

        assert overall_exit_code(results) == expected
