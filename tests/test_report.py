# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for run results, the case recorder and rendering."""

from __future__ import annotations

import json
import logging

import pytest

from fsconformance.clock import FakeClock
from fsconformance.errors import not_exist, permission_denied
from fsconformance.report import (
    Attempt,
    CaseRecorder,
    CaseResult,
    GroupResult,
    SuiteReport,
    attempt,
    render_text,
    report_to_dict,
    run_case,
)
from fsconformance.taxonomy import ErrorKind

# ---------------------------------------------------------------------------
# Attempts
# ---------------------------------------------------------------------------


def _missing() -> bytes:
    raise not_exist("/missing")


def test_attempt_captures_value_and_store_errors() -> None:
    ok = attempt(len, b"abc")
    failed = attempt(_missing)
    invalid = attempt(int, "x")

    assert ok == Attempt(value=3)
    assert ok.ok
    assert ok.kind is None
    assert not failed.ok
    assert failed.kind is ErrorKind.NOT_EXIST
    assert invalid.kind is ErrorKind.INVALID_ARGUMENT


def test_attempt_lets_other_exceptions_propagate() -> None:
    def explode() -> None:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        _ = attempt(explode)


# ---------------------------------------------------------------------------
# Recorder
# ---------------------------------------------------------------------------


def test_expect_equal_records_both_values() -> None:
    rec = CaseRecorder("compare")

    assert rec.expect_equal("size", 3, 3)
    assert not rec.expect_equal("content", b"ab", b"abc")

    assert rec.failures == ["content: expected b'abc', got b'ab'"]


def test_expect_equal_truncates_long_values() -> None:
    rec = CaseRecorder("long")

    _ = rec.expect_equal("data", b"x" * 200, b"")

    message = rec.failures[0]
    assert message.endswith("...")
    assert len(message) < 120


def test_expect_error_variants() -> None:
    rec = CaseRecorder("errors")

    assert rec.expect_error("any", attempt(_missing))
    assert rec.expect_error("kind", attempt(_missing), ErrorKind.NOT_EXIST)
    assert rec.expect_error("raw", not_exist("/x"), ErrorKind.NOT_EXIST)
    assert not rec.expect_error("success", attempt(len, b""), ErrorKind.NOT_EXIST)
    assert not rec.expect_error("nothing", None)
    assert not rec.expect_error("wrong", permission_denied("/x"), ErrorKind.NOT_EXIST)

    assert rec.failures[0] == "success: expected not_exist, got success"
    assert rec.failures[1] == "nothing: expected an error, got success"
    assert rec.failures[2].startswith("wrong: expected not_exist, got permission_denied")


def test_expect_success_reports_error_kind() -> None:
    rec = CaseRecorder("success")

    assert rec.expect_success("ok", attempt(len, b""))
    assert not rec.expect_success("stat", attempt(_missing))

    assert rec.failures[0].startswith("stat: expected success, got not_exist")


def test_must_returns_value_or_aborts() -> None:
    def body(rec: CaseRecorder) -> None:
        assert rec.must("length", len, b"abcd") == 4
        _ = rec.must("read", _missing)
        rec.fail("unreachable")

    result = run_case("must", body)

    assert result.failed
    assert len(result.failures) == 1
    assert result.failures[0].startswith("read: expected success, got not_exist")


# ---------------------------------------------------------------------------
# run_case
# ---------------------------------------------------------------------------


def test_run_case_passes_and_measures_duration() -> None:
    clock = FakeClock()

    result = run_case("slow", lambda rec: clock.advance(0.25), clock=clock)

    assert result == CaseResult(name="slow", status="passed", duration_ms=250)


def test_run_case_records_crash_with_traceback(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    def body(rec: CaseRecorder) -> None:
        raise RuntimeError("stat exploded")

    result = run_case("crash", body)

    assert result.failed
    assert result.failures[0].startswith("unexpected RuntimeError: stat exploded\n")
    assert "Traceback" in result.failures[0]
    events = [getattr(record, "event", None) for record in caplog.records]
    assert events == ["suite.case.crashed", "suite.case.failed"]


def test_run_case_abort_is_quiet(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    result = run_case("aborted", lambda rec: rec.abort("setup: gave up"))

    assert result.failures == ("setup: gave up",)
    assert [getattr(record, "event", None) for record in caplog.records] == [
        "suite.case.failed"
    ]


# ---------------------------------------------------------------------------
# Aggregation and rendering
# ---------------------------------------------------------------------------


def _report() -> SuiteReport:
    return SuiteReport(
        name="baseline[MemoryStore]",
        groups=(
            GroupResult(
                name="file_operations",
                cases=(
                    CaseResult(name="write_read", status="passed"),
                    CaseResult(name="append", status="passed"),
                ),
                duration_ms=12,
            ),
            GroupResult(
                name="error_semantics",
                cases=(
                    CaseResult(
                        name="not_exist",
                        status="failed",
                        failures=("stat: expected not_exist, got permission_denied",),
                    ),
                ),
                duration_ms=3,
            ),
            GroupResult.skip("symlinks", "capability 'symlinks' disabled"),
        ),
        duration_ms=1500,
    )


def test_report_aggregates() -> None:
    report = _report()

    assert not report.passed
    assert report.case_count == 3
    assert report.passed_count == 2
    assert report.failed_count == 1
    assert report.skipped_count == 1
    assert report.group("symlinks").status == "skipped"
    assert [case.name for _, case in report.failures()] == ["not_exist"]
    with pytest.raises(KeyError):
        _ = report.group("missing")


def test_skipped_groups_do_not_fail_a_report() -> None:
    report = SuiteReport(name="quiet", groups=(GroupResult.skip("timestamps", "off"),))

    assert report.passed
    assert report.group("timestamps").passed is False


def test_render_text_lists_failures_and_summary() -> None:
    text = render_text(_report())

    assert text.splitlines()[0] == "✗ baseline[MemoryStore]"
    assert "  ✓ file_operations (12ms)" in text
    assert "    ✗ not_exist" in text
    assert "        stat: expected not_exist, got permission_denied" in text
    assert "  ○ symlinks (skipped: capability 'symlinks' disabled)" in text
    assert "write_read" not in text
    assert text.splitlines()[-1] == "2 passed, 1 failed, 1 group(s) skipped (1.5s)"


def test_render_text_verbose_and_color() -> None:
    text = render_text(_report(), verbose=True, color=True)

    assert "write_read" in text
    assert "\033[31m✗\033[0m baseline[MemoryStore]" in text


def test_report_to_dict_is_json_serializable() -> None:
    payload = report_to_dict(_report())

    assert json.loads(json.dumps(payload)) == payload
    assert payload["summary"] == {"passed": 2, "failed": 1, "skipped_groups": 1}
    assert payload["groups"][2]["status"] == "skipped"
    assert payload["groups"][1]["cases"][0]["failures"] == [
        "stat: expected not_exist, got permission_denied"
    ]
