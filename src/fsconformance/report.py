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

"""Hierarchical run results and the per-case failure recorder.

A run produces a :class:`SuiteReport` made of :class:`GroupResult` values,
each made of :class:`CaseResult` values. Inside a case, checks go through a
:class:`CaseRecorder` which collects mismatches instead of raising, so one
failed expectation never hides the next one. :func:`run_case` executes a case
body and turns whatever happened into a ``CaseResult``.

Types:

- **Attempt**: ``attempt()`` captures a store call as a value or an error
- **Results**: ``CaseResult``, ``GroupResult``, ``SuiteReport``
- **Rendering**: ``render_text`` for terminals, ``report_to_dict`` for JSON
"""

from __future__ import annotations

import traceback
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Literal, NoReturn

from .clock import SYSTEM_CLOCK, Clock, elapsed_ms
from .errors import CaseAborted
from .runtime.logging import StructuredLogger, get_logger
from .taxonomy import CanonicalError, ErrorKind, canonicalize, describe_mismatch

Status = Literal["passed", "failed", "skipped"]

logger: StructuredLogger = get_logger(__name__, context={"component": "report"})

_STORE_ERRORS: tuple[type[BaseException], ...] = (OSError, ValueError)


# ---------------------------------------------------------------------------
# Attempts
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class Attempt[T]:
    """Outcome of one store call: a value or the error it raised."""

    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def canonical(self) -> CanonicalError | None:
        return canonicalize(self.error)

    @property
    def kind(self) -> ErrorKind | None:
        canonical = self.canonical
        return None if canonical is None else canonical.kind


def attempt[**P, T](fn: Callable[P, T], /, *args: P.args, **kwargs: P.kwargs) -> Attempt[T]:
    """Call ``fn`` and capture the result.

    Only store errors (``OSError`` and ``ValueError``) are captured. Anything
    else propagates and fails the enclosing case with a traceback.
    """

    try:
        return Attempt(value=fn(*args, **kwargs))
    except _STORE_ERRORS as error:
        return Attempt(error=error)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class CaseResult:
    """Result of a single case."""

    name: str
    status: Status
    failures: tuple[str, ...] = ()
    duration_ms: int = 0
    reason: str = ""

    @property
    def passed(self) -> bool:
        return self.status == "passed"

    @property
    def failed(self) -> bool:
        return self.status == "failed"


@dataclass(slots=True, frozen=True)
class GroupResult:
    """Result of a test group: its cases, or the reason it was skipped."""

    name: str
    cases: tuple[CaseResult, ...] = ()
    duration_ms: int = 0
    reason: str = ""
    skipped: bool = False

    @classmethod
    def skip(cls, name: str, reason: str) -> GroupResult:
        return cls(name=name, reason=reason, skipped=True)

    @property
    def status(self) -> Status:
        if self.skipped:
            return "skipped"
        if any(case.failed for case in self.cases):
            return "failed"
        return "passed"

    @property
    def passed(self) -> bool:
        return self.status == "passed"

    @property
    def failed_cases(self) -> tuple[CaseResult, ...]:
        return tuple(case for case in self.cases if case.failed)


@dataclass(slots=True, frozen=True)
class SuiteReport:
    """Aggregated results of one run."""

    name: str
    groups: tuple[GroupResult, ...]
    duration_ms: int = 0

    @property
    def passed(self) -> bool:
        return all(group.status != "failed" for group in self.groups)

    def group(self, name: str) -> GroupResult:
        """Return the group called ``name``.

        Raises:
            KeyError: No such group in this report.
        """
        for group in self.groups:
            if group.name == name:
                return group
        raise KeyError(name)

    def failures(self) -> Iterator[tuple[GroupResult, CaseResult]]:
        for group in self.groups:
            for case in group.failed_cases:
                yield group, case

    @property
    def case_count(self) -> int:
        return sum(len(group.cases) for group in self.groups)

    @property
    def failed_count(self) -> int:
        return sum(len(group.failed_cases) for group in self.groups)

    @property
    def passed_count(self) -> int:
        return sum(1 for group in self.groups for case in group.cases if case.passed)

    @property
    def skipped_count(self) -> int:
        return sum(1 for group in self.groups if group.skipped)


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class CaseRecorder:
    """Collects failures for one case.

    Every ``expect_*``/``check`` method returns whether the expectation held,
    so callers can skip dependent checks without aborting the case.

    Example::

        def case_stat(rec: CaseRecorder) -> None:
            info = rec.must("create", write_file, store, path, b"abc")
            rec.expect_error("stat missing", attempt(store.stat, missing), ErrorKind.NOT_EXIST)
    """

    name: str
    failures: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return bool(self.failures)

    def fail(self, message: str) -> None:
        self.failures.append(message)

    def check(self, condition: bool, message: str) -> bool:
        if not condition:
            self.fail(message)
        return condition

    def expect_equal(self, label: str, observed: object, expected: object) -> bool:
        return self.check(
            observed == expected,
            f"{label}: expected {_short(expected)}, got {_short(observed)}",
        )

    def expect_error(
        self,
        label: str,
        outcome: Attempt[Any] | BaseException | None,
        expected: ErrorKind | None = None,
    ) -> bool:
        """Expect a failure, of kind ``expected`` when given.

        With ``expected=None`` any error is accepted.
        """
        error = outcome.error if isinstance(outcome, Attempt) else outcome
        if error is None:
            wanted = expected.value if expected is not None else "an error"
            self.fail(f"{label}: expected {wanted}, got success")
            return False
        if expected is None:
            return True
        mismatch = describe_mismatch(CanonicalError(expected), canonicalize(error))
        if mismatch is not None:
            self.fail(f"{label}: {mismatch}")
            return False
        return True

    def expect_success(
        self, label: str, outcome: Attempt[Any] | BaseException | None
    ) -> bool:
        error = outcome.error if isinstance(outcome, Attempt) else outcome
        if error is not None:
            self.fail(f"{label}: {describe_mismatch(None, canonicalize(error))}")
            return False
        return True

    def abort(self, message: str) -> NoReturn:
        """Record ``message`` and end the case."""
        self.fail(message)
        raise CaseAborted(message)

    def must[**P, T](
        self, label: str, fn: Callable[P, T], /, *args: P.args, **kwargs: P.kwargs
    ) -> T:
        """Call ``fn`` and abort the case if it raises a store error."""
        try:
            return fn(*args, **kwargs)
        except _STORE_ERRORS as error:
            self.abort(f"{label}: {describe_mismatch(None, canonicalize(error))}")

    def result(self, duration_ms: int = 0) -> CaseResult:
        status: Status = "failed" if self.failures else "passed"
        return CaseResult(
            name=self.name,
            status=status,
            failures=tuple(self.failures),
            duration_ms=duration_ms,
        )


CaseBody = Callable[[CaseRecorder], None]


def run_case(
    name: str,
    body: CaseBody,
    *,
    log: StructuredLogger | None = None,
    clock: Clock = SYSTEM_CLOCK,
) -> CaseResult:
    """Run ``body`` with a fresh recorder and return its result.

    ``CaseAborted`` ends the case quietly (the failure is already recorded).
    Any other exception is recorded as a failure with its traceback and logged,
    and never escapes.
    """

    log = log if log is not None else logger
    recorder = CaseRecorder(name)
    start = clock.monotonic()
    try:
        body(recorder)
    except CaseAborted:
        pass
    except Exception as error:  # noqa: BLE001
        recorder.fail(
            f"unexpected {type(error).__name__}: {error}\n"
            + "".join(traceback.format_exception(error)).rstrip()
        )
        log.exception(
            "Case raised unexpectedly.",
            event="suite.case.crashed",
            context={"case": name, "error": repr(error)},
        )
    duration_ms = elapsed_ms(clock, start)
    result = recorder.result(duration_ms)
    if result.failed:
        log.warning(
            "Case failed.",
            event="suite.case.failed",
            context={"case": name, "failures": list(result.failures)},
        )
    return result


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

_MARKS: dict[Status, tuple[str, str]] = {
    "passed": ("✓", "\033[32m"),
    "failed": ("✗", "\033[31m"),
    "skipped": ("○", "\033[33m"),
}


def _mark(status: Status, color: bool) -> str:
    symbol, code = _MARKS[status]
    return f"{code}{symbol}\033[0m" if color else symbol


def _format_duration(ms: int) -> str:
    if ms < 1000:
        return f"{ms}ms"
    return f"{ms / 1000:.1f}s"


def render_text(report: SuiteReport, *, color: bool = False, verbose: bool = False) -> str:
    """Render ``report`` as an indented suite, group and case tree.

    Passing cases are listed only with ``verbose``; failures always show their
    messages.
    """

    lines = [f"{_mark('failed' if not report.passed else 'passed', color)} {report.name}"]
    for group in report.groups:
        if group.skipped:
            lines.append(f"  {_mark('skipped', color)} {group.name} (skipped: {group.reason})")
            continue
        lines.append(
            f"  {_mark(group.status, color)} {group.name} ({_format_duration(group.duration_ms)})"
        )
        for case in group.cases:
            if case.passed and not verbose:
                continue
            lines.append(f"    {_mark(case.status, color)} {case.name}")
            for failure in case.failures:
                for line in failure.splitlines():
                    lines.append(f"        {line}")

    lines.append("")
    summary = (
        f"{report.passed_count} passed, {report.failed_count} failed, "
        f"{report.skipped_count} group(s) skipped"
    )
    lines.append(f"{summary} ({_format_duration(report.duration_ms)})")
    return "\n".join(lines)


def report_to_dict(report: SuiteReport) -> dict[str, Any]:
    """Return a JSON-serializable form of ``report``."""

    return {
        "name": report.name,
        "passed": report.passed,
        "duration_ms": report.duration_ms,
        "summary": {
            "passed": report.passed_count,
            "failed": report.failed_count,
            "skipped_groups": report.skipped_count,
        },
        "groups": [
            {
                "name": group.name,
                "status": group.status,
                "reason": group.reason,
                "duration_ms": group.duration_ms,
                "cases": [
                    {
                        "name": case.name,
                        "status": case.status,
                        "failures": list(case.failures),
                        "duration_ms": case.duration_ms,
                    }
                    for case in group.cases
                ],
            }
            for group in report.groups
        ],
    }


def _short(value: object, limit: int = 80) -> str:
    text = repr(value)
    if len(text) > limit:
        return f"{text[: limit - 3]}..."
    return text


__all__ = [
    "Attempt",
    "CaseBody",
    "CaseRecorder",
    "CaseResult",
    "GroupResult",
    "Status",
    "SuiteReport",
    "attempt",
    "render_text",
    "report_to_dict",
    "run_case",
]
