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

"""Differential ``open_file`` matrix.

Every combination of access mode, creation flags, creation mode and
precondition is run against a reference store and a candidate store. Each
case opens the fixture, writes, rewinds, reads and closes; every step is
reduced to a :class:`~fsconformance.taxonomy.CanonicalError` and the two
stores must agree step by step.

Preconditions:

- ``missing``: nothing exists at the path.
- ``file``: a regular file with content exists.
- ``directory``: a directory exists.
- ``no_permissions``: a file exists with mode ``0``. Needs the permission
  capability on both stores, and a reference that enforces it (the host
  filesystem does not when running as root).
"""

from __future__ import annotations

import itertools
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import reduce
from operator import or_
from typing import Final, Literal

from .clock import SYSTEM_CLOCK, Clock, elapsed_ms
from .errors import ConfigurationError, SetupError
from .report import CaseBody, CaseRecorder, GroupResult, SuiteReport, attempt, run_case
from .runtime.logging import StructuredLogger, get_logger
from .store import OpenFlag, Store, join, write_file
from .taxonomy import CanonicalError, describe_mismatch, equivalent

logger: StructuredLogger = get_logger(__name__, context={"component": "differential"})

Precondition = Literal["missing", "file", "directory", "no_permissions"]

PRECONDITIONS: Final[tuple[Precondition, ...]] = (
    "missing",
    "file",
    "directory",
    "no_permissions",
)
ACCESS_MODES: Final[tuple[OpenFlag, ...]] = (OpenFlag.RDONLY, OpenFlag.WRONLY, OpenFlag.RDWR)
CREATION_FLAGS: Final[tuple[OpenFlag, ...]] = (
    OpenFlag.CREATE,
    OpenFlag.EXCL,
    OpenFlag.TRUNC,
    OpenFlag.APPEND,
)
CREATION_MODES: Final[tuple[int, ...]] = (0o644, 0o444)

FIXTURE_DATA: Final[bytes] = b"Hello, world!\n"
WRITE_DATA: Final[bytes] = b"The quick brown fox, jumped over the lazy dog!"
READ_SIZE: Final[int] = 512

_STEPS: Final[tuple[str, ...]] = ("open", "write", "read", "close")


def flag_names(flags: OpenFlag) -> str:
    """Render ``flags`` as ``RDWR|CREATE|TRUNC``."""

    access = {
        OpenFlag.RDONLY: "RDONLY",
        OpenFlag.WRONLY: "WRONLY",
        OpenFlag.RDWR: "RDWR",
    }.get(flags & OpenFlag.ACCESS_MASK, "INVALID")
    extra = [
        name
        for name, flag in (
            ("CREATE", OpenFlag.CREATE),
            ("EXCL", OpenFlag.EXCL),
            ("TRUNC", OpenFlag.TRUNC),
            ("APPEND", OpenFlag.APPEND),
            ("SYNC", OpenFlag.SYNC),
        )
        if flags & flag
    ]
    return "|".join([access, *extra])


@dataclass(slots=True, frozen=True)
class OpenCase:
    """One cell of the matrix."""

    number: int
    precondition: Precondition
    flags: OpenFlag
    mode: int

    @property
    def name(self) -> str:
        return f"{self.number:04d}_{flag_names(self.flags)}_{self.mode:o}"

    @property
    def fixture(self) -> str:
        prefix = "dir" if self.precondition == "directory" else "file"
        return f"{prefix}_{self.number:04d}"


@dataclass(slots=True, frozen=True)
class OpenOutcome:
    """Canonical result of every step of one case on one store.

    Steps after a failed open are not attempted and stay ``None``.
    """

    case: OpenCase
    opened: bool
    open: CanonicalError | None = None
    write: CanonicalError | None = None
    read: CanonicalError | None = None
    close: CanonicalError | None = None
    data: bytes | None = None

    def step(self, name: str) -> CanonicalError | None:
        return getattr(self, name)


def generate_open_cases(
    preconditions: Iterable[Precondition] = PRECONDITIONS,
    modes: Sequence[int] = CREATION_MODES,
) -> list[OpenCase]:
    """Enumerate every access mode, creation flag subset, mode and precondition.

    Raises:
        ConfigurationError: An unknown precondition was requested.
    """

    selected = tuple(preconditions)
    unknown = [name for name in selected if name not in PRECONDITIONS]
    if unknown:
        msg = f"Unknown precondition(s): {', '.join(unknown)}"
        raise ConfigurationError(msg)
    subsets = [
        combo
        for size in range(len(CREATION_FLAGS) + 1)
        for combo in itertools.combinations(CREATION_FLAGS, size)
    ]
    cases: list[OpenCase] = []
    for access in ACCESS_MODES:
        for combo in subsets:
            flags = reduce(or_, combo, access)
            for mode in modes:
                for precondition in selected:
                    cases.append(
                        OpenCase(
                            number=len(cases),
                            precondition=precondition,
                            flags=OpenFlag(flags),
                            mode=mode,
                        )
                    )
    return cases


def prepare_precondition(store: Store, directory: str, case: OpenCase) -> str:
    """Create the fixture ``case`` needs under ``directory`` and return its path.

    Raises:
        ConfigurationError: ``no_permissions`` on a store without ``chmod``.
        OSError: The fixture could not be created.
    """

    path = join(directory, case.fixture)
    match case.precondition:
        case "missing":
            pass
        case "file":
            write_file(store, path, FIXTURE_DATA)
        case "directory":
            store.mkdir(path)
        case "no_permissions":
            permissions = store.permissions()
            if permissions is None:
                msg = f"{store!r} has no permission capability for no_permissions cases"
                raise ConfigurationError(msg)
            write_file(store, path, FIXTURE_DATA)
            permissions.chmod(path, 0)
    return path


def run_open_case(store: Store, directory: str, case: OpenCase) -> OpenOutcome:
    """Prepare, then open, write, rewind and read, and close.

    Raises:
        ConfigurationError: ``no_permissions`` on a store without ``chmod``.
        OSError: The precondition could not be prepared.
    """

    path = prepare_precondition(store, directory, case)
    opened = attempt(store.open_file, path, case.flags, case.mode)
    if opened.value is None:
        return OpenOutcome(case=case, opened=False, open=opened.canonical)
    handle = opened.value
    written = attempt(handle.write, WRITE_DATA)
    rewound = attempt(handle.seek, 0)
    read = attempt(handle.read, READ_SIZE) if rewound.ok else None
    closed = attempt(handle.close)
    return OpenOutcome(
        case=case,
        opened=True,
        write=written.canonical,
        read=rewound.canonical if read is None else read.canonical,
        close=closed.canonical,
        data=None if read is None else read.value,
    )


def compare_outcomes(reference: OpenOutcome, candidate: OpenOutcome) -> list[str]:
    """Describe every step where ``candidate`` departs from ``reference``."""

    mismatches: list[str] = []
    for step in _STEPS:
        expected, observed = reference.step(step), candidate.step(step)
        if not equivalent(expected, observed):
            mismatches.append(f"{step}: {describe_mismatch(expected, observed)}")
    if not mismatches and reference.data != candidate.data:
        mismatches.append(f"read data: expected {reference.data!r}, got {candidate.data!r}")
    return mismatches


# ---------------------------------------------------------------------------
# Suite
# ---------------------------------------------------------------------------


class DifferentialSuite:
    """Runs the open matrix on a reference and a candidate store.

    Cases are grouped by precondition (``open_missing``, ``open_file``, ...).
    ``no_permissions`` is skipped when either store lacks the permission
    capability.

    Args:
        reference: Store whose behavior is taken as correct.
        candidate: Store under verification.
        preconditions: Preconditions to include.
        modes: Creation modes to include.
        reference_dir: Existing directory on ``reference`` for its run root.
        candidate_dir: Existing directory on ``candidate`` for its run root.
    """

    def __init__(
        self,
        reference: Store,
        candidate: Store,
        *,
        preconditions: Iterable[Precondition] = PRECONDITIONS,
        modes: Sequence[int] = CREATION_MODES,
        reference_dir: str | None = None,
        candidate_dir: str | None = None,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        super().__init__()
        self.reference = reference
        self.candidate = candidate
        self.preconditions = tuple(preconditions)
        self.cases = generate_open_cases(self.preconditions, modes)
        self.reference_dir = reference_dir
        self.candidate_dir = candidate_dir
        self.clock = clock
        self.name = f"differential[{type(reference).__name__}->{type(candidate).__name__}]"
        self._log = logger.bind(suite=self.name)

    def run(self) -> SuiteReport:
        """Run every case on both stores.

        Raises:
            SetupError: A run root could not be created.
        """

        start = self.clock.monotonic()
        reference_root = self._create_root(self.reference, self.reference_dir)
        try:
            candidate_root = self._create_root(self.candidate, self.candidate_dir)
            try:
                groups = tuple(
                    self._run_group(precondition, reference_root, candidate_root)
                    for precondition in self.preconditions
                )
            finally:
                self._cleanup(self.candidate, candidate_root)
        finally:
            self._cleanup(self.reference, reference_root)
        report = SuiteReport(
            name=self.name, groups=groups, duration_ms=elapsed_ms(self.clock, start)
        )
        self._log.info(
            "Run finished.",
            event="suite.run.finish",
            context={"passed": report.passed_count, "failed": report.failed_count},
        )
        return report

    def _create_root(self, store: Store, parent: str | None) -> str:
        root = join(parent or store.temp_dir(), f"fsconformance_diff_{uuid.uuid4().hex[:12]}")
        try:
            store.mkdir_all(root)
        except (OSError, ValueError) as error:
            self._log.error(
                "Could not create run root.",
                event="suite.setup.failed",
                context={"root": root, "store": repr(store), "error": repr(error)},
            )
            msg = f"Cannot create run root {root} on {store!r}: {error}"
            raise SetupError(msg) from error
        self._log.info(
            "Starting run.",
            event="suite.run.start",
            context={"root": root, "store": repr(store), "cases": len(self.cases)},
        )
        return root

    def _cleanup(self, store: Store, root: str) -> None:
        try:
            store.remove_all(root)
        except (OSError, ValueError) as error:
            self._log.warning(
                "Could not remove run root.",
                event="suite.run.cleanup_failed",
                context={"root": root, "error": repr(error)},
            )

    def _run_group(
        self, precondition: Precondition, reference_root: str, candidate_root: str
    ) -> GroupResult:
        name = f"open_{precondition}"
        if precondition == "no_permissions" and (
            self.reference.permissions() is None or self.candidate.permissions() is None
        ):
            reason = "permission capability missing on one of the stores"
            self._log.info(
                "Skipping group.",
                event="suite.group.skipped",
                context={"group": name, "reason": reason},
            )
            return GroupResult.skip(name, reason)
        start = self.clock.monotonic()
        log = self._log.bind(group=name)
        results = tuple(
            run_case(
                case.name,
                self._case_body(case, reference_root, candidate_root),
                log=log,
                clock=self.clock,
            )
            for case in self.cases
            if case.precondition == precondition
        )
        return GroupResult(name=name, cases=results, duration_ms=elapsed_ms(self.clock, start))

    def _case_body(self, case: OpenCase, reference_root: str, candidate_root: str) -> CaseBody:
        def body(rec: CaseRecorder) -> None:
            reference = rec.must("reference", run_open_case, self.reference, reference_root, case)
            candidate = rec.must("candidate", run_open_case, self.candidate, candidate_root, case)
            for mismatch in compare_outcomes(reference, candidate):
                rec.fail(mismatch)

        return body


__all__ = [
    "ACCESS_MODES",
    "CREATION_FLAGS",
    "CREATION_MODES",
    "FIXTURE_DATA",
    "PRECONDITIONS",
    "WRITE_DATA",
    "DifferentialSuite",
    "OpenCase",
    "OpenOutcome",
    "Precondition",
    "compare_outcomes",
    "flag_names",
    "generate_open_cases",
    "prepare_precondition",
    "run_open_case",
]
