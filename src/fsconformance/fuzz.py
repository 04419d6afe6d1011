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

"""Corpus-seeded property harness for store primitives.

Inputs come from pluggable :class:`InputGenerator` implementations: a fixed
seed corpus followed by randomized production. Each input is validated
before it reaches the store; rejected inputs (NUL bytes, invalid encoding,
``""``, ``.`` and ``..``) are counted as skipped.

Every accepted input runs in its own directory, seen through a ``sub`` view so
path inputs cannot reach outside it. Store errors are acceptable outcomes.
Any other exception is a crash, and a broken round-trip invariant is a
failure. Both are minimized by greedy shrinking before being reported.

Example::

    harness = FuzzHarness(MemoryStore(), "/tmp", iterations=100, seed=7)
    report = harness.run("rename")
    assert report.passed, report.failures
"""

from __future__ import annotations

import random
import string
import traceback
import uuid
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Final, Protocol, runtime_checkable

from .clock import SYSTEM_CLOCK, Clock, elapsed_ms
from .errors import ConfigurationError, InvalidInputError, SetupError
from .report import CaseResult, GroupResult, SuiteReport, attempt
from .runtime.logging import StructuredLogger, get_logger
from .store import (
    NodeKind,
    OpenFlag,
    Store,
    can_read,
    can_write,
    clean,
    dirname,
    join,
    validate_path_input,
    write_file,
)
from .wrapper import WrapperFactory

logger: StructuredLogger = get_logger(__name__, context={"component": "fuzz"})

MAX_SHRINK_ATTEMPTS: Final[int] = 200


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------


@runtime_checkable
class InputGenerator[T](Protocol):
    """Seed corpus plus randomized production for one input type."""

    @property
    def name(self) -> str: ...

    def seeds(self) -> Sequence[T]:
        """Inputs always tried first, in order."""
        ...

    def produce(self, rng: random.Random) -> T:
        """Return a new input drawn from ``rng``."""
        ...

    def shrink(self, value: T) -> Iterator[T]:
        """Yield smaller variants of ``value``, most aggressive first."""
        ...


CREATE_SEEDS: Final[tuple[str, ...]] = (
    "test.txt",
    "nested/path/file.txt",
    ".hidden",
    "spaces in name.txt",
    "file.multiple.dots.txt",
    "UPPERCASE.TXT",
    "mixedCase.Txt",
    "日本語.txt",
    "émoji🎉.txt",
    "a" * 255,
)

MKDIR_SEEDS: Final[tuple[str, ...]] = (
    "simple",
    "nested/path",
    "deeply/nested/directory/path",
    "with spaces",
    "日本語ディレクトリ",
    "long" * 50,
)

PAYLOAD_SEEDS: Final[tuple[bytes, ...]] = (
    b"hello",
    b"",
    b"\x00",
    b"\xff",
    b"\x00\xff\x00\xff",
    bytes(4096),
    bytes(4097),
    "日本語テスト".encode(),
    b"x" * (1 << 16),
)

RENAME_SEEDS: Final[tuple[tuple[str, str], ...]] = (
    ("old.txt", "new.txt"),
    ("a", "b"),
    ("file.txt", "subdir/file.txt"),
    ("日本語.txt", "renamed.txt"),
    ("source", "target with spaces"),
)

TRAVERSAL_SEEDS: Final[tuple[str, ...]] = (
    "../escape",
    "../../etc/passwd",
    "subdir/../../../escape",
    "....//....//escape",
    "..\\..\\escape",
    "subdir/./../../escape",
    "../" * 100 + "escape",
)

FLAG_SEEDS: Final[tuple[int, ...]] = (
    OpenFlag.RDONLY,
    OpenFlag.WRONLY,
    OpenFlag.RDWR,
    OpenFlag.CREATE,
    OpenFlag.CREATE | OpenFlag.EXCL,
    OpenFlag.CREATE | OpenFlag.TRUNC,
    OpenFlag.APPEND,
    OpenFlag.APPEND | OpenFlag.WRONLY,
    OpenFlag.SYNC,
    OpenFlag.CREATE | OpenFlag.RDWR | OpenFlag.TRUNC,
)

_NAME_ALPHABET: Final[str] = (
    string.ascii_letters + string.digits + " ._-~#%;'" + "/" * 4 + "日本é🎉Ω"
)
# Characters that make an input invalid, drawn rarely so rejection is exercised.
_POISON: Final[tuple[str, ...]] = ("\x00", "\udcff")


def _shrink_text(value: str) -> Iterator[str]:
    if "/" in value:
        parts = value.split("/")
        for index in range(len(parts)):
            yield "/".join(parts[:index] + parts[index + 1 :])
    if len(value) > 1:
        half = len(value) // 2
        yield value[:half]
        yield value[half:]
    for index in range(min(len(value), 64)):
        yield value[:index] + value[index + 1 :]
    if not value.isascii():
        yield "".join(char if char.isascii() else "a" for char in value)


@dataclass(slots=True, frozen=True)
class PathGenerator:
    """Relative names: seed mutations and random strings."""

    corpus: tuple[str, ...] = CREATE_SEEDS
    max_length: int = 64
    poison_rate: float = 0.05
    name: str = "path"

    def seeds(self) -> Sequence[str]:
        return self.corpus

    def produce(self, rng: random.Random) -> str:
        if self.corpus and rng.random() < 0.5:
            chars = list(rng.choice(self.corpus))
            for _ in range(rng.randint(1, 4)):
                position = rng.randint(0, len(chars))
                match rng.randrange(3):
                    case 0:
                        chars.insert(position, rng.choice(_NAME_ALPHABET))
                    case 1 if chars:
                        del chars[min(position, len(chars) - 1)]
                    case _ if chars:
                        chars[min(position, len(chars) - 1)] = rng.choice(_NAME_ALPHABET)
                    case _:
                        chars.append(rng.choice(_NAME_ALPHABET))
            value = "".join(chars)
        else:
            length = rng.randint(1, self.max_length)
            value = "".join(rng.choice(_NAME_ALPHABET) for _ in range(length))
        if rng.random() < self.poison_rate:
            position = rng.randint(0, len(value))
            value = value[:position] + rng.choice(_POISON) + value[position:]
        return value

    def shrink(self, value: str) -> Iterator[str]:
        return _shrink_text(value)


@dataclass(slots=True, frozen=True)
class PayloadGenerator:
    """Byte payloads: seeds, random bytes and repeated patterns."""

    corpus: tuple[bytes, ...] = PAYLOAD_SEEDS
    max_length: int = 2 * 4097
    name: str = "payload"

    def seeds(self) -> Sequence[bytes]:
        return self.corpus

    def produce(self, rng: random.Random) -> bytes:
        match rng.randrange(3):
            case 0:
                return rng.randbytes(rng.randint(0, self.max_length))
            case 1:
                pattern = rng.randbytes(rng.randint(1, 16))
                return pattern * rng.randint(1, self.max_length // len(pattern))
            case _:
                data = bytearray(rng.choice(self.corpus) if self.corpus else b"")
                for _ in range(rng.randint(1, 8)):
                    if data:
                        data[rng.randrange(len(data))] ^= 1 << rng.randrange(8)
                    else:
                        data.append(rng.randrange(256))
                return bytes(data)

    def shrink(self, value: bytes) -> Iterator[bytes]:
        if len(value) > 1:
            half = len(value) // 2
            yield value[:half]
            yield value[half:]
        if value:
            yield value[1:]
            yield value[:-1]
        if any(value):
            yield bytes(len(value))


@dataclass(slots=True, frozen=True)
class RenamePairGenerator:
    """Pairs of relative names for rename sources and destinations."""

    corpus: tuple[tuple[str, str], ...] = RENAME_SEEDS
    names: PathGenerator = field(
        default_factory=lambda: PathGenerator(corpus=tuple(CREATE_SEEDS[:8]), max_length=24)
    )
    name: str = "rename_pair"

    def seeds(self) -> Sequence[tuple[str, str]]:
        return self.corpus

    def produce(self, rng: random.Random) -> tuple[str, str]:
        return (self.names.produce(rng), self.names.produce(rng))

    def shrink(self, value: tuple[str, str]) -> Iterator[tuple[str, str]]:
        old, new = value
        for smaller in _shrink_text(old):
            yield (smaller, new)
        for smaller in _shrink_text(new):
            yield (old, smaller)


@dataclass(slots=True, frozen=True)
class TraversalGenerator:
    """Paths built from parent references, separators and target names."""

    corpus: tuple[str, ...] = TRAVERSAL_SEEDS
    pieces: tuple[str, ...] = ("..", ".", "....", "..\\..", "", "subdir", "escape", "etc", "passwd")
    max_pieces: int = 16
    name: str = "traversal"

    def seeds(self) -> Sequence[str]:
        return self.corpus

    def produce(self, rng: random.Random) -> str:
        count = rng.randint(1, self.max_pieces)
        value = "/".join(rng.choice(self.pieces) for _ in range(count))
        if rng.random() < 0.3:
            value = "/" + value
        return value or ".."

    def shrink(self, value: str) -> Iterator[str]:
        return _shrink_text(value)


_FLAG_BITS: Final[tuple[OpenFlag, ...]] = (
    OpenFlag.WRONLY,
    OpenFlag.RDWR,
    OpenFlag.APPEND,
    OpenFlag.CREATE,
    OpenFlag.EXCL,
    OpenFlag.SYNC,
    OpenFlag.TRUNC,
)


@dataclass(slots=True, frozen=True)
class FlagGenerator:
    """Open flag combinations, including the invalid ``WRONLY|RDWR``."""

    corpus: tuple[int, ...] = FLAG_SEEDS
    name: str = "flags"

    def seeds(self) -> Sequence[int]:
        return self.corpus

    def produce(self, rng: random.Random) -> int:
        value = 0
        for bit in _FLAG_BITS:
            if rng.random() < 0.3:
                value |= bit
        return value

    def shrink(self, value: int) -> Iterator[int]:
        for bit in _FLAG_BITS:
            if value & bit:
                yield value & ~bit


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


def validate_name(value: str) -> None:
    """Reject names that must never reach a store.

    Raises:
        InvalidInputError: Empty, ``.``, ``..``, NUL bytes or invalid encoding.
    """

    _ = validate_path_input(value)
    if value in {".", ".."}:
        msg = f"Reserved name {value!r}."
        raise InvalidInputError(msg)


def validate_pair(value: tuple[str, str]) -> None:
    validate_name(value[0])
    validate_name(value[1])


def validate_traversal(value: str) -> None:
    _ = validate_path_input(value)


# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class FuzzTarget[T]:
    """A primitive under test: its generator and its invariant check.

    ``check`` receives a view rooted at a fresh directory and returns the
    invariant violations it observed. Store errors must be handled inside
    ``check``; anything it lets escape counts as a crash.
    """

    name: str
    generator: InputGenerator[T]
    check: Callable[[Store, T], list[str]]
    validate: Callable[[T], None] | None = None


def check_create(view: Store, name: str) -> list[str]:
    path = clean(name)
    if attempt(view.mkdir_all, dirname(path)).error is not None:
        return []
    created = attempt(view.create, path)
    if created.value is None:
        return []
    created.value.close()
    info = attempt(view.stat, path)
    if info.value is None:
        return [f"created {path!r} but stat failed: {info.canonical}"]
    if info.value.kind is not NodeKind.FILE:
        return [f"created {path!r} but stat reports {info.value.kind.value}"]
    return []


def check_read_write(view: Store, data: bytes) -> list[str]:
    path = "/payload.bin"
    created = attempt(view.create, path)
    if created.value is None:
        return [f"create failed: {created.canonical}"]
    with created.value as handle:
        written = attempt(handle.write, data)
    if written.value is None:
        return []
    problems: list[str] = []
    if written.value != len(data):
        problems.append(f"write returned {written.value}, expected {len(data)}")
    read = attempt(view.read_file, path)
    if read.value is None:
        return [*problems, f"read failed after successful write: {read.canonical}"]
    if read.value != data:
        problems.append(f"data mismatch: wrote {len(data)} bytes, read {len(read.value)}")
    return problems


_RENAME_CONTENT: Final[bytes] = b"rename test content"


def check_rename(view: Store, pair: tuple[str, str]) -> list[str]:
    old, new = clean(pair[0]), clean(pair[1])
    if old.casefold() == new.casefold():
        return []
    if attempt(view.mkdir_all, dirname(old)).error is not None:
        return []
    if attempt(write_file, view, old, _RENAME_CONTENT).error is not None:
        return []
    if attempt(view.mkdir_all, dirname(new)).error is not None:
        return []
    if attempt(view.rename, old, new).error is not None:
        return []
    problems: list[str] = []
    gone = attempt(view.stat, old)
    if gone.error is None:
        problems.append(f"{old!r} still exists after rename to {new!r}")
    content = attempt(view.read_file, new)
    if content.value is None:
        problems.append(f"cannot read renamed file {new!r}: {content.canonical}")
    elif content.value != _RENAME_CONTENT:
        problems.append(f"content of {new!r} changed by rename")
    return problems


def check_mkdir(view: Store, name: str) -> list[str]:
    path = clean(name)
    if attempt(view.mkdir_all, path).error is not None:
        return []
    info = attempt(view.stat, path)
    if info.value is None:
        return [f"mkdir_all {path!r} succeeded but stat failed: {info.canonical}"]
    if info.value.kind is not NodeKind.DIRECTORY:
        return [f"mkdir_all {path!r} created a {info.value.kind.value}"]
    return []


def check_path_traversal(view: Store, path: str) -> list[str]:
    """Operations inside a jail must fail or land inside it."""

    if attempt(view.mkdir, "/jail").error is not None:
        return ["cannot create jail directory"]
    jail = attempt(view.sub, "/jail")
    if jail.value is None:
        return [f"cannot open jail view: {jail.canonical}"]
    store = jail.value
    _ = attempt(store.stat, path)
    opened = attempt(store.open, path)
    if opened.value is not None:
        opened.value.close()
    _ = attempt(store.mkdir, path)
    _ = attempt(write_file, store, join(path, "marker"), b"x")
    outside = attempt(view.read_dir, "/")
    if outside.value is None:
        return [f"cannot list jail parent: {outside.canonical}"]
    names = sorted(entry.name for entry in outside.value)
    if names != ["jail"]:
        return [f"{path!r} escaped the jail: parent now holds {names}"]
    return []


def check_open_flags(view: Store, flags: int) -> list[str]:
    path = "/flags.txt"
    open_flags = OpenFlag(flags)
    if flags % 2 == 0:
        _ = attempt(write_file, view, path, b"existing content")
    opened = attempt(view.open_file, path, open_flags, 0o644)
    if opened.value is None:
        return []
    with opened.value as handle:
        if can_write(open_flags):
            _ = attempt(handle.write, b"test")
        if can_read(open_flags):
            _ = attempt(handle.read, 10)
    info = attempt(view.stat, path)
    if info.value is None:
        return [f"opened {path!r} with {open_flags!r} but stat failed: {info.canonical}"]
    return []


def wrapper_roundtrip_target(factory: WrapperFactory) -> FuzzTarget[bytes]:
    """Payload round-trip through a wrapper built on each iteration's view."""

    def check(view: Store, data: bytes) -> list[str]:
        wrapper = factory(view)
        path = "/wrapped.bin"
        if attempt(write_file, wrapper, path, data).error is not None:
            return []
        read = attempt(wrapper.read_file, path)
        if read.value is None:
            return [f"read failed after successful write: {read.canonical}"]
        if read.value != data:
            return [f"roundtrip failed: wrote {len(data)} bytes, got {len(read.value)}"]
        return []

    return FuzzTarget(
        name="wrapper_roundtrip",
        generator=PayloadGenerator(
            corpus=(b"hello", b"\x00\xff", bytes(4096), b"pattern" * 1000)
        ),
        check=check,
    )


def default_targets() -> dict[str, FuzzTarget[Any]]:
    """Targets needing nothing beyond the store, keyed by name."""

    targets: list[FuzzTarget[Any]] = [
        FuzzTarget("create", PathGenerator(), check_create, validate_name),
        FuzzTarget("read_write", PayloadGenerator(), check_read_write),
        FuzzTarget("rename", RenamePairGenerator(), check_rename, validate_pair),
        FuzzTarget("mkdir", PathGenerator(corpus=MKDIR_SEEDS), check_mkdir, validate_name),
        FuzzTarget(
            "path_traversal", TraversalGenerator(), check_path_traversal, validate_traversal
        ),
        FuzzTarget("open_flags", FlagGenerator(), check_open_flags),
    ]
    return {target.name: target for target in targets}


# ---------------------------------------------------------------------------
# Harness
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class FuzzFailure:
    """A broken invariant or crash, with the input that caused it."""

    target: str
    iteration: int
    original: object
    minimized: object
    problems: tuple[str, ...]

    def describe(self) -> str:
        lines = [f"iteration {self.iteration}: input {self.original!r}"]
        if self.minimized != self.original:
            lines.append(f"minimized to {self.minimized!r}")
        lines.extend(self.problems)
        return "\n".join(lines)


@dataclass(slots=True, frozen=True)
class FuzzReport:
    """Outcome of fuzzing one target."""

    target: str
    executed: int
    skipped: int
    failures: tuple[FuzzFailure, ...] = ()
    duration_ms: int = 0

    @property
    def passed(self) -> bool:
        return not self.failures

    def to_group(self) -> GroupResult:
        """Express the run as a report group: one case per failure."""
        if self.passed:
            cases = (CaseResult(name=f"{self.executed}_inputs", status="passed"),)
        else:
            cases = tuple(
                CaseResult(
                    name=f"iteration_{failure.iteration}",
                    status="failed",
                    failures=(failure.describe(),),
                )
                for failure in self.failures
            )
        return GroupResult(name=f"fuzz_{self.target}", cases=cases, duration_ms=self.duration_ms)


class FuzzHarness:
    """Drives targets against one store.

    Args:
        store: The candidate store.
        root: Existing directory on ``store`` to create the fuzz root in.
        iterations: Produced inputs per target, on top of the seed corpus.
        seed: Seed for the input generators.
        targets: Extra targets by name, such as
            :func:`wrapper_roundtrip_target`.
    """

    def __init__(
        self,
        store: Store,
        root: str | None = None,
        *,
        iterations: int = 100,
        seed: int = 0,
        targets: Mapping[str, FuzzTarget[Any]] | None = None,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        super().__init__()
        if iterations < 0:
            msg = "iterations must not be negative"
            raise ConfigurationError(msg)
        self.store = store
        self.root = root if root is not None else store.temp_dir()
        self.iterations = iterations
        self.seed = seed
        self.targets: dict[str, FuzzTarget[Any]] = {**default_targets(), **(targets or {})}
        self.clock = clock

    def inputs[T](self, generator: InputGenerator[T]) -> Iterator[T]:
        """Seeds first, then ``iterations`` produced inputs."""
        yield from generator.seeds()
        rng = random.Random(self.seed)
        for _ in range(self.iterations):
            yield generator.produce(rng)

    def run(self, target: FuzzTarget[Any] | str) -> FuzzReport:
        """Fuzz one target.

        Raises:
            ConfigurationError: Unknown target name.
            SetupError: The fuzz directory could not be created.
        """

        resolved = self._resolve(target)
        start = self.clock.monotonic()
        base = join(self.root, f"fsconformance_fuzz_{resolved.name}_{uuid.uuid4().hex[:8]}")
        self._mkdir(base, mkdir_all=True)
        executed = skipped = 0
        failures: list[FuzzFailure] = []
        try:
            for iteration, value in enumerate(self.inputs(resolved.generator)):
                if not _accepts(resolved, value):
                    skipped += 1
                    continue
                executed += 1
                problems = self._execute(resolved, join(base, f"iter_{iteration:05d}"), value)
                if not problems:
                    continue
                minimized, problems = self._minimize(resolved, base, value, problems)
                failure = FuzzFailure(
                    target=resolved.name,
                    iteration=iteration,
                    original=value,
                    minimized=minimized,
                    problems=tuple(problems),
                )
                failures.append(failure)
                logger.warning(
                    "Fuzz invariant broken.",
                    event="fuzz.failure",
                    context={
                        "target": resolved.name,
                        "iteration": iteration,
                        "original": repr(value)[:200],
                        "minimized": repr(minimized)[:200],
                        "problems": problems,
                    },
                )
        finally:
            self._cleanup(base)
        report = FuzzReport(
            target=resolved.name,
            executed=executed,
            skipped=skipped,
            failures=tuple(failures),
            duration_ms=elapsed_ms(self.clock, start),
        )
        logger.info(
            "Fuzz run finished.",
            event="fuzz.run.finish",
            context={
                "target": resolved.name,
                "executed": executed,
                "skipped": skipped,
                "failures": len(failures),
            },
        )
        return report

    def run_all(self, names: Sequence[str] | None = None) -> SuiteReport:
        """Fuzz several targets and collect them into one report."""
        start = self.clock.monotonic()
        selected = list(names) if names is not None else list(self.targets)
        groups = tuple(self.run(name).to_group() for name in selected)
        return SuiteReport(
            name=f"fuzz[{type(self.store).__name__}]",
            groups=groups,
            duration_ms=elapsed_ms(self.clock, start),
        )

    # --- internals ---

    def _resolve(self, target: FuzzTarget[Any] | str) -> FuzzTarget[Any]:
        if isinstance(target, FuzzTarget):
            return target
        try:
            return self.targets[target]
        except KeyError:
            msg = f"Unknown fuzz target {target!r}. Available: {', '.join(self.targets)}"
            raise ConfigurationError(msg) from None

    def _mkdir(self, path: str, *, mkdir_all: bool = False) -> None:
        try:
            if mkdir_all:
                self.store.mkdir_all(path)
            else:
                self.store.mkdir(path)
        except (OSError, ValueError) as error:
            logger.error(
                "Could not create fuzz directory.",
                event="fuzz.setup.failed",
                context={"path": path, "error": repr(error)},
            )
            msg = f"Cannot create fuzz directory {path}: {error}"
            raise SetupError(msg) from error

    def _execute(self, target: FuzzTarget[Any], directory: str, value: object) -> list[str]:
        self._mkdir(directory)
        try:
            view = self.store.sub(directory)
            return target.check(view, value)
        except Exception as error:  # noqa: BLE001
            return [
                f"crash: {type(error).__name__}: {error}\n"
                + "".join(traceback.format_exception(error)).rstrip()
            ]

    def _minimize(
        self, target: FuzzTarget[Any], base: str, value: object, problems: list[str]
    ) -> tuple[object, list[str]]:
        """Greedy shrink: keep the first smaller input that still fails."""

        current, current_problems = value, problems
        attempts = 0
        improved = True
        while improved and attempts < MAX_SHRINK_ATTEMPTS:
            improved = False
            for candidate in target.generator.shrink(current):
                if attempts >= MAX_SHRINK_ATTEMPTS:
                    break
                if candidate == current or not _accepts(target, candidate):
                    continue
                attempts += 1
                found = self._execute(target, join(base, f"shrink_{attempts:04d}"), candidate)
                if found:
                    current, current_problems = candidate, found
                    improved = True
                    break
        return current, current_problems

    def _cleanup(self, base: str) -> None:
        try:
            self.store.remove_all(base)
        except (OSError, ValueError) as error:
            logger.warning(
                "Could not remove fuzz directory.",
                event="fuzz.cleanup_failed",
                context={"path": base, "error": repr(error)},
            )


def _accepts(target: FuzzTarget[Any], value: object) -> bool:
    if target.validate is None:
        return True
    try:
        target.validate(value)
    except InvalidInputError:
        return False
    return True


__all__ = [
    "CREATE_SEEDS",
    "FLAG_SEEDS",
    "MKDIR_SEEDS",
    "PAYLOAD_SEEDS",
    "RENAME_SEEDS",
    "TRAVERSAL_SEEDS",
    "FlagGenerator",
    "FuzzFailure",
    "FuzzHarness",
    "FuzzReport",
    "FuzzTarget",
    "InputGenerator",
    "PathGenerator",
    "PayloadGenerator",
    "RenamePairGenerator",
    "TraversalGenerator",
    "check_create",
    "check_mkdir",
    "check_open_flags",
    "check_path_traversal",
    "check_read_write",
    "check_rename",
    "default_targets",
    "validate_name",
    "validate_pair",
    "validate_traversal",
    "wrapper_roundtrip_target",
]
