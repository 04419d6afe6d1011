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

"""Differential verification of transformation layers.

A wrapper is a ``Store`` built on top of a base ``Store`` (compression,
encryption, read-only views). :class:`WrapperSuite` checks it against the
:class:`TransformContract` it declares:

- **passthrough**: one operation script runs through the wrapper and directly
  on the base; each step's canonical outcome must agree.
- **data_integrity**: payloads read back through the wrapper exactly as
  written. The base store's raw bytes are only compared when the wrapper
  does not transform data.
- **write_blocking**: read-only wrappers reject every mutation and leave the
  base tree unchanged.
- **transform_roundtrip**: transforming wrappers survive structured payloads
  written and read in odd-sized pieces around chunk boundaries.

Fixtures are written to the base store before the factory builds the wrapper,
so read-only wrappers see a populated tree.
"""

from __future__ import annotations

import random
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Final

from .clock import SYSTEM_CLOCK, Clock, elapsed_ms
from .errors import SetupError
from .report import (
    CaseBody,
    CaseRecorder,
    GroupResult,
    SuiteReport,
    attempt,
    run_case,
)
from .runtime.logging import StructuredLogger, get_logger
from .store import FileInfo, NodeKind, OpenFlag, Store, join, write_file
from .taxonomy import CanonicalError, describe, equivalent

logger: StructuredLogger = get_logger(__name__, context={"component": "wrapper"})

WrapperFactory = Callable[[Store], Store]

LARGE_PAYLOAD_SIZE: Final[int] = 64 * 1024


@dataclass(slots=True, frozen=True)
class TransformContract:
    """What a wrapper promises about the bytes and metadata it stores.

    Attributes:
        transforms_data: Raw bytes in the base differ from logical content.
        transforms_meta: ``stat`` sizes and modes may differ from the base.
        read_only: Every mutating operation fails.
    """

    transforms_data: bool = False
    transforms_meta: bool = False
    read_only: bool = False


def integrity_payloads() -> dict[str, bytes]:
    """Named payloads every wrapper must round-trip."""
    return {
        "empty": b"",
        "small": b"hello, wrapper",
        "binary": bytes([0x00, 0xFF, 0x00, 0xFF]) * 64,
        "multibyte_text": "héllo wörld, 日本語, Ωμέγα, 🎉".encode(),
        "large": bytes(range(256)) * (LARGE_PAYLOAD_SIZE // 256),
    }


def _summarize(value: object, *, compare_meta: bool) -> object:
    """Reduce a step result to the parts two stores must agree on."""
    match value:
        case FileInfo(kind=NodeKind.FILE):
            if compare_meta:
                return (value.kind, value.size, value.mode)
            return value.kind
        case FileInfo():
            return value.kind
        case bytes():
            return value
        case list() | tuple():
            names = [getattr(entry, "name", None) for entry in value]
            return sorted(name for name in names if name is not None)
        case _:
            return None


@dataclass(slots=True, frozen=True)
class StepOutcome:
    """Canonical result of one script step."""

    error: CanonicalError | None
    summary: object = None

    def describe(self) -> str:
        if self.error is not None:
            return describe(self.error)
        return f"success {self.summary!r}" if self.summary is not None else "success"


def run_step(
    fn: Callable[..., Any], *args: Any, compare_meta: bool = True
) -> StepOutcome:
    outcome = attempt(fn, *args)
    if not outcome.ok:
        return StepOutcome(error=outcome.canonical)
    return StepOutcome(error=None, summary=_summarize(outcome.value, compare_meta=compare_meta))


def outcomes_agree(a: StepOutcome, b: StepOutcome) -> bool:
    return equivalent(a.error, b.error) and a.summary == b.summary


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


class WrapperGroup:
    """Cases checking one facet of the contract.

    :meth:`prepare` runs on the base store before the wrapper exists;
    :meth:`cases` runs once it does.
    """

    name: ClassVar[str]

    def __init__(self, base: Store, contract: TransformContract, directory: str) -> None:
        super().__init__()
        self.base = base
        self.contract = contract
        self.directory = directory
        self.wrapper: Store = base

    @classmethod
    def skip_reason(cls, contract: TransformContract) -> str | None:
        return None

    def prepare(self) -> None:
        """Write fixtures on the base store."""

    def path(self, *parts: str) -> str:
        return join(self.directory, *parts)

    def cases(self) -> list[tuple[str, CaseBody]]:
        return [
            (attr.removeprefix("case_"), getattr(self, attr))
            for attr in type(self).__dict__
            if attr.startswith("case_")
        ]


_Step = tuple[str, Callable[[Store, str], object]]


def _append(store: Store, path: str) -> int:
    with store.open_file(path, OpenFlag.WRONLY | OpenFlag.APPEND) as handle:
        return handle.write(b" appended")


_MUTATING_SCRIPT: Final[tuple[_Step, ...]] = (
    ("mkdir dir", lambda s, d: s.mkdir(join(d, "dir"))),
    ("write file", lambda s, d: write_file(s, join(d, "dir", "file.txt"), b"passthrough")),
    ("stat file", lambda s, d: s.stat(join(d, "dir", "file.txt"))),
    ("read file", lambda s, d: s.read_file(join(d, "dir", "file.txt"))),
    ("read_dir dir", lambda s, d: s.read_dir(join(d, "dir"))),
    ("mkdir dir again", lambda s, d: s.mkdir(join(d, "dir"))),
    ("read_file on directory", lambda s, d: s.read_file(join(d, "dir"))),
    ("stat under file", lambda s, d: s.stat(join(d, "dir", "file.txt", "child"))),
    ("open missing", lambda s, d: s.open(join(d, "dir", "missing.txt"))),
    (
        "rename file",
        lambda s, d: s.rename(join(d, "dir", "file.txt"), join(d, "dir", "moved.txt")),
    ),
    ("stat old name", lambda s, d: s.stat(join(d, "dir", "file.txt"))),
    ("append", lambda s, d: _append(s, join(d, "dir", "moved.txt"))),
    ("read appended", lambda s, d: s.read_file(join(d, "dir", "moved.txt"))),
    ("truncate", lambda s, d: s.truncate(join(d, "dir", "moved.txt"), 4)),
    ("read truncated", lambda s, d: s.read_file(join(d, "dir", "moved.txt"))),
    ("stat truncated", lambda s, d: s.stat(join(d, "dir", "moved.txt"))),
    ("mkdir_all nested", lambda s, d: s.mkdir_all(join(d, "dir", "a", "b"))),
    ("remove non-empty", lambda s, d: s.remove(join(d, "dir", "a"))),
    ("remove_all nested", lambda s, d: s.remove_all(join(d, "dir", "a"))),
    ("remove file", lambda s, d: s.remove(join(d, "dir", "moved.txt"))),
    ("remove dir", lambda s, d: s.remove(join(d, "dir"))),
    ("stat removed dir", lambda s, d: s.stat(join(d, "dir"))),
)

_READ_SCRIPT: Final[tuple[_Step, ...]] = (
    ("stat file", lambda s, d: s.stat(join(d, "file.txt"))),
    ("stat directory", lambda s, d: s.stat(join(d, "sub"))),
    ("read_dir", lambda s, d: s.read_dir(d)),
    ("read file", lambda s, d: s.read_file(join(d, "file.txt"))),
    ("read_dir sub", lambda s, d: s.read_dir(join(d, "sub"))),
    ("open missing", lambda s, d: s.open(join(d, "missing.txt"))),
    ("stat missing", lambda s, d: s.stat(join(d, "missing.txt"))),
    ("read_file on directory", lambda s, d: s.read_file(join(d, "sub"))),
    ("stat under file", lambda s, d: s.stat(join(d, "file.txt", "child"))),
    ("read_dir on file", lambda s, d: s.read_dir(join(d, "file.txt"))),
)


class Passthrough(WrapperGroup):
    name = "passthrough"

    def prepare(self) -> None:
        if self.contract.read_only:
            fixture = self.path("fixture")
            self.base.mkdir_all(join(fixture, "sub"))
            write_file(self.base, join(fixture, "file.txt"), b"fixture content")
            write_file(self.base, join(fixture, "sub", "inner.txt"), b"inner")
        else:
            self.base.mkdir(self.path("through_wrapper"))
            self.base.mkdir(self.path("direct"))

    def _compare(
        self, rec: CaseRecorder, script: tuple[_Step, ...], wrapped: str, direct: str
    ) -> None:
        compare_meta = not self.contract.transforms_meta
        # Fixtures written raw to the base cannot be decoded by the wrapper.
        raw_fixture = self.contract.read_only and self.contract.transforms_data
        for label, step in script:
            if raw_fixture and label == "read file":
                continue
            through = run_step(step, self.wrapper, wrapped, compare_meta=compare_meta)
            plain = run_step(step, self.base, direct, compare_meta=compare_meta)
            rec.check(
                outcomes_agree(through, plain),
                f"{label}: wrapper {through.describe()}, base {plain.describe()}",
            )

    def case_script(self, rec: CaseRecorder) -> None:
        if self.contract.read_only:
            fixture = self.path("fixture")
            self._compare(rec, _READ_SCRIPT, fixture, fixture)
        else:
            self._compare(
                rec, _MUTATING_SCRIPT, self.path("through_wrapper"), self.path("direct")
            )

    def case_capabilities(self, rec: CaseRecorder) -> None:
        if self.contract.read_only:
            return
        for query in ("hard_links", "permissions", "timestamps"):
            through = getattr(self.wrapper, query)() is not None
            plain = getattr(self.base, query)() is not None
            rec.expect_equal(f"{query}() provided", through, plain)


class DataIntegrity(WrapperGroup):
    name = "data_integrity"

    @classmethod
    def skip_reason(cls, contract: TransformContract) -> str | None:
        if contract.read_only and contract.transforms_data:
            return "read-only transforming wrapper: no payload can be written through it"
        return None

    def prepare(self) -> None:
        if self.contract.read_only:
            for name, payload in integrity_payloads().items():
                write_file(self.base, self.path(name), payload)

    def case_payloads(self, rec: CaseRecorder) -> None:
        for name, payload in integrity_payloads().items():
            path = self.path(name)
            if not self.contract.read_only:
                write = attempt(write_file, self.wrapper, path, payload)
                if not rec.expect_success(f"write {name}", write):
                    continue
            read = attempt(self.wrapper.read_file, path)
            if rec.expect_success(f"read {name}", read):
                rec.check(
                    read.value == payload,
                    f"{name}: read {len(read.value or b'')} bytes through wrapper, "
                    f"wrote {len(payload)}",
                )
            if not self.contract.transforms_data:
                raw = attempt(self.base.read_file, path)
                if rec.expect_success(f"read {name} from base", raw):
                    rec.check(raw.value == payload, f"{name}: base bytes differ from payload")

    def case_handle_reads(self, rec: CaseRecorder) -> None:
        payload = integrity_payloads()["large"]
        path = self.path("large")
        if not self.contract.read_only:
            rec.must("write large", write_file, self.wrapper, path, payload)
        handle = rec.must("open large", self.wrapper.open, path)
        pieces: list[bytes] = []
        with handle:
            while chunk := rec.must("read 1000", handle.read, 1000):
                pieces.append(chunk)
        rec.check(b"".join(pieces) == payload, "chunked reads do not reassemble the payload")

    def case_stat_kind(self, rec: CaseRecorder) -> None:
        path = self.path("small")
        if not self.contract.read_only:
            rec.must("write small", write_file, self.wrapper, path, b"hello, wrapper")
        info = rec.must("stat through wrapper", self.wrapper.stat, path)
        rec.expect_equal("kind", info.kind, NodeKind.FILE)
        if not self.contract.transforms_meta:
            rec.expect_equal("size", info.size, len(b"hello, wrapper"))


@dataclass(slots=True, frozen=True)
class NodeState:
    """What a snapshot remembers about one node."""

    kind: NodeKind
    content: bytes | None = None
    target: str | None = None
    mode: int | None = None
    modified_at: datetime | None = None


def snapshot_tree(store: Store, top: str) -> dict[str, NodeState]:
    """Observable state under ``top``.

    Files keep their content, symlinks their target, and every non-link node
    its permission bits and modification time.
    """

    links = store.symlinks()
    result: dict[str, NodeState] = {}
    pending = [top]
    while pending:
        directory = pending.pop()
        for entry in store.read_dir(directory):
            path = join(directory, entry.name)
            if entry.kind is NodeKind.SYMLINK:
                target = links.readlink(path) if links is not None else None
                result[path] = NodeState(entry.kind, target=target)
                continue
            info = store.stat(path)
            content = store.read_file(path) if entry.kind is NodeKind.FILE else None
            result[path] = NodeState(
                entry.kind, content=content, mode=info.mode, modified_at=info.modified_at
            )
            if entry.kind is NodeKind.DIRECTORY:
                pending.append(path)
    return result


class WriteBlocking(WrapperGroup):
    name = "write_blocking"

    @classmethod
    def skip_reason(cls, contract: TransformContract) -> str | None:
        return None if contract.read_only else "wrapper is writable"

    def prepare(self) -> None:
        self.base.mkdir_all(self.path("dir", "nested"))
        write_file(self.base, self.path("file.txt"), b"must not change")
        write_file(self.base, self.path("dir", "inner.txt"), b"inner")

    def _mutations(self) -> list[tuple[str, Callable[[], object]]]:
        store = self.wrapper
        file_path = self.path("file.txt")
        mutations: list[tuple[str, Callable[[], object]]] = [
            ("create", lambda: store.create(self.path("new.txt"))),
            ("open WRONLY", lambda: store.open_file(file_path, OpenFlag.WRONLY)),
            ("open RDWR", lambda: store.open_file(file_path, OpenFlag.RDWR)),
            ("open APPEND", lambda: store.open_file(file_path, OpenFlag.WRONLY | OpenFlag.APPEND)),
            ("open TRUNC", lambda: store.open_file(file_path, OpenFlag.RDONLY | OpenFlag.TRUNC)),
            (
                "exclusive create",
                lambda: store.open_file(
                    self.path("excl.txt"), OpenFlag.WRONLY | OpenFlag.CREATE | OpenFlag.EXCL
                ),
            ),
            ("mkdir", lambda: store.mkdir(self.path("new_dir"))),
            ("mkdir_all", lambda: store.mkdir_all(self.path("a", "b", "c"))),
            ("remove file", lambda: store.remove(file_path)),
            ("remove directory", lambda: store.remove(self.path("dir", "nested"))),
            ("remove_all", lambda: store.remove_all(self.path("dir"))),
            ("rename", lambda: store.rename(file_path, self.path("renamed.txt"))),
            ("truncate", lambda: store.truncate(file_path, 0)),
        ]
        links = store.symlinks()
        if links is not None:
            mutations.append(("symlink", lambda: links.symlink(file_path, self.path("link"))))
        hard = store.hard_links()
        if hard is not None:
            mutations.append(("link", lambda: hard.link(file_path, self.path("hard"))))
        perms = store.permissions()
        if perms is not None:
            mutations.append(("chmod", lambda: perms.chmod(file_path, 0o600)))
        times = store.timestamps()
        if times is not None:
            moment = SYSTEM_CLOCK.utcnow()
            mutations.append(("chtimes", lambda: times.chtimes(file_path, moment, moment)))
        return mutations

    def case_mutations_fail(self, rec: CaseRecorder) -> None:
        before = rec.must("snapshot before", snapshot_tree, self.base, self.directory)
        for label, mutate in self._mutations():
            outcome = attempt(mutate)
            if outcome.ok:
                close = getattr(outcome.value, "close", None)
                if callable(close):
                    close()
            rec.expect_error(label, outcome)
        after = rec.must("snapshot after", snapshot_tree, self.base, self.directory)
        for path in sorted(set(before) | set(after)):
            rec.check(
                before.get(path) == after.get(path),
                f"{path} changed: {before.get(path)!r} -> {after.get(path)!r}",
            )

    def case_reads_still_work(self, rec: CaseRecorder) -> None:
        info = attempt(self.wrapper.stat, self.path("file.txt"))
        rec.expect_success("stat", info)
        listing = attempt(self.wrapper.read_dir, self.directory)
        if rec.expect_success("read_dir", listing):
            names = sorted(entry.name for entry in listing.value or ())
            rec.expect_equal("entries", names, ["dir", "file.txt"])
        if not self.contract.transforms_data:
            read = attempt(self.wrapper.read_file, self.path("file.txt"))
            if rec.expect_success("read", read):
                rec.expect_equal("content", read.value, b"must not change")


class TransformRoundtrip(WrapperGroup):
    name = "transform_roundtrip"

    chunk_size: ClassVar[int] = 4096
    piece_sizes: ClassVar[tuple[int, ...]] = (7, 1000, 4093, 1, 333)

    @classmethod
    def skip_reason(cls, contract: TransformContract) -> str | None:
        if not contract.transforms_data:
            return "wrapper does not transform data"
        if contract.read_only:
            return "read-only transforming wrapper: no payload can be written through it"
        return None

    def payloads(self) -> dict[str, bytes]:
        rng = random.Random(0x5EED)
        size = self.chunk_size
        payloads = {"compressible": b"compressible data pattern " * 1000}
        for length in (size - 1, size, size + 1, 2 * size, 2 * size + 1, 3 * size + 17):
            payloads[f"random_{length}"] = rng.randbytes(length)
        return payloads

    def _write_in_pieces(self, rec: CaseRecorder, path: str, payload: bytes) -> None:
        handle = rec.must(f"create {path}", self.wrapper.create, path)
        with handle:
            offset = 0
            index = 0
            while offset < len(payload):
                size = self.piece_sizes[index % len(self.piece_sizes)]
                written = rec.must("write piece", handle.write, payload[offset : offset + size])
                offset += written
                index += 1

    def _read_in_pieces(self, rec: CaseRecorder, path: str) -> bytes:
        handle = rec.must(f"open {path}", self.wrapper.open, path)
        pieces: list[bytes] = []
        with handle:
            index = 0
            while chunk := rec.must(
                "read piece", handle.read, self.piece_sizes[index % len(self.piece_sizes)]
            ):
                pieces.append(chunk)
                index += 1
        return b"".join(pieces)

    def case_piecewise(self, rec: CaseRecorder) -> None:
        for name, payload in self.payloads().items():
            path = self.path(f"{name}.bin")
            self._write_in_pieces(rec, path, payload)
            rec.check(
                self._read_in_pieces(rec, path) == payload,
                f"{name}: piecewise read differs from piecewise write",
            )
            whole = attempt(self.wrapper.read_file, path)
            if rec.expect_success(f"read_file {name}", whole):
                rec.check(whole.value == payload, f"{name}: read_file differs from payload")

    def case_overwrite_across_boundary(self, rec: CaseRecorder) -> None:
        payload = self.payloads()[f"random_{2 * self.chunk_size + 1}"]
        path = self.path("overwrite.bin")
        rec.must("write", write_file, self.wrapper, path, payload)
        expected = bytearray(payload)
        patch = b"\xaa" * 300
        offset = self.chunk_size - 150
        expected[offset : offset + len(patch)] = patch
        handle = rec.must("open RDWR", self.wrapper.open_file, path, OpenFlag.RDWR)
        with handle:
            _ = rec.must("seek", handle.seek, offset)
            _ = rec.must("write patch", handle.write, patch)
        read = attempt(self.wrapper.read_file, path)
        if rec.expect_success("read patched", read):
            rec.check(read.value == bytes(expected), "patch across chunk boundary was lost")

    def case_append_across_boundary(self, rec: CaseRecorder) -> None:
        head = b"h" * (self.chunk_size - 3)
        tail = b"t" * 10
        path = self.path("append.bin")
        rec.must("write head", write_file, self.wrapper, path, head)
        handle = rec.must(
            "open APPEND", self.wrapper.open_file, path, OpenFlag.WRONLY | OpenFlag.APPEND
        )
        with handle:
            _ = rec.must("append tail", handle.write, tail)
        read = attempt(self.wrapper.read_file, path)
        if rec.expect_success("read appended", read):
            rec.expect_equal("length", len(read.value or b""), len(head) + len(tail))
            rec.check(read.value == head + tail, "appended content differs")

    def case_truncate_across_boundary(self, rec: CaseRecorder) -> None:
        payload = self.payloads()[f"random_{3 * self.chunk_size + 17}"]
        path = self.path("truncate.bin")
        rec.must("write", write_file, self.wrapper, path, payload)
        size = self.chunk_size + 5
        rec.must("truncate", self.wrapper.truncate, path, size)
        read = attempt(self.wrapper.read_file, path)
        if rec.expect_success("read truncated", read):
            rec.check(read.value == payload[:size], "truncated content differs")


_WRAPPER_GROUP_TYPES: Final[tuple[type[WrapperGroup], ...]] = (
    Passthrough,
    DataIntegrity,
    WriteBlocking,
    TransformRoundtrip,
)

WRAPPER_GROUPS: Final[tuple[str, ...]] = tuple(group.name for group in _WRAPPER_GROUP_TYPES)


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


class WrapperSuite:
    """Verifies a wrapper against its declared contract.

    Args:
        factory: Builds the wrapper around a base store.
        base: The store to wrap. Fixtures are written to it directly.
        contract: What the wrapper promises.
        name: Report name.
        test_dir: Existing directory on ``base`` for the run root. Defaults to
            ``base.temp_dir()``.
        keep_test_dir: Leave the run root in place after the run.

    Example::

        report = WrapperSuite(
            ReadOnlyStore, MemoryStore(), TransformContract(read_only=True)
        ).run()
    """

    def __init__(
        self,
        factory: WrapperFactory,
        base: Store,
        contract: TransformContract,
        *,
        name: str = "wrapper",
        test_dir: str | None = None,
        keep_test_dir: bool = False,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        super().__init__()
        self.factory = factory
        self.base = base
        self.contract = contract
        self.name = name
        self.test_dir = test_dir
        self.keep_test_dir = keep_test_dir
        self.clock = clock
        self._log = logger.bind(suite=name)

    def run(self) -> SuiteReport:
        """Prepare fixtures, build the wrapper and run every applicable group.

        Raises:
            SetupError: The run root or a fixture could not be created on the
                base store, or the factory raised.
        """

        start = self.clock.monotonic()
        root = self._create_root()
        try:
            groups = self._prepare(root)
            wrapper = self._build()
            results = tuple(self._run_group(group, wrapper) for group in groups)
            report = SuiteReport(
                name=f"{self.name}[{type(wrapper).__name__}]",
                groups=results,
                duration_ms=elapsed_ms(self.clock, start),
            )
        finally:
            self._cleanup(root)
        self._log.info(
            "Run finished.",
            event="suite.run.finish",
            context={
                "passed": report.passed_count,
                "failed": report.failed_count,
                "skipped_groups": report.skipped_count,
            },
        )
        return report

    def _setup_failed(self, message: str, error: BaseException) -> SetupError:
        self._log.error(
            message, event="suite.setup.failed", context={"error": repr(error)}
        )
        return SetupError(f"{message} {error}")

    def _create_root(self) -> str:
        parent = self.test_dir or self.base.temp_dir()
        root = join(parent, f"fsconformance_wrapper_{uuid.uuid4().hex[:12]}")
        try:
            self.base.mkdir_all(root)
        except (OSError, ValueError) as error:
            raise self._setup_failed(f"Cannot create run root {root}.", error) from error
        self._log.info(
            "Starting run.",
            event="suite.run.start",
            context={"root": root, "contract": repr(self.contract)},
        )
        return root

    def _prepare(self, root: str) -> list[WrapperGroup | GroupResult]:
        prepared: list[WrapperGroup | GroupResult] = []
        for group_type in _WRAPPER_GROUP_TYPES:
            reason = group_type.skip_reason(self.contract)
            if reason is not None:
                self._log.info(
                    "Skipping group.",
                    event="suite.group.skipped",
                    context={"group": group_type.name, "reason": reason},
                )
                prepared.append(GroupResult.skip(group_type.name, reason))
                continue
            directory = join(root, f"{group_type.name}_{uuid.uuid4().hex[:8]}")
            group = group_type(self.base, self.contract, directory)
            try:
                self.base.mkdir(directory)
                group.prepare()
            except (OSError, ValueError) as error:
                msg = f"Cannot prepare fixtures for {group_type.name}."
                raise self._setup_failed(msg, error) from error
            prepared.append(group)
        return prepared

    def _build(self) -> Store:
        try:
            return self.factory(self.base)
        except Exception as error:
            raise self._setup_failed("Wrapper factory failed.", error) from error

    def _run_group(self, group: WrapperGroup | GroupResult, wrapper: Store) -> GroupResult:
        if isinstance(group, GroupResult):
            return group
        group.wrapper = wrapper
        start = self.clock.monotonic()
        log = self._log.bind(group=group.name)
        cases = tuple(
            run_case(name, body, log=log, clock=self.clock) for name, body in group.cases()
        )
        return GroupResult(name=group.name, cases=cases, duration_ms=elapsed_ms(self.clock, start))

    def _cleanup(self, root: str) -> None:
        if self.keep_test_dir:
            return
        try:
            self.base.remove_all(root)
        except (OSError, ValueError) as error:
            self._log.warning(
                "Could not remove run root.",
                event="suite.run.cleanup_failed",
                context={"root": root, "error": repr(error)},
            )


__all__ = [
    "LARGE_PAYLOAD_SIZE",
    "WRAPPER_GROUPS",
    "DataIntegrity",
    "NodeState",
    "Passthrough",
    "StepOutcome",
    "TransformContract",
    "TransformRoundtrip",
    "WrapperFactory",
    "WrapperGroup",
    "WrapperSuite",
    "WriteBlocking",
    "integrity_payloads",
    "outcomes_agree",
    "run_step",
    "snapshot_tree",
]
