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

"""Capability-gated baseline behavior suite.

The suite drives one candidate store through a fixed set of groups. Each group
gets a fresh, uniquely named directory under the per-run root, so groups are
independent and may run concurrently (:meth:`BaselineSuite.run_async`). The
run root is created once when the run starts and removed when it ends, unless
``keep_test_dir`` is set.

Gated groups consult the :class:`~fsconformance.capabilities.Features` of the
run. A disabled flag skips the group without executing any of its cases.

Example::

    from fsconformance.contrib import MemoryStore
    from fsconformance.suite import BaselineSuite, SuiteConfig

    store = MemoryStore()
    report = BaselineSuite(SuiteConfig(store=store, features=store.features())).run()
    assert report.passed
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import ClassVar, Final, Self

from .capabilities import FEATURE_GROUPS, Features, features_from_env
from .clock import SYSTEM_CLOCK, Clock, elapsed_ms
from .errors import ConfigurationError, SetupError
from .report import (
    CaseBody,
    CaseRecorder,
    CaseResult,
    GroupResult,
    SuiteReport,
    attempt,
    run_case,
)
from .resolution import SymlinkVerifier
from .runtime import coerce_flag, coerce_int
from .runtime.logging import StructuredLogger, get_logger
from .store import (
    HardLinkOps,
    NodeKind,
    OpenFlag,
    PermissionOps,
    Store,
    SymlinkOps,
    TimestampOps,
    exists,
    join,
    write_file,
)
from .taxonomy import ErrorKind, canonicalize, describe_mismatch

logger: StructuredLogger = get_logger(__name__, context={"component": "suite"})

TEST_DIR_ENV: Final[str] = "FSCONFORMANCE_TEST_DIR"
KEEP_TEST_DIR_ENV: Final[str] = "FSCONFORMANCE_KEEP_TEST_DIR"
MAX_PARALLEL_ENV: Final[str] = "FSCONFORMANCE_MAX_PARALLEL"

RUN_ROOT_PREFIX: Final[str] = "fsconformance_"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class SuiteConfig:
    """What to verify and where.

    Attributes:
        store: The candidate store.
        features: Capabilities the candidate claims. Gated groups run only for
            enabled flags.
        test_dir: Existing directory on ``store`` to create the run root in.
            Defaults to ``store.temp_dir()``.
        keep_test_dir: Leave the run root in place for inspection.
        max_parallel: Concurrent groups for :meth:`BaselineSuite.run_async`.
            Defaults to the CPU count.
    """

    store: Store
    features: Features
    test_dir: str | None = None
    keep_test_dir: bool = False
    max_parallel: int | None = None

    @classmethod
    def from_env(
        cls,
        store: Store,
        env: Mapping[str, str] | None = None,
        *,
        features: Features | None = None,
    ) -> Self:
        """Build a config from ``FSCONFORMANCE_*`` environment variables.

        ``features`` is the fallback when ``FSCONFORMANCE_FEATURES`` is unset.

        Raises:
            ConfigurationError: A variable holds an invalid value.
        """

        env = env if env is not None else os.environ
        test_dir = env.get(TEST_DIR_ENV, "").strip() or None
        return cls(
            store=store,
            features=features_from_env(env, default=features),
            test_dir=test_dir,
            keep_test_dir=coerce_flag(env.get(KEEP_TEST_DIR_ENV)),
            max_parallel=coerce_int(MAX_PARALLEL_ENV, env.get(MAX_PARALLEL_ENV)),
        )


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class GroupContext:
    """Fixture directory and store handed to one group."""

    store: Store
    features: Features
    directory: str

    def path(self, *parts: str) -> str:
        return join(self.directory, *parts)


class CaseGroup:
    """A named set of cases sharing one fixture directory.

    Cases are the ``case_*`` methods, run in definition order. Every case uses
    names of its own inside the directory.
    """

    name: ClassVar[str]

    def __init__(self, ctx: GroupContext) -> None:
        super().__init__()
        self.ctx = ctx
        self.store = ctx.store

    @classmethod
    def missing_operations(cls, store: Store) -> str | None:
        """Name the capability query that came back empty, if any."""
        return None

    def cases(self) -> list[tuple[str, CaseBody]]:
        return [
            (attr.removeprefix("case_"), getattr(self, attr))
            for attr in type(self).__dict__
            if attr.startswith("case_")
        ]

    # --- helpers ---

    def path(self, *parts: str) -> str:
        return self.ctx.path(*parts)

    def file(self, rec: CaseRecorder, name: str, content: bytes = b"") -> str:
        path = self.path(name)
        rec.must(f"create {name}", write_file, self.store, path, content)
        return path

    def expect_content(self, rec: CaseRecorder, path: str, content: bytes) -> bool:
        read = attempt(self.store.read_file, path)
        if not rec.expect_success(f"read {path}", read):
            return False
        return rec.expect_equal(f"content of {path}", read.value, content)

    def expect_kind(self, rec: CaseRecorder, path: str, kind: NodeKind) -> bool:
        info = attempt(self.store.stat, path)
        if not rec.expect_success(f"stat {path}", info):
            return False
        assert info.value is not None
        return rec.expect_equal(f"kind of {path}", info.value.kind, kind)

    def expect_missing(self, rec: CaseRecorder, path: str) -> bool:
        return rec.expect_error(f"stat {path}", attempt(self.store.stat, path), ErrorKind.NOT_EXIST)

    def listing(self, rec: CaseRecorder, path: str) -> list[str]:
        entries = rec.must(f"read_dir {path}", self.store.read_dir, path)
        return sorted(entry.name for entry in entries)


class FileOperations(CaseGroup):
    name = "file_operations"

    def case_create_and_read(self, rec: CaseRecorder) -> None:
        path = self.path("a.txt")
        handle = rec.must("create a.txt", self.store.create, path)
        with handle:
            written = rec.must("write a.txt", handle.write, b"hello, world")
        rec.expect_equal("bytes written", written, 12)
        reopened = rec.must("reopen a.txt", self.store.open, path)
        with reopened:
            data = rec.must("read a.txt", reopened.read)
        rec.expect_equal("content of a.txt", data, b"hello, world")

    def case_open_exclusive(self, rec: CaseRecorder) -> None:
        path = self.path("exclusive.txt")
        flags = OpenFlag.WRONLY | OpenFlag.CREATE | OpenFlag.EXCL
        handle = rec.must("exclusive create", self.store.open_file, path, flags)
        handle.close()
        rec.expect_error(
            "exclusive create over existing file",
            attempt(self.store.open_file, path, flags),
            ErrorKind.ALREADY_EXISTS,
        )

    def case_open_missing_without_create(self, rec: CaseRecorder) -> None:
        rec.expect_error(
            "open missing file",
            attempt(self.store.open_file, self.path("absent.txt"), OpenFlag.RDWR),
            ErrorKind.NOT_EXIST,
        )

    def case_truncate(self, rec: CaseRecorder) -> None:
        path = self.file(rec, "truncate.txt", b"hello world")
        rec.must("truncate to 5", self.store.truncate, path, 5)
        self.expect_content(rec, path, b"hello")
        handle = rec.must("open for write", self.store.open_file, path, OpenFlag.RDWR)
        with handle:
            rec.must("truncate handle to 2", handle.truncate, 2)
        self.expect_content(rec, path, b"he")

    def case_truncate_on_open(self, rec: CaseRecorder) -> None:
        path = self.file(rec, "trunc_flag.txt", b"old content")
        handle = rec.must(
            "open with TRUNC", self.store.open_file, path, OpenFlag.WRONLY | OpenFlag.TRUNC
        )
        handle.close()
        self.expect_content(rec, path, b"")

    def case_remove(self, rec: CaseRecorder) -> None:
        path = self.file(rec, "remove.txt", b"bye")
        rec.must("remove file", self.store.remove, path)
        self.expect_missing(rec, path)
        rec.expect_error("remove again", attempt(self.store.remove, path), ErrorKind.NOT_EXIST)

    def case_rename(self, rec: CaseRecorder) -> None:
        old = self.file(rec, "rename_old.txt", b"moving content")
        new = self.path("rename_new.txt")
        rec.must("rename", self.store.rename, old, new)
        self.expect_missing(rec, old)
        self.expect_content(rec, new, b"moving content")

    def case_stat(self, rec: CaseRecorder) -> None:
        path = self.file(rec, "stat.txt", b"12345")
        info = rec.must("stat", self.store.stat, path)
        rec.expect_equal("name", info.name, "stat.txt")
        rec.expect_equal("size", info.size, 5)
        rec.expect_equal("kind", info.kind, NodeKind.FILE)

    def case_append(self, rec: CaseRecorder) -> None:
        path = self.file(rec, "append.txt", b"abc")
        flags = OpenFlag.WRONLY | OpenFlag.APPEND
        handle = rec.must("open for append", self.store.open_file, path, flags)
        with handle:
            _ = rec.must("seek to start", handle.seek, 0)
            _ = rec.must("append", handle.write, b"def")
        self.expect_content(rec, path, b"abcdef")

    def case_write_at_offset(self, rec: CaseRecorder) -> None:
        path = self.file(rec, "offset.txt", b"hello world")
        handle = rec.must("open read-write", self.store.open_file, path, OpenFlag.RDWR)
        with handle:
            rec.expect_equal("seek result", rec.must("seek", handle.seek, 6), 6)
            _ = rec.must("write at offset", handle.write, b"WORLD")
            _ = rec.must("rewind", handle.seek, 0)
            data = rec.must("read back", handle.read)
        rec.expect_equal("content after offset write", data, b"hello WORLD")

    def case_write_on_read_only_handle(self, rec: CaseRecorder) -> None:
        path = self.file(rec, "readonly_handle.txt", b"keep")
        handle = rec.must("open read-only", self.store.open, path)
        with handle:
            rec.expect_error("write on read-only handle", attempt(handle.write, b"x"))
        self.expect_content(rec, path, b"keep")


class DirectoryOperations(CaseGroup):
    name = "directory_operations"

    def case_mkdir(self, rec: CaseRecorder) -> None:
        path = self.path("made")
        rec.must("mkdir", self.store.mkdir, path)
        self.expect_kind(rec, path, NodeKind.DIRECTORY)
        rec.expect_error("mkdir again", attempt(self.store.mkdir, path), ErrorKind.ALREADY_EXISTS)

    def case_mkdir_all(self, rec: CaseRecorder) -> None:
        path = self.path("x", "y", "z")
        rec.must("mkdir_all x/y/z", self.store.mkdir_all, path)
        for partial in (self.path("x"), self.path("x", "y"), path):
            self.expect_kind(rec, partial, NodeKind.DIRECTORY)
        rec.expect_success("mkdir_all existing", attempt(self.store.mkdir_all, path))

    def case_mkdir_missing_parent(self, rec: CaseRecorder) -> None:
        rec.expect_error(
            "mkdir under missing parent",
            attempt(self.store.mkdir, self.path("no_parent", "child")),
            ErrorKind.NOT_EXIST,
        )

    def case_remove_all(self, rec: CaseRecorder) -> None:
        top = self.path("tree")
        rec.must("mkdir_all tree", self.store.mkdir_all, join(top, "a", "b"))
        rec.must("create leaf", write_file, self.store, join(top, "a", "b", "leaf"), b"x")
        rec.must("create top file", write_file, self.store, join(top, "top"), b"y")
        rec.must("remove_all tree", self.store.remove_all, top)
        self.expect_missing(rec, top)
        rec.expect_success("remove_all missing", attempt(self.store.remove_all, top))

    def case_read_dir(self, rec: CaseRecorder) -> None:
        top = self.path("listing")
        rec.must("mkdir listing", self.store.mkdir, top)
        for name in ("b.txt", "a.txt", "c.txt"):
            rec.must(f"create {name}", write_file, self.store, join(top, name), name.encode())
        rec.must("mkdir sub", self.store.mkdir, join(top, "sub"))
        entries = rec.must("read_dir", self.store.read_dir, top)
        kinds = {entry.name: entry.kind for entry in entries}
        rec.expect_equal(
            "entries",
            kinds,
            {
                "a.txt": NodeKind.FILE,
                "b.txt": NodeKind.FILE,
                "c.txt": NodeKind.FILE,
                "sub": NodeKind.DIRECTORY,
            },
        )

    def case_read_dir_handle(self, rec: CaseRecorder) -> None:
        top = self.path("handle_listing")
        rec.must("mkdir handle_listing", self.store.mkdir, top)
        expected = [f"entry_{index}" for index in range(5)]
        for name in expected:
            rec.must(f"create {name}", write_file, self.store, join(top, name), b"")
        handle = rec.must("open directory", self.store.open, top)
        with handle:
            first = rec.must("read_dir(2)", handle.read_dir, 2)
            rest = rec.must("read_dir(-1)", handle.read_dir, -1)
            tail = rec.must("read_dir after end", handle.read_dir, -1)
        rec.expect_equal("first batch size", len(first), 2)
        rec.expect_equal(
            "names across batches",
            sorted(entry.name for entry in [*first, *rest]),
            expected,
        )
        rec.expect_equal("entries after end", list(tail), [])

    def case_remove_empty_directory(self, rec: CaseRecorder) -> None:
        path = self.path("empty_dir")
        rec.must("mkdir", self.store.mkdir, path)
        rec.must("remove empty directory", self.store.remove, path)
        self.expect_missing(rec, path)

    def case_remove_non_empty_fails(self, rec: CaseRecorder) -> None:
        path = self.path("full_dir")
        rec.must("mkdir", self.store.mkdir, path)
        child = join(path, "child.txt")
        rec.must("create child", write_file, self.store, child, b"still here")
        rec.expect_error("remove non-empty directory", attempt(self.store.remove, path))
        self.expect_content(rec, child, b"still here")


class PathHandling(CaseGroup):
    name = "path_handling"

    special_names: ClassVar[tuple[str, ...]] = (
        "with space.txt",
        "dash-name.txt",
        "under_score.txt",
        "semi;colon.txt",
        "quote'name.txt",
        "percent%20.txt",
        "hash#tag.txt",
        "tilde~.txt",
    )
    unicode_names: ClassVar[tuple[str, ...]] = (
        "日本語.txt",
        "Ωmega.txt",
        "emoji_😀.txt",
        "café.txt",
    )

    def case_dot_segments(self, rec: CaseRecorder) -> None:
        rec.must("mkdir_all dots/sub", self.store.mkdir_all, self.path("dots", "sub"))
        _ = self.file(rec, "dots/target.txt", b"dotted")
        for variant in ("dots/./target.txt", "dots/sub/../target.txt", "./dots/target.txt"):
            self.expect_content(rec, f"{self.ctx.directory}/{variant}", b"dotted")

    def case_trailing_separator(self, rec: CaseRecorder) -> None:
        path = self.path("trailing")
        rec.must("mkdir with trailing separator", self.store.mkdir, f"{path}/")
        self.expect_kind(rec, path, NodeKind.DIRECTORY)
        self.expect_kind(rec, f"{path}/", NodeKind.DIRECTORY)

    def case_repeated_separator(self, rec: CaseRecorder) -> None:
        _ = self.file(rec, "double.txt", b"double")
        self.expect_content(rec, f"{self.ctx.directory}//double.txt", b"double")

    def case_special_characters(self, rec: CaseRecorder) -> None:
        top = self.path("special")
        rec.must("mkdir special", self.store.mkdir, top)
        for name in self.special_names:
            rec.must(f"create {name!r}", write_file, self.store, join(top, name), name.encode())
        for name in self.special_names:
            self.expect_content(rec, join(top, name), name.encode())
        rec.expect_equal("listing", self.listing(rec, top), sorted(self.special_names))

    def case_non_ascii_names(self, rec: CaseRecorder) -> None:
        top = self.path("unicode")
        rec.must("mkdir unicode", self.store.mkdir, top)
        for name in self.unicode_names:
            payload = name.encode("utf-8")
            rec.must(f"create {name!r}", write_file, self.store, join(top, name), payload)
            self.expect_content(rec, join(top, name), payload)
        rec.expect_equal("listing", self.listing(rec, top), sorted(self.unicode_names))


class ErrorSemantics(CaseGroup):
    name = "error_semantics"

    def case_not_exist(self, rec: CaseRecorder) -> None:
        missing = self.path("missing")
        store = self.store
        rec.expect_error("stat", attempt(store.stat, missing), ErrorKind.NOT_EXIST)
        rec.expect_error("open", attempt(store.open, missing), ErrorKind.NOT_EXIST)
        rec.expect_error("remove", attempt(store.remove, missing), ErrorKind.NOT_EXIST)
        rec.expect_error(
            "rename", attempt(store.rename, missing, self.path("elsewhere")), ErrorKind.NOT_EXIST
        )
        rec.expect_error("read_dir", attempt(store.read_dir, missing), ErrorKind.NOT_EXIST)
        rec.expect_error("truncate", attempt(store.truncate, missing, 0), ErrorKind.NOT_EXIST)

    def case_already_exists(self, rec: CaseRecorder) -> None:
        directory = self.path("existing_dir")
        rec.must("mkdir", self.store.mkdir, directory)
        path = self.file(rec, "existing.txt")
        rec.expect_error(
            "mkdir over directory", attempt(self.store.mkdir, directory), ErrorKind.ALREADY_EXISTS
        )
        rec.expect_error(
            "mkdir over file", attempt(self.store.mkdir, path), ErrorKind.ALREADY_EXISTS
        )
        rec.expect_error(
            "exclusive create over file",
            attempt(
                self.store.open_file, path, OpenFlag.WRONLY | OpenFlag.CREATE | OpenFlag.EXCL
            ),
            ErrorKind.ALREADY_EXISTS,
        )

    def case_is_a_directory(self, rec: CaseRecorder) -> None:
        directory = self.path("is_dir")
        rec.must("mkdir", self.store.mkdir, directory)
        rec.expect_error(
            "open directory for writing",
            attempt(self.store.open_file, directory, OpenFlag.WRONLY),
            ErrorKind.IS_A_DIRECTORY,
        )
        rec.expect_error(
            "read_file on directory",
            attempt(self.store.read_file, directory),
            ErrorKind.IS_A_DIRECTORY,
        )

    def case_not_a_directory(self, rec: CaseRecorder) -> None:
        path = self.file(rec, "plain.txt", b"plain")
        child = join(path, "child")
        rec.expect_error(
            "stat under file", attempt(self.store.stat, child), ErrorKind.NOT_A_DIRECTORY
        )
        rec.expect_error(
            "mkdir under file", attempt(self.store.mkdir, child), ErrorKind.NOT_A_DIRECTORY
        )
        rec.expect_error(
            "mkdir_all over file",
            attempt(self.store.mkdir_all, join(child, "deeper")),
            ErrorKind.NOT_A_DIRECTORY,
        )

    def case_read_dir_on_file(self, rec: CaseRecorder) -> None:
        path = self.file(rec, "not_a_listing.txt")
        rec.expect_error(
            "read_dir on file", attempt(self.store.read_dir, path), ErrorKind.NOT_A_DIRECTORY
        )


class SubViews(CaseGroup):
    name = "sub_views"

    def case_read_file(self, rec: CaseRecorder) -> None:
        top = self.path("view")
        rec.must("mkdir view", self.store.mkdir, top)
        rec.must("create on base", write_file, self.store, join(top, "base.txt"), b"from base")
        view = rec.must("sub view", self.store.sub, top)
        read = attempt(view.read_file, "/base.txt")
        if rec.expect_success("read through view", read):
            rec.expect_equal("content through view", read.value, b"from base")
        rec.must("create through view", write_file, view, "/view.txt", b"from view")
        self.expect_content(rec, join(top, "view.txt"), b"from view")

    def case_read_dir(self, rec: CaseRecorder) -> None:
        top = self.path("view_listing")
        rec.must("mkdir_all", self.store.mkdir_all, join(top, "nested"))
        rec.must("create file", write_file, self.store, join(top, "file.txt"), b"")
        view = rec.must("sub view", self.store.sub, top)
        entries = rec.must("read_dir through view", view.read_dir, "/")
        rec.expect_equal(
            "entries through view",
            sorted(entry.name for entry in entries),
            ["file.txt", "nested"],
        )

    def case_nested_sub(self, rec: CaseRecorder) -> None:
        top = self.path("outer")
        rec.must("mkdir_all outer/inner", self.store.mkdir_all, join(top, "inner"))
        outer = rec.must("sub outer", self.store.sub, top)
        inner = rec.must("sub inner", outer.sub, "inner")
        rec.must("create through nested view", write_file, inner, "deep.txt", b"deep")
        self.expect_content(rec, join(top, "inner", "deep.txt"), b"deep")

    def case_sub_on_file_fails(self, rec: CaseRecorder) -> None:
        path = self.file(rec, "not_a_root.txt")
        rec.expect_error("sub on file", attempt(self.store.sub, path), ErrorKind.NOT_A_DIRECTORY)

    def case_parent_segments_stay_inside(self, rec: CaseRecorder) -> None:
        top = self.path("confined")
        rec.must("mkdir confined", self.store.mkdir, top)
        view = rec.must("sub view", self.store.sub, top)
        rec.must("create ../escape.txt", write_file, view, "../escape.txt", b"inside")
        self.expect_content(rec, join(top, "escape.txt"), b"inside")
        self.expect_missing(rec, self.path("escape.txt"))


class Symlinks(CaseGroup):
    name = "symlinks"

    @classmethod
    def missing_operations(cls, store: Store) -> str | None:
        return "symlinks()" if store.symlinks() is None else None

    def cases(self) -> list[tuple[str, CaseBody]]:
        ops: SymlinkOps | None = self.store.symlinks()
        assert ops is not None
        return SymlinkVerifier(self.store, ops, self.ctx.directory).cases()


class HardLinks(CaseGroup):
    name = "hard_links"

    @classmethod
    def missing_operations(cls, store: Store) -> str | None:
        return "hard_links()" if store.hard_links() is None else None

    @property
    def ops(self) -> HardLinkOps:
        ops = self.store.hard_links()
        assert ops is not None
        return ops

    def case_link_shares_content(self, rec: CaseRecorder) -> None:
        original = self.file(rec, "hard_original.txt", b"shared")
        linked = self.path("hard_linked.txt")
        rec.must("link", self.ops.link, original, linked)
        self.expect_content(rec, linked, b"shared")
        rec.must("rewrite through link", write_file, self.store, linked, b"changed")
        self.expect_content(rec, original, b"changed")

    def case_remove_one_name(self, rec: CaseRecorder) -> None:
        original = self.file(rec, "hard_remove.txt", b"survives")
        linked = self.path("hard_remove_link.txt")
        rec.must("link", self.ops.link, original, linked)
        rec.must("remove original", self.store.remove, original)
        self.expect_missing(rec, original)
        self.expect_content(rec, linked, b"survives")

    def case_link_over_existing_fails(self, rec: CaseRecorder) -> None:
        first = self.file(rec, "hard_first.txt", b"1")
        second = self.file(rec, "hard_second.txt", b"2")
        rec.expect_error(
            "link over existing", attempt(self.ops.link, first, second), ErrorKind.ALREADY_EXISTS
        )
        self.expect_content(rec, second, b"2")

    def case_link_missing_source_fails(self, rec: CaseRecorder) -> None:
        rec.expect_error(
            "link missing source",
            attempt(self.ops.link, self.path("hard_absent"), self.path("hard_new")),
            ErrorKind.NOT_EXIST,
        )


class Permissions(CaseGroup):
    name = "permissions"

    @classmethod
    def missing_operations(cls, store: Store) -> str | None:
        return "permissions()" if store.permissions() is None else None

    @property
    def ops(self) -> PermissionOps:
        ops = self.store.permissions()
        assert ops is not None
        return ops

    def case_chmod_file(self, rec: CaseRecorder) -> None:
        path = self.file(rec, "chmod.txt", b"mode")
        rec.must("chmod 0o600", self.ops.chmod, path, 0o600)
        info = rec.must("stat", self.store.stat, path)
        rec.expect_equal("mode", oct(info.mode & 0o777), oct(0o600))

    def case_chmod_directory(self, rec: CaseRecorder) -> None:
        path = self.path("chmod_dir")
        rec.must("mkdir", self.store.mkdir, path)
        rec.must("chmod 0o700", self.ops.chmod, path, 0o700)
        info = rec.must("stat", self.store.stat, path)
        rec.expect_equal("mode", oct(info.mode & 0o777), oct(0o700))

    def case_chmod_missing(self, rec: CaseRecorder) -> None:
        rec.expect_error(
            "chmod missing",
            attempt(self.ops.chmod, self.path("chmod_absent"), 0o644),
            ErrorKind.NOT_EXIST,
        )


class Timestamps(CaseGroup):
    name = "timestamps"

    moment: ClassVar[datetime] = datetime(2021, 6, 15, 12, 0, tzinfo=UTC)

    @classmethod
    def missing_operations(cls, store: Store) -> str | None:
        return "timestamps()" if store.timestamps() is None else None

    @property
    def ops(self) -> TimestampOps:
        ops = self.store.timestamps()
        assert ops is not None
        return ops

    def case_chtimes(self, rec: CaseRecorder) -> None:
        path = self.file(rec, "chtimes.txt", b"time")
        rec.must("chtimes", self.ops.chtimes, path, self.moment, self.moment)
        info = rec.must("stat", self.store.stat, path)
        if not rec.check(info.modified_at is not None, "stat reports no modification time"):
            return
        assert info.modified_at is not None
        drift = abs((info.modified_at - self.moment).total_seconds())
        rec.check(
            drift <= 1.0,
            f"modification time {info.modified_at.isoformat()}, expected {self.moment.isoformat()}",
        )

    def case_chtimes_missing(self, rec: CaseRecorder) -> None:
        rec.expect_error(
            "chtimes missing",
            attempt(self.ops.chtimes, self.path("chtimes_absent"), self.moment, self.moment),
            ErrorKind.NOT_EXIST,
        )


class CaseSensitivity(CaseGroup):
    name = "case_sensitivity"

    def case_distinct_names(self, rec: CaseRecorder) -> None:
        lower = self.file(rec, "case.txt", b"lower")
        upper = self.file(rec, "CASE.txt", b"upper")
        self.expect_content(rec, lower, b"lower")
        self.expect_content(rec, upper, b"upper")

    def case_listing_keeps_both(self, rec: CaseRecorder) -> None:
        top = self.path("mixed")
        rec.must("mkdir mixed", self.store.mkdir, top)
        for name in ("Name", "name", "NAME"):
            rec.must(f"create {name}", write_file, self.store, join(top, name), b"")
        rec.expect_equal("listing", self.listing(rec, top), ["NAME", "Name", "name"])


class AtomicRename(CaseGroup):
    name = "atomic_rename"

    def case_replace_existing_file(self, rec: CaseRecorder) -> None:
        source = self.file(rec, "replace_source.txt", b"new")
        dest = self.file(rec, "replace_dest.txt", b"old")
        rec.must("rename over existing", self.store.rename, source, dest)
        self.expect_missing(rec, source)
        self.expect_content(rec, dest, b"new")

    def case_rename_directory(self, rec: CaseRecorder) -> None:
        source = self.path("rename_dir")
        rec.must("mkdir", self.store.mkdir, source)
        rec.must("create child", write_file, self.store, join(source, "child"), b"child")
        dest = self.path("renamed_dir")
        rec.must("rename directory", self.store.rename, source, dest)
        self.expect_missing(rec, source)
        self.expect_content(rec, join(dest, "child"), b"child")

    def case_rename_onto_itself(self, rec: CaseRecorder) -> None:
        path = self.file(rec, "self_rename.txt", b"same")
        rec.must("rename onto itself", self.store.rename, path, path)
        self.expect_content(rec, path, b"same")


class SparseFiles(CaseGroup):
    name = "sparse_files"

    def case_write_past_end(self, rec: CaseRecorder) -> None:
        path = self.path("sparse.bin")
        flags = OpenFlag.RDWR | OpenFlag.CREATE
        handle = rec.must("create", self.store.open_file, path, flags)
        with handle:
            _ = rec.must("seek past end", handle.seek, 1024)
            _ = rec.must("write", handle.write, b"x")
        info = rec.must("stat", self.store.stat, path)
        rec.expect_equal("size", info.size, 1025)
        self.expect_content(rec, path, bytes(1024) + b"x")

    def case_truncate_extends(self, rec: CaseRecorder) -> None:
        path = self.file(rec, "extend.bin", b"ab")
        rec.must("truncate to 4096", self.store.truncate, path, 4096)
        self.expect_content(rec, path, b"ab" + bytes(4094))


class QuickCheck(CaseGroup):
    name = "quick_check"

    def case_roundtrip(self, rec: CaseRecorder) -> None:
        path = self.file(rec, "quick_check.txt", b"quick check")
        self.expect_content(rec, path, b"quick check")
        rec.must("remove", self.store.remove, path)
        rec.check(not exists(self.store, path), f"{path} still exists after remove")


_GROUP_TYPES: Final[tuple[type[CaseGroup], ...]] = (
    FileOperations,
    DirectoryOperations,
    PathHandling,
    ErrorSemantics,
    SubViews,
    Symlinks,
    HardLinks,
    Permissions,
    Timestamps,
    CaseSensitivity,
    AtomicRename,
    SparseFiles,
)

GROUP_REGISTRY: Final[Mapping[str, type[CaseGroup]]] = {
    group.name: group for group in _GROUP_TYPES
}

GROUPS: Final[tuple[str, ...]] = tuple(GROUP_REGISTRY)
"""Baseline group names in execution order."""


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


def _describe(error: BaseException) -> str:
    return describe_mismatch(None, canonicalize(error)) or repr(error)


class BaselineSuite:
    """Runs the baseline groups against one candidate store.

    Args:
        config: Store, claimed capabilities and run root settings.
        clock: Source of durations.
    """

    def __init__(self, config: SuiteConfig, *, clock: Clock = SYSTEM_CLOCK) -> None:
        super().__init__()
        self.config = config
        self.clock = clock
        self.name = f"baseline[{type(config.store).__name__}]"
        self._log = logger.bind(suite=self.name)

    # --- entry points ---

    def run(self, groups: Sequence[str] | None = None) -> SuiteReport:
        """Run ``groups`` (all of :data:`GROUPS` by default) one after another.

        Raises:
            ConfigurationError: An unknown group name was requested.
            SetupError: The run root could not be created.
        """

        selected = _select(groups)
        start = self.clock.monotonic()
        root = self._create_root(selected)
        try:
            results = tuple(self._run_group(group, root) for group in selected)
        finally:
            self._cleanup(root)
        return self._finish(self.name, results, start)

    async def run_async(self, groups: Sequence[str] | None = None) -> SuiteReport:
        """Run ``groups`` concurrently, at most ``max_parallel`` at a time.

        Group order in the report matches the requested order.
        """

        selected = _select(groups)
        start = self.clock.monotonic()
        root = self._create_root(selected)
        max_parallel = self.config.max_parallel or os.cpu_count() or 4
        semaphore = asyncio.Semaphore(max_parallel)

        async def run_one(group: type[CaseGroup]) -> GroupResult:
            async with semaphore:
                loop = asyncio.get_running_loop()
                return await loop.run_in_executor(None, self._run_group, group, root)

        try:
            results = await asyncio.gather(*(run_one(group) for group in selected))
        finally:
            self._cleanup(root)
        return self._finish(self.name, tuple(results), start)

    def quick_check(self) -> SuiteReport:
        """Create, read back and remove one file, then verify it is gone."""

        start = self.clock.monotonic()
        root = self._create_root((QuickCheck,))
        try:
            result = self._run_group(QuickCheck, root)
        finally:
            self._cleanup(root)
        return self._finish(f"{self.name}.quick_check", (result,), start)

    # --- internals ---

    def _create_root(self, groups: Sequence[type[CaseGroup]]) -> str:
        store = self.config.store
        parent = self.config.test_dir or store.temp_dir()
        root = join(parent, f"{RUN_ROOT_PREFIX}{uuid.uuid4().hex[:12]}")
        try:
            store.mkdir_all(root)
        except (OSError, ValueError) as error:
            self._log.error(
                "Could not create run root.",
                event="suite.setup.failed",
                context={"root": root, "error": repr(error)},
            )
            msg = f"Cannot create run root {root}: {error}"
            raise SetupError(msg) from error
        self._log.info(
            "Starting run.",
            event="suite.run.start",
            context={
                "root": root,
                "groups": [group.name for group in groups],
                "features": list(self.config.features.enabled()),
            },
        )
        return root

    def _cleanup(self, root: str) -> None:
        if self.config.keep_test_dir:
            self._log.info(
                "Keeping run root.", event="suite.run.kept", context={"root": root}
            )
            return
        try:
            self.config.store.remove_all(root)
        except (OSError, ValueError) as error:
            self._log.warning(
                "Could not remove run root.",
                event="suite.run.cleanup_failed",
                context={"root": root, "error": repr(error)},
            )

    def _gate(self, group: type[CaseGroup]) -> GroupResult | None:
        """Skip or fail a gated group before any of its cases runs."""

        flag = FEATURE_GROUPS.get(group.name)
        if flag is None:
            return None
        if not self.config.features.supports(flag):
            reason = f"capability {flag!r} disabled"
            self._log.info(
                "Skipping group.",
                event="suite.group.skipped",
                context={"group": group.name, "reason": reason},
            )
            return GroupResult.skip(group.name, reason)
        try:
            missing = group.missing_operations(self.config.store)
        except (OSError, ValueError) as error:
            return self._capability_failure(
                group, f"capability {flag!r} query: {_describe(error)}"
            )
        if missing is None:
            return None
        return self._capability_failure(
            group, f"capability {flag!r} is claimed but store.{missing} returned None"
        )

    def _capability_failure(
        self, group: type[CaseGroup], message: str, start: float | None = None
    ) -> GroupResult:
        self._log.warning(
            "Claimed capability is not provided.",
            event="suite.case.failed",
            context={"group": group.name, "failures": [message]},
        )
        return GroupResult(
            name=group.name,
            cases=(CaseResult(name="capability", status="failed", failures=(message,)),),
            duration_ms=0 if start is None else elapsed_ms(self.clock, start),
        )

    def _run_group(self, group: type[CaseGroup], root: str) -> GroupResult:
        gated = self._gate(group)
        if gated is not None:
            return gated
        start = self.clock.monotonic()
        log = self._log.bind(group=group.name)
        directory = join(root, f"{group.name}_{uuid.uuid4().hex[:8]}")
        try:
            self.config.store.mkdir(directory)
        except (OSError, ValueError) as error:
            message = f"mkdir {directory}: {_describe(error)}"
            log.warning(
                "Could not create group directory.",
                event="suite.case.failed",
                context={"case": "setup", "failures": [message]},
            )
            return GroupResult(
                name=group.name,
                cases=(CaseResult(name="setup", status="failed", failures=(message,)),),
                duration_ms=elapsed_ms(self.clock, start),
            )
        ctx = GroupContext(
            store=self.config.store, features=self.config.features, directory=directory
        )
        try:
            bodies = group(ctx).cases()
        except (OSError, ValueError) as error:
            return self._capability_failure(
                group, f"{group.name} cases: {_describe(error)}", start
            )
        cases = tuple(run_case(name, body, log=log, clock=self.clock) for name, body in bodies)
        return GroupResult(
            name=group.name, cases=cases, duration_ms=elapsed_ms(self.clock, start)
        )

    def _finish(
        self, name: str, results: tuple[GroupResult, ...], start: float
    ) -> SuiteReport:
        report = SuiteReport(name=name, groups=results, duration_ms=elapsed_ms(self.clock, start))
        self._log.info(
            "Run finished.",
            event="suite.run.finish",
            context={
                "passed": report.passed_count,
                "failed": report.failed_count,
                "skipped_groups": report.skipped_count,
                "duration_ms": report.duration_ms,
            },
        )
        return report


def _select(groups: Sequence[str] | None) -> tuple[type[CaseGroup], ...]:
    if groups is None:
        return tuple(GROUP_REGISTRY.values())
    unknown = [name for name in groups if name not in GROUP_REGISTRY]
    if unknown:
        msg = f"Unknown group(s): {', '.join(unknown)}. Available: {', '.join(GROUPS)}"
        raise ConfigurationError(msg)
    return tuple(GROUP_REGISTRY[name] for name in groups)


def run_baseline(
    store: Store,
    features: Features,
    *,
    groups: Sequence[str] | None = None,
    test_dir: str | None = None,
) -> SuiteReport:
    """Shorthand for ``BaselineSuite(SuiteConfig(...)).run(groups)``."""
    config = SuiteConfig(store=store, features=features, test_dir=test_dir)
    return BaselineSuite(config).run(groups)


__all__ = [
    "GROUPS",
    "GROUP_REGISTRY",
    "KEEP_TEST_DIR_ENV",
    "MAX_PARALLEL_ENV",
    "RUN_ROOT_PREFIX",
    "TEST_DIR_ENV",
    "AtomicRename",
    "BaselineSuite",
    "CaseGroup",
    "CaseSensitivity",
    "DirectoryOperations",
    "ErrorSemantics",
    "FileOperations",
    "GroupContext",
    "HardLinks",
    "PathHandling",
    "Permissions",
    "QuickCheck",
    "SparseFiles",
    "SubViews",
    "SuiteConfig",
    "Symlinks",
    "Timestamps",
    "run_baseline",
]
