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

"""Path and symlink resolution verifier.

Two views of the same path are compared here:

- what a *following* operation should observe, computed by the reference
  resolver (:func:`resolve`) from the candidate's own non-following
  primitives, and
- what the candidate's following ``stat`` actually reports (:func:`observe`).

Non-following operations are checked with :func:`inspect_link`, which takes
exactly one step (``lstat`` plus ``readlink``) however long the chain is.

:class:`SymlinkVerifier` bundles the required-pass link cases. Each case
records mismatches into a :class:`~fsconformance.report.CaseRecorder` and
never raises for a mismatch, so one broken behavior does not hide the rest.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .report import CaseRecorder, attempt
from .store import (
    MAX_LINK_DEPTH,
    NodeKind,
    OpenFlag,
    ResolutionOutcome,
    Store,
    SymlinkOps,
    join,
    resolve,
    resolve_link_target,
    split,
    write_file,
)
from .taxonomy import ErrorKind, classify


@dataclass(slots=True, frozen=True)
class LinkObservation:
    """What a single non-following step reports about ``path``.

    Attributes:
        path: The inspected path.
        kind: Node type from ``lstat``, ``None`` when it failed.
        target: Raw ``readlink`` result for symlinks, else ``None``.
        error: Failure tag of ``lstat`` or ``readlink``, ``None`` on success.
    """

    path: str
    kind: NodeKind | None = None
    target: str | None = None
    error: ErrorKind | None = None

    @property
    def is_symlink(self) -> bool:
        return self.kind is NodeKind.SYMLINK


def inspect_link(ops: SymlinkOps, path: str) -> LinkObservation:
    """Take one non-following step at ``path``."""

    try:
        info = ops.lstat(path)
    except OSError as error:
        return LinkObservation(path=path, error=classify(error))
    if not info.is_symlink:
        return LinkObservation(path=path, kind=info.kind)
    try:
        target = ops.readlink(path)
    except OSError as error:
        return LinkObservation(path=path, kind=info.kind, error=classify(error))
    return LinkObservation(path=path, kind=info.kind, target=target)


def observe(store: Store, path: str) -> ResolutionOutcome:
    """Run the candidate's following ``stat`` and express it as an outcome.

    The candidate does not report its resolved path, so a successful outcome
    carries ``path`` unchanged and no hop count.
    """

    try:
        info = store.stat(path)
    except (OSError, ValueError) as error:
        return ResolutionOutcome.failure(path, classify(error))
    return ResolutionOutcome.success(path, info.kind)


def outcomes_match(reference: ResolutionOutcome, observed: ResolutionOutcome) -> bool:
    """Compare the parts of two outcomes a candidate can report.

    Failures match on the error tag; successes on the terminal node type.
    """

    if reference.error is not None or observed.error is not None:
        return reference.error is observed.error
    return reference.kind is observed.kind


Case = Callable[[CaseRecorder], None]


class SymlinkVerifier:
    """Required-pass symbolic link cases for one candidate store.

    Args:
        store: The candidate store.
        ops: The store's symlink capability handle.
        base_dir: Existing directory all fixtures are created under. Every case
            uses its own names, so cases may run in any order.
        chain_length: Length of the non-repeating chain that must resolve.
            Kept at 32 by default, the smallest bound common platforms use.

    Example::

        verifier = SymlinkVerifier(store, store.symlinks(), "/tmp/run/symlinks")
        for name, case in verifier.cases():
            result = run_case(name, case)
    """

    def __init__(
        self,
        store: Store,
        ops: SymlinkOps,
        base_dir: str,
        *,
        chain_length: int = 32,
    ) -> None:
        if not 1 <= chain_length <= MAX_LINK_DEPTH:
            msg = f"chain_length must be between 1 and {MAX_LINK_DEPTH}"
            raise ValueError(msg)
        self.store = store
        self.ops = ops
        self.base_dir = base_dir
        self.chain_length = chain_length

    def cases(self) -> list[tuple[str, Case]]:
        return [
            ("create_and_readlink", self.case_create_and_readlink),
            ("lstat_vs_stat", self.case_lstat_vs_stat),
            ("relative_same_directory", self.case_relative_same_directory),
            ("relative_parent", self.case_relative_parent),
            ("link_to_directory", self.case_link_to_directory),
            ("broken_link", self.case_broken_link),
            ("already_exists", self.case_already_exists),
            ("self_reference", self.case_self_reference),
            ("two_node_cycle", self.case_two_node_cycle),
            ("circular_directory", self.case_circular_directory),
            ("remove_keeps_target", self.case_remove_keeps_target),
            ("read_through", self.case_read_through),
            ("write_through", self.case_write_through),
            ("chained", self.case_chained),
            ("rename_preserves_link", self.case_rename_preserves_link),
            ("long_chain", self.case_long_chain),
        ]

    # --- helpers ---

    def _path(self, *parts: str) -> str:
        return join(self.base_dir, *parts)

    def _real(self, path: str) -> str:
        """``path`` with its parent directory resolved (the base may sit behind links)."""
        parent, name = split(path)
        return join(resolve(self.ops, parent).path, name)

    def _file(self, rec: CaseRecorder, name: str, content: bytes = b"") -> str:
        path = self._path(name)
        rec.must(f"create {name}", write_file, self.store, path, content)
        return path

    def _link(self, rec: CaseRecorder, target: str, link: str) -> None:
        rec.must(f"symlink {link} -> {target}", self.ops.symlink, target, link)

    def expect_link(
        self, rec: CaseRecorder, link: str, target: str | None = None
    ) -> bool:
        """Non-following step: ``link`` is a symlink whose raw target is ``target``."""

        seen = inspect_link(self.ops, link)
        if seen.error is not None:
            rec.fail(f"lstat/readlink {link}: unexpected {seen.error.value}")
            return False
        if not rec.check(seen.is_symlink, f"lstat {link}: expected symlink, got {seen.kind}"):
            return False
        if target is not None:
            return rec.expect_equal(f"readlink {link}", seen.target, target)
        return True

    def expect_resolution(
        self,
        rec: CaseRecorder,
        path: str,
        *,
        kind: NodeKind | None = None,
        error: ErrorKind | None = None,
    ) -> ResolutionOutcome:
        """Following step: reference and candidate agree, and match the expectation.

        Returns the reference outcome.
        """

        reference = resolve(self.ops, path)
        observed = observe(self.store, path)
        expected = (
            ResolutionOutcome.failure(path, error)
            if error is not None
            else ResolutionOutcome.success(path, kind)
            if kind is not None
            else None
        )
        if expected is not None and not outcomes_match(expected, reference):
            rec.fail(
                f"reference resolution of {path}: expected "
                f"{expected.describe()}, got {reference.describe()}"
            )
        if not outcomes_match(reference, observed):
            rec.fail(
                f"stat {path}: reference resolves to {reference.describe()}, "
                f"store reports {observed.describe()}"
            )
        return reference

    def expect_content(self, rec: CaseRecorder, path: str, content: bytes) -> None:
        read = attempt(self.store.read_file, path)
        if rec.expect_success(f"read {path}", read):
            rec.expect_equal(f"content of {path}", read.value, content)

    # --- cases ---

    def case_create_and_readlink(self, rec: CaseRecorder) -> None:
        target = self._file(rec, "symlink_target.txt", b"symlink target content")
        link = self._path("symlink_link")
        self._link(rec, target, link)
        self.expect_link(rec, link, target)

    def case_lstat_vs_stat(self, rec: CaseRecorder) -> None:
        target = self._file(rec, "lstat_target.txt")
        link = self._path("lstat_link")
        self._link(rec, target, link)
        self.expect_resolution(rec, link, kind=NodeKind.FILE)
        self.expect_link(rec, link)

    def case_relative_same_directory(self, rec: CaseRecorder) -> None:
        content = b"same dir target"
        _ = self._file(rec, "same_dir_target.txt", content)
        link = self._path("same_dir_link")
        self._link(rec, "same_dir_target.txt", link)
        self.expect_link(rec, link, "same_dir_target.txt")
        self.expect_resolution(rec, link, kind=NodeKind.FILE)
        self.expect_content(rec, link, content)

    def case_relative_parent(self, rec: CaseRecorder) -> None:
        subdir = self._path("rel_sub")
        rec.must("mkdir_all rel_sub", self.store.mkdir_all, subdir)
        content = b"relative target"
        _ = self._file(rec, "rel_target.txt", content)
        # Resolving against the link path instead of its directory lands here.
        rec.must(
            "create decoy",
            write_file,
            self.store,
            join(subdir, "rel_target.txt"),
            b"decoy",
        )
        link = join(subdir, "rel_link")
        self._link(rec, "../rel_target.txt", link)
        self.expect_link(rec, link, "../rel_target.txt")
        reference = self.expect_resolution(rec, link, kind=NodeKind.FILE)
        rec.expect_equal(
            "reference target",
            reference.path,
            self._real(resolve_link_target(link, "../rel_target.txt")),
        )
        self.expect_content(rec, link, content)

    def case_link_to_directory(self, rec: CaseRecorder) -> None:
        target_dir = self._path("link_target_dir")
        rec.must("mkdir link_target_dir", self.store.mkdir, target_dir)
        rec.must("create file", write_file, self.store, join(target_dir, "file.txt"), b"content")
        link = self._path("dir_link")
        self._link(rec, target_dir, link)
        self.expect_resolution(rec, link, kind=NodeKind.DIRECTORY)
        self.expect_link(rec, link, target_dir)
        listing = attempt(self.store.read_dir, link)
        if rec.expect_success("read_dir through link", listing):
            names = [entry.name for entry in listing.value or ()]
            rec.expect_equal("entries through link", names, ["file.txt"])
        self.expect_content(rec, join(link, "file.txt"), b"content")

    def case_broken_link(self, rec: CaseRecorder) -> None:
        missing = self._path("nonexistent_target")
        link = self._path("broken_link")
        self._link(rec, missing, link)
        self.expect_link(rec, link, missing)
        reference = self.expect_resolution(rec, link, error=ErrorKind.NOT_EXIST)
        rec.expect_equal("failing component", reference.path, self._real(missing))
        rec.expect_error("open broken link", attempt(self.store.open, link), ErrorKind.NOT_EXIST)
        rec.expect_error(
            "read broken link", attempt(self.store.read_file, link), ErrorKind.NOT_EXIST
        )

    def case_already_exists(self, rec: CaseRecorder) -> None:
        target = self._file(rec, "exists_target.txt")
        link = self._path("exists_link")
        self._link(rec, target, link)
        rec.expect_error(
            "symlink over link",
            attempt(self.ops.symlink, target, link),
            ErrorKind.ALREADY_EXISTS,
        )
        rec.expect_error(
            "symlink over file",
            attempt(self.ops.symlink, link, target),
            ErrorKind.ALREADY_EXISTS,
        )
        self.expect_link(rec, link, target)

    def case_self_reference(self, rec: CaseRecorder) -> None:
        link = self._path("self_ref")
        self._link(rec, link, link)
        self.expect_link(rec, link, link)
        self.expect_resolution(rec, link, error=ErrorKind.TOO_MANY_LINKS)
        rec.expect_error(
            "open self reference", attempt(self.store.open, link), ErrorKind.TOO_MANY_LINKS
        )

    def case_two_node_cycle(self, rec: CaseRecorder) -> None:
        link_a = self._path("cycle_a")
        link_b = self._path("cycle_b")
        self._link(rec, link_b, link_a)
        self._link(rec, link_a, link_b)
        for link, target in ((link_a, link_b), (link_b, link_a)):
            self.expect_link(rec, link, target)
            self.expect_resolution(rec, link, error=ErrorKind.TOO_MANY_LINKS)

    def case_circular_directory(self, rec: CaseRecorder) -> None:
        one = self._path("circular", "one")
        two = join(one, "two")
        rec.must("mkdir_all circular/one/two", self.store.mkdir_all, two)
        rec.must("create marker", write_file, self.store, join(one, "marker"), b"m")
        link = join(two, "three")
        self._link(rec, one, link)
        self.expect_link(rec, link, one)
        self.expect_resolution(rec, link, kind=NodeKind.DIRECTORY)
        # Looping twice through the directory cycle is finite and must resolve.
        looped = join(link, "two", "three", "marker")
        reference = self.expect_resolution(rec, looped, kind=NodeKind.FILE)
        rec.expect_equal("hops through loop", reference.hops, 2)

    def case_remove_keeps_target(self, rec: CaseRecorder) -> None:
        content = b"should not be deleted"
        target = self._file(rec, "remove_target.txt", content)
        link = self._path("remove_link")
        self._link(rec, target, link)
        rec.must("remove link", self.store.remove, link)
        rec.expect_error("lstat removed link", attempt(self.ops.lstat, link), ErrorKind.NOT_EXIST)
        self.expect_resolution(rec, target, kind=NodeKind.FILE)
        self.expect_content(rec, target, content)

    def case_read_through(self, rec: CaseRecorder) -> None:
        content = b"content read through symlink"
        target = self._file(rec, "read_through_target.txt", content)
        link = self._path("read_through_link")
        self._link(rec, target, link)
        handle = rec.must("open through link", self.store.open, link)
        with handle:
            data = rec.must("read through link", handle.read)
        rec.expect_equal("content through link", data, content)

    def case_write_through(self, rec: CaseRecorder) -> None:
        target = self._file(rec, "write_through_target.txt")
        link = self._path("write_through_link")
        self._link(rec, target, link)
        content = b"written through symlink"
        handle = rec.must("open_file through link", self.store.open_file, link, OpenFlag.WRONLY)
        with handle:
            _ = rec.must("write through link", handle.write, content)
        self.expect_content(rec, target, content)
        self.expect_link(rec, link, target)

    def case_chained(self, rec: CaseRecorder) -> None:
        content = b"chained symlink content"
        target = self._file(rec, "chain_target.txt", content)
        link1 = self._path("chain_link1")
        link2 = self._path("chain_link2")
        self._link(rec, target, link1)
        self._link(rec, link1, link2)
        self.expect_link(rec, link2, link1)
        reference = self.expect_resolution(rec, link2, kind=NodeKind.FILE)
        rec.expect_equal("hops for two-link chain", reference.hops, 2)
        self.expect_content(rec, link2, content)

    def case_rename_preserves_link(self, rec: CaseRecorder) -> None:
        target = self._file(rec, "rename_sym_target.txt", b"rename symlink target")
        link = self._path("rename_sym_link")
        new_link = self._path("rename_sym_link_new")
        self._link(rec, target, link)
        rec.must("rename link", self.store.rename, link, new_link)
        rec.expect_error("lstat old link", attempt(self.ops.lstat, link), ErrorKind.NOT_EXIST)
        self.expect_link(rec, new_link, target)
        self.expect_resolution(rec, target, kind=NodeKind.FILE)

    def case_long_chain(self, rec: CaseRecorder) -> None:
        content = b"end of chain"
        previous = self._file(rec, "long_chain_end.txt", content)
        for index in range(self.chain_length):
            link = self._path(f"long_chain_{index:02d}")
            # Alternate absolute and relative targets along the chain.
            target = previous if index % 2 else previous.rsplit("/", 1)[-1]
            self._link(rec, target, link)
            previous = link
        reference = self.expect_resolution(rec, previous, kind=NodeKind.FILE)
        rec.expect_equal("hops for long chain", reference.hops, self.chain_length)
        self.expect_content(rec, previous, content)


__all__ = [
    "MAX_LINK_DEPTH",
    "Case",
    "LinkObservation",
    "ResolutionOutcome",
    "SymlinkVerifier",
    "inspect_link",
    "observe",
    "outcomes_match",
    "resolve",
]
