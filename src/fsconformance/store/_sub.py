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

"""Sub-tree views over any ``Store``.

A ``SubStore`` re-roots a base store at one of its directories. Paths are
cleaned and clamped at the view root, absolute link targets are translated in
both directions, and every following operation is resolved inside the view
with the reference resolver before it reaches the base store, so a link can
never lead outside the view.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import override

from ..errors import TooManyLinksError, not_a_directory, not_exist
from ._path import (
    ROOT,
    clean,
    is_abs,
    is_under,
    join,
    relative_to,
    resolve_link_target,
    split,
)
from ._protocol import (
    File,
    HardLinkOps,
    PermissionOps,
    Store,
    SymlinkOps,
    TimestampOps,
)
from ._resolve import MAX_LINK_DEPTH, outcome_error, resolve
from ._types import (
    DEFAULT_DIR_MODE,
    DEFAULT_FILE_MODE,
    DirEntry,
    FileInfo,
    NodeKind,
    OpenFlag,
)


class _ViewReader:
    """Non-following primitives in view coordinates, without parent resolution.

    Only valid for paths whose parent components are already resolved, which is
    exactly how :func:`resolve` calls them.
    """

    __slots__ = ("_links", "_view")

    def __init__(self, view: SubStore, links: SymlinkOps) -> None:
        self._view = view
        self._links = links

    def lstat(self, path: str) -> FileInfo:
        return self._links.lstat(self._view.to_base(path))

    def readlink(self, path: str) -> str:
        return self._view.target_from_base(self._links.readlink(self._view.to_base(path)))


class SubStore:
    """View of ``base`` rooted at directory ``root``.

    Example::

        workspace = store.sub("/tmp/run")
        workspace.mkdir("/data")  # creates /tmp/run/data on the base store

    Raises:
        FileNotFoundError: ``root`` does not exist on ``base``.
        NotADirectoryError: ``root`` is not a directory.
    """

    def __init__(self, base: Store, root: str) -> None:
        super().__init__()
        links = base.symlinks()
        if links is not None:
            outcome = resolve(links, root)
            if not outcome.ok:
                raise outcome_error(outcome, root)
            is_dir = outcome.kind is NodeKind.DIRECTORY
            resolved_root = outcome.path
        else:
            resolved_root = clean(root)
            is_dir = base.stat(resolved_root).is_dir
        if not is_dir:
            raise not_a_directory(root)
        self._base = base
        self._root = resolved_root
        self._base_links = links
        self._reader = _ViewReader(self, links) if links is not None else None

    @property
    def root(self) -> str:
        """Directory on the base store this view is rooted at."""
        return self._root

    def to_base(self, path: str) -> str:
        """Map a view path onto the base store (lexically, clamped at the root)."""
        return join(self._root, clean(path))

    def target_to_base(self, target: str) -> str:
        if is_abs(target):
            return self.to_base(target)
        return target

    def target_from_base(self, target: str) -> str:
        if is_abs(target) and is_under(target, self._root):
            return relative_to(target, self._root)
        return target

    def locate(self, path: str, *, follow: bool) -> str:
        """Resolve ``path`` inside the view and return the base path to act on.

        Parent components are always resolved. With ``follow`` a final link is
        dereferenced too; a dangling chain yields its missing terminal path so
        creating operations land on the link target.
        """

        if self._reader is None:
            return self.to_base(path)

        parent_path, name = split(path)
        hops = 0
        while name:
            parent = resolve(self._reader, parent_path)
            if not parent.ok:
                raise outcome_error(parent, path)
            if parent.kind is not NodeKind.DIRECTORY:
                raise not_a_directory(path)
            leaf = join(parent.path, name)
            if not follow:
                return self.to_base(leaf)
            try:
                info = self._reader.lstat(leaf)
            except FileNotFoundError:
                return self.to_base(leaf)
            if not info.is_symlink:
                return self.to_base(leaf)
            hops += 1
            if hops > MAX_LINK_DEPTH:
                raise TooManyLinksError(path)
            link_target = self._reader.readlink(leaf)
            if not link_target:
                raise not_exist(path)
            target = resolve_link_target(leaf, link_target)
            parent_path, name = split(target)
        return self.to_base(ROOT)

    # --- Store protocol ---

    def open_file(
        self,
        path: str,
        flags: OpenFlag = OpenFlag.RDONLY,
        mode: int = DEFAULT_FILE_MODE,
    ) -> File:
        exclusive = OpenFlag.CREATE | OpenFlag.EXCL
        follow = (OpenFlag(flags) & exclusive) != exclusive
        return self._base.open_file(self.locate(path, follow=follow), flags, mode)

    def create(self, path: str) -> File:
        return self.open_file(
            path, OpenFlag.RDWR | OpenFlag.CREATE | OpenFlag.TRUNC, DEFAULT_FILE_MODE
        )

    def open(self, path: str) -> File:
        return self.open_file(path, OpenFlag.RDONLY)

    def stat(self, path: str) -> FileInfo:
        return self._base.stat(self.locate(path, follow=True))

    def remove(self, path: str) -> None:
        self._base.remove(self.locate(path, follow=False))

    def remove_all(self, path: str) -> None:
        try:
            target = self.locate(path, follow=False)
        except FileNotFoundError:
            return
        self._base.remove_all(target)

    def rename(self, old: str, new: str) -> None:
        self._base.rename(
            self.locate(old, follow=False), self.locate(new, follow=False)
        )

    def mkdir(self, path: str, mode: int = DEFAULT_DIR_MODE) -> None:
        self._base.mkdir(self.locate(path, follow=False), mode)

    def mkdir_all(self, path: str, mode: int = DEFAULT_DIR_MODE) -> None:
        current = ROOT
        for segment in clean(path).split("/")[1:]:
            if not segment:
                continue
            current = join(current, segment)
            try:
                info = self.stat(current)
            except FileNotFoundError:
                try:
                    self.mkdir(current, mode)
                except FileExistsError:
                    info = self.stat(current)
                else:
                    continue
            if not info.is_dir:
                raise not_a_directory(current)

    def truncate(self, path: str, size: int) -> None:
        self._base.truncate(self.locate(path, follow=True), size)

    def read_dir(self, path: str) -> Sequence[DirEntry]:
        return self._base.read_dir(self.locate(path, follow=True))

    def read_file(self, path: str) -> bytes:
        return self._base.read_file(self.locate(path, follow=True))

    def sub(self, path: str) -> Store:
        return SubStore(self, path)

    def temp_dir(self) -> str:
        return ROOT

    def symlinks(self) -> SymlinkOps | None:
        if self._base_links is None:
            return None
        return _SubSymlinks(self, self._base_links)

    def hard_links(self) -> HardLinkOps | None:
        ops = self._base.hard_links()
        return None if ops is None else _SubHardLinks(self, ops)

    def permissions(self) -> PermissionOps | None:
        ops = self._base.permissions()
        return None if ops is None else _SubPermissions(self, ops)

    def timestamps(self) -> TimestampOps | None:
        ops = self._base.timestamps()
        return None if ops is None else _SubTimestamps(self, ops)

    @override
    def __repr__(self) -> str:
        return f"SubStore({self._base!r}, {self._root!r})"


class _SubSymlinks:
    __slots__ = ("_ops", "_view")

    def __init__(self, view: SubStore, ops: SymlinkOps) -> None:
        self._view = view
        self._ops = ops

    def symlink(self, target: str, link: str) -> None:
        self._ops.symlink(
            self._view.target_to_base(target),
            self._view.locate(link, follow=False),
        )

    def readlink(self, path: str) -> str:
        base_path = self._view.locate(path, follow=False)
        return self._view.target_from_base(self._ops.readlink(base_path))

    def lstat(self, path: str) -> FileInfo:
        return self._ops.lstat(self._view.locate(path, follow=False))


class _SubHardLinks:
    __slots__ = ("_ops", "_view")

    def __init__(self, view: SubStore, ops: HardLinkOps) -> None:
        self._view = view
        self._ops = ops

    def link(self, existing: str, new: str) -> None:
        locate = self._view.locate
        self._ops.link(locate(existing, follow=False), locate(new, follow=False))


class _SubPermissions:
    __slots__ = ("_ops", "_view")

    def __init__(self, view: SubStore, ops: PermissionOps) -> None:
        self._view = view
        self._ops = ops

    def chmod(self, path: str, mode: int) -> None:
        self._ops.chmod(self._view.locate(path, follow=True), mode)


class _SubTimestamps:
    __slots__ = ("_ops", "_view")

    def __init__(self, view: SubStore, ops: TimestampOps) -> None:
        self._view = view
        self._ops = ops

    def chtimes(self, path: str, accessed: datetime, modified: datetime) -> None:
        self._ops.chtimes(
            self._view.locate(path, follow=True),
            accessed,
            modified,
        )


__all__ = ["SubStore"]
