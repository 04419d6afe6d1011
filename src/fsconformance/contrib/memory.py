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

"""In-memory POSIX-like store.

``MemoryStore`` keeps an inode tree in memory and resolves paths itself
(independently of the reference resolver in :mod:`fsconformance.store`), so
it is a genuine second implementation to verify against. It supports symbolic
and hard links, permission bits, timestamps and sparse writes; each optional
behavior can be switched off to exercise capability gating.

Example usage::

    from fsconformance.contrib import MemoryStore

    store = MemoryStore()
    with store.create("/a.txt") as handle:
        handle.write(b"hello, world")
    assert store.read_file("/a.txt") == b"hello, world"
"""

from __future__ import annotations

import errno
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from types import TracebackType
from typing import Self, override

from ..capabilities import Features
from ..clock import SYSTEM_CLOCK, Clock
from ..errors import (
    TooManyLinksError,
    already_exists,
    is_a_directory,
    not_a_directory,
    not_exist,
    os_error,
    permission_denied,
)
from ..store import (
    DEFAULT_DIR_MODE,
    DEFAULT_FILE_MODE,
    MAX_LINK_DEPTH,
    PERMISSION_BITS,
    DirEntry,
    File,
    FileInfo,
    HardLinkOps,
    NodeKind,
    OpenFlag,
    PermissionOps,
    Store,
    SubStore,
    SymlinkOps,
    TimestampOps,
    can_read,
    can_write,
    components,
    is_abs,
)

__all__ = ["MemoryStore"]

_READ_BIT = 0o400
_WRITE_BIT = 0o200


# ---------------------------------------------------------------------------
# Internal Types
# ---------------------------------------------------------------------------


@dataclass(slots=True, eq=False)
class _Inode:
    """A node in the tree. Hard links share one instance."""

    kind: NodeKind
    mode: int
    modified_at: datetime
    accessed_at: datetime
    data: bytearray = field(default_factory=bytearray)
    children: dict[str, tuple[str, _Inode]] = field(default_factory=dict)
    target: str = ""
    links: int = 1

    def size(self) -> int:
        match self.kind:
            case NodeKind.FILE:
                return len(self.data)
            case NodeKind.SYMLINK:
                return len(self.target.encode("utf-8"))
            case _:
                return 0


@dataclass(slots=True, frozen=True)
class _Lookup:
    """Result of a path walk.

    ``node`` is ``None`` when only the final component is missing; ``parent``
    is then the directory it would be created in.
    """

    path: str
    name: str
    parent: _Inode | None
    node: _Inode | None


def _info(name: str, node: _Inode) -> FileInfo:
    return FileInfo(
        name=name or "/",
        size=node.size(),
        mode=node.mode & PERMISSION_BITS,
        kind=node.kind,
        modified_at=node.modified_at,
    )


# ---------------------------------------------------------------------------
# File handles
# ---------------------------------------------------------------------------


class _MemoryFile:
    """Open handle on an inode."""

    __slots__ = ("_closed", "_cursor", "_flags", "_name", "_node", "_position", "_store")

    def __init__(self, store: MemoryStore, node: _Inode, name: str, flags: OpenFlag) -> None:
        self._store = store
        self._node = node
        self._name = name
        self._flags = flags
        self._position = 0
        self._cursor = 0
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    def _check_closed(self) -> None:
        if self._closed:
            msg = "I/O operation on closed file"
            raise ValueError(msg)

    def read(self, size: int = -1) -> bytes:
        self._check_closed()
        if not can_read(self._flags):
            raise os_error(errno.EBADF, self._name)
        with self._store.lock:
            if self._node.kind is NodeKind.DIRECTORY:
                raise is_a_directory(self._name)
            data = self._node.data
            end = len(data) if size < 0 else min(len(data), self._position + size)
            chunk = bytes(data[self._position : end])
            self._position = max(self._position, end)
            self._node.accessed_at = self._store.clock.utcnow()
            return chunk

    def write(self, data: bytes) -> int:
        self._check_closed()
        if not can_write(self._flags):
            raise os_error(errno.EBADF, self._name)
        with self._store.lock:
            buffer = self._node.data
            if self._flags & OpenFlag.APPEND:
                self._position = len(buffer)
            if self._position > len(buffer):
                buffer.extend(bytes(self._position - len(buffer)))
            buffer[self._position : self._position + len(data)] = data
            self._position += len(data)
            self._node.modified_at = self._store.clock.utcnow()
            return len(data)

    def seek(self, offset: int, whence: int = 0) -> int:
        self._check_closed()
        with self._store.lock:
            match whence:
                case 0:
                    position = offset
                case 1:
                    position = self._position + offset
                case 2:
                    position = len(self._node.data) + offset
                case _:
                    raise os_error(errno.EINVAL, self._name)
            if position < 0:
                raise os_error(errno.EINVAL, self._name)
            self._position = position
            return position

    def truncate(self, size: int) -> None:
        self._check_closed()
        if not can_write(self._flags) or size < 0:
            raise os_error(errno.EINVAL, self._name)
        with self._store.lock:
            self._store.resize(self._node, size)

    def read_dir(self, count: int = -1) -> list[DirEntry]:
        self._check_closed()
        with self._store.lock:
            if self._node.kind is not NodeKind.DIRECTORY:
                raise not_a_directory(self._name)
            entries = self._store.entries(self._node)
        remaining = entries[self._cursor :]
        if count > 0:
            remaining = remaining[:count]
        self._cursor += len(remaining)
        return remaining

    def stat(self) -> FileInfo:
        self._check_closed()
        with self._store.lock:
            return _info(self._name.rsplit("/", 1)[-1], self._node)

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


# ---------------------------------------------------------------------------
# MemoryStore Implementation
# ---------------------------------------------------------------------------


class MemoryStore:
    """Thread-safe in-memory store.

    Args:
        clock: Source of modification and access times.
        symlinks: Provide the symlink capability.
        hard_links: Provide the hard link capability.
        permissions: Provide ``chmod`` and enforce owner read/write bits on open.
        timestamps: Provide ``chtimes``.
        case_sensitive: Whether names differing only in case are distinct.
    """

    def __init__(
        self,
        *,
        clock: Clock = SYSTEM_CLOCK,
        symlinks: bool = True,
        hard_links: bool = True,
        permissions: bool = True,
        timestamps: bool = True,
        case_sensitive: bool = True,
    ) -> None:
        super().__init__()
        self.clock = clock
        self.lock = threading.RLock()
        self._symlinks = symlinks
        self._hard_links = hard_links
        self._permissions = permissions
        self._timestamps = timestamps
        self._case_sensitive = case_sensitive
        self._root = self._new(NodeKind.DIRECTORY, DEFAULT_DIR_MODE)
        self.mkdir("/tmp")

    def features(self) -> Features:
        """Capabilities this instance provides."""
        return Features(
            symlinks=self._symlinks,
            hard_links=self._hard_links,
            permissions=self._permissions,
            timestamps=self._timestamps,
            case_sensitive=self._case_sensitive,
            atomic_rename=True,
            sparse_files=True,
        )

    # --- tree helpers ---

    def _new(self, kind: NodeKind, mode: int) -> _Inode:
        now = self.clock.utcnow()
        return _Inode(kind=kind, mode=mode & PERMISSION_BITS, modified_at=now, accessed_at=now)

    def _key(self, name: str) -> str:
        return name if self._case_sensitive else name.casefold()

    def _child(self, directory: _Inode, name: str) -> _Inode | None:
        entry = directory.children.get(self._key(name))
        return None if entry is None else entry[1]

    def _attach(self, directory: _Inode, name: str, node: _Inode) -> None:
        directory.children[self._key(name)] = (name, node)
        directory.modified_at = self.clock.utcnow()

    def _detach(self, directory: _Inode, name: str) -> _Inode:
        _, node = directory.children.pop(self._key(name))
        directory.modified_at = self.clock.utcnow()
        return node

    def entries(self, directory: _Inode) -> list[DirEntry]:
        """Sorted listing of ``directory``. Callers hold ``lock``."""
        return [
            DirEntry(name=name, kind=node.kind, info=_info(name, node))
            for name, node in sorted(directory.children.values(), key=lambda item: item[0])
        ]

    def resize(self, node: _Inode, size: int) -> None:
        """Truncate or zero-extend a file. Callers hold ``lock``."""
        if size < len(node.data):
            del node.data[size:]
        else:
            node.data.extend(bytes(size - len(node.data)))
        node.modified_at = self.clock.utcnow()

    def _lookup(self, path: str, *, follow: bool) -> _Lookup:
        """Walk ``path`` from the root, following links in parent positions.

        Raises:
            FileNotFoundError: A parent component is missing.
            NotADirectoryError: A parent component is not a directory.
            TooManyLinksError: More than ``MAX_LINK_DEPTH`` links were followed.
        """

        pending: deque[str] = deque(components(path))
        trail: list[tuple[str, _Inode]] = [("", self._root)]
        hops = 0

        def here() -> str:
            return "/" + "/".join(name for name, _ in trail[1:])

        while pending:
            name = pending.popleft()
            if name in {"", "."}:
                continue
            if name == "..":
                if len(trail) > 1:
                    _ = trail.pop()
                continue
            directory = trail[-1][1]
            if directory.kind is not NodeKind.DIRECTORY:
                raise not_a_directory(path)
            last = all(rest in {"", "."} for rest in pending)
            child = self._child(directory, name)
            if child is None:
                if last:
                    return _Lookup(
                        path=f"{here().rstrip('/')}/{name}",
                        name=name,
                        parent=directory,
                        node=None,
                    )
                raise not_exist(path)
            if child.kind is NodeKind.SYMLINK and (follow or not last):
                hops += 1
                if hops > MAX_LINK_DEPTH:
                    raise TooManyLinksError(path)
                if not child.target:
                    raise not_exist(path)
                if is_abs(child.target):
                    del trail[1:]
                pending.extendleft(reversed(child.target.split("/")))
                continue
            trail.append((name, child))

        name, node = trail[-1]
        parent = trail[-2][1] if len(trail) > 1 else None
        return _Lookup(path=here(), name=name, parent=parent, node=node)

    def _existing(self, path: str, *, follow: bool) -> _Lookup:
        found = self._lookup(path, follow=follow)
        if found.node is None:
            raise not_exist(path)
        return found

    def _check_access(self, node: _Inode, bits: int, path: str) -> None:
        if self._permissions and node.mode & bits != bits:
            raise permission_denied(path)

    # --- Store protocol ---

    def open_file(
        self,
        path: str,
        flags: OpenFlag = OpenFlag.RDONLY,
        mode: int = DEFAULT_FILE_MODE,
    ) -> File:
        flags = OpenFlag(flags)
        if flags & OpenFlag.ACCESS_MASK == OpenFlag.ACCESS_MASK:
            raise os_error(errno.EINVAL, path)
        exclusive = bool(flags & OpenFlag.CREATE and flags & OpenFlag.EXCL)
        with self.lock:
            found = self._lookup(path, follow=not exclusive)
            node = found.node
            if node is None:
                if not flags & OpenFlag.CREATE or found.parent is None:
                    raise not_exist(path)
                node = self._new(NodeKind.FILE, mode)
                self._attach(found.parent, found.name, node)
                return _MemoryFile(self, node, path, flags)
            if exclusive:
                raise already_exists(path)
            writes = can_write(flags) or bool(flags & OpenFlag.TRUNC)
            if node.kind is NodeKind.DIRECTORY and (writes or flags & OpenFlag.CREATE):
                raise is_a_directory(path)
            if can_read(flags):
                self._check_access(node, _READ_BIT, path)
            if writes:
                self._check_access(node, _WRITE_BIT, path)
            if flags & OpenFlag.TRUNC and node.kind is NodeKind.FILE:
                self.resize(node, 0)
            return _MemoryFile(self, node, path, flags)

    def create(self, path: str) -> File:
        return self.open_file(path, OpenFlag.RDWR | OpenFlag.CREATE | OpenFlag.TRUNC)

    def open(self, path: str) -> File:
        return self.open_file(path, OpenFlag.RDONLY)

    def stat(self, path: str) -> FileInfo:
        with self.lock:
            found = self._existing(path, follow=True)
            assert found.node is not None
            return _info(found.name, found.node)

    def remove(self, path: str) -> None:
        with self.lock:
            found = self._existing(path, follow=False)
            node = found.node
            assert node is not None
            if found.parent is None:
                raise os_error(errno.EBUSY, path)
            if node.kind is NodeKind.DIRECTORY and node.children:
                raise os_error(errno.ENOTEMPTY, path)
            _ = self._detach(found.parent, found.name)
            node.links -= 1

    def remove_all(self, path: str) -> None:
        with self.lock:
            try:
                found = self._lookup(path, follow=False)
            except FileNotFoundError:
                return
            if found.node is None:
                return
            if found.parent is None:
                found.node.children.clear()
                return
            _ = self._detach(found.parent, found.name)

    def rename(self, old: str, new: str) -> None:
        with self.lock:
            source = self._existing(old, follow=False)
            dest = self._lookup(new, follow=False)
            node = source.node
            assert node is not None
            if source.parent is None or dest.parent is None:
                raise os_error(errno.EBUSY, old if source.parent is None else new)
            if dest.node is node:
                return
            if node.kind is NodeKind.DIRECTORY:
                if dest.path.startswith(source.path.rstrip("/") + "/"):
                    raise os_error(errno.EINVAL, new)
                if dest.node is not None:
                    if dest.node.kind is not NodeKind.DIRECTORY:
                        raise not_a_directory(new)
                    if dest.node.children:
                        raise os_error(errno.ENOTEMPTY, new)
            elif dest.node is not None and dest.node.kind is NodeKind.DIRECTORY:
                raise is_a_directory(new)
            _ = self._detach(source.parent, source.name)
            if dest.node is not None:
                _ = self._detach(dest.parent, dest.name)
            self._attach(dest.parent, dest.name, node)

    def mkdir(self, path: str, mode: int = DEFAULT_DIR_MODE) -> None:
        with self.lock:
            found = self._lookup(path, follow=False)
            if found.node is not None or found.parent is None:
                raise already_exists(path)
            self._attach(found.parent, found.name, self._new(NodeKind.DIRECTORY, mode))

    def mkdir_all(self, path: str, mode: int = DEFAULT_DIR_MODE) -> None:
        with self.lock:
            current = ""
            for segment in components(path):
                current = f"{current}/{segment}"
                found = self._lookup(current, follow=True)
                if found.node is None:
                    assert found.parent is not None
                    self._attach(found.parent, found.name, self._new(NodeKind.DIRECTORY, mode))
                elif found.node.kind is not NodeKind.DIRECTORY:
                    raise not_a_directory(current)

    def truncate(self, path: str, size: int) -> None:
        with self.lock:
            found = self._existing(path, follow=True)
            node = found.node
            assert node is not None
            if node.kind is NodeKind.DIRECTORY:
                raise is_a_directory(path)
            if size < 0:
                raise os_error(errno.EINVAL, path)
            self._check_access(node, _WRITE_BIT, path)
            self.resize(node, size)

    def read_dir(self, path: str) -> list[DirEntry]:
        with self.lock:
            found = self._existing(path, follow=True)
            assert found.node is not None
            if found.node.kind is not NodeKind.DIRECTORY:
                raise not_a_directory(path)
            return self.entries(found.node)

    def read_file(self, path: str) -> bytes:
        with self.open(path) as handle:
            return handle.read()

    def sub(self, path: str) -> Store:
        return SubStore(self, path)

    def temp_dir(self) -> str:
        return "/tmp"

    def symlinks(self) -> SymlinkOps | None:
        return self if self._symlinks else None

    def hard_links(self) -> HardLinkOps | None:
        return self if self._hard_links else None

    def permissions(self) -> PermissionOps | None:
        return self if self._permissions else None

    def timestamps(self) -> TimestampOps | None:
        return self if self._timestamps else None

    # --- capability operations ---

    def symlink(self, target: str, link: str) -> None:
        with self.lock:
            found = self._lookup(link, follow=False)
            if found.node is not None or found.parent is None:
                raise already_exists(link)
            node = self._new(NodeKind.SYMLINK, 0o777)
            node.target = target
            self._attach(found.parent, found.name, node)

    def readlink(self, path: str) -> str:
        with self.lock:
            found = self._existing(path, follow=False)
            assert found.node is not None
            if found.node.kind is not NodeKind.SYMLINK:
                raise os_error(errno.EINVAL, path)
            return found.node.target

    def lstat(self, path: str) -> FileInfo:
        with self.lock:
            found = self._existing(path, follow=False)
            assert found.node is not None
            return _info(found.name, found.node)

    def link(self, existing: str, new: str) -> None:
        with self.lock:
            source = self._existing(existing, follow=False)
            node = source.node
            assert node is not None
            if node.kind is NodeKind.DIRECTORY:
                raise permission_denied(existing, errno.EPERM)
            dest = self._lookup(new, follow=False)
            if dest.node is not None or dest.parent is None:
                raise already_exists(new)
            node.links += 1
            self._attach(dest.parent, dest.name, node)

    def chmod(self, path: str, mode: int) -> None:
        self._update(path, lambda node: setattr(node, "mode", mode & PERMISSION_BITS))

    def chtimes(self, path: str, accessed: datetime, modified: datetime) -> None:
        def apply(node: _Inode) -> None:
            node.accessed_at = accessed
            node.modified_at = modified

        self._update(path, apply)

    def _update(self, path: str, apply: Callable[[_Inode], None]) -> None:
        with self.lock:
            found = self._existing(path, follow=True)
            assert found.node is not None
            apply(found.node)

    @override
    def __repr__(self) -> str:
        return f"MemoryStore(case_sensitive={self._case_sensitive})"
