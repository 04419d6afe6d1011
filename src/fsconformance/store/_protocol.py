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

"""Storage protocol verified by the conformance suites.

The ``Store`` protocol is the boundary between the verification engine and a
candidate implementation. Optional behaviors are exposed through typed
capability queries (``symlinks()``, ``hard_links()``, ``permissions()``,
``timestamps()``) that return an extension handle or ``None``. ``None`` always
means "not provided"; a provided capability that fails does so by raising.

Errors follow Python's ``OSError`` conventions: stores raise
``FileNotFoundError``, ``FileExistsError``, ``NotADirectoryError`` and friends,
ideally with ``errno`` set. The suites only compare canonicalized error kinds
(see :mod:`fsconformance.taxonomy`), never messages.

Implementations in ``fsconformance.contrib``:

- ``MemoryStore``: In-memory POSIX-like store
- ``HostStore``: The host operating system filesystem
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from types import TracebackType
from typing import Protocol, Self, runtime_checkable

from ._types import DEFAULT_DIR_MODE, DEFAULT_FILE_MODE, DirEntry, FileInfo, OpenFlag


@runtime_checkable
class File(Protocol):
    """Open handle returned by ``Store.open_file``.

    Writing to a handle opened read-only, or reading from one opened
    write-only, raises ``OSError`` with ``errno.EBADF``. Any operation on a
    closed handle raises ``ValueError``.
    """

    @property
    def name(self) -> str:
        """Path the handle was opened with."""
        ...

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes (all remaining bytes when negative).

        Returns ``b""`` at end of file.
        """
        ...

    def write(self, data: bytes) -> int:
        """Write ``data`` at the current position and return the byte count.

        Handles opened with ``OpenFlag.APPEND`` always write at the end.
        """
        ...

    def seek(self, offset: int, whence: int = 0) -> int: ...

    def truncate(self, size: int) -> None: ...

    def read_dir(self, count: int = -1) -> list[DirEntry]:
        """List entries of an open directory, sorted by name.

        Raises:
            NotADirectoryError: The handle refers to a file.
        """
        ...

    def stat(self) -> FileInfo: ...

    def close(self) -> None: ...

    def __enter__(self) -> Self: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None: ...


class SymlinkOps(Protocol):
    """Symbolic link operations.

    ``lstat`` and ``readlink`` are non-following: they act on the final path
    component itself. Parent components are still resolved.
    """

    def symlink(self, target: str, link: str) -> None:
        """Create ``link`` pointing at ``target``.

        ``target`` is stored verbatim; it need not exist.

        Raises:
            FileExistsError: ``link`` already exists.
        """
        ...

    def readlink(self, path: str) -> str:
        """Return the raw target string of the link at ``path``.

        Raises:
            OSError: ``path`` is not a symlink (``EINVAL``).
        """
        ...

    def lstat(self, path: str) -> FileInfo: ...


class HardLinkOps(Protocol):
    """Hard link creation."""

    def link(self, existing: str, new: str) -> None: ...


class PermissionOps(Protocol):
    """Permission bit updates."""

    def chmod(self, path: str, mode: int) -> None: ...


class TimestampOps(Protocol):
    """Access and modification time updates."""

    def chtimes(self, path: str, accessed: datetime, modified: datetime) -> None: ...


@runtime_checkable
class Store(Protocol):
    """Abstract storage interface exercised by the conformance suites.

    Paths are ``/``-separated strings. A relative path is relative to the store
    root; no operation depends on a working directory.

    Following operations (``open_file``, ``stat``, ``read_file``, ``truncate``,
    ``read_dir``) dereference symbolic links in every component. ``remove``,
    ``remove_all`` and ``rename`` act on the final component itself.

    Example::

        def copy(store: Store, source: str, dest: str) -> None:
            with store.create(dest) as handle:
                _ = handle.write(store.read_file(source))
    """

    def open_file(
        self,
        path: str,
        flags: OpenFlag = OpenFlag.RDONLY,
        mode: int = DEFAULT_FILE_MODE,
    ) -> File:
        """Open ``path`` with ``flags``, creating it with ``mode`` when asked.

        Raises:
            FileNotFoundError: Path is missing and ``CREATE`` was not given.
            FileExistsError: ``CREATE | EXCL`` and the path exists.
            IsADirectoryError: Path is a directory opened for writing.
            PermissionError: Mode bits deny the requested access.
        """
        ...

    def create(self, path: str) -> File:
        """Open ``path`` read-write, creating or truncating it."""
        ...

    def open(self, path: str) -> File:
        """Open ``path`` read-only."""
        ...

    def stat(self, path: str) -> FileInfo: ...

    def remove(self, path: str) -> None:
        """Remove a file, symlink or empty directory."""
        ...

    def remove_all(self, path: str) -> None:
        """Remove ``path`` and everything below it. Missing paths are not an error."""
        ...

    def rename(self, old: str, new: str) -> None: ...

    def mkdir(self, path: str, mode: int = DEFAULT_DIR_MODE) -> None: ...

    def mkdir_all(self, path: str, mode: int = DEFAULT_DIR_MODE) -> None:
        """Create ``path`` and any missing parents. Existing directories are fine."""
        ...

    def truncate(self, path: str, size: int) -> None: ...

    def read_dir(self, path: str) -> Sequence[DirEntry]:
        """Return the entries of ``path`` sorted by name."""
        ...

    def read_file(self, path: str) -> bytes: ...

    def sub(self, path: str) -> Store:
        """Return a view of the tree rooted at ``path``.

        Raises:
            FileNotFoundError: ``path`` does not exist.
            NotADirectoryError: ``path`` is not a directory.
        """
        ...

    def temp_dir(self) -> str:
        """Return a directory suitable for scratch data."""
        ...

    def symlinks(self) -> SymlinkOps | None: ...

    def hard_links(self) -> HardLinkOps | None: ...

    def permissions(self) -> PermissionOps | None: ...

    def timestamps(self) -> TimestampOps | None: ...


def write_file(store: Store, path: str, data: bytes) -> None:
    """Create or truncate ``path`` on ``store`` and write ``data`` to it."""

    with store.create(path) as handle:
        written = 0
        while written < len(data):
            count = handle.write(data[written:])
            if count <= 0:
                msg = f"short write to {path!r}"
                raise OSError(msg)
            written += count


def exists(store: Store, path: str) -> bool:
    """True when ``path`` exists without following a final symlink.

    Falls back to ``stat`` when the store has no symlink support.
    """

    links = store.symlinks()
    try:
        _ = links.lstat(path) if links is not None else store.stat(path)
    except FileNotFoundError:
        return False
    return True


__all__ = [
    "File",
    "HardLinkOps",
    "PermissionOps",
    "Store",
    "SymlinkOps",
    "TimestampOps",
    "exists",
    "write_file",
]
