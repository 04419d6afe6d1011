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

"""Host operating system store.

``HostStore`` maps store paths one-to-one onto host paths through the ``os``
module. Store paths are cleaned lexically first and relative paths start at
``/``, so no operation depends on the process working directory. Confine a
run to a directory with ``HostStore().sub(directory)``.

Example usage::

    from fsconformance.contrib import HostStore

    store = HostStore()
    workspace = store.sub(tempfile.mkdtemp())
    workspace.mkdir_all("/data/raw")
"""

from __future__ import annotations

import errno
import os
import shutil
import stat as stat_module
import tempfile
from datetime import UTC, datetime
from types import TracebackType
from typing import Final, Self, override

from ..capabilities import Features, os_features
from ..errors import not_a_directory, os_error
from ..store import (
    DEFAULT_DIR_MODE,
    DEFAULT_FILE_MODE,
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
    basename,
    clean,
)

__all__ = ["HostStore"]

_FLAG_MAP: Final[tuple[tuple[OpenFlag, int], ...]] = (
    (OpenFlag.WRONLY, os.O_WRONLY),
    (OpenFlag.RDWR, os.O_RDWR),
    (OpenFlag.APPEND, os.O_APPEND),
    (OpenFlag.CREATE, os.O_CREAT),
    (OpenFlag.EXCL, os.O_EXCL),
    (OpenFlag.SYNC, getattr(os, "O_SYNC", 0)),
    (OpenFlag.TRUNC, os.O_TRUNC),
)
_READ_CHUNK = 64 * 1024


def _os_flags(flags: OpenFlag) -> int:
    result = os.O_RDONLY | getattr(os, "O_CLOEXEC", 0)
    for flag, native in _FLAG_MAP:
        if flags & flag:
            result |= native
    return result


def _kind(mode: int) -> NodeKind:
    if stat_module.S_ISLNK(mode):
        return NodeKind.SYMLINK
    if stat_module.S_ISDIR(mode):
        return NodeKind.DIRECTORY
    if stat_module.S_ISREG(mode):
        return NodeKind.FILE
    return NodeKind.OTHER


def _info(name: str, result: os.stat_result) -> FileInfo:
    return FileInfo(
        name=name or "/",
        size=result.st_size,
        mode=stat_module.S_IMODE(result.st_mode),
        kind=_kind(result.st_mode),
        modified_at=datetime.fromtimestamp(result.st_mtime, UTC),
    )


def _scan(path: str) -> list[DirEntry]:
    entries: list[DirEntry] = []
    with os.scandir(path) as iterator:
        for entry in iterator:
            result = entry.stat(follow_symlinks=False)
            info = _info(entry.name, result)
            entries.append(DirEntry(name=entry.name, kind=_kind(result.st_mode), info=info))
    return sorted(entries, key=lambda entry: entry.name)


class _HostFile:
    """Open file descriptor."""

    __slots__ = ("_closed", "_cursor", "_fd", "_name")

    def __init__(self, fd: int, name: str) -> None:
        self._fd = fd
        self._name = name
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
        if size >= 0:
            return os.read(self._fd, size)
        chunks: list[bytes] = []
        while chunk := os.read(self._fd, _READ_CHUNK):
            chunks.append(chunk)
        return b"".join(chunks)

    def write(self, data: bytes) -> int:
        self._check_closed()
        return os.write(self._fd, data)

    def seek(self, offset: int, whence: int = 0) -> int:
        self._check_closed()
        return os.lseek(self._fd, offset, whence)

    def truncate(self, size: int) -> None:
        self._check_closed()
        os.ftruncate(self._fd, size)

    def read_dir(self, count: int = -1) -> list[DirEntry]:
        self._check_closed()
        if not stat_module.S_ISDIR(os.fstat(self._fd).st_mode):
            raise not_a_directory(self._name)
        remaining = _scan(self._name)[self._cursor :]
        if count > 0:
            remaining = remaining[:count]
        self._cursor += len(remaining)
        return remaining

    def stat(self) -> FileInfo:
        self._check_closed()
        return _info(basename(self._name), os.fstat(self._fd))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            os.close(self._fd)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class HostStore:
    """The host filesystem as a ``Store``.

    Every capability query returns the store itself; on platforms lacking a
    behavior the corresponding ``os`` call raises and the failure is reported
    against the case that needed it. Use :meth:`features` for what the
    platform is expected to support.
    """

    def __init__(self, *, temp_dir: str | None = None) -> None:
        super().__init__()
        self._temp_dir = clean(temp_dir) if temp_dir is not None else tempfile.gettempdir()

    def features(self) -> Features:
        return os_features()

    def open_file(
        self,
        path: str,
        flags: OpenFlag = OpenFlag.RDONLY,
        mode: int = DEFAULT_FILE_MODE,
    ) -> File:
        flags = OpenFlag(flags)
        if flags & OpenFlag.ACCESS_MASK == OpenFlag.ACCESS_MASK:
            raise os_error(errno.EINVAL, path)
        host_path = clean(path)
        return _HostFile(os.open(host_path, _os_flags(flags), mode), host_path)

    def create(self, path: str) -> File:
        return self.open_file(path, OpenFlag.RDWR | OpenFlag.CREATE | OpenFlag.TRUNC)

    def open(self, path: str) -> File:
        return self.open_file(path, OpenFlag.RDONLY)

    def stat(self, path: str) -> FileInfo:
        host_path = clean(path)
        return _info(basename(host_path), os.stat(host_path))

    def remove(self, path: str) -> None:
        host_path = clean(path)
        if stat_module.S_ISDIR(os.lstat(host_path).st_mode):
            os.rmdir(host_path)
        else:
            os.unlink(host_path)

    def remove_all(self, path: str) -> None:
        host_path = clean(path)
        try:
            result = os.lstat(host_path)
        except FileNotFoundError:
            return
        if stat_module.S_ISDIR(result.st_mode):
            shutil.rmtree(host_path)
        else:
            os.unlink(host_path)

    def rename(self, old: str, new: str) -> None:
        os.rename(clean(old), clean(new))

    def mkdir(self, path: str, mode: int = DEFAULT_DIR_MODE) -> None:
        os.mkdir(clean(path), mode)

    def mkdir_all(self, path: str, mode: int = DEFAULT_DIR_MODE) -> None:
        host_path = clean(path)
        try:
            os.makedirs(host_path, mode, exist_ok=True)
        except FileExistsError:
            raise not_a_directory(host_path) from None

    def truncate(self, path: str, size: int) -> None:
        os.truncate(clean(path), size)

    def read_dir(self, path: str) -> list[DirEntry]:
        return _scan(clean(path))

    def read_file(self, path: str) -> bytes:
        with self.open(path) as handle:
            return handle.read()

    def sub(self, path: str) -> Store:
        return SubStore(self, path)

    def temp_dir(self) -> str:
        return self._temp_dir

    def symlinks(self) -> SymlinkOps | None:
        return self

    def hard_links(self) -> HardLinkOps | None:
        return self

    def permissions(self) -> PermissionOps | None:
        return self

    def timestamps(self) -> TimestampOps | None:
        return self

    # --- capability operations ---

    def symlink(self, target: str, link: str) -> None:
        os.symlink(target, clean(link))

    def readlink(self, path: str) -> str:
        return os.readlink(clean(path))

    def lstat(self, path: str) -> FileInfo:
        host_path = clean(path)
        return _info(basename(host_path), os.lstat(host_path))

    def link(self, existing: str, new: str) -> None:
        os.link(clean(existing), clean(new), follow_symlinks=False)

    def chmod(self, path: str, mode: int) -> None:
        os.chmod(clean(path), mode)

    def chtimes(self, path: str, accessed: datetime, modified: datetime) -> None:
        os.utime(
            clean(path),
            ns=(_to_ns(accessed), _to_ns(modified)),
        )

    @override
    def __repr__(self) -> str:
        return "HostStore()"


def _to_ns(moment: datetime) -> int:
    return int(moment.timestamp() * 1_000_000_000)
