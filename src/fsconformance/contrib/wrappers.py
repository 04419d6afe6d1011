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

"""Transformation layers over a base ``Store``.

These are the wrapper candidates the differential verifier is exercised
with:

- ``ReadOnlyStore``: rejects every mutation with ``EROFS``.
- ``CompressedStore``: stores file content as independently compressed zlib
  chunks, so raw bytes in the base store differ from logical content.
- ``SymlinkBlockingStore``: hides the base store's symlink capability.

Example::

    from fsconformance.contrib import CompressedStore, MemoryStore
    from fsconformance.wrapper import TransformContract, WrapperSuite

    suite = WrapperSuite(
        factory=CompressedStore,
        base=MemoryStore(),
        contract=TransformContract(transforms_data=True, transforms_meta=True),
    )
    report = suite.run()
"""

from __future__ import annotations

import dataclasses
import errno
import io
import struct
import zlib
from collections.abc import Sequence
from types import TracebackType
from typing import Final, Self, override

from ..errors import os_error, permission_denied
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
    SymlinkOps,
    TimestampOps,
    can_read,
    can_write,
)

__all__ = [
    "CompressedStore",
    "ReadOnlyStore",
    "StoreWrapper",
    "SymlinkBlockingStore",
    "decode_chunks",
    "encode_chunks",
]

DEFAULT_CHUNK_SIZE: Final[int] = 4096
_LENGTH = struct.Struct(">I")


class StoreWrapper:
    """Delegates every ``Store`` operation to ``base``.

    Subclasses override the operations they transform. ``sub`` re-wraps the
    base store's view with :meth:`rewrap`.
    """

    def __init__(self, base: Store) -> None:
        super().__init__()
        self.base = base

    def rewrap(self, base: Store) -> Store:
        return type(self)(base)

    def open_file(
        self,
        path: str,
        flags: OpenFlag = OpenFlag.RDONLY,
        mode: int = DEFAULT_FILE_MODE,
    ) -> File:
        return self.base.open_file(path, flags, mode)

    def create(self, path: str) -> File:
        return self.open_file(path, OpenFlag.RDWR | OpenFlag.CREATE | OpenFlag.TRUNC)

    def open(self, path: str) -> File:
        return self.open_file(path, OpenFlag.RDONLY)

    def stat(self, path: str) -> FileInfo:
        return self.base.stat(path)

    def remove(self, path: str) -> None:
        self.base.remove(path)

    def remove_all(self, path: str) -> None:
        self.base.remove_all(path)

    def rename(self, old: str, new: str) -> None:
        self.base.rename(old, new)

    def mkdir(self, path: str, mode: int = DEFAULT_DIR_MODE) -> None:
        self.base.mkdir(path, mode)

    def mkdir_all(self, path: str, mode: int = DEFAULT_DIR_MODE) -> None:
        self.base.mkdir_all(path, mode)

    def truncate(self, path: str, size: int) -> None:
        self.base.truncate(path, size)

    def read_dir(self, path: str) -> Sequence[DirEntry]:
        return self.base.read_dir(path)

    def read_file(self, path: str) -> bytes:
        with self.open(path) as handle:
            return handle.read()

    def sub(self, path: str) -> Store:
        return self.rewrap(self.base.sub(path))

    def temp_dir(self) -> str:
        return self.base.temp_dir()

    def symlinks(self) -> SymlinkOps | None:
        return self.base.symlinks()

    def hard_links(self) -> HardLinkOps | None:
        return self.base.hard_links()

    def permissions(self) -> PermissionOps | None:
        return self.base.permissions()

    def timestamps(self) -> TimestampOps | None:
        return self.base.timestamps()

    @override
    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.base!r})"


# ---------------------------------------------------------------------------
# Read-only
# ---------------------------------------------------------------------------

_MUTATING_FLAGS: Final[OpenFlag] = (
    OpenFlag.WRONLY | OpenFlag.RDWR | OpenFlag.APPEND | OpenFlag.CREATE | OpenFlag.TRUNC
)


def _read_only(path: str) -> PermissionError:
    return permission_denied(path, errno.EROFS)


class _ReadOnlySymlinks:
    __slots__ = ("_ops",)

    def __init__(self, ops: SymlinkOps) -> None:
        self._ops = ops

    def symlink(self, target: str, link: str) -> None:
        raise _read_only(link)

    def readlink(self, path: str) -> str:
        return self._ops.readlink(path)

    def lstat(self, path: str) -> FileInfo:
        return self._ops.lstat(path)


class ReadOnlyStore(StoreWrapper):
    """Rejects every mutating operation with ``EROFS`` before touching ``base``."""

    @override
    def open_file(
        self,
        path: str,
        flags: OpenFlag = OpenFlag.RDONLY,
        mode: int = DEFAULT_FILE_MODE,
    ) -> File:
        if OpenFlag(flags) & _MUTATING_FLAGS:
            raise _read_only(path)
        return self.base.open_file(path, flags, mode)

    @override
    def remove(self, path: str) -> None:
        raise _read_only(path)

    @override
    def remove_all(self, path: str) -> None:
        raise _read_only(path)

    @override
    def rename(self, old: str, new: str) -> None:
        raise _read_only(old)

    @override
    def mkdir(self, path: str, mode: int = DEFAULT_DIR_MODE) -> None:
        raise _read_only(path)

    @override
    def mkdir_all(self, path: str, mode: int = DEFAULT_DIR_MODE) -> None:
        raise _read_only(path)

    @override
    def truncate(self, path: str, size: int) -> None:
        raise _read_only(path)

    @override
    def symlinks(self) -> SymlinkOps | None:
        ops = self.base.symlinks()
        return None if ops is None else _ReadOnlySymlinks(ops)

    @override
    def hard_links(self) -> HardLinkOps | None:
        return None

    @override
    def permissions(self) -> PermissionOps | None:
        return None

    @override
    def timestamps(self) -> TimestampOps | None:
        return None


# ---------------------------------------------------------------------------
# Compression
# ---------------------------------------------------------------------------


def encode_chunks(data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE, level: int = 6) -> bytes:
    """Compress ``data`` as length-prefixed zlib chunks of ``chunk_size`` bytes."""

    out = bytearray()
    for start in range(0, len(data), chunk_size):
        compressed = zlib.compress(data[start : start + chunk_size], level)
        out += _LENGTH.pack(len(compressed))
        out += compressed
    return bytes(out)


def decode_chunks(raw: bytes, path: str = "") -> bytes:
    """Inverse of :func:`encode_chunks`.

    Raises:
        OSError: ``raw`` is not a valid chunk stream (``EIO``).
    """

    out = bytearray()
    offset = 0
    while offset < len(raw):
        if offset + _LENGTH.size > len(raw):
            raise os_error(errno.EIO, path)
        (length,) = _LENGTH.unpack_from(raw, offset)
        offset += _LENGTH.size
        chunk = raw[offset : offset + length]
        if len(chunk) != length:
            raise os_error(errno.EIO, path)
        try:
            out += zlib.decompress(chunk)
        except zlib.error as error:
            raise os_error(errno.EIO, path) from error
        offset += length
    return bytes(out)


class _CompressedFile:
    """Buffers logical content; writes it back compressed on close."""

    __slots__ = ("_base", "_buffer", "_closed", "_dirty", "_flags", "_is_dir", "_store")

    def __init__(
        self,
        store: CompressedStore,
        base: File,
        flags: OpenFlag,
        content: bytes,
        *,
        is_dir: bool,
    ) -> None:
        self._store = store
        self._base = base
        self._flags = flags
        self._buffer = io.BytesIO(content)
        self._is_dir = is_dir
        self._dirty = False
        self._closed = False

    @property
    def name(self) -> str:
        return self._base.name

    def _check_closed(self) -> None:
        if self._closed:
            msg = "I/O operation on closed file"
            raise ValueError(msg)

    def read(self, size: int = -1) -> bytes:
        self._check_closed()
        if self._is_dir:
            return self._base.read(size)
        if not can_read(self._flags):
            raise os_error(errno.EBADF, self.name)
        return self._buffer.read(size)

    def write(self, data: bytes) -> int:
        self._check_closed()
        if not can_write(self._flags):
            raise os_error(errno.EBADF, self.name)
        if self._flags & OpenFlag.APPEND:
            _ = self._buffer.seek(0, io.SEEK_END)
        self._dirty = True
        return self._buffer.write(data)

    def seek(self, offset: int, whence: int = 0) -> int:
        self._check_closed()
        return self._buffer.seek(offset, whence)

    def truncate(self, size: int) -> None:
        self._check_closed()
        if not can_write(self._flags) or size < 0:
            raise os_error(errno.EINVAL, self.name)
        position = self._buffer.tell()
        content = self._buffer.getvalue()
        content = content[:size] + bytes(max(0, size - len(content)))
        self._buffer = io.BytesIO(content)
        _ = self._buffer.seek(position)
        self._dirty = True

    def read_dir(self, count: int = -1) -> list[DirEntry]:
        self._check_closed()
        return self._base.read_dir(count)

    def stat(self) -> FileInfo:
        self._check_closed()
        info = self._base.stat()
        if info.kind is NodeKind.FILE:
            return dataclasses.replace(info, size=len(self._buffer.getvalue()))
        return info

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if self._dirty:
                raw = encode_chunks(self._buffer.getvalue(), self._store.chunk_size)
                _ = self._base.seek(0)
                self._base.truncate(0)
                written = 0
                while written < len(raw):
                    written += self._base.write(raw[written:])
        finally:
            self._base.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class CompressedStore(StoreWrapper):
    """Stores file content compressed in ``base``.

    Logical content is only visible through this wrapper; ``stat`` reports the
    base store's (compressed) size, so metadata diverges.
    """

    def __init__(self, base: Store, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        super().__init__(base)
        if chunk_size <= 0:
            msg = "chunk_size must be positive"
            raise ValueError(msg)
        self.chunk_size = chunk_size

    @override
    def rewrap(self, base: Store) -> Store:
        return CompressedStore(base, chunk_size=self.chunk_size)

    @override
    def open_file(
        self,
        path: str,
        flags: OpenFlag = OpenFlag.RDONLY,
        mode: int = DEFAULT_FILE_MODE,
    ) -> File:
        flags = OpenFlag(flags)
        # Writers hold the base handle read-write without APPEND; content is
        # decoded up front and re-encoded whole on close.
        base_flags = flags & ~OpenFlag.APPEND
        if can_write(flags):
            base_flags = (base_flags & ~OpenFlag.ACCESS_MASK) | OpenFlag.RDWR
        base = self.base.open_file(path, base_flags, mode)
        try:
            info = base.stat()
            content = b""
            if info.kind is NodeKind.FILE and not (flags & OpenFlag.TRUNC and can_write(flags)):
                raw = base.read() if can_read(base_flags) else b""
                content = decode_chunks(raw, path)
        except BaseException:
            base.close()
            raise
        return _CompressedFile(self, base, flags, content, is_dir=info.is_dir)

    @override
    def truncate(self, path: str, size: int) -> None:
        if size < 0:
            raise os_error(errno.EINVAL, path)
        with self.open_file(path, OpenFlag.RDWR) as handle:
            handle.truncate(size)

    @override
    def read_file(self, path: str) -> bytes:
        return decode_chunks(self.base.read_file(path), path)


# ---------------------------------------------------------------------------
# Capability hiding
# ---------------------------------------------------------------------------


class SymlinkBlockingStore(StoreWrapper):
    """Reports no symlink capability, whatever the base store supports."""

    @override
    def symlinks(self) -> SymlinkOps | None:
        return None
