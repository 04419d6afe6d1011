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

"""Value types shared by the ``Store`` protocol and its implementations.

Types are organized into:

- **Node metadata**: ``NodeKind``, ``FileInfo``, ``DirEntry``
- **Open flags**: ``OpenFlag`` and the ``access_mode`` helper

Constants:

- ``DEFAULT_FILE_MODE``: Permission bits for files created by ``Store.create`` (0o666)
- ``DEFAULT_DIR_MODE``: Permission bits for ``Store.mkdir`` (0o777)
- ``PERMISSION_BITS``: Mask applied to every reported mode (0o7777)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Final

DEFAULT_FILE_MODE: Final[int] = 0o666
DEFAULT_DIR_MODE: Final[int] = 0o777
PERMISSION_BITS: Final[int] = 0o7777


class NodeKind(enum.Enum):
    """Type of a node as reported by ``stat``/``lstat``."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    OTHER = "other"


class OpenFlag(enum.IntFlag):
    """Flags accepted by ``Store.open_file``.

    The low two bits select the access mode (``RDONLY``, ``WRONLY`` or
    ``RDWR``); the remaining bits modify creation and write behavior. Both
    bundled stores treat an access mode of ``3`` as ``EINVAL`` and ignore
    unknown bits.
    """

    RDONLY = 0
    WRONLY = 0x1
    RDWR = 0x2
    APPEND = 0x8
    CREATE = 0x40
    EXCL = 0x80
    SYNC = 0x100
    TRUNC = 0x200

    ACCESS_MASK = 0x3


def access_mode(flags: OpenFlag | int) -> OpenFlag:
    """Return the access-mode portion of ``flags``.

    Example::

        >>> access_mode(OpenFlag.RDWR | OpenFlag.CREATE)
        <OpenFlag.RDWR: 2>
    """

    return OpenFlag(int(flags) & OpenFlag.ACCESS_MASK)


def can_read(flags: OpenFlag | int) -> bool:
    """True when ``flags`` open a handle for reading."""
    return access_mode(flags) in {OpenFlag.RDONLY, OpenFlag.RDWR}


def can_write(flags: OpenFlag | int) -> bool:
    """True when ``flags`` open a handle for writing."""
    return access_mode(flags) in {OpenFlag.WRONLY, OpenFlag.RDWR}


@dataclass(slots=True, frozen=True)
class FileInfo:
    """Metadata for a node, returned by ``stat``, ``lstat`` and ``File.stat``.

    Attributes:
        name: Final path component (``"/"`` for the root).
        size: Size in bytes. Directories report an implementation-defined value.
        mode: Permission bits only (masked with ``PERMISSION_BITS``).
        kind: Node type.
        modified_at: Last modification time, when the store tracks it.
    """

    name: str
    size: int
    mode: int
    kind: NodeKind
    modified_at: datetime | None = None

    @property
    def is_dir(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.kind is NodeKind.FILE

    @property
    def is_symlink(self) -> bool:
        return self.kind is NodeKind.SYMLINK


@dataclass(slots=True, frozen=True)
class DirEntry:
    """Directory listing entry returned by ``read_dir``.

    ``kind`` is the entry's own type: a symlink entry reports
    ``NodeKind.SYMLINK`` whatever it points at.
    """

    name: str
    kind: NodeKind
    info: FileInfo | None = None

    @property
    def is_dir(self) -> bool:
        return self.kind is NodeKind.DIRECTORY


__all__ = [
    "DEFAULT_DIR_MODE",
    "DEFAULT_FILE_MODE",
    "PERMISSION_BITS",
    "DirEntry",
    "FileInfo",
    "NodeKind",
    "OpenFlag",
    "access_mode",
    "can_read",
    "can_write",
]
