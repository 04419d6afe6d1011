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

"""Storage protocol, value types and path helpers.

This package defines the ``Store`` protocol that candidate implementations
provide, plus the pieces every store and every suite share.

Example usage::

    from fsconformance.store import OpenFlag, Store

    def append_line(store: Store, path: str, line: bytes) -> None:
        flags = OpenFlag.WRONLY | OpenFlag.CREATE | OpenFlag.APPEND
        with store.open_file(path, flags) as handle:
            _ = handle.write(line + b"\\n")

Implementations are provided in ``fsconformance.contrib``:

- ``MemoryStore``: In-memory POSIX-like store
- ``HostStore``: Host operating system filesystem
"""

from __future__ import annotations

from ._path import (
    ROOT,
    SEPARATOR,
    basename,
    clean,
    components,
    dirname,
    is_abs,
    is_under,
    join,
    relative_to,
    resolve_link_target,
    split,
    validate_path_input,
)
from ._protocol import (
    File,
    HardLinkOps,
    PermissionOps,
    Store,
    SymlinkOps,
    TimestampOps,
    exists,
    write_file,
)
from ._resolve import (
    MAX_LINK_DEPTH,
    LinkReader,
    ResolutionOutcome,
    outcome_error,
    resolve,
)
from ._sub import SubStore
from ._types import (
    DEFAULT_DIR_MODE,
    DEFAULT_FILE_MODE,
    PERMISSION_BITS,
    DirEntry,
    FileInfo,
    NodeKind,
    OpenFlag,
    access_mode,
    can_read,
    can_write,
)

__all__ = [
    "DEFAULT_DIR_MODE",
    "DEFAULT_FILE_MODE",
    "MAX_LINK_DEPTH",
    "PERMISSION_BITS",
    "ROOT",
    "SEPARATOR",
    "DirEntry",
    "File",
    "FileInfo",
    "HardLinkOps",
    "LinkReader",
    "NodeKind",
    "OpenFlag",
    "PermissionOps",
    "ResolutionOutcome",
    "Store",
    "SubStore",
    "SymlinkOps",
    "TimestampOps",
    "access_mode",
    "basename",
    "can_read",
    "can_write",
    "clean",
    "components",
    "dirname",
    "exists",
    "is_abs",
    "is_under",
    "join",
    "outcome_error",
    "relative_to",
    "resolve",
    "resolve_link_target",
    "split",
    "validate_path_input",
    "write_file",
]
