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

"""Reference link-chain resolution.

:func:`resolve` walks a path one component at a time using only non-following
primitives (``lstat`` and ``readlink``), the way a POSIX kernel resolves a
path name. It is the ground truth the resolution verifier compares candidate
stores against, and it is what ``SubStore`` uses to keep links confined to
its view.
"""

from __future__ import annotations

import errno
from collections import deque
from dataclasses import dataclass
from typing import Final, Protocol

from ..errors import (
    TooManyLinksError,
    not_a_directory,
    not_exist,
    os_error,
    permission_denied,
)
from ..taxonomy import ErrorKind, classify
from ._path import ROOT, clean, components, dirname, is_abs, join
from ._types import FileInfo, NodeKind

MAX_LINK_DEPTH: Final[int] = 40
"""Maximum number of links followed in one resolution (Linux's ``MAXSYMLINKS``)."""


class LinkReader(Protocol):
    """The two non-following primitives resolution is built from."""

    def lstat(self, path: str) -> FileInfo: ...

    def readlink(self, path: str) -> str: ...


@dataclass(slots=True, frozen=True)
class ResolutionOutcome:
    """Result of resolving a path.

    Attributes:
        path: On success, the fully resolved path containing no links (or the
            link itself for a non-following resolution). On failure, the path
            at which resolution stopped.
        kind: Node type of the terminal node, ``None`` on failure.
        hops: Number of links followed.
        error: Failure tag, ``None`` on success.
    """

    path: str
    kind: NodeKind | None = None
    hops: int = 0
    error: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, path: str, kind: NodeKind, hops: int = 0) -> ResolutionOutcome:
        return cls(path=path, kind=kind, hops=hops)

    @classmethod
    def failure(cls, path: str, error: ErrorKind, hops: int = 0) -> ResolutionOutcome:
        return cls(path=path, error=error, hops=hops)

    def describe(self) -> str:
        if self.error is not None:
            return f"{self.error.value} at {self.path} after {self.hops} hop(s)"
        kind = self.kind.value if self.kind is not None else "?"
        return f"{kind} at {self.path} after {self.hops} hop(s)"


def resolve(
    ops: LinkReader,
    path: str,
    *,
    follow: bool = True,
    max_depth: int = MAX_LINK_DEPTH,
) -> ResolutionOutcome:
    """Resolve ``path`` component by component.

    Each prefix is ``lstat``-ed. A symlink in a parent position is always
    followed; the final component is followed only when ``follow`` is true.
    Relative targets are spliced in against the link's containing directory,
    which at that point is already fully resolved, so ``..`` in a target
    climbs the real parent.

    Resolution fails with ``ErrorKind.TOO_MANY_LINKS`` when more than
    ``max_depth`` links are followed or when the walk returns to a state it
    has already been in (same link, same remaining components).

    Args:
        ops: Non-following primitives of the store under inspection.
        path: Path to resolve. Relative paths start at the root.
        follow: Whether to dereference a final symlink.
        max_depth: Link bound.

    Returns:
        The outcome. Errors raised by ``ops`` are classified, never propagated.
    """

    pending: deque[str] = deque(components(path))
    current = ROOT
    kind = NodeKind.DIRECTORY
    hops = 0
    seen: set[tuple[str, tuple[str, ...]]] = set()

    if not pending:
        try:
            info = ops.lstat(ROOT)
        except OSError as error:
            return ResolutionOutcome.failure(ROOT, classify(error))
        return ResolutionOutcome.success(ROOT, info.kind)

    while pending:
        name = pending.popleft()
        if name in {"", "."}:
            continue
        if name == "..":
            current = dirname(current)
            kind = NodeKind.DIRECTORY
            continue

        candidate = join(current, name)
        last = not pending
        try:
            info = ops.lstat(candidate)
        except OSError as error:
            return ResolutionOutcome.failure(candidate, classify(error), hops)

        if info.is_symlink and (follow or not last):
            state = (candidate, tuple(pending))
            if state in seen or hops >= max_depth:
                return ResolutionOutcome.failure(
                    candidate, ErrorKind.TOO_MANY_LINKS, hops + 1
                )
            seen.add(state)
            hops += 1
            try:
                target = ops.readlink(candidate)
            except OSError as error:
                return ResolutionOutcome.failure(candidate, classify(error), hops)
            if not target:
                return ResolutionOutcome.failure(candidate, ErrorKind.NOT_EXIST, hops)
            if is_abs(target):
                current = ROOT
            pending.extendleft(reversed(target.split("/")))
            continue

        if not last and not info.is_dir:
            return ResolutionOutcome.failure(
                candidate, ErrorKind.NOT_A_DIRECTORY, hops
            )
        current = candidate
        kind = info.kind

    return ResolutionOutcome.success(clean(current), kind, hops)


def outcome_error(outcome: ResolutionOutcome, path: str) -> OSError:
    """Build the exception a store raises for a failed resolution of ``path``."""

    match outcome.error:
        case ErrorKind.NOT_EXIST:
            return not_exist(path)
        case ErrorKind.NOT_A_DIRECTORY:
            return not_a_directory(path)
        case ErrorKind.TOO_MANY_LINKS:
            return TooManyLinksError(path)
        case ErrorKind.PERMISSION_DENIED:
            return permission_denied(path)
        case ErrorKind.INVALID_ARGUMENT:
            return os_error(errno.EINVAL, path)
        case _:
            return os_error(errno.EIO, path)


__all__ = [
    "MAX_LINK_DEPTH",
    "LinkReader",
    "ResolutionOutcome",
    "outcome_error",
    "resolve",
]
