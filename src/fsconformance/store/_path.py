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

"""Lexical path utilities for store paths.

Store paths are ``/``-separated strings. There is no working directory: a
relative path is interpreted against the store root, so ``clean("a/b")`` and
``clean("/a/b")`` name the same node.

Functions:
    clean: Lexically normalize a path into absolute form
    join: Join segments and clean the result
    split: Split a cleaned path into (directory, name)
    dirname / basename: The two halves of ``split``
    is_abs: Whether a raw path string starts at the root
    is_under: Whether a path lies inside a base directory
    components: Non-empty segments of a cleaned path
    resolve_link_target: Where a link's target string points
    validate_path_input: Reject strings no store should ever receive
"""

from __future__ import annotations

from typing import Final

from ..errors import InvalidInputError

SEPARATOR: Final[str] = "/"
ROOT: Final[str] = "/"


def clean(path: str) -> str:
    """Lexically normalize ``path``.

    Collapses repeated separators, drops ``.`` segments, applies ``..``
    against the preceding segment and clamps ``..`` at the root.

    Examples:
        >>> clean("a//b/./c/")
        '/a/b/c'
        >>> clean("/../../etc")
        '/etc'
        >>> clean("")
        '/'
    """
    result: list[str] = []
    for segment in path.split(SEPARATOR):
        if not segment or segment == ".":
            continue
        if segment == "..":
            if result:
                _ = result.pop()
            continue
        result.append(segment)
    return ROOT + SEPARATOR.join(result)


def join(*parts: str) -> str:
    """Join ``parts`` with separators and clean the result."""
    return clean(SEPARATOR.join(part for part in parts if part))


def split(path: str) -> tuple[str, str]:
    """Split ``path`` into its cleaned parent directory and final name.

    The root splits into ``("/", "")``.
    """
    cleaned = clean(path)
    if cleaned == ROOT:
        return ROOT, ""
    head, _, tail = cleaned.rpartition(SEPARATOR)
    return head or ROOT, tail


def dirname(path: str) -> str:
    return split(path)[0]


def basename(path: str) -> str:
    return split(path)[1]


def is_abs(path: str) -> bool:
    return path.startswith(SEPARATOR)


def components(path: str) -> list[str]:
    """Return the non-empty segments of ``clean(path)``."""
    cleaned = clean(path)
    return [] if cleaned == ROOT else cleaned[1:].split(SEPARATOR)


def is_under(path: str, base: str) -> bool:
    """Return True when ``path`` is ``base`` or lies inside it (lexically)."""
    path = clean(path)
    base = clean(base)
    if base == ROOT:
        return True
    return path == base or path.startswith(base + SEPARATOR)


def relative_to(path: str, base: str) -> str:
    """Re-root ``path`` (which must lie under ``base``) at ``/``.

    Raises:
        ValueError: ``path`` is not under ``base``.
    """
    path = clean(path)
    base = clean(base)
    if not is_under(path, base):
        msg = f"{path!r} is not under {base!r}"
        raise ValueError(msg)
    if base == ROOT:
        return path
    return clean(path[len(base) :])


def resolve_link_target(link_path: str, target: str) -> str:
    """Return the path a link at ``link_path`` with ``target`` points at.

    An absolute target stands alone. A relative target is resolved against the
    directory containing the link, never against the link path itself.

    Examples:
        >>> resolve_link_target("/dir/link", "file")
        '/dir/file'
        >>> resolve_link_target("/dir/sub/link", "../file")
        '/dir/file'
    """
    if is_abs(target):
        return clean(target)
    return join(dirname(link_path), target)


def validate_path_input(value: str) -> str:
    """Reject path strings that must never reach a store.

    Args:
        value: Raw path string.

    Returns:
        ``value`` unchanged.

    Raises:
        InvalidInputError: ``value`` is empty, contains a NUL byte or is not
            encodable as UTF-8 (lone surrogates).
    """
    if not value:
        msg = "Path must not be empty."
        raise InvalidInputError(msg)
    if "\x00" in value:
        msg = "Path must not contain NUL bytes."
        raise InvalidInputError(msg)
    try:
        _ = value.encode("utf-8")
    except UnicodeEncodeError as error:
        msg = f"Path is not valid UTF-8: {error.reason}"
        raise InvalidInputError(msg) from None
    return value


__all__ = [
    "ROOT",
    "SEPARATOR",
    "basename",
    "clean",
    "components",
    "dirname",
    "is_abs",
    "is_under",
    "join",
    "relative_to",
    "resolve_link_target",
    "split",
    "validate_path_input",
]
