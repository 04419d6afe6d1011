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

"""Canonical error taxonomy and structural error comparison.

Raw failures from a store are reduced to a :class:`CanonicalError` by a chain
of classifier functions. Classification looks at what went wrong (the errno
value, then the exception type) and never at message text or embedded paths,
so two stores that phrase the same failure differently compare as
equivalent.

Example::

    >>> try:
    ...     store.stat("/missing")
    ... except OSError as error:
    ...     canonicalize(error).kind
    <ErrorKind.NOT_EXIST: 'not_exist'>

Stores with their own exception types can extend the chain with
:func:`register_classifier` instead of wrapping every error in ``OSError``.
"""

from __future__ import annotations

import enum
import errno
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final

from .errors import TooManyLinksError


class ErrorKind(enum.Enum):
    """Semantic outcome of a failed operation."""

    NOT_EXIST = "not_exist"
    ALREADY_EXISTS = "already_exists"
    NOT_A_DIRECTORY = "not_a_directory"
    IS_A_DIRECTORY = "is_a_directory"
    TOO_MANY_LINKS = "too_many_links"
    PERMISSION_DENIED = "permission_denied"
    INVALID_ARGUMENT = "invalid_argument"
    OTHER = "other"


@dataclass(slots=True, frozen=True)
class CanonicalError:
    """Tagged error value.

    Attributes:
        kind: The taxonomy tag. Only the tag takes part in comparisons.
        message: Human-readable detail from the raw error, kept for reports.
    """

    kind: ErrorKind
    message: str = ""

    def __str__(self) -> str:
        if self.message:
            return f"{self.kind.value}: {self.message}"
        return self.kind.value


Classifier = Callable[[BaseException], ErrorKind | None]
"""Returns a kind for errors it recognizes and ``None`` to defer to the next."""


_ERRNO_KINDS: Final[dict[int, ErrorKind]] = {
    errno.ENOENT: ErrorKind.NOT_EXIST,
    errno.EEXIST: ErrorKind.ALREADY_EXISTS,
    errno.ENOTDIR: ErrorKind.NOT_A_DIRECTORY,
    errno.EISDIR: ErrorKind.IS_A_DIRECTORY,
    errno.ELOOP: ErrorKind.TOO_MANY_LINKS,
    errno.EACCES: ErrorKind.PERMISSION_DENIED,
    errno.EPERM: ErrorKind.PERMISSION_DENIED,
    errno.EROFS: ErrorKind.PERMISSION_DENIED,
    errno.EINVAL: ErrorKind.INVALID_ARGUMENT,
    errno.ENAMETOOLONG: ErrorKind.INVALID_ARGUMENT,
}

_TYPE_KINDS: Final[tuple[tuple[type[BaseException], ErrorKind], ...]] = (
    (TooManyLinksError, ErrorKind.TOO_MANY_LINKS),
    (FileNotFoundError, ErrorKind.NOT_EXIST),
    (FileExistsError, ErrorKind.ALREADY_EXISTS),
    (NotADirectoryError, ErrorKind.NOT_A_DIRECTORY),
    (IsADirectoryError, ErrorKind.IS_A_DIRECTORY),
    (PermissionError, ErrorKind.PERMISSION_DENIED),
)


def classify_errno(error: BaseException) -> ErrorKind | None:
    """Classify ``OSError`` instances by their ``errno`` value."""
    if isinstance(error, OSError) and error.errno is not None:
        return _ERRNO_KINDS.get(error.errno)
    return None


def classify_type(error: BaseException) -> ErrorKind | None:
    """Classify by the built-in ``OSError`` subclasses."""
    for error_type, kind in _TYPE_KINDS:
        if isinstance(error, error_type):
            return kind
    return None


def classify_value_error(error: BaseException) -> ErrorKind | None:
    """Treat ``ValueError`` (bad arguments rejected before any I/O) as invalid."""
    if isinstance(error, ValueError):
        return ErrorKind.INVALID_ARGUMENT
    return None


_lock = threading.Lock()
_extra_classifiers: list[Classifier] = []
_BUILTIN_CLASSIFIERS: Final[tuple[Classifier, ...]] = (
    classify_errno,
    classify_type,
    classify_value_error,
)


def register_classifier(classifier: Classifier) -> Callable[[], None]:
    """Add ``classifier`` ahead of the built-in chain.

    Registered classifiers run in registration order before the built-ins, so a
    store can map its own exception types onto the taxonomy.

    Returns:
        A callable that unregisters the classifier.
    """

    with _lock:
        _extra_classifiers.append(classifier)

    def unregister() -> None:
        with _lock:
            if classifier in _extra_classifiers:
                _extra_classifiers.remove(classifier)

    return unregister


def classify(error: BaseException) -> ErrorKind:
    """Return the taxonomy tag for ``error`` (``ErrorKind.OTHER`` when unknown)."""

    with _lock:
        chain = (*_extra_classifiers, *_BUILTIN_CLASSIFIERS)
    for classifier in chain:
        kind = classifier(error)
        if kind is not None:
            return kind
    return ErrorKind.OTHER


def canonicalize(error: BaseException | None) -> CanonicalError | None:
    """Reduce a raw operation result to a :class:`CanonicalError`.

    Args:
        error: The exception an operation raised, or ``None`` for success.

    Returns:
        ``None`` for success, otherwise the canonical error.
    """

    if error is None:
        return None
    return CanonicalError(kind=classify(error), message=_message(error))


def equivalent(a: CanonicalError | None, b: CanonicalError | None) -> bool:
    """True iff both results succeeded or both failed with the same tag.

    Messages, paths and exception types are ignored.
    """

    if a is None or b is None:
        return a is None and b is None
    return a.kind is b.kind


def describe(result: CanonicalError | None) -> str:
    return "success" if result is None else result.kind.value


def describe_mismatch(
    expected: CanonicalError | None, observed: CanonicalError | None
) -> str | None:
    """Explain how ``observed`` differs from ``expected``.

    Returns:
        ``None`` when the two are equivalent, otherwise a one-line description.
    """

    if equivalent(expected, observed):
        return None
    detail = f" ({observed.message})" if observed is not None and observed.message else ""
    return f"expected {describe(expected)}, got {describe(observed)}{detail}"


def _message(error: BaseException) -> str:
    if isinstance(error, OSError) and error.strerror:
        return error.strerror
    return str(error) or type(error).__name__


__all__ = [
    "CanonicalError",
    "Classifier",
    "ErrorKind",
    "canonicalize",
    "classify",
    "classify_errno",
    "classify_type",
    "classify_value_error",
    "describe",
    "describe_mismatch",
    "equivalent",
    "register_classifier",
]
