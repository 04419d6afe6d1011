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

"""Base exception hierarchy for :mod:`fsconformance`.

Verification mismatches are never raised out of a run: they are recorded as
failures on the case that observed them. The exceptions below cover the
situations where no verification is possible at all (configuration and
setup), plus the store-side error types shared by the bundled stores.
"""

from __future__ import annotations

import errno
import os


class FsConformanceError(Exception):
    """Base class for all fsconformance exceptions.

    Example:
        Catch any library-specific error::

            try:
                report = BaselineSuite(config).run()
            except FsConformanceError as e:
                logger.error("Conformance run aborted: %s", e)

    Note:
        Subclasses may also inherit from standard exception types (e.g.,
        ``ValueError``, ``RuntimeError``) to enable more specific handling
        when needed.
    """


class ConfigurationError(FsConformanceError, ValueError):
    """Raised when a suite, capability set or harness is misconfigured.

    Common causes:
        - Unknown capability names in a feature string
        - Unknown preset names passed to ``resolve_features``
        - Non-integer values in numeric environment variables
    """


class SetupError(FsConformanceError, RuntimeError):
    """Raised when a run cannot be prepared.

    Failing to create the per-run root directory, or failing to construct a
    wrapper under test, makes every later check meaningless, so this error is
    fatal to the whole run rather than recorded against a single case.
    """


class InvalidInputError(FsConformanceError, ValueError):
    """Raised when a fuzz input is rejected before it reaches the store.

    Inputs containing NUL bytes, inputs that are not valid UTF-8 and the
    reserved names ``""``, ``"."`` and ``".."`` are rejected this way and
    counted as skipped iterations.
    """


class CaseAborted(FsConformanceError):
    """Ends the current case after a failure that makes later steps pointless.

    Raised by :meth:`fsconformance.report.CaseRecorder.abort`. The runner
    catches it, so it never escapes a group.
    """


class TooManyLinksError(OSError):
    """Raised by stores when link resolution exceeds the depth bound."""

    def __init__(self, path: str) -> None:
        super().__init__(errno.ELOOP, os.strerror(errno.ELOOP), path)


def not_exist(path: str) -> FileNotFoundError:
    """Return a ``FileNotFoundError`` carrying ``ENOENT`` for ``path``."""
    return FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)


def already_exists(path: str) -> FileExistsError:
    """Return a ``FileExistsError`` carrying ``EEXIST`` for ``path``."""
    return FileExistsError(errno.EEXIST, os.strerror(errno.EEXIST), path)


def not_a_directory(path: str) -> NotADirectoryError:
    """Return a ``NotADirectoryError`` carrying ``ENOTDIR`` for ``path``."""
    return NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), path)


def is_a_directory(path: str) -> IsADirectoryError:
    """Return an ``IsADirectoryError`` carrying ``EISDIR`` for ``path``."""
    return IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), path)


def permission_denied(path: str, code: int = errno.EACCES) -> PermissionError:
    """Return a ``PermissionError`` for ``path`` (``EACCES`` unless given)."""
    return PermissionError(code, os.strerror(code), path)


def os_error(code: int, path: str) -> OSError:
    """Return an ``OSError`` for an arbitrary errno value."""
    return OSError(code, os.strerror(code), path)


__all__ = [
    "CaseAborted",
    "ConfigurationError",
    "FsConformanceError",
    "InvalidInputError",
    "SetupError",
    "TooManyLinksError",
    "already_exists",
    "is_a_directory",
    "not_a_directory",
    "not_exist",
    "os_error",
    "permission_denied",
]
