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

"""Capability model: which optional behaviors a candidate store claims.

A :class:`Features` value is built once per run, from a preset or explicit
flags, and never mutated. Suites consult it before entering a gated group; a
``False`` flag means the group is skipped, never that it fails.

Example::

    >>> features = resolve_features("minimal", symlinks=True)
    >>> features.enabled()
    ('symlinks', 'case_sensitive')
    >>> parse_features("default,-hard_links").hard_links
    False
"""

from __future__ import annotations

import dataclasses
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Final, Literal, cast

from .errors import ConfigurationError

Preset = Literal["default", "minimal", "os"]

FEATURES_ENV: Final[str] = "FSCONFORMANCE_FEATURES"


@dataclass(slots=True, frozen=True)
class Features:
    """Optional behaviors a store claims to support.

    Attributes:
        symlinks: ``symlink``, ``readlink`` and ``lstat``.
        hard_links: ``link``.
        permissions: ``chmod`` and permission bits in ``stat``.
        timestamps: ``chtimes`` and modification times in ``stat``.
        case_sensitive: ``A`` and ``a`` name different entries.
        atomic_rename: ``rename`` replaces an existing destination in one step.
        sparse_files: Writing past the end leaves a zero-filled hole.
        large_files: Files beyond 2 GiB. No group exercises this flag.
    """

    symlinks: bool = False
    hard_links: bool = False
    permissions: bool = False
    timestamps: bool = False
    case_sensitive: bool = False
    atomic_rename: bool = False
    sparse_files: bool = False
    large_files: bool = False

    def enabled(self) -> tuple[str, ...]:
        """Names of the enabled flags, in declaration order."""
        return tuple(name for name in FEATURE_NAMES if getattr(self, name))

    def count(self) -> int:
        return len(self.enabled())

    def supports(self, name: str) -> bool:
        """Return the flag called ``name``.

        Raises:
            ConfigurationError: ``name`` is not a capability.
        """
        _check_name(name)
        return bool(getattr(self, name))

    def with_overrides(self, **flags: bool) -> Features:
        """Return a copy with ``flags`` applied.

        Raises:
            ConfigurationError: A key is not a capability.
        """
        for name in flags:
            _check_name(name)
        return dataclasses.replace(self, **flags)


FEATURE_NAMES: Final[tuple[str, ...]] = tuple(field.name for field in fields(Features))

FEATURE_GROUPS: Final[Mapping[str, str]] = {
    "symlinks": "symlinks",
    "hard_links": "hard_links",
    "permissions": "permissions",
    "timestamps": "timestamps",
    "case_sensitivity": "case_sensitive",
    "atomic_rename": "atomic_rename",
    "sparse_files": "sparse_files",
}
"""Gated suite group name to the capability flag that gates it."""


def default_features() -> Features:
    """Full POSIX-like store: every flag enabled."""
    return Features(**dict.fromkeys(FEATURE_NAMES, True))


def minimal_features() -> Features:
    """Bare store: only case sensitivity."""
    return Features(case_sensitive=True)


def os_features(platform: str | None = None) -> Features:
    """Capabilities of the host operating system's filesystem.

    POSIX platforms get everything. Windows lacks reliable symlinks, hard
    links and POSIX permission bits and is case-insensitive; macOS default
    volumes are case-insensitive too.
    """
    platform = platform if platform is not None else sys.platform
    features = default_features()
    if platform.startswith("win"):
        return features.with_overrides(
            symlinks=False,
            hard_links=False,
            permissions=False,
            case_sensitive=False,
        )
    if platform == "darwin":
        return features.with_overrides(case_sensitive=False)
    return features


_PRESETS: Final[Mapping[str, Features]] = {
    "default": default_features(),
    "minimal": minimal_features(),
}


def resolve_features(
    preset: Preset | Features | None = None, **overrides: bool
) -> Features:
    """Build a :class:`Features` from a preset or value plus overrides.

    ``None`` starts from an empty set (every flag ``False``).

    Raises:
        ConfigurationError: Unknown preset or capability name.
    """
    match preset:
        case None:
            base = Features()
        case Features():
            base = preset
        case "os":
            base = os_features()
        case str() if preset in _PRESETS:
            base = _PRESETS[preset]
        case _:
            msg = f"Unknown capability preset: {preset!r}"
            raise ConfigurationError(msg)
    return base.with_overrides(**overrides) if overrides else base


def parse_features(text: str) -> Features:
    """Parse a comma separated capability string.

    Items are a preset name (``default``, ``minimal``, ``os``, ``none``), a
    capability name (enable), ``+name`` (enable) or ``-name`` (disable). A
    preset may only appear first.

    Example::

        >>> parse_features("minimal,+symlinks,-case_sensitive").enabled()
        ('symlinks',)

    Raises:
        ConfigurationError: Malformed item or unknown name.
    """
    items = [item.strip() for item in text.split(",") if item.strip()]
    features = Features()
    for index, item in enumerate(items):
        lowered = item.lower()
        if lowered in {"default", "minimal", "os", "none"}:
            if index:
                msg = f"Preset {item!r} must come first in {text!r}"
                raise ConfigurationError(msg)
            features = (
                Features() if lowered == "none" else resolve_features(cast(Preset, lowered))
            )
            continue
        enable = not lowered.startswith("-")
        name = lowered.lstrip("+-")
        features = features.with_overrides(**{name: enable})
    return features


def features_from_env(
    env: Mapping[str, str] | None = None, default: Features | None = None
) -> Features:
    """Read ``FSCONFORMANCE_FEATURES`` or fall back to ``default``.

    ``default`` itself defaults to :func:`default_features`.
    """
    env = env if env is not None else os.environ
    raw = env.get(FEATURES_ENV)
    if raw is None or not raw.strip():
        return default if default is not None else default_features()
    return parse_features(raw)


def _check_name(name: str) -> None:
    if name not in FEATURE_NAMES:
        msg = f"Unknown capability: {name!r}. Expected one of {', '.join(FEATURE_NAMES)}."
        raise ConfigurationError(msg)


__all__ = [
    "FEATURES_ENV",
    "FEATURE_GROUPS",
    "FEATURE_NAMES",
    "Features",
    "Preset",
    "default_features",
    "features_from_env",
    "minimal_features",
    "os_features",
    "parse_features",
    "resolve_features",
]
