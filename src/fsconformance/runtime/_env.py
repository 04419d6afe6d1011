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

"""Environment variable coercion."""

from __future__ import annotations

from ..errors import ConfigurationError

_FALSE_VALUES = frozenset({"", "0", "false", "off", "no"})


def coerce_flag(value: str | None) -> bool:
    """Interpret an environment string as a boolean flag."""

    if value is None:
        return False
    return value.strip().lower() not in _FALSE_VALUES


def coerce_int(name: str, value: str | None) -> int | None:
    """Interpret an environment string as an optional positive integer.

    Raises:
        ConfigurationError: ``value`` is set but is not a positive integer.
    """

    if value is None or not value.strip():
        return None
    try:
        parsed = int(value.strip())
    except ValueError:
        msg = f"{name} must be an integer, got {value!r}"
        raise ConfigurationError(msg) from None
    if parsed <= 0:
        msg = f"{name} must be positive, got {parsed}"
        raise ConfigurationError(msg)
    return parsed


__all__ = ["coerce_flag", "coerce_int"]
