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

"""Tests for environment value coercion."""

from __future__ import annotations

import pytest

from fsconformance.errors import ConfigurationError
from fsconformance.runtime import coerce_flag, coerce_int


@pytest.mark.parametrize("value", [None, "", "0", "false", "OFF", " no "])
def test_coerce_flag_false_values(value: str | None) -> None:
    assert coerce_flag(value) is False


@pytest.mark.parametrize("value", ["1", "true", "yes", "on", "keep"])
def test_coerce_flag_true_values(value: str) -> None:
    assert coerce_flag(value) is True


@pytest.mark.parametrize(("value", "expected"), [(None, None), ("", None), ("  ", None), ("8", 8)])
def test_coerce_int_parses_optional_values(value: str | None, expected: int | None) -> None:
    assert coerce_int("FSCONFORMANCE_MAX_PARALLEL", value) == expected


def test_coerce_int_rejects_non_integers() -> None:
    with pytest.raises(ConfigurationError, match="must be an integer"):
        _ = coerce_int("FSCONFORMANCE_MAX_PARALLEL", "four")


@pytest.mark.parametrize("value", ["0", "-3"])
def test_coerce_int_rejects_non_positive(value: str) -> None:
    with pytest.raises(ConfigurationError, match="must be positive"):
        _ = coerce_int("FSCONFORMANCE_MAX_PARALLEL", value)


def test_configuration_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        _ = coerce_int("X", "nan")
