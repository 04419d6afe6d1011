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

"""Tests for lexical path helpers."""

from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from fsconformance.errors import InvalidInputError
from fsconformance.store import (
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

_segments = st.lists(
    st.sampled_from(["a", "b", "dir", ".", "..", "", "日本"]), min_size=0, max_size=12
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("", "/"),
        ("/", "/"),
        ("a", "/a"),
        ("a//b/./c/", "/a/b/c"),
        ("/a/b/../c", "/a/c"),
        ("/../../etc", "/etc"),
        ("..", "/"),
        ("a/../../b", "/b"),
        ("....//x", "/..../x"),
    ],
)
def test_clean_normalizes_lexically(raw: str, expected: str) -> None:
    assert clean(raw) == expected


@given(_segments)
def test_clean_is_idempotent_and_absolute(parts: list[str]) -> None:
    raw = "/".join(parts)

    cleaned = clean(raw)

    assert cleaned.startswith("/")
    assert clean(cleaned) == cleaned
    assert ".." not in components(cleaned)
    assert "." not in components(cleaned)


def test_join_skips_empty_parts_and_cleans() -> None:
    assert join("/tmp", "", "run", "../file.txt") == "/tmp/file.txt"
    assert join("relative", "child") == "/relative/child"


def test_split_dirname_basename() -> None:
    assert split("/a/b/c.txt") == ("/a/b", "c.txt")
    assert split("top") == ("/", "top")
    assert split("/") == ("/", "")
    assert dirname("/a/b") == "/a"
    assert basename("/a/b") == "b"


def test_is_abs_checks_raw_string() -> None:
    assert is_abs("/a")
    assert not is_abs("a/b")


def test_components_of_root_is_empty() -> None:
    assert components("/") == []
    assert components("/x/y/") == ["x", "y"]


def test_is_under_respects_segment_boundaries() -> None:
    assert is_under("/base/file", "/base")
    assert is_under("/base", "/base")
    assert is_under("/anything", "/")
    assert not is_under("/basement/file", "/base")


def test_relative_to_reroots_path() -> None:
    assert relative_to("/base/a/b", "/base") == "/a/b"
    assert relative_to("/base", "/base") == "/"
    assert relative_to("/x", "/") == "/x"


def test_relative_to_rejects_outside_path() -> None:
    with pytest.raises(ValueError, match="is not under"):
        _ = relative_to("/other", "/base")


@pytest.mark.parametrize(
    ("link", "target", "expected"),
    [
        ("/dir/link", "file", "/dir/file"),
        ("/dir/sub/link", "../file", "/dir/file"),
        ("/dir/link", "/abs/target", "/abs/target"),
        ("/link", "../../escape", "/escape"),
    ],
)
def test_resolve_link_target_uses_containing_directory(
    link: str, target: str, expected: str
) -> None:
    assert resolve_link_target(link, target) == expected


def test_validate_path_input_accepts_ordinary_names() -> None:
    assert validate_path_input("日本語.txt") == "日本語.txt"
    assert validate_path_input("..") == ".."


@pytest.mark.parametrize("value", ["", "a\x00b", "bad\udcffname"])
def test_validate_path_input_rejects_unusable_strings(value: str) -> None:
    with pytest.raises(InvalidInputError):
        _ = validate_path_input(value)
