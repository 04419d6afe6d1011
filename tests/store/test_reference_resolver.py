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

"""Tests for the reference link-chain resolver."""

from __future__ import annotations

import pytest

from fsconformance.contrib import MemoryStore
from fsconformance.errors import TooManyLinksError
from fsconformance.store import (
    MAX_LINK_DEPTH,
    NodeKind,
    ResolutionOutcome,
    outcome_error,
    resolve,
    write_file,
)
from fsconformance.taxonomy import ErrorKind


def test_plain_path_resolves_without_hops(memory_store: MemoryStore) -> None:
    write_file(memory_store, "/tmp/file.txt", b"")

    outcome = resolve(memory_store, "/tmp/file.txt")

    assert outcome == ResolutionOutcome.success("/tmp/file.txt", NodeKind.FILE)
    assert outcome.ok


def test_root_resolves_to_directory(memory_store: MemoryStore) -> None:
    outcome = resolve(memory_store, "/")

    assert outcome.path == "/"
    assert outcome.kind is NodeKind.DIRECTORY


def test_relative_target_uses_link_directory(memory_store: MemoryStore) -> None:
    memory_store.mkdir_all("/tmp/sub")
    write_file(memory_store, "/tmp/target.txt", b"real")
    write_file(memory_store, "/tmp/sub/target.txt", b"decoy")
    memory_store.symlink("../target.txt", "/tmp/sub/link")

    outcome = resolve(memory_store, "/tmp/sub/link")

    assert outcome.path == "/tmp/target.txt"
    assert outcome.hops == 1


def test_dotdot_in_target_climbs_real_parent(memory_store: MemoryStore) -> None:
    memory_store.mkdir_all("/tmp/a/b")
    memory_store.mkdir_all("/tmp/elsewhere")
    memory_store.symlink("/tmp/a/b", "/tmp/elsewhere/jump")
    write_file(memory_store, "/tmp/a/found.txt", b"")

    outcome = resolve(memory_store, "/tmp/elsewhere/jump/../found.txt")

    assert outcome.ok
    assert outcome.path == "/tmp/a/found.txt"


def test_final_link_is_kept_without_follow(memory_store: MemoryStore) -> None:
    write_file(memory_store, "/tmp/file.txt", b"")
    memory_store.symlink("/tmp/file.txt", "/tmp/link")

    outcome = resolve(memory_store, "/tmp/link", follow=False)

    assert outcome.path == "/tmp/link"
    assert outcome.kind is NodeKind.SYMLINK
    assert outcome.hops == 0


def test_parent_links_are_followed_without_follow(memory_store: MemoryStore) -> None:
    memory_store.mkdir("/tmp/real")
    write_file(memory_store, "/tmp/real/file.txt", b"")
    memory_store.symlink("/tmp/real", "/tmp/alias")

    outcome = resolve(memory_store, "/tmp/alias/file.txt", follow=False)

    assert outcome.path == "/tmp/real/file.txt"
    assert outcome.hops == 1


def test_broken_link_reports_missing_component(memory_store: MemoryStore) -> None:
    memory_store.symlink("/tmp/nowhere", "/tmp/broken")

    outcome = resolve(memory_store, "/tmp/broken")

    assert outcome.error is ErrorKind.NOT_EXIST
    assert outcome.path == "/tmp/nowhere"
    assert not outcome.ok


def test_empty_link_target_is_missing(memory_store: MemoryStore) -> None:
    memory_store.symlink("", "/tmp/empty")

    outcome = resolve(memory_store, "/tmp/empty")

    assert outcome.error is ErrorKind.NOT_EXIST
    assert outcome.path == "/tmp/empty"
    assert outcome.hops == 1
    with pytest.raises(FileNotFoundError):
        _ = memory_store.stat("/tmp/empty")
    with pytest.raises(FileNotFoundError):
        _ = memory_store.stat("/tmp/empty/child")
    assert memory_store.lstat("/tmp/empty").kind is NodeKind.SYMLINK


def test_file_in_parent_position(memory_store: MemoryStore) -> None:
    write_file(memory_store, "/tmp/file.txt", b"")

    outcome = resolve(memory_store, "/tmp/file.txt/child")

    assert outcome.error is ErrorKind.NOT_A_DIRECTORY
    assert outcome.path == "/tmp/file.txt"


def test_self_reference_is_detected_as_cycle(memory_store: MemoryStore) -> None:
    memory_store.symlink("/tmp/self", "/tmp/self")

    outcome = resolve(memory_store, "/tmp/self")

    assert outcome.error is ErrorKind.TOO_MANY_LINKS
    assert outcome.hops <= 2


def test_two_node_cycle(memory_store: MemoryStore) -> None:
    memory_store.symlink("/tmp/b", "/tmp/a")
    memory_store.symlink("/tmp/a", "/tmp/b")

    assert resolve(memory_store, "/tmp/a").error is ErrorKind.TOO_MANY_LINKS
    assert resolve(memory_store, "/tmp/b").error is ErrorKind.TOO_MANY_LINKS


def test_directory_loop_traversed_twice_resolves(memory_store: MemoryStore) -> None:
    memory_store.mkdir_all("/tmp/one/two")
    write_file(memory_store, "/tmp/one/marker", b"m")
    memory_store.symlink("/tmp/one", "/tmp/one/two/three")

    outcome = resolve(memory_store, "/tmp/one/two/three/two/three/marker")

    assert outcome.ok
    assert outcome.path == "/tmp/one/marker"
    assert outcome.hops == 2


def _chain(store: MemoryStore, length: int) -> str:
    write_file(store, "/tmp/end.txt", b"end")
    previous = "/tmp/end.txt"
    for index in range(length):
        link = f"/tmp/chain_{index:02d}"
        store.symlink(previous, link)
        previous = link
    return previous


def test_chain_at_bound_resolves(memory_store: MemoryStore) -> None:
    head = _chain(memory_store, MAX_LINK_DEPTH)

    outcome = resolve(memory_store, head)

    assert outcome.ok
    assert outcome.hops == MAX_LINK_DEPTH


def test_chain_past_bound_fails(memory_store: MemoryStore) -> None:
    head = _chain(memory_store, MAX_LINK_DEPTH + 1)

    outcome = resolve(memory_store, head)

    assert outcome.error is ErrorKind.TOO_MANY_LINKS
    assert outcome.hops == MAX_LINK_DEPTH + 1


def test_custom_depth_bound(memory_store: MemoryStore) -> None:
    head = _chain(memory_store, 3)

    assert resolve(memory_store, head, max_depth=2).error is ErrorKind.TOO_MANY_LINKS
    assert resolve(memory_store, head, max_depth=3).ok


def test_describe_renders_both_shapes() -> None:
    success = ResolutionOutcome.success("/a", NodeKind.FILE, hops=2)
    failure = ResolutionOutcome.failure("/b", ErrorKind.NOT_EXIST, hops=1)

    assert success.describe() == "file at /a after 2 hop(s)"
    assert failure.describe() == "not_exist at /b after 1 hop(s)"


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (ErrorKind.NOT_EXIST, FileNotFoundError),
        (ErrorKind.NOT_A_DIRECTORY, NotADirectoryError),
        (ErrorKind.TOO_MANY_LINKS, TooManyLinksError),
        (ErrorKind.PERMISSION_DENIED, PermissionError),
    ],
)
def test_outcome_error_maps_kinds(kind: ErrorKind, expected: type[OSError]) -> None:
    error = outcome_error(ResolutionOutcome.failure("/x", kind), "/x")

    assert isinstance(error, expected)
    assert error.filename == "/x"


def test_outcome_error_falls_back_to_io_error() -> None:
    error = outcome_error(ResolutionOutcome.failure("/x", ErrorKind.OTHER), "/x")

    assert type(error) is OSError
