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

"""Tests for the symlink resolution verifier."""

from __future__ import annotations

import pytest

from fsconformance.contrib import MemoryStore
from fsconformance.report import run_case
from fsconformance.resolution import (
    LinkObservation,
    SymlinkVerifier,
    inspect_link,
    observe,
    outcomes_match,
)
from fsconformance.store import NodeKind, ResolutionOutcome, Store, write_file
from fsconformance.taxonomy import ErrorKind
from tests.helpers import NoFollowStatStore


@pytest.fixture
def base_dir(memory_store: MemoryStore) -> str:
    memory_store.mkdir("/tmp/links")
    return "/tmp/links"


def _verifier(store: Store, base: MemoryStore, base_dir: str) -> SymlinkVerifier:
    ops = base.symlinks()
    assert ops is not None
    return SymlinkVerifier(store, ops, base_dir)


def test_inspect_link_takes_one_step(memory_store: MemoryStore) -> None:
    write_file(memory_store, "/tmp/file", b"")
    memory_store.symlink("/tmp/file", "/tmp/one")
    memory_store.symlink("/tmp/one", "/tmp/two")

    assert inspect_link(memory_store, "/tmp/two") == LinkObservation(
        path="/tmp/two", kind=NodeKind.SYMLINK, target="/tmp/one"
    )
    assert inspect_link(memory_store, "/tmp/file") == LinkObservation(
        path="/tmp/file", kind=NodeKind.FILE
    )
    assert inspect_link(memory_store, "/tmp/absent").error is ErrorKind.NOT_EXIST


def test_observe_reports_candidate_stat(memory_store: MemoryStore) -> None:
    memory_store.symlink("/tmp/loop", "/tmp/loop")
    memory_store.mkdir("/tmp/dir")

    assert observe(memory_store, "/tmp/dir") == ResolutionOutcome.success(
        "/tmp/dir", NodeKind.DIRECTORY
    )
    assert observe(memory_store, "/tmp/loop").error is ErrorKind.TOO_MANY_LINKS


def test_outcomes_match_compares_reportable_parts() -> None:
    file_a = ResolutionOutcome.success("/a", NodeKind.FILE, hops=3)
    file_b = ResolutionOutcome.success("/b", NodeKind.FILE)
    directory = ResolutionOutcome.success("/a", NodeKind.DIRECTORY)
    missing = ResolutionOutcome.failure("/a", ErrorKind.NOT_EXIST)
    looped = ResolutionOutcome.failure("/a", ErrorKind.TOO_MANY_LINKS)

    assert outcomes_match(file_a, file_b)
    assert not outcomes_match(file_a, directory)
    assert not outcomes_match(file_a, missing)
    assert not outcomes_match(missing, looped)
    assert outcomes_match(missing, ResolutionOutcome.failure("/b", ErrorKind.NOT_EXIST))


def test_every_case_passes_on_memory_store(memory_store: MemoryStore, base_dir: str) -> None:
    verifier = _verifier(memory_store, memory_store, base_dir)

    results = [run_case(name, case) for name, case in verifier.cases()]

    assert [result.failures for result in results if result.failed] == []
    assert len(results) == 16


def test_non_following_stat_is_caught(memory_store: MemoryStore, base_dir: str) -> None:
    candidate = NoFollowStatStore(memory_store)
    verifier = _verifier(candidate, memory_store, base_dir)

    results = {name: run_case(name, case) for name, case in verifier.cases()}

    assert results["lstat_vs_stat"].failed
    assert "store reports symlink" in results["lstat_vs_stat"].failures[0]
    assert results["create_and_readlink"].passed


@pytest.mark.parametrize("length", [0, 41])
def test_chain_length_is_bounded(memory_store: MemoryStore, length: int) -> None:
    ops = memory_store.symlinks()
    assert ops is not None

    with pytest.raises(ValueError, match="chain_length"):
        _ = SymlinkVerifier(memory_store, ops, "/tmp", chain_length=length)


def test_chain_at_platform_bound(memory_store: MemoryStore, base_dir: str) -> None:
    ops = memory_store.symlinks()
    assert ops is not None
    verifier = SymlinkVerifier(memory_store, ops, base_dir, chain_length=40)

    result = run_case("long_chain", verifier.case_long_chain)

    assert result.passed, result.failures
