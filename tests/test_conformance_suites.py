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

"""The pytest integration classes, run against the bundled stores."""

from __future__ import annotations

from pathlib import Path

import pytest
from hypothesis import assume, given, settings

from fsconformance.capabilities import Features, os_features
from fsconformance.contrib import (
    CompressedStore,
    HostStore,
    MemoryStore,
    ReadOnlyStore,
    SymlinkBlockingStore,
)
from fsconformance.errors import InvalidInputError
from fsconformance.fuzz import (
    PayloadGenerator,
    RenamePairGenerator,
    check_read_write,
    check_rename,
    validate_pair,
)
from fsconformance.report import CaseResult, GroupResult, SuiteReport
from fsconformance.store import Store
from fsconformance.testing import (
    StoreConformanceSuite,
    WrapperConformanceSuite,
    assert_report_passed,
    fuzz_strategy,
)
from fsconformance.wrapper import TransformContract, WrapperFactory
from tests.helpers import posix_only


class TestMemoryStoreConformance(StoreConformanceSuite):
    @pytest.fixture
    def store(self) -> MemoryStore:
        return MemoryStore()

    @pytest.fixture
    def features(self, store: MemoryStore) -> Features:
        return store.features()


class TestSymlinkFreeMemoryStore(StoreConformanceSuite):
    """A store that claims less than a full POSIX filesystem."""

    @pytest.fixture
    def store(self) -> Store:
        return SymlinkBlockingStore(MemoryStore(case_sensitive=False))

    @pytest.fixture
    def features(self) -> Features:
        return Features(hard_links=True, permissions=True, timestamps=True, atomic_rename=True)

    @pytest.fixture
    def fuzz_iterations(self) -> int:
        return 5


@pytest.mark.host
@posix_only
class TestHostStoreConformance(StoreConformanceSuite):
    @pytest.fixture
    def store(self, tmp_path: Path) -> HostStore:
        return HostStore(temp_dir=str(tmp_path))

    @pytest.fixture
    def features(self) -> Features:
        return os_features()

    @pytest.fixture
    def test_dir(self, tmp_path: Path) -> str:
        return str(tmp_path)

    @pytest.fixture
    def fuzz_iterations(self) -> int:
        return 10


class TestCompressedStoreConformance(WrapperConformanceSuite):
    @pytest.fixture
    def wrapper_factory(self) -> WrapperFactory:
        return lambda base: CompressedStore(base, chunk_size=512)

    @pytest.fixture
    def contract(self) -> TransformContract:
        return TransformContract(transforms_data=True, transforms_meta=True)


class TestReadOnlyStoreConformance(WrapperConformanceSuite):
    @pytest.fixture
    def wrapper_factory(self) -> WrapperFactory:
        return ReadOnlyStore

    @pytest.fixture
    def contract(self) -> TransformContract:
        return TransformContract(read_only=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_assert_report_passed_raises_with_rendered_report() -> None:
    passing = SuiteReport(
        name="baseline[Fine]",
        groups=(GroupResult(name="file_operations", cases=(CaseResult("stat", "passed"),)),),
    )
    failing = SuiteReport(
        name="baseline[Broken]",
        groups=(
            GroupResult(
                name="file_operations",
                cases=(CaseResult(name="stat", status="failed", failures=("size: expected 3",)),),
            ),
        ),
    )

    assert_report_passed(passing)
    with pytest.raises(AssertionError, match="size: expected 3"):
        assert_report_passed(failing)


def test_assert_report_passed_skips_when_nothing_ran() -> None:
    report = SuiteReport(name="empty", groups=(GroupResult.skip("symlinks", "disabled"),))

    with pytest.raises(pytest.skip.Exception, match="symlinks: disabled"):
        assert_report_passed(report)


@settings(max_examples=40, deadline=None)
@given(data=fuzz_strategy(PayloadGenerator(max_length=1024)))
def test_payloads_roundtrip_through_compression(data: bytes) -> None:
    store = MemoryStore()
    view = CompressedStore(store, chunk_size=64).sub("/tmp")

    assert check_read_write(view, data) == []


@settings(max_examples=50, deadline=None)
@given(pair=fuzz_strategy(RenamePairGenerator()))
def test_memory_store_renames_generated_pairs(pair: tuple[str, str]) -> None:
    try:
        validate_pair(pair)
    except InvalidInputError:
        assume(False)
    store = MemoryStore()

    assert check_rename(store.sub("/tmp"), pair) == []
