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

"""pytest integration: reusable conformance test classes and helpers.

Subclass the suites with concrete fixtures to verify a store or a wrapper
from an ordinary pytest run::

    from fsconformance.testing import StoreConformanceSuite

    class TestMyStore(StoreConformanceSuite):
        @pytest.fixture
        def store(self) -> MyStore:
            return MyStore()

        @pytest.fixture
        def features(self) -> Features:
            return resolve_features("minimal", symlinks=True)

Every baseline group becomes its own parametrized test, so a failure names
the group and the rendered report lists the failing cases.

Requires the ``testing`` extra (pytest and hypothesis).
"""

from __future__ import annotations

import random
from abc import abstractmethod

import pytest
from hypothesis import strategies as st

from .capabilities import Features, default_features
from .fuzz import FuzzHarness, InputGenerator, default_targets, wrapper_roundtrip_target
from .report import GroupResult, SuiteReport, render_text
from .store import Store
from .suite import GROUPS, BaselineSuite, SuiteConfig
from .wrapper import TransformContract, WrapperFactory, WrapperSuite


def assert_report_passed(report: SuiteReport) -> None:
    """Fail the current test with the rendered report unless it passed.

    A report whose groups were all skipped skips the current test instead.

    Raises:
        AssertionError: At least one case failed.
    """

    if not report.passed:
        raise AssertionError(render_text(report, verbose=True))
    if report.groups and all(group.skipped for group in report.groups):
        pytest.skip("; ".join(_skip_reason(group) for group in report.groups))


def _skip_reason(group: GroupResult) -> str:
    return f"{group.name}: {group.reason}" if group.reason else group.name


def fuzz_strategy[T](generator: InputGenerator[T]) -> st.SearchStrategy[T]:
    """Hypothesis strategy drawing from a generator's seeds and production.

    Produced values are derived from a drawn integer seed, so hypothesis
    shrinks towards small seeds rather than through the generator.
    """

    produced = st.integers(min_value=0, max_value=2**32 - 1).map(
        lambda seed: generator.produce(random.Random(seed))
    )
    seeds = list(generator.seeds())
    if not seeds:
        return produced
    return st.one_of(st.sampled_from(seeds), produced)


class StoreConformanceSuite:
    """Abstract test class verifying a store against the baseline groups.

    Subclasses must implement the ``store`` fixture. ``features`` defaults
    to every capability, so stores without symlinks or hard links should
    override it with what they actually claim.
    """

    @pytest.fixture
    @abstractmethod
    def store(self) -> Store:
        """Provide the store under test."""
        ...

    @pytest.fixture
    def features(self) -> Features:
        return default_features()

    @pytest.fixture
    def test_dir(self) -> str | None:
        """Existing directory on the store for run roots; ``None`` uses temp."""
        return None

    @pytest.fixture
    def fuzz_iterations(self) -> int:
        return 25

    @pytest.mark.parametrize("group", GROUPS)
    def test_baseline_group(
        self, store: Store, features: Features, test_dir: str | None, group: str
    ) -> None:
        suite = BaselineSuite(SuiteConfig(store=store, features=features, test_dir=test_dir))
        assert_report_passed(suite.run([group]))

    def test_quick_check(
        self, store: Store, features: Features, test_dir: str | None
    ) -> None:
        suite = BaselineSuite(SuiteConfig(store=store, features=features, test_dir=test_dir))
        assert_report_passed(suite.quick_check())

    @pytest.mark.parametrize("target", tuple(default_targets()))
    def test_fuzz_target(
        self, store: Store, test_dir: str | None, fuzz_iterations: int, target: str
    ) -> None:
        harness = FuzzHarness(store, test_dir, iterations=fuzz_iterations)
        report = harness.run(target)
        assert report.passed, "\n\n".join(failure.describe() for failure in report.failures)


class WrapperConformanceSuite:
    """Abstract test class verifying a wrapper against its contract.

    Subclasses must implement ``wrapper_factory`` and ``contract``. The base
    store defaults to a fresh :class:`~fsconformance.contrib.MemoryStore`.
    """

    @pytest.fixture
    @abstractmethod
    def wrapper_factory(self) -> WrapperFactory:
        """Provide a callable that wraps a base store."""
        ...

    @pytest.fixture
    @abstractmethod
    def contract(self) -> TransformContract:
        """Provide what the wrapper promises about data, metadata and writes."""
        ...

    @pytest.fixture
    def base_store(self) -> Store:
        from .contrib import MemoryStore

        return MemoryStore()

    def test_wrapper_contract(
        self,
        wrapper_factory: WrapperFactory,
        base_store: Store,
        contract: TransformContract,
    ) -> None:
        report = WrapperSuite(wrapper_factory, base_store, contract).run()
        assert_report_passed(report)

    def test_wrapper_roundtrip_fuzz(
        self,
        wrapper_factory: WrapperFactory,
        base_store: Store,
        contract: TransformContract,
    ) -> None:
        if contract.read_only:
            pytest.skip("read-only wrappers have nothing to round-trip")
        harness = FuzzHarness(base_store, iterations=25)
        report = harness.run(wrapper_roundtrip_target(wrapper_factory))
        assert report.passed, "\n\n".join(failure.describe() for failure in report.failures)


__all__ = [
    "StoreConformanceSuite",
    "WrapperConformanceSuite",
    "assert_report_passed",
    "fuzz_strategy",
]
