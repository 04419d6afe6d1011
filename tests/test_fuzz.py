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

"""Tests for the fuzz generators, invariant checks and harness."""

from __future__ import annotations

import random

import pytest

from fsconformance.clock import FakeClock
from fsconformance.contrib import CompressedStore, MemoryStore
from fsconformance.errors import ConfigurationError, InvalidInputError, SetupError
from fsconformance.fuzz import (
    CREATE_SEEDS,
    PAYLOAD_SEEDS,
    FlagGenerator,
    FuzzFailure,
    FuzzHarness,
    FuzzReport,
    FuzzTarget,
    InputGenerator,
    PathGenerator,
    PayloadGenerator,
    RenamePairGenerator,
    TraversalGenerator,
    check_create,
    check_mkdir,
    check_read_write,
    default_targets,
    validate_name,
    validate_pair,
    wrapper_roundtrip_target,
)
from fsconformance.report import render_text
from fsconformance.store import OpenFlag
from tests.helpers import CopyOnRenameStore, CorruptingStore, CrashingStore, FailingMkdirStore


def _harness(store: object, **kwargs: object) -> FuzzHarness:
    return FuzzHarness(store, clock=FakeClock(), **kwargs)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "generator",
    [
        PathGenerator(),
        PayloadGenerator(),
        RenamePairGenerator(),
        TraversalGenerator(),
        FlagGenerator(),
    ],
    ids=lambda generator: generator.name,
)
def test_generators_are_deterministic(generator: InputGenerator[object]) -> None:
    assert isinstance(generator, InputGenerator)
    first = [generator.produce(random.Random(7)) for _ in range(3)]
    second = [generator.produce(random.Random(7)) for _ in range(3)]

    assert first == second
    assert list(generator.seeds())


def test_path_generator_seeds_and_shrink() -> None:
    generator = PathGenerator()

    assert tuple(generator.seeds()) == CREATE_SEEDS
    assert list(generator.shrink("a/b"))[:2] == ["b", "a"]
    assert list(generator.shrink("日x"))[-1] == "ax"


def test_payload_shrink_order() -> None:
    shrunk = list(PayloadGenerator().shrink(b"abcd"))

    assert shrunk == [b"ab", b"cd", b"bcd", b"abc", bytes(4)]
    assert list(PayloadGenerator().shrink(b"")) == []


def test_payload_generator_respects_max_length() -> None:
    generator = PayloadGenerator(corpus=(b"abc",), max_length=32)
    rng = random.Random(3)

    for _ in range(50):
        assert len(generator.produce(rng)) <= 32


def test_rename_pair_shrinks_each_side() -> None:
    shrunk = list(RenamePairGenerator().shrink(("ab", "c")))

    assert shrunk[0] == ("a", "c")
    assert ("ab", "c") not in shrunk


def test_traversal_generator_builds_from_pieces() -> None:
    generator = TraversalGenerator(pieces=("..", "escape"), max_pieces=4)
    rng = random.Random(11)

    for _ in range(20):
        value = generator.produce(rng)
        assert value
        assert set(value.strip("/").split("/")) <= {"..", "escape"}


def test_flag_shrink_drops_one_bit_at_a_time() -> None:
    shrunk = list(FlagGenerator().shrink(OpenFlag.RDWR | OpenFlag.CREATE))

    assert shrunk == [OpenFlag.CREATE, OpenFlag.RDWR]


# ---------------------------------------------------------------------------
# Validation and checks
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("value", ["", ".", "..", "nul\x00byte", "bad\udcffutf8"])
def test_validate_name_rejects(value: str) -> None:
    with pytest.raises(InvalidInputError):
        validate_name(value)


def test_validate_name_accepts_ordinary_names() -> None:
    validate_name("日本語.txt")
    validate_name("nested/../file")
    validate_pair(("a", "b"))

    with pytest.raises(InvalidInputError):
        validate_pair(("a", ".."))


def test_checks_pass_on_memory_store(memory_store: MemoryStore) -> None:
    memory_store.mkdir("/tmp/check")
    view = memory_store.sub("/tmp/check")

    assert check_create(view, "nested/path/file.txt") == []
    assert check_mkdir(view, "deeply/nested/dir") == []
    assert check_read_write(view, bytes(range(256)) * 20) == []


def test_check_read_write_reports_mismatch(memory_store: MemoryStore) -> None:
    memory_store.mkdir("/tmp/check")
    view = CorruptingStore(memory_store).sub("/tmp/check")

    assert check_read_write(view, b"hello") == ["data mismatch: wrote 5 bytes, read 4"]


# ---------------------------------------------------------------------------
# Harness
# ---------------------------------------------------------------------------


def test_memory_store_survives_every_target(memory_store: MemoryStore) -> None:
    report = _harness(memory_store, iterations=10).run_all()

    assert report.passed, render_text(report, verbose=True)
    assert report.name == "fuzz[MemoryStore]"
    assert [group.name for group in report.groups] == [
        f"fuzz_{name}" for name in default_targets()
    ]
    assert memory_store.read_dir("/tmp") == []


def test_seeds_are_always_tried(memory_store: MemoryStore) -> None:
    report = _harness(memory_store, iterations=0).run("read_write")

    assert report.passed
    assert report.executed == len(PAYLOAD_SEEDS)
    assert report.skipped == 0
    assert report.to_group().cases[0].name == f"{len(PAYLOAD_SEEDS)}_inputs"


def test_invalid_inputs_are_skipped(memory_store: MemoryStore) -> None:
    target = FuzzTarget(
        "create",
        PathGenerator(corpus=("ok.txt", "..", "bad\x00name", "")),
        check_create,
        validate_name,
    )

    report = _harness(memory_store, iterations=0).run(target)

    assert report.executed == 1
    assert report.skipped == 3


def test_corrupting_store_is_minimized(memory_store: MemoryStore) -> None:
    report = _harness(CorruptingStore(memory_store), iterations=0).run("read_write")

    assert not report.passed
    first = report.failures[0]
    assert first.iteration == 0
    assert first.original == b"hello"
    assert first.minimized == b"\x00"
    assert first.problems == ("data mismatch: wrote 1 bytes, read 0",)
    assert len(report.failures) == len([seed for seed in PAYLOAD_SEEDS if seed])


def test_crash_is_reported_and_minimized(memory_store: MemoryStore) -> None:
    target = FuzzTarget(
        "create", PathGenerator(corpus=("nested/file.txt",)), check_create, validate_name
    )

    report = _harness(CrashingStore(memory_store), iterations=0).run(target)

    [failure] = report.failures
    assert failure.minimized == "f"
    assert failure.problems[0].startswith("crash: RuntimeError: stat exploded on ")
    assert "Traceback" in failure.problems[0]


def test_copying_rename_is_detected(memory_store: MemoryStore) -> None:
    report = _harness(CopyOnRenameStore(memory_store), iterations=0).run("rename")

    assert not report.passed
    assert "still exists after rename" in report.failures[0].problems[0]


def test_failure_rendering() -> None:
    failure = FuzzFailure(
        target="read_write",
        iteration=4,
        original=b"hello",
        minimized=b"h",
        problems=("data mismatch: wrote 1 bytes, read 0",),
    )
    report = FuzzReport(target="read_write", executed=9, skipped=0, failures=(failure,))

    assert failure.describe() == (
        "iteration 4: input b'hello'\nminimized to b'h'\ndata mismatch: wrote 1 bytes, read 0"
    )
    group = report.to_group()
    assert group.name == "fuzz_read_write"
    assert [case.name for case in group.cases] == ["iteration_4"]
    assert group.cases[0].failures == (failure.describe(),)


def test_wrapper_roundtrip_target(memory_store: MemoryStore) -> None:
    harness = _harness(memory_store, iterations=5)

    assert harness.run(wrapper_roundtrip_target(CompressedStore)).passed
    assert not harness.run(wrapper_roundtrip_target(CorruptingStore)).passed


def test_extra_targets_are_registered(memory_store: MemoryStore) -> None:
    target = wrapper_roundtrip_target(CompressedStore)
    harness = _harness(memory_store, iterations=1, targets={target.name: target})

    report = harness.run_all(["wrapper_roundtrip"])

    assert report.passed
    assert "wrapper_roundtrip" in harness.targets


def test_unknown_target(memory_store: MemoryStore) -> None:
    with pytest.raises(ConfigurationError, match="Unknown fuzz target"):
        _ = _harness(memory_store).run("teleport")


def test_negative_iterations(memory_store: MemoryStore) -> None:
    with pytest.raises(ConfigurationError, match="must not be negative"):
        _ = _harness(memory_store, iterations=-1)


def test_unwritable_root_is_setup_error(memory_store: MemoryStore) -> None:
    with pytest.raises(SetupError, match="Cannot create fuzz directory"):
        _ = _harness(FailingMkdirStore(memory_store), iterations=0).run("create")
