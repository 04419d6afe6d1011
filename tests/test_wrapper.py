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

"""Tests for the wrapper differential verifier."""

from __future__ import annotations

import pytest

from fsconformance.clock import FakeClock
from fsconformance.contrib import CompressedStore, MemoryStore, ReadOnlyStore, StoreWrapper
from fsconformance.errors import SetupError, not_exist
from fsconformance.report import render_text
from fsconformance.store import NodeKind, Store, write_file
from fsconformance.taxonomy import CanonicalError, ErrorKind
from fsconformance.wrapper import (
    LARGE_PAYLOAD_SIZE,
    WRAPPER_GROUPS,
    NodeState,
    StepOutcome,
    TransformContract,
    WrapperFactory,
    WrapperSuite,
    integrity_payloads,
    outcomes_agree,
    run_step,
    snapshot_tree,
)
from tests.helpers import (
    ChmodLeakingStore,
    CorruptingStore,
    FailingMkdirStore,
    LeakyReadOnlyStore,
)


def _suite(
    factory: WrapperFactory,
    base: Store,
    contract: TransformContract,
    *,
    name: str = "wrapper",
    keep_test_dir: bool = False,
) -> WrapperSuite:
    return WrapperSuite(
        factory, base, contract, name=name, keep_test_dir=keep_test_dir, clock=FakeClock()
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_integrity_payloads_cover_edge_shapes() -> None:
    payloads = integrity_payloads()

    assert set(payloads) == {"empty", "small", "binary", "multibyte_text", "large"}
    assert payloads["empty"] == b""
    assert len(payloads["large"]) == LARGE_PAYLOAD_SIZE
    assert payloads["multibyte_text"].decode("utf-8").isascii() is False


def test_run_step_summaries(memory_store: MemoryStore) -> None:
    write_file(memory_store, "/tmp/f", b"abc")

    with_meta = run_step(memory_store.stat, "/tmp/f")
    kind_only = run_step(memory_store.stat, "/tmp/f", compare_meta=False)
    listing = run_step(memory_store.read_dir, "/tmp")
    missing = run_step(memory_store.stat, "/tmp/absent")

    assert with_meta.summary == (NodeKind.FILE, 3, 0o666)
    assert kind_only.summary is NodeKind.FILE
    assert listing.summary == ["f"]
    assert missing.error is not None
    assert missing.error.kind is ErrorKind.NOT_EXIST
    assert missing.describe() == "not_exist"


def test_outcomes_agree_ignores_messages() -> None:
    first = StepOutcome(error=CanonicalError(ErrorKind.NOT_EXIST, "No such file"))
    second = StepOutcome(error=CanonicalError(ErrorKind.NOT_EXIST, "gone"))

    assert outcomes_agree(first, second)
    assert not outcomes_agree(first, StepOutcome(error=None))
    assert not outcomes_agree(StepOutcome(None, b"a"), StepOutcome(None, b"b"))
    assert StepOutcome(None, b"a").describe() == "success b'a'"
    assert StepOutcome(None).describe() == "success"


def test_snapshot_tree_records_state(memory_store: MemoryStore) -> None:
    memory_store.mkdir_all("/tmp/snap/dir")
    write_file(memory_store, "/tmp/snap/dir/file", b"content")
    memory_store.symlink("/tmp/snap/dir", "/tmp/snap/link")
    file_info = memory_store.stat("/tmp/snap/dir/file")

    snapshot = snapshot_tree(memory_store, "/tmp/snap")

    assert set(snapshot) == {"/tmp/snap/dir", "/tmp/snap/dir/file", "/tmp/snap/link"}
    assert snapshot["/tmp/snap/dir"].kind is NodeKind.DIRECTORY
    assert snapshot["/tmp/snap/dir"].content is None
    assert snapshot["/tmp/snap/dir/file"] == NodeState(
        NodeKind.FILE, content=b"content", mode=0o666, modified_at=file_info.modified_at
    )
    assert snapshot["/tmp/snap/link"] == NodeState(NodeKind.SYMLINK, target="/tmp/snap/dir")


def test_snapshot_tree_sees_metadata_changes(memory_store: MemoryStore) -> None:
    memory_store.mkdir("/tmp/snap")
    write_file(memory_store, "/tmp/snap/file", b"same")
    before = snapshot_tree(memory_store, "/tmp/snap")

    memory_store.chmod("/tmp/snap/file", 0o600)

    after = snapshot_tree(memory_store, "/tmp/snap")
    assert before["/tmp/snap/file"].content == after["/tmp/snap/file"].content
    assert before["/tmp/snap/file"] != after["/tmp/snap/file"]
    assert after["/tmp/snap/file"].mode == 0o600


# ---------------------------------------------------------------------------
# Conforming wrappers
# ---------------------------------------------------------------------------


def test_plain_wrapper_passes(memory_store: MemoryStore) -> None:
    report = _suite(StoreWrapper, memory_store, TransformContract()).run()

    assert report.passed, render_text(report, verbose=True)
    assert report.name == "wrapper[StoreWrapper]"
    assert [group.name for group in report.groups] == list(WRAPPER_GROUPS)
    assert report.group("write_blocking").reason == "wrapper is writable"
    assert report.group("transform_roundtrip").skipped


def test_read_only_wrapper_passes(memory_store: MemoryStore) -> None:
    report = _suite(
        ReadOnlyStore, memory_store, TransformContract(read_only=True), name="readonly"
    ).run()

    assert report.passed, render_text(report, verbose=True)
    assert report.name == "readonly[ReadOnlyStore]"
    assert not report.group("write_blocking").skipped
    assert report.group("transform_roundtrip").skipped


def test_compressed_wrapper_passes(memory_store: MemoryStore) -> None:
    contract = TransformContract(transforms_data=True, transforms_meta=True)

    report = _suite(CompressedStore, memory_store, contract).run()

    assert report.passed, render_text(report, verbose=True)
    assert [case.name for case in report.group("transform_roundtrip").cases] == [
        "piecewise",
        "overwrite_across_boundary",
        "append_across_boundary",
        "truncate_across_boundary",
    ]


def test_read_only_transforming_wrapper_skips_payload_groups(memory_store: MemoryStore) -> None:
    def factory(base: Store) -> Store:
        return ReadOnlyStore(CompressedStore(base))

    contract = TransformContract(transforms_data=True, transforms_meta=True, read_only=True)

    report = _suite(factory, memory_store, contract).run()

    assert report.passed, render_text(report, verbose=True)
    assert report.group("data_integrity").skipped
    assert report.group("transform_roundtrip").skipped


def test_run_root_is_cleaned_up(memory_store: MemoryStore) -> None:
    _ = _suite(StoreWrapper, memory_store, TransformContract()).run()

    assert memory_store.read_dir("/tmp") == []


def test_keep_test_dir(memory_store: MemoryStore) -> None:
    _ = _suite(StoreWrapper, memory_store, TransformContract(), keep_test_dir=True).run()

    [root] = memory_store.read_dir("/tmp")
    assert root.name.startswith("fsconformance_wrapper_")


# ---------------------------------------------------------------------------
# Defective wrappers
# ---------------------------------------------------------------------------


def test_leaky_read_only_wrapper_is_caught(memory_store: MemoryStore) -> None:
    report = _suite(LeakyReadOnlyStore, memory_store, TransformContract(read_only=True)).run()

    assert not report.passed
    case = next(
        case for case in report.group("write_blocking").cases if case.name == "mutations_fail"
    )
    assert "mkdir: expected an error, got success" in case.failures
    assert any("new_dir changed" in failure for failure in case.failures)


def test_partial_chmod_through_read_only_wrapper_is_caught(memory_store: MemoryStore) -> None:
    report = _suite(ChmodLeakingStore, memory_store, TransformContract(read_only=True)).run()

    case = next(
        case for case in report.group("write_blocking").cases if case.name == "mutations_fail"
    )
    assert case.failed
    assert not any(failure.startswith("chmod:") for failure in case.failures)
    [changed] = case.failures
    assert "file.txt changed" in changed
    assert "mode=438" in changed
    assert "mode=384" in changed


def test_corrupting_wrapper_is_caught(memory_store: MemoryStore) -> None:
    report = _suite(CorruptingStore, memory_store, TransformContract()).run()

    failed = {(group.name, case.name) for group, case in report.failures()}
    assert ("data_integrity", "payloads") in failed
    assert ("passthrough", "script") in failed


def test_factory_failure_is_setup_error(memory_store: MemoryStore) -> None:
    def factory(base: Store) -> Store:
        raise not_exist("/keys/secret.key")

    with pytest.raises(SetupError, match="Wrapper factory failed"):
        _ = _suite(factory, memory_store, TransformContract()).run()

    assert memory_store.read_dir("/tmp") == []


def test_base_root_failure_is_setup_error(memory_store: MemoryStore) -> None:
    base = FailingMkdirStore(memory_store)

    with pytest.raises(SetupError, match="Cannot create run root"):
        _ = _suite(StoreWrapper, base, TransformContract()).run()
