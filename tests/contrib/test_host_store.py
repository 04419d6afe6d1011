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

"""Tests for the host operating system store."""

from __future__ import annotations

import errno
from datetime import UTC, datetime
from pathlib import Path

import pytest

from fsconformance.contrib import HostStore
from fsconformance.store import NodeKind, OpenFlag, Store, write_file
from tests.helpers import posix_only

pytestmark = pytest.mark.host


@pytest.fixture
def workspace(host_store: HostStore, tmp_path: Path) -> Store:
    return host_store.sub(str(tmp_path))


def test_temp_dir_and_repr(host_store: HostStore, tmp_path: Path) -> None:
    assert host_store.temp_dir() == str(tmp_path)
    assert repr(host_store) == "HostStore()"


def test_write_and_read_back(workspace: Store, tmp_path: Path) -> None:
    write_file(workspace, "/a.txt", b"hello, world")

    assert workspace.read_file("/a.txt") == b"hello, world"
    assert (tmp_path / "a.txt").read_bytes() == b"hello, world"


def test_stat_reports_kind_and_size(workspace: Store) -> None:
    workspace.mkdir("/dir")
    write_file(workspace, "/dir/file", b"12345")

    info = workspace.stat("/dir/file")

    assert info.kind is NodeKind.FILE
    assert info.size == 5
    assert info.name == "file"
    assert workspace.stat("/dir").is_dir


def test_mkdir_all_over_file_raises_not_a_directory(workspace: Store) -> None:
    write_file(workspace, "/blocker", b"")

    with pytest.raises(NotADirectoryError):
        workspace.mkdir_all("/blocker/child")


def test_remove_all_missing_is_silent(host_store: HostStore, tmp_path: Path) -> None:
    host_store.remove_all(str(tmp_path / "absent"))


def test_remove_all_deletes_tree(workspace: Store, tmp_path: Path) -> None:
    workspace.mkdir_all("/tree/a/b")
    write_file(workspace, "/tree/a/b/leaf", b"x")

    workspace.remove_all("/tree")

    assert not (tmp_path / "tree").exists()


def test_remove_directory_and_file(workspace: Store, tmp_path: Path) -> None:
    workspace.mkdir("/empty")
    write_file(workspace, "/file", b"")

    workspace.remove("/empty")
    workspace.remove("/file")

    assert list(tmp_path.iterdir()) == []


def test_invalid_access_mode_is_rejected(workspace: Store) -> None:
    with pytest.raises(OSError) as excinfo:
        _ = workspace.open_file("/x", OpenFlag.WRONLY | OpenFlag.RDWR)

    assert excinfo.value.errno == errno.EINVAL


def test_exclusive_create_fails_on_existing(workspace: Store) -> None:
    write_file(workspace, "/there", b"")

    with pytest.raises(FileExistsError):
        _ = workspace.open_file("/there", OpenFlag.WRONLY | OpenFlag.CREATE | OpenFlag.EXCL)


def test_read_dir_is_sorted(workspace: Store) -> None:
    for name in ("c", "a", "b"):
        write_file(workspace, f"/{name}", b"")

    assert [entry.name for entry in workspace.read_dir("/")] == ["a", "b", "c"]


def test_directory_handle_pages_entries(workspace: Store) -> None:
    for name in ("one", "two", "three"):
        write_file(workspace, f"/{name}", b"")

    with workspace.open("/") as handle:
        first = handle.read_dir(1)
        rest = handle.read_dir()

    assert [entry.name for entry in first] == ["one"]
    assert [entry.name for entry in rest] == ["three", "two"]


def test_handle_seek_and_truncate(workspace: Store) -> None:
    with workspace.create("/data") as handle:
        _ = handle.write(b"abcdef")
        assert handle.seek(2) == 2
        assert handle.read(2) == b"cd"
        handle.truncate(3)

    assert workspace.read_file("/data") == b"abc"


@posix_only
def test_symlink_and_lstat(workspace: Store) -> None:
    links = workspace.symlinks()
    assert links is not None
    write_file(workspace, "/target", b"abc")

    links.symlink("target", "/link")

    assert links.readlink("/link") == "target"
    assert links.lstat("/link").kind is NodeKind.SYMLINK
    assert workspace.stat("/link").kind is NodeKind.FILE


@posix_only
def test_hard_link_shares_content(workspace: Store) -> None:
    hard = workspace.hard_links()
    assert hard is not None
    write_file(workspace, "/first", b"shared")

    hard.link("/first", "/second")
    workspace.remove("/first")

    assert workspace.read_file("/second") == b"shared"


@posix_only
def test_chmod_and_chtimes(workspace: Store) -> None:
    perms = workspace.permissions()
    times = workspace.timestamps()
    assert perms is not None
    assert times is not None
    write_file(workspace, "/f", b"")
    moment = datetime(2020, 5, 17, 8, 30, tzinfo=UTC)

    perms.chmod("/f", 0o640)
    times.chtimes("/f", moment, moment)

    info = workspace.stat("/f")
    assert info.mode == 0o640
    assert info.modified_at == moment


def test_closed_handle_rejects_io(workspace: Store) -> None:
    handle = workspace.create("/closed")
    handle.close()
    handle.close()

    with pytest.raises(ValueError, match="closed file"):
        _ = handle.write(b"x")
