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

from __future__ import annotations

from pathlib import Path

import pytest

from fsconformance.clock import FakeClock
from fsconformance.contrib import HostStore, MemoryStore


@pytest.fixture
def fake_clock() -> FakeClock:
    """Return a deterministic clock starting at 2024-01-01 UTC."""

    return FakeClock()


@pytest.fixture
def memory_store(fake_clock: FakeClock) -> MemoryStore:
    """Return a fully featured in-memory store driven by ``fake_clock``."""

    return MemoryStore(clock=fake_clock)


@pytest.fixture
def host_store(tmp_path: Path) -> HostStore:
    """Return a host store whose scratch directory is ``tmp_path``."""

    return HostStore(temp_dir=str(tmp_path))
