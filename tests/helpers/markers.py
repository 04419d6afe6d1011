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

"""Skip markers for host-dependent tests."""

from __future__ import annotations

import os
import sys

import pytest


def _is_root() -> bool:
    getuid = getattr(os, "getuid", None)
    return getuid is not None and getuid() == 0


posix_only = pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX host required")
"""Tests relying on POSIX host semantics (symlinks, permission bits)."""

linux_only = pytest.mark.skipif(
    not sys.platform.startswith("linux"), reason="Linux open(2) semantics required"
)
"""Tests comparing against Linux-specific ``open`` behavior."""

unprivileged_only = pytest.mark.skipif(_is_root(), reason="root bypasses permission checks")
"""Tests that need the host to enforce permission bits."""
