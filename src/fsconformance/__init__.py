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

"""Conformance verification for filesystem abstractions.

The main entry points:

- :class:`BaselineSuite` checks a store against POSIX-like behavior, gated
  by the :class:`Features` it claims.
- :class:`WrapperSuite` checks that a wrapper keeps the semantics of the
  store it wraps, within its :class:`TransformContract`.
- :class:`DifferentialSuite` compares ``open_file`` outcomes of two stores.
- :class:`FuzzHarness` drives seeded and random inputs through primitives.

pytest integration lives in :mod:`fsconformance.testing`, which needs the
``testing`` extra.
"""

from __future__ import annotations

from . import capabilities, contrib, report, runtime, store, taxonomy
from .capabilities import Features, default_features, minimal_features, resolve_features
from .differential import DifferentialSuite
from .errors import (
    ConfigurationError,
    FsConformanceError,
    InvalidInputError,
    SetupError,
    TooManyLinksError,
)
from .fuzz import FuzzHarness, FuzzReport
from .report import CaseResult, GroupResult, SuiteReport, render_text, report_to_dict
from .resolution import SymlinkVerifier
from .store import OpenFlag, Store
from .suite import GROUPS, BaselineSuite, SuiteConfig, run_baseline
from .taxonomy import ErrorKind, canonicalize, describe_mismatch, equivalent
from .wrapper import TransformContract, WrapperSuite

__all__ = [
    "GROUPS",
    "BaselineSuite",
    "CaseResult",
    "ConfigurationError",
    "DifferentialSuite",
    "ErrorKind",
    "Features",
    "FsConformanceError",
    "FuzzHarness",
    "FuzzReport",
    "GroupResult",
    "InvalidInputError",
    "OpenFlag",
    "SetupError",
    "Store",
    "SuiteConfig",
    "SuiteReport",
    "SymlinkVerifier",
    "TooManyLinksError",
    "TransformContract",
    "WrapperSuite",
    "canonicalize",
    "capabilities",
    "contrib",
    "default_features",
    "describe_mismatch",
    "equivalent",
    "minimal_features",
    "render_text",
    "report",
    "report_to_dict",
    "resolve_features",
    "run_baseline",
    "runtime",
    "store",
    "taxonomy",
]
