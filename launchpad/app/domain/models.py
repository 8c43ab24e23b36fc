# Copyright 2026 icecake0141
# SPDX-License-Identifier: Apache-2.0
#
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
#
# This file was created or modified with the assistance of an AI (Large Language Model).
# Review required for correctness, security, and licensing.
"""Domain models for repo/branch state and jobs."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

MAIN_BRANCH = "main"


def now_ms() -> int:
    """Wall clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class BranchRecord(BaseModel):
    """Checkout/build/update state for one (repo, branch)."""

    repo: str
    branch: str

    version: Optional[str] = None
    package_metadata: Optional[Any] = None
    brands: List[str] = Field(default_factory=list)
    is_released: bool = False
    dependency_repos: List[str] = Field(default_factory=list)

    is_checked_out: bool = False
    # Usually equal to branch; differs when a developer switched the checkout.
    current_branch: Optional[str] = None
    sha: Optional[str] = None
    timestamp: Optional[int] = None
    is_clean: bool = True

    # Build-pathway quirks, used when generating links for older branches
    is_chipper2: bool = True
    uses_old_phetio_standalone: bool = False
    uses_relative_sim_path: bool = True
    uses_phetio_studio: bool = True
    uses_phetio_studio_index: bool = True

    build_job_id: Optional[int] = None
    last_built_time: Optional[int] = None
    last_build_shas: Dict[str, str] = Field(default_factory=dict)

    update_job_id: Optional[int] = None
    last_updated_time: Optional[int] = None

    npm_updated: bool = False

    @property
    def is_main(self) -> bool:
        return self.branch == MAIN_BRANCH

    def set_brands(self, brands: List[str]) -> None:
        """Store brands as a set, kept in a stable order."""
        self.brands = sorted(set(brands))


class RepoRecord(BaseModel):
    """Repo-level metadata plus its branches."""

    name: str
    owner: str
    is_sim: bool = False
    is_runnable: bool = False
    supports_interactive_description: bool = False
    supports_voicing: bool = False
    has_unit_tests: bool = False
    branches: Dict[str, BranchRecord] = Field(default_factory=dict)


class LaunchpadModel(BaseModel):
    """Everything persisted in the snapshot file."""

    repos: Dict[str, RepoRecord] = Field(default_factory=dict)


@dataclass(frozen=True)
class RepoBranch:
    """Stable (repo, branch) key."""

    repo: str
    branch: str

    @property
    def key(self) -> str:
        return f"{self.repo}/{self.branch}"


class JobKind(str, Enum):
    """Kinds of long-running jobs."""

    BUILD = "build"
    UPDATE_CHECKOUT = "update-checkout"

    @property
    def records_output(self) -> bool:
        """Only builds keep an output log."""
        return self is JobKind.BUILD

    @property
    def job_id_field(self) -> str:
        """BranchRecord field marking a live job of this kind."""
        return "build_job_id" if self is JobKind.BUILD else "update_job_id"


class JobState(str, Enum):
    """Lifecycle states for a job."""

    ABSENT = "absent"
    IN_PROGRESS = "in-progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {JobState.SUCCEEDED, JobState.FAILED}


class JobEvent(str, Enum):
    """Events that trigger job state transitions."""

    START = "start"
    SUCCEED = "succeed"
    FAIL = "fail"
    RETIRE = "retire"


@dataclass(frozen=True)
class JobTransition:
    """Single transition entry."""

    current: JobState
    event: JobEvent
    next_state: JobState


@dataclass(frozen=True)
class JobKey:
    """At most one live job exists per key."""

    repo: str
    branch: str
    kind: JobKind


@dataclass
class CacheEntry:
    """Transformed text for one single-file script."""

    mtime_ns: int
    size: int
    etag: str
    contents: str


@dataclass(frozen=True)
class CommitSummary:
    """One entry of a branch's recent history."""

    sha: str
    date: str
    author_name: str
    author_email: str
    message: str
