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
"""API schemas for the launchpad server."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Response model serialized with its camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True)


class RepoListEntry(CamelModel):
    name: str
    owner: str
    is_sim: bool = Field(alias="isSim")
    is_runnable: bool = Field(alias="isRunnable")
    supports_interactive_description: bool = Field(
        alias="supportsInteractiveDescription"
    )
    supports_voicing: bool = Field(alias="supportsVoicing")
    has_unit_tests: bool = Field(alias="hasUnitTests")
    branches: List[str]


class RepoListResponse(CamelModel):
    repo_list: List[RepoListEntry] = Field(alias="repoList")


class BranchInfoResponse(CamelModel):
    """Branch record plus the current main-branch state of its dependencies."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    repo: str
    branch: str
    version: Optional[str] = None
    package_metadata: Optional[Any] = Field(default=None, alias="phetPackageJSON")
    brands: List[str] = Field(default_factory=list)
    is_released: bool = False
    dependency_repos: List[str] = Field(default_factory=list)

    is_checked_out: bool = False
    current_branch: Optional[str] = None
    sha: Optional[str] = None
    timestamp: Optional[int] = None
    is_clean: bool = True

    is_chipper2: bool = True
    uses_old_phetio_standalone: bool = False
    uses_relative_sim_path: bool = True
    uses_phetio_studio: bool = True
    uses_phetio_studio_index: bool = True

    build_job_id: Optional[int] = Field(default=None, alias="buildJobID")
    last_built_time: Optional[int] = None
    last_build_shas: Dict[str, str] = Field(default_factory=dict)

    update_job_id: Optional[int] = Field(default=None, alias="updateCheckoutJobID")
    last_updated_time: Optional[int] = None

    npm_updated: bool = False

    dependency_sha_map: Dict[str, Optional[str]] = Field(
        default_factory=dict, alias="dependencySHAMap"
    )
    dependency_timestamp_map: Dict[str, Optional[int]] = Field(default_factory=dict)


class BuildJobResponse(CamelModel):
    build_job_id: int = Field(alias="buildJobID")


class UpdateJobResponse(CamelModel):
    update_checkout_job_id: int = Field(alias="updateCheckoutJobID")


class LatestShaResponse(BaseModel):
    sha: Optional[str] = None


class RepoBranchPayload(BaseModel):
    repo: str
    branch: str


class StaleBranchesResponse(CamelModel):
    stale_branches: List[RepoBranchPayload] = Field(alias="staleBranches")


class CommitPayload(CamelModel):
    sha: str
    date: str
    author_name: str = Field(alias="authorName")
    author_email: str = Field(alias="authorEmail")
    message: str


class LastCommitsResponse(BaseModel):
    commits: List[CommitPayload]


class WrappersResponse(BaseModel):
    wrappers: List[str]


class LogEventPayload(BaseModel):
    message: str
    level: str
    timestamp: str


class NotableEventsResponse(CamelModel):
    last_error_log_events: List[LogEventPayload] = Field(alias="lastErrorLogEvents")
    last_warn_log_events: List[LogEventPayload] = Field(alias="lastWarnLogEvents")
