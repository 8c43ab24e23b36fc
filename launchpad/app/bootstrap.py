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
"""Wires settings into the stores, services and adapters used by the API."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from launchpad.app.application.asset_cache import AssetCache
from launchpad.app.application.background import BackgroundLoops
from launchpad.app.application.job_manager import JobManager
from launchpad.app.application.model_store import ModelStore
from launchpad.app.application.staleness import StalenessDetector
from launchpad.app.application.synchronizer import ModelSynchronizer, RepoListProvider
from launchpad.app.config import Settings
from launchpad.app.domain.layout import RepoLayout
from launchpad.app.domain.models import CommitSummary
from launchpad.app.infrastructure.build_runner import (
    DEFAULT_BUILD_COMMAND,
    DEFAULT_NPM_COMMAND,
    ProcessJobRunner,
)
from launchpad.app.infrastructure.esbuild_transformer import (
    DEFAULT_ESBUILD_COMMAND,
    EsbuildTransformer,
)
from launchpad.app.infrastructure.git_cli import GitCli, RemoteRefsBackend
from launchpad.app.infrastructure.github_api import GithubRefBackend
from launchpad.app.infrastructure.json_snapshot import JsonSnapshotFile
from launchpad.app.infrastructure.log_buffer import NotableEventHandler
from launchpad.app.infrastructure.repo_sources import (
    CommandDependencyResolver,
    CommandReleaseBranchSource,
    FileRepoListProvider,
)

logger = logging.getLogger(__name__)


class CommitHistory(Protocol):
    async def last_commits(
        self, repo: str, branch: str, count: int = 5
    ) -> list[CommitSummary]:
        """Most recent commits of a checked-out branch."""


@dataclass
class Services:
    """Everything the HTTP layer reaches through ``app.state``."""

    settings: Settings
    store: ModelStore
    jobs: JobManager
    synchronizer: Optional[ModelSynchronizer]
    detector: StalenessDetector
    assets: AssetCache
    repo_lists: RepoListProvider
    history: CommitHistory
    notable_events: NotableEventHandler
    background: Optional[BackgroundLoops] = None
    github: Optional[GithubRefBackend] = None

    def start_background(self) -> None:
        if self.background is None:
            return
        settings = self.settings
        self.background.start(
            sync_on_startup=settings.sync_on_startup,
            sync_interval=settings.sync_interval,
            auto_build_workers=(
                settings.num_auto_build_workers if settings.auto_build else 0
            ),
            auto_build_idle_sleep=settings.auto_build_idle_sleep,
            auto_update_interval=(
                settings.auto_update_interval if settings.auto_update else None
            ),
            initial_npm_install=settings.initial_npm_install,
        )

    async def shutdown(self) -> None:
        if self.background is not None:
            await self.background.stop()
        if self.github is not None:
            await self.github.close()


def build_services(
    settings: Settings, notable_events: Optional[NotableEventHandler] = None
) -> Services:
    """Production wiring: git, npm and esbuild subprocesses under the root."""
    root = settings.root_dir.resolve()
    layout = RepoLayout(root)
    store = ModelStore.load(JsonSnapshotFile(settings.resolved_snapshot_path))
    git = GitCli(layout)
    repo_lists = FileRepoListProvider(root)

    synchronizer = ModelSynchronizer(
        store=store,
        layout=layout,
        repo_lists=repo_lists,
        git=git,
        release_branches=CommandReleaseBranchSource(
            root, git, settings.release_branches_command
        ),
        dependencies=CommandDependencyResolver(root, settings.dependencies_command),
        concurrency=settings.sync_concurrency,
        check_clean=settings.check_clean,
    )

    github = None
    if settings.use_github_api:
        github = GithubRefBackend(settings.github_token or "")
        detector = StalenessDetector(github)
    else:
        detector = StalenessDetector(RemoteRefsBackend(root))

    def owner_of(repo: str) -> str:
        record = store.repos.get(repo)
        return record.owner if record is not None else synchronizer.default_owner

    runner = ProcessJobRunner(
        layout=layout,
        git=git,
        owner_of=owner_of,
        build_command=settings.build_command or DEFAULT_BUILD_COMMAND,
        npm_command=settings.npm_command or DEFAULT_NPM_COMMAND,
        npm_lock=asyncio.Semaphore(1),
    )
    jobs = JobManager(
        store=store,
        runner=runner,
        refresh_branch=synchronizer.refresh_branch,
        retain_finished_jobs=settings.retain_finished_jobs,
    )
    assets = AssetCache(
        root,
        EsbuildTransformer(root, settings.esbuild_command or DEFAULT_ESBUILD_COMMAND),
    )
    background = BackgroundLoops(
        store=store,
        jobs=jobs,
        synchronizer=synchronizer,
        detector=detector,
        installer=runner,
    )
    jobs.after_update = background.sync_after_update
    return Services(
        settings=settings,
        store=store,
        jobs=jobs,
        synchronizer=synchronizer,
        detector=detector,
        assets=assets,
        repo_lists=repo_lists,
        history=git,
        notable_events=notable_events or NotableEventHandler(),
        background=background,
        github=github,
    )
