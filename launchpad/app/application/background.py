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
"""Long-running maintenance loops: sync, auto-build, auto-update, npm install.

Each pass is a plain coroutine so it can be driven directly; the loops only add
scheduling. A failing pass is logged and the loop carries on.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

from launchpad.app.application.job_manager import JobManager
from launchpad.app.application.model_store import ModelStore
from launchpad.app.application.staleness import StalenessDetector
from launchpad.app.application.synchronizer import ModelSynchronizer
from launchpad.app.domain.models import BranchRecord, JobKind

logger = logging.getLogger(__name__)

# Holds the repo lists the synchronizer reads
PERENNIAL_REPO = "perennial"


class NodeModulesInstaller(Protocol):
    async def update_node_modules(self, record: BranchRecord) -> None:
        """Install dependencies for a checkout."""


def needs_build(store: ModelStore, record: BranchRecord) -> bool:
    """True when a checked-out branch was never built or a dependency moved."""
    if not record.is_checked_out or record.build_job_id is not None:
        return False
    if not record.npm_updated:
        return False
    if record.last_built_time is None:
        return True
    for dependency in record.dependency_repos:
        main = store.main_branch(dependency)
        current = main.sha if main is not None else None
        if current != record.last_build_shas.get(dependency):
            return True
    return False


async def wait_for_job(jobs: JobManager, job_id: int) -> bool:
    """Wait for a job's result without holding on to its output."""
    loop = asyncio.get_running_loop()
    result: asyncio.Future[bool] = loop.create_future()

    def on_completed(success: bool) -> None:
        if not result.done():
            result.set_result(success)

    subscription = jobs.attach(job_id, on_completed=on_completed)
    try:
        return await result
    finally:
        jobs.detach(subscription)


class BackgroundLoops:
    """Owns the maintenance tasks started with the server."""

    def __init__(
        self,
        store: ModelStore,
        jobs: JobManager,
        synchronizer: ModelSynchronizer,
        detector: StalenessDetector,
        installer: Optional[NodeModulesInstaller] = None,
    ):
        self.store = store
        self.jobs = jobs
        self.synchronizer = synchronizer
        self.detector = detector
        self.installer = installer
        self._tasks: list[asyncio.Task] = []

    async def auto_build_pass(self) -> int:
        """Build every out-of-date runnable branch, one at a time."""
        built = 0
        for repo in list(self.store.repos.values()):
            if not repo.is_runnable:
                continue
            for record in list(repo.branches.values()):
                if not needs_build(self.store, record):
                    continue
                logger.debug("Auto-building %s/%s", record.repo, record.branch)
                job_id = self.jobs.submit(record, JobKind.BUILD)
                await wait_for_job(self.jobs, job_id)
                built += 1
        return built

    async def auto_update_pass(self) -> int:
        """Update every stale checkout and wait for the updates to finish."""
        stale = await self.detector.find_stale(self.store)
        job_ids = []
        for item in stale:
            if not self.store.has_branch(item.repo, item.branch):
                continue
            record = self.store.get_branch(item.repo, item.branch)
            logger.info("Auto-updating stale %s", item.key)
            job_ids.append(self.jobs.submit(record, JobKind.UPDATE_CHECKOUT))
        await asyncio.gather(*(wait_for_job(self.jobs, job_id) for job_id in job_ids))
        return len(job_ids)

    async def initial_npm_install(self) -> None:
        """Install node_modules for main checkouts that never had them."""
        if self.installer is None:
            return
        for repo in list(self.store.repos):
            main = self.store.main_branch(repo)
            if main is None or main.npm_updated:
                continue
            try:
                await self.installer.update_node_modules(main)
            except Exception as exc:
                logger.error("Initial npm install for %s failed: %s", repo, exc)
            await self.store.persist()

    async def _forever(
        self,
        name: str,
        work: Callable[[], Awaitable[object]],
        interval: float,
        sleep_first: bool = False,
    ) -> None:
        if sleep_first:
            await asyncio.sleep(interval)
        while True:
            logger.debug("Starting %s iteration", name)
            try:
                await work()
            except Exception:
                logger.exception("%s iteration failed", name)
            await asyncio.sleep(interval)

    def _spawn(self, coro: Awaitable[None], name: str) -> None:
        self._tasks = [task for task in self._tasks if not task.done()]
        self._tasks.append(asyncio.ensure_future(coro))
        logger.info("Started %s", name)

    def start(
        self,
        sync_on_startup: bool = True,
        sync_interval: Optional[float] = None,
        auto_build_workers: int = 0,
        auto_build_idle_sleep: float = 3.0,
        auto_update_interval: Optional[float] = None,
        initial_npm_install: bool = False,
    ) -> None:
        if sync_on_startup:
            self._spawn(self._sync_once(), "initial sync")
        if initial_npm_install:
            self._spawn(self.initial_npm_install(), "initial npm install")
        if sync_interval is not None:
            self._spawn(
                self._forever(
                    "periodic sync",
                    self.synchronizer.sync,
                    sync_interval,
                    sleep_first=True,
                ),
                "periodic sync",
            )
        for index in range(auto_build_workers):
            self._spawn(
                self._forever(
                    "auto-build", self.auto_build_pass, auto_build_idle_sleep
                ),
                f"auto-build worker {index}",
            )
        if auto_update_interval is not None:
            self._spawn(
                self._forever(
                    "auto-update", self.auto_update_pass, auto_update_interval
                ),
                "auto-update",
            )

    def sync_after_update(self, record: BranchRecord) -> None:
        """Start a sync right away once perennial has been updated."""
        if record.repo != PERENNIAL_REPO:
            return
        self._spawn(
            self._sync_once("post-update sync"), "sync after perennial update"
        )

    async def _sync_once(self, name: str = "initial sync") -> None:
        try:
            await self.synchronizer.sync()
        except Exception:
            logger.exception("%s failed", name)

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
