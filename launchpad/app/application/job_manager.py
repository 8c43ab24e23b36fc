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
"""Job manager for build and checkout-update jobs.

At most one job runs per (repo, branch, kind). A duplicate trigger while a job
is live returns the live job's id. Jobs run as asyncio tasks and never raise
out of the manager: failures become a ``completed`` event with
``success=False``. Finished jobs stay attachable until evicted so late
observers can replay their output and result.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional, Protocol, Set

from launchpad.app.application.broadcast import BroadcastChannel, Subscription
from launchpad.app.application.events import (
    CompletedListener,
    OutputListener,
    utc_now,
)
from launchpad.app.application.model_store import ModelStore
from launchpad.app.domain.models import (
    MAIN_BRANCH,
    BranchRecord,
    JobEvent,
    JobKey,
    JobKind,
    JobState,
    now_ms,
)
from launchpad.app.domain.state_machine import JobStateMachine
from launchpad.app.errors import NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_RETAIN_FINISHED_JOBS = 200


class JobRunner(Protocol):
    """External build/update operations. Raise to signal failure."""

    async def build(self, record: BranchRecord, on_output: OutputListener) -> None:
        """Build a checked-out branch, streaming process output."""

    async def update_checkout(self, record: BranchRecord) -> None:
        """Bring the local checkout up to date with its remote branch."""


BranchRefresher = Callable[[BranchRecord], Awaitable[None]]
UpdateHook = Callable[[BranchRecord], None]


@dataclass
class Job:
    """A build or update-checkout job and its broadcast channel."""

    job_id: int
    repo: str
    branch: str
    kind: JobKind
    channel: BroadcastChannel
    state: JobState = JobState.ABSENT
    created_at: str = field(default_factory=utc_now)
    completed_at: Optional[str] = None

    @property
    def key(self) -> JobKey:
        return JobKey(repo=self.repo, branch=self.branch, kind=self.kind)

    @property
    def output(self) -> Optional[str]:
        """Accumulated log for builds; update jobs carry none."""
        return self.channel.output if self.kind.records_output else None

    @property
    def success(self) -> Optional[bool]:
        return self.channel.result


class JobManager:
    """Owns every job, keyed by id and by (repo, branch, kind)."""

    def __init__(
        self,
        store: ModelStore,
        runner: JobRunner,
        refresh_branch: Optional[BranchRefresher] = None,
        retain_finished_jobs: int = DEFAULT_RETAIN_FINISHED_JOBS,
        state_machine: Optional[JobStateMachine] = None,
        after_update: Optional[UpdateHook] = None,
    ):
        self.store = store
        self.runner = runner
        self.refresh_branch = refresh_branch
        # Called after a successful update checkout, once the branch is refreshed
        self.after_update = after_update
        self.retain_finished_jobs = retain_finished_jobs
        self.state_machine = state_machine or JobStateMachine()
        self._ids = itertools.count()
        self._jobs: Dict[int, Job] = {}
        self._live: Dict[JobKey, int] = {}
        self._finished: "OrderedDict[int, None]" = OrderedDict()
        self._tasks: Set[asyncio.Task] = set()

    def get_job(self, job_id: int, kind: Optional[JobKind] = None) -> Job:
        job = self._jobs.get(job_id)
        if job is None or (kind is not None and job.kind is not kind):
            raise NotFoundError(f"Unknown job id: {job_id}")
        return job

    def live_job(self, repo: str, branch: str, kind: JobKind) -> Optional[Job]:
        job_id = self._live.get(JobKey(repo=repo, branch=branch, kind=kind))
        return self._jobs.get(job_id) if job_id is not None else None

    def list_jobs(self) -> list[Job]:
        return list(self._jobs.values())

    def submit(self, record: BranchRecord, kind: JobKind) -> int:
        """Start a job for the record, or return the live one for its key."""
        key = JobKey(repo=record.repo, branch=record.branch, kind=kind)
        live_id = self._live.get(key)
        if live_id is not None:
            logger.info(
                "Already running %s job %s for %s/%s",
                kind.value,
                live_id,
                record.repo,
                record.branch,
            )
            return live_id

        job_id = next(self._ids)
        job = Job(
            job_id=job_id,
            repo=record.repo,
            branch=record.branch,
            kind=kind,
            channel=BroadcastChannel(record_output=kind.records_output),
        )
        job.state = self.state_machine.next_state(job.state, JobEvent.START)
        self._jobs[job_id] = job
        self._live[key] = job_id

        setattr(record, kind.job_id_field, job_id)
        if kind is JobKind.BUILD:
            record.last_built_time = None
            record.last_build_shas = {}
        else:
            record.last_updated_time = None
            if not record.is_main:
                record.is_checked_out = False
        self._save()

        self._track(asyncio.get_running_loop().create_task(self._run(job, record)))
        return job_id

    def attach(
        self,
        job_id: int,
        on_completed: CompletedListener,
        on_output: Optional[OutputListener] = None,
        kind: Optional[JobKind] = None,
    ) -> Subscription:
        """Attach listeners; finished jobs replay synchronously."""
        job = self.get_job(job_id, kind=kind)
        return job.channel.subscribe(on_completed=on_completed, on_output=on_output)

    def detach(self, subscription: Subscription) -> None:
        subscription.cancel()

    async def wait_idle(self) -> None:
        """Wait until every running job has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, job: Job, record: BranchRecord) -> None:
        tag = f"{job.kind.value} job {job.job_id} {job.repo}/{job.branch}"
        dependency_shas: dict[str, str] = {}
        success = False
        try:
            logger.info("Starting %s", tag)
            self._check_main_checkout(record)
            if job.kind is JobKind.BUILD:
                dependency_shas = self._dependency_shas(record)
                await self.runner.build(
                    record, on_output=lambda text: self._on_output(job, tag, text)
                )
            else:
                await self.runner.update_checkout(record)
            success = True
            logger.info("%s completed successfully", tag)
        except Exception as exc:
            logger.warning("%s failed: %s", tag, exc)
            if job.kind is JobKind.BUILD:
                job.channel.publish(f"Build error: {exc}\n")

        if success and job.kind is JobKind.UPDATE_CHECKOUT:
            if not record.is_main:
                record.is_checked_out = True
            if self.refresh_branch is not None:
                try:
                    await self.refresh_branch(record)
                except Exception:
                    logger.exception("Refreshing %s/%s failed", job.repo, job.branch)
            if self.after_update is not None:
                try:
                    self.after_update(record)
                except Exception:
                    logger.exception("Post-update hook for %s failed", tag)

        self._finish(job, record, success, dependency_shas)

    def _finish(
        self,
        job: Job,
        record: BranchRecord,
        success: bool,
        dependency_shas: dict[str, str],
    ) -> None:
        event = JobEvent.SUCCEED if success else JobEvent.FAIL
        job.state = self.state_machine.next_state(job.state, event)
        job.completed_at = utc_now()

        if success and job.kind is JobKind.BUILD:
            record.last_built_time = now_ms()
            record.last_build_shas = dependency_shas
        elif success:
            record.last_updated_time = now_ms()

        if getattr(record, job.kind.job_id_field) == job.job_id:
            setattr(record, job.kind.job_id_field, None)
        self._live.pop(job.key, None)
        self._save()

        job.channel.close(success)
        self._retire(job.job_id)

    def _save(self) -> None:
        """Persist in the background; wait_idle also waits for pending saves."""
        self._track(asyncio.get_running_loop().create_task(self._persist()))

    async def _persist(self) -> None:
        try:
            await self.store.persist()
        except OSError:
            logger.exception("Saving model snapshot failed")

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_output(self, job: Job, tag: str, text: str) -> None:
        for line in text.splitlines():
            logger.debug("  [%s] %s", tag, line)
        job.channel.publish(text)

    def _retire(self, job_id: int) -> None:
        self._finished[job_id] = None
        while len(self._finished) > self.retain_finished_jobs:
            old_id, _ = self._finished.popitem(last=False)
            old = self._jobs.pop(old_id, None)
            if old is not None:
                old.state = self.state_machine.next_state(old.state, JobEvent.RETIRE)

    def _check_main_checkout(self, record: BranchRecord) -> None:
        if (
            record.is_main
            and record.current_branch is not None
            and record.current_branch != MAIN_BRANCH
        ):
            raise RuntimeError(
                f"{record.repo} has {record.current_branch} checked out instead "
                "of main; refusing to touch it"
            )

    def _dependency_shas(self, record: BranchRecord) -> dict[str, str]:
        """Shas the build will consume, recorded on success."""
        if not record.is_main:
            return {record.repo: record.sha} if record.sha else {}
        shas = {}
        for dependency in record.dependency_repos:
            main = self.store.main_branch(dependency)
            if main is not None and main.sha:
                shas[dependency] = main.sha
        return shas
