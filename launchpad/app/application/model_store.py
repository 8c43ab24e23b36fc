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
"""Model store: one record per (repo, branch), persisted as a snapshot."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterator, Protocol

from launchpad.app.domain.models import (
    MAIN_BRANCH,
    BranchRecord,
    LaunchpadModel,
    RepoRecord,
)
from launchpad.app.errors import NotFoundError

logger = logging.getLogger(__name__)


class SnapshotRepository(Protocol):
    """Persistence contract for the whole model."""

    def load(self) -> LaunchpadModel | None:
        """Return the stored model, or None when nothing was saved yet."""

    def save(self, model: LaunchpadModel) -> None:
        """Overwrite the stored model."""


class ModelStore:
    """Owns the in-memory model and writes it through to a snapshot."""

    def __init__(
        self,
        snapshot: SnapshotRepository,
        model: LaunchpadModel | None = None,
    ) -> None:
        self.snapshot = snapshot
        self.model = model if model is not None else LaunchpadModel()
        self._persist_lock = asyncio.Lock()

    @classmethod
    def load(cls, snapshot: SnapshotRepository) -> "ModelStore":
        """Load the snapshot; no job survives a restart."""
        model = snapshot.load()
        store = cls(snapshot=snapshot, model=model)
        reset = store.reset_job_ids()
        if reset:
            logger.info("Reset %s leftover job id(s) from a previous run", reset)
            store.save()
        logger.info("Loaded model with %s repo(s)", len(store.repos))
        return store

    @property
    def repos(self) -> dict[str, RepoRecord]:
        return self.model.repos

    def save(self) -> None:
        self.snapshot.save(self.model)

    async def persist(self) -> None:
        """Save a copy of the model from a worker thread.

        The copy is taken on the event loop, so writers never see a model that
        is mid-mutation. Writes land in the order they were requested.
        """
        async with self._persist_lock:
            model = self.model.model_copy(deep=True)
            await asyncio.to_thread(self.snapshot.save, model)

    def reset_job_ids(self) -> int:
        count = 0
        for branch in self.iter_branches():
            if branch.build_job_id is not None or branch.update_job_id is not None:
                count += 1
            branch.build_job_id = None
            branch.update_job_id = None
        return count

    def get_repo(self, repo: str) -> RepoRecord:
        record = self.repos.get(repo)
        if record is None:
            raise NotFoundError("Unknown repo")
        return record

    def get_branch(self, repo: str, branch: str) -> BranchRecord:
        record = self.get_repo(repo).branches.get(branch)
        if record is None:
            raise NotFoundError("Unknown branch")
        return record

    def has_branch(self, repo: str, branch: str) -> bool:
        return repo in self.repos and branch in self.repos[repo].branches

    def iter_branches(self) -> Iterator[BranchRecord]:
        for repo in list(self.repos.values()):
            yield from list(repo.branches.values())

    def checked_out_branches(self) -> list[BranchRecord]:
        return [b for b in self.iter_branches() if b.is_checked_out]

    def add_repo(self, record: RepoRecord) -> None:
        self.repos[record.name] = record

    def remove_repo(self, repo: str) -> None:
        self.repos.pop(repo, None)

    def main_branch(self, repo: str) -> BranchRecord | None:
        record = self.repos.get(repo)
        if record is None:
            return None
        return record.branches.get(MAIN_BRANCH)

    def dependency_maps(
        self, branch: BranchRecord
    ) -> tuple[dict[str, str | None], dict[str, int | None]]:
        """Main-branch sha and commit timestamp for each dependency repo."""
        shas: dict[str, str | None] = {}
        timestamps: dict[str, int | None] = {}
        for dependency in branch.dependency_repos:
            main = self.main_branch(dependency)
            shas[dependency] = main.sha if main else None
            timestamps[dependency] = main.timestamp if main else None
        return shas, timestamps
