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
"""Detects checked-out branches whose remote has moved on."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Optional, Protocol

from launchpad.app.application.model_store import ModelStore
from launchpad.app.domain.models import BranchRecord, RepoBranch

logger = logging.getLogger(__name__)


class RemoteCommitBackend(Protocol):
    """Source of remote branch heads."""

    async def remote_commits(
        self, owner: str, repo: str, branches: list[str]
    ) -> dict[str, Optional[str]]:
        """Map each requested branch to its remote commit id (None if unknown)."""


def is_stale(local_sha: Optional[str], remote_sha: Optional[str]) -> bool:
    """Stale only when both commits are known and differ."""
    return bool(local_sha) and bool(remote_sha) and local_sha != remote_sha


class StalenessDetector:
    """Advisory check; it reports stale branches and never updates them."""

    def __init__(self, backend: RemoteCommitBackend):
        self.backend = backend

    async def latest_sha(
        self, store: ModelStore, repo: str, branch: str
    ) -> Optional[str]:
        """Remote commit of one known branch."""
        owner = store.get_repo(repo).owner
        store.get_branch(repo, branch)
        commits = await self.backend.remote_commits(owner, repo, [branch])
        return commits.get(branch)

    async def find_stale(self, store: ModelStore) -> list[RepoBranch]:
        by_repo: dict[str, list[BranchRecord]] = defaultdict(list)
        for record in store.checked_out_branches():
            by_repo[record.repo].append(record)

        async def check(repo: str, records: list[BranchRecord]) -> list[RepoBranch]:
            repo_record = store.repos.get(repo)
            if repo_record is None:
                return []
            try:
                remote = await self.backend.remote_commits(
                    repo_record.owner, repo, [r.branch for r in records]
                )
            except Exception as exc:
                logger.warning("Fetching remote heads for %s failed: %s", repo, exc)
                return []
            return [
                RepoBranch(repo=r.repo, branch=r.branch)
                for r in records
                if is_stale(r.sha, remote.get(r.branch))
            ]

        results = await asyncio.gather(
            *(check(repo, records) for repo, records in sorted(by_repo.items()))
        )
        stale = [item for group in results for item in group]
        if stale:
            logger.debug("Stale branches: %s", ", ".join(s.key for s in stale))
        return stale
