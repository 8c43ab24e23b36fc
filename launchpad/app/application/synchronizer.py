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
"""Reconciles the model store against repo lists and git metadata.

A pass removes repos that are no longer listed, initializes new ones, refreshes
every known branch and discovers maintained release branches. Work fans out
under a bounded limiter; each task writes to its own (repo, branch) record.
A failure for one repo or branch is logged and leaves its previous values.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Optional, Protocol

from launchpad.app.application.model_store import ModelStore
from launchpad.app.domain.layout import RepoLayout
from launchpad.app.domain.models import (
    MAIN_BRANCH,
    BranchRecord,
    RepoBranch,
    RepoRecord,
)

logger = logging.getLogger(__name__)

DEFAULT_SYNC_CONCURRENCY = 30
EXCLUDED_BRANDS = {"adapted-from-phet"}


@dataclass(frozen=True)
class RepoLists:
    """Repo ids reported by the repo-list providers."""

    active_repos: list[str] = field(default_factory=list)
    active_sims: list[str] = field(default_factory=list)
    active_runnables: list[str] = field(default_factory=list)
    framework_repos: list[str] = field(default_factory=list)

    def union(self) -> list[str]:
        return sorted(
            set(self.active_repos)
            | set(self.active_sims)
            | set(self.active_runnables)
            | set(self.framework_repos)
        )


@dataclass(frozen=True)
class ReleaseBranchInfo:
    """One maintained release branch."""

    repo: str
    branch: str
    brands: list[str] = field(default_factory=list)
    is_released: bool = True
    dependency_repos: list[str] = field(default_factory=list)
    is_chipper2: bool = True
    uses_old_phetio_standalone: bool = False
    uses_relative_sim_path: bool = True
    uses_phetio_studio: bool = True
    uses_phetio_studio_index: bool = True


class RepoListProvider(Protocol):
    async def repo_lists(self) -> RepoLists:
        """Current active repo lists."""

    async def wrappers(self) -> list[str]:
        """Wrapper repos."""


class GitInspector(Protocol):
    async def ensure_clone(self, repo: str, owner: str) -> None:
        """Clone the repo under the root directory when missing."""

    async def current_branch(self, directory: Path) -> str:
        """Name of the branch checked out in directory."""

    async def head_sha(self, directory: Path) -> str:
        """Commit id of HEAD."""

    async def commit_timestamp(self, directory: Path, branch: str) -> int:
        """Commit time of branch tip, ms since the epoch."""

    async def is_clean(self, directory: Path) -> bool:
        """True when the working tree has no changes."""


class ReleaseBranchSource(Protocol):
    async def maintenance_branches(self) -> list[ReleaseBranchInfo]:
        """Every release branch still maintained."""

    async def file_at_branch(self, repo: str, branch: str, path: str) -> str:
        """Contents of a file on a remote branch."""


class DependencyResolver(Protocol):
    async def runnable_dependencies(
        self, runnables: list[str]
    ) -> dict[str, list[str]]:
        """Repo dependencies of each runnable's main branch."""


class ModelSynchronizer:
    """Keeps the model store in line with ground truth."""

    def __init__(
        self,
        store: ModelStore,
        layout: RepoLayout,
        repo_lists: RepoListProvider,
        git: GitInspector,
        release_branches: ReleaseBranchSource,
        dependencies: DependencyResolver,
        default_owner: str = "phetsims",
        framework_owner: str = "scenerystack",
        concurrency: int = DEFAULT_SYNC_CONCURRENCY,
        check_clean: bool = False,
    ):
        self.store = store
        self.layout = layout
        self.repo_lists = repo_lists
        self.git = git
        self.release_branches = release_branches
        self.dependencies = dependencies
        self.default_owner = default_owner
        self.framework_owner = framework_owner
        self.concurrency = concurrency
        self.check_clean = check_clean
        self._pass_lock = asyncio.Lock()

    async def sync(self, lists: Optional[RepoLists] = None) -> None:
        """Run one full synchronization pass; passes never overlap."""
        async with self._pass_lock:
            logger.info("Updating model")
            await self._sync(lists)
            await self.store.persist()
            logger.info("Finished updating model")

    async def _sync(self, lists: Optional[RepoLists]) -> None:
        if lists is None:
            lists = await self.repo_lists.repo_lists()
        repos = lists.union()
        existing = list(self.store.repos)
        new_repos = [repo for repo in repos if repo not in self.store.repos]
        removed = [repo for repo in existing if repo not in repos]

        for repo in removed:
            logger.info("Removing repo %s", repo)
            self.store.remove_repo(repo)

        existing = [repo for repo in existing if repo not in removed]
        for repo in existing:
            record = self.store.repos[repo]
            record.owner = self._owner(repo, lists)
            record.is_sim = repo in lists.active_sims
            record.is_runnable = repo in lists.active_runnables
            self._refresh_repo_features(record)

        dependency_map: Optional[dict[str, list[str]]]
        try:
            dependency_map = await self.dependencies.runnable_dependencies(
                list(lists.active_runnables)
            )
        except Exception:
            logger.exception("Resolving runnable dependencies failed")
            dependency_map = None

        limiter = asyncio.Semaphore(self.concurrency)

        async def limited(label: str, work: Awaitable[Any]) -> None:
            async with limiter:
                try:
                    await work
                except Exception:
                    logger.exception("Synchronizing %s failed", label)

        tasks = [
            limited(repo, self._initialize_repo(repo, lists, dependency_map))
            for repo in new_repos
        ]
        for repo in existing:
            for branch in list(self.store.repos[repo].branches.values()):
                dependency_repos = None
                if branch.is_main and dependency_map is not None:
                    dependency_repos = dependency_map.get(repo, [])
                tasks.append(
                    limited(
                        f"{repo}/{branch.branch}",
                        self.refresh_branch(branch, dependency_repos),
                    )
                )
        await asyncio.gather(*tasks)

        # Runs after initialization so new repos get their release branches too.
        await self._discover_safely()

    async def _discover_safely(self) -> None:
        try:
            await self.discover_release_branches()
        except Exception:
            logger.exception("Release branch discovery failed")

    def _owner(self, repo: str, lists: RepoLists) -> str:
        if repo in lists.framework_repos:
            return self.framework_owner
        return self.default_owner

    def _refresh_repo_features(self, record: RepoRecord) -> None:
        try:
            package_json = self.layout.read_package_json(record.name) or {}
        except (OSError, ValueError) as exc:
            logger.warning("Reading package.json for %s failed: %s", record.name, exc)
            return
        sim_features = (package_json.get("phet") or {}).get("simFeatures") or {}
        record.supports_interactive_description = bool(
            sim_features.get("supportsInteractiveDescription", False)
        )
        record.supports_voicing = bool(sim_features.get("supportsVoicing", False))
        record.has_unit_tests = self.layout.has_unit_tests(record.name)

    async def _initialize_repo(
        self,
        repo: str,
        lists: RepoLists,
        dependency_map: Optional[dict[str, list[str]]],
    ) -> None:
        owner = self._owner(repo, lists)
        is_runnable = repo in lists.active_runnables
        await self.git.ensure_clone(repo, owner)

        package_json: dict[str, Any] = {}
        if is_runnable:
            package_json = self.layout.read_package_json(repo) or {}
        main = BranchRecord(
            repo=repo,
            branch=MAIN_BRANCH,
            version=package_json.get("version"),
            package_metadata=package_json.get("phet"),
            is_released=False,
            is_checked_out=True,
            npm_updated=False,
        )
        await self.refresh_branch(main, (dependency_map or {}).get(repo, []))

        record = RepoRecord(
            name=repo,
            owner=owner,
            is_sim=repo in lists.active_sims,
            is_runnable=is_runnable,
            branches={MAIN_BRANCH: main},
        )
        self._refresh_repo_features(record)
        self.store.add_repo(record)
        logger.info("Added repo %s", repo)

    async def refresh_branch(
        self,
        record: BranchRecord,
        dependency_repos: Optional[list[str]] = None,
    ) -> None:
        """Re-read git metadata for a checked-out branch.

        Reads run concurrently; a failed read is logged and its field keeps the
        previous value.
        """
        if dependency_repos is not None:
            record.dependency_repos = list(dependency_repos)
        if not record.is_checked_out:
            return

        directory = self.layout.directory(record.repo, record.branch)
        label = f"{record.repo}/{record.branch}"

        async def fetch(name: str, work: Awaitable[Any]) -> None:
            try:
                value = await work
            except Exception as exc:
                logger.warning("Reading %s for %s failed: %s", name, label, exc)
                return
            setattr(record, name, value)

        reads = [
            fetch("sha", self.git.head_sha(directory)),
            fetch("timestamp", self.git.commit_timestamp(directory, record.branch)),
        ]
        if record.is_main:
            reads.append(fetch("current_branch", self.git.current_branch(directory)))
        if self.check_clean:
            reads.append(fetch("is_clean", self.git.is_clean(directory)))
        else:
            record.is_clean = True
        await asyncio.gather(*reads)

        if record.is_main:
            self._refresh_brands(record)

    def _refresh_brands(self, record: BranchRecord) -> None:
        try:
            package_json = self.layout.read_package_json(record.repo)
        except (OSError, ValueError) as exc:
            logger.warning("Reading package.json for %s failed: %s", record.repo, exc)
            return
        brands: list[str] = []
        supported = ((package_json or {}).get("phet") or {}).get("supportedBrands")
        if isinstance(supported, list):
            brands = [b for b in supported if b not in EXCLUDED_BRANDS]
        record.set_brands(brands)

    async def discover_release_branches(self) -> list[RepoBranch]:
        """Add maintained release branches not yet in the model.

        New release branches are not checked out locally; their metadata comes
        from the remote branch.
        """
        infos = await self.release_branches.maintenance_branches()
        limiter = asyncio.Semaphore(self.concurrency)
        added: list[RepoBranch] = []

        async def add(info: ReleaseBranchInfo) -> None:
            repo_record = self.store.repos.get(info.repo)
            if repo_record is None:
                logger.debug("Skipping release branch of unknown repo %s", info.repo)
                return
            if info.branch in repo_record.branches:
                return
            async with limiter:
                try:
                    text = await self.release_branches.file_at_branch(
                        info.repo, info.branch, "package.json"
                    )
                    package_json = json.loads(text)
                except Exception as exc:
                    logger.warning(
                        "Reading package.json of %s/%s failed: %s",
                        info.repo,
                        info.branch,
                        exc,
                    )
                    return
            if info.branch in repo_record.branches:
                return
            record = BranchRecord(
                repo=info.repo,
                branch=info.branch,
                version=package_json.get("version"),
                package_metadata=package_json.get("phet"),
                is_released=info.is_released,
                dependency_repos=[d for d in info.dependency_repos if d != "comment"],
                is_checked_out=False,
                is_chipper2=info.is_chipper2,
                uses_old_phetio_standalone=info.uses_old_phetio_standalone,
                uses_relative_sim_path=info.uses_relative_sim_path,
                uses_phetio_studio=info.uses_phetio_studio,
                uses_phetio_studio_index=info.uses_phetio_studio_index,
                npm_updated=True,
            )
            record.set_brands(info.brands)
            repo_record.branches[info.branch] = record
            added.append(RepoBranch(repo=info.repo, branch=info.branch))
            logger.info("Discovered release branch %s/%s", info.repo, info.branch)

        await asyncio.gather(*(add(info) for info in infos))
        return added
