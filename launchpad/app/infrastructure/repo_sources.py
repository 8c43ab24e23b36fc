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
"""Repo lists, release branches and dependency maps read from the checkout tree.

Repo lists are plain text files under ``perennial/data``. Release branch
enumeration and dependency resolution are delegated to configured commands
that print JSON on stdout.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional, Sequence

from launchpad.app.application.synchronizer import ReleaseBranchInfo, RepoLists
from launchpad.app.infrastructure.git_cli import GitCli
from launchpad.app.infrastructure.process import execute

logger = logging.getLogger(__name__)

DATA_DIR = Path("perennial") / "data"
ACTIVE_REPOS = "active-repos"
ACTIVE_SIMS = "active-sims"
ACTIVE_RUNNABLES = "active-runnables"
FRAMEWORK_REPOS = "active-scenerystack-repos"
WRAPPERS = "wrappers"

# Placeholder in the dependency command replaced by the comma-joined runnables
RUNNABLES_PLACEHOLDER = "{runnables}"


def read_repo_list(path: Path) -> list[str]:
    """Non-empty lines of a repo list file; a missing file is an empty list."""
    if not path.exists():
        logger.warning("Repo list %s does not exist", path)
        return []
    lines = path.read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip()]


class FileRepoListProvider:
    def __init__(self, root: Path):
        self.data_dir = Path(root) / DATA_DIR

    def _read(self, name: str) -> list[str]:
        return read_repo_list(self.data_dir / name)

    async def repo_lists(self) -> RepoLists:
        return await asyncio.to_thread(self._read_all)

    def _read_all(self) -> RepoLists:
        return RepoLists(
            active_repos=self._read(ACTIVE_REPOS),
            active_sims=self._read(ACTIVE_SIMS),
            active_runnables=self._read(ACTIVE_RUNNABLES),
            framework_repos=self._read(FRAMEWORK_REPOS),
        )

    async def wrappers(self) -> list[str]:
        return await asyncio.to_thread(self._read, WRAPPERS)


def parse_release_branches(payload: Any) -> list[ReleaseBranchInfo]:
    """Release branches from a JSON list of camelCase objects."""
    if not isinstance(payload, list):
        raise ValueError("Release branch listing must be a JSON list")
    infos = []
    for item in payload:
        infos.append(
            ReleaseBranchInfo(
                repo=item["repo"],
                branch=item["branch"],
                brands=list(item.get("brands", [])),
                is_released=bool(item.get("isReleased", True)),
                dependency_repos=list(item.get("dependencyRepos", [])),
                is_chipper2=bool(item.get("isChipper2", True)),
                uses_old_phetio_standalone=bool(
                    item.get("usesOldPhetioStandalone", False)
                ),
                uses_relative_sim_path=bool(item.get("usesRelativeSimPath", True)),
                uses_phetio_studio=bool(item.get("usesPhetioStudio", True)),
                uses_phetio_studio_index=bool(item.get("usesPhetioStudioIndex", True)),
            )
        )
    return infos


class CommandReleaseBranchSource:
    """Maintained release branches printed as JSON by a command."""

    def __init__(self, root: Path, git: GitCli, command: Optional[Sequence[str]]):
        self.root = Path(root)
        self.git = git
        self.command = list(command) if command else None

    async def maintenance_branches(self) -> list[ReleaseBranchInfo]:
        if not self.command:
            return []
        output = await execute(self.command, self.root)
        return parse_release_branches(json.loads(output))

    async def file_at_branch(self, repo: str, branch: str, path: str) -> str:
        return await self.git.file_at_branch(repo, branch, path)


class CommandDependencyResolver:
    """Runnable -> dependency repos, printed as a JSON object by a command.

    Without a command every runnable depends only on itself.
    """

    def __init__(self, root: Path, command: Optional[Sequence[str]]):
        self.root = Path(root)
        self.command = list(command) if command else None

    async def runnable_dependencies(
        self, runnables: list[str]
    ) -> dict[str, list[str]]:
        if not self.command:
            return {runnable: [runnable] for runnable in runnables}
        joined = ",".join(runnables)
        args = [part.replace(RUNNABLES_PLACEHOLDER, joined) for part in self.command]
        output = await execute(args, self.root)
        payload = json.loads(output)
        if not isinstance(payload, dict):
            raise ValueError("Dependency listing must be a JSON object")
        return {repo: list(deps) for repo, deps in payload.items()}
