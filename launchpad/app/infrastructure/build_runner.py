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
"""Build and checkout-update operations backed by git, npm and the build tool."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Callable, Optional, Sequence

from launchpad.app.application.events import OutputListener
from launchpad.app.domain.layout import RepoLayout
from launchpad.app.domain.models import BranchRecord
from launchpad.app.infrastructure.git_cli import GitCli, remote_url
from launchpad.app.infrastructure.process import execute

logger = logging.getLogger(__name__)

DEFAULT_BUILD_COMMAND = (
    "npx",
    "grunt",
    "--lint=false",
    "--type-check=false",
    "--locales=*",
    "--allHTML",
    "--debugHTML",
)
DEFAULT_NPM_COMMAND = ("npm", "install")
DEFAULT_OWNER = "phetsims"

NPM_FILES = ("package.json", "package-lock.json")


def npm_hash(directory: Path) -> str:
    """Digest of package.json and package-lock.json; missing files hash as empty."""
    digest = hashlib.sha256()
    for name in NPM_FILES:
        path = directory / name
        if path.exists():
            digest.update(path.read_bytes())
    return digest.hexdigest()


class ProcessJobRunner:
    """Runs jobs as subprocesses in the branch's working copy.

    npm operations share one lock, so at most one runs at a time.
    """

    def __init__(
        self,
        layout: RepoLayout,
        git: GitCli,
        owner_of: Optional[Callable[[str], str]] = None,
        build_command: Sequence[str] = DEFAULT_BUILD_COMMAND,
        npm_command: Sequence[str] = DEFAULT_NPM_COMMAND,
        npm_lock: Optional[asyncio.Semaphore] = None,
    ):
        self.layout = layout
        self.git = git
        self.owner_of = owner_of or (lambda repo: DEFAULT_OWNER)
        self.build_command = list(build_command)
        self.npm_command = list(npm_command)
        self.npm_lock = npm_lock or asyncio.Semaphore(1)

    def _build_args(self, record: BranchRecord) -> list[str]:
        args = list(self.build_command)
        if record.brands:
            args.append(f"--brands={','.join(record.brands)}")
        return args

    async def build(self, record: BranchRecord, on_output: OutputListener) -> None:
        directory = self.layout.directory(record.repo, record.branch)
        await execute(self._build_args(record), directory, on_output=on_output)

    async def update_checkout(self, record: BranchRecord) -> None:
        if record.is_main:
            await self._update_main(record)
        else:
            async with self.npm_lock:
                await self._update_release_branch(record)

    async def _update_main(self, record: BranchRecord) -> None:
        directory = self.layout.directory(record.repo)
        hash_before = await asyncio.to_thread(npm_hash, directory)
        await self.git.pull_rebase(directory)
        hash_after = await asyncio.to_thread(npm_hash, directory)
        if hash_before != hash_after:
            logger.info("npm dependencies of %s changed", record.repo)
            await self.update_node_modules(record)

    async def _update_release_branch(self, record: BranchRecord) -> None:
        release_root = self.layout.release_root(record.repo, record.branch)
        directory = self.layout.directory(record.repo, record.branch)
        if not directory.exists():
            release_root.mkdir(parents=True, exist_ok=True)
            owner = self.owner_of(record.repo)
            await execute(
                [
                    "git",
                    "clone",
                    "--branch",
                    record.branch,
                    remote_url(owner, record.repo),
                    record.repo,
                ],
                release_root,
            )
        else:
            await self.git.pull_rebase(directory)
        await execute(self.npm_command, directory)
        record.npm_updated = True

    async def update_node_modules(self, record: BranchRecord) -> None:
        """Reinstall node_modules for a checkout, one install at a time."""
        directory = self.layout.directory(record.repo, record.branch)
        record.npm_updated = False
        async with self.npm_lock:
            logger.info("Updating node_modules for %s/%s", record.repo, record.branch)
            await execute(self.npm_command, directory)
        record.npm_updated = True
