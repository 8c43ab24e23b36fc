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
"""Git command-line adapters."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from launchpad.app.domain.layout import RepoLayout
from launchpad.app.domain.models import CommitSummary
from launchpad.app.infrastructure.process import execute

logger = logging.getLogger(__name__)

GITHUB_URL = "https://github.com/{owner}/{repo}.git"

# Record and field separators for `git log` output
_RECORD = "\x1e"
_FIELD = "\x1f"


def remote_url(owner: str, repo: str) -> str:
    return GITHUB_URL.format(owner=owner, repo=repo)


def parse_ls_remote(output: str) -> dict[str, str]:
    """Branch name -> sha from `git ls-remote --heads` output."""
    heads = {}
    for line in output.splitlines():
        parts = line.strip().split("\t")
        if len(parts) != 2 or not parts[1].startswith("refs/heads/"):
            continue
        heads[parts[1][len("refs/heads/") :]] = parts[0]
    return heads


def parse_log(output: str) -> list[CommitSummary]:
    commits = []
    for record in output.split(_RECORD):
        if not record.strip():
            continue
        fields = record.strip("\n").split(_FIELD)
        if len(fields) < 5:
            logger.debug("Skipping malformed log record %r", record)
            continue
        sha, author_name, author_email, date, message = fields[:5]
        commits.append(
            CommitSummary(
                sha=sha,
                date=date,
                author_name=author_name,
                author_email=author_email,
                message=message,
            )
        )
    return commits


class GitCli:
    """Runs git in checkouts laid out under the root directory."""

    def __init__(self, layout: RepoLayout):
        self.layout = layout

    async def ensure_clone(self, repo: str, owner: str) -> None:
        directory = self.layout.directory(repo)
        if directory.exists():
            return
        logger.info("Cloning %s/%s", owner, repo)
        await execute(["git", "clone", remote_url(owner, repo), repo], self.layout.root)

    async def current_branch(self, directory: Path) -> str:
        output = await execute(["git", "symbolic-ref", "-q", "HEAD"], directory)
        return output.strip().replace("refs/heads/", "")

    async def head_sha(self, directory: Path) -> str:
        output = await execute(["git", "rev-parse", "HEAD"], directory)
        return output.strip()

    async def commit_timestamp(self, directory: Path, branch: str) -> int:
        output = await execute(["git", "show", "-s", "--format=%ct", branch], directory)
        return int(output.strip()) * 1000

    async def is_clean(self, directory: Path) -> bool:
        output = await execute(["git", "status", "--porcelain"], directory)
        return len(output) == 0

    async def pull_rebase(self, directory: Path) -> None:
        await execute(["git", "pull", "--rebase"], directory)

    async def file_at_branch(self, repo: str, branch: str, path: str) -> str:
        """Contents of path on the remote branch, read through the main clone."""
        directory = self.layout.directory(repo)
        refspec = f"refs/heads/{branch}:refs/remotes/origin/{branch}"
        await execute(["git", "fetch", "--quiet", "origin", refspec], directory)
        return await execute(["git", "show", f"origin/{branch}:{path}"], directory)

    async def last_commits(
        self, repo: str, branch: str, count: int = 5
    ) -> list[CommitSummary]:
        output = await execute(
            [
                "git",
                "log",
                branch,
                "-n",
                str(count),
                "--date=iso-strict",
                "--pretty=format:%x1e%H%x1f%an%x1f%ae%x1f%ad%x1f%s",
            ],
            self.layout.directory(repo, branch),
        )
        return parse_log(output)


class RemoteRefsBackend:
    """Remote heads through one `git ls-remote --heads` call per repo."""

    def __init__(self, root: Path):
        self.root = Path(root)

    async def remote_commits(
        self, owner: str, repo: str, branches: list[str]
    ) -> dict[str, Optional[str]]:
        output = await execute(
            ["git", "ls-remote", "--heads", remote_url(owner, repo)], self.root
        )
        heads = parse_ls_remote(output)
        return {branch: heads.get(branch) for branch in branches}

