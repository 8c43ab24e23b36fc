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
"""GitHub REST adapter for remote branch heads."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
DEFAULT_REQUEST_LIMIT = 10

# Local checkout names that mirror another GitHub repo
REPO_ALIASES = {"perennial-alias": "perennial"}


class GithubRefBackend:
    """One ref lookup per branch, at most ``request_limit`` in flight."""

    def __init__(
        self,
        token: str,
        client: Optional[httpx.AsyncClient] = None,
        request_limit: int = DEFAULT_REQUEST_LIMIT,
    ):
        if not token:
            raise ValueError("GitHub access token required")
        self.client = client or httpx.AsyncClient(
            base_url=GITHUB_API_BASE,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
            },
            timeout=30.0,
        )
        self._limiter = asyncio.Semaphore(request_limit)

    async def close(self) -> None:
        await self.client.aclose()

    async def branch_sha(self, owner: str, repo: str, branch: str) -> Optional[str]:
        """Head commit of the branch; None when GitHub does not know it."""
        repo = REPO_ALIASES.get(repo, repo)
        async with self._limiter:
            response = await self.client.get(
                f"/repos/{owner}/{repo}/git/ref/heads/{branch}"
            )
        if response.status_code == 404:
            logger.debug("No remote ref for %s/%s %s", owner, repo, branch)
            return None
        response.raise_for_status()
        return response.json()["object"]["sha"]

    async def remote_commits(
        self, owner: str, repo: str, branches: list[str]
    ) -> dict[str, Optional[str]]:
        shas = await asyncio.gather(
            *(self.branch_sha(owner, repo, branch) for branch in branches)
        )
        return dict(zip(branches, shas))
