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
"""Shared fixtures for launchpad unit tests."""

import asyncio

import pytest

from launchpad.app.application.model_store import ModelStore
from launchpad.app.domain.models import BranchRecord, LaunchpadModel, RepoRecord
from launchpad.app.infrastructure.json_snapshot import InMemorySnapshot


def branch(repo: str, name: str = "main", **fields) -> BranchRecord:
    defaults = {
        "is_checked_out": True,
        "current_branch": name,
        "sha": f"{repo}-{name}-sha",
        "timestamp": 1_700_000_000_000,
        "npm_updated": True,
    }
    defaults.update(fields)
    return BranchRecord(repo=repo, branch=name, **defaults)


def repo(name: str, *branches: BranchRecord, **fields) -> RepoRecord:
    records = branches or (branch(name),)
    return RepoRecord(
        name=name,
        owner=fields.pop("owner", "phetsims"),
        branches={record.branch: record for record in records},
        **fields,
    )


class FakeRunner:
    """Job runner whose operations finish only when released."""

    def __init__(self, output=("Running build\n", "Done\n")):
        self.output = list(output)
        self.builds = []
        self.updates = []
        self.gate = asyncio.Event()
        self.gate.set()
        self.error = None

    def hold(self):
        self.gate = asyncio.Event()

    def release(self):
        self.gate.set()

    async def build(self, record, on_output):
        self.builds.append((record.repo, record.branch))
        for chunk in self.output:
            on_output(chunk)
            await asyncio.sleep(0)
        await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def update_checkout(self, record):
        self.updates.append((record.repo, record.branch))
        await self.gate.wait()
        if self.error is not None:
            raise self.error


@pytest.fixture
def snapshot():
    return InMemorySnapshot()


@pytest.fixture
def store(snapshot):
    model = LaunchpadModel(
        repos={
            "alpha": repo(
                "alpha",
                branch("alpha", dependency_repos=["alpha", "beta"]),
                branch("alpha", "1.2", is_released=True),
                is_runnable=True,
                is_sim=True,
            ),
            "beta": repo("beta"),
        }
    )
    return ModelStore(snapshot=snapshot, model=model)


@pytest.fixture
def runner():
    return FakeRunner()
