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
"""Unit tests for the auto-build, auto-update and npm install passes."""

import asyncio

import pytest
from conftest import repo

from launchpad.app.application.background import BackgroundLoops, needs_build
from launchpad.app.application.job_manager import JobManager
from launchpad.app.application.staleness import StalenessDetector
from launchpad.app.domain.models import JobKind


class _Backend:
    def __init__(self, heads):
        self.heads = heads

    async def remote_commits(self, owner, repo, branches):
        return {b: self.heads.get((repo, b)) for b in branches}


class _Synchronizer:
    def __init__(self):
        self.passes = 0

    async def sync(self):
        self.passes += 1


class _Installer:
    def __init__(self):
        self.installed = []

    async def update_node_modules(self, record):
        self.installed.append(record.repo)
        record.npm_updated = True


def _loops(store, runner, heads=None, installer=None, synchronizer=None):
    jobs = JobManager(store, runner)
    return BackgroundLoops(
        store=store,
        jobs=jobs,
        synchronizer=synchronizer or _Synchronizer(),
        detector=StalenessDetector(_Backend(heads or {})),
        installer=installer,
    )


def test_needs_build_rules(store):
    record = store.get_branch("alpha", "main")
    assert needs_build(store, record) is True

    record.last_built_time = 1
    record.last_build_shas = {"alpha": "alpha-main-sha", "beta": "beta-main-sha"}
    assert needs_build(store, record) is False

    store.get_branch("beta", "main").sha = "beta-moved"
    assert needs_build(store, record) is True

    record.npm_updated = False
    assert needs_build(store, record) is False
    record.npm_updated = True
    record.build_job_id = 3
    assert needs_build(store, record) is False


@pytest.mark.asyncio
async def test_auto_build_pass_builds_out_of_date_runnables_once(store, runner):
    loops = _loops(store, runner)

    built = await loops.auto_build_pass()
    again = await loops.auto_build_pass()

    assert built == 2
    assert again == 0
    assert sorted(runner.builds) == [("alpha", "1.2"), ("alpha", "main")]
    assert store.get_branch("alpha", "main").last_build_shas == {
        "alpha": "alpha-main-sha",
        "beta": "beta-main-sha",
    }


@pytest.mark.asyncio
async def test_auto_update_pass_updates_stale_checkouts(store, runner):
    loops = _loops(store, runner, heads={("beta", "main"): "beta-newer"})

    updated = await loops.auto_update_pass()

    assert updated == 1
    assert runner.updates == [("beta", "main")]
    assert store.get_branch("beta", "main").last_updated_time is not None


@pytest.mark.asyncio
async def test_initial_npm_install_only_touches_missing_installs(store, runner):
    installer = _Installer()
    store.get_branch("beta", "main").npm_updated = False
    loops = _loops(store, runner, installer=installer)

    await loops.initial_npm_install()

    assert installer.installed == ["beta"]
    assert store.get_branch("beta", "main").npm_updated is True


@pytest.mark.asyncio
async def test_start_and_stop_background_tasks(store, runner):
    synchronizer = _Synchronizer()
    loops = _loops(store, runner, synchronizer=synchronizer)

    loops.start(
        sync_on_startup=True,
        sync_interval=0.01,
        auto_build_workers=2,
        auto_build_idle_sleep=0.01,
        auto_update_interval=0.01,
    )
    await asyncio.sleep(0.05)
    await loops.stop()
    await loops.jobs.wait_idle()

    assert synchronizer.passes >= 2
    assert ("alpha", "main") in runner.builds
    assert len(runner.builds) == len(set(runner.builds))


@pytest.mark.asyncio
async def test_perennial_update_triggers_immediate_sync(store, runner):
    synchronizer = _Synchronizer()
    loops = _loops(store, runner, synchronizer=synchronizer)
    loops.jobs.after_update = loops.sync_after_update
    store.add_repo(repo("perennial"))

    loops.jobs.submit(store.get_branch("beta", "main"), JobKind.UPDATE_CHECKOUT)
    await loops.jobs.wait_idle()
    await asyncio.sleep(0)
    assert synchronizer.passes == 0

    loops.jobs.submit(store.get_branch("perennial", "main"), JobKind.UPDATE_CHECKOUT)
    await loops.jobs.wait_idle()
    for _ in range(3):
        await asyncio.sleep(0)
    await loops.stop()

    assert synchronizer.passes == 1
