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
"""Unit tests for the model store and its snapshot file."""

import asyncio
import threading

import pytest

from launchpad.app.application.model_store import ModelStore
from launchpad.app.domain.models import LaunchpadModel
from launchpad.app.errors import NotFoundError
from launchpad.app.infrastructure.json_snapshot import (
    InMemorySnapshot,
    JsonSnapshotFile,
)

from conftest import branch, repo


def test_load_resets_leftover_job_ids_and_persists():
    model = LaunchpadModel(
        repos={
            "alpha": repo(
                "alpha",
                branch("alpha", build_job_id=4, update_job_id=7),
                branch("alpha", "1.0", build_job_id=2),
            ),
            "beta": repo("beta"),
        }
    )
    snapshot = InMemorySnapshot(model)

    store = ModelStore.load(snapshot)

    for record in store.iter_branches():
        assert record.build_job_id is None
        assert record.update_job_id is None
    assert snapshot.save_count == 1
    reloaded = snapshot.load()
    assert reloaded.repos["alpha"].branches["main"].build_job_id is None


def test_load_without_snapshot_starts_empty():
    snapshot = InMemorySnapshot()

    store = ModelStore.load(snapshot)

    assert store.repos == {}
    assert snapshot.save_count == 0


def test_lookups_raise_not_found_with_plain_messages(store):
    with pytest.raises(NotFoundError, match="Unknown repo"):
        store.get_repo("gamma")
    with pytest.raises(NotFoundError, match="Unknown branch"):
        store.get_branch("alpha", "9.9")
    assert store.get_branch("alpha", "1.2").is_released is True


def test_dependency_maps_use_main_branches(store):
    record = store.get_branch("alpha", "main")
    record.dependency_repos = ["beta", "missing"]

    shas, timestamps = store.dependency_maps(record)

    assert shas == {"beta": "beta-main-sha", "missing": None}
    assert timestamps == {"beta": 1_700_000_000_000, "missing": None}


def test_checked_out_branches(store):
    store.get_branch("alpha", "1.2").is_checked_out = False

    keys = {(b.repo, b.branch) for b in store.checked_out_branches()}

    assert keys == {("alpha", "main"), ("beta", "main")}


def test_json_snapshot_round_trips_and_leaves_no_temp_file(tmp_path, store):
    path = tmp_path / "state" / "model.json"
    snapshot = JsonSnapshotFile(path)
    store.get_branch("alpha", "main").set_brands(["phet", "phet-io", "phet"])

    snapshot.save(store.model)
    loaded = snapshot.load()

    assert path.exists()
    assert not path.with_suffix(".json.tmp").exists()
    assert loaded.repos["alpha"].branches["main"].brands == ["phet", "phet-io"]
    assert loaded.repos["alpha"].is_runnable is True


def test_json_snapshot_missing_file_loads_none(tmp_path):
    assert JsonSnapshotFile(tmp_path / "nope.json").load() is None


class _ThreadRecordingSnapshot(InMemorySnapshot):
    def __init__(self):
        super().__init__()
        self.threads = []

    def save(self, model):
        self.threads.append(threading.get_ident())
        super().save(model)


@pytest.mark.asyncio
async def test_persist_writes_from_a_worker_thread_in_request_order(store):
    snapshot = _ThreadRecordingSnapshot()
    store.snapshot = snapshot
    record = store.get_branch("alpha", "main")

    record.build_job_id = 1
    first = asyncio.create_task(store.persist())
    await asyncio.sleep(0)
    record.build_job_id = 2
    await asyncio.gather(first, store.persist())

    assert snapshot.save_count == 2
    assert threading.get_ident() not in snapshot.threads
    assert snapshot.load().repos["alpha"].branches["main"].build_job_id == 2
