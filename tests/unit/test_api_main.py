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
"""API-level tests for the launchpad server."""

import asyncio
import json
import logging
import os
import threading

import pytest
from fastapi.testclient import TestClient

from launchpad.app.api.main import create_app
from launchpad.app.application.asset_cache import AssetCache
from launchpad.app.application.job_manager import JobManager
from launchpad.app.application.staleness import StalenessDetector
from launchpad.app.bootstrap import Services
from launchpad.app.config import Settings
from launchpad.app.domain.models import CommitSummary
from launchpad.app.infrastructure.log_buffer import NotableEventHandler


class _GatedRunner:
    """Runner that can be held open from the test thread."""

    def __init__(self):
        self.gate = threading.Event()
        self.gate.set()
        self.builds = []

    async def build(self, record, on_output):
        self.builds.append((record.repo, record.branch))
        on_output("compiling\n")
        while not self.gate.is_set():
            await asyncio.sleep(0.01)
        on_output("done\n")

    async def update_checkout(self, record):
        while not self.gate.is_set():
            await asyncio.sleep(0.01)


class _Transformer:
    def __init__(self):
        self.error = None

    async def transform(self, source, path):
        if self.error is not None:
            raise self.error
        return f"// transpiled\n{source}"

    async def bundle(self, entry):
        return f"// bundle {entry.name}"


class _Backend:
    async def remote_commits(self, owner, repo, branches):
        return {branch: f"{repo}-{branch}-remote" for branch in branches}


class _History:
    async def last_commits(self, repo, branch, count=5):
        return [
            CommitSummary(
                sha="abc",
                date="2025-01-01T00:00:00+00:00",
                author_name="Dev",
                author_email="dev@example.com",
                message="Fix things",
            )
        ]


class _RepoLists:
    async def repo_lists(self):
        raise AssertionError("not used")

    async def wrappers(self):
        return ["phet-io-wrapper-a", "phet-io-wrapper-b"]


@pytest.fixture
def root(tmp_path):
    directory = tmp_path / "root"
    (directory / "alpha" / "js").mkdir(parents=True)
    return directory


@pytest.fixture
def gated_runner():
    return _GatedRunner()


@pytest.fixture
def transformer():
    return _Transformer()


@pytest.fixture
def notable_events():
    return NotableEventHandler()


@pytest.fixture
def client(root, store, gated_runner, transformer, notable_events):
    services = Services(
        settings=Settings(root_dir=root, heartbeat_interval=5.0),
        store=store,
        jobs=JobManager(store, gated_runner),
        synchronizer=None,
        detector=StalenessDetector(_Backend()),
        assets=AssetCache(root, transformer),
        repo_lists=_RepoLists(),
        history=_History(),
        notable_events=notable_events,
    )
    with TestClient(create_app(services, start_background=False)) as test_client:
        yield test_client


def _sse_events(text):
    return [
        json.loads(line[len("data: ") :])
        for line in text.splitlines()
        if line.startswith("data: ")
    ]


def test_repo_list_and_global_headers(client):
    response = client.get("/api/repo-list")

    assert response.status_code == 200
    assert response.headers["cache-control"] == "public, max-age=0, must-revalidate"
    assert response.headers["x-launchpad"] == "Launchpad"
    repo_list = response.json()["repoList"]
    assert [entry["name"] for entry in repo_list] == ["alpha", "beta"]
    assert repo_list[0] == {
        "name": "alpha",
        "owner": "phetsims",
        "isSim": True,
        "isRunnable": True,
        "supportsInteractiveDescription": False,
        "supportsVoicing": False,
        "hasUnitTests": False,
        "branches": ["main", "1.2"],
    }


def test_cors_allows_any_origin(client):
    response = client.get("/api/repo-list", headers={"Origin": "http://elsewhere"})

    assert response.headers["access-control-allow-origin"] == "*"


def test_branch_info_includes_dependency_maps(client):
    response = client.get("/api/branch-info/alpha/main")

    assert response.status_code == 200
    payload = response.json()
    assert payload["repo"] == "alpha"
    assert payload["buildJobID"] is None
    assert payload["updateCheckoutJobID"] is None
    assert payload["isCheckedOut"] is True
    assert payload["isChipper2"] is True
    assert "build_job_id" not in payload
    assert payload["dependencySHAMap"] == {
        "alpha": "alpha-main-sha",
        "beta": "beta-main-sha",
    }
    assert payload["dependencyTimestampMap"]["beta"] == 1_700_000_000_000


@pytest.mark.parametrize(
    ("path", "message"),
    [
        ("/api/branch-info/gamma/main", "Unknown repo"),
        ("/api/branch-info/alpha/9.9", "Unknown branch"),
        ("/api/build-events/999", "Unknown build job id"),
        ("/api/update-events/999", "Unknown update checkout job"),
        ("/api/last-commits/alpha/9.9", "Unknown branch"),
        ("/api/latest-sha/gamma/main", "Unknown repo"),
    ],
)
def test_unknown_ids_are_plain_text_404(client, path, message):
    response = client.get(path)

    assert response.status_code == 404
    assert response.text == message
    assert response.headers["content-type"].startswith("text/plain")


def test_build_post_on_unknown_branch_is_404(client):
    response = client.post("/api/build/alpha/9.9")

    assert response.status_code == 404
    assert response.text == "Unknown branch"


def test_duplicate_build_coalesces_and_events_stream_to_completion(
    client, gated_runner, store
):
    gated_runner.gate.clear()
    first = client.post("/api/build/alpha/main")
    second = client.post("/api/build/alpha/main")

    assert first.status_code == 200
    job_id = first.json()["buildJobID"]
    assert second.json() == {"buildJobID": job_id}
    assert store.get_branch("alpha", "main").build_job_id == job_id

    gated_runner.gate.set()
    response = client.get(f"/api/build-events/{job_id}")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache, no-transform"
    assert response.headers["x-accel-buffering"] == "no"
    events = _sse_events(response.text)
    assert events[-1] == {"type": "completed", "success": True}
    text = "".join(e["text"] for e in events if e["type"] == "output")
    assert text == "compiling\ndone\n"
    assert gated_runner.builds == [("alpha", "main")]

    replay = _sse_events(client.get(f"/api/build-events/{job_id}").text)
    assert replay == [
        {"type": "output", "text": "compiling\ndone\n"},
        {"type": "completed", "success": True},
    ]


def test_update_events_carry_only_completion(client):
    response = client.post("/api/update/alpha/1.2")
    job_id = response.json()["updateCheckoutJobID"]

    events = _sse_events(client.get(f"/api/update-events/{job_id}").text)

    assert events == [{"type": "completed", "success": True}]
    assert client.get(f"/api/build-events/{job_id}").status_code == 404


def test_script_is_served_with_etag_and_conditional_get(client, root):
    path = root / "alpha" / "js" / "Thing.ts"
    path.write_text("let a = 1;", encoding="utf-8")
    os.utime(path, ns=(3_000_000_000, 3_000_000_000))

    response = client.get("/alpha/js/Thing.js")

    assert response.status_code == 200
    assert response.text == "// transpiled\nlet a = 1;"
    assert response.headers["content-type"] == "application/javascript; charset=utf-8"
    assert response.headers["etag"] == 'W/"10-3000"'
    assert response.headers["last-modified"].endswith("GMT")

    cached = client.get(
        "/chipper/dist/js/alpha/js/Thing.js",
        headers={"If-None-Match": response.headers["etag"]},
    )
    assert cached.status_code == 304
    assert cached.content == b""


def test_entry_point_gets_strong_etag(client, root):
    (root / "alpha" / "js" / "alpha-main.ts").write_text("go()", encoding="utf-8")

    response = client.get("/alpha/js/alpha-main.js")

    assert response.status_code == 200
    assert response.text == "// bundle alpha-main.ts"
    assert response.headers["etag"].startswith('"sha256-')
    again = client.get(
        "/alpha/js/alpha-main.js", headers={"If-None-Match": response.headers["etag"]}
    )
    assert again.status_code == 304


def test_missing_script_is_404_and_transform_failure_is_500(
    client, root, transformer
):
    assert client.get("/alpha/js/Nothing.js").status_code == 404

    (root / "alpha" / "js" / "Broken.ts").write_text("let", encoding="utf-8")
    transformer.error = RuntimeError("unexpected end of file")
    response = client.get("/alpha/js/Broken.js")

    assert response.status_code == 500
    assert "unexpected end of file" in response.text


def test_plain_js_outside_script_pipeline_falls_back_to_file(client, root):
    package = root / "node_modules" / "@scope" / "pkg"
    package.mkdir(parents=True)
    (package / "index.js").write_text("export default 1;", encoding="utf-8")

    response = client.get("/node_modules/@scope/pkg/index.js")

    assert response.status_code == 200
    assert response.text == "export default 1;"
    assert client.get("/node_modules/@scope/pkg/missing.js").status_code == 404


def test_non_utf8_script_is_served_with_replacement_characters(client, root):
    (root / "alpha" / "js" / "legacy.js").write_bytes(b"// caf\xe9\nlet a;")

    response = client.get("/alpha/js/legacy.js")

    assert response.status_code == 200
    assert response.text == "// caf�\nlet a;"


def test_static_files_are_served_from_root(client, root):
    (root / "alpha" / "README.md").write_text("# alpha", encoding="utf-8")

    response = client.get("/alpha/README.md")

    assert response.status_code == 200
    assert response.text == "# alpha"


def test_latest_shas_and_stale_branches(client):
    single = client.get("/api/latest-sha/alpha/1.2")
    assert single.json() == {"sha": "alpha-1.2-remote"}

    many = client.get("/api/latest-shas/alpha,gamma,beta")
    assert many.json() == {"alpha": "alpha-main-remote", "beta": "beta-main-remote"}

    stale = client.get("/api/stale-branches").json()["staleBranches"]
    assert {"repo": "alpha", "branch": "1.2"} in stale
    assert len(stale) == 3


def test_last_commits_and_wrappers(client):
    commits = client.get("/api/last-commits/alpha/main").json()["commits"]
    assert commits == [
        {
            "sha": "abc",
            "date": "2025-01-01T00:00:00+00:00",
            "authorName": "Dev",
            "authorEmail": "dev@example.com",
            "message": "Fix things",
        }
    ]

    wrappers = client.get("/api/wrappers").json()
    assert wrappers == {"wrappers": ["phet-io-wrapper-a", "phet-io-wrapper-b"]}


def test_last_notable_events(client, notable_events):
    logger = logging.getLogger("tests.notable")
    logger.addHandler(notable_events)
    try:
        logger.warning("disk almost full")
        logger.error("build crashed")
    finally:
        logger.removeHandler(notable_events)

    payload = client.get("/api/last-notable-events").json()

    assert [e["message"] for e in payload["lastWarnLogEvents"]] == ["disk almost full"]
    assert payload["lastErrorLogEvents"][0]["level"] == "error"
