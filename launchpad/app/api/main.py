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
"""FastAPI application for the launchpad server."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import (
    FileResponse,
    PlainTextResponse,
    Response,
    StreamingResponse,
)
from fastapi.staticfiles import StaticFiles

from launchpad.app.api.schemas import (
    BranchInfoResponse,
    BuildJobResponse,
    CommitPayload,
    LastCommitsResponse,
    LatestShaResponse,
    LogEventPayload,
    NotableEventsResponse,
    RepoBranchPayload,
    RepoListEntry,
    RepoListResponse,
    StaleBranchesResponse,
    UpdateJobResponse,
    WrappersResponse,
)
from launchpad.app.api.sse import SSE_HEADERS, JobStream, log_event_stream
from launchpad.app.bootstrap import Services
from launchpad.app.domain.models import MAIN_BRANCH, JobKind
from launchpad.app.errors import NotFoundError, TransformError

logger = logging.getLogger(__name__)

CACHE_CONTROL = "public, max-age=0, must-revalidate"
JS_CONTENT_TYPE = "application/javascript; charset=utf-8"
LAST_COMMIT_COUNT = 5


def _services(request: Request) -> Services:
    return request.app.state.services


def _file_under(root: Path, relative: str) -> Optional[Path]:
    """Existing regular file at relative inside root, or None."""
    root = root.resolve()
    candidate = (root / relative).resolve()
    if root not in candidate.parents or not candidate.is_file():
        return None
    return candidate


def create_app(services: Services, start_background: bool = True) -> FastAPI:
    """Build the app around already-wired services."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if start_background:
            services.start_background()
        try:
            yield
        finally:
            await services.shutdown()

    app = FastAPI(title="launchpad", lifespan=lifespan)
    app.state.services = services
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def launchpad_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("Cache-Control", CACHE_CONTROL)
        response.headers["X-Launchpad"] = "Launchpad"
        return response

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError) -> PlainTextResponse:
        return PlainTextResponse(str(exc), status_code=404)

    @app.exception_handler(TransformError)
    async def transform_failed(
        request: Request, exc: TransformError
    ) -> PlainTextResponse:
        logger.error("Error in script handler for %s: %s", request.url.path, exc)
        return PlainTextResponse(str(exc), status_code=500)

    @app.get("/api/repo-list", response_model=RepoListResponse)
    def repo_list(request: Request) -> RepoListResponse:
        store = _services(request).store
        entries = [
            RepoListEntry(
                name=repo.name,
                owner=repo.owner,
                is_sim=repo.is_sim,
                is_runnable=repo.is_runnable,
                supports_interactive_description=repo.supports_interactive_description,
                supports_voicing=repo.supports_voicing,
                has_unit_tests=repo.has_unit_tests,
                branches=list(repo.branches),
            )
            for _, repo in sorted(store.repos.items())
        ]
        return RepoListResponse(repo_list=entries)

    @app.get("/api/branch-info/{repo}/{branch}", response_model=BranchInfoResponse)
    def branch_info(repo: str, branch: str, request: Request) -> BranchInfoResponse:
        store = _services(request).store
        record = store.get_branch(repo, branch)
        shas, timestamps = store.dependency_maps(record)
        return BranchInfoResponse(
            **record.model_dump(),
            dependency_sha_map=shas,
            dependency_timestamp_map=timestamps,
        )

    @app.post("/api/build/{repo}/{branch}", response_model=BuildJobResponse)
    async def build(repo: str, branch: str, request: Request) -> BuildJobResponse:
        services = _services(request)
        record = services.store.get_branch(repo, branch)
        job_id = services.jobs.submit(record, JobKind.BUILD)
        return BuildJobResponse(build_job_id=job_id)

    @app.get("/api/build-events/{job_id}")
    async def build_events(job_id: int, request: Request) -> StreamingResponse:
        services = _services(request)
        try:
            stream = JobStream(
                services.jobs,
                job_id,
                JobKind.BUILD,
                heartbeat_interval=services.settings.heartbeat_interval,
            )
        except NotFoundError:
            raise NotFoundError("Unknown build job id") from None
        return StreamingResponse(
            stream.events(), media_type="text/event-stream", headers=SSE_HEADERS
        )

    @app.post("/api/update/{repo}/{branch}", response_model=UpdateJobResponse)
    async def update(repo: str, branch: str, request: Request) -> UpdateJobResponse:
        services = _services(request)
        record = services.store.get_branch(repo, branch)
        job_id = services.jobs.submit(record, JobKind.UPDATE_CHECKOUT)
        return UpdateJobResponse(update_checkout_job_id=job_id)

    @app.get("/api/update-events/{job_id}")
    async def update_events(job_id: int, request: Request) -> StreamingResponse:
        services = _services(request)
        try:
            stream = JobStream(
                services.jobs,
                job_id,
                JobKind.UPDATE_CHECKOUT,
                heartbeat_interval=services.settings.heartbeat_interval,
            )
        except NotFoundError:
            raise NotFoundError("Unknown update checkout job") from None
        return StreamingResponse(
            stream.events(), media_type="text/event-stream", headers=SSE_HEADERS
        )

    @app.get("/api/latest-sha/{repo}/{branch}", response_model=LatestShaResponse)
    async def latest_sha(repo: str, branch: str, request: Request) -> LatestShaResponse:
        services = _services(request)
        sha = await services.detector.latest_sha(services.store, repo, branch)
        return LatestShaResponse(sha=sha)

    @app.get("/api/latest-shas/{repos}")
    async def latest_shas(repos: str, request: Request) -> dict[str, Optional[str]]:
        services = _services(request)
        known = [
            repo
            for repo in repos.split(",")
            if services.store.has_branch(repo, MAIN_BRANCH)
        ]
        shas = await asyncio.gather(
            *(
                services.detector.latest_sha(services.store, repo, MAIN_BRANCH)
                for repo in known
            )
        )
        return dict(zip(known, shas))

    @app.get("/api/stale-branches", response_model=StaleBranchesResponse)
    async def stale_branches(request: Request) -> StaleBranchesResponse:
        services = _services(request)
        stale = await services.detector.find_stale(services.store)
        return StaleBranchesResponse(
            stale_branches=[
                RepoBranchPayload(repo=item.repo, branch=item.branch) for item in stale
            ]
        )

    @app.get("/api/last-commits/{repo}/{branch}", response_model=LastCommitsResponse)
    async def last_commits(
        repo: str, branch: str, request: Request
    ) -> LastCommitsResponse:
        services = _services(request)
        services.store.get_branch(repo, branch)
        commits = await services.history.last_commits(repo, branch, LAST_COMMIT_COUNT)
        return LastCommitsResponse(
            commits=[
                CommitPayload(
                    sha=commit.sha,
                    date=commit.date,
                    author_name=commit.author_name,
                    author_email=commit.author_email,
                    message=commit.message,
                )
                for commit in commits
            ]
        )

    @app.get("/api/wrappers", response_model=WrappersResponse)
    async def wrappers(request: Request) -> WrappersResponse:
        return WrappersResponse(wrappers=await _services(request).repo_lists.wrappers())

    @app.get("/api/last-notable-events", response_model=NotableEventsResponse)
    def last_notable_events(request: Request) -> NotableEventsResponse:
        handler = _services(request).notable_events
        return NotableEventsResponse(
            last_error_log_events=[LogEventPayload(**e) for e in handler.errors],
            last_warn_log_events=[LogEventPayload(**e) for e in handler.warnings],
        )

    @app.get("/api/log-events")
    async def log_events(request: Request) -> StreamingResponse:
        services = _services(request)
        return StreamingResponse(
            log_event_stream(
                services.notable_events, services.settings.heartbeat_interval
            ),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.get("/{asset_path:path}.js")
    async def script(
        asset_path: str,
        request: Request,
        if_none_match: Optional[str] = Header(default=None),
    ) -> Response:
        result = await _services(request).assets.resolve(asset_path, if_none_match)
        if result is None:
            # Plain files the script pipeline does not handle
            static_file = await asyncio.to_thread(
                _file_under, _services(request).settings.root_dir, f"{asset_path}.js"
            )
            if static_file is not None:
                return FileResponse(static_file)
            return PlainTextResponse("Not Found", status_code=404)
        headers = {"ETag": result.etag, "Last-Modified": result.last_modified}
        if result.not_modified:
            return Response(status_code=304, headers=headers)
        headers["Content-Type"] = JS_CONTENT_TYPE
        return Response(content=result.content, headers=headers)

    root_dir = services.settings.root_dir
    if root_dir.is_dir():
        app.mount("/", StaticFiles(directory=root_dir, html=True), name="root")

    return app
