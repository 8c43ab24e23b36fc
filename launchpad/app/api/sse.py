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
"""Server-sent event streams for job progress and log events."""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Optional

from launchpad.app.application.broadcast import Subscription
from launchpad.app.application.events import JobStreamEvent
from launchpad.app.application.job_manager import JobManager
from launchpad.app.domain.models import JobKind
from launchpad.app.infrastructure.log_buffer import LogEvent, NotableEventHandler

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
PING = ": ping\n\n"
DEFAULT_HEARTBEAT_INTERVAL = 15.0


def format_sse(data: Any) -> str:
    return f"data: {json.dumps(data)}\n\n"


async def _with_heartbeat(
    queue: "asyncio.Queue[Any]", interval: float
) -> AsyncIterator[Optional[Any]]:
    """Yield queued items, or None whenever a ping is due.

    Pings follow a fixed schedule regardless of how busy the queue is.
    """
    loop = asyncio.get_running_loop()
    next_ping = loop.time() + interval
    while True:
        remaining = next_ping - loop.time()
        if remaining <= 0:
            next_ping = loop.time() + interval
            yield None
            continue
        try:
            item = await asyncio.wait_for(queue.get(), remaining)
        except asyncio.TimeoutError:
            continue
        yield item


class JobStream:
    """One connection's view of a job: a queue fed by a channel subscription.

    The job is looked up eagerly, so an unknown id fails before any byte is
    streamed. The subscription only exists while ``events()`` is iterated; a
    client that goes away before the first frame leaves nothing attached.
    """

    def __init__(
        self,
        jobs: JobManager,
        job_id: int,
        kind: JobKind,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
    ):
        self.jobs = jobs
        self.job = jobs.get_job(job_id, kind=kind)
        self.heartbeat_interval = heartbeat_interval
        self.queue: asyncio.Queue[JobStreamEvent] = asyncio.Queue()
        self.subscription: Optional[Subscription] = None

    def _on_output(self, text: str) -> None:
        self.queue.put_nowait(JobStreamEvent.output(text))

    def _on_completed(self, success: bool) -> None:
        self.queue.put_nowait(JobStreamEvent.completed(success))

    async def events(self) -> AsyncIterator[str]:
        on_output = self._on_output if self.job.kind.records_output else None
        self.subscription = self.job.channel.subscribe(
            on_completed=self._on_completed, on_output=on_output
        )
        try:
            async for event in _with_heartbeat(self.queue, self.heartbeat_interval):
                if event is None:
                    yield PING
                    continue
                yield format_sse(event.to_payload())
                if event.is_terminal:
                    return
        finally:
            self.jobs.detach(self.subscription)


async def log_event_stream(
    handler: NotableEventHandler,
    heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
) -> AsyncIterator[str]:
    """Every log record as it is emitted, until the client goes away."""
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[LogEvent] = asyncio.Queue()

    def listener(event: LogEvent) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, event)

    handler.add_listener(listener)
    try:
        async for event in _with_heartbeat(queue, heartbeat_interval):
            yield PING if event is None else format_sse(event)
    finally:
        handler.remove_listener(listener)
