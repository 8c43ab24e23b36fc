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
"""Per-job broadcast channel with replay on subscribe.

A channel is owned by one job. Publishers push output chunks and finally close
the channel with the job's result. Subscribers that attach late get the
buffered output as a single chunk followed by the result, so nobody misses the
outcome. Everything runs on the event loop thread, so listeners are plain
synchronous callables and delivery order is the publish order.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .events import CompletedListener, OutputListener

logger = logging.getLogger(__name__)


class Subscription:
    """Listener registration returned by BroadcastChannel.subscribe."""

    def __init__(
        self,
        channel: "BroadcastChannel",
        on_output: Optional[OutputListener],
        on_completed: CompletedListener,
    ):
        self.channel = channel
        self.on_output = on_output
        self.on_completed = on_completed

    @property
    def active(self) -> bool:
        return self.channel.has_subscriber(self)

    def cancel(self) -> None:
        """Stop delivery to this subscription."""
        self.channel.unsubscribe(self)


class BroadcastChannel:
    """Publish/subscribe channel for one job."""

    def __init__(self, record_output: bool = True):
        self.record_output = record_output
        self._history: List[str] = []
        self._subscribers: List[Subscription] = []
        self._result: Optional[bool] = None

    @property
    def closed(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> Optional[bool]:
        return self._result

    @property
    def output(self) -> str:
        return "".join(self._history)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def has_subscriber(self, subscription: Subscription) -> bool:
        return subscription in self._subscribers

    def subscribe(
        self,
        on_completed: CompletedListener,
        on_output: Optional[OutputListener] = None,
    ) -> Subscription:
        """Register listeners, replaying history and result synchronously."""
        subscription = Subscription(self, on_output, on_completed)
        if on_output is not None and self._history:
            on_output(self.output)
        if self._result is not None:
            on_completed(self._result)
            return subscription
        self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        try:
            self._subscribers.remove(subscription)
        except ValueError:
            pass

    def publish(self, chunk: str) -> None:
        """Buffer a chunk and forward it to current subscribers."""
        if self._result is not None:
            raise RuntimeError("Cannot publish to a closed channel")
        if not chunk:
            return
        if self.record_output:
            self._history.append(chunk)
        for subscription in list(self._subscribers):
            if subscription.on_output is None:
                continue
            try:
                subscription.on_output(chunk)
            except Exception:
                logger.exception("Output listener failed; dropping subscriber")
                self.unsubscribe(subscription)

    def close(self, success: bool) -> None:
        """Record the result, notify every subscriber once and detach them."""
        if self._result is not None:
            raise RuntimeError("Channel already closed")
        self._result = success
        subscribers, self._subscribers = self._subscribers, []
        for subscription in subscribers:
            try:
                subscription.on_completed(success)
            except Exception:
                logger.exception("Completion listener failed")
