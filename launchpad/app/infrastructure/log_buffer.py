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
"""Logging handler that keeps recent notable events and feeds live listeners."""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List

LAST_LOG_QUANTITY = 20

LogEvent = Dict[str, Any]
LogListener = Callable[[LogEvent], None]


def level_name(record: logging.LogRecord) -> str:
    """Lower-case level name used in log event payloads."""
    return "warn" if record.levelno == logging.WARNING else record.levelname.lower()


class NotableEventHandler(logging.Handler):
    """Keeps the last warnings and errors; forwards every record to listeners."""

    def __init__(self, limit: int = LAST_LOG_QUANTITY, level: int = logging.NOTSET):
        super().__init__(level=level)
        self.errors: Deque[LogEvent] = deque(maxlen=limit)
        self.warnings: Deque[LogEvent] = deque(maxlen=limit)
        self._listeners: List[LogListener] = []
        self._listener_lock = threading.Lock()

    def to_event(self, record: logging.LogRecord) -> LogEvent:
        timestamp = datetime.fromtimestamp(record.created).strftime(
            "%Y-%m-%d %H:%M:%S"
        )
        return {
            "message": record.getMessage(),
            "level": level_name(record),
            "timestamp": f"{timestamp}.{int(record.msecs):03d}",
        }

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = self.to_event(record)
        except Exception:
            self.handleError(record)
            return
        if record.levelno >= logging.ERROR:
            self.errors.append(event)
        elif record.levelno >= logging.WARNING:
            self.warnings.append(event)
        with self._listener_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                self.remove_listener(listener)

    def add_listener(self, listener: LogListener) -> None:
        with self._listener_lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: LogListener) -> None:
        with self._listener_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def notable_events(self) -> dict[str, list[LogEvent]]:
        return {
            "lastErrorLogEvents": list(self.errors),
            "lastWarnLogEvents": list(self.warnings),
        }
