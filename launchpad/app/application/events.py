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
"""Job stream event contracts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

OUTPUT = "output"
COMPLETED = "completed"

OutputListener = Callable[[str], None]
CompletedListener = Callable[[bool], None]


def utc_now() -> str:
    """UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class JobStreamEvent:
    """Single event delivered to a job observer."""

    type: str
    text: Optional[str] = None
    success: Optional[bool] = None

    @classmethod
    def output(cls, text: str) -> "JobStreamEvent":
        return cls(type=OUTPUT, text=text)

    @classmethod
    def completed(cls, success: bool) -> "JobStreamEvent":
        return cls(type=COMPLETED, success=success)

    @property
    def is_terminal(self) -> bool:
        return self.type == COMPLETED

    def to_payload(self) -> dict[str, Any]:
        if self.type == OUTPUT:
            return {"type": OUTPUT, "text": self.text}
        return {"type": COMPLETED, "success": self.success}
