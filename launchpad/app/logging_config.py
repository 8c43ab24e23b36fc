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
"""Root logging setup for the launchpad server."""

from __future__ import annotations

import logging
from typing import Optional

from launchpad.app.infrastructure.log_buffer import NotableEventHandler

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(
    level: str, notable_events: Optional[NotableEventHandler] = None
) -> NotableEventHandler:
    """Install the console handler and the notable-event buffer on the root logger."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    notable_events = notable_events or NotableEventHandler()
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        force=True,
    )
    logging.getLogger().addHandler(notable_events)
    return notable_events
