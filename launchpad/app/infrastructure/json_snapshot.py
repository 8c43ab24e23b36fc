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
"""Flat JSON snapshot file for the model store."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from launchpad.app.domain.models import LaunchpadModel

logger = logging.getLogger(__name__)


def atomic_write(path: Path, content: str) -> None:
    """Write to a temp file next to path, then rename over it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        f.write(content)
        f.flush()
        os.fsync(f.fileno())
    tmp_path.replace(path)


class JsonSnapshotFile:
    """Stores the whole model in one JSON file, overwritten on every save."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> LaunchpadModel | None:
        if not self.path.exists():
            return None
        text = self.path.read_text(encoding="utf-8")
        return LaunchpadModel.model_validate_json(text)

    def save(self, model: LaunchpadModel) -> None:
        atomic_write(self.path, model.model_dump_json(indent=2))


class InMemorySnapshot:
    """Snapshot holder for tests and ephemeral servers."""

    def __init__(self, model: LaunchpadModel | None = None) -> None:
        self._json = model.model_dump_json() if model is not None else None
        self.save_count = 0

    def load(self) -> LaunchpadModel | None:
        if self._json is None:
            return None
        return LaunchpadModel.model_validate_json(self._json)

    def save(self, model: LaunchpadModel) -> None:
        self._json = model.model_dump_json()
        self.save_count += 1
