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
"""Where checkouts live under the root directory."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .models import MAIN_BRANCH

RELEASE_BRANCHES_DIR = "release-branches"


@dataclass(frozen=True)
class RepoLayout:
    """Main checkouts sit at <root>/<repo>; release branches get their own tree."""

    root: Path

    def directory(self, repo: str, branch: str = MAIN_BRANCH) -> Path:
        if branch == MAIN_BRANCH:
            return self.root / repo
        return self.root / RELEASE_BRANCHES_DIR / f"{repo}-{branch}" / repo

    def release_root(self, repo: str, branch: str) -> Path:
        return self.root / RELEASE_BRANCHES_DIR / f"{repo}-{branch}"

    def package_json_path(self, repo: str, branch: str = MAIN_BRANCH) -> Path:
        return self.directory(repo, branch) / "package.json"

    def read_package_json(
        self, repo: str, branch: str = MAIN_BRANCH
    ) -> Optional[dict[str, Any]]:
        """Parsed package.json, or None when the checkout has none."""
        path = self.package_json_path(repo, branch)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def has_unit_tests(self, repo: str) -> bool:
        js_dir = self.directory(repo) / "js"
        return any(
            (js_dir / f"{repo}-tests.{extension}").exists()
            for extension in ("ts", "js")
        )
