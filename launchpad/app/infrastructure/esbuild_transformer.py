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
"""Transpile and bundle scripts with the esbuild command-line tool."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from launchpad.app.infrastructure.process import execute

logger = logging.getLogger(__name__)

DEFAULT_ESBUILD_COMMAND = ("npx", "esbuild")

_LOADERS = {".ts": "ts", ".tsx": "tsx", ".jsx": "jsx", ".mts": "ts", ".js": "js"}


class EsbuildTransformer:
    """Single-file transpilation over stdin, bundling from the entry point."""

    def __init__(self, root: Path, command: Sequence[str] = DEFAULT_ESBUILD_COMMAND):
        self.root = Path(root)
        self.command = list(command)

    async def transform(self, source: str, path: Path) -> str:
        loader = _LOADERS.get(path.suffix, "ts")
        return await execute(
            [
                *self.command,
                f"--loader={loader}",
                "--format=esm",
                "--target=es2022",
                "--sourcemap=inline",
                f"--sourcefile={path}",
            ],
            self.root,
            stdin=source,
        )

    async def bundle(self, entry: Path) -> str:
        logger.debug("Bundling %s", entry)
        return await execute(
            [
                *self.command,
                str(entry),
                "--bundle",
                "--format=esm",
                "--target=es2022",
                "--minify",
                "--sourcemap=inline",
            ],
            self.root,
        )
