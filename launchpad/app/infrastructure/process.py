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
"""Subprocess helper for git, npm and build commands."""

from __future__ import annotations

import asyncio
import codecs
import logging
from pathlib import Path
from typing import Optional, Sequence

from launchpad.app.application.events import OutputListener
from launchpad.app.errors import CommandError

logger = logging.getLogger(__name__)

_READ_CHUNK = 4096


async def execute(
    command: Sequence[str],
    cwd: Path,
    on_output: Optional[OutputListener] = None,
    stdin: Optional[str] = None,
) -> str:
    """Run a command and return its stdout; raise CommandError on failure.

    With on_output, stderr is merged into stdout and decoded chunks are
    forwarded as they arrive. Without it, stderr is only kept for the error and
    stdin, when given, is written to the process.
    """
    args = [str(part) for part in command]
    logger.debug("Running %s in %s", " ".join(args), cwd)
    if on_output is None:
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd),
            stdin=asyncio.subprocess.PIPE if stdin is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate(
            stdin.encode("utf-8") if stdin is not None else None
        )
        output = stdout.decode("utf-8", errors="replace")
        if process.returncode != 0:
            errors = stderr.decode("utf-8", errors="replace")
            raise CommandError(args, process.returncode, output + errors)
        return output

    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=str(cwd),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )
    assert process.stdout is not None
    # Multi-byte characters may straddle read boundaries
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    chunks: list[str] = []
    while True:
        data = await process.stdout.read(_READ_CHUNK)
        text = decoder.decode(data, final=not data)
        if text:
            chunks.append(text)
            on_output(text)
        if not data:
            break
    returncode = await process.wait()
    output = "".join(chunks)
    if returncode != 0:
        raise CommandError(args, returncode, output)
    return output
