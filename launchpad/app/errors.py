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
"""Error types shared by the launchpad services."""


class NotFoundError(LookupError):
    """Unknown repo, branch or job id."""


class TransformError(RuntimeError):
    """Transpiling or bundling a script failed."""


class StartupConfigError(ValueError):
    """Invalid startup configuration; the server must not start."""


class CommandError(RuntimeError):
    """An external process exited with a non-zero status."""

    def __init__(self, command: list[str], returncode: int, output: str = ""):
        self.command = command
        self.returncode = returncode
        self.output = output
        message = f"{' '.join(command)} exited with status {returncode}"
        if output.strip():
            message = f"{message}: {output.strip()[-500:]}"
        super().__init__(message)
