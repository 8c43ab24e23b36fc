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
"""Startup settings read from ``LAUNCHPAD_*`` environment variables."""

from __future__ import annotations

import json
import shlex
from pathlib import Path
from typing import Annotated, Any, Optional

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from launchpad.app.errors import StartupConfigError

ENV_PREFIX = "LAUNCHPAD_"
DEFAULT_PORT = 45372
LOG_LEVELS = ("debug", "info", "warning", "error", "critical")

# Commands come from the environment as shell-style strings
Command = Annotated[Optional[tuple[str, ...]], NoDecode]


def read_config_file(path: Path) -> dict[str, Any]:
    """JSON config file contents; a missing file is an empty config."""
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise StartupConfigError(f"Invalid config file {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise StartupConfigError(f"Invalid config file {path}: expected an object")
    return payload


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX, frozen=True, extra="ignore"
    )

    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)
    root_dir: Path = Field(default_factory=Path.cwd)
    snapshot_path: Optional[Path] = None
    config_file: Optional[Path] = None
    log_level: str = "info"

    auto_update: bool = True
    auto_update_interval: float = Field(default=60.0, gt=0)
    auto_build: bool = True
    num_auto_build_workers: int = Field(default=2, ge=1)
    auto_build_idle_sleep: float = Field(default=3.0, gt=0)
    sync_on_startup: bool = True
    sync_interval: float = Field(default=600.0, gt=0)
    initial_npm_install: bool = True
    check_clean: bool = False

    use_github_api: bool = False
    github_token: Optional[str] = None

    heartbeat_interval: float = Field(default=15.0, gt=0)
    retain_finished_jobs: int = Field(default=200, ge=0)
    sync_concurrency: int = Field(default=30, ge=1)

    build_command: Command = None
    npm_command: Command = None
    esbuild_command: Command = None
    release_branches_command: Command = None
    dependencies_command: Command = None

    @field_validator("root_dir", "snapshot_path", "config_file")
    @classmethod
    def _expand_user(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value is not None else None

    @field_validator("root_dir")
    @classmethod
    def _root_dir_exists(cls, value: Path) -> Path:
        if not value.is_dir():
            raise ValueError(f"Invalid root directory: {value}")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            if value not in LOG_LEVELS:
                raise ValueError(f"Invalid log level: {value}")
        return value

    @field_validator("github_token", mode="before")
    @classmethod
    def _blank_token_is_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator(
        "build_command",
        "npm_command",
        "esbuild_command",
        "release_branches_command",
        "dependencies_command",
        mode="before",
    )
    @classmethod
    def _split_command(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        parts = tuple(shlex.split(value))
        if not parts:
            raise ValueError("empty command")
        return parts

    @model_validator(mode="before")
    @classmethod
    def _token_from_config_file(cls, data: Any) -> Any:
        """Fill in githubToken from the JSON config file when none is set."""
        if not isinstance(data, dict) or data.get("github_token"):
            return data
        config_file = data.get("config_file")
        if not config_file:
            return data
        token = read_config_file(Path(config_file).expanduser()).get("githubToken")
        if token:
            data = {**data, "github_token": str(token)}
        return data

    @model_validator(mode="after")
    def _github_token_required(self) -> "Settings":
        if self.use_github_api and not self.github_token:
            raise ValueError(
                "GitHub API enabled but no token found; set LAUNCHPAD_GITHUB_TOKEN "
                "or githubToken in the config file"
            )
        return self

    @property
    def resolved_snapshot_path(self) -> Path:
        if self.snapshot_path is not None:
            return self.snapshot_path
        return self.root_dir / ".launchpad" / "model.json"


def describe_validation_error(exc: ValidationError) -> str:
    """First validation problem as a one-line startup message."""
    error = exc.errors()[0]
    original = (error.get("ctx") or {}).get("error")
    if isinstance(original, Exception):
        return str(original)
    field = ".".join(str(part) for part in error["loc"])
    return f"Invalid {field}: {error['msg']}" if field else error["msg"]


def load_settings(**overrides: Any) -> Settings:
    """Settings from the environment; non-None overrides (CLI options) win."""
    values = {name: value for name, value in overrides.items() if value is not None}
    try:
        return Settings(**values)
    except ValidationError as exc:
        raise StartupConfigError(describe_validation_error(exc)) from exc
