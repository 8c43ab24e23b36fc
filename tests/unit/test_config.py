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
"""Unit tests for startup settings."""

import json
import os

import pytest
from pydantic import ValidationError

from launchpad.app.config import DEFAULT_PORT, Settings, load_settings
from launchpad.app.errors import StartupConfigError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in list(os.environ):
        if name.upper().startswith("LAUNCHPAD_"):
            monkeypatch.delenv(name)


def test_defaults_from_empty_environment(tmp_path):
    settings = load_settings(root_dir=tmp_path)

    assert settings.port == DEFAULT_PORT
    assert settings.num_auto_build_workers == 2
    assert settings.sync_interval == 600.0
    assert settings.heartbeat_interval == 15.0
    assert settings.retain_finished_jobs == 200
    assert settings.use_github_api is False
    assert settings.build_command is None
    assert settings.resolved_snapshot_path == tmp_path / ".launchpad" / "model.json"


def test_environment_values_are_parsed(tmp_path, monkeypatch):
    monkeypatch.setenv("LAUNCHPAD_PORT", "8080")
    monkeypatch.setenv("LAUNCHPAD_ROOT_DIR", str(tmp_path))
    monkeypatch.setenv("LAUNCHPAD_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LAUNCHPAD_AUTO_BUILD", "no")
    monkeypatch.setenv("LAUNCHPAD_CHECK_CLEAN", "true")
    monkeypatch.setenv("LAUNCHPAD_BUILD_COMMAND", "npx grunt --brands=phet")

    settings = load_settings()

    assert settings.port == 8080
    assert settings.root_dir == tmp_path
    assert settings.log_level == "debug"
    assert settings.auto_build is False
    assert settings.check_clean is True
    assert settings.build_command == ("npx", "grunt", "--brands=phet")


def test_overrides_win_over_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("LAUNCHPAD_PORT", "8080")

    settings = load_settings(root_dir=tmp_path, port=9090, auto_update=None)

    assert settings.port == 9090
    assert settings.auto_update is True


@pytest.mark.parametrize(
    ("variable", "value", "message"),
    [
        ("LAUNCHPAD_PORT", "http", "Invalid port"),
        ("LAUNCHPAD_PORT", "70000", "Invalid port"),
        ("LAUNCHPAD_LOG_LEVEL", "chatty", "Invalid log level"),
        ("LAUNCHPAD_AUTO_UPDATE", "maybe", "Invalid auto_update"),
        ("LAUNCHPAD_NUM_AUTO_BUILD_WORKERS", "0", "Invalid num_auto_build_workers"),
        ("LAUNCHPAD_HEARTBEAT_INTERVAL", "0", "Invalid heartbeat_interval"),
        ("LAUNCHPAD_NPM_COMMAND", "  ", "empty command"),
        ("LAUNCHPAD_USE_GITHUB_API", "1", "no token"),
    ],
)
def test_invalid_values_raise_startup_config_error(
    tmp_path, monkeypatch, variable, value, message
):
    monkeypatch.setenv(variable, value)

    with pytest.raises(StartupConfigError, match=message):
        load_settings(root_dir=tmp_path)


def test_missing_root_directory_is_rejected(tmp_path):
    with pytest.raises(StartupConfigError, match="Invalid root directory"):
        load_settings(root_dir=tmp_path / "absent")


def test_github_token_comes_from_config_file(tmp_path, monkeypatch):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"githubToken": "ghp_secret"}), encoding="utf-8")
    monkeypatch.setenv("LAUNCHPAD_USE_GITHUB_API", "on")

    settings = load_settings(root_dir=tmp_path, config_file=config_file)

    assert settings.github_token == "ghp_secret"


def test_malformed_config_file_is_rejected(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(StartupConfigError, match="expected an object"):
        load_settings(root_dir=tmp_path, config_file=config_file)


def test_settings_are_frozen(tmp_path):
    settings = Settings(root_dir=tmp_path)

    with pytest.raises(ValidationError):
        settings.port = 1
