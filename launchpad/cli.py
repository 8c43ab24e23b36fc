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
"""Command-line entry point: ``launchpad serve``."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer
import uvicorn

from launchpad.app.api.main import create_app
from launchpad.app.bootstrap import build_services
from launchpad.app.config import load_settings
from launchpad.app.errors import StartupConfigError
from launchpad.app.logging_config import configure_logging

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False)


def _raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)


@app.callback()
def main() -> None:
    """Repo checkout, build and script-serving dashboard backend."""


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Host to bind"),
    port: Optional[int] = typer.Option(None, "--port", help="Port to bind"),
    root_dir: Optional[Path] = typer.Option(
        None, "--root-dir", help="Directory holding every checkout"
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level"),
    auto_update: Optional[bool] = typer.Option(
        None, "--auto-update/--no-auto-update", help="Update stale checkouts"
    ),
    auto_build: Optional[bool] = typer.Option(
        None, "--auto-build/--no-auto-build", help="Rebuild out-of-date branches"
    ),
    num_auto_build_workers: Optional[int] = typer.Option(
        None, "--auto-build-workers", help="Concurrent auto-build workers"
    ),
    check_clean: Optional[bool] = typer.Option(
        None, "--check-clean/--no-check-clean", help="Check working tree status"
    ),
    use_github_api: Optional[bool] = typer.Option(
        None, "--github-api/--no-github-api", help="Read remote heads from GitHub"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", help="JSON config file (githubToken)"
    ),
):
    """Start the launchpad HTTP server."""
    try:
        settings = load_settings(
            port=port,
            root_dir=root_dir,
            log_level=log_level.lower() if log_level else None,
            auto_update=auto_update,
            auto_build=auto_build,
            num_auto_build_workers=num_auto_build_workers,
            check_clean=check_clean,
            use_github_api=use_github_api,
            config_file=config_file,
        )
    except StartupConfigError as exc:
        _raise_exit(str(exc), cause=exc)

    notable_events = configure_logging(settings.log_level)
    logger.info("options:")
    logger.info(" - port: %s", settings.port)
    logger.info(" - rootDirectory: %s", settings.root_dir)
    logger.info(" - autoUpdate: %s", settings.auto_update)
    logger.info(" - autoBuild: %s", settings.auto_build)
    logger.info(" - numAutoBuildWorkers: %s", settings.num_auto_build_workers)
    logger.info(" - checkClean: %s", settings.check_clean)
    logger.info(" - logLevel: %s", settings.log_level)
    logger.info(" - useGithubAPI: %s", settings.use_github_api)

    services = build_services(settings, notable_events=notable_events)
    typer.echo(f"Serving launchpad on http://{host}:{settings.port}")
    uvicorn.run(
        create_app(services),
        host=host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    app()
