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
"""On-demand transpiled/bundled scripts with ETag validation.

Single files are cached by file identity (mtime + size) and validated with a
weak ETag built from the same identity. Entry points (``*-main``/``*-tests``)
pull in an open-ended set of files, so they are bundled fresh on every request
and validated with a strong ETag over the bundled output.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
import re
from dataclasses import dataclass
from email.utils import formatdate
from pathlib import Path
from typing import Iterable, Optional, Protocol, Sequence

from launchpad.app.domain.models import CacheEntry
from launchpad.app.errors import TransformError

logger = logging.getLogger(__name__)

# Stat'ed together first
PREFERRED_EXTENSIONS = ("js", "ts")
# Only stat'ed when none of the preferred ones exist
EXTRA_EXTENSIONS = ("tsx", "jsx", "mts")

DEFAULT_STRIP_PREFIXES = ("chipper/dist/js/",)
# Entry points that cannot be bundled (they rely on import.meta.url)
DEFAULT_ENTRY_POINT_EXCLUSIONS = ("phet-io-wrappers-main",)

_SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9._\-]+$")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f]")


class ScriptTransformer(Protocol):
    """Transpiler/bundler. Raises on failure."""

    async def transform(self, source: str, path: Path) -> str:
        """Transpile one file to JavaScript."""

    async def bundle(self, entry: Path) -> str:
        """Bundle an entry point and everything it imports."""


@dataclass(frozen=True)
class AssetResult:
    """Outcome of resolving a script path."""

    etag: str
    last_modified: str
    content: Optional[str] = None
    not_modified: bool = False

    @property
    def status_code(self) -> int:
        return 304 if self.not_modified else 200


@dataclass(frozen=True)
class LocatedFile:
    path: Path
    extension: str
    mtime_ns: int
    size: int

    @property
    def mtime_ms(self) -> int:
        return self.mtime_ns // 1_000_000


def weak_etag(mtime_ms: int, size: int) -> str:
    return f'W/"{size}-{mtime_ms}"'


def strong_etag(content: str, algorithm: str = "sha256") -> str:
    digest = hashlib.new(algorithm, content.encode("utf-8")).digest()
    return f'"{algorithm}-{base64.b64encode(digest).decode("ascii")}"'


def etag_matches(if_none_match: Optional[str], etag: str) -> bool:
    if not if_none_match:
        return False
    candidates = [candidate.strip() for candidate in if_none_match.split(",")]
    return etag in candidates


class AssetCache:
    """Maps logical script paths to served JavaScript."""

    def __init__(
        self,
        root: Path,
        transformer: ScriptTransformer,
        strip_prefixes: Iterable[str] = DEFAULT_STRIP_PREFIXES,
        entry_point_exclusions: Iterable[str] = DEFAULT_ENTRY_POINT_EXCLUSIONS,
    ):
        self.root = Path(root).resolve()
        self.transformer = transformer
        self.strip_prefixes = tuple(strip_prefixes)
        self.entry_point_exclusions = tuple(entry_point_exclusions)
        self.entries: dict[str, CacheEntry] = {}
        self.transform_count = 0
        self.bundle_count = 0

    def logical_key(self, logical_path: str) -> str:
        key = logical_path
        for prefix in self.strip_prefixes:
            key = key.replace(prefix, "")
        return key.lstrip("/")

    def is_entry_point(self, key: str) -> bool:
        if any(excluded in key for excluded in self.entry_point_exclusions):
            return False
        return key.endswith("-main") or key.endswith("-tests")

    def sanitize(self, key: str) -> Optional[str]:
        """Relative path inside the root, or None for anything suspicious."""
        if _CONTROL_CHARS.search(key) or "%" in key:
            logger.debug("Rejected path with bad characters: %r", key)
            return None
        segments = [s for s in key.replace("\\", "/").split("/") if s]
        if not segments:
            logger.debug("Rejected empty path: %r", key)
            return None
        for segment in segments:
            if segment in {".", ".."} or not _SEGMENT_PATTERN.match(segment):
                logger.debug("Rejected path with invalid segment: %r", key)
                return None
        return "/".join(segments)

    def _stat(self, relative: str, extension: str) -> Optional[LocatedFile]:
        full_path = (self.root / f"{relative}.{extension}").resolve()
        if self.root not in full_path.parents:
            logger.debug("Rejected path outside root: %s", relative)
            return None
        try:
            stat = full_path.stat()
        except OSError:
            return None
        if not full_path.is_file():
            return None
        return LocatedFile(
            path=full_path,
            extension=extension,
            mtime_ns=stat.st_mtime_ns,
            size=stat.st_size,
        )

    async def _stat_all(
        self, relative: str, extensions: Sequence[str]
    ) -> Optional[LocatedFile]:
        found = await asyncio.gather(
            *(asyncio.to_thread(self._stat, relative, ext) for ext in extensions)
        )
        for located in found:
            if located is not None:
                return located
        return None

    async def locate(self, key: str) -> Optional[LocatedFile]:
        relative = self.sanitize(key)
        if relative is None:
            return None
        located = await self._stat_all(relative, PREFERRED_EXTENSIONS)
        if located is None:
            located = await self._stat_all(relative, EXTRA_EXTENSIONS)
        return located

    async def resolve(
        self, logical_path: str, if_none_match: Optional[str] = None
    ) -> Optional[AssetResult]:
        """Serve a script; None when no source file backs the path."""
        key = self.logical_key(logical_path)
        located = await self.locate(key)
        if located is None:
            return None

        last_modified = formatdate(located.mtime_ns / 1e9, usegmt=True)
        if self.is_entry_point(key):
            return await self._resolve_entry_point(
                located, last_modified, if_none_match
            )

        etag = weak_etag(located.mtime_ms, located.size)
        if etag_matches(if_none_match, etag):
            return AssetResult(
                etag=etag, last_modified=last_modified, not_modified=True
            )

        entry = self.entries.get(key)
        if (
            entry is not None
            and entry.mtime_ns == located.mtime_ns
            and entry.size == located.size
        ):
            return AssetResult(
                etag=etag, last_modified=last_modified, content=entry.contents
            )

        source = await asyncio.to_thread(
            located.path.read_text, encoding="utf-8", errors="replace"
        )
        if located.extension == "js":
            contents = source
        else:
            self.transform_count += 1
            try:
                contents = await self.transformer.transform(source, located.path)
            except Exception as exc:
                raise TransformError(f"Transforming {key} failed: {exc}") from exc

        self.entries[key] = CacheEntry(
            mtime_ns=located.mtime_ns, size=located.size, etag=etag, contents=contents
        )
        return AssetResult(etag=etag, last_modified=last_modified, content=contents)

    async def _resolve_entry_point(
        self,
        located: LocatedFile,
        last_modified: str,
        if_none_match: Optional[str],
    ) -> AssetResult:
        self.bundle_count += 1
        try:
            contents = await self.transformer.bundle(located.path)
        except Exception as exc:
            raise TransformError(
                f"Bundling {located.path.name} failed: {exc}"
            ) from exc
        etag = strong_etag(contents)
        if etag_matches(if_none_match, etag):
            return AssetResult(
                etag=etag, last_modified=last_modified, not_modified=True
            )
        return AssetResult(etag=etag, last_modified=last_modified, content=contents)

