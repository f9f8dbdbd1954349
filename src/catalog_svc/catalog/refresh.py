"""Catalog metadata refresh.

The warehouse scan itself lives outside this service; a refresher only
has to put a fresh snapshot of scanned metadata into the store.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Protocol

from ..db import get_db
from ..errors import ConfigurationError
from .loader import SnapshotLoader

logger = logging.getLogger(__name__)


class MetadataRefresher(Protocol):
    """Anything that can reload scanned metadata."""

    async def refresh(self) -> dict[str, Any]: ...


class SnapshotRefresher:
    """Reloads scanned metadata from a snapshot file."""

    def __init__(
        self,
        db_path: str | Path,
        snapshot_file: str | Path | None,
        timeout: float = 5.0,
    ):
        self.db_path = db_path
        self.snapshot_file = Path(snapshot_file) if snapshot_file else None
        self.timeout = timeout
        self._loader = SnapshotLoader()

    async def refresh(self) -> dict[str, Any]:
        if self.snapshot_file is None:
            raise ConfigurationError("No catalog snapshot file configured")
        if not self.snapshot_file.exists():
            raise ConfigurationError(f"Catalog snapshot file not found: {self.snapshot_file}")
        return await asyncio.to_thread(self._refresh_sync)

    def _refresh_sync(self) -> dict[str, Any]:
        logger.info(f"Refreshing catalog metadata from {self.snapshot_file}")
        with get_db(self.db_path, self.timeout) as conn:
            stats = self._loader.apply_file(conn, self.snapshot_file)
        return {"source": str(self.snapshot_file), **stats}
