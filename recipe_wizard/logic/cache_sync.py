"""Cache synchronizer: keeps the local mirror in step with the authoritative store.

Sync sequence:
1. Fetch the authoritative version token (opaque, compared by equality only)
2. Same as the mirror's marker and the root still has options -> keep mirror
3. Otherwise fetch the full dataset and validate its structure
4. Replace mirror contents + version marker atomically

Any failure in 1-3 propagates to the caller with the mirror untouched.
Syncs are single-flight: a caller arriving while a sync runs awaits that same
task. The commit in step 4 is also a compare-and-swap on the marker observed
in step 1, so a writer outside this synchronizer cannot be overwritten by a
stale fetch.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .integrity import validate_graph_integrity
from .mirror_store import MirrorStore

logger = logging.getLogger(__name__)


class SyncStatus(str, Enum):
    UP_TO_DATE = "up_to_date"
    RELOADED = "reloaded"
    FORCED = "forced"


@dataclass
class SyncResult:
    status: SyncStatus
    version: Optional[str]
    previous_version: Optional[str] = None
    counts: dict = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return self.status != SyncStatus.UP_TO_DATE


class CacheSynchronizer:
    """Reconciles a ``MirrorStore`` against an authoritative source.

    ``source`` must provide blocking ``get_version()`` and ``fetch_dataset()``
    (e.g. ``Neo4jConnection``); they run in a worker thread.
    """

    def __init__(self, source, mirror: MirrorStore, root_sanity_check: bool = True):
        self.source = source
        self.mirror = mirror
        self.root_sanity_check = root_sanity_check
        self._inflight: Optional[asyncio.Task] = None

    @classmethod
    def from_config(cls, source, config) -> "CacheSynchronizer":
        mirror = MirrorStore(config.sync.mirror_path)
        return cls(source, mirror, root_sanity_check=config.sync.root_sanity_check)

    def current_version(self) -> Optional[str]:
        return self.mirror.version

    def is_syncing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def sync(self) -> SyncResult:
        """Reload the mirror only if the authoritative version changed."""
        if self.is_syncing():
            logger.info("Sync already in progress, joining it")
            task = self._inflight
        else:
            task = self._start(force=False)
        return await asyncio.shield(task)

    async def force_reload(self) -> SyncResult:
        """Reload the mirror regardless of version markers.

        Waits for any running sync to finish first, then starts its own.
        """
        while self.is_syncing():
            await asyncio.wait([self._inflight])
        return await asyncio.shield(self._start(force=True))

    def clear_all(self) -> None:
        """Wipe mirror contents and version marker."""
        self.mirror.clear()

    def _start(self, force: bool) -> asyncio.Task:
        self._inflight = asyncio.ensure_future(self._sync(force))
        return self._inflight

    async def _sync(self, force: bool) -> SyncResult:
        previous = self.mirror.version
        remote_version = None

        try:
            if not force:
                remote_version = await asyncio.to_thread(self.source.get_version)
                if previous is not None and remote_version == previous:
                    if not self.root_sanity_check or self.mirror.root_options_exist():
                        logger.info(f"Data version {previous!r} is current, using cached data")
                        return SyncResult(SyncStatus.UP_TO_DATE, previous, previous,
                                          self.mirror.get_dataset().counts())
                    logger.info("Version matches but no root options found, forcing reload")
                    force = True
                else:
                    logger.info(f"Data version changed: {previous!r} -> {remote_version!r}. Reloading")

            dataset = await asyncio.to_thread(self.source.fetch_dataset)
        except Exception as e:
            logger.error(f"Sync failed while reading the authoritative store: {e}")
            raise

        version = dataset.version if dataset.version is not None else remote_version
        validate_graph_integrity(dataset)
        self.mirror.replace(dataset, version, expected_version=previous)

        status = SyncStatus.FORCED if force else SyncStatus.RELOADED
        return SyncResult(status, version, previous, dataset.counts())
