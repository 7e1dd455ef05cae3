"""Local mirror of the authoritative graph data.

Holds one ``GraphDataset`` and its version marker. Both are swapped together
under a lock, so a reader sees either the old pair or the new pair, never a
mix. When ``snapshot_path`` is set the pair is also persisted as a single
JSON file (written to a temp file, then ``os.replace``d) so the wizard can
start offline from the last good copy.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Union

from ..models import GraphDataset, NodeType
from .errors import MirrorConflictError
from .graph_store import GraphStore

logger = logging.getLogger(__name__)

_UNSET = object()


class MirrorStore:
    """Single-writer, many-reader mirror with an atomic replace."""

    def __init__(self, snapshot_path: Optional[Union[str, Path]] = None):
        self._lock = threading.Lock()
        self._dataset: Optional[GraphDataset] = None
        self._version: Optional[str] = None
        self._store: Optional[GraphStore] = None
        self.snapshot_path = Path(snapshot_path) if snapshot_path else None

        if self.snapshot_path and self.snapshot_path.exists():
            self._load_snapshot()

    # =========================================================================
    # READS
    # =========================================================================

    @property
    def version(self) -> Optional[str]:
        return self._version

    def is_empty(self) -> bool:
        return self._dataset is None or self._dataset.is_empty()

    def get_dataset(self) -> GraphDataset:
        with self._lock:
            return self._dataset if self._dataset is not None else GraphDataset()

    def get_store(self) -> GraphStore:
        """GraphStore over the current contents, rebuilt only after a replace."""
        with self._lock:
            if self._store is None:
                self._store = GraphStore(self._dataset if self._dataset is not None else GraphDataset())
            return self._store

    def root_options_exist(self) -> bool:
        """Cheap sanity check: the single root node has at least one option."""
        data = self.get_dataset()
        roots = [n.id for n in data.nodes if n.node_type == NodeType.ROOT]
        if len(roots) != 1:
            return False
        return any(o.node_id == roots[0] for o in data.options)

    # =========================================================================
    # WRITES
    # =========================================================================

    def replace(self, dataset: GraphDataset, version: Optional[str],
                expected_version=_UNSET) -> None:
        """Swap all collections and the version marker in one step.

        If ``expected_version`` is given and the marker no longer equals it,
        nothing is written and ``MirrorConflictError`` is raised.
        """
        frozen = dataset.model_copy(update={"version": version}, deep=True)
        with self._lock:
            if expected_version is not _UNSET and self._version != expected_version:
                raise MirrorConflictError(expected_version, self._version)
            if self.snapshot_path:
                self._write_snapshot(frozen)
            self._dataset = frozen
            self._version = version
            self._store = None
        logger.info(f"Mirror replaced with version {version!r}: {frozen.counts()}")

    def clear(self) -> None:
        """Wipe contents and version marker, including the snapshot file."""
        with self._lock:
            self._dataset = None
            self._version = None
            self._store = None
            if self.snapshot_path and self.snapshot_path.exists():
                self.snapshot_path.unlink()
        logger.info("Mirror cleared")

    # =========================================================================
    # SNAPSHOT FILE
    # =========================================================================

    def _write_snapshot(self, dataset: GraphDataset) -> None:
        payload = {
            "version": dataset.version,
            "dataset": dataset.model_dump(by_alias=True, mode="json"),
        }
        self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=".mirror-", suffix=".json", dir=str(self.snapshot_path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f)
            os.replace(tmp_path, self.snapshot_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _load_snapshot(self) -> None:
        try:
            with open(self.snapshot_path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            dataset = GraphDataset.model_validate(payload["dataset"])
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Ignoring unreadable mirror snapshot {self.snapshot_path}: {e}")
            return
        self._dataset = dataset
        self._version = payload.get("version")
        logger.info(f"Loaded mirror snapshot version {self._version!r}: {dataset.counts()}")
