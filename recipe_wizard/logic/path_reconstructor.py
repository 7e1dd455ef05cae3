"""Backward path reconstruction for deep links.

When only a target node id is known (a bookmarked URL, a redirect) there is
no forward history. The trail is rebuilt by walking inbound edges from the
target back to the root.

Several options may legally lead to the same node, so the rebuilt trail is
not necessarily the one the user took. Edge choice per step:

1. an edge whose option id is in ``via_option_ids`` (carried from the origin)
2. otherwise the first edge ordered by (from_node_id, from_option_id)

Every step where more than one edge was available and no hint decided it is
reported in ``ambiguous_node_ids``.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..models import Path
from .graph_store import GraphStore
from .session import HistoryEntry

logger = logging.getLogger(__name__)


@dataclass
class ReconstructedPath:
    target_node_id: str
    edges: list[Path] = field(default_factory=list)   # root-first
    reached_root: bool = True
    ambiguous_node_ids: list[str] = field(default_factory=list)

    @property
    def is_ambiguous(self) -> bool:
        return bool(self.ambiguous_node_ids)


class PathReconstructor:
    def __init__(self, store: GraphStore):
        self.store = store

    def reconstruct(self, node_id: str,
                    via_option_ids: Optional[Iterable[str]] = None) -> ReconstructedPath:
        """Rebuild the root-to-``node_id`` edge sequence.

        Raises:
            NodeNotFound: if ``node_id`` is not in the graph.
        """
        self.store.require_node(node_id)
        root_id = self.store.get_root_node().id
        hints = set(via_option_ids or ())

        result = ReconstructedPath(target_node_id=node_id)
        visited = {node_id}
        current = node_id
        bound = self.store.node_count()

        while current != root_id and len(result.edges) < bound:
            candidates = [
                p for p in self.store.get_inbound_paths(current)
                if p.from_node_id not in visited
            ]
            if not candidates:
                break

            hinted = [p for p in candidates if p.from_option_id in hints]
            chosen = hinted[0] if hinted else candidates[0]
            if len(candidates) > 1 and len(hinted) != 1:
                result.ambiguous_node_ids.append(current)
                logger.warning(
                    f"Node {current} has {len(candidates)} inbound edges; "
                    f"using {chosen.from_node_id} via {chosen.from_option_id}"
                )

            result.edges.insert(0, chosen)
            visited.add(chosen.from_node_id)
            current = chosen.from_node_id

        result.reached_root = current == root_id
        if not result.reached_root:
            logger.warning(f"Could not trace {node_id} back to the root; stopped at {current}")
        return result

    def reconstruct_history(self, node_id: str,
                            via_option_ids: Optional[Iterable[str]] = None) -> list[HistoryEntry]:
        """Same as ``reconstruct`` but shaped as a navigation trail."""
        return self.to_history(self.reconstruct(node_id, via_option_ids))

    def to_history(self, rebuilt: ReconstructedPath) -> list[HistoryEntry]:
        history = []
        for edge in rebuilt.edges:
            option = self.store.get_option(edge.from_option_id)
            history.append(HistoryEntry(
                node_id=edge.from_node_id,
                option_id=edge.from_option_id,
                option_label=option.label if option else edge.from_option_id,
            ))
        return history
