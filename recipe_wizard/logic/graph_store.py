"""Read-only accessor over a loaded ``GraphDataset``.

Indexes nodes, options, paths, recipes, components and rules once on
construction; every lookup afterwards is a dict hit. The store never
mutates the dataset it was built from.
"""

import logging
from collections import defaultdict
from typing import Optional

from ..models import (
    Component,
    CompatibilityRule,
    GraphDataset,
    Node,
    NodeType,
    Option,
    Path,
    Recipe,
)
from .errors import GraphIntegrityError, NodeNotFound

logger = logging.getLogger(__name__)


class GraphStore:
    """Indexed, read-only view of the decision graph."""

    def __init__(self, dataset: GraphDataset):
        self.dataset = dataset
        self.version = dataset.version

        self._nodes: dict[str, Node] = {n.id: n for n in dataset.nodes}
        self._options: dict[str, Option] = {o.id: o for o in dataset.options}
        self._options_by_node: dict[str, list[Option]] = defaultdict(list)
        for opt in dataset.options:
            self._options_by_node[opt.node_id].append(opt)
        for opts in self._options_by_node.values():
            opts.sort(key=lambda o: o.label)

        self._paths: dict[tuple[str, str], Path] = {}
        self._inbound: dict[str, list[Path]] = defaultdict(list)
        self._outbound: dict[str, list[Path]] = defaultdict(list)
        for path in dataset.paths:
            self._paths[path.key] = path
            self._inbound[path.to_node_id].append(path)
            self._outbound[path.from_node_id].append(path)
        for edges in self._inbound.values():
            edges.sort(key=lambda p: p.key)
        for edges in self._outbound.values():
            edges.sort(key=lambda p: p.key)

        self._recipes: dict[str, Recipe] = {r.node_id: r for r in dataset.recipes}
        self._components: dict[str, Component] = {c.id: c for c in dataset.components}

        roots = [n for n in dataset.nodes if n.node_type == NodeType.ROOT]
        self._root = roots[0] if len(roots) == 1 else None

    # =========================================================================
    # NODES
    # =========================================================================

    def get_root_node(self) -> Node:
        """Return the single root node.

        Raises:
            GraphIntegrityError: if the dataset has zero or several roots.
        """
        if self._root is None:
            raise GraphIntegrityError(["Dataset does not have exactly one root node"])
        return self._root

    def get_node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def require_node(self, node_id: str) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFound(node_id)
        return node

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def node_count(self) -> int:
        return len(self._nodes)

    # =========================================================================
    # OPTIONS & PATHS
    # =========================================================================

    def get_options_for_node(self, node_id: str) -> list[Option]:
        """Options attached to ``node_id``, ordered by label."""
        return list(self._options_by_node.get(node_id, []))

    def get_option(self, option_id: str) -> Optional[Option]:
        return self._options.get(option_id)

    def get_path(self, from_node_id: str, option_id: str) -> Optional[Path]:
        return self._paths.get((from_node_id, option_id))

    def get_next_node_id(self, from_node_id: str, option_id: str) -> Optional[str]:
        path = self._paths.get((from_node_id, option_id))
        return path.to_node_id if path else None

    def get_inbound_paths(self, node_id: str) -> list[Path]:
        """Edges ending at ``node_id``, ordered by (from_node_id, from_option_id)."""
        return list(self._inbound.get(node_id, []))

    def get_outbound_paths(self, node_id: str) -> list[Path]:
        return list(self._outbound.get(node_id, []))

    # =========================================================================
    # RECIPES, COMPONENTS, RULES
    # =========================================================================

    def get_recipe_for_node(self, node_id: str) -> Optional[Recipe]:
        return self._recipes.get(node_id)

    def get_component(self, component_id: str) -> Optional[Component]:
        return self._components.get(component_id)

    def get_all_components(self) -> list[Component]:
        return list(self._components.values())

    def get_components_by_category(self, category: str) -> list[Component]:
        return [c for c in self._components.values() if c.category == category]

    def get_all_compatibility_rules(self) -> list[CompatibilityRule]:
        return list(self.dataset.compatibility_rules)

    # =========================================================================
    # SEARCH
    # =========================================================================

    def search_nodes_by_text(self, query: str) -> list[Node]:
        """Case-insensitive search over node text and option text.

        An option hit returns its parent node. Results keep dataset order and
        contain each node once.
        """
        q = query.lower().strip()
        if not q:
            return []

        hits: dict[str, Node] = {}
        for node in self.dataset.nodes:
            haystack = " ".join([node.question, node.description, " ".join(node.tags)]).lower()
            if q in haystack:
                hits[node.id] = node

        for opt in self.dataset.options:
            if q in opt.label.lower() or q in opt.description.lower():
                parent = self._nodes.get(opt.node_id)
                if parent and parent.id not in hits:
                    hits[parent.id] = parent

        return list(hits.values())

    def search_nodes_by_tag(self, tag: str) -> list[Node]:
        tag_lower = tag.lower()
        return [n for n in self.dataset.nodes if any(t.lower() == tag_lower for t in n.tags)]

    # =========================================================================
    # KNOWLEDGE GAPS
    # =========================================================================

    def is_knowledge_gap(self, node_id: str, kind: str, option_id: Optional[str] = None) -> bool:
        """Report missing authored content.

        kind:
            "recipe"  -- terminal node without a recipe
            "options" -- question node without options
            "path"    -- option of ``node_id`` without an outgoing path
        """
        node = self._nodes.get(node_id)
        if kind == "recipe":
            return bool(node and node.is_terminal and node_id not in self._recipes)
        if kind == "options":
            return bool(node and node.node_type == NodeType.QUESTION
                        and not self._options_by_node.get(node_id))
        if kind == "path":
            if option_id is None:
                raise ValueError("option_id is required for kind='path'")
            return (node_id, option_id) not in self._paths
        raise ValueError(f"Unknown knowledge gap kind: {kind}")
