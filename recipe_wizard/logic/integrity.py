"""Structural validation of a ``GraphDataset`` before it replaces the mirror.

One policy for every violation class: collect all problems and reject the
dataset with a single ``GraphIntegrityError``. Nothing is silently repaired;
the caller keeps its last good copy.
"""

import logging
from collections import Counter

from ..models import GraphDataset, NodeType
from .errors import GraphIntegrityError

logger = logging.getLogger(__name__)


def find_integrity_problems(data: GraphDataset) -> list[str]:
    """Return a human-readable list of every integrity violation in ``data``."""
    problems: list[str] = []

    # --- Root ---
    roots = [n.id for n in data.nodes if n.node_type == NodeType.ROOT]
    if not roots:
        problems.append("No root node found")
    elif len(roots) > 1:
        problems.append(f"Multiple root nodes found: {', '.join(roots)}")

    # --- Uniqueness ---
    for node_id, count in Counter(n.id for n in data.nodes).items():
        if count > 1:
            problems.append(f"Duplicate node id: {node_id}")
    for option_id, count in Counter(o.id for o in data.options).items():
        if count > 1:
            problems.append(f"Duplicate option id: {option_id}")
    for key, count in Counter(p.key for p in data.paths).items():
        if count > 1:
            problems.append(f"Duplicate path from {key[0]} via {key[1]}")
    for node_id, count in Counter(r.node_id for r in data.recipes).items():
        if count > 1:
            problems.append(f"Node {node_id} owns {count} recipes")
    for pair, count in Counter(r.pair for r in data.compatibility_rules).items():
        if count > 1:
            problems.append(f"Duplicate compatibility rule for pair {sorted(pair)}")

    node_ids = {n.id for n in data.nodes}
    node_types = {n.id: n.node_type for n in data.nodes}
    option_owner = {o.id: o.node_id for o in data.options}

    # --- Orphaned options ---
    for opt in data.options:
        if opt.node_id not in node_ids:
            problems.append(f"Orphaned option {opt.id}: node {opt.node_id} not found")

    # --- Invalid paths ---
    for path in data.paths:
        issues = []
        if path.from_node_id not in node_ids:
            issues.append(f"fromNodeId {path.from_node_id} not found")
        if path.to_node_id not in node_ids:
            issues.append(f"toNodeId {path.to_node_id} not found")
        owner = option_owner.get(path.from_option_id)
        if owner is None:
            issues.append(f"fromOptionId {path.from_option_id} not found")
        elif owner != path.from_node_id:
            issues.append(f"fromOptionId {path.from_option_id} belongs to {owner}")
        if issues:
            problems.append(
                f"Invalid path [{path.from_node_id} -> {path.to_node_id} via "
                f"{path.from_option_id}]: {', '.join(issues)}"
            )

    # --- Orphaned recipes ---
    for recipe in data.recipes:
        if recipe.node_id not in node_ids:
            problems.append(f"Orphaned recipe: node {recipe.node_id} not found")
        elif node_types[recipe.node_id] != NodeType.TERMINAL:
            problems.append(
                f"Recipe on non-terminal node {recipe.node_id} ({node_types[recipe.node_id].value})"
            )

    return problems


def validate_graph_integrity(data: GraphDataset) -> None:
    """Raise ``GraphIntegrityError`` listing all problems, or return silently."""
    problems = find_integrity_problems(data)
    if problems:
        logger.warning(
            f"Rejecting dataset version {data.version!r}: {len(problems)} integrity problem(s)"
        )
        raise GraphIntegrityError(problems)
