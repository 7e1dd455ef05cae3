"""Navigation engine: forward traversal of the decision graph.

The engine works on an explicit ``WizardSession`` (position, trail, feature
selections, event log) and a read-only ``GraphStore``. It never holds
navigation state of its own, so one engine per request is cheap and
several sessions can share a store.

Feature-selection nodes do not have fixed edges. The user toggles features
(each addition gated by ``CompatibilityEngine.can_add``) and then selects the
reserved pseudo-option ``feature-selection-submit``, which commits the
selection and moves to the node's recipe successor.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from ..models import Node, NodeType, Option
from .compatibility import CanAddResult, CompatibilityEngine
from .errors import FeatureConflictError, PathNotFound, UnknownFeatureError, WizardError
from .feature_catalog import resolve_feature
from .graph_store import GraphStore
from .path_reconstructor import PathReconstructor
from .recipe_composer import ComposedRecipe, RecipeComposer
from .session import HistoryEntry, WizardSession

logger = logging.getLogger(__name__)

FEATURE_SUBMIT_OPTION_ID = "feature-selection-submit"


@dataclass
class NavigationResult:
    next_node: Node
    is_terminal: bool
    recipe: Optional[ComposedRecipe] = None


@dataclass
class Breadcrumb:
    node_id: str
    question: str
    option_label: Optional[str] = None

    def to_dict(self) -> dict:
        return {"nodeId": self.node_id, "nodeQuestion": self.question, "optionLabel": self.option_label}


class NavigationEngine:
    """Select / back / reset / breadcrumbs / explain over one session."""

    def __init__(self, store: GraphStore, session: Optional[WizardSession] = None,
                 compatibility: Optional[CompatibilityEngine] = None,
                 composer: Optional[RecipeComposer] = None,
                 recipe_successors: Optional[dict[str, str]] = None):
        self.store = store
        self.session = session if session is not None else WizardSession()
        self.compatibility = compatibility or CompatibilityEngine.from_store(store)
        self.composer = composer or RecipeComposer()
        self.recipe_successors = dict(recipe_successors or {})

        if self.session.current_node_id is None:
            self.session.current_node_id = store.get_root_node().id

    @classmethod
    def from_config(cls, store: GraphStore, config,
                    session: Optional[WizardSession] = None) -> "NavigationEngine":
        return cls(
            store,
            session=session,
            composer=RecipeComposer.from_config(config),
            recipe_successors=config.recipe_successors,
        )

    # =========================================================================
    # POSITION
    # =========================================================================

    @property
    def current_node_id(self) -> str:
        return self.session.current_node_id

    def get_current_node(self) -> Node:
        return self.store.require_node(self.session.current_node_id)

    def get_current_options(self) -> list[Option]:
        """Options of the current node; feature-selection nodes have none."""
        node = self.get_current_node()
        if node.node_type == NodeType.FEATURE_SELECTION:
            return []
        return self.store.get_options_for_node(node.id)

    def is_at_root(self) -> bool:
        return not self.session.history and self.current_node_id == self.store.get_root_node().id

    # =========================================================================
    # FORWARD
    # =========================================================================

    def select_option(self, option_id: str) -> NavigationResult:
        """Follow the edge (current node, option_id).

        On a feature-selection node the edge into the recipe successor commits
        the pending selection exactly like ``feature-selection-submit``.

        Raises:
            PathNotFound: no such edge; the position is unchanged.
        """
        if option_id == FEATURE_SUBMIT_OPTION_ID:
            return self.submit_features()

        current = self.session.current_node_id
        next_id = self.store.get_next_node_id(current, option_id)
        if self.get_current_node().node_type == NodeType.FEATURE_SELECTION:
            if next_id is not None and next_id == self._resolve_recipe_successor(current):
                return self.submit_features()
            raise PathNotFound(current, option_id, [FEATURE_SUBMIT_OPTION_ID])
        if next_id is None:
            available = [o.id for o in self.store.get_options_for_node(current)]
            raise PathNotFound(current, option_id, available)

        next_node = self.store.require_node(next_id)
        option = self.store.get_option(option_id)
        self.session.push(
            HistoryEntry(current, option_id, option.label if option else option_id),
            next_id,
        )
        self.session.log("select", current, option_id)
        return self._result(next_node)

    def add_feature(self, feature_id: str) -> CanAddResult:
        """Add a feature to the pending selection if no hard conflict blocks it.

        Returns the ``can_add`` verdict; a blocked feature is not added.
        Warnings are returned for display but do not block.
        """
        self._require_feature_node()
        if resolve_feature(feature_id) is None:
            raise UnknownFeatureError([feature_id])

        pending = self.session.pending_features
        if feature_id in pending:
            return CanAddResult(can_add=True)

        verdict = self.compatibility.can_add(feature_id, pending)
        if verdict.can_add:
            pending.append(feature_id)
            self.session.log("feature", detail=f"+{feature_id}")
        else:
            logger.info(
                f"Feature {feature_id} blocked by {[e.other_than(feature_id) for e in verdict.errors]}"
            )
        return verdict

    def remove_feature(self, feature_id: str) -> bool:
        self._require_feature_node()
        if feature_id not in self.session.pending_features:
            return False
        self.session.pending_features.remove(feature_id)
        self.session.log("feature", detail=f"-{feature_id}")
        return True

    def submit_features(self) -> NavigationResult:
        """Commit the pending feature selection and move to the recipe node.

        Raises:
            PathNotFound: current node is not a feature-selection node, or it
                has no unambiguous recipe successor.
            FeatureConflictError: the pending selection contains an error-type
                conflict (e.g. a session restored from an edited dict).
        """
        node = self.get_current_node()
        if node.node_type != NodeType.FEATURE_SELECTION:
            raise PathNotFound(node.id, FEATURE_SUBMIT_OPTION_ID)

        successor = self._resolve_recipe_successor(node.id)
        pending = list(self.session.pending_features)
        errors = self.compatibility.get_errors(pending)
        if errors:
            raise FeatureConflictError(errors[0].component_id2, errors)

        self.session.selected_features = pending
        self.session.pending_features = []
        label = f"Selected features: {', '.join(pending)}" if pending else "No optional features"
        self.session.push(HistoryEntry(node.id, FEATURE_SUBMIT_OPTION_ID, label), successor)
        self.session.log("submit", node.id, FEATURE_SUBMIT_OPTION_ID, detail=",".join(pending))
        return self._result(self.store.require_node(successor))

    # =========================================================================
    # BACKWARD / RESET / JUMP
    # =========================================================================

    def go_back(self) -> Optional[Node]:
        """Undo the last choice. Returns the node now current, or None at root.

        With an empty trail away from the root (a deep link that could not be
        traced back), the session is reset to the root instead.
        """
        entry = self.session.pop()
        if entry is None:
            if self.is_at_root():
                return None
            return self.reset()

        if entry.option_id == FEATURE_SUBMIT_OPTION_ID:
            # Back onto the feature-selection node: reopen the committed selection.
            self.session.pending_features = list(self.session.selected_features)
            self.session.selected_features = []

        self.session.log("back", entry.node_id, entry.option_id)
        return self.get_current_node()

    def reset(self) -> Node:
        root = self.store.get_root_node()
        self.session.restart(root.id)
        self.session.log("reset", root.id)
        logger.info(f"Session {self.session.session_id} reset to root")
        return root

    def jump_to_node(self, node_id: str, via_option_ids: Optional[Iterable[str]] = None) -> Node:
        """Deep-link to ``node_id``, rebuilding the trail by backward tracing."""
        node = self.store.require_node(node_id)
        reconstructor = PathReconstructor(self.store)
        rebuilt = reconstructor.reconstruct(node_id, via_option_ids)
        history = reconstructor.to_history(rebuilt)

        self.session.history = history
        self.session.pending_features = []
        self.session.selected_features = []
        self.session.current_node_id = node_id
        detail = "ambiguous" if rebuilt.is_ambiguous else ""
        self.session.log("jump", node_id, detail=detail)
        logger.info(f"Session {self.session.session_id} jumped to {node_id} ({len(history)} steps rebuilt)")
        return node

    # =========================================================================
    # TRAIL
    # =========================================================================

    def get_breadcrumbs(self) -> list[Breadcrumb]:
        """Trail from root to the current node, each with the label chosen there."""
        crumbs = []
        for entry in self.session.history:
            node = self.store.get_node(entry.node_id)
            crumbs.append(Breadcrumb(entry.node_id, node.question if node else "", entry.option_label))

        current = self.store.get_node(self.session.current_node_id)
        if current is not None:
            crumbs.append(Breadcrumb(current.id, current.question, None))
        return crumbs

    def explain_path(self) -> str:
        if not self.session.history:
            return "Start by selecting an option from the root question."

        parts = []
        for entry in self.session.history:
            node = self.store.get_node(entry.node_id)
            question = node.question if node else "decision point"
            option = self.store.get_option(entry.option_id)
            text = f'At "{question}", you chose "{entry.option_label}".'
            if option and option.when_to_use:
                text += f" {option.when_to_use}"
            parts.append(text)
        return " ".join(parts)

    # =========================================================================
    # RECIPE
    # =========================================================================

    def get_current_recipe(self) -> Optional[ComposedRecipe]:
        """Composed recipe for the current node, or None if it owns none."""
        recipe = self.store.get_recipe_for_node(self.session.current_node_id)
        if recipe is None:
            return None
        return self.composer.compose(recipe, self.session.selected_features)

    def export_path(self) -> dict:
        node = self.get_current_node()
        composed = self.get_current_recipe() if node.is_terminal else None
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "sessionId": self.session.session_id,
            "path": [b.to_dict() for b in self.get_breadcrumbs()],
            "explanation": self.explain_path(),
            "currentNode": node.model_dump(by_alias=True),
            "selectedFeatures": list(self.session.selected_features),
            "recipe": composed.to_dict() if composed else None,
        }

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _result(self, node: Node) -> NavigationResult:
        composed = self.get_current_recipe() if node.is_terminal else None
        return NavigationResult(next_node=node, is_terminal=node.is_terminal, recipe=composed)

    def _require_feature_node(self) -> Node:
        node = self.get_current_node()
        if node.node_type != NodeType.FEATURE_SELECTION:
            raise WizardError(f"Node '{node.id}' is not a feature-selection node")
        return node

    def _resolve_recipe_successor(self, node_id: str) -> str:
        """Configured successor, else the single outbound edge into a terminal node."""
        configured = self.recipe_successors.get(node_id)
        if configured:
            self.store.require_node(configured)
            return configured

        targets = set()
        for path in self.store.get_outbound_paths(node_id):
            target = self.store.get_node(path.to_node_id)
            if target is not None and target.is_terminal:
                targets.add(target.id)
        targets = sorted(targets)
        if len(targets) != 1:
            raise PathNotFound(node_id, FEATURE_SUBMIT_OPTION_ID)
        return targets[0]
