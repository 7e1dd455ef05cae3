"""Feature-driven recipe composition.

Turns a terminal node's base recipe plus a (compatibility-checked) feature
selection into the recipe handed to template renderers:

1. Normalize the selected feature ids to feature groups
2. Keep core steps and the fixed steps of selected groups
3. Append one synthesized step per selected group without a fixed slot,
   in ``SYNTHESIS_ORDER``
4. Renumber 1..N with no gaps
5. Filter the capability-detail tree with the same normalized selection

Steps 2-5 all consume the output of step 1, so step filtering and
capability filtering cannot disagree about which groups are present.
The base recipe is never mutated.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..models import Recipe, Step
from .feature_catalog import (
    FEATURES,
    STEP_SLOTS,
    SYNTHESIS_ORDER,
    FeatureGroup,
    FixedStep,
    fixed_step_numbers,
    matches_feature,
    resolve_groups,
)

logger = logging.getLogger(__name__)

DEFAULT_CORE_STEPS = (1, 2, 8)


@dataclass
class ComposedRecipe:
    recipe: Recipe
    selected_features: list[str] = field(default_factory=list)
    groups: set = field(default_factory=set)
    # Parallel to recipe.steps: governing group of each step, None for core steps.
    step_groups: list[Optional[FeatureGroup]] = field(default_factory=list)

    @property
    def steps(self) -> list[Step]:
        return self.recipe.steps

    @property
    def capability_details(self) -> Optional[dict]:
        return self.recipe.capability_details

    def groups_in_steps(self) -> set:
        return {g for g in self.step_groups if g is not None}

    def groups_in_capabilities(self) -> set:
        return groups_in_capability_tree(self.recipe.capability_details)

    def to_dict(self) -> dict:
        """Renderer payload: the recipe record plus the feature list."""
        payload = self.recipe.model_dump(by_alias=True)
        payload["selectedFeatures"] = list(self.selected_features)
        return payload


# =============================================================================
# CAPABILITY TREE HELPERS
# =============================================================================

def _get_path(tree: dict, path: tuple[str, ...]) -> Any:
    node = tree
    for key in path:
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def _delete_path(tree: dict, path: tuple[str, ...]) -> None:
    """Delete ``path`` from ``tree`` and prune parents left empty by the delete."""
    parents = []
    node = tree
    for key in path[:-1]:
        if not isinstance(node, dict) or key not in node:
            return
        parents.append((node, key))
        node = node[key]
    if not isinstance(node, dict) or path[-1] not in node:
        return
    del node[path[-1]]
    for parent, key in reversed(parents):
        if parent[key] == {}:
            del parent[key]
        else:
            break


def groups_in_capability_tree(tree: Optional[dict]) -> set:
    """Feature groups that still have at least one capability entry in ``tree``."""
    if not tree:
        return set()
    return {f.group for f in FEATURES if _get_path(tree, f.capability_path) is not None}


def filter_capability_details(details: Optional[dict], feature_ids: Iterable[str]) -> Optional[dict]:
    """Return a copy of ``details`` without capabilities nobody selected.

    Matching is by prefix: ``azure-openai-gpt4`` keeps ``integration.azureOpenAI``.
    """
    if details is None:
        return None
    selected = list(feature_ids)
    tree = copy.deepcopy(details)
    for feature in FEATURES:
        if not any(matches_feature(fid, feature.id) for fid in selected):
            _delete_path(tree, feature.capability_path)
    return tree


# =============================================================================
# COMPOSER
# =============================================================================

class RecipeComposer:
    """Tailors base recipes to a feature selection.

    Only recipes whose node id is in ``feature_gated_recipes`` are filtered;
    others are returned as authored (renumbered).
    """

    def __init__(self, feature_gated_recipes: Iterable[str] = (),
                 core_step_numbers: Iterable[int] = DEFAULT_CORE_STEPS):
        self.feature_gated_recipes = set(feature_gated_recipes)
        self.core_step_numbers = set(core_step_numbers)
        overlap = self.core_step_numbers & fixed_step_numbers(FeatureGroup)
        if overlap:
            raise ValueError(f"Core steps overlap feature step slots: {sorted(overlap)}")

    @classmethod
    def from_config(cls, config) -> "RecipeComposer":
        return cls(config.feature_gated_recipes, config.core_step_numbers)

    def is_feature_gated(self, recipe: Recipe) -> bool:
        return recipe.node_id in self.feature_gated_recipes

    def compose(self, recipe: Recipe, selected_features: Iterable[str] = ()) -> ComposedRecipe:
        """Compose the final recipe for ``selected_features``.

        Raises:
            UnknownFeatureError: if a selected id maps to no feature group
                (only checked for feature-gated recipes).
        """
        features = list(dict.fromkeys(selected_features))
        composed = recipe.model_copy(deep=True)

        if not self.is_feature_gated(recipe):
            composed.steps = _renumber(composed.steps)
            return ComposedRecipe(
                recipe=composed,
                selected_features=features,
                step_groups=[None] * len(composed.steps),
            )

        groups = resolve_groups(features)
        step_for_number = {
            slot.number: g for g, slot in STEP_SLOTS.items() if isinstance(slot, FixedStep)
        }
        required = self.core_step_numbers | fixed_step_numbers(groups)

        steps: list[Step] = []
        step_groups: list[Optional[FeatureGroup]] = []
        for step in composed.steps:
            if step.number in required:
                steps.append(step)
                step_groups.append(step_for_number.get(step.number))

        missing = fixed_step_numbers(groups) - {s.number for s in steps}
        if missing:
            logger.warning(
                f"Recipe {recipe.node_id} has no authored step(s) {sorted(missing)} "
                f"for the selected features"
            )

        for group in SYNTHESIS_ORDER:
            if group in groups:
                slot = STEP_SLOTS[group]
                steps.append(Step(number=0, title=slot.title, description=slot.description))
                step_groups.append(group)

        composed.steps = _renumber(steps)
        composed.capability_details = filter_capability_details(
            composed.capability_details, features
        )
        return ComposedRecipe(
            recipe=composed,
            selected_features=features,
            groups=groups,
            step_groups=step_groups,
        )


def _renumber(steps: list[Step]) -> list[Step]:
    return [s.model_copy(update={"number": i}) for i, s in enumerate(steps, start=1)]
