"""Pydantic schemas for the decision-graph wizard.

Wire records use camelCase keys (``nodeType``, ``fromNodeId``); Python
attributes are snake_case. Dump with ``model_dump(by_alias=True)`` when
handing records back to the store or to a renderer.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


_WIRE = {"populate_by_name": True, "extra": "ignore"}


class NodeType(str, Enum):
    ROOT = "root"
    QUESTION = "question"
    FEATURE_SELECTION = "feature-selection"
    TERMINAL = "terminal"


class RuleType(str, Enum):
    """Severity of a pairwise compatibility rule."""
    ERROR = "error"      # hard conflict, blocks selection
    WARNING = "warning"  # soft conflict, shown but allowed
    INFO = "info"        # recommendation


# ========================================
# Decision graph
# ========================================

class Node(BaseModel):
    """A point in the decision graph."""
    id: str = Field(..., description="Unique node id (e.g. 'apim-ai-gateway')")
    question: str = Field("", description="Question shown to the user")
    description: str = Field("", description="Longer explanation of the decision")
    node_type: NodeType = Field(..., alias="nodeType")
    tags: list[str] = Field(default_factory=list)

    model_config = _WIRE

    @property
    def is_terminal(self) -> bool:
        return self.node_type == NodeType.TERMINAL


class Option(BaseModel):
    """A user-choosable answer attached to exactly one node."""
    id: str = Field(..., description="Globally unique option id")
    node_id: str = Field(..., alias="nodeId")
    label: str = ""
    description: str = ""
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    when_to_use: str = Field("", alias="whenToUse")
    when_not_to_use: str = Field("", alias="whenNotToUse")

    model_config = _WIRE


class Path(BaseModel):
    """Directed edge (node, option) -> node. (from_node_id, from_option_id) is the key."""
    from_node_id: str = Field(..., alias="fromNodeId")
    from_option_id: str = Field(..., alias="fromOptionId")
    to_node_id: str = Field(..., alias="toNodeId")

    model_config = _WIRE

    @property
    def key(self) -> tuple[str, str]:
        return self.from_node_id, self.from_option_id


class Step(BaseModel):
    number: int
    title: str = ""
    description: str = ""


class Recipe(BaseModel):
    """Deployment recipe owned by a terminal node.

    ``steps`` mixes always-present core step numbers with feature-gated ones.
    ``capability_details`` is the richer capability tree filtered alongside
    the steps when a feature selection is applied.
    """
    node_id: str = Field(..., alias="nodeId")
    title: str = ""
    steps: list[Step] = Field(default_factory=list)
    config_schema: Optional[dict[str, Any]] = Field(None, alias="configSchema")
    capability_details: Optional[dict[str, Any]] = Field(None, alias="capabilityDetails")
    links: list[str] = Field(default_factory=list)
    skill_level: Optional[str] = Field(None, alias="skillLevel")
    estimated_time: Optional[str] = Field(None, alias="estimatedTime")

    model_config = _WIRE


# ========================================
# Components & compatibility
# ========================================

class Component(BaseModel):
    """An addressable unit (feature, service) a user can select."""
    id: str
    name: str
    category: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)

    model_config = _WIRE


class CompatibilityRule(BaseModel):
    """Rule over an unordered pair of component ids."""
    component_id1: str = Field(..., alias="componentId1")
    component_id2: str = Field(..., alias="componentId2")
    type: RuleType
    reason: str = ""

    model_config = _WIRE

    @property
    def pair(self) -> frozenset:
        return frozenset((self.component_id1, self.component_id2))


# ========================================
# Full dataset exchanged with the store
# ========================================

class GraphDataset(BaseModel):
    """Everything the wizard reads, tagged with an opaque version token."""
    version: Optional[str] = None
    nodes: list[Node] = Field(default_factory=list)
    options: list[Option] = Field(default_factory=list)
    paths: list[Path] = Field(default_factory=list)
    recipes: list[Recipe] = Field(default_factory=list)
    components: list[Component] = Field(default_factory=list)
    compatibility_rules: list[CompatibilityRule] = Field(
        default_factory=list, alias="compatibilityRules"
    )

    model_config = _WIRE

    def counts(self) -> dict[str, int]:
        return {
            "nodes": len(self.nodes),
            "options": len(self.options),
            "paths": len(self.paths),
            "recipes": len(self.recipes),
            "components": len(self.components),
            "compatibility_rules": len(self.compatibility_rules),
        }

    def is_empty(self) -> bool:
        return not self.nodes
