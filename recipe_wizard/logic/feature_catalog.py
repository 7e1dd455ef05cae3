"""Feature catalog: the closed set of feature groups and their recipe step slots.

Every feature id a user can pick resolves to exactly one ``FeatureGroup``.
Each group owns exactly one step slot in a tailored recipe:

* ``FixedStep``       -- a pre-authored step number in the base recipe
* ``SynthesizedStep`` -- no authored step; one summary step is generated

``STEP_SLOTS`` must cover every ``FeatureGroup``; this is checked when the
module is imported, so adding a group without a slot fails immediately.

Granular sub-feature ids normalize by prefix on a ``-`` boundary:
``token-limits-request`` -> ``token-limits``, ``azure-openai-gpt4`` ->
``azure-openai``. The same matcher drives step filtering and
capability-detail filtering.

Presentation metadata (labels, descriptions, form widgets) lives in the
catalog YAML, not here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union

from .errors import UnknownFeatureError


class FeatureGroup(str, Enum):
    TOKEN_LIMITS = "token-limits"
    CONTENT_SAFETY = "content-safety"
    SEMANTIC_CACHING = "semantic-caching"
    RATE_LIMITING = "rate-limiting"
    REALTIME_API = "realtime-api"
    MCP_SUPPORT = "mcp-support"
    LOAD_BALANCING = "load-balancing"
    CIRCUIT_BREAKER = "circuit-breaker"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    TRANSFORMATION = "transformation"
    RESILIENCE = "resilience"
    LLM_BACKENDS = "llm-backends"


@dataclass(frozen=True)
class FixedStep:
    number: int


@dataclass(frozen=True)
class SynthesizedStep:
    title: str
    description: str


StepSlot = Union[FixedStep, SynthesizedStep]


STEP_SLOTS: dict[FeatureGroup, StepSlot] = {
    FeatureGroup.TOKEN_LIMITS: FixedStep(3),
    FeatureGroup.CONTENT_SAFETY: FixedStep(4),
    FeatureGroup.SEMANTIC_CACHING: FixedStep(5),
    FeatureGroup.RATE_LIMITING: FixedStep(6),
    FeatureGroup.REALTIME_API: FixedStep(7),
    FeatureGroup.MCP_SUPPORT: SynthesizedStep(
        "Configure MCP Support",
        "Set up Model Context Protocol endpoints for tool discovery and invocation by AI agents",
    ),
    FeatureGroup.LOAD_BALANCING: SynthesizedStep(
        "Configure Backend Load Balancing",
        "Create a backend pool across model deployments and route requests by priority and weight",
    ),
    FeatureGroup.CIRCUIT_BREAKER: SynthesizedStep(
        "Configure Circuit Breaker",
        "Add circuit breaker rules to backends so failing deployments are tripped and retried later",
    ),
    FeatureGroup.AUTHENTICATION: SynthesizedStep(
        "Configure Authentication",
        "Secure gateway-to-backend calls with managed identity and validate caller credentials",
    ),
    FeatureGroup.AUTHORIZATION: SynthesizedStep(
        "Configure Authorization",
        "Restrict API access with JWT claim checks, subscriptions and product scopes",
    ),
    FeatureGroup.TRANSFORMATION: SynthesizedStep(
        "Configure Request/Response Transformation",
        "Add policies that rewrite headers, bodies and URLs on the inbound and outbound pipeline",
    ),
    FeatureGroup.RESILIENCE: SynthesizedStep(
        "Configure Resilience Policies",
        "Add retry, timeout and fallback policies around backend calls",
    ),
    FeatureGroup.LLM_BACKENDS: SynthesizedStep(
        "Register LLM Backends",
        "Register the selected model providers as API Management backends",
    ),
}

# Order in which synthesized steps are appended after the authored steps.
SYNTHESIS_ORDER: tuple[FeatureGroup, ...] = (
    FeatureGroup.MCP_SUPPORT,
    FeatureGroup.LOAD_BALANCING,
    FeatureGroup.CIRCUIT_BREAKER,
    FeatureGroup.AUTHENTICATION,
    FeatureGroup.AUTHORIZATION,
    FeatureGroup.TRANSFORMATION,
    FeatureGroup.RESILIENCE,
    FeatureGroup.LLM_BACKENDS,
)


@dataclass(frozen=True)
class FeatureDefinition:
    """Pure domain description of a selectable feature."""
    id: str
    group: FeatureGroup
    capability_path: tuple[str, ...]   # location in the capability-detail tree
    compatibility_class: str           # policy, protocol, routing, security, backend


FEATURES: tuple[FeatureDefinition, ...] = (
    FeatureDefinition("token-limits", FeatureGroup.TOKEN_LIMITS, ("policies", "tokenLimits"), "policy"),
    FeatureDefinition("content-safety", FeatureGroup.CONTENT_SAFETY, ("policies", "contentSafety"), "policy"),
    FeatureDefinition("semantic-caching", FeatureGroup.SEMANTIC_CACHING, ("policies", "semanticCaching"), "policy"),
    FeatureDefinition("rate-limiting", FeatureGroup.RATE_LIMITING, ("policies", "rateLimiting"), "policy"),
    FeatureDefinition("realtime-api", FeatureGroup.REALTIME_API, ("realtimeApi",), "protocol"),
    FeatureDefinition("mcp-support", FeatureGroup.MCP_SUPPORT, ("mcpSupport",), "protocol"),
    FeatureDefinition("load-balancing", FeatureGroup.LOAD_BALANCING, ("loadBalancing",), "routing"),
    FeatureDefinition("circuit-breaker", FeatureGroup.CIRCUIT_BREAKER, ("circuitBreaker",), "routing"),
    FeatureDefinition("authentication", FeatureGroup.AUTHENTICATION, ("security", "authentication"), "security"),
    FeatureDefinition("authorization", FeatureGroup.AUTHORIZATION, ("security", "authorization"), "security"),
    FeatureDefinition("request-transformation", FeatureGroup.TRANSFORMATION, ("transformation", "request"), "policy"),
    FeatureDefinition("response-transformation", FeatureGroup.TRANSFORMATION, ("transformation", "response"), "policy"),
    FeatureDefinition("resilience", FeatureGroup.RESILIENCE, ("resilience",), "routing"),
    FeatureDefinition("azure-openai", FeatureGroup.LLM_BACKENDS, ("integration", "azureOpenAI"), "backend"),
    FeatureDefinition("openai", FeatureGroup.LLM_BACKENDS, ("integration", "openAI"), "backend"),
    FeatureDefinition("microsoft-foundry", FeatureGroup.LLM_BACKENDS, ("integration", "microsoftFoundry"), "backend"),
    FeatureDefinition("custom-llm", FeatureGroup.LLM_BACKENDS, ("integration", "customLLMProviders"), "backend"),
    FeatureDefinition("self-hosted", FeatureGroup.LLM_BACKENDS, ("integration", "selfHostedModels"), "backend"),
)

FEATURES_BY_ID: dict[str, FeatureDefinition] = {f.id: f for f in FEATURES}


def _check_catalog() -> None:
    missing = [g.value for g in FeatureGroup if g not in STEP_SLOTS]
    if missing:
        raise RuntimeError(f"Feature groups without a step slot: {missing}")

    synthesized = {g for g, slot in STEP_SLOTS.items() if isinstance(slot, SynthesizedStep)}
    if synthesized != set(SYNTHESIS_ORDER) or len(SYNTHESIS_ORDER) != len(synthesized):
        raise RuntimeError("SYNTHESIS_ORDER must list every synthesized group exactly once")

    numbers = [slot.number for slot in STEP_SLOTS.values() if isinstance(slot, FixedStep)]
    if len(numbers) != len(set(numbers)):
        raise RuntimeError(f"Duplicate fixed step numbers: {sorted(numbers)}")

    groups_with_features = {f.group for f in FEATURES}
    orphans = [g.value for g in FeatureGroup if g not in groups_with_features]
    if orphans:
        raise RuntimeError(f"Feature groups without any feature: {orphans}")


_check_catalog()


# =============================================================================
# RESOLUTION
# =============================================================================

def matches_feature(selected_id: str, canonical_id: str) -> bool:
    """True if ``selected_id`` is ``canonical_id`` or a granular sub-feature of it."""
    return selected_id == canonical_id or selected_id.startswith(canonical_id + "-")


def resolve_feature(feature_id: str) -> Optional[FeatureDefinition]:
    """Resolve a (possibly granular) feature id to its definition.

    The longest matching canonical id wins, so ``azure-openai-gpt4`` resolves
    to ``azure-openai`` and never to ``openai``.
    """
    if feature_id in FEATURES_BY_ID:
        return FEATURES_BY_ID[feature_id]
    best = None
    for feature in FEATURES:
        if matches_feature(feature_id, feature.id):
            if best is None or len(feature.id) > len(best.id):
                best = feature
    return best


def resolve_groups(feature_ids: Iterable[str], strict: bool = True) -> set[FeatureGroup]:
    """Map selected feature ids to the set of feature groups they govern.

    Raises:
        UnknownFeatureError: if ``strict`` and any id resolves to no feature.
    """
    groups = set()
    unknown = []
    for fid in feature_ids:
        feature = resolve_feature(fid)
        if feature is None:
            unknown.append(fid)
            continue
        groups.add(feature.group)
    if unknown and strict:
        raise UnknownFeatureError(unknown)
    return groups


def fixed_step_numbers(groups: Iterable[FeatureGroup]) -> set[int]:
    return {
        STEP_SLOTS[g].number for g in groups if isinstance(STEP_SLOTS[g], FixedStep)
    }


def all_fixed_step_numbers() -> set[int]:
    return fixed_step_numbers(FeatureGroup)


def features_in_group(group: FeatureGroup) -> list[FeatureDefinition]:
    return [f for f in FEATURES if f.group == group]
