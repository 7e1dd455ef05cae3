"""Shared fixtures for the recipe wizard test suite.

Loads the REAL catalog config (catalogs/apim_ai_gateway/config.yaml) and a
small hand-written APIM AI-gateway decision graph:

    azure-root --opt-ai----> ai-workloads --opt-ai-gateway--+
               --opt-apis--> api-management --opt-apim-ai---+--> apim-ai-gateway-features
                                            --opt-apim-basic--> apim-basic (no recipe)
               --opt-web---> static-web-app (plain recipe)

    apim-ai-gateway-features --apim-ai-gateway-features-done--> apim-ai-gateway-recipe

The feature-selection node has two inbound edges on purpose.
"""

import copy
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Ensure the project root is importable
PACKAGE_DIR = Path(__file__).resolve().parent.parent
PROJECT_ROOT = PACKAGE_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from recipe_wizard.config_loader import get_config
from recipe_wizard.logic.graph_store import GraphStore
from recipe_wizard.logic.navigation import NavigationEngine
from recipe_wizard.logic.recipe_composer import RecipeComposer
from recipe_wizard.models import GraphDataset


# =============================================================================
# RAW GRAPH DATA
# =============================================================================

NODES = [
    {"id": "azure-root", "question": "What do you want to build?",
     "description": "Pick the kind of workload", "nodeType": "root", "tags": ["start"]},
    {"id": "ai-workloads", "question": "Which AI workload are you running?",
     "nodeType": "question", "tags": ["ai", "llm"]},
    {"id": "api-management", "question": "How will you expose your APIs?",
     "nodeType": "question", "tags": ["apim"]},
    {"id": "apim-ai-gateway-features", "question": "Which gateway capabilities do you need?",
     "nodeType": "feature-selection", "tags": ["apim", "ai"]},
    {"id": "apim-ai-gateway-recipe", "question": "APIM AI gateway",
     "description": "Deploy API Management as an AI gateway", "nodeType": "terminal", "tags": ["apim"]},
    {"id": "static-web-app", "question": "Azure Static Web Apps",
     "nodeType": "terminal", "tags": ["web"]},
    {"id": "apim-basic", "question": "Basic API proxy", "nodeType": "terminal", "tags": ["apim"]},
]

OPTIONS = [
    {"id": "opt-ai", "nodeId": "azure-root", "label": "AI workloads",
     "description": "Language models and agents", "whenToUse": "You call LLMs from your apps."},
    {"id": "opt-apis", "nodeId": "azure-root", "label": "API management",
     "description": "Publish and secure APIs"},
    {"id": "opt-web", "nodeId": "azure-root", "label": "Web hosting",
     "description": "Static sites and SPAs", "pros": ["Global CDN"], "cons": ["No server code"]},
    {"id": "opt-ai-gateway", "nodeId": "ai-workloads", "label": "AI gateway",
     "description": "Central control of model traffic", "whenToUse": "Several teams share model quota."},
    {"id": "opt-apim-ai", "nodeId": "api-management", "label": "AI gateway for LLMs",
     "description": "APIM policies for Azure OpenAI"},
    {"id": "opt-apim-basic", "nodeId": "api-management", "label": "Basic API proxy",
     "description": "Plain reverse proxy"},
    {"id": "apim-ai-gateway-features-done", "nodeId": "apim-ai-gateway-features",
     "label": "Continue to recipe"},
]

PATHS = [
    {"fromNodeId": "azure-root", "fromOptionId": "opt-ai", "toNodeId": "ai-workloads"},
    {"fromNodeId": "azure-root", "fromOptionId": "opt-apis", "toNodeId": "api-management"},
    {"fromNodeId": "azure-root", "fromOptionId": "opt-web", "toNodeId": "static-web-app"},
    {"fromNodeId": "ai-workloads", "fromOptionId": "opt-ai-gateway", "toNodeId": "apim-ai-gateway-features"},
    {"fromNodeId": "api-management", "fromOptionId": "opt-apim-ai", "toNodeId": "apim-ai-gateway-features"},
    {"fromNodeId": "api-management", "fromOptionId": "opt-apim-basic", "toNodeId": "apim-basic"},
    {"fromNodeId": "apim-ai-gateway-features", "fromOptionId": "apim-ai-gateway-features-done",
     "toNodeId": "apim-ai-gateway-recipe"},
]

GATEWAY_STEPS = [
    {"number": 1, "title": "Create API Management instance"},
    {"number": 2, "title": "Import the Azure OpenAI API"},
    {"number": 3, "title": "Configure token limits"},
    {"number": 4, "title": "Configure content safety"},
    {"number": 5, "title": "Configure semantic caching"},
    {"number": 6, "title": "Configure rate limiting"},
    {"number": 7, "title": "Configure realtime API"},
    {"number": 8, "title": "Test the gateway"},
]

FULL_CAPABILITIES = {
    "gateway": {"sku": "StandardV2"},
    "policies": {
        "tokenLimits": {"tokensPerMinute": 10000},
        "contentSafety": {"categories": ["hate", "violence"]},
        "semanticCaching": {"scoreThreshold": 0.8},
        "rateLimiting": {"calls": 100, "renewalPeriod": 60},
    },
    "realtimeApi": {"protocol": "wss"},
    "mcpSupport": {"servers": 1},
    "loadBalancing": {"pool": ["eastus", "westeurope"]},
    "circuitBreaker": {"tripDuration": "PT1M"},
    "security": {
        "authentication": {"managedIdentity": True},
        "authorization": {"validateJwt": True},
    },
    "transformation": {
        "request": {"setHeader": "x-team"},
        "response": {"removeHeader": "x-powered-by"},
    },
    "resilience": {"retryCount": 3},
    "integration": {
        "azureOpenAI": {"deployment": "gpt-4o"},
        "openAI": {"model": "gpt-4o"},
        "microsoftFoundry": {"project": "agents"},
        "customLLMProviders": {"endpoints": 1},
        "selfHostedModels": {"runtime": "vllm"},
    },
}

RECIPES = [
    {"nodeId": "apim-ai-gateway-recipe", "title": "APIM AI gateway",
     "steps": GATEWAY_STEPS, "capabilityDetails": FULL_CAPABILITIES,
     "configSchema": {"apimName": {"type": "string"}},
     "skillLevel": "intermediate", "estimatedTime": "2 hours"},
    {"nodeId": "static-web-app", "title": "Static web app",
     "steps": [{"number": 1, "title": "Create the app"}, {"number": 3, "title": "Connect the repository"}]},
]

COMPONENTS = [
    {"id": "token-limits", "name": "Token limits", "category": "Policies"},
    {"id": "content-safety", "name": "Content safety", "category": "Policies"},
    {"id": "semantic-caching", "name": "Semantic caching", "category": "Policies"},
    {"id": "realtime-api", "name": "Realtime API", "category": "Protocols"},
    {"id": "load-balancing", "name": "Load balancing", "category": "Routing"},
    {"id": "circuit-breaker", "name": "Circuit breaker", "category": "Routing"},
]

RULES = [
    {"componentId1": "realtime-api", "componentId2": "semantic-caching", "type": "error",
     "reason": "Semantic caching cannot cache WebSocket realtime traffic"},
    {"componentId1": "content-safety", "componentId2": "realtime-api", "type": "warning",
     "reason": "Content safety only screens the initial realtime handshake"},
    {"componentId1": "load-balancing", "componentId2": "circuit-breaker", "type": "info",
     "reason": "Pair load balancing with a circuit breaker"},
]


def make_graph_data(**overrides) -> dict:
    """Wire-format dataset dict; override any collection by keyword."""
    data = {
        "version": "2024.01.15",
        "nodes": NODES,
        "options": OPTIONS,
        "paths": PATHS,
        "recipes": RECIPES,
        "components": COMPONENTS,
        "compatibilityRules": RULES,
    }
    data.update(overrides)
    return copy.deepcopy(data)


# =============================================================================
# GRAPH FIXTURES
# =============================================================================

@pytest.fixture
def graph_data():
    return make_graph_data()


@pytest.fixture
def dataset(graph_data):
    return GraphDataset.model_validate(graph_data)


@pytest.fixture
def store(dataset):
    return GraphStore(dataset)


@pytest.fixture
def full_capabilities():
    return copy.deepcopy(FULL_CAPABILITIES)


# =============================================================================
# CONFIG FIXTURES
# =============================================================================

@pytest.fixture
def config():
    """Load real WizardConfig from the catalog YAML (not mocked)."""
    return get_config("apim_ai_gateway")


@pytest.fixture
def composer(config):
    return RecipeComposer.from_config(config)


@pytest.fixture
def engine(store, config):
    """NavigationEngine on a fresh session standing on the root."""
    return NavigationEngine.from_config(store, config)


@pytest.fixture
def gateway_recipe(store):
    return store.get_recipe_for_node("apim-ai-gateway-recipe")


# =============================================================================
# AUTHORITATIVE STORE MOCK
# =============================================================================

@pytest.fixture
def mock_source(dataset):
    """MagicMock standing in for Neo4jConnection (get_version / fetch_dataset)."""
    source = MagicMock()
    source.get_version.return_value = "2024.01.15"
    source.fetch_dataset.return_value = dataset
    return source
