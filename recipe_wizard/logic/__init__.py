"""Logic module for decision-graph navigation and recipe composition."""

from .cache_sync import CacheSynchronizer, SyncResult, SyncStatus
from .compatibility import CanAddResult, CompatibilityEngine, CompatibilityIssue
from .errors import (
    FeatureConflictError,
    GraphIntegrityError,
    MirrorConflictError,
    NodeNotFound,
    PathNotFound,
    UnknownFeatureError,
    WizardError,
)
from .feature_catalog import FeatureGroup, resolve_groups
from .graph_store import GraphStore
from .mirror_store import MirrorStore
from .navigation import FEATURE_SUBMIT_OPTION_ID, NavigationEngine, NavigationResult
from .path_reconstructor import PathReconstructor, ReconstructedPath
from .recipe_composer import ComposedRecipe, RecipeComposer
from .session import HistoryEntry, WizardSession

__all__ = [
    'CacheSynchronizer',
    'SyncResult',
    'SyncStatus',
    'CanAddResult',
    'CompatibilityEngine',
    'CompatibilityIssue',
    'FeatureConflictError',
    'GraphIntegrityError',
    'MirrorConflictError',
    'NodeNotFound',
    'PathNotFound',
    'UnknownFeatureError',
    'WizardError',
    'FeatureGroup',
    'resolve_groups',
    'GraphStore',
    'MirrorStore',
    'FEATURE_SUBMIT_OPTION_ID',
    'NavigationEngine',
    'NavigationResult',
    'PathReconstructor',
    'ReconstructedPath',
    'ComposedRecipe',
    'RecipeComposer',
    'HistoryEntry',
    'WizardSession',
]
