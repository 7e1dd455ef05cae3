"""Configuration Loader for wizard catalogs.

Each catalog (a decision graph plus its feature-gated recipes) is described
by a YAML file under ``catalogs/<catalog_id>/config.yaml``. The YAML carries
presentation metadata and deployment settings only; the feature-group domain
model lives in ``logic.feature_catalog`` and every feature listed here must
resolve against it.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .logic.errors import ConfigError
from .logic.feature_catalog import FeatureGroup, all_fixed_step_numbers, resolve_feature


# =============================================================================
# PYDANTIC MODELS FOR CONFIGURATION VALIDATION
# =============================================================================

class FeatureDisplay(BaseModel):
    """UI metadata for one selectable feature."""
    id: str
    label: str = ""
    description: str = ""
    category: str = ""
    widget: str = "checkbox"


class SyncSettings(BaseModel):
    """Mirror / cache synchronization settings."""
    mirror_path: Optional[str] = None
    root_sanity_check: bool = True


# =============================================================================
# MAIN CONFIGURATION CONTAINER
# =============================================================================

@dataclass
class WizardConfig:
    """Complete catalog configuration container."""

    # Catalog metadata
    catalog_id: str = ""
    catalog_name: str = ""
    description: str = ""
    version: str = "1.0"

    # Recipe composition
    feature_gated_recipes: list[str] = field(default_factory=list)
    core_step_numbers: list[int] = field(default_factory=lambda: [1, 2, 8])
    recipe_successors: dict[str, str] = field(default_factory=dict)

    # Presentation
    features: list[FeatureDisplay] = field(default_factory=list)

    # Sync
    sync: SyncSettings = field(default_factory=SyncSettings)

    def get_feature_display(self, feature_id: str) -> Optional[FeatureDisplay]:
        for feature in self.features:
            if feature.id == feature_id:
                return feature
        return None

    def get_features_by_group(self) -> dict[FeatureGroup, list[FeatureDisplay]]:
        """Group display entries by the feature group they resolve to."""
        grouped: dict[FeatureGroup, list[FeatureDisplay]] = {}
        for feature in self.features:
            definition = resolve_feature(feature.id)
            grouped.setdefault(definition.group, []).append(feature)
        return grouped

    def get_feature_label(self, feature_id: str) -> str:
        display = self.get_feature_display(feature_id)
        return display.label if display and display.label else feature_id


# =============================================================================
# CONFIGURATION LOADER
# =============================================================================

DEFAULT_CATALOG = os.environ.get("WIZARD_CATALOG", "apim_ai_gateway")

_PACKAGE_DIR = Path(__file__).parent
_CATALOGS_DIR = _PACKAGE_DIR / "catalogs"


def _resolve_config_path(catalog_id: str) -> Path:
    return _CATALOGS_DIR / catalog_id / "config.yaml"


def get_available_catalogs() -> list[dict]:
    """Discover catalogs from the catalogs/ directory."""
    catalogs = []
    if not _CATALOGS_DIR.exists():
        return catalogs

    for catalog_dir in sorted(_CATALOGS_DIR.iterdir()):
        config_path = catalog_dir / "config.yaml"
        if catalog_dir.is_dir() and config_path.exists():
            with open(config_path, 'r', encoding='utf-8') as f:
                raw = yaml.safe_load(f) or {}
            meta = raw.get("catalog", {})
            catalogs.append({
                "id": catalog_dir.name,
                "name": meta.get("name", catalog_dir.name),
                "description": meta.get("description", ""),
                "version": meta.get("version", "1.0"),
                "config_file": str(config_path),
            })
    return catalogs


def load_wizard_config(config_path: Optional[str] = None, catalog_id: Optional[str] = None) -> WizardConfig:
    """Load and validate a catalog configuration from YAML.

    Args:
        config_path: Path to config file. If None, uses catalog_id to find config.
        catalog_id: Catalog identifier. If None, uses DEFAULT_CATALOG.

    Raises:
        ConfigError: on unknown feature ids, core steps that collide with
            feature step slots, or malformed sections.
    """
    if config_path is None:
        if catalog_id is None:
            catalog_id = DEFAULT_CATALOG
        config_path = _resolve_config_path(catalog_id)

    with open(config_path, 'r', encoding='utf-8') as f:
        raw = yaml.safe_load(f) or {}

    config = WizardConfig()

    meta = raw.get("catalog", {})
    config.catalog_id = meta.get("id", catalog_id or "")
    config.catalog_name = meta.get("name", "")
    config.description = meta.get("description", "")
    config.version = str(meta.get("version", "1.0"))

    recipes = raw.get("recipes", {})
    config.feature_gated_recipes = list(recipes.get("feature_gated", []))
    config.core_step_numbers = [int(n) for n in recipes.get("core_steps", [1, 2, 8])]
    config.recipe_successors = dict(recipes.get("successors", {}))

    overlap = set(config.core_step_numbers) & all_fixed_step_numbers()
    if overlap:
        raise ConfigError(f"core_steps {sorted(overlap)} collide with feature step slots")

    try:
        for entry in raw.get("features", []):
            config.features.append(FeatureDisplay(**entry))
        config.sync = SyncSettings(**raw.get("sync", {}))
    except ValidationError as e:
        raise ConfigError(f"Invalid catalog config {config_path}: {e}") from e

    unknown = [f.id for f in config.features if resolve_feature(f.id) is None]
    if unknown:
        raise ConfigError(f"Catalog lists unknown feature ids: {unknown}")

    mirror_env = os.environ.get("WIZARD_MIRROR_PATH")
    if mirror_env:
        config.sync.mirror_path = mirror_env

    return config


# =============================================================================
# GLOBAL CONFIG SINGLETON
# =============================================================================

_configs: dict[str, WizardConfig] = {}
_current_catalog: str = DEFAULT_CATALOG


def get_config(catalog_id: Optional[str] = None) -> WizardConfig:
    """Get the loaded catalog configuration (cached per catalog)."""
    global _configs, _current_catalog

    if catalog_id is None:
        catalog_id = _current_catalog

    if catalog_id not in _configs:
        _configs[catalog_id] = load_wizard_config(catalog_id=catalog_id)

    return _configs[catalog_id]


def get_current_catalog() -> str:
    return _current_catalog


def set_current_catalog(catalog_id: str) -> WizardConfig:
    """Switch the active catalog.

    Raises:
        ValueError: If catalog_id cannot be resolved.
    """
    global _current_catalog

    if not _resolve_config_path(catalog_id).exists():
        available = [c["id"] for c in get_available_catalogs()]
        raise ValueError(f"Unknown catalog '{catalog_id}'. Available: {available}")

    _current_catalog = catalog_id
    return get_config(catalog_id)


def reload_config(config_path: Optional[str] = None, catalog_id: Optional[str] = None) -> WizardConfig:
    """Force reload of configuration."""
    global _configs, _current_catalog

    if catalog_id is None:
        catalog_id = _current_catalog

    _configs[catalog_id] = load_wizard_config(config_path, catalog_id)
    return _configs[catalog_id]
