"""Pin WizardConfig loading and helper behavior."""

import pytest
import yaml

from recipe_wizard.config_loader import (
    WizardConfig,
    get_available_catalogs,
    get_config,
    load_wizard_config,
    reload_config,
    set_current_catalog,
)
from recipe_wizard.logic.errors import ConfigError
from recipe_wizard.logic.feature_catalog import FeatureGroup


def _write_config(tmp_path, **sections):
    raw = {
        "catalog": {"id": "test_catalog", "name": "Test"},
        "recipes": {"feature_gated": ["r"], "core_steps": [1, 2, 8]},
        "features": [{"id": "token-limits", "label": "Token limits"}],
    }
    raw.update(sections)
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(raw), encoding="utf-8")
    return str(path)


class TestConfigLoading:
    def test_load_config_returns_wizard_config(self, config):
        assert isinstance(config, WizardConfig)

    def test_catalog_metadata(self, config):
        assert config.catalog_id == "apim_ai_gateway"
        assert config.catalog_name == "APIM AI Gateway"
        assert config.version == "2.1"

    def test_recipe_settings(self, config):
        assert config.feature_gated_recipes == ["apim-ai-gateway-recipe"]
        assert config.core_step_numbers == [1, 2, 8]
        assert config.recipe_successors == {"apim-ai-gateway-features": "apim-ai-gateway-recipe"}

    def test_features_listed(self, config):
        assert len(config.features) == 18
        assert config.get_feature_label("mcp-support") == "MCP support"
        assert config.get_feature_label("not-listed") == "not-listed"

    def test_features_grouped(self, config):
        grouped = config.get_features_by_group()
        assert {f.id for f in grouped[FeatureGroup.LLM_BACKENDS]} == {
            "azure-openai", "openai", "microsoft-foundry", "custom-llm", "self-hosted"
        }

    def test_sync_defaults(self, config):
        assert config.sync.root_sanity_check is True

    def test_get_config_is_cached(self):
        assert get_config("apim_ai_gateway") is get_config("apim_ai_gateway")


class TestCatalogDiscovery:
    def test_catalog_directory_discovered(self):
        ids = [c["id"] for c in get_available_catalogs()]
        assert "apim_ai_gateway" in ids

    def test_unknown_catalog(self):
        with pytest.raises(ValueError):
            set_current_catalog("no_such_catalog")

    def test_reload_returns_fresh_object(self):
        before = get_config("apim_ai_gateway")
        after = reload_config(catalog_id="apim_ai_gateway")
        assert after is not before
        assert after.catalog_id == before.catalog_id


class TestValidation:
    def test_minimal_file(self, tmp_path):
        config = load_wizard_config(_write_config(tmp_path))
        assert config.catalog_id == "test_catalog"
        assert config.sync.mirror_path is None

    def test_unknown_feature_rejected(self, tmp_path):
        path = _write_config(tmp_path, features=[{"id": "quantum-routing"}])
        with pytest.raises(ConfigError):
            load_wizard_config(path)

    def test_core_step_collision_rejected(self, tmp_path):
        path = _write_config(tmp_path, recipes={"core_steps": [1, 2, 3]})
        with pytest.raises(ConfigError):
            load_wizard_config(path)

    def test_malformed_sync_section(self, tmp_path):
        path = _write_config(tmp_path, sync={"root_sanity_check": "sometimes"})
        with pytest.raises(ConfigError):
            load_wizard_config(path)

    def test_mirror_path_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WIZARD_MIRROR_PATH", str(tmp_path / "mirror.json"))
        config = load_wizard_config(_write_config(tmp_path))
        assert config.sync.mirror_path == str(tmp_path / "mirror.json")
