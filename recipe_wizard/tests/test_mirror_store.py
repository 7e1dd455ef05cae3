"""MirrorStore atomic replace, compare-and-swap and JSON snapshot."""

import json

import pytest

from recipe_wizard.logic.errors import MirrorConflictError
from recipe_wizard.logic.mirror_store import MirrorStore
from recipe_wizard.models import GraphDataset


class TestInMemory:
    def test_starts_empty(self):
        mirror = MirrorStore()
        assert mirror.version is None
        assert mirror.is_empty()
        assert not mirror.root_options_exist()

    def test_replace_swaps_data_and_version(self, dataset):
        mirror = MirrorStore()
        mirror.replace(dataset, "v1")
        assert mirror.version == "v1"
        assert mirror.get_dataset().version == "v1"
        assert mirror.get_store().get_root_node().id == "azure-root"
        assert mirror.root_options_exist()

    def test_replace_copies_input(self, dataset):
        mirror = MirrorStore()
        mirror.replace(dataset, "v1")
        dataset.nodes.clear()
        assert len(mirror.get_dataset().nodes) == 7

    def test_store_rebuilt_after_replace(self, dataset):
        mirror = MirrorStore()
        mirror.replace(dataset, "v1")
        first = mirror.get_store()
        assert mirror.get_store() is first
        mirror.replace(dataset, "v2")
        assert mirror.get_store() is not first

    def test_compare_and_swap_conflict(self, dataset):
        mirror = MirrorStore()
        mirror.replace(dataset, "v2")
        with pytest.raises(MirrorConflictError):
            mirror.replace(GraphDataset(), "v3", expected_version="v1")
        assert mirror.version == "v2"
        assert len(mirror.get_dataset().nodes) == 7

    def test_compare_and_swap_success(self, dataset):
        mirror = MirrorStore()
        mirror.replace(dataset, "v2", expected_version=None)
        assert mirror.version == "v2"

    def test_root_without_options(self, dataset):
        mirror = MirrorStore()
        emptied = dataset.model_copy(update={"options": []})
        mirror.replace(emptied, "v1")
        assert not mirror.root_options_exist()

    def test_clear(self, dataset):
        mirror = MirrorStore()
        mirror.replace(dataset, "v1")
        mirror.clear()
        assert mirror.version is None
        assert mirror.is_empty()


class TestSnapshot:
    def test_snapshot_written_and_reloaded(self, dataset, tmp_path):
        path = tmp_path / "mirror" / "graph.json"
        MirrorStore(path).replace(dataset, "v1")

        payload = json.loads(path.read_text(encoding="utf-8"))
        assert payload["version"] == "v1"
        assert payload["dataset"]["paths"][0]["fromNodeId"] == "azure-root"

        reopened = MirrorStore(path)
        assert reopened.version == "v1"
        assert reopened.get_dataset() == dataset.model_copy(update={"version": "v1"})
        assert reopened.get_store().get_recipe_for_node("static-web-app").title == "Static web app"

    def test_no_temp_files_left(self, dataset, tmp_path):
        path = tmp_path / "graph.json"
        MirrorStore(path).replace(dataset, "v1")
        assert [p.name for p in tmp_path.iterdir()] == ["graph.json"]

    def test_clear_removes_snapshot(self, dataset, tmp_path):
        path = tmp_path / "graph.json"
        mirror = MirrorStore(path)
        mirror.replace(dataset, "v1")
        mirror.clear()
        assert not path.exists()

    def test_corrupt_snapshot_starts_empty(self, tmp_path):
        path = tmp_path / "graph.json"
        path.write_text("{not json", encoding="utf-8")
        mirror = MirrorStore(path)
        assert mirror.version is None
        assert mirror.is_empty()

    def test_failed_write_leaves_memory_untouched(self, dataset, tmp_path, monkeypatch):
        path = tmp_path / "graph.json"
        mirror = MirrorStore(path)
        mirror.replace(dataset, "v1")

        def _boom(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("recipe_wizard.logic.mirror_store.os.replace", _boom)
        with pytest.raises(OSError):
            mirror.replace(GraphDataset(), "v2")
        assert mirror.version == "v1"
        assert json.loads(path.read_text(encoding="utf-8"))["version"] == "v1"
