"""Test settings — ZuppaClaude."""
from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from zuppaclaude.errors import SettingsError
from zuppaclaude.manifest import load_json, save_json
from zuppaclaude.settings import DEFAULT_PREFERENCES, SettingsStore


@pytest.fixture
def store(config):
    return SettingsStore(config)


# ===================================================================
# Load / save
# ===================================================================

class TestLoadSave:

    @pytest.mark.unit
    def test_missing_file(self, store):
        assert store.exists() is False
        assert store.load() is None
        assert store.describe() == []

    @pytest.mark.unit
    def test_corrupt_file_loads_as_none(self, store, config):
        config.settings_file.parent.mkdir(parents=True)
        config.settings_file.write_text("{oops", encoding="utf-8")
        assert store.load() is None

    @pytest.mark.unit
    def test_save_fills_defaults_and_mode(self, store, config):
        data = store.save({"components": {"rclone": {"installed": True}}})
        assert data["version"] == "1.0"
        assert data["preferences"] == DEFAULT_PREFERENCES
        assert data["created"] == data["updated"]
        assert config.settings_file.stat().st_mode & 0o777 == 0o600
        assert store.load() == data

    @pytest.mark.unit
    def test_save_keeps_created(self, store, settings_doc):
        store.save(settings_doc)
        again = store.save({"components": {}})
        assert again["created"] == settings_doc["created"]

    @pytest.mark.unit
    def test_save_failure_raises_settings_error(self, store):
        with patch("zuppaclaude.settings.save_json", side_effect=PermissionError("read-only")):
            with pytest.raises(SettingsError) as exc_info:
                store.save({"components": {}})
        assert "read-only" in exc_info.value.detail
        assert not store.exists()

    @pytest.mark.unit
    def test_update_components_merges(self, store, settings_doc):
        store.save(settings_doc)
        store.update_components({"claude_hud": {"installed": True}})
        components = store.components()
        assert components["claude_hud"] == {"installed": True}
        assert components["superclaude"] == {"installed": True}

    @pytest.mark.unit
    def test_api_key_encoding(self):
        encoded = SettingsStore.encode_api_key("sk-test-123")
        assert encoded != "sk-test-123"
        assert SettingsStore.decode_api_key(encoded) == "sk-test-123"
        assert SettingsStore.decode_api_key("***not base64***") == ""


# ===================================================================
# Display
# ===================================================================

class TestDescribe:

    @pytest.mark.unit
    def test_describe_lists_components(self, store, settings_doc):
        settings_doc["components"]["claude_z"] = {"installed": True, "api_key_encoded": "eA=="}
        store.save(settings_doc)
        text = "\n".join(store.describe())
        assert "SuperClaude: Yes" in text
        assert "Spec Kit: No" in text
        assert "API Key: [configured]" in text
        assert "Remote: gdrive" in text
        assert "Auto-update check: No" in text


# ===================================================================
# Export / import / reset
# ===================================================================

class TestExportImport:

    @pytest.mark.unit
    def test_export_adds_metadata(self, store, config, settings_doc, tmp_path):
        store.save(settings_doc)
        target = store.export(str(tmp_path / "export.json"))
        data = load_json(target)
        assert data["_export"]["hostname"] == "test-host"
        assert data["components"] == settings_doc["components"]

    @pytest.mark.unit
    def test_export_expands_home(self, store, config, settings_doc):
        store.save(settings_doc)
        target = store.export("~/exported.json")
        assert target == (config.home / "exported.json").resolve()

    @pytest.mark.unit
    def test_export_without_settings(self, store, tmp_path):
        assert store.export(str(tmp_path / "x.json")) is None

    @pytest.mark.unit
    def test_import_backs_up_existing(self, store, config, settings_doc, tmp_path):
        store.save({"components": {"old": True}})
        source = tmp_path / "in.json"
        save_json(source, dict(settings_doc, _export={"hostname": "elsewhere"}))

        assert store.import_file(str(source)) is True
        loaded = store.load()
        assert "_export" not in loaded
        assert loaded["components"] == settings_doc["components"]
        backups = list(config.settings_file.parent.glob("zc-settings.json.backup.*"))
        assert len(backups) == 1
        assert json.loads(backups[0].read_text(encoding="utf-8"))["components"] == {"old": True}

    @pytest.mark.unit
    def test_import_missing_or_invalid(self, store, tmp_path):
        assert store.import_file(str(tmp_path / "nope.json")) is False
        bad = tmp_path / "bad.json"
        bad.write_text("[1, 2]", encoding="utf-8")
        assert store.import_file(str(bad)) is False

    @pytest.mark.unit
    def test_reset_requires_confirmation(self, store, settings_doc, scripted_prompts):
        store.save(settings_doc)
        assert store.reset(scripted_prompts("")) is False
        assert store.exists()
        assert store.reset(scripted_prompts("y")) is True
        assert not store.exists()

    @pytest.mark.unit
    def test_reset_without_file(self, store, scripted_prompts):
        assert store.reset(scripted_prompts()) is True
