"""Tests for persisted user preferences."""
import json

import pytest
from pydantic import ValidationError

from calming_notes.settings import Settings, SettingsStore


@pytest.fixture
def settings_store(test_config):
    return SettingsStore()


class TestSettings:
    """Tests for the Settings model."""

    def test_defaults(self):
        settings = Settings()
        assert settings.color_scheme == "light"
        assert settings.font_size == 16

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            Settings(color_scheme="sepia")
        with pytest.raises(ValidationError):
            Settings(font_size=2)

    def test_unknown_keys_ignored(self):
        assert Settings.model_validate({"font_size": 20, "legacy": True}).font_size == 20


class TestSettingsStore:
    """Tests for loading and saving settings."""

    def test_default_path_from_config(self, settings_store, test_config):
        assert settings_store.path == test_config.base_dir / "settings.json"

    def test_missing_file_gives_defaults(self, settings_store):
        assert settings_store.load() == Settings()

    def test_set_and_reload(self, settings_store):
        """Changes are persisted and survive a new store."""
        settings_store.set_color_scheme("dark")
        settings_store.set_font_size(20)

        reloaded = SettingsStore(settings_store.path).load()
        assert reloaded.color_scheme == "dark"
        assert reloaded.font_size == 20

    def test_toggle_theme(self, settings_store):
        assert settings_store.toggle_theme().color_scheme == "dark"
        assert settings_store.toggle_theme().color_scheme == "light"

    def test_invalid_value_not_saved(self, settings_store):
        with pytest.raises(ValidationError):
            settings_store.set_font_size(500)
        assert settings_store.settings.font_size == 16
        assert not settings_store.path.exists()

    def test_corrupt_file_gives_defaults(self, settings_store, caplog):
        settings_store.path.write_text("{not json", encoding="utf-8")

        assert settings_store.load() == Settings()
        assert "Failed to load settings" in caplog.text

    def test_invalid_stored_values_give_defaults(self, settings_store):
        settings_store.path.write_text(
            json.dumps({"color_scheme": "neon", "font_size": 16}), encoding="utf-8"
        )
        assert settings_store.load() == Settings()

    def test_unwritable_path_does_not_raise(self, temp_dir):
        """Save failures are logged and the in-memory value still changes."""
        blocker = temp_dir / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        store = SettingsStore(blocker / "settings.json")

        assert store.set_color_scheme("dark").color_scheme == "dark"
        assert not (blocker / "settings.json").exists()
