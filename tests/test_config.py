"""Tests for settings resolution (defaults, YAML, environment)."""

from pathlib import Path

import pytest

from pagelens.config import Settings, default_config_path, default_store_path, load_settings

ENV_VARS = [
    "PAGELENS_MODEL",
    "PAGELENS_MODEL_URL",
    "PAGELENS_MAX_TEXT_CHARS",
    "PAGELENS_EXTRACT_TIMEOUT",
    "PAGELENS_MODEL_TIMEOUT",
    "PAGELENS_MAX_BULLETS",
    "PAGELENS_STORE_PATH",
    "PAGELENS_LOG_LEVEL",
    "PAGELENS_MOCK",
    "PAGELENS_CONFIG",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:

    def test_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "absent.yaml")
        assert settings == Settings()
        assert settings.max_text_chars == 200_000
        assert settings.extract_timeout == 5.0
        assert settings.model_timeout is None
        assert settings.model_name == "gemini-nano"
        assert settings.force_mock is False

    def test_default_paths_follow_xdg(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
        assert default_config_path() == tmp_path / "cfg" / "pagelens" / "config.yaml"
        assert default_store_path() == tmp_path / "data" / "pagelens" / "store.json"

    def test_explicit_config_path_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PAGELENS_CONFIG", str(tmp_path / "x.yaml"))
        assert default_config_path() == tmp_path / "x.yaml"

    def test_resolved_store_path(self, tmp_path):
        assert Settings(store_path=str(tmp_path / "s.json")).resolved_store_path == tmp_path / "s.json"


class TestYamlFile:

    def test_yaml_overrides_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("model_name: local-gemma\nmax_bullets: 3\nmodel_timeout: 12.5\n")
        settings = load_settings(path)
        assert settings.model_name == "local-gemma"
        assert settings.max_bullets == 3
        assert settings.model_timeout == 12.5

    def test_unknown_keys_are_ignored(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("bogus: 1\nmax_bullets: 2\n")
        assert load_settings(path).max_bullets == 2

    def test_malformed_yaml_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("max_bullets: [unclosed\n")
        assert load_settings(path) == Settings()

    def test_non_mapping_yaml_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        assert load_settings(path) == Settings()


class TestEnvironment:

    def test_env_overrides_yaml(self, monkeypatch, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("max_text_chars: 1000\n")
        monkeypatch.setenv("PAGELENS_MAX_TEXT_CHARS", "500")
        monkeypatch.setenv("PAGELENS_MODEL_URL", "http://localhost:8080")
        monkeypatch.setenv("PAGELENS_LOG_LEVEL", "debug")

        settings = load_settings(path)

        assert settings.max_text_chars == 500
        assert settings.model_url == "http://localhost:8080"
        assert settings.log_level == "DEBUG"

    def test_use_env_false_ignores_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PAGELENS_MAX_BULLETS", "2")
        assert load_settings(tmp_path / "absent.yaml", use_env=False).max_bullets == 4

    def test_invalid_numbers_keep_defaults(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PAGELENS_MAX_BULLETS", "many")
        monkeypatch.setenv("PAGELENS_EXTRACT_TIMEOUT", "soon")
        settings = load_settings(tmp_path / "absent.yaml")
        assert settings.max_bullets == 4
        assert settings.extract_timeout == 5.0

    def test_model_timeout_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PAGELENS_MODEL_TIMEOUT", "30")
        assert load_settings(tmp_path / "absent.yaml").model_timeout == 30.0

    @pytest.mark.parametrize("value,expected", [
        ("1", True), ("yes", True), ("Enabled", True), ("on", True),
        ("0", False), ("off", False), ("nope", False),
    ])
    def test_mock_flag_parsing(self, monkeypatch, tmp_path, value, expected):
        monkeypatch.setenv("PAGELENS_MOCK", value)
        assert load_settings(Path(tmp_path / "absent.yaml")).force_mock is expected
