"""
Tests for the settings schema and YAML loader.
"""

import pytest

from qms.config.loader import clear_settings_cache, find_settings_file, load_settings
from qms.config.schema import QMSSettings
from qms.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("QMS_CONFIG", raising=False)
    monkeypatch.delenv("QMS_DATA_PATH", raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


class TestSchema:

    def test_defaults(self):
        settings = QMSSettings()
        assert settings.storage.data_path == "data/inspections.json"
        assert settings.storage.storage_key == "qms_inspections_v2"
        assert settings.storage.seed_sample_data is True
        assert settings.reporting.title == "QMS Pro"
        assert settings.reporting.recent_limit == 3
        assert settings.logging.level == "INFO"

    def test_log_level_normalized(self):
        assert QMSSettings(logging={"level": "debug"}).logging.level == "DEBUG"

    def test_bad_log_level(self):
        with pytest.raises(ValueError):
            QMSSettings(logging={"level": "LOUD"})

    def test_recent_limit_bounds(self):
        with pytest.raises(ValueError):
            QMSSettings(reporting={"recent_limit": 0})


class TestLoader:

    def test_project_settings_file_is_found(self):
        path = find_settings_file()
        assert path is not None
        assert path.name == "settings.yaml"

    def test_loads_project_defaults(self):
        settings = load_settings()
        assert settings.storage.storage_key == "qms_inspections_v2"

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("storage:\n  data_path: /tmp/qms.json\n  seed_sample_data: false\n")
        settings = load_settings(path)
        assert settings.storage.data_path == "/tmp/qms.json"
        assert settings.storage.seed_sample_data is False
        assert settings.reporting.title == "QMS Pro"

    def test_env_config_path(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.yaml"
        path.write_text("reporting:\n  title: Plant 7 QA\n")
        monkeypatch.setenv("QMS_CONFIG", str(path))
        assert load_settings().reporting.title == "Plant 7 QA"

    def test_data_path_override(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.yaml"
        path.write_text("storage:\n  data_path: a.json\n")
        monkeypatch.setenv("QMS_DATA_PATH", "b.json")
        assert load_settings(path).storage.data_path == "b.json"

    def test_data_path_override_read_on_every_call(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.yaml"
        path.write_text("storage:\n  data_path: a.json\n")
        assert load_settings(path).storage.data_path == "a.json"

        monkeypatch.setenv("QMS_DATA_PATH", "b.json")
        assert load_settings(path).storage.data_path == "b.json"

        monkeypatch.delenv("QMS_DATA_PATH")
        assert load_settings(path).storage.data_path == "a.json"

    def test_cached_per_path(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("reporting:\n  title: First\n")
        first = load_settings(path)
        path.write_text("reporting:\n  title: Second\n")
        assert load_settings(path) is first
        clear_settings_cache()
        assert load_settings(path).reporting.title == "Second"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(tmp_path / "nope.yaml")
        assert exc_info.value.config_path.endswith("nope.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("")
        with pytest.raises(ConfigurationError, match="empty"):
            load_settings(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("storage: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_settings(path)

    def test_schema_violation(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("reporting:\n  datetime_format: 42\n")
        with pytest.raises(ConfigurationError, match="Invalid settings"):
            load_settings(path)
