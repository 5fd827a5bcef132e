"""Tests for skillmatch/config.py."""

import os
import warnings

import pytest
import yaml

from skillmatch.config import EngineConfig, RetentionConfig, StoreConfig
from skillmatch.exceptions import ConfigError

ENV_VARS = ("SKILLMATCH_STORE_URL", "SKILLMATCH_API_TOKEN")


@pytest.fixture
def clean_env(monkeypatch):
    """Unset store env vars now, and again after the test even if .env set them."""
    for name in ENV_VARS:
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)


def _write(tmp_path, data):
    (tmp_path / "skillmatch.yaml").write_text(yaml.dump(data))


class TestEngineConfig:
    def test_load_valid_config(self, config, tmp_project):
        """Loading a valid skillmatch.yaml produces correct config."""
        assert config.name == "Test Project"
        assert config.org == "acme"
        assert config.project_dir == tmp_project
        assert config.store.backend == "tinydb"
        assert config.store.timeout_seconds == 2.0
        assert config.store.retry_backoff_seconds == 0
        assert config.engine.max_workers == 4
        assert config.retention.feedback_days == 30
        assert config.retention.audit_days == 90

    def test_store_path_relative_to_project(self, config, tmp_project):
        assert config.store_path == tmp_project / "data" / "skillmatch.json"

    def test_store_path_absolute(self, tmp_path):
        _write(tmp_path, {"project": {"name": "X", "org": "o"},
                          "store": {"path": str(tmp_path / "elsewhere.json")}})
        assert EngineConfig.load(tmp_path).store_path == tmp_path / "elsewhere.json"

    def test_defaults(self, tmp_path, clean_env):
        _write(tmp_path, {"project": {"name": "X", "org": "o"}})
        config = EngineConfig.load(tmp_path)
        assert config.store == StoreConfig()
        assert config.engine.max_workers == 8
        assert config.feedback.process_interval_seconds == 60
        assert config.retention == RetentionConfig()
        assert config.logging.level == "INFO"
        assert config.skills.keywords == {}

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(ConfigError, match="skillmatch.yaml not found"):
            EngineConfig.load(tmp_path)

    def test_bad_yaml(self, tmp_path):
        (tmp_path / "skillmatch.yaml").write_text(": bad: yaml: [")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            EngineConfig.load(tmp_path)

    def test_not_a_mapping(self, tmp_path):
        (tmp_path / "skillmatch.yaml").write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="must be a YAML mapping"):
            EngineConfig.load(tmp_path)

    def test_missing_project_section(self, tmp_path):
        _write(tmp_path, {"store": {"backend": "tinydb"}})
        with pytest.raises(ConfigError, match="missing 'project' section"):
            EngineConfig.load(tmp_path)

    def test_missing_org(self, tmp_path):
        _write(tmp_path, {"project": {"name": "X"}})
        with pytest.raises(ConfigError, match="project.org is required"):
            EngineConfig.load(tmp_path)

    def test_unknown_backend(self, tmp_path):
        _write(tmp_path, {"project": {"name": "X", "org": "o"}, "store": {"backend": "redis"}})
        with pytest.raises(ConfigError, match="Unknown store.backend"):
            EngineConfig.load(tmp_path)

    def test_http_backend_needs_url(self, tmp_path, clean_env):
        _write(tmp_path, {"project": {"name": "X", "org": "o"}, "store": {"backend": "http"}})
        with pytest.raises(ConfigError, match="no base_url"):
            EngineConfig.load(tmp_path)

    def test_http_backend_url_from_env(self, tmp_path, clean_env, monkeypatch):
        monkeypatch.setenv("SKILLMATCH_STORE_URL", "https://store.example.com/api")
        monkeypatch.setenv("SKILLMATCH_API_TOKEN", "tok-123")
        _write(tmp_path, {"project": {"name": "X", "org": "o"}, "store": {"backend": "http"}})
        config = EngineConfig.load(tmp_path)
        assert config.store.base_url == "https://store.example.com/api"
        assert config.store.api_token == "tok-123"

    @pytest.mark.parametrize("section,values,message", [
        ("store", {"timeout_seconds": 0}, "timeout_seconds must be positive"),
        ("store", {"retry_backoff_seconds": -1}, "must not be negative"),
        ("engine", {"max_workers": 0}, "max_workers must be at least 1"),
        ("feedback", {"process_interval_seconds": 0}, "process_interval_seconds must be at least 1"),
        ("skills", {"keywords": ["graphql"]}, "skills.keywords must be a mapping"),
    ])
    def test_invalid_values(self, tmp_path, section, values, message):
        _write(tmp_path, {"project": {"name": "X", "org": "o"}, section: values})
        with pytest.raises(ConfigError, match=message):
            EngineConfig.load(tmp_path)

    def test_keywords_lowercased(self, tmp_path):
        _write(tmp_path, {"project": {"name": "X", "org": "o"},
                          "skills": {"keywords": {"GraphQL": ["Apollo", "GQL"]}}})
        config = EngineConfig.load(tmp_path)
        assert config.skills.keywords == {"graphql": ["apollo", "gql"]}


class TestDotenv:
    def test_env_file_loaded(self, tmp_project, clean_env):
        env = tmp_project / ".env"
        env.write_text("SKILLMATCH_API_TOKEN=from-dotenv\n")
        os.chmod(env, 0o600)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            config = EngineConfig.load(tmp_project)
        assert config.store.api_token == "from-dotenv"

    def test_world_readable_env_warns(self, tmp_project, clean_env):
        env = tmp_project / ".env"
        env.write_text("SKILLMATCH_API_TOKEN=abc\n")
        os.chmod(env, 0o644)
        with pytest.warns(UserWarning, match="chmod 600"):
            EngineConfig.load(tmp_project)
