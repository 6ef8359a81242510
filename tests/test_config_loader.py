"""Tests for configuration loading and validation"""

from pathlib import Path

import pytest
import yaml

from nexos_bridge.core import ConfigLoader, load_config, validate_config
from nexos_bridge.models.config import ModelMapping


REPO_CONFIG = Path(__file__).resolve().parent.parent / "config" / "config.yaml"

ENV_NAMES = [
    "HOST", "PORT", "LOG_LEVEL", "PUBLIC_BASE_URL",
    "NEXOS_BASE_URL", "NEXOS_CHAT_ID", "NEXOS_HANDLER_ID", "NEXOS_COOKIES",
    "NEXOS_TIMEOUT", "DISABLE_HISTORY",
    "SESSION_STORAGE", "CURRENT_CHAT_FILE", "REDIS_URL", "NEXOS_BRIDGE_CONFIG",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def write_config(tmp_path, data) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


MINIMAL = {
    "nexos": {
        "chat_id": "chat-default",
        "handler_id": "handler-default",
    },
}


class TestConfigLoader:
    """YAML loading and environment overrides"""

    def test_minimal_config_defaults(self, tmp_path):
        config = ConfigLoader(write_config(tmp_path, MINIMAL)).load()

        assert config.server.port == 3000
        assert config.nexos.base_url == "https://workspace.nexos.ai"
        assert config.nexos.timeout == 300
        assert config.nexos.tools == {
            "web_search": True,
            "deep_research": False,
            "code_interpreter": True,
        }
        assert config.storage.type == "file"
        assert [(t.match, t.max_tokens) for t in config.token_limits] == [("gemini", 65536)]

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("NEXOS_COOKIES", "session=abc")
        monkeypatch.setenv("NEXOS_CHAT_ID", "chat-from-env")
        monkeypatch.setenv("NEXOS_TIMEOUT", "45")
        monkeypatch.setenv("DISABLE_HISTORY", "true")
        monkeypatch.setenv("SESSION_STORAGE", "memory")
        monkeypatch.setenv("PUBLIC_BASE_URL", "https://bridge.example.com/")

        config = ConfigLoader(write_config(tmp_path, MINIMAL)).load()

        assert config.server.port == 8080
        assert config.server.public_base_url == "https://bridge.example.com"
        assert config.nexos.cookies == "session=abc"
        assert config.nexos.chat_id == "chat-from-env"
        assert config.nexos.timeout == 45.0
        assert config.nexos.disable_history is True
        assert config.storage.type == "memory"

    def test_variable_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MY_COOKIE", "token=1")
        data = {"nexos": dict(MINIMAL["nexos"], cookies="${MY_COOKIE}")}
        config = ConfigLoader(write_config(tmp_path, data)).load()
        assert config.nexos.cookies == "token=1"

    def test_missing_variable(self, tmp_path, monkeypatch):
        monkeypatch.delenv("UNSET_COOKIE_VAR", raising=False)
        data = {"nexos": dict(MINIMAL["nexos"], cookies="${UNSET_COOKIE_VAR}")}
        with pytest.raises(ValueError, match="UNSET_COOKIE_VAR"):
            ConfigLoader(write_config(tmp_path, data)).load()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader(str(tmp_path / "nope.yaml")).load()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ValueError):
            ConfigLoader(str(path)).load()

    def test_explicit_empty_token_limits(self, tmp_path):
        data = dict(MINIMAL, token_limits=[])
        config = ConfigLoader(write_config(tmp_path, data)).load()
        assert config.token_limits == []

    def test_load_config_uses_env_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NEXOS_BRIDGE_CONFIG", write_config(tmp_path, MINIMAL))
        assert load_config().nexos.chat_id == "chat-default"


class TestShippedConfig:
    """The repository's config/config.yaml"""

    def test_model_list(self):
        config = load_config(str(REPO_CONFIG))
        names = [m.name for m in config.models]

        assert len(names) == 22
        assert names[0] == "claude-haiku-4-5"
        assert "nexos-chat" in names
        by_name = {m.name: m for m in config.models}
        assert by_name["mistral-medium-3"].handler_id is None
        assert by_name["nexos-chat"].handler_id == config.nexos.handler_id

    def test_shipped_config_is_valid(self):
        warnings = validate_config(load_config(str(REPO_CONFIG)))
        assert any("NEXOS_COOKIES" in w for w in warnings)


class TestConfigValidator:
    """Cross-field checks"""

    def test_duplicate_model_names(self, app_config):
        app_config.models = app_config.models + [ModelMapping(name="gpt-5", handler_id="x")]
        with pytest.raises(ValueError, match="Duplicate model names found: gpt-5"):
            validate_config(app_config)

    def test_redis_without_url(self, app_config):
        app_config.storage.type = "redis"
        with pytest.raises(ValueError, match="redis_url"):
            validate_config(app_config)

    def test_empty_default_handler(self, app_config):
        app_config.nexos.handler_id = "  "
        with pytest.raises(ValueError, match="handler_id"):
            validate_config(app_config)

    def test_valid_config_has_no_warnings(self, app_config):
        assert validate_config(app_config) == []
