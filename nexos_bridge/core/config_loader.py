"""YAML configuration with .env support and environment overrides"""

import os
import re
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

from ..models.config import AppConfig, TokenLimit


TRUE_VALUES = {"1", "true", "yes", "y", "on"}
ENV_REFERENCE = re.compile(r"\$\{([^}]+)\}")
DEFAULT_CONFIG_PATH = "config/config.yaml"


def _bool_env(value: str) -> bool:
    return value.strip().lower() in TRUE_VALUES


# Environment variable -> (section, key, converter); applied after the YAML is read
ENV_OVERRIDES: Dict[str, Tuple[str, str, Callable[[str], Any]]] = {
    "HOST": ("server", "host", str),
    "PORT": ("server", "port", int),
    "LOG_LEVEL": ("server", "log_level", str),
    "PUBLIC_BASE_URL": ("server", "public_base_url", str),
    "NEXOS_BASE_URL": ("nexos", "base_url", str),
    "NEXOS_CHAT_ID": ("nexos", "chat_id", str),
    "NEXOS_HANDLER_ID": ("nexos", "handler_id", str),
    "NEXOS_COOKIES": ("nexos", "cookies", str),
    "NEXOS_TIMEOUT": ("nexos", "timeout", float),
    "DISABLE_HISTORY": ("nexos", "disable_history", _bool_env),
    "SESSION_STORAGE": ("storage", "type", str),
    "CURRENT_CHAT_FILE": ("storage", "path", str),
    "REDIS_URL": ("storage", "redis_url", str),
}

# Sections whose string values may reference ${VAR}
EXPANDED_SECTIONS = ("nexos",)


class ConfigLoader:
    """Read config.yaml into an AppConfig"""

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        """
        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        # Values from .env become visible to overrides and ${VAR} references
        load_dotenv()

    def _expand(self, value: Any) -> Any:
        """Replace ${VAR} references in strings, recursing into dicts and lists"""
        if isinstance(value, dict):
            return {key: self._expand(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self._expand(item) for item in value]
        if not isinstance(value, str):
            return value

        def lookup(match: "re.Match") -> str:
            name = match.group(1)
            resolved = os.environ.get(name)
            if resolved is None:
                raise ValueError(f"Environment variable '{name}' is not set")
            return resolved

        return ENV_REFERENCE.sub(lookup, value)

    def load_yaml(self) -> Dict[str, Any]:
        """
        Raw YAML mapping

        Raises:
            FileNotFoundError: If the file is missing
            ValueError: If the file is empty or not valid YAML
        """
        if not self.config_path.is_file():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            raw = yaml.safe_load(self.config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {self.config_path}: {e}")

        if not raw:
            raise ValueError("Configuration file is empty")
        if not isinstance(raw, dict):
            raise ValueError("Configuration root must be a mapping")
        return raw

    def apply_env_overrides(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        """Copy of the raw config with set environment variables applied"""
        sections = {name: dict(raw.get(name) or {}) for name in ("server", "nexos", "storage")}
        for name in EXPANDED_SECTIONS:
            sections[name] = self._expand(sections[name])

        for env_name, (section, key, convert) in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                sections[section][key] = convert(value)

        merged = dict(raw)
        merged.update(sections)
        return merged

    def load(self) -> AppConfig:
        """
        Build the validated application configuration

        Raises:
            FileNotFoundError: If the file is missing
            ValueError: If a value is invalid or a ${VAR} reference is unset
        """
        data = self.apply_env_overrides(self.load_yaml())
        if "token_limits" not in data:
            data["token_limits"] = [TokenLimit(match="gemini", max_tokens=65536)]
        elif data["token_limits"] is None:
            data["token_limits"] = []
        if data.get("models") is None:
            data["models"] = []
        return AppConfig.model_validate(data)


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load configuration from ``config_path``, ``$NEXOS_BRIDGE_CONFIG`` or the default path
    """
    if config_path is None:
        config_path = os.getenv("NEXOS_BRIDGE_CONFIG", DEFAULT_CONFIG_PATH)
    return ConfigLoader(config_path).load()
