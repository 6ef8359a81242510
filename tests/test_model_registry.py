"""Tests for model resolution and token ceilings"""

import pytest

from nexos_bridge.core import ModelRegistry
from nexos_bridge.models.config import TokenLimit

from conftest import DEFAULT_HANDLER_ID, GEMINI_HANDLER_ID, GPT_HANDLER_ID


@pytest.fixture
def registry(app_config):
    return ModelRegistry(app_config)


class TestResolve:
    """Public name to handler id"""

    def test_known_model(self, registry):
        assert registry.resolve("gpt-5") == GPT_HANDLER_ID
        assert registry.resolve("gemini-2-5-pro") == GEMINI_HANDLER_ID

    def test_unknown_model_uses_default_handler(self, registry):
        """Unknown names never fail"""
        assert registry.resolve("gpt-4o") == DEFAULT_HANDLER_ID
        assert not registry.is_known("gpt-4o")

    def test_missing_model_resolves_as_default_model(self, registry):
        assert registry.model_name(None) == "nexos-chat"
        assert registry.model_name("") == "nexos-chat"
        assert registry.resolve(None) == DEFAULT_HANDLER_ID

    def test_listed_model_without_handler(self, registry):
        """Listed but unmapped models fall back to the default handler"""
        assert registry.resolve("mistral-medium-3") == DEFAULT_HANDLER_ID
        assert not registry.is_known("mistral-medium-3")


class TestList:
    """Model listing for /v1/models"""

    def test_configuration_order(self, registry, app_config):
        names = [model.id for model in registry.list()]
        assert names == [m.name for m in app_config.models]

    def test_model_info_fields(self, registry):
        gemini = next(m for m in registry.list() if m.id == "gemini-2-5-pro")
        assert gemini.object == "model"
        assert gemini.owned_by == "google"
        assert gemini.created == 1677610602


class TestTokenCeiling:
    """Per-family max_tokens limits"""

    def test_gemini_is_clamped(self, registry):
        assert registry.clamp_max_tokens("gemini-2-5-pro", 128000) == 65536

    def test_match_is_case_insensitive(self, registry):
        assert registry.max_tokens_ceiling("Gemini-3-Pro-Preview") == 65536

    def test_below_ceiling_unchanged(self, registry):
        assert registry.clamp_max_tokens("gemini-2-5-flash", 4096) == 4096

    def test_other_families_unchanged(self, registry):
        assert registry.max_tokens_ceiling("claude-opus-4-6") is None
        assert registry.clamp_max_tokens("claude-opus-4-6", 128000) == 128000

    def test_none_stays_none(self, registry):
        assert registry.clamp_max_tokens("gemini-2-5-pro", None) is None

    def test_smallest_matching_ceiling_wins(self, app_config):
        app_config.token_limits = [
            TokenLimit(match="gemini", max_tokens=65536),
            TokenLimit(match="flash", max_tokens=8192),
        ]
        registry = ModelRegistry(app_config)
        assert registry.clamp_max_tokens("gemini-2-5-flash", 128000) == 8192
        assert registry.clamp_max_tokens("gemini-2-5-pro", 128000) == 65536
