"""Public model names to upstream handler ids"""

from typing import Dict, List, Optional

from ..models.config import AppConfig, ModelMapping
from ..models.openai import ModelInfo


class ModelRegistry:
    """Resolve public model names and list them for /v1/models"""

    def __init__(self, config: AppConfig):
        """
        Initialize registry

        Args:
            config: Application configuration
        """
        self.default_model = config.nexos.default_model
        self.default_handler_id = config.nexos.handler_id
        self.models: List[ModelMapping] = list(config.models)
        self.model_mappings: Dict[str, ModelMapping] = {
            m.name: m for m in self.models
        }
        self.token_limits = list(config.token_limits)

    def model_name(self, requested: Optional[str]) -> str:
        """Name reported back to the caller"""
        return requested or self.default_model

    def resolve(self, name: Optional[str]) -> str:
        """
        Resolve a public model name to an upstream handler id

        Unknown names, and listed names without a handler, use the default handler.
        """
        mapping = self.model_mappings.get(self.model_name(name))
        if mapping is None or not mapping.handler_id:
            return self.default_handler_id
        return mapping.handler_id

    def is_known(self, name: Optional[str]) -> bool:
        mapping = self.model_mappings.get(self.model_name(name))
        return mapping is not None and bool(mapping.handler_id)

    def list(self) -> List[ModelInfo]:
        """Models in configuration order"""
        return [
            ModelInfo(
                id=mapping.name,
                object="model",
                created=mapping.created,
                owned_by=mapping.owned_by,
            )
            for mapping in self.models
        ]

    def max_tokens_ceiling(self, name: Optional[str]) -> Optional[int]:
        """Hard ceiling for the model's family, or None when unconstrained"""
        lowered = self.model_name(name).lower()
        ceilings = [
            limit.max_tokens for limit in self.token_limits
            if limit.match.lower() in lowered
        ]
        return min(ceilings) if ceilings else None

    def clamp_max_tokens(self, name: Optional[str], max_tokens: Optional[int]) -> Optional[int]:
        if max_tokens is None:
            return None
        ceiling = self.max_tokens_ceiling(name)
        if ceiling is not None and max_tokens > ceiling:
            return ceiling
        return max_tokens
