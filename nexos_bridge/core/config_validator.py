"""Configuration validation"""

from typing import List
from ..models.config import AppConfig


class ConfigValidator:
    """Validate application configuration for consistency and completeness"""

    def __init__(self, config: AppConfig):
        """
        Initialize validator with configuration

        Args:
            config: Application configuration to validate
        """
        self.config = config
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_unique_model_names(self) -> None:
        """Validate that all public model names are unique"""
        names = [m.name for m in self.config.models]
        duplicates = [name for name in names if names.count(name) > 1]

        if duplicates:
            unique_duplicates = sorted(set(duplicates))
            self.errors.append(
                f"Duplicate model names found: {', '.join(unique_duplicates)}"
            )

    def validate_defaults(self) -> None:
        """Validate that the fallback chat and handler are set"""
        if not self.config.nexos.chat_id.strip():
            self.errors.append("nexos.chat_id (default chat) must not be empty")
        if not self.config.nexos.handler_id.strip():
            self.errors.append("nexos.handler_id (default handler) must not be empty")

    def validate_redis_config(self) -> None:
        """Validate Redis configuration if storage type is redis"""
        if self.config.storage.type == "redis":
            if not self.config.storage.redis_url:
                self.errors.append(
                    "Storage type is 'redis' but redis_url is not configured"
                )

    def check_credentials(self) -> None:
        """Missing cookies only fail individual requests"""
        if not self.config.nexos.cookies.strip():
            self.warnings.append(
                "NEXOS_COOKIES is not configured; upstream requests will be rejected"
            )

    def validate_all(self) -> List[str]:
        """
        Run all validation checks

        Returns:
            List of validation error messages (empty if valid)
        """
        self.errors = []
        self.warnings = []

        self.validate_unique_model_names()
        self.validate_defaults()
        self.validate_redis_config()
        self.check_credentials()

        return self.errors


def validate_config(config: AppConfig) -> List[str]:
    """
    Validate configuration and raise exception if invalid

    Args:
        config: Configuration to validate

    Returns:
        Non-fatal warnings

    Raises:
        ValueError: If configuration is invalid
    """
    validator = ConfigValidator(config)
    errors = validator.validate_all()

    if errors:
        error_message = "Configuration validation failed:\n" + "\n".join(f"  - {err}" for err in errors)
        raise ValueError(error_message)
    return validator.warnings
