"""Configuration data models"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/146.0.0.0 Safari/537.36"
)


class ServerConfig(BaseModel):
    """HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    log_level: str = "INFO"
    # Base URL used when rewriting file links; falls back to the request Host header
    public_base_url: Optional[str] = None

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f'log_level must be one of {valid_levels}')
        return v_upper

    @field_validator('public_base_url')
    @classmethod
    def validate_public_base_url(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if not v.startswith(('http://', 'https://')):
            raise ValueError('public_base_url must start with http:// or https://')
        return v.rstrip('/')

    class Config:
        validate_assignment = True


class NexosConfig(BaseModel):
    """Upstream service configuration"""
    base_url: str = "https://workspace.nexos.ai"
    chat_id: str
    handler_id: str
    default_model: str = "nexos-chat"
    cookies: str = ""
    timeout: float = Field(default=300.0, gt=0)
    disable_history: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = "en-US,en;q=0.9"
    tools: Dict[str, bool] = Field(
        default_factory=lambda: {
            "web_search": True,
            "deep_research": False,
            "code_interpreter": True,
        }
    )

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate base URL format"""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('base_url must start with http:// or https://')
        return v.rstrip('/')

    class Config:
        validate_assignment = True


class StorageConfig(BaseModel):
    """Current-chat pointer storage configuration"""
    type: str = "file"  # "file", "redis" or "memory"
    path: str = "current-chat.json"
    redis_url: Optional[str] = None
    redis_db: int = 0
    redis_key: str = "nexos_bridge:current_chat"

    @field_validator('type')
    @classmethod
    def validate_storage_type(cls, v: str) -> str:
        """Validate storage type"""
        if v not in ["file", "redis", "memory"]:
            raise ValueError('storage type must be "file", "redis" or "memory"')
        return v

    class Config:
        validate_assignment = True


class ModelMapping(BaseModel):
    """Public model name to upstream handler mapping"""
    name: str
    handler_id: Optional[str] = None
    owned_by: str = "nexos"
    created: int = 1677610602

    class Config:
        validate_assignment = True


class TokenLimit(BaseModel):
    """Hard max_tokens ceiling for a model family"""
    match: str = Field(min_length=1)
    max_tokens: int = Field(ge=1)


class AppConfig(BaseModel):
    """Complete application configuration"""
    server: ServerConfig = Field(default_factory=ServerConfig)
    nexos: NexosConfig
    storage: StorageConfig = Field(default_factory=StorageConfig)
    models: List[ModelMapping] = Field(default_factory=list)
    token_limits: List[TokenLimit] = Field(
        default_factory=lambda: [TokenLimit(match="gemini", max_tokens=65536)]
    )

    class Config:
        validate_assignment = True
