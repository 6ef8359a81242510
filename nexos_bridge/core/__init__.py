"""Core business logic components"""

from .config_loader import ConfigLoader, load_config
from .config_validator import ConfigValidator, validate_config
from .errors import (
    BridgeError,
    ConfigurationError,
    InvalidRequestError,
    UpstreamError,
    UpstreamTransportError,
    StorageError,
)
from .model_registry import ModelRegistry
from .session_store import (
    SessionStore,
    FileSessionStore,
    RedisSessionStore,
    InMemorySessionStore,
    create_session_store,
)
from .request_builder import UpstreamRequestBuilder, extract_last_user_message
from .event_stream import EventStreamTranslator, LinkRewriter, decode_line, translate_body
from .upstream_client import NexosClient
from .completion_service import CompletionService

__all__ = [
    "ConfigLoader",
    "load_config",
    "ConfigValidator",
    "validate_config",
    "BridgeError",
    "ConfigurationError",
    "InvalidRequestError",
    "UpstreamError",
    "UpstreamTransportError",
    "StorageError",
    "ModelRegistry",
    "SessionStore",
    "FileSessionStore",
    "RedisSessionStore",
    "InMemorySessionStore",
    "create_session_store",
    "UpstreamRequestBuilder",
    "extract_last_user_message",
    "EventStreamTranslator",
    "LinkRewriter",
    "decode_line",
    "translate_body",
    "NexosClient",
    "CompletionService",
]
