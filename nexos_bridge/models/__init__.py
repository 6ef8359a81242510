"""Data models for the bridge"""

from .openai import (
    Message,
    ChatCompletionRequest,
    ChatCompletionResponse,
    AssistantMessage,
    Usage,
    Choice,
    StreamChoice,
    ChatCompletionStreamResponse,
    ModelInfo,
    ModelListResponse,
    ErrorDetail,
    ErrorResponse,
)

from .chat import (
    CreateChatRequest,
    CreateChatResponse,
    SwitchChatRequest,
    SwitchChatResponse,
    CurrentChatResponse,
)

from .config import (
    ServerConfig,
    NexosConfig,
    StorageConfig,
    ModelMapping,
    TokenLimit,
    AppConfig,
)

from .upstream import (
    UpstreamPayload,
    UpstreamRequest,
    ToolResultPayload,
    ContentPayload,
    HistoryPage,
)

__all__ = [
    # OpenAI models
    "Message",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "AssistantMessage",
    "Usage",
    "Choice",
    "StreamChoice",
    "ChatCompletionStreamResponse",
    "ModelInfo",
    "ModelListResponse",
    "ErrorDetail",
    "ErrorResponse",
    # Current-chat endpoint models
    "CreateChatRequest",
    "CreateChatResponse",
    "SwitchChatRequest",
    "SwitchChatResponse",
    "CurrentChatResponse",
    # Config models
    "ServerConfig",
    "NexosConfig",
    "StorageConfig",
    "ModelMapping",
    "TokenLimit",
    "AppConfig",
    # Upstream wire models
    "UpstreamPayload",
    "UpstreamRequest",
    "ToolResultPayload",
    "ContentPayload",
    "HistoryPage",
]
