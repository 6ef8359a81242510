"""Build the upstream chat-completion payload from an OpenAI-style request"""

from typing import Dict, List, Optional

from ..models.openai import ChatCompletionRequest, Message
from ..models.upstream import (
    AdvancedParameters,
    ChatContinuation,
    HandlerSelection,
    ToolToggle,
    UpstreamPayload,
    UpstreamRequest,
    UserMessage,
)
from .errors import InvalidRequestError
from .model_registry import ModelRegistry


DEFAULT_TEMPERATURE = 1.0


def extract_last_user_message(messages: List[Message]) -> str:
    """
    Text of the most recent user message

    Raises:
        InvalidRequestError: If no message has the user role
    """
    for message in reversed(messages):
        if message.role == "user":
            return message.text()
    raise InvalidRequestError("No user message found")


class UpstreamRequestBuilder:
    """Pure builder; sending the request is the upstream client's job"""

    def __init__(self, registry: ModelRegistry, tools: Optional[Dict[str, bool]] = None):
        self.registry = registry
        self.tools = dict(tools or {})

    def advanced_parameters(self, request: ChatCompletionRequest) -> Optional[AdvancedParameters]:
        """Clamped max_tokens and non-default temperature, or None when neither applies"""
        params = AdvancedParameters(
            max_completion_tokens=self.registry.clamp_max_tokens(
                request.model, request.max_tokens
            ),
        )
        if request.temperature is not None and request.temperature != DEFAULT_TEMPERATURE:
            params.temperature = request.temperature
        if params.is_empty():
            return None
        return params

    def build(
        self,
        request: ChatCompletionRequest,
        handler_id: str,
        chat_id: str,
        last_message_id: Optional[str] = None,
    ) -> UpstreamRequest:
        """
        Build the payload for one completion

        Args:
            request: Incoming OpenAI-style request
            handler_id: Upstream handler the model resolved to
            chat_id: Upstream chat the message is posted to
            last_message_id: Continuation marker from the chat history, if any

        Returns:
            UpstreamRequest ready for form encoding
        """
        payload = UpstreamPayload(
            handler=HandlerSelection(id=handler_id),
            user_message=UserMessage(text=extract_last_user_message(request.messages)),
            advanced_parameters=self.advanced_parameters(request),
            tools={name: ToolToggle(enabled=enabled) for name, enabled in self.tools.items()},
        )
        if last_message_id:
            payload.chat = ChatContinuation(last_message_id=last_message_id)
        return UpstreamRequest(chat_id=chat_id, payload=payload)
