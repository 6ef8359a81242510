"""Data models for the Nexos wire format

Outbound: the chat-completion payload posted as the ``data`` field of a multipart
form. Inbound: the JSON shapes carried on ``data:`` lines of the event stream and
the chat history page used to find the continuation marker.
"""

import json
from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field


COMPLETION_ACTION = "chat_completion"


# Outbound payload

class HandlerSelection(BaseModel):
    """Which upstream model answers the request"""
    id: str
    type: str = "model"
    fallbacks: bool = True


class UserMessage(BaseModel):
    text: str
    client_metadata: Dict[str, Any] = Field(default_factory=dict)
    files: List[Any] = Field(default_factory=list)


class AdvancedParameters(BaseModel):
    max_completion_tokens: Optional[int] = None
    temperature: Optional[float] = None

    def is_empty(self) -> bool:
        return self.max_completion_tokens is None and self.temperature is None


class ToolToggle(BaseModel):
    enabled: bool


class ChatContinuation(BaseModel):
    last_message_id: str


class UpstreamPayload(BaseModel):
    """JSON blob sent to the upstream chat endpoint"""
    handler: HandlerSelection
    user_message: UserMessage
    advanced_parameters: Optional[AdvancedParameters] = None
    functionalityHeader: str = "chat"
    tools: Dict[str, ToolToggle] = Field(default_factory=dict)
    enabled_integrations: List[str] = Field(default_factory=list)
    chat: Optional[ChatContinuation] = None

    def to_json(self) -> str:
        return json.dumps(self.model_dump(exclude_none=True), ensure_ascii=False)


class UpstreamRequest(BaseModel):
    """A built payload bound to the chat session it targets"""
    chat_id: str
    payload: UpstreamPayload

    def form_fields(self) -> Dict[str, str]:
        """Multipart form fields in the order the upstream expects them"""
        return {
            "action": COMPLETION_ACTION,
            "chatId": self.chat_id,
            "data": self.payload.to_json(),
        }


# Inbound event shapes

class UpstreamFile(BaseModel):
    name: Optional[str] = None
    file_uuid: Optional[str] = None


class UpstreamFileGroup(BaseModel):
    files: List[UpstreamFile] = Field(default_factory=list)


class ToolResultEntry(BaseModel):
    files: Optional[UpstreamFileGroup] = None


class ToolResultBody(BaseModel):
    results: List[ToolResultEntry] = Field(default_factory=list)


class ToolResult(BaseModel):
    result: ToolResultBody


class ToolResultPayload(BaseModel):
    """A tool result, possibly announcing files produced in the sandbox"""
    tool_result: ToolResult

    def file_pairs(self) -> List[Tuple[str, str]]:
        pairs = []
        for entry in self.tool_result.result.results:
            if entry.files is None:
                continue
            for upstream_file in entry.files.files:
                if upstream_file.name and upstream_file.file_uuid:
                    pairs.append((upstream_file.name, upstream_file.file_uuid))
        return pairs


class ContentBody(BaseModel):
    text: Optional[str] = None
    thinking: Optional[Any] = None
    error: Optional[Any] = None


class ContentPayload(BaseModel):
    """A content delta; ``content_type`` sits next to ``content``, not inside it"""
    content_type: Optional[str] = None
    content: ContentBody


# History

class HistoryItem(BaseModel):
    id: str


class HistoryPage(BaseModel):
    """First page of chat history, newest message first"""
    items: List[HistoryItem] = Field(default_factory=list)
