"""OpenAI API compatible data models"""

from typing import List, Optional, Dict, Any, Union
from pydantic import BaseModel, Field


class Message(BaseModel):
    """Chat message model"""
    role: str
    content: Optional[Union[str, List[Dict[str, Any]]]] = None
    name: Optional[str] = None

    def text(self) -> str:
        """Return the message text, joining text parts of multi-part content"""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        parts = []
        for part in self.content:
            if part.get("type", "text") == "text" and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "".join(parts)


class ChatCompletionRequest(BaseModel):
    """Request model for chat completions endpoint"""
    messages: List[Message]
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=1.0, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=128000, ge=1)
    stream: Optional[bool] = False
    chat_id: Optional[str] = None
    disable_history: Optional[bool] = None


class Usage(BaseModel):
    """Token usage information"""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class AssistantMessage(BaseModel):
    role: str = "assistant"
    content: str


class Choice(BaseModel):
    """Single completion choice"""
    index: int
    message: AssistantMessage
    finish_reason: Optional[str] = None


class ChatCompletionResponse(BaseModel):
    """Response model for chat completions endpoint"""
    id: str
    object: str = "chat.completion"
    created: int
    model: str
    choices: List[Choice]
    usage: Usage = Field(default_factory=Usage)


class StreamChoice(BaseModel):
    """Single streaming choice"""
    index: int
    delta: Dict[str, Any]
    finish_reason: Optional[str] = None


class ChatCompletionStreamResponse(BaseModel):
    """Streaming response chunk"""
    id: str
    object: str = "chat.completion.chunk"
    created: int
    model: str
    choices: List[StreamChoice]
    error: Optional[Dict[str, Any]] = None


class ModelInfo(BaseModel):
    """Model information"""
    id: str
    object: str = "model"
    created: int
    owned_by: str


class ModelListResponse(BaseModel):
    """Response for models list endpoint"""
    object: str = "list"
    data: List[ModelInfo]


class ErrorDetail(BaseModel):
    """Error detail information"""
    message: str
    type: str
    details: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Error response model"""
    error: ErrorDetail
