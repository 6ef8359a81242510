"""Request and response models for the current-chat endpoints"""

from typing import Optional
from pydantic import BaseModel


class CreateChatRequest(BaseModel):
    """Body of POST /v1/chat/create"""
    auto_switch: bool = True


class CreateChatResponse(BaseModel):
    success: bool = True
    chatId: str
    url: str
    currentChat: bool
    message: str


class SwitchChatRequest(BaseModel):
    """Body of POST /v1/chat/switch"""
    chatId: Optional[str] = None


class SwitchChatResponse(BaseModel):
    success: bool = True
    chatId: str
    message: str


class CurrentChatResponse(BaseModel):
    chatId: str
    source: str
