"""API endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import StreamingResponse

from ..core import (
    CompletionService,
    InvalidRequestError,
    ModelRegistry,
    NexosClient,
    SessionStore,
    StorageError,
)
from ..models.chat import (
    CreateChatRequest,
    CreateChatResponse,
    CurrentChatResponse,
    SwitchChatRequest,
    SwitchChatResponse,
)
from ..models.openai import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ModelListResponse,
)
from ..utils import logger
from .dependencies import (
    get_completion_service,
    get_registry,
    get_session_store,
    get_upstream,
)


router = APIRouter()

FORWARDED_FILE_HEADERS = (
    "content-type",
    "content-length",
    "content-disposition",
    "content-encoding",
)


@router.get("/v1/models", response_model=ModelListResponse)
async def list_models(registry: ModelRegistry = Depends(get_registry)):
    """
    List models

    OpenAI-compatible endpoint returning every configured model
    """
    return ModelListResponse(data=registry.list())


@router.get("/v1/files/{chat_id}/{file_id}/download")
async def download_file(
    chat_id: str,
    file_id: str,
    upstream: NexosClient = Depends(get_upstream),
):
    """Relay a sandbox file from the upstream chat"""
    logger.info("File download", chat_id=chat_id, file_id=file_id)
    response = await upstream.open_file(chat_id, file_id)

    async def relay():
        try:
            async for data in response.aiter_raw():
                yield data
        finally:
            await response.aclose()

    headers = {
        name: response.headers[name]
        for name in FORWARDED_FILE_HEADERS
        if name in response.headers
    }
    return StreamingResponse(relay(), status_code=response.status_code, headers=headers)


@router.post("/v1/chat/completions", response_model=ChatCompletionResponse)
async def chat_completions(
    body: ChatCompletionRequest,
    request: Request,
    x_nexos_chat_id: Optional[str] = Header(None),
    service: CompletionService = Depends(get_completion_service),
):
    """
    Create chat completion

    OpenAI-compatible endpoint. Only the last user message is forwarded; the upstream
    chat keeps the conversation.
    """
    host = request.headers.get("host")

    if body.stream:
        events = await service.open_stream(body, host_header=host, header_chat_id=x_nexos_chat_id)
        return StreamingResponse(
            events,
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            },
        )

    return await service.complete(body, host_header=host, header_chat_id=x_nexos_chat_id)


@router.post("/v1/chat/create", response_model=CreateChatResponse)
async def create_chat(
    body: Optional[CreateChatRequest] = None,
    upstream: NexosClient = Depends(get_upstream),
    store: SessionStore = Depends(get_session_store),
):
    """Create a new upstream chat, making it current unless auto_switch is false"""
    auto_switch = body.auto_switch if body is not None else True
    chat_id = await upstream.create_chat()
    logger.info("Created new chat", chat_id=chat_id, auto_switch=auto_switch)

    current = False
    if auto_switch:
        current = await store.set_current(chat_id)

    if current:
        message = f"New chat created and set as current: {chat_id}"
    else:
        message = (
            f"New chat created: {chat_id}. "
            "Call POST /v1/chat/switch with chatId to switch to it."
        )

    return CreateChatResponse(
        chatId=chat_id,
        url=upstream.chat_url(chat_id),
        currentChat=current,
        message=message,
    )


@router.post("/v1/chat/switch", response_model=SwitchChatResponse)
async def switch_chat(
    body: Optional[SwitchChatRequest] = None,
    store: SessionStore = Depends(get_session_store),
):
    """Make an existing upstream chat the current one"""
    chat_id = body.chatId if body is not None else None
    if not chat_id:
        raise InvalidRequestError("chatId is required")

    if not await store.set_current(chat_id):
        raise StorageError("Failed to switch chat")

    return SwitchChatResponse(chatId=chat_id, message=f"Switched to chat: {chat_id}")


@router.get("/v1/chat/current", response_model=CurrentChatResponse)
async def current_chat(store: SessionStore = Depends(get_session_store)):
    """Report the current chat and whether it is stored or the configured default"""
    chat_id, source = await store.describe()
    return CurrentChatResponse(chatId=chat_id, source=source)
