"""Orchestration of one chat completion request"""

import time
import uuid
from typing import AsyncIterator, Optional

import httpx

from ..models.config import AppConfig
from ..models.openai import (
    AssistantMessage,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatCompletionStreamResponse,
    Choice,
    StreamChoice,
    Usage,
)
from ..models.upstream import UpstreamRequest
from ..utils import logger
from .errors import UpstreamTransportError
from .event_stream import (
    EventStreamTranslator,
    LinkRewriter,
    StreamStats,
    iter_lines,
    translate_body,
)
from .model_registry import ModelRegistry
from .request_builder import UpstreamRequestBuilder
from .session_store import SessionStore
from .upstream_client import NexosClient, transport_message


EMPTY_COMPLETION = "No response"
SSE_DONE = "data: [DONE]\n\n"


def sse_event(chunk: ChatCompletionStreamResponse) -> str:
    exclude = {"error"} if chunk.error is None else None
    return f"data: {chunk.model_dump_json(exclude=exclude)}\n\n"


def new_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4()}"


class CompletionService:
    """
    Translate one OpenAI-style request into an upstream exchange

    Resolves the target chat and handler, fetches the continuation marker, posts the
    last user message and translates the upstream event stream back.
    """

    def __init__(
        self,
        config: AppConfig,
        registry: ModelRegistry,
        builder: UpstreamRequestBuilder,
        upstream: NexosClient,
        session_store: SessionStore,
    ):
        self.config = config
        self.registry = registry
        self.builder = builder
        self.upstream = upstream
        self.session_store = session_store

    def public_base_url(self, host_header: Optional[str] = None) -> str:
        """Base URL embedded in rewritten file links"""
        if self.config.server.public_base_url:
            return self.config.server.public_base_url
        if host_header:
            return f"http://{host_header}"
        return f"http://{self.config.server.host}:{self.config.server.port}"

    async def resolve_chat_id(
        self, request: ChatCompletionRequest, header_chat_id: Optional[str] = None
    ) -> str:
        """Header override first, then the request body, then the current pointer"""
        if header_chat_id:
            return header_chat_id
        if request.chat_id:
            return request.chat_id
        return await self.session_store.get_current()

    def history_enabled(self, request: ChatCompletionRequest) -> bool:
        return not (self.config.nexos.disable_history or request.disable_history)

    async def prepare(
        self, request: ChatCompletionRequest, header_chat_id: Optional[str] = None
    ) -> UpstreamRequest:
        """
        Build the upstream request for a completion

        Raises:
            InvalidRequestError: If there is no user message
            ConfigurationError: If no cookie is configured
        """
        # Fail on a missing credential before any upstream traffic
        self.upstream.cookies()

        chat_id = await self.resolve_chat_id(request, header_chat_id)
        model = self.registry.model_name(request.model)
        handler_id = self.registry.resolve(model)
        if not self.registry.is_known(model):
            logger.debug("Model not mapped, using default handler", model=model)

        last_message_id = None
        if self.history_enabled(request):
            last_message_id = await self.upstream.fetch_last_message_id(chat_id)

        upstream_request = self.builder.build(request, handler_id, chat_id, last_message_id)
        logger.log_api_call(
            chat_id=chat_id,
            model=model,
            handler_id=handler_id,
            stream=bool(request.stream),
            last_message_id=last_message_id,
        )
        return upstream_request

    def _rewriter(self, chat_id: str, host_header: Optional[str]) -> LinkRewriter:
        return LinkRewriter(
            chat_id=chat_id,
            public_base_url=self.public_base_url(host_header),
            upstream_base_url=self.config.nexos.base_url,
        )

    def _log_stats(self, chat_id: str, model: str, stats: StreamStats) -> None:
        logger.log_completion(
            chat_id=chat_id,
            model=model,
            text_chunks=stats.text_chunks,
            thinking_chunks=stats.thinking_chunks,
            event_types=stats.event_types,
            output_chars=stats.output_chars,
        )

    async def complete(
        self,
        request: ChatCompletionRequest,
        host_header: Optional[str] = None,
        header_chat_id: Optional[str] = None,
    ) -> ChatCompletionResponse:
        """Run a non-streaming completion"""
        upstream_request = await self.prepare(request, header_chat_id)
        model = self.registry.model_name(request.model)

        response = await self.upstream.send_completion(upstream_request)
        try:
            body = await response.aread()
        except httpx.HTTPError as e:
            message = transport_message(e)
            logger.log_upstream_error(500, "api_error", message, chat_id=upstream_request.chat_id)
            raise UpstreamTransportError(message)
        finally:
            await response.aclose()

        rewriter = self._rewriter(upstream_request.chat_id, host_header)
        text, stats = translate_body(body.decode("utf-8", errors="replace"), rewriter)
        self._log_stats(upstream_request.chat_id, model, stats)

        return ChatCompletionResponse(
            id=new_completion_id(),
            created=int(time.time()),
            model=model,
            choices=[
                Choice(
                    index=0,
                    message=AssistantMessage(content=text or EMPTY_COMPLETION),
                    finish_reason="stop",
                )
            ],
            usage=Usage(),
        )

    async def open_stream(
        self,
        request: ChatCompletionRequest,
        host_header: Optional[str] = None,
        header_chat_id: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        Start a streaming completion

        The upstream status is checked here, so errors surface as a regular error
        response before any SSE byte is sent. The returned generator owns the open
        upstream response and closes it when it finishes or is cancelled.
        """
        upstream_request = await self.prepare(request, header_chat_id)
        response = await self.upstream.send_completion(upstream_request)
        model = self.registry.model_name(request.model)
        translator = EventStreamTranslator(
            self._rewriter(upstream_request.chat_id, host_header), incremental=True
        )
        return self._relay(response, translator, upstream_request.chat_id, model)

    async def _relay(
        self,
        response: httpx.Response,
        translator: EventStreamTranslator,
        chat_id: str,
        model: str,
    ) -> AsyncIterator[str]:
        completion_id = new_completion_id()
        created = int(time.time())

        def chunk(delta: dict, finish_reason: Optional[str] = None, error: Optional[dict] = None):
            return sse_event(
                ChatCompletionStreamResponse(
                    id=completion_id,
                    created=created,
                    model=model,
                    choices=[StreamChoice(index=0, delta=delta, finish_reason=finish_reason)],
                    error=error,
                )
            )

        try:
            try:
                async for line in iter_lines(response.aiter_text()):
                    text = translator.feed_line(line)
                    if text:
                        yield chunk({"content": text})
                text = translator.finish()
                if text:
                    yield chunk({"content": text})
                yield chunk({}, finish_reason="stop")
            except httpx.HTTPError as e:
                message = transport_message(e)
                logger.log_upstream_error(500, "api_error", message, chat_id=chat_id)
                yield chunk(
                    {},
                    finish_reason="error",
                    error={"message": message, "type": "api_error"},
                )
            yield SSE_DONE
        finally:
            await response.aclose()
            self._log_stats(chat_id, model, translator.stats)
