"""HTTP client for the Nexos chat backend"""

import json
import re
from typing import Any, Dict, Optional

import httpx

from ..models.config import NexosConfig
from ..models.upstream import HistoryPage, UpstreamRequest
from ..utils import logger, truncate_for_logging
from .errors import (
    BridgeError,
    ConfigurationError,
    UpstreamError,
    UpstreamTransportError,
)


CHAT_ID_PATTERN = re.compile(r"/chat/([a-f0-9-]{36})")
FILE_DOWNLOAD_ERROR = "file_download_error"


def parse_error_body(body: bytes) -> Any:
    """Decoded JSON error body, or its raw text when it is not JSON"""
    text = body.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


def transport_message(exc: httpx.HTTPError) -> str:
    return str(exc) or exc.__class__.__name__


class NexosClient:
    """
    Authenticated transport to the upstream service

    One ``httpx.AsyncClient`` is shared by all requests and created on first use.
    Streaming responses are returned open; the caller must ``aclose`` them.
    """

    def __init__(self, config: NexosConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the client

        Args:
            config: Upstream configuration
            transport: Optional transport override (tests pass ``httpx.MockTransport``)
        """
        self.config = config
        self.base_url = config.base_url
        self.transport = transport
        self.http_client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=False,
                transport=self.transport,
            )
        return self.http_client

    async def close(self):
        """Close HTTP client"""
        if self.http_client:
            await self.http_client.aclose()
            self.http_client = None

    def cookies(self) -> str:
        """
        Cookie header value with line breaks removed

        Raises:
            ConfigurationError: If no cookie is configured
        """
        cookies = (self.config.cookies or "").replace("\r", "").replace("\n", "").strip()
        if not cookies:
            raise ConfigurationError("NEXOS_COOKIES not configured")
        return cookies

    def _headers(self, chat_id: Optional[str] = None) -> Dict[str, str]:
        referer = f"{self.base_url}/chat/{chat_id}" if chat_id else f"{self.base_url}/"
        return {
            "accept": "*/*",
            "accept-language": self.config.accept_language,
            "cache-control": "no-cache",
            "origin": self.base_url,
            "referer": referer,
            "user-agent": self.config.user_agent,
            "cookie": self.cookies(),
        }

    async def fetch_last_message_id(self, chat_id: str) -> Optional[str]:
        """
        Id of the newest message in the chat, used to continue the conversation

        Returns None when the chat is empty or the history cannot be read.
        """
        client = await self._get_http_client()
        url = f"{self.base_url}/api/chat/{chat_id}/history"
        try:
            response = await client.get(
                url, params={"offset": 0}, headers=self._headers(chat_id)
            )
        except httpx.RequestError as e:
            logger.warning(f"History fetch failed: {transport_message(e)}", chat_id=chat_id)
            return None

        if response.status_code != 200:
            logger.warning(
                "History fetch returned non-success status",
                chat_id=chat_id,
                status_code=response.status_code,
            )
            return None

        try:
            page = HistoryPage.model_validate(response.json())
        except ValueError as e:
            logger.warning(f"History response not understood: {e}", chat_id=chat_id)
            return None

        if not page.items:
            return None
        return page.items[0].id

    async def send_completion(self, upstream_request: UpstreamRequest) -> httpx.Response:
        """
        Post a completion and return the open streaming response

        Raises:
            UpstreamError: On a non-200 status, with the decoded body as details
            UpstreamTransportError: If no response was received
        """
        client = await self._get_http_client()
        chat_id = upstream_request.chat_id
        files = {
            name: (None, value) for name, value in upstream_request.form_fields().items()
        }
        request = client.build_request(
            "POST",
            f"{self.base_url}/api/chat/{chat_id}",
            headers=self._headers(chat_id),
            files=files,
        )
        try:
            response = await client.send(request, stream=True)
        except httpx.RequestError as e:
            message = transport_message(e)
            logger.log_upstream_error(500, "api_error", message, chat_id=chat_id)
            raise UpstreamTransportError(message)

        if response.status_code != 200:
            try:
                body = await response.aread()
            finally:
                await response.aclose()
            details = parse_error_body(body)
            message = f"Nexos API returned {response.status_code}: {response.reason_phrase}"
            logger.log_upstream_error(
                response.status_code,
                "nexos_api_error",
                message,
                chat_id=chat_id,
                body=truncate_for_logging(body.decode("utf-8", errors="replace")),
            )
            raise UpstreamError(message, response.status_code, details=details)

        return response

    async def open_file(self, chat_id: str, file_id: str) -> httpx.Response:
        """
        Start downloading a sandbox file; the caller streams and closes the response

        Raises:
            UpstreamError: On a non-success status (type ``file_download_error``)
            UpstreamTransportError: If no response was received
        """
        client = await self._get_http_client()
        request = client.build_request(
            "GET",
            f"{self.base_url}/api/chat/{chat_id}/files/{file_id}/download",
            headers=self._headers(chat_id),
        )
        try:
            response = await client.send(request, stream=True)
        except httpx.RequestError as e:
            message = transport_message(e)
            logger.log_upstream_error(500, FILE_DOWNLOAD_ERROR, message, file_id=file_id)
            raise UpstreamTransportError(message, error_type=FILE_DOWNLOAD_ERROR)

        if not response.is_success:
            await response.aclose()
            message = f"Request failed with status code {response.status_code}"
            logger.log_upstream_error(
                response.status_code, FILE_DOWNLOAD_ERROR, message, file_id=file_id
            )
            raise UpstreamError(message, response.status_code, error_type=FILE_DOWNLOAD_ERROR)

        return response

    async def create_chat(self) -> str:
        """
        Ask the upstream for a new chat and return its id

        The id is read from the redirect ``Location`` header or the body of
        ``GET /chat.data``; redirects are not followed.

        Raises:
            BridgeError: If the request fails or no chat id can be found
        """
        client = await self._get_http_client()
        try:
            response = await client.get(
                f"{self.base_url}/chat.data",
                headers=self._headers(),
                follow_redirects=False,
            )
        except httpx.RequestError as e:
            message = transport_message(e)
            logger.log_upstream_error(500, "api_error", message)
            raise UpstreamTransportError(message)

        if response.status_code >= 400:
            message = f"Request failed with status code {response.status_code}"
            logger.log_upstream_error(response.status_code, "api_error", message)
            raise BridgeError(message)

        location = response.headers.get("location", "")
        match = CHAT_ID_PATTERN.search(location) or CHAT_ID_PATTERN.search(response.text)
        if match is None:
            body = truncate_for_logging(response.text, max_length=1000)
            logger.error("Failed to extract chat ID from response", body=body)
            raise BridgeError("Failed to extract chat ID from response", details=body)

        return match.group(1)

    def chat_url(self, chat_id: str) -> str:
        return f"{self.base_url}/chat/{chat_id}"
