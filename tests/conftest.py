"""Shared fixtures: configuration, a fake upstream and app clients"""

import json
import re
from typing import Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from nexos_bridge.api.app import create_app
from nexos_bridge.core import NexosClient
from nexos_bridge.models.config import (
    AppConfig,
    ModelMapping,
    NexosConfig,
    ServerConfig,
    StorageConfig,
)


BASE_URL = "https://workspace.nexos.ai"
DEFAULT_CHAT_ID = "b6aa7e13-5a78-4436-8668-700da8b6b790"
DEFAULT_HANDLER_ID = "4839e638-49d1-4c97-a1e5-0ad68b317c4b"
GEMINI_HANDLER_ID = "1172df4f-78a7-4bea-9482-be290ee858f8"
GPT_HANDLER_ID = "5f15269e-e204-46c6-98d3-bbfd33fe400a"
NEW_CHAT_ID = "0f1e2d3c-4b5a-6978-8796-a5b4c3d2e1f0"


def sse_line(payload) -> str:
    """One upstream ``data:`` line"""
    if isinstance(payload, str):
        return f"data: {payload}"
    return f"data: {json.dumps(payload)}"


def text_event(text: str) -> str:
    return sse_line({"content_type": "text", "content": {"text": text}})


def raw_text_event(text: str) -> str:
    """Text delta with non-ASCII characters left unescaped in the JSON"""
    return sse_line(json.dumps({"content_type": "text", "content": {"text": text}}, ensure_ascii=False))


def thinking_event(text: str) -> str:
    return sse_line({"content_type": "thinking", "content": {"thinking": text}})


def file_event(name: str, file_uuid: str) -> str:
    return sse_line({
        "tool_result": {
            "result": {
                "results": [{"files": {"files": [{"name": name, "file_uuid": file_uuid}]}}]
            }
        }
    })


def upstream_body(*lines: str) -> str:
    return "\n".join(lines + ("data: [DONE]",)) + "\n"


def multipart_fields(request: httpx.Request) -> Dict[str, str]:
    """Decode the multipart form the bridge posts upstream"""
    boundary = request.headers["content-type"].split("boundary=")[1].encode()
    fields = {}
    for part in request.content.split(b"--" + boundary):
        head, separator, value = part.partition(b"\r\n\r\n")
        if not separator:
            continue
        match = re.search(rb'name="([^"]+)"', head)
        if match:
            if value.endswith(b"\r\n"):
                value = value[:-2]
            fields[match.group(1).decode()] = value.decode("utf-8")
    return fields


def sse_payloads(text: str) -> List[str]:
    """Raw payloads of the ``data:`` lines in an SSE response body"""
    return [line[len("data: "):] for line in text.split("\n") if line.startswith("data: ")]


class FakeNexos:
    """
    Stand-in for the upstream service

    Records every request and answers with canned responses that tests adjust.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.history: Optional[dict] = {"items": [{"id": "msg-last"}, {"id": "msg-older"}]}
        self.history_status = 200
        self.completion_status = 200
        self.completion_body = upstream_body(text_event("Hello from Nexos"))
        self.file_status = 200
        self.file_content = b"\x89PNG\r\n\x1a\nfake-image"
        self.create_location = f"/chat/{NEW_CHAT_ID}"
        self.create_body = ""
        self.fail_completion = False

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def requests_to(self, method: str, suffix: str) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and r.url.path.endswith(suffix)
        ]

    def completion_requests(self) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == "POST" and r.url.path.startswith("/api/chat/")
        ]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/chat.data":
            if self.create_location:
                return httpx.Response(302, headers={"location": self.create_location})
            return httpx.Response(200, text=self.create_body)

        if path.endswith("/history"):
            return httpx.Response(self.history_status, json=self.history)

        if path.endswith("/download"):
            if self.file_status != 200:
                return httpx.Response(self.file_status, text="not found")
            return httpx.Response(
                200,
                stream=FileStream(self.file_content),
                headers={
                    "content-type": "image/png",
                    "content-disposition": 'attachment; filename="plot.png"',
                },
            )

        if request.method == "POST" and path.startswith("/api/chat/"):
            if self.fail_completion:
                raise httpx.ConnectError("connection refused", request=request)
            if self.completion_status != 200:
                return httpx.Response(
                    self.completion_status, json={"message": "Unauthorized"}
                )
            return httpx.Response(
                200,
                content=self.completion_body.encode("utf-8"),
                headers={"content-type": "text/event-stream"},
            )

        return httpx.Response(404, text="unknown route")


class FileStream(httpx.AsyncByteStream):
    """Unread upstream file body, as a real transport returns it"""

    def __init__(self, content: bytes):
        self.content = content

    async def __aiter__(self):
        yield self.content

    async def aclose(self):
        pass


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    """Configuration with a file store under tmp_path and a few models"""
    return AppConfig(
        server=ServerConfig(),
        nexos=NexosConfig(
            base_url=BASE_URL,
            chat_id=DEFAULT_CHAT_ID,
            handler_id=DEFAULT_HANDLER_ID,
            cookies="session=abc;\r\n token=xyz",
        ),
        storage=StorageConfig(type="file", path=str(tmp_path / "current-chat.json")),
        models=[
            ModelMapping(name="claude-opus-4-6", handler_id=DEFAULT_HANDLER_ID, owned_by="anthropic"),
            ModelMapping(name="gemini-2-5-pro", handler_id=GEMINI_HANDLER_ID, owned_by="google"),
            ModelMapping(name="gpt-5", handler_id=GPT_HANDLER_ID, owned_by="openai"),
            ModelMapping(name="mistral-medium-3", owned_by="mistral"),
            ModelMapping(name="nexos-chat", handler_id=DEFAULT_HANDLER_ID, owned_by="nexos"),
        ],
    )


@pytest.fixture
def fake_nexos() -> FakeNexos:
    return FakeNexos()


@pytest.fixture
def make_client(app_config, fake_nexos):
    """Factory for a TestClient whose upstream is the fake service"""

    def _make(config: Optional[AppConfig] = None) -> TestClient:
        config = config or app_config
        app = create_app(config)
        app.state.upstream = NexosClient(config.nexos, transport=fake_nexos.transport)
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client):
    """Running app (lifespan entered) backed by the fake upstream"""
    with make_client() as test_client:
        yield test_client
