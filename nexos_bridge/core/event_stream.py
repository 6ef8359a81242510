"""Upstream event-stream decoding and sandbox link rewriting

The upstream answers a completion with a line-oriented stream::

    event: content
    data: {"content_type": "text", "content": {"text": "Here is the chart "}}
    data: {"tool_result": {"result": {"results": [{"files": {"files": [...]}}]}}}
    data: [DONE]

Lines are separated by ``\\n`` only; a JSON payload may carry other Unicode line
breaks unescaped. Each line decodes into events from a closed set of variants. Text is
collected in a buffer and flushed through ``LinkRewriter``, which turns markdown image
links into the sandbox (``sandbox:/mnt/output-data/<name>``) into URLs served by this
proxy. A text delta may stop in the middle of such a link, so the buffer is held back
while it ends with an unfinished one.

File names resolve only against tool results seen *before* the text is flushed. A
link flushed ahead of its tool result is emitted unchanged.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterable, AsyncIterator, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from ..models.upstream import ContentPayload, ToolResultPayload
from ..utils import logger


DATA_PREFIX = "data:"
EVENT_PREFIX = "event:"
DONE_MARKER = "[DONE]"
SANDBOX_PREFIX = "sandbox:/mnt/output-data/"

SANDBOX_IMAGE_LINK = re.compile(r"!\[([^\]]*)\]\(sandbox:/mnt/output-data/([^)]+)\)")
# An image link cut short at the end of the buffer: "![alt", "![alt]", "![alt](target"
PARTIAL_IMAGE_LINK = re.compile(r"!\[[^\]]*(?:\](?:\(([^)]*))?)?")


@dataclass
class TextDelta:
    text: str


@dataclass
class ThinkingDelta:
    pass


@dataclass
class FileDescriptors:
    files: List[Tuple[str, str]]


@dataclass
class ContentError:
    error: object


@dataclass
class EventTag:
    name: str


@dataclass
class StreamEnd:
    pass


@dataclass
class Unrecognized:
    pass


StreamEvent = Union[
    TextDelta, ThinkingDelta, FileDescriptors, ContentError, EventTag, StreamEnd, Unrecognized
]


def _strip_cr(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line


def split_lines(body: str) -> List[str]:
    """Split a buffered body on ``\\n`` (and ``\\r\\n``) only"""
    return [_strip_cr(line) for line in body.split("\n")]


async def iter_lines(chunks: AsyncIterable[str]) -> AsyncIterator[str]:
    """Reassemble ``\\n``-separated lines from decoded text chunks"""
    pending = ""
    async for chunk in chunks:
        pending += chunk
        *lines, pending = pending.split("\n")
        for line in lines:
            yield _strip_cr(line)
    if pending:
        yield _strip_cr(pending)


def _decode_payload(data: object) -> List[StreamEvent]:
    if not isinstance(data, dict):
        return [Unrecognized()]

    events: List[StreamEvent] = []
    if "tool_result" in data:
        try:
            pairs = ToolResultPayload.model_validate(data).file_pairs()
        except ValidationError:
            pairs = []
        if pairs:
            events.append(FileDescriptors(files=pairs))

    # Files come first so text on the same line can already use them
    if "content" in data:
        try:
            content = ContentPayload.model_validate(data)
        except ValidationError:
            content = None
        if content is not None:
            body = content.content
            if content.content_type == "text" and body.text:
                events.append(TextDelta(text=body.text))
            elif body.thinking:
                events.append(ThinkingDelta())
            elif body.error:
                events.append(ContentError(error=body.error))

    return events or [Unrecognized()]


def decode_line(line: str) -> List[StreamEvent]:
    """Decode one line of the upstream stream; malformed lines yield Unrecognized"""
    if line.startswith(EVENT_PREFIX):
        return [EventTag(name=line[len(EVENT_PREFIX):].strip())]
    if not line.startswith(DATA_PREFIX):
        return [Unrecognized()]

    raw = line[len(DATA_PREFIX):].strip()
    if raw == DONE_MARKER:
        return [StreamEnd()]
    try:
        data = json.loads(raw)
    except ValueError:
        return [Unrecognized()]
    return _decode_payload(data)


def ends_with_partial_link(text: str) -> bool:
    """True when the text ends inside a link that could still become a sandbox link"""
    position = text.rfind("![")
    while position != -1:
        match = PARTIAL_IMAGE_LINK.fullmatch(text, position)
        if match is not None:
            target = match.group(1)
            if target is None:
                return True
            if SANDBOX_PREFIX.startswith(target) or target.startswith(SANDBOX_PREFIX):
                return True
        position = text.rfind("![", 0, position)
    return False


class LinkRewriter:
    """Rewrite sandbox and direct upstream file links to this proxy's download route"""

    def __init__(self, chat_id: str, public_base_url: str, upstream_base_url: str):
        """
        Args:
            chat_id: Chat the response belongs to
            public_base_url: Base URL callers reach this proxy at
            upstream_base_url: Base URL of the upstream service
        """
        self.chat_id = chat_id
        self.public_base_url = public_base_url.rstrip("/")
        self.file_mapping: Dict[str, str] = {}
        self._direct_link = re.compile(
            re.escape(upstream_base_url.rstrip("/"))
            + r"/api/chat/([^/\s]+)/files/([^/\s]+)/download"
        )

    def register_file(self, name: str, file_uuid: str) -> None:
        self.file_mapping[name] = file_uuid
        logger.debug("File mapping", filename=name, file_uuid=file_uuid)

    def proxy_url(self, chat_id: str, file_id: str) -> str:
        return f"{self.public_base_url}/v1/files/{chat_id}/{file_id}/download"

    def _replace_sandbox_link(self, match: "re.Match") -> str:
        alt, filename = match.group(1), match.group(2)
        file_uuid = self.file_mapping.get(filename)
        if file_uuid is None:
            logger.log_link_rewrite(filename, None)
            return match.group(0)
        url = self.proxy_url(self.chat_id, file_uuid)
        logger.log_link_rewrite(filename, url)
        return f"![{alt}]({url})"

    def _replace_direct_link(self, match: "re.Match") -> str:
        return self.proxy_url(match.group(1), match.group(2))

    def rewrite(self, text: str) -> str:
        if not text:
            return text
        text = SANDBOX_IMAGE_LINK.sub(self._replace_sandbox_link, text)
        return self._direct_link.sub(self._replace_direct_link, text)


class BufferState(Enum):
    EMPTY = "empty"
    PENDING_LINK = "pending_link"


@dataclass
class StreamStats:
    text_chunks: int = 0
    thinking_chunks: int = 0
    event_types: List[str] = field(default_factory=list)
    output_chars: int = 0
    finished: bool = False


class EventStreamTranslator:
    """
    Turn upstream lines into rewritten text

    In incremental mode ``feed_line`` returns text as soon as it can be flushed; in
    aggregate mode everything is held until ``finish``.
    """

    def __init__(self, rewriter: LinkRewriter, incremental: bool = True):
        self.rewriter = rewriter
        self.incremental = incremental
        self.state = BufferState.EMPTY
        self.stats = StreamStats()
        self._buffer = ""

    def feed_line(self, line: str) -> Optional[str]:
        """
        Consume one upstream line

        Returns:
            Rewritten text to emit now, or None
        """
        received_text = False
        for event in decode_line(line):
            if isinstance(event, TextDelta):
                self.stats.text_chunks += 1
                self._buffer += event.text
                received_text = True
            elif isinstance(event, FileDescriptors):
                for name, file_uuid in event.files:
                    self.rewriter.register_file(name, file_uuid)
            elif isinstance(event, ThinkingDelta):
                self.stats.thinking_chunks += 1
            elif isinstance(event, EventTag):
                if event.name not in self.stats.event_types:
                    self.stats.event_types.append(event.name)
            elif isinstance(event, ContentError):
                logger.warning("Upstream content error", error=event.error)
            elif isinstance(event, StreamEnd):
                self.stats.finished = True

        if received_text and self.incremental:
            return self._advance()
        return None

    def _advance(self) -> Optional[str]:
        """Flush unless the buffer ends in an unfinished link and holds no finished one"""
        if not SANDBOX_IMAGE_LINK.search(self._buffer) and ends_with_partial_link(self._buffer):
            self.state = BufferState.PENDING_LINK
            return None
        return self._flush()

    def _flush(self) -> Optional[str]:
        text = self.rewriter.rewrite(self._buffer)
        self._buffer = ""
        self.state = BufferState.EMPTY
        if not text:
            return None
        self.stats.output_chars += len(text)
        return text

    def finish(self) -> Optional[str]:
        """Flush whatever is left, complete link or not"""
        if not self._buffer:
            return None
        return self._flush()


def translate_body(body: str, rewriter: LinkRewriter) -> Tuple[str, StreamStats]:
    """Translate a fully buffered upstream body into one rewritten text"""
    translator = EventStreamTranslator(rewriter, incremental=False)
    for line in split_lines(body):
        translator.feed_line(line)
    return translator.finish() or "", translator.stats
