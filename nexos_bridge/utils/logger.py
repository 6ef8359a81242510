"""Structured JSON logging

Every record is one JSON object per line on stdout. Fields passed as keyword arguments
to ``BridgeLogger`` methods become top-level keys, and the id of the request being
served is added from a context variable.
"""

import logging
import json
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import List, Optional


_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Chatty libraries kept at WARNING whatever the configured level
QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "httpx", "httpcore")


class RequestIdFilter(logging.Filter):
    """Stamp records with the current request id"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()
        return True


class JSONFormatter(logging.Formatter):
    """Render a record and its structured fields as a JSON line"""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry = {
            "timestamp": timestamp.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            entry["request_id"] = request_id
        entry.update(getattr(record, "fields", None) or {})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def truncate_for_logging(content: str, max_length: int = 200) -> str:
    """Shorten long text for log lines"""
    if not isinstance(content, str):
        content = str(content)
    if len(content) <= max_length:
        return content
    return content[:max_length] + " [TRUNCATED]"


class BridgeLogger:
    """Facade over the ``nexos_bridge`` logger with event helpers"""

    def __init__(self, name: str = "nexos_bridge"):
        self.logger = logging.getLogger(name)

    def set_request_id(self, request_id: str):
        """Bind a request id to the current task context"""
        _request_id.set(request_id)

    def generate_request_id(self) -> str:
        request_id = uuid.uuid4().hex
        self.set_request_id(request_id)
        return request_id

    def _emit(self, level: int, message: str, **fields):
        if self.logger.isEnabledFor(level):
            self.logger.log(level, message, extra={"fields": fields})

    def debug(self, message: str, **fields):
        self._emit(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields):
        self._emit(logging.INFO, message, **fields)

    def warning(self, message: str, **fields):
        self._emit(logging.WARNING, message, **fields)

    def error(self, message: str, **fields):
        self._emit(logging.ERROR, message, **fields)

    def log_api_call(
        self,
        chat_id: str,
        model: str,
        handler_id: str,
        stream: bool,
        **kwargs
    ):
        """
        Log an incoming completion request once it has been resolved

        Args:
            chat_id: Upstream chat the request is sent to
            model: Public model name
            handler_id: Upstream handler the model resolved to
            stream: Whether the caller asked for SSE
            **kwargs: Additional fields
        """
        self.info(
            "Completion request",
            event_type="api_call",
            chat_id=chat_id,
            model=model,
            handler_id=handler_id,
            stream=stream,
            **kwargs
        )

    def log_completion(
        self,
        chat_id: str,
        model: str,
        text_chunks: int,
        thinking_chunks: int,
        event_types: List[str],
        output_chars: int,
        **kwargs
    ):
        """
        Log the summary of a translated upstream response

        Args:
            chat_id: Upstream chat identifier
            model: Public model name
            text_chunks: Text deltas received
            thinking_chunks: Thinking deltas received (never emitted)
            event_types: Distinct event tags seen on the stream
            output_chars: Characters returned to the caller
            **kwargs: Additional fields
        """
        self.info(
            "Completion finished",
            event_type="api_completion",
            chat_id=chat_id,
            model=model,
            text_chunks=text_chunks,
            thinking_chunks=thinking_chunks,
            event_types=event_types,
            output_chars=output_chars,
            **kwargs
        )

    def log_upstream_error(
        self,
        status_code: int,
        error_type: str,
        error_message: str,
        **kwargs
    ):
        """
        Log upstream error event

        Args:
            status_code: HTTP status returned (500 when there was no response)
            error_type: Type of error
            error_message: Error message
            **kwargs: Additional fields
        """
        self.error(
            "Upstream error",
            event_type="upstream_error",
            status_code=status_code,
            error_type=error_type,
            error_message=error_message,
            **kwargs
        )

    def log_link_rewrite(self, filename: str, url: Optional[str], **kwargs):
        """Log the outcome of a sandbox link rewrite"""
        if url is None:
            self.warning(
                "No file UUID for sandbox link",
                event_type="link_rewrite",
                filename=filename,
                **kwargs
            )
            return
        self.debug(
            "Sandbox link rewritten",
            event_type="link_rewrite",
            filename=filename,
            url=url,
            **kwargs
        )

    def log_chat_switch(self, chat_id: str, source: str, **kwargs):
        """Log a change of the current chat pointer"""
        self.info(
            "Current chat updated",
            event_type="chat_switch",
            chat_id=chat_id,
            source=source,
            **kwargs
        )


def setup_logging(log_level: str = "INFO"):
    """
    Route all logging to stdout as JSON lines

    Args:
        log_level: Root level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


logger = BridgeLogger()
