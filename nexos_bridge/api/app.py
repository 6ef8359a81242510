"""FastAPI application setup"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..core import (
    BridgeError,
    CompletionService,
    ModelRegistry,
    NexosClient,
    UpstreamRequestBuilder,
    create_session_store,
    load_config,
    validate_config,
)
from ..models.config import AppConfig
from ..models.openai import ErrorDetail, ErrorResponse
from ..utils import logger, setup_logging
from .endpoints import router


REQUEST_ID_HEADER = "X-Request-ID"


def _error_response(status_code: int, message: str, error_type: str, details=None) -> JSONResponse:
    error_response = ErrorResponse(
        error=ErrorDetail(message=message, type=error_type, details=details)
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(exclude_none=True),
    )


def _init_state(app: FastAPI) -> None:
    """Build any component not already placed on app.state"""
    state = app.state
    if getattr(state, "config", None) is None:
        state.config = load_config()
    config: AppConfig = state.config

    if getattr(state, "registry", None) is None:
        state.registry = ModelRegistry(config)
    if getattr(state, "session_store", None) is None:
        state.session_store = create_session_store(config.storage, config.nexos.chat_id)
    if getattr(state, "upstream", None) is None:
        state.upstream = NexosClient(config.nexos)
    if getattr(state, "completion_service", None) is None:
        state.completion_service = CompletionService(
            config=config,
            registry=state.registry,
            builder=UpstreamRequestBuilder(state.registry, config.nexos.tools),
            upstream=state.upstream,
            session_store=state.session_store,
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    _init_state(app)
    config: AppConfig = app.state.config
    setup_logging(config.server.log_level)

    for warning in validate_config(config):
        logger.warning(warning, event_type="config_warning")

    logger.info(
        "Configuration loaded successfully",
        models=len(config.models),
        storage=config.storage.type,
        base_url=config.nexos.base_url,
    )
    logger.info("Nexos bridge started", host=config.server.host, port=config.server.port)

    yield

    # Shutdown
    logger.info("Shutting down Nexos bridge")
    await app.state.upstream.close()
    await app.state.session_store.close()
    logger.info("Nexos bridge stopped")


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """
    Create the FastAPI application

    Args:
        config: Configuration to use; loaded from disk at startup when omitted
    """
    app = FastAPI(
        title="Nexos Bridge",
        description="OpenAI-compatible chat completions proxy for the Nexos chat backend",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Attach a request id to log records and echo it to the caller"""
        request_id = request.headers.get(REQUEST_ID_HEADER) or logger.generate_request_id()
        logger.set_request_id(request_id)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.exception_handler(BridgeError)
    async def bridge_error_handler(request: Request, exc: BridgeError):
        """Render errors raised by the bridge with their own status"""
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response().model_dump(exclude_none=True),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies are reported as 400, not FastAPI's default 422"""
        return _error_response(
            400,
            "Invalid request body",
            "invalid_request_error",
            details=jsonable_encoder(exc.errors()),
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle all unhandled exceptions"""
        logger.error(f"Unhandled error: {exc}", event_type="internal_error")
        return _error_response(500, str(exc), "internal_error")

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "nexos-bridge",
            "version": __version__,
        }

    app.include_router(router)
    return app


app = create_app()
