"""Dependency injection functions

Components live on ``app.state``; they are created in the application lifespan or
injected beforehand by tests.
"""

from fastapi import Request

from ..core import CompletionService, ModelRegistry, NexosClient, SessionStore


def get_registry(request: Request) -> ModelRegistry:
    """Get model registry"""
    return request.app.state.registry


def get_session_store(request: Request) -> SessionStore:
    """Get current-chat pointer store"""
    return request.app.state.session_store


def get_upstream(request: Request) -> NexosClient:
    """Get upstream client"""
    return request.app.state.upstream


def get_completion_service(request: Request) -> CompletionService:
    """Get completion service"""
    return request.app.state.completion_service
