# medley/core/bootstrap.py
"""
Wiring for the consultation core.

The orchestrator never picks a backend itself; this module decides the
production defaults (OpenAI backend, packaged schema) in one place.
"""

import logging
from typing import Any, Dict, Optional

from medley.core.config import Settings, settings as default_settings
from medley.core.orchestrator import ConsultOrchestrator
from medley.core.prompt_manager import get_prompt_manager
from medley.core.service_base import BaseService
from medley.models.schema import DataSchema, load_schema
from medley.services.backend import ConversationBackend
from medley.services.gpt_service import GPTConfig, GPTService

logger = logging.getLogger(__name__)

_schema: Optional[DataSchema] = None
_backend: Optional[ConversationBackend] = None


def create_backend(settings: Optional[Settings] = None) -> ConversationBackend:
    """Default backend: OpenAI chat completions"""
    config = GPTConfig.from_settings(settings or default_settings)
    return GPTService(config)


def get_backend(settings: Optional[Settings] = None) -> ConversationBackend:
    """Shared default backend, one client for all sessions"""
    global _backend
    if _backend is None:
        _backend = create_backend(settings)
    return _backend


def backend_status() -> Dict[str, Any]:
    """Status of the shared backend without creating or contacting it"""
    if _backend is None:
        return {"service": None, "initialized": False}
    if isinstance(_backend, BaseService):
        return _backend.status()
    return {"service": type(_backend).__name__, "initialized": True}


async def shutdown_backend() -> None:
    global _backend
    if isinstance(_backend, BaseService):
        await _backend.shutdown()
    _backend = None


def get_schema(settings: Optional[Settings] = None) -> DataSchema:
    """Load the schema once and share it; it is never mutated"""
    global _schema
    if _schema is None:
        _schema = load_schema((settings or default_settings).MEDLEY_SCHEMA_PATH)
    return _schema


def create_orchestrator(
    schema: Optional[DataSchema] = None,
    backend: Optional[ConversationBackend] = None,
    settings: Optional[Settings] = None
) -> ConsultOrchestrator:
    settings = settings or default_settings
    return ConsultOrchestrator(
        schema if schema is not None else get_schema(settings),
        backend if backend is not None else get_backend(settings),
        prompt_manager=get_prompt_manager(),
        settings=settings
    )
