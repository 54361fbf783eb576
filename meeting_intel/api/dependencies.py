"""Shared API dependencies and engine error mapping."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from fastapi import HTTPException, Request

from meeting_intel.adapters.base import CalendarClient
from meeting_intel.config import EngineConfig, settings
from meeting_intel.errors import (
    ConfigurationError,
    EventNotFoundError,
    InvalidEventError,
    UpstreamFetchError,
)
from meeting_intel.services.llm_client import LLMClient

T = TypeVar("T")


def get_calendar_client(request: Request) -> CalendarClient:
    """Dependency to get the calendar client from app state."""
    client = getattr(request.app.state, "calendar_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Calendar client not configured")
    return client


def get_engine_config(request: Request) -> EngineConfig:
    """Dependency to get engine policy from app state."""
    config = getattr(request.app.state, "engine_config", None)
    return config or EngineConfig.from_settings(settings)


def get_llm_client(request: Request) -> LLMClient | None:
    """Dependency to get the optional LLM client from app state."""
    return getattr(request.app.state, "llm_client", None)


async def run_engine(operation: Awaitable[T], timeout: float) -> T:
    """Await an engine call under a timeout, mapping engine errors to HTTP.

    Args:
        operation: Engine coroutine
        timeout: Seconds before the call is cancelled

    Raises:
        HTTPException: 504 on timeout, 502 on store failure, 404 for an
            unknown event, 422 for invalid configuration or events
    """
    try:
        return await asyncio.wait_for(operation, timeout=timeout)
    except TimeoutError as e:
        raise HTTPException(
            status_code=504,
            detail=f"Calendar request timed out after {timeout:g}s",
        ) from e
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except (ConfigurationError, InvalidEventError) as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except UpstreamFetchError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
