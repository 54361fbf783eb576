"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from meeting_intel.adapters.calendar_adapter import GoogleCalendarAdapter
from meeting_intel.api.router import api_router
from meeting_intel.config import EngineConfig, settings
from meeting_intel.services.llm_client import LLMClient

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan management.

    Startup:
    - Build engine policy from settings
    - Initialize the calendar adapter
    - Initialize the optional LLM phrasing client
    """
    logger.info("Starting Meeting Intelligence Engine...")

    app.state.engine_config = EngineConfig.from_settings(settings)
    logger.info(f"Engine timezone: {app.state.engine_config.timezone}")

    # Credentials are resolved lazily per grant
    app.state.calendar_client = GoogleCalendarAdapter(
        settings.google_calendar_credentials
    )
    logger.info("Calendar adapter initialized")

    llm_client = LLMClient()
    app.state.llm_client = llm_client if llm_client.available else None
    logger.info(f"LLM phrasing {'enabled' if llm_client.available else 'disabled'}")

    yield

    logger.info("Shutting down Meeting Intelligence Engine...")


app = FastAPI(
    title=settings.app_name,
    description="Meeting pattern learning, conflict detection and focus protection",
    version=settings.app_version,
    lifespan=lifespan,
)

app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "meeting_intel.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
