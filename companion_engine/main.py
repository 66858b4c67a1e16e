"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from companion_engine.api.companions import router as companions_router
from companion_engine.api.health import router as health_router
from companion_engine.config import settings
from companion_engine.core.event_bus import EventBus, GameEvent
from companion_engine.core.event_types import EventTypes
from companion_engine.core.logging import get_logger, setup_logging
from companion_engine.db.database import engine as db_engine
from companion_engine.db.models import Base

setup_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)


def _log_progression(event: GameEvent) -> None:
    logger.info(
        "%s: %s %s",
        event.event_type,
        event.data.get("companion_id"),
        {k: v for k, v in event.data.items() if k not in ("companion_id", "companion")},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=db_engine)
    logger.info("Database tables created.")

    event_bus = EventBus()
    for event_type in (
        EventTypes.COMPANION_LEVELED_UP,
        EventTypes.COMPANION_EVOLVED,
        EventTypes.COMPANION_RESET,
        EventTypes.BOND_MILESTONE_REACHED,
    ):
        event_bus.subscribe(event_type, _log_progression)
    app.state.event_bus = event_bus
    logger.info("EventBus initialized (%d handlers).", event_bus.handler_count)

    yield

    logger.info("Shutting down...")
    event_bus.clear()


app = FastAPI(title="Companion Engine", lifespan=lifespan)

app.include_router(health_router)
app.include_router(companions_router)
