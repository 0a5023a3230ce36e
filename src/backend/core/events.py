"""
Application lifecycle event handlers.

Manages startup and shutdown: the platform client, the service container,
the initial data load and the realtime subscriptions.
"""

from typing import Callable

import structlog
from fastapi import FastAPI

from core.config import get_settings
from core.container import build_services
from db.platform import close_platform
from db.realtime import RealtimeConnection

logger = structlog.get_logger(__name__)


def create_start_app_handler(app: FastAPI) -> Callable:
    """Create startup event handler."""

    async def start_app() -> None:
        logger.info("Starting DJ Vote API...")

        services = build_services(get_settings())
        settings = services.settings
        app.state.services = services
        logger.info("Services initialized")

        await services.voting.refresh()
        await services.sync_voting_status()
        logger.info(
            "Initial data loaded",
            candidates=len(services.voting.candidates),
            votes=services.voting.total_votes,
        )

        if settings.REALTIME_ENABLED and settings.SUPABASE_URL:
            connection = RealtimeConnection(
                settings.SUPABASE_URL,
                settings.SUPABASE_ANON_KEY,
                heartbeat_interval=settings.REALTIME_HEARTBEAT_SECONDS,
            )
            app.state.realtime = connection
            try:
                await connection.connect()
                await services.attach_feed(connection).start()
                logger.info("Realtime subscriptions started")
            except Exception as e:
                logger.warning(f"Realtime subscriptions unavailable: {e}")
                logger.info("Vote data will refresh on writes only")
        else:
            logger.info("Realtime disabled")

        logger.info("DJ Vote API started successfully")

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info("Shutting down DJ Vote API...")

        services = getattr(app.state, "services", None)
        if services is not None and services.subscriptions is not None:
            try:
                await services.subscriptions.stop()
            except Exception as e:
                logger.warning(f"Realtime unsubscribe failed: {e}")

        connection = getattr(app.state, "realtime", None)
        if connection is not None:
            try:
                await connection.close()
                logger.info("Realtime connection closed")
            except Exception as e:
                logger.warning(f"Realtime cleanup failed: {e}")

        await close_platform()

        logger.info("DJ Vote API shutdown complete")

    return stop_app
