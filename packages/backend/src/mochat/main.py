"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. The lifespan builds every long-lived object exactly once per app
(engine, directory, authenticator, registry, subscription index, resolver,
distributor) and parks them on app.state. Nothing realtime lives at module
level, so two apps in one process (e.g. two tests) never share state.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mochat import __version__
from mochat.api import api_router
from mochat.api.errors import register_error_handlers
from mochat.auth.tokens import TokenAuthenticator
from mochat.config import Settings, settings as default_settings
from mochat.db.engine import build_engine, build_session_factory, create_schema
from mochat.middleware.request_id import RequestIdMiddleware
from mochat.middleware.security import SecurityHeadersMiddleware
from mochat.realtime.distributor import EventDistributor
from mochat.realtime.registry import ConnectionRegistry
from mochat.realtime.routing import RecipientResolver
from mochat.realtime.subscriptions import SubscriptionIndex
from mochat.realtime.websocket import router as ws_router
from mochat.services.directory import SqlConversationDirectory

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` at shutdown.
    Stopping the distributor closes every live socket; subscriptions die
    with the process.
    """
    settings: Settings = app.state.settings
    logger.info(
        "mochat.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    engine = build_engine(settings.database_url, echo=settings.db_echo)
    if settings.create_tables:
        await create_schema(engine)
    session_factory = build_session_factory(engine)

    directory = SqlConversationDirectory(session_factory)
    registry = ConnectionRegistry()
    subscriptions = SubscriptionIndex(verify=settings.debug)
    resolver = RecipientResolver(directory, subscriptions)
    distributor = EventDistributor(
        registry=registry,
        subscriptions=subscriptions,
        resolver=resolver,
        directory=directory,
        authenticator=TokenAuthenticator(session_factory, settings),
        queue_size=settings.ws_send_queue_size,
    )

    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.directory = directory
    app.state.authenticator = distributor.authenticator
    app.state.registry = registry
    app.state.subscriptions = subscriptions
    app.state.resolver = resolver
    app.state.distributor = distributor

    await distributor.start()

    yield

    logger.info("mochat.shutdown")
    await distributor.stop()
    await engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or default_settings
    app = FastAPI(
        title="MoChat",
        description="Agent-native messaging: sessions, panels, and live delivery",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → CORS → handler
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    register_error_handlers(app)
    app.include_router(api_router)
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: mochat.main:app)
app = create_app()
