"""FastAPI application factory.

Learn: App factory pattern — create_app(settings) returns a configured
FastAPI instance. Everything process-wide (token service, DB engine,
identity-provider client, email sender) is built here from the Settings
object and kept on app.state; routes and auth dependencies read it from
request.app.state. Tests pass their own Settings and fakes.

Run with:  uvicorn portal_accounts.main:create_app --factory
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portal_accounts import __version__
from portal_accounts.api import api_router
from portal_accounts.api.handlers import install_error_handlers
from portal_accounts.auth.jwt import TokenService
from portal_accounts.config import Settings
from portal_accounts.db.engine import build_engine, build_session_factory
from portal_accounts.logs import configure_logging
from portal_accounts.mail.sender import EmailSender, build_email_sender
from portal_accounts.middleware.request_id import RequestIdMiddleware
from portal_accounts.middleware.security import SecurityHeadersMiddleware
from portal_accounts.providers.identity import GoTrueIdentityProvider, IdentityProvider

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    settings: Settings = app.state.settings
    logger.info(
        "portal.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    yield

    logger.info("portal.shutdown")
    await app.state.identity_provider.aclose()
    await app.state.engine.dispose()


def create_app(
    settings: Optional[Settings] = None,
    *,
    identity_provider: Optional[IdentityProvider] = None,
    email_sender: Optional[EmailSender] = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    Constructing Settings fails (ConfigurationMissing) when the JWT
    secret or provider keys are absent, so the process never starts
    without them.
    """
    settings = settings or Settings()
    configure_logging(settings)

    app = FastAPI(
        title="Portal Accounts",
        description="User accounts: registration, login, verification, recovery and Google sign-in",
        version=__version__,
        lifespan=lifespan,
    )

    engine = build_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.tokens = TokenService.from_settings(settings)
    app.state.identity_provider = identity_provider or GoTrueIdentityProvider.from_settings(settings)
    app.state.email_sender = email_sender or build_email_sender(settings)

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

    install_error_handlers(app)
    app.include_router(api_router)

    return app
