"""Test fixtures — a throwaway SQLite database per test plus in-memory fakes.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own SQLite file under tmp_path. The schema is
   created from the models, so no migrations and no Postgres server.
2. The app is built by the real create_app() with test Settings. It
   opens its own engine on the same file, so data written through the
   API is visible to the test's session and vice versa.
3. The identity provider and the mailer are replaced with in-memory
   fakes that record every call. Tests arrange provider state (valid
   session tokens, Google sign-ins, recovery tokens) on the fake.
"""

from typing import Any, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from portal_accounts.auth.jwt import InvalidToken, TokenService
from portal_accounts.config import Settings
from portal_accounts.db.models import Base
from portal_accounts.errors import EmailDeliveryFailed, ProviderRejected, ProviderUnavailable
from portal_accounts.main import create_app
from portal_accounts.mail.sender import OutgoingEmail
from portal_accounts.providers.identity import (
    ProviderSession,
    ProviderSignIn,
    ProviderUser,
    RecoveryClaims,
)
from portal_accounts.services.user_store import SqlUserStore

CONFIRMED_AT = "2024-01-01T00:00:00Z"


class FakeIdentityProvider:
    """In-memory IdentityProvider. Flip ``unavailable`` to simulate an outage."""

    def __init__(self):
        self.sessions: dict[str, ProviderUser] = {}
        self.sign_ins: dict[str, ProviderSignIn] = {}
        self.recovery_tokens: dict[str, RecoveryClaims] = {}
        self.reset_requests: list[tuple[str, str]] = []
        self.updates: list[dict[str, Any]] = []
        self.unavailable = False
        self.reject_updates: Optional[str] = None
        self.closed = False

    # ─── Arrange helpers ────────────────────────────────

    def add_session(
        self,
        token: str,
        *,
        user_id: str = "idp-user-1",
        email: Optional[str] = "ana@example.com",
        metadata: Optional[dict[str, Any]] = None,
        confirmed: bool = True,
    ) -> ProviderUser:
        user = ProviderUser(
            id=user_id,
            email=email,
            email_confirmed_at=CONFIRMED_AT if confirmed else None,
            user_metadata=dict(metadata or {}),
        )
        self.sessions[token] = user
        return user

    def add_google_account(
        self,
        id_token: str,
        *,
        user_id: str = "idp-google-1",
        email: Optional[str] = "ana@gmail.com",
        metadata: Optional[dict[str, Any]] = None,
        confirmed: bool = True,
        access_token: str = "provider-access",
        refresh_token: Optional[str] = "provider-refresh",
        expires_at: Optional[int] = None,
        expires_in: Optional[int] = 3600,
        with_session: bool = True,
    ) -> ProviderSignIn:
        user = ProviderUser(
            id=user_id,
            email=email,
            email_confirmed_at=CONFIRMED_AT if confirmed else None,
            user_metadata=dict(metadata or {}),
        )
        session = (
            ProviderSession(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at=expires_at,
                expires_in=expires_in,
            )
            if with_session
            else None
        )
        sign_in = ProviderSignIn(user=user, session=session)
        self.sign_ins[id_token] = sign_in
        return sign_in

    def add_recovery_token(self, token: str, *, sub: str, email: Optional[str]) -> None:
        self.recovery_tokens[token] = RecoveryClaims(sub=sub, email=email)

    # ─── IdentityProvider ───────────────────────────────

    def _check_up(self) -> None:
        if self.unavailable:
            raise ProviderUnavailable()

    async def verify_token(self, token: str) -> ProviderUser:
        self._check_up()
        user = self.sessions.get(token)
        if user is None:
            raise ProviderRejected("invalid JWT: unable to parse or verify signature")
        return user

    async def exchange_identity_token(self, provider: str, token: str) -> ProviderSignIn:
        self._check_up()
        sign_in = self.sign_ins.get(token)
        if sign_in is None:
            raise ProviderRejected("Bad ID token")
        return sign_in

    async def send_password_reset(self, email: str, redirect_to: str) -> None:
        self._check_up()
        self.reset_requests.append((email, redirect_to))

    async def update_user(
        self,
        user_id: str,
        *,
        password: Optional[str] = None,
        user_metadata: Optional[dict[str, Any]] = None,
    ) -> ProviderUser:
        self._check_up()
        if self.reject_updates:
            raise ProviderRejected(self.reject_updates)
        self.updates.append(
            {"user_id": user_id, "password": password, "user_metadata": user_metadata}
        )
        return ProviderUser(id=user_id, user_metadata=dict(user_metadata or {}))

    def verify_recovery_token(self, token: str) -> RecoveryClaims:
        claims = self.recovery_tokens.get(token)
        if claims is None:
            raise InvalidToken("Invalid recovery token")
        return claims

    async def aclose(self) -> None:
        self.closed = True


class FakeEmailSender:
    """Records outgoing email. Set ``fail`` to make every send raise."""

    def __init__(self):
        self.sent: list[OutgoingEmail] = []
        self.fail = False

    async def send(self, email: OutgoingEmail) -> None:
        if self.fail:
            raise EmailDeliveryFailed()
        self.sent.append(email)


def make_settings(database_url: str, **overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "database_url": database_url,
        "jwt_secret": "test-jwt-secret",
        "admin_secret": "test-admin-secret",
        "identity_provider_url": "https://idp.test",
        "identity_provider_anon_key": "anon-key",
        "identity_provider_service_key": "service-key",
        "identity_provider_jwt_secret": "idp-jwt-secret",
        "frontend_url": "https://portal.test",
        "environment": "test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture()
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'accounts.db'}"


@pytest.fixture()
def settings_factory(database_url):
    """Build Settings for this test's database with some values overridden."""

    def _build(**overrides: Any) -> Settings:
        return make_settings(database_url, **overrides)

    return _build


@pytest.fixture()
def settings(settings_factory):
    return settings_factory()


@pytest.fixture()
def tokens(settings):
    return TokenService.from_settings(settings)


@pytest.fixture()
def provider():
    return FakeIdentityProvider()


@pytest.fixture()
def mailer():
    return FakeEmailSender()


@pytest_asyncio.fixture()
async def engine(database_url):
    """Engine on the per-test SQLite file, with the schema created."""
    engine = create_async_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def store(db_session):
    return SqlUserStore(db_session)


@pytest.fixture()
def fetch_user(session_factory):
    """Read a user in a fresh session, so assertions see what is committed."""

    async def _fetch(email: str):
        async with session_factory() as session:
            return await SqlUserStore(session).find_user_by_email(email)

    return _fetch


@pytest.fixture()
def app(settings, provider, mailer, engine):
    return create_app(settings, identity_provider=provider, email_sender=mailer)


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client talking to the app in-process.

    Learn: ASGITransport does not run the lifespan, so the app's own
    engine is disposed here instead of at shutdown.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.engine.dispose()
