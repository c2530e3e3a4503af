"""Hosted identity provider client (GoTrue / Supabase Auth REST API).

Learn: The provider owns end-user sessions for federated sign-in and
password recovery. We talk to it over plain HTTP with one shared
httpx.AsyncClient (created per app, closed in the lifespan shutdown).

Every call maps its failure into one of two errors:
- ProviderRejected — the provider answered 4xx (bad token, unknown user)
- ProviderUnavailable — network failure, timeout, or a 5xx
The distinction matters upstream: a rejection is an auth failure (401),
an outage is an operational failure (500).
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import httpx
import jwt
import structlog

from portal_accounts.auth.jwt import ExpiredToken, InvalidToken
from portal_accounts.config import Settings
from portal_accounts.errors import ProviderRejected, ProviderUnavailable

logger = structlog.get_logger()


@dataclass
class ProviderUser:
    """The provider's view of a user. Passed around raw, never mapped onto User."""

    id: str
    email: Optional[str] = None
    email_confirmed_at: Optional[str] = None
    user_metadata: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ProviderUser":
        return cls(
            id=str(payload.get("id") or ""),
            email=payload.get("email") or None,
            email_confirmed_at=payload.get("email_confirmed_at"),
            user_metadata=dict(payload.get("user_metadata") or {}),
            raw=payload,
        )

    @property
    def email_confirmed(self) -> bool:
        return bool(self.email_confirmed_at)


@dataclass
class ProviderSession:
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    expires_in: Optional[int] = None


@dataclass
class ProviderSignIn:
    """Result of exchanging an external token. Either part may be missing."""

    user: Optional[ProviderUser]
    session: Optional[ProviderSession]


@dataclass(frozen=True)
class RecoveryClaims:
    sub: str
    email: Optional[str] = None


class IdentityProvider(Protocol):
    async def verify_token(self, token: str) -> ProviderUser: ...

    async def exchange_identity_token(self, provider: str, token: str) -> ProviderSignIn: ...

    async def send_password_reset(self, email: str, redirect_to: str) -> None: ...

    async def update_user(
        self,
        user_id: str,
        *,
        password: Optional[str] = None,
        user_metadata: Optional[dict[str, Any]] = None,
    ) -> ProviderUser: ...

    def verify_recovery_token(self, token: str) -> RecoveryClaims: ...

    async def aclose(self) -> None: ...


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    for key in ("msg", "message", "error_description", "error"):
        if isinstance(body, dict) and body.get(key):
            return str(body[key])
    return f"HTTP {response.status_code}"


class GoTrueIdentityProvider:
    """IdentityProvider backed by the GoTrue REST API."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        service_key: str,
        jwt_secret: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._anon_key = anon_key
        self._service_key = service_key
        self._jwt_secret = jwt_secret
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/auth/v1",
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoTrueIdentityProvider":
        return cls(
            settings.identity_provider_url,
            settings.identity_provider_anon_key,
            settings.identity_provider_service_key,
            settings.identity_provider_jwt_secret,
            timeout=settings.provider_timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ─── Public API ─────────────────────────────────────

    async def verify_token(self, token: str) -> ProviderUser:
        """Resolve a provider access token to its user."""
        payload = await self._request("GET", "/user", bearer=token)
        return ProviderUser.from_payload(payload)

    async def exchange_identity_token(self, provider: str, token: str) -> ProviderSignIn:
        """Sign in with an external ID token (e.g. a Google credential)."""
        payload = await self._request(
            "POST",
            "/token",
            params={"grant_type": "id_token"},
            json={"provider": provider, "id_token": token},
        )
        user = payload.get("user")
        session = None
        if payload.get("access_token"):
            session = ProviderSession(
                access_token=payload["access_token"],
                refresh_token=payload.get("refresh_token"),
                expires_at=payload.get("expires_at"),
                expires_in=payload.get("expires_in"),
            )
        return ProviderSignIn(
            user=ProviderUser.from_payload(user) if user else None,
            session=session,
        )

    async def send_password_reset(self, email: str, redirect_to: str) -> None:
        await self._request(
            "POST",
            "/recover",
            params={"redirect_to": redirect_to},
            json={"email": email},
        )

    async def update_user(
        self,
        user_id: str,
        *,
        password: Optional[str] = None,
        user_metadata: Optional[dict[str, Any]] = None,
    ) -> ProviderUser:
        """Admin update of a provider user (service-role key)."""
        body: dict[str, Any] = {}
        if password is not None:
            body["password"] = password
        if user_metadata is not None:
            body["user_metadata"] = user_metadata
        payload = await self._request(
            "PUT", f"/admin/users/{user_id}", json=body, service=True
        )
        return ProviderUser.from_payload(payload)

    def verify_recovery_token(self, token: str) -> RecoveryClaims:
        """Decode a recovery session token locally with the provider's JWT secret.

        The audience claim is not checked; provider tokens carry
        aud="authenticated", which says nothing about this service.
        """
        try:
            payload = jwt.decode(
                token,
                self._jwt_secret,
                algorithms=["HS256"],
                options={"require": ["sub"], "verify_aud": False},
            )
        except jwt.ExpiredSignatureError:
            raise ExpiredToken("Recovery token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidToken(f"Invalid recovery token: {e}")
        return RecoveryClaims(sub=payload["sub"], email=payload.get("email"))

    # ─── Transport ──────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        bearer: Optional[str] = None,
        service: bool = False,
        **kwargs: Any,
    ) -> dict[str, Any]:
        key = self._service_key if service else self._anon_key
        headers = {"apikey": key, "Authorization": f"Bearer {bearer or key}"}

        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error("identity_provider.unreachable", path=path, error=str(e))
            raise ProviderUnavailable() from e

        if response.status_code >= 500:
            logger.error(
                "identity_provider.server_error",
                path=path,
                status=response.status_code,
            )
            raise ProviderUnavailable()
        if response.status_code >= 400:
            message = _error_message(response)
            logger.info(
                "identity_provider.rejected",
                path=path,
                status=response.status_code,
                reason=message,
            )
            raise ProviderRejected(message)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ProviderUnavailable() from e
