"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to authenticate
the request and hand the handler an identity. Three authenticators,
picked per route:

1. LocalAuthenticator — "Authorization: Bearer <local JWT>", verified
   with our own secret. Identity comes from the token claims, no DB hit.
   → request.state.user = LocalIdentity
2. FederatedAuthenticator — a provider session token, resolved by the
   identity provider over the network.
   → request.state.auth_user = ProviderUser (raw)
3. AdminSecretAuthenticator — static shared secret, from X-Admin-Secret
   or the Authorization header.

All of them raise AccountsError subclasses; the app's exception handler
turns those into {"success": false, "message": ...} with the right status.
"""

import hmac
from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import Request

from portal_accounts.auth.credentials import extract_credential
from portal_accounts.auth.jwt import ExpiredToken, TokenService
from portal_accounts.errors import (
    AdminSecretMissing,
    InvalidAdminSecret,
    InvalidOrExpiredToken,
    MalformedCredential,
    ProviderRejected,
    ProviderUnavailable,
)
from portal_accounts.providers.identity import IdentityProvider, ProviderUser

logger = structlog.get_logger()

ADMIN_SECRET_HEADER = "X-Admin-Secret"


@dataclass(frozen=True)
class LocalIdentity:
    """Who a local token says the caller is, as of token issuance."""

    id: str
    email: str
    username: str


class Authenticator:
    """Base for per-route authentication dependencies.

    Subclasses implement authenticate(); __call__ stores the result on
    request.state under ``state_attr`` so middleware and handlers that
    only have the request can still see who is calling.
    """

    state_attr: str = "identity"

    async def __call__(self, request: Request) -> Any:
        identity = await self.authenticate(request)
        setattr(request.state, self.state_attr, identity)
        return identity

    async def authenticate(self, request: Request) -> Any:
        raise NotImplementedError


class LocalAuthenticator(Authenticator):
    state_attr = "user"

    async def authenticate(self, request: Request) -> LocalIdentity:
        authorization = request.headers.get("Authorization")
        if not authorization or not authorization.startswith("Bearer "):
            raise MalformedCredential("Token not provided.")

        token = authorization[len("Bearer "):].strip()
        tokens: TokenService = request.app.state.tokens
        try:
            claims = tokens.verify(token)
        except InvalidOrExpiredToken as e:
            logger.warning(
                "auth.local_token_rejected",
                reason=str(e),
                expired=isinstance(e, ExpiredToken),
            )
            raise InvalidOrExpiredToken("Invalid or expired token.")

        return LocalIdentity(id=claims.sub, email=claims.email, username=claims.username)


class FederatedAuthenticator(Authenticator):
    state_attr = "auth_user"

    async def authenticate(self, request: Request) -> ProviderUser:
        token = extract_credential(request.headers.get("Authorization"))
        if not token:
            raise MalformedCredential("Authorization required to perform this action.")

        provider: IdentityProvider = request.app.state.identity_provider
        try:
            user = await provider.verify_token(token)
        except ProviderRejected as e:
            logger.warning("auth.provider_token_rejected", reason=e.message)
            raise ProviderRejected("Invalid session. Please log in again.") from e
        except ProviderUnavailable as e:
            logger.error("auth.provider_unavailable")
            raise ProviderUnavailable("Could not validate the session. Try again.") from e

        if not user.id:
            raise ProviderRejected("Invalid session. Please log in again.")
        return user


class AdminSecretAuthenticator(Authenticator):
    state_attr = "admin"

    async def authenticate(self, request: Request) -> bool:
        expected = request.app.state.settings.admin_secret
        if not expected:
            logger.error("auth.admin_secret_not_configured")
            raise AdminSecretMissing()

        provided = extract_credential(
            request.headers.get("Authorization"),
            request.headers.get(ADMIN_SECRET_HEADER),
        )
        if not provided or not hmac.compare_digest(
            provided.encode("utf-8"), expected.encode("utf-8")
        ):
            raise InvalidAdminSecret()
        return True


# Route-level dependencies
require_local_user = LocalAuthenticator()
require_auth_user = FederatedAuthenticator()
require_admin = AdminSecretAuthenticator()
