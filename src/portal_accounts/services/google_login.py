"""Google sign-in — reconcile a federated identity with the local user table.

Learn: The client obtains a Google ID token and posts it here. We never
verify it ourselves; the identity provider does that and hands back its
own user + session. Then the local record is brought in line:

1. exchange the ID token with the provider (any failure → 401)
2. derive full name and avatar from provider metadata
3. look up the local user by email
4. keep an existing username; otherwise allocate one from the email
5. upsert by email (email_verified follows the provider's attestation)
6. compute the absolute session expiry
7. return the user summary and the provider's tokens

Running it twice for the same person updates metadata and nothing else:
email is unique, so there is still exactly one row, and the username
is never written on the update path.
"""

import time
from dataclasses import dataclass
from typing import Optional

import structlog

from portal_accounts.auth.usernames import write_with_username
from portal_accounts.db.models import FEDERATED_PASSWORD_SENTINEL, User
from portal_accounts.errors import (
    FederatedAuthFailed,
    ProviderRejected,
    ProviderUnavailable,
)
from portal_accounts.providers.identity import IdentityProvider, ProviderSession
from portal_accounts.services.provider_profile import (
    derive_avatar_url,
    derive_full_name,
    email_local_part,
)
from portal_accounts.services.user_store import UpsertOutcome, UpsertResult, UserStore

logger = structlog.get_logger()

GOOGLE = "google"
DEFAULT_EXPIRES_IN = 3600


@dataclass
class GoogleLoginResult:
    user: User
    access_token: str
    refresh_token: Optional[str]
    expires_at: int
    expires_in: int
    outcome: UpsertOutcome


def session_expiry(session: ProviderSession, now: Optional[float] = None) -> tuple[int, int]:
    """Return (expires_at, expires_in) for a provider session.

    Prefers the provider's absolute timestamp; otherwise derives it from
    expires_in, which itself defaults to one hour. When only the timestamp
    is known, expires_in is the time left until it, never negative.
    """
    now = time.time() if now is None else now
    if session.expires_at is not None:
        expires_at = int(session.expires_at)
        if session.expires_in is not None:
            return expires_at, int(session.expires_in)
        return expires_at, max(0, expires_at - int(now))
    expires_in = session.expires_in if session.expires_in is not None else DEFAULT_EXPIRES_IN
    return int(now) + int(expires_in), int(expires_in)


class GoogleLoginService:
    def __init__(self, store: UserStore, provider: IdentityProvider):
        self.store = store
        self.provider = provider

    async def login(self, id_token: str) -> GoogleLoginResult:
        try:
            sign_in = await self.provider.exchange_identity_token(GOOGLE, id_token)
        except ProviderRejected as e:
            logger.warning("google_login.rejected", reason=e.message)
            raise FederatedAuthFailed() from e
        except ProviderUnavailable as e:
            logger.error("google_login.provider_unavailable")
            raise FederatedAuthFailed() from e

        provider_user, session = sign_in.user, sign_in.session
        if provider_user is None or session is None or not provider_user.email:
            logger.warning(
                "google_login.incomplete_sign_in",
                has_user=provider_user is not None,
                has_session=session is not None,
            )
            raise FederatedAuthFailed()

        email = provider_user.email
        metadata = provider_user.user_metadata
        profile = {
            "full_name": derive_full_name(metadata, email),
            "avatar_url": derive_avatar_url(metadata),
            "email_verified": provider_user.email_confirmed,
            "external_identity_id": provider_user.id,
        }

        existing = await self.store.find_user_by_email(email)
        if existing is not None:
            result = await self.store.upsert_user_by_email(
                email, create={"username": existing.username, **profile}, update=profile
            )
        else:
            result = await write_with_username(
                self.store,
                email_local_part(email),
                lambda username: self._upsert_new(email, username, profile),
            )

        expires_at, expires_in = session_expiry(session)
        logger.info(
            "google_login.reconciled",
            user_id=str(result.user.id),
            outcome=result.outcome.value,
        )
        return GoogleLoginResult(
            user=result.user,
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_at=expires_at,
            expires_in=expires_in,
            outcome=result.outcome,
        )

    async def _upsert_new(self, email: str, username: str, profile: dict) -> UpsertResult:
        # Username only goes into the create branch. If a concurrent login
        # created the row first, the update branch keeps that row's name.
        return await self.store.upsert_user_by_email(
            email,
            create={
                "username": username,
                "password_hash": FEDERATED_PASSWORD_SENTINEL,
                **profile,
            },
            update=profile,
        )
