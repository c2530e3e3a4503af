"""Profile service — the local record behind a provider session.

Learn: Profile routes authenticate with the provider's session token.
The first time a provider user reaches us without a local row (e.g. an
account created directly at the provider), one is created from their
metadata. Updates are written locally first, then mirrored into the
provider's user_metadata so both sides show the same name/bio/city.
"""

from typing import Optional

import structlog

from portal_accounts.auth.usernames import write_with_username
from portal_accounts.db.models import User
from portal_accounts.errors import MalformedCredential, ProviderError, ProviderUnavailable
from portal_accounts.providers.identity import IdentityProvider, ProviderUser
from portal_accounts.services.provider_profile import (
    derive_avatar_url,
    derive_full_name,
    metadata_string,
)
from portal_accounts.services.user_store import UserStore

logger = structlog.get_logger()


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class ProfileService:
    def __init__(self, store: UserStore, provider: IdentityProvider):
        self.store = store
        self.provider = provider

    async def resolve(self, auth_user: ProviderUser) -> User:
        """Find the local user for a provider user, creating it on first sight."""
        if not auth_user.email:
            raise MalformedCredential("User has no associated email.")

        existing = await self.store.find_user_by_email(auth_user.email)
        if existing is not None:
            return existing

        metadata = auth_user.user_metadata
        email = auth_user.email
        fields = {
            "email": email,
            "full_name": derive_full_name(metadata, email),
            "avatar_url": derive_avatar_url(metadata),
            "email_verified": auth_user.email_confirmed,
            "bio": metadata_string(metadata, "bio"),
            "city": metadata_string(metadata, "city"),
            "external_identity_id": auth_user.id,
        }
        desired = metadata_string(metadata, "username") or email

        result = await write_with_username(
            self.store,
            desired,
            lambda username: self.store.upsert_user_by_email(
                email, create={"username": username, **fields}, update={}
            ),
        )
        logger.info(
            "profile.local_user_linked",
            user_id=str(result.user.id),
            outcome=result.outcome.value,
        )
        return result.user

    async def update(
        self,
        auth_user: ProviderUser,
        *,
        full_name: Optional[str] = None,
        bio: Optional[str] = None,
        city: Optional[str] = None,
    ) -> User:
        """Apply profile edits. Blank bio/city clear the field; blank name is ignored."""
        user = await self.resolve(auth_user)

        changes = {}
        cleaned_name = _clean(full_name)
        if cleaned_name and cleaned_name != user.full_name:
            changes["full_name"] = cleaned_name
        if bio is not None:
            changes["bio"] = _clean(bio)
        if city is not None:
            changes["city"] = _clean(city)

        if not changes:
            return user

        user = await self.store.update_user(user.id, **changes)

        metadata = {
            **auth_user.user_metadata,
            "fullName": user.full_name,
            "bio": user.bio,
            "city": user.city,
        }
        try:
            await self.provider.update_user(auth_user.id, user_metadata=metadata)
        except ProviderError as e:
            # Local row is the source of truth; the mirror catches up on the next edit.
            logger.warning(
                "profile.metadata_sync_failed",
                user_id=str(user.id),
                unavailable=isinstance(e, ProviderUnavailable),
                error=e.message,
            )
        return user
