"""User store — the only code that reads and writes the users table.

Learn: Services depend on the UserStore protocol, not on SQLAlchemy.
SqlUserStore is the production implementation. Every write commits
on its own, so a write is the atomic commit boundary: a request that
is cancelled between two writes never leaves a half-updated row.

Unique-constraint failures are translated into StoreConstraintViolation
with the offending column, which lets callers tell a username race
(retry with another suffix) from a duplicate email (a real conflict).
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from portal_accounts.db.models import User
from portal_accounts.errors import StoreConstraintViolation, UserNotFound

logger = structlog.get_logger()


class UpsertOutcome(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"


@dataclass(frozen=True)
class UpsertResult:
    """Which branch an upsert took, with the resulting row."""

    user: User
    outcome: UpsertOutcome

    @property
    def created(self) -> bool:
        return self.outcome is UpsertOutcome.CREATED


class UserStore(Protocol):
    async def find_user_by_email(self, email: str) -> Optional[User]: ...

    async def find_user_by_id(self, user_id: uuid.UUID) -> Optional[User]: ...

    async def find_user_by_username(
        self, username: str, exclude_id: Optional[uuid.UUID] = None
    ) -> Optional[User]: ...

    async def create_user(self, **fields: Any) -> User: ...

    async def update_user(self, user_id: uuid.UUID, **fields: Any) -> User: ...

    async def upsert_user_by_email(
        self, email: str, create: dict[str, Any], update: dict[str, Any]
    ) -> UpsertResult: ...


def _violated_field(error: IntegrityError) -> str:
    """Work out which unique column an IntegrityError is about.

    PostgreSQL names the constraint (uq_users_username), SQLite names
    the column (users.username). Email is checked first: a username is
    a slug and cannot contain the email markers, while an email address
    may well contain the word "username".
    """
    detail = str(error.orig).lower()
    for field in ("email", "username"):
        markers = (f"uq_users_{field}", f"users.{field}", f"({field})")
        if any(marker in detail for marker in markers):
            return field
    return "unknown"


class SqlUserStore:
    """UserStore backed by an AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Reads ──────────────────────────────────────────

    async def find_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def find_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def find_user_by_username(
        self, username: str, exclude_id: Optional[uuid.UUID] = None
    ) -> Optional[User]:
        q = select(User).where(User.username == username)
        if exclude_id is not None:
            q = q.where(User.id != exclude_id)
        result = await self.db.execute(q)
        return result.scalars().first()

    # ─── Writes ─────────────────────────────────────────

    async def create_user(self, **fields: Any) -> User:
        user = User(**fields)
        self.db.add(user)
        await self._commit()
        await self.db.refresh(user)
        return user

    async def update_user(self, user_id: uuid.UUID, **fields: Any) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise UserNotFound()
        return await self._apply(user, fields)

    async def upsert_user_by_email(
        self, email: str, create: dict[str, Any], update: dict[str, Any]
    ) -> UpsertResult:
        """Update the row with this email, or create it.

        Learn: There is no portable single-statement upsert that also
        reports which branch ran, so this is update-or-insert. If the
        insert loses a race to a concurrent writer for the same email,
        the unique constraint fires and we fall back to updating the
        winner's row.
        """
        existing = await self.find_user_by_email(email)
        if existing is not None:
            user = await self._apply(existing, update)
            return UpsertResult(user, UpsertOutcome.UPDATED)

        try:
            user = await self.create_user(email=email, **create)
        except StoreConstraintViolation as e:
            if e.field != "email":
                raise
            existing = await self.find_user_by_email(email)
            if existing is None:
                raise
            logger.info("user_store.upsert_race", email=email)
            user = await self._apply(existing, update)
            return UpsertResult(user, UpsertOutcome.UPDATED)

        return UpsertResult(user, UpsertOutcome.CREATED)

    # ─── Internals ──────────────────────────────────────

    async def _apply(self, user: User, fields: dict[str, Any]) -> User:
        for name, value in fields.items():
            setattr(user, name, value)
        await self._commit()
        await self.db.refresh(user)
        return user

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise StoreConstraintViolation(_violated_field(e)) from e
