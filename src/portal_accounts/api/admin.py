"""Operator routes, guarded by the static admin secret.

Learn: The secret comes from X-Admin-Secret (preferred) or the
Authorization header. Auth is applied once at the router level.

- GET /api/admin/users/{username} → look up a user
- PUT /api/admin/users/{user_id}/username → rename through the allocator
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from portal_accounts.auth.dependencies import require_admin
from portal_accounts.auth.usernames import write_with_username
from portal_accounts.db.engine import get_db
from portal_accounts.errors import UserNotFound
from portal_accounts.schemas.user import AdminUserResponse, UserRead, UsernameUpdate
from portal_accounts.services.user_store import SqlUserStore

router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])


def _store(db: AsyncSession = Depends(get_db)) -> SqlUserStore:
    return SqlUserStore(db)


@router.get("/users/{username}", response_model=AdminUserResponse)
async def get_user(username: str, store: SqlUserStore = Depends(_store)):
    user = await store.find_user_by_username(username)
    if user is None:
        raise UserNotFound()
    return AdminUserResponse(user=UserRead.model_validate(user))


@router.put("/users/{user_id}/username", response_model=AdminUserResponse)
async def rename_user(
    user_id: uuid.UUID,
    body: UsernameUpdate,
    store: SqlUserStore = Depends(_store),
):
    """Rename a user. The user's own current name never counts as a collision."""
    if await store.find_user_by_id(user_id) is None:
        raise UserNotFound()

    user = await write_with_username(
        store,
        body.username,
        lambda username: store.update_user(user_id, username=username),
        exclude_user_id=user_id,
    )
    return AdminUserResponse(user=UserRead.model_validate(user))
