"""Profile routes, authenticated with the identity provider's session token.

- GET /api/profile/me → local profile (created on first access)
- PUT /api/profile/me → update fullName / bio / city
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portal_accounts.auth.dependencies import require_auth_user
from portal_accounts.db.engine import get_db
from portal_accounts.providers.identity import ProviderUser
from portal_accounts.schemas.user import ProfileRead, ProfileResponse, ProfileUpdate
from portal_accounts.services.profile_service import ProfileService
from portal_accounts.services.user_store import SqlUserStore

router = APIRouter(prefix="/api/profile")


def _svc(request: Request, db: AsyncSession = Depends(get_db)) -> ProfileService:
    return ProfileService(SqlUserStore(db), request.app.state.identity_provider)


@router.get("/me", response_model=ProfileResponse)
async def get_profile(
    auth_user: ProviderUser = Depends(require_auth_user),
    svc: ProfileService = Depends(_svc),
):
    user = await svc.resolve(auth_user)
    return ProfileResponse(profile=ProfileRead.from_user(user))


@router.put("/me", response_model=ProfileResponse)
async def update_profile(
    body: ProfileUpdate,
    auth_user: ProviderUser = Depends(require_auth_user),
    svc: ProfileService = Depends(_svc),
):
    user = await svc.update(
        auth_user, full_name=body.full_name, bio=body.bio, city=body.city
    )
    return ProfileResponse(profile=ProfileRead.from_user(user))
