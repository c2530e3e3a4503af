"""Google sign-in route.

- POST /api/auth/login/google {idToken} → provider session + local user
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portal_accounts.db.engine import get_db
from portal_accounts.schemas.auth import GoogleLoginRequest, GoogleLoginResponse
from portal_accounts.schemas.user import UserSummary
from portal_accounts.services.google_login import GoogleLoginService
from portal_accounts.services.user_store import SqlUserStore, UpsertOutcome

router = APIRouter(prefix="/api/auth")


def _svc(request: Request, db: AsyncSession = Depends(get_db)) -> GoogleLoginService:
    return GoogleLoginService(SqlUserStore(db), request.app.state.identity_provider)


@router.post("/login/google", response_model=GoogleLoginResponse)
async def login_with_google(
    body: GoogleLoginRequest, svc: GoogleLoginService = Depends(_svc)
):
    result = await svc.login(body.id_token)
    user = result.user
    return GoogleLoginResponse(
        user=UserSummary(
            name=user.full_name,
            email=user.email,
            username=user.username,
            avatar_url=user.avatar_url,
            token=result.access_token,
        ),
        token=result.access_token,
        refresh_token=result.refresh_token,
        expires_at=result.expires_at,
        expires_in=result.expires_in,
        created=result.outcome is UpsertOutcome.CREATED,
    )
