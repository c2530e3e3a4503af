"""Users API — registration, password login, current user.

Learn: Routes for local accounts:
- POST /api/users/register → create account + mail verification link
- POST /api/users/login → email/password → local JWT (7 days)
- GET /api/users/me → identity from the local JWT (no DB hit)
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portal_accounts.auth.dependencies import LocalIdentity, require_local_user
from portal_accounts.db.engine import get_db
from portal_accounts.schemas.auth import (
    LocalIdentityRead,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisterRequest,
    RegisterResponse,
)
from portal_accounts.schemas.user import UserRead
from portal_accounts.services.account_service import AccountService
from portal_accounts.services.user_store import SqlUserStore

router = APIRouter(prefix="/api/users")


def account_service(request: Request, db: AsyncSession = Depends(get_db)) -> AccountService:
    state = request.app.state
    return AccountService(
        SqlUserStore(db),
        state.tokens,
        state.email_sender,
        state.identity_provider,
        state.settings,
    )


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(body: RegisterRequest, svc: AccountService = Depends(account_service)):
    """Create a new account. Login is refused until the email is verified."""
    await svc.register(
        full_name=body.full_name.strip(),
        email=body.email.strip(),
        password=body.password,
        username=body.username,
    )
    return RegisterResponse(
        message="Registration complete! A verification email was sent to your inbox.",
    )


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, svc: AccountService = Depends(account_service)):
    """Login with email and password → local JWT."""
    result = await svc.login(body.email.strip(), body.password)
    return LoginResponse(user=UserRead.model_validate(result.user), token=result.token)


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=MeResponse)
async def get_me(identity: LocalIdentity = Depends(require_local_user)):
    """Who the bearer token says the caller is."""
    return MeResponse(
        user=LocalIdentityRead(
            id=identity.id, email=identity.email, username=identity.username
        )
    )
