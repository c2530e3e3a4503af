"""Email verification routes.

- POST /api/users/send-verification → mail a fresh verification link
- POST /api/users/verify-email → consume the token from that link
"""

from fastapi import APIRouter, Depends

from portal_accounts.api.users import account_service
from portal_accounts.schemas.auth import EmailRequest, MessageResponse, TokenRequest
from portal_accounts.services.account_service import AccountService

router = APIRouter(prefix="/api/users")


@router.post("/send-verification", response_model=MessageResponse)
async def send_verification(
    body: EmailRequest, svc: AccountService = Depends(account_service)
):
    await svc.resend_verification(body.email.strip())
    return MessageResponse(message="Verification email sent again.")


@router.post("/verify-email", response_model=MessageResponse)
async def verify_email(body: TokenRequest, svc: AccountService = Depends(account_service)):
    await svc.verify_email(body.token)
    return MessageResponse(message="Email verified.")
