"""Password recovery routes.

Learn: The identity provider mails the reset link and issues the
recovery session. The frontend sends that session's access token back
here together with the new password.

- POST /api/users/forgot-password → same answer whether or not the email exists
- POST /api/users/reset-password → set the new password on both sides
"""

from fastapi import APIRouter, Depends

from portal_accounts.api.users import account_service
from portal_accounts.schemas.auth import EmailRequest, MessageResponse, ResetPasswordRequest
from portal_accounts.services.account_service import AccountService

router = APIRouter(prefix="/api/users")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: EmailRequest, svc: AccountService = Depends(account_service)
):
    await svc.forgot_password(body.email.strip())
    return MessageResponse(
        message="If the email is registered, we sent instructions to reset the password."
    )


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest, svc: AccountService = Depends(account_service)
):
    await svc.reset_password(body.access_token, body.password)
    return MessageResponse(message="Password reset.")
