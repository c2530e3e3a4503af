"""Account service — registration, password login, verification, recovery.

Learn: Service layer separates business logic from HTTP routing.
Routes validate input and shape responses; this class owns the rules:

- register: bcrypt hash, unique email/username, verification email
- login: password check, unverified accounts get 403, local JWT on success
- verification: mail a 1-day token, consume it to set email_verified
- recovery: the identity provider mails the reset link and owns the
  recovery session; we verify its token and update both sides
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog

from portal_accounts.auth.jwt import VERIFICATION, TokenService
from portal_accounts.auth.password import hash_password, verify_password
from portal_accounts.auth.usernames import normalize_username, write_with_username
from portal_accounts.config import Settings
from portal_accounts.db.models import User
from portal_accounts.errors import (
    AccountsError,
    BadRequest,
    EmailAlreadyRegistered,
    EmailNotVerified,
    InvalidCredentials,
    InvalidOrExpiredToken,
    ProviderRejected,
    ProviderUnavailable,
    StoreConstraintViolation,
    UserNotFound,
)
from portal_accounts.mail.sender import EmailSender
from portal_accounts.mail.templates import verification_email
from portal_accounts.providers.identity import IdentityProvider
from portal_accounts.services.user_store import UserStore

logger = structlog.get_logger()


class VerificationEmailFailed(AccountsError):
    default_message = "Account created, but the verification email could not be sent. Contact support."


@dataclass
class LoginResult:
    user: User
    token: str


class AccountService:
    def __init__(
        self,
        store: UserStore,
        tokens: TokenService,
        mailer: EmailSender,
        provider: IdentityProvider,
        settings: Settings,
    ):
        self.store = store
        self.tokens = tokens
        self.mailer = mailer
        self.provider = provider
        self.settings = settings

    # ─── Registration ───────────────────────────────────

    async def register(
        self,
        *,
        full_name: str,
        email: str,
        password: str,
        username: Optional[str] = None,
    ) -> User:
        """Create a local account and mail the verification link.

        An explicit username is normalized and must be free (409 if not).
        Without one, a free username is allocated from the full name.
        """
        if await self.store.find_user_by_email(email):
            raise EmailAlreadyRegistered()

        fields = {
            "full_name": full_name,
            "email": email,
            "password_hash": hash_password(password),
        }

        if username is not None:
            slug = normalize_username(username)
            if not slug:
                raise BadRequest("Username must contain letters or digits.")
            if await self.store.find_user_by_username(slug):
                raise EmailAlreadyRegistered()
            try:
                user = await self.store.create_user(username=slug, **fields)
            except StoreConstraintViolation as e:
                raise EmailAlreadyRegistered() from e
        else:
            user = await write_with_username(
                self.store,
                full_name,
                lambda name: self.store.create_user(username=name, **fields),
            )

        logger.info("accounts.registered", user_id=str(user.id))

        try:
            await self.send_verification_email(user)
        except AccountsError as e:
            raise VerificationEmailFailed() from e

        return user

    # ─── Login ──────────────────────────────────────────

    async def login(self, email: str, password: str) -> LoginResult:
        user = await self.store.find_user_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("accounts.login_failed")
            raise InvalidCredentials()

        if not user.email_verified:
            raise EmailNotVerified()

        token = self.tokens.issue(user.id, user.email, user.username)
        logger.info("accounts.login", user_id=str(user.id))
        return LoginResult(user=user, token=token)

    # ─── Email verification ─────────────────────────────

    async def send_verification_email(self, user: User) -> None:
        token = self.tokens.issue_verification(user.id, user.email)
        await self.mailer.send(
            verification_email(
                to=user.email,
                full_name=user.full_name,
                token=token,
                frontend_url=self.settings.frontend_url,
                product=self.settings.mail_from_name,
            )
        )

    async def resend_verification(self, email: str) -> None:
        user = await self.store.find_user_by_email(email)
        if user is None:
            raise UserNotFound()
        if user.email_verified:
            raise BadRequest("This email has already been verified.")
        await self.send_verification_email(user)

    async def verify_email(self, token: str) -> User:
        try:
            claims = self.tokens.verify(token, expected_type=VERIFICATION)
            user_id = uuid.UUID(claims.sub)
        except (InvalidOrExpiredToken, ValueError) as e:
            logger.warning("accounts.verification_rejected", reason=str(e))
            raise BadRequest("Invalid or expired token.")

        try:
            user = await self.store.update_user(user_id, email_verified=True)
        except UserNotFound:
            raise BadRequest("Invalid or expired token.")
        logger.info("accounts.email_verified", user_id=str(user.id))
        return user

    # ─── Password recovery ──────────────────────────────

    async def forgot_password(self, email: str) -> bool:
        """Ask the provider to mail a reset link. False when the email is unknown.

        Callers answer the same way either way, so this can't be used to
        probe which emails have accounts.
        """
        if await self.store.find_user_by_email(email) is None:
            return False

        redirect_to = f"{self.settings.frontend_url.rstrip('/')}/profile/reset-password"
        try:
            await self.provider.send_password_reset(email, redirect_to)
        except (ProviderRejected, ProviderUnavailable) as e:
            logger.error("accounts.reset_request_failed", error=e.message)
            raise ProviderUnavailable("Could not send the recovery instructions.") from e
        return True

    async def reset_password(self, access_token: str, password: str) -> None:
        try:
            claims = self.provider.verify_recovery_token(access_token)
        except InvalidOrExpiredToken as e:
            logger.warning("accounts.recovery_token_rejected", reason=str(e))
            raise BadRequest("Invalid or expired token.")

        try:
            await self.provider.update_user(claims.sub, password=password)
        except ProviderRejected as e:
            raise BadRequest(e.message) from e

        if claims.email:
            user = await self.store.find_user_by_email(claims.email)
            if user is not None:
                # The reset link proved mailbox ownership.
                await self.store.update_user(
                    user.id,
                    email_verified=True,
                    password_hash=hash_password(password),
                )
        logger.info("accounts.password_reset", external_id=claims.sub)
