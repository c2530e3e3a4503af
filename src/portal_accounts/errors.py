"""Error taxonomy shared by the auth core, services and HTTP layer.

Usage:
    from portal_accounts.errors import FederatedAuthFailed

    raise FederatedAuthFailed()

Learn: Every error carries the HTTP status it maps to and a public
message that is safe to show to clients. The API layer renders any
AccountsError as the failure envelope {"success": false, "message": ...};
anything else is logged server-side and reduced to a generic 500.
"""

from __future__ import annotations

from typing import Any, Optional


class AccountsError(Exception):
    """Base exception with a status code and a client-safe message."""

    status_code: int = 500
    default_message: str = "Unexpected error. Try again later."
    code: Optional[str] = None

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "message": self.message}
        if self.code:
            body["code"] = self.code
        return body


# ─── Configuration ──────────────────────────────────────


class ConfigurationMissing(AccountsError, ValueError):
    """A required secret or provider key is absent. Fatal at startup."""

    default_message = "Server configuration is incomplete."


class AdminSecretMissing(AccountsError):
    default_message = "Security configuration missing. Contact support."


# ─── Credentials and tokens ─────────────────────────────


class MalformedCredential(AccountsError):
    status_code = 401
    default_message = "Token not provided."


class InvalidOrExpiredToken(AccountsError):
    status_code = 401
    default_message = "Invalid or expired token."


class InvalidAdminSecret(AccountsError):
    status_code = 401
    default_message = "Invalid admin secret."


class InvalidCredentials(AccountsError):
    status_code = 401
    default_message = "Invalid credentials."


class EmailNotVerified(AccountsError):
    status_code = 403
    default_message = "Your email has not been verified yet."
    code = "EMAIL_NOT_VERIFIED"


# ─── Identity provider ──────────────────────────────────


class ProviderError(AccountsError):
    """Base for failures talking to the hosted identity provider."""


class ProviderUnavailable(ProviderError):
    """Network failure or provider-side outage (5xx)."""

    status_code = 500
    default_message = "Could not reach the identity provider. Try again."


class ProviderRejected(ProviderError):
    """The provider answered and refused the request (4xx)."""

    status_code = 401
    default_message = "Invalid session. Please log in again."


class FederatedAuthFailed(AccountsError):
    status_code = 401
    default_message = "Google authentication failed."


# ─── Store ──────────────────────────────────────────────


class StoreConstraintViolation(AccountsError):
    """A unique constraint rejected a write. ``field`` names the column."""

    default_message = "Could not save the account. Try again."

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message)


class EmailAlreadyRegistered(AccountsError):
    status_code = 409
    default_message = "Email or username already registered."


class UserNotFound(AccountsError):
    status_code = 404
    default_message = "User not found."


# ─── Requests and delivery ──────────────────────────────


class BadRequest(AccountsError):
    status_code = 400
    default_message = "Missing required fields."


class EmailDeliveryFailed(AccountsError):
    default_message = "Could not send the email. Contact support."
