"""Local JWT creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: issued at login, 7 days, claims {sub, email, username}
- Verification token: mailed after registration, 1 day, claims {sub, email}

Each token records its purpose in a "type" claim, so a verification
link can never be replayed as a login token. These tokens are unrelated
to the identity provider's session tokens; the two are never
interchangeable.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import jwt

from portal_accounts.config import Settings
from portal_accounts.errors import ConfigurationMissing, InvalidOrExpiredToken

ACCESS = "access"
VERIFICATION = "verification"


class InvalidToken(InvalidOrExpiredToken):
    """Bad signature, malformed token, wrong purpose or missing claims."""


class ExpiredToken(InvalidOrExpiredToken):
    """Signature is fine but the token is past its expiry."""


@dataclass(frozen=True)
class TokenClaims:
    sub: str
    email: str
    username: Optional[str] = None


class TokenService:
    """Issues and verifies HS256 tokens signed with the process-wide secret."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(days=7),
        verification_ttl: timedelta = timedelta(days=1),
    ):
        if not secret:
            raise ConfigurationMissing("JWT secret is not configured")
        self._secret = secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.verification_ttl = verification_ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            access_ttl=timedelta(days=settings.access_token_expire_days),
            verification_ttl=timedelta(days=settings.verification_token_expire_days),
        )

    def issue(
        self,
        subject_id: Union[str, object],
        email: str,
        username: Optional[str] = None,
        ttl: Optional[timedelta] = None,
        token_type: str = ACCESS,
    ) -> str:
        """Create a signed token for ``subject_id`` expiring after ``ttl``."""
        now = datetime.now(timezone.utc)
        if ttl is None:
            ttl = self.access_ttl if token_type == ACCESS else self.verification_ttl
        payload = {
            "sub": str(subject_id),
            "email": email,
            "type": token_type,
            "iat": now,
            "exp": now + ttl,
        }
        if username is not None:
            payload["username"] = username
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def issue_verification(self, subject_id: Union[str, object], email: str) -> str:
        return self.issue(subject_id, email, token_type=VERIFICATION)

    def verify(self, token: str, expected_type: str = ACCESS) -> TokenClaims:
        """Verify and decode a token.

        Raises ExpiredToken past expiry and InvalidToken for everything
        else. Callers that only need "unauthorized" catch the shared
        InvalidOrExpiredToken base.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise ExpiredToken("Token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidToken(f"Invalid token: {e}")

        if payload.get("type") != expected_type:
            raise InvalidToken(f"Not a {expected_type} token")
        if not payload.get("email"):
            raise InvalidToken("Token has no email claim")
        if expected_type == ACCESS and not payload.get("username"):
            raise InvalidToken("Token has no username claim")

        return TokenClaims(
            sub=payload["sub"],
            email=payload["email"],
            username=payload.get("username"),
        )
