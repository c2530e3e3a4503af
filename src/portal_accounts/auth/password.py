"""Password hashing utilities.

Learn: Uses bcrypt for secure password hashing. bcrypt automatically
handles salting and is resistant to rainbow table attacks.

Accounts created through Google sign-in store a sentinel instead of a
hash; has_local_password() tells them apart and verify_password()
never accepts a password for them.
"""

import bcrypt

from portal_accounts.db.models import FEDERATED_PASSWORD_SENTINEL

BCRYPT_ROUNDS = 12


def hash_password(password: str) -> str:
    """Hash a password with bcrypt.

    Passwords are truncated to 72 bytes (bcrypt's limit).
    """
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def has_local_password(password_hash: str) -> bool:
    return bool(password_hash) and password_hash != FEDERATED_PASSWORD_SENTINEL


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash. False for federated-only accounts."""
    if not has_local_password(password_hash):
        return False
    try:
        pw_bytes = password.encode("utf-8")[:72]
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False
