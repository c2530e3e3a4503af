"""Pull a bare credential out of request headers."""

from typing import Optional


def extract_credential(
    authorization: Optional[str],
    fallback: Optional[str] = None,
) -> Optional[str]:
    """Return the credential carried by the request, or None.

    A non-blank ``fallback`` header (e.g. X-Admin-Secret) wins outright
    and is returned trimmed, with no scheme check. Otherwise the
    Authorization value is split on its first space:

    - "Bearer abc123" → "abc123" (scheme compared case-insensitively)
    - "Basic abc123"  → None (unknown scheme)
    - "abc123"        → "abc123" (bare token, no scheme)
    - "" / None       → None
    """
    if fallback and fallback.strip():
        return fallback.strip()

    if not authorization:
        return None

    scheme, sep, rest = authorization.partition(" ")
    if not sep:
        return scheme.strip() or None

    if scheme.lower() != "bearer":
        return None

    return rest.strip() or None
