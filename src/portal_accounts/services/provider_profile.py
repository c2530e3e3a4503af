"""Read display fields out of provider user metadata.

Learn: Provider metadata is a loose dict. Our own frontend writes
camelCase keys (fullName, avatarUrl); Google and the provider fill in
their native ones (name/full_name, avatar_url/picture). Each helper
walks a fixed fallback chain and returns the first non-blank string.
"""

from typing import Any, Optional

FULL_NAME_KEYS = ("fullName", "full_name", "name")
AVATAR_KEYS = ("avatarUrl", "avatar_url", "picture")


def email_local_part(email: str) -> str:
    return email.split("@", 1)[0]


def _first_string(metadata: dict[str, Any], keys: tuple[str, ...]) -> Optional[str]:
    for key in keys:
        value = metadata.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def derive_full_name(metadata: dict[str, Any], email: str) -> str:
    return _first_string(metadata, FULL_NAME_KEYS) or email_local_part(email)


def derive_avatar_url(metadata: dict[str, Any]) -> Optional[str]:
    return _first_string(metadata, AVATAR_KEYS)


def metadata_string(metadata: dict[str, Any], key: str) -> Optional[str]:
    return _first_string(metadata, (key,))
