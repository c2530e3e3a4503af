"""Username normalization and collision-free allocation.

Learn: Usernames are URL slugs derived from whatever the person typed
(a display name, an email local part). normalize_username() is pure;
allocate_username() probes the store for the first free candidate:
base, base-1, base-2, ...

The probe does not lock anything. Two requests allocating the same name
at the same time can both see it free; the unique constraint on
users.username lets one insert win and the other fail. write_with_username()
is the recovery loop for the loser — allocate again (the probe now sees
the winner's row) and retry the write.
"""

import re
import time
import uuid
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from portal_accounts.errors import EmailAlreadyRegistered, StoreConstraintViolation
from portal_accounts.services.user_store import UserStore

logger = structlog.get_logger()

T = TypeVar("T")

_OUTSIDE_SLUG = re.compile(r"[^a-z0-9]+")
_EDGE_DASHES = re.compile(r"^-+|-+$")
_DASH_RUNS = re.compile(r"-{2,}")

DEFAULT_WRITE_ATTEMPTS = 5


def normalize_username(value: str) -> str:
    """Turn arbitrary text into a slug: lower-case, [a-z0-9] runs joined by '-'.

    >>> normalize_username("Ana Maria!!  Ferreira")
    'ana-maria-ferreira'
    >>> normalize_username("---")
    ''
    """
    slug = _OUTSIDE_SLUG.sub("-", value.lower())
    slug = _EDGE_DASHES.sub("", slug)
    return _DASH_RUNS.sub("-", slug)


def fallback_username() -> str:
    return f"usuario-{int(time.time() * 1000)}"


async def allocate_username(
    store: UserStore,
    desired: str,
    exclude_user_id: Optional[uuid.UUID] = None,
) -> str:
    """Return the first username derived from ``desired`` that nobody else holds.

    ``exclude_user_id`` lets a user keep their own name during a rename.
    """
    base = normalize_username(desired) or fallback_username()
    candidate = base
    counter = 1

    while await store.find_user_by_username(candidate, exclude_id=exclude_user_id):
        candidate = f"{base}-{counter}"
        counter += 1

    return candidate


async def write_with_username(
    store: UserStore,
    desired: str,
    write: Callable[[str], Awaitable[T]],
    *,
    exclude_user_id: Optional[uuid.UUID] = None,
    attempts: int = DEFAULT_WRITE_ATTEMPTS,
) -> T:
    """Allocate a username and run ``write(username)``, retrying lost races.

    A violation on email is a real conflict and surfaces immediately as
    EmailAlreadyRegistered. Running out of attempts re-raises the last
    username violation.
    """
    last_error: Optional[StoreConstraintViolation] = None

    for attempt in range(1, attempts + 1):
        username = await allocate_username(store, desired, exclude_user_id)
        try:
            return await write(username)
        except StoreConstraintViolation as e:
            if e.field == "email":
                raise EmailAlreadyRegistered() from e
            if e.field != "username":
                raise
            last_error = e
            logger.info(
                "usernames.collision_retry",
                username=username,
                attempt=attempt,
            )

    logger.error("usernames.retries_exhausted", desired=desired, attempts=attempts)
    raise last_error
