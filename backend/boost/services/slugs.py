from __future__ import annotations

import secrets

from sqlalchemy.exc import IntegrityError

SLUG_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
SLUG_LENGTH = 10

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


def generate_slug(length: int = SLUG_LENGTH) -> str:
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


def is_unique_violation(exc: IntegrityError) -> bool:
    """
    True when an IntegrityError came from a unique constraint.

    psycopg2 exposes the SQLSTATE as `pgcode`; SQLite only has the message.
    """
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == UNIQUE_VIOLATION:
        return True
    return "unique" in str(orig).lower()
