"""Shared-secret admin check."""

import secrets
from typing import Optional

ADMIN_TOKEN_HEADER = "x-admin-token"


def is_admin(provided: Optional[str], expected: Optional[str]) -> bool:
    """
    Compare a request token with the configured admin token.

    An unset admin token denies every request.
    """
    if not expected or not isinstance(provided, str) or not provided:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
