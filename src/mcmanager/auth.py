"""Shared-secret validation for the trigger endpoint."""

from __future__ import annotations

import secrets

SECRET_HEADER = "X-Secret-Token"


def validate_secret(request_secret: str | None, expected: str) -> bool:
    """Constant-time comparison of the request credential against *expected*.

    An empty expected secret never validates; callers decide separately
    whether authentication is enabled at all.
    """
    if not request_secret or not expected:
        return False
    return secrets.compare_digest(request_secret.encode(), expected.encode())
