"""Small HTTP-related constants shared across inklink.

This module is intentionally tiny to avoid circular imports and drift.
"""

from __future__ import annotations

AUTH_FAILURE_STATUS_CODES: frozenset[int] = frozenset({401, 403})
NOT_FOUND_STATUS_CODE = 404
# Statuses at or above this bound are server-side and worth retrying.
SERVER_ERROR_FLOOR = 500

DEFAULT_TIMEOUT_S = 30.0
CONNECTION_TEST_TIMEOUT_S = 15.0


def build_headers(api_key: str) -> dict[str, str]:
    """Headers for every outbound JSON call."""
    return {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {api_key}",
    }
