"""Format checks for Agora app ids and access tokens."""
from __future__ import annotations

import re

APP_ID_PATTERN = re.compile(r"^[a-f0-9]{32}$", re.IGNORECASE)
TOKEN_VERSION_PATTERN = re.compile(r"^00[67]")
MIN_TOKEN_LENGTH = 50

INVALID_APP_ID_MESSAGE = "Invalid App ID format. App ID should be a 32-character hexadecimal string."


def is_valid_app_id(value: object) -> bool:
    """Return True when ``value`` is a 32 character hexadecimal app id."""

    if not isinstance(value, str):
        return False
    return APP_ID_PATTERN.match(value.strip()) is not None


def is_valid_token(token: object) -> bool:
    """Heuristic shape check for RTC tokens.

    Tokens carry a ``006`` or ``007`` version prefix and are much longer than
    the prefix itself. Nothing beyond that is inspected.
    """

    if not token or not isinstance(token, str):
        return False
    if not TOKEN_VERSION_PATTERN.match(token):
        return False
    return len(token) > MIN_TOKEN_LENGTH
