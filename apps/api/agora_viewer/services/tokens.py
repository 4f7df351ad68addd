"""RTC token issuance.

Signing itself is delegated to ``agora_token_builder``; this module validates
the request, maps roles and uids, and computes the privilege expiry.
"""
from __future__ import annotations

import math
import re
import time
from dataclasses import dataclass

from agora_token_builder import RtcTokenBuilder

from ..core.config import settings
from .credentials import INVALID_APP_ID_MESSAGE, is_valid_app_id

# Role values understood by RtcTokenBuilder.
ROLE_PUBLISHER = 1
ROLE_SUBSCRIBER = 2

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")

MISSING_FIELDS_MESSAGE = "App ID, App Certificate, and Channel Name are required"


class TokenRequestError(ValueError):
    """Raised when a token request is missing fields or malformed."""


@dataclass(slots=True)
class IssuedToken:
    token: str
    uid: int
    channel: str
    role: str
    expire_time: int
    generated_at: int


def validate_token_request(app_id: str | None, app_certificate: str | None, channel_name: str | None) -> None:
    """Reject requests the signer cannot serve."""

    if not app_id or not app_certificate or not channel_name:
        raise TokenRequestError(MISSING_FIELDS_MESSAGE)
    if not is_valid_app_id(app_id):
        raise TokenRequestError(INVALID_APP_ID_MESSAGE)


def coerce_uid(value: object) -> int:
    """Return the leading integer of ``value`` as a uid, 0 when there is none.

    ``"12abc"`` gives 12 and ``"abc"`` gives 0.
    """

    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 0


def map_role(role: str | None) -> int:
    return ROLE_PUBLISHER if role == "publisher" else ROLE_SUBSCRIBER


def issue_token(
    app_id: str,
    app_certificate: str,
    channel_name: str,
    uid: object = 0,
    role: str = "audience",
    expire_seconds: float | None = None,
) -> IssuedToken:
    """Sign an RTC token valid for ``expire_seconds`` from now."""

    validate_token_request(app_id, app_certificate, channel_name)

    lifetime = expire_seconds if expire_seconds is not None else settings.default_token_expiry
    generated_at = int(time.time())
    expire_time = generated_at + int(lifetime)
    uid_value = coerce_uid(uid)

    token = RtcTokenBuilder.buildTokenWithUid(
        app_id,
        app_certificate,
        channel_name,
        uid_value,
        map_role(role),
        expire_time,
    )
    return IssuedToken(
        token=token,
        uid=uid_value,
        channel=channel_name,
        role=role,
        expire_time=expire_time,
        generated_at=generated_at,
    )
