"""Query-string driven entry point.

A viewer link carries ``appId``, ``cert``, ``channel`` and optionally ``uid``.
When those are present and the app id is well formed, the viewer joins the
channel as audience without any interactive form.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from .credential_store import CredentialStore, credential_store
from .credentials import INVALID_APP_ID_MESSAGE, is_valid_app_id
from .engine import RtcEngine, Uid
from .render import RenderSurface
from .session import SessionController
from .session_config import SessionConfig
from .token_provider import TokenProvider

logger = logging.getLogger(__name__)

MISSING_PARAMS_MESSAGE = "Missing required parameters: appId, cert, and channel are required"


class LaunchError(ValueError):
    """Raised when launch parameters cannot start a session."""


@dataclass(frozen=True, slots=True)
class LaunchParams:
    app_id: str
    app_certificate: str
    channel: str
    uid: Optional[str] = None


def parse_launch_params(params: Mapping[str, str]) -> LaunchParams:
    app_id = (params.get("appId") or "").strip()
    certificate = (params.get("cert") or "").strip()
    channel = (params.get("channel") or "").strip()

    if not app_id or not certificate or not channel:
        raise LaunchError(MISSING_PARAMS_MESSAGE)
    if not is_valid_app_id(app_id):
        raise LaunchError(INVALID_APP_ID_MESSAGE)

    uid = (params.get("uid") or "").strip() or None
    return LaunchParams(app_id=app_id, app_certificate=certificate, channel=channel, uid=uid)


def build_session_config(
    app_id: str,
    channel: str,
    *,
    app_certificate: Optional[str] = None,
    uid: Optional[Uid] = None,
    token: Optional[str] = None,
    credentials: Optional[CredentialStore] = None,
) -> SessionConfig:
    """Fill blank credentials from the saved store before building a config."""

    saved = (credentials or credential_store).load()
    return SessionConfig(
        app_id=(app_id or saved.app_id).strip(),
        channel=channel.strip(),
        token=token or None,
        uid=uid or None,
        app_certificate=(app_certificate or saved.app_certificate) or None,
    )


async def auto_join(
    params: Mapping[str, str],
    engine: RtcEngine,
    *,
    credentials: Optional[CredentialStore] = None,
    surface: Optional[RenderSurface] = None,
    token_provider: Optional[TokenProvider] = None,
) -> SessionController:
    """Join as audience from launch parameters and remember the credentials."""

    launch = parse_launch_params(params)
    store = credentials or credential_store
    config = build_session_config(
        launch.app_id,
        launch.channel,
        app_certificate=launch.app_certificate,
        uid=launch.uid,
        credentials=store,
    )
    provider = token_provider or TokenProvider(config, credentials=store, query_params=params)
    controller = SessionController(config, engine, token_provider=provider, surface=surface)

    await controller.join_as_audience()
    store.save(config.app_id, config.app_certificate)
    logger.info("Auto-joined channel %s", config.channel)
    return controller
