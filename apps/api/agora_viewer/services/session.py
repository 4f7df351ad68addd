"""Session controller for joining an Agora RTC channel.

The controller owns at most one engine client and walks it through
``IDLE -> JOINING -> JOINED -> IDLE``. Audience members only subscribe;
publishers also create and publish a microphone and a camera track once the
join succeeded. Remote users are mirrored from the engine on a fixed interval
while joined.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.config import settings
from .credentials import INVALID_APP_ID_MESSAGE, is_valid_app_id, is_valid_token
from .engine import (
    CONNECTED,
    EVENT_CONNECTION_STATE_CHANGE,
    EVENT_USER_LEFT,
    EVENT_USER_PUBLISHED,
    EVENT_USER_UNPUBLISHED,
    LocalTrack,
    MediaType,
    RemoteUser,
    RtcClient,
    RtcEngine,
    Uid,
)
from .render import LOCAL_PLAYER_SLOT, RenderSlots, RenderSurface, remote_slot_key
from .session_config import Role, SessionConfig
from .token_provider import TokenProvider

logger = logging.getLogger(__name__)

APP_ID_REQUIRED_MESSAGE = "App ID is required and cannot be empty"
CHANNEL_REQUIRED_MESSAGE = "Channel name is required and cannot be empty"
TOKEN_GENERATION_FAILED_MESSAGE = (
    "Token generation failed. Please check your App Certificate or server configuration."
)
TOKEN_EXPIRED_MESSAGE = "Token has expired. Please generate a new token."

JOIN_ERROR_MESSAGES: Dict[str, str] = {
    "CAN_NOT_GET_GATEWAY_SERVER": "Invalid App ID or network connection issue. Please verify your App ID is correct.",
    "INVALID_TOKEN": "Invalid token. Please check your token or generate a new one.",
    "TOKEN_EXPIRED": TOKEN_EXPIRED_MESSAGE,
    "INVALID_VENDOR_KEY": "Invalid App ID. Please check your App ID from Agora Console.",
    "DYNAMIC_KEY_TIMEOUT": TOKEN_EXPIRED_MESSAGE,
}

# The client is always created in these modes regardless of the config.
CLIENT_MODE = "rtc"
CLIENT_CODEC = "vp8"


class SessionError(RuntimeError):
    """Join or leave failure with a user-facing message."""


class SessionState(str, enum.Enum):
    IDLE = "idle"
    JOINING = "joining"
    JOINED = "joined"


@dataclass(slots=True)
class RemoteUserView:
    uid: Uid
    has_audio: bool
    has_video: bool


@dataclass
class Session:
    """Resources held while connected to a channel."""

    client: RtcClient
    is_publisher: bool = False
    uid: Optional[Uid] = None
    local_audio_track: Optional[LocalTrack] = None
    local_video_track: Optional[LocalTrack] = None
    poll_task: Optional[asyncio.Task[None]] = None
    render_tasks: Dict[str, asyncio.Task[None]] = field(default_factory=dict)


def describe_join_error(error: BaseException) -> str:
    """Translate an engine join failure into a user-facing message."""

    code = getattr(error, "code", None)
    if code in JOIN_ERROR_MESSAGES:
        return JOIN_ERROR_MESSAGES[code]
    message = getattr(error, "message", None) or str(error)
    return f"Failed to join channel: {message or code or 'Unknown error'}"


class SessionController:
    """Drive one RTC session and expose its state."""

    def __init__(
        self,
        config: SessionConfig,
        engine: RtcEngine,
        *,
        token_provider: Optional[TokenProvider] = None,
        surface: Optional[RenderSurface] = None,
    ) -> None:
        self.config = config
        self._engine = engine
        self._token_provider = token_provider or TokenProvider(config)
        self._surface: RenderSurface = surface or RenderSlots()
        self._session: Optional[Session] = None
        self._lock = asyncio.Lock()

        self.state = SessionState.IDLE
        self.error: Optional[str] = None
        self.remote_users: List[RemoteUserView] = []

    async def __aenter__(self) -> "SessionController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    @property
    def is_joining(self) -> bool:
        return self.state is SessionState.JOINING

    @property
    def is_joined(self) -> bool:
        return self.state is SessionState.JOINED

    @property
    def is_publisher(self) -> bool:
        return bool(self._session and self._session.is_publisher)

    @property
    def uid(self) -> Optional[Uid]:
        return self._session.uid if self._session else None

    def is_connected(self) -> bool:
        return bool(self._session and self._session.client.connection_state == CONNECTED)

    def get_remote_users(self) -> List[RemoteUser]:
        if not self._session:
            return []
        return list(self._session.client.remote_users)

    def get_local_tracks(self) -> Dict[str, Optional[LocalTrack]]:
        session = self._session
        return {
            "video": session.local_video_track if session else None,
            "audio": session.local_audio_track if session else None,
        }

    async def generate_token(self, role: Role = "audience") -> str:
        return await self._token_provider.generate_token(role)

    async def join_as_audience(self) -> None:
        await self.join("audience")

    async def join_as_publisher(self) -> None:
        await self.join("publisher")

    async def join(self, role: Role = "audience") -> None:
        """Join the configured channel; a call while joining or joined is ignored."""

        if self.state is not SessionState.IDLE:
            logger.info("Join ignored; session is already %s", self.state.value)
            return

        async with self._lock:
            if self.state is not SessionState.IDLE:
                return
            self.state = SessionState.JOINING
            self.error = None
            try:
                await self._join_locked(role)
            except SessionError as exc:
                self.error = str(exc)
                raise
            except Exception as exc:  # noqa: BLE001 - any failure must leave the controller joinable
                logger.exception("Unexpected error while joining: %s", exc)
                self.error = f"Failed to join channel: {exc}"
                raise SessionError(self.error) from exc
            finally:
                if self._session is None:
                    self.state = SessionState.IDLE
            self.state = SessionState.JOINED

            if role == "publisher":
                await self._create_and_publish_tracks()

    async def _join_locked(self, role: Role) -> None:
        app_id = (self.config.app_id or "").strip()
        channel = (self.config.channel or "").strip()
        if not app_id:
            raise SessionError(APP_ID_REQUIRED_MESSAGE)
        if not channel:
            raise SessionError(CHANNEL_REQUIRED_MESSAGE)
        if not is_valid_app_id(app_id):
            raise SessionError(INVALID_APP_ID_MESSAGE)

        token = self.config.token
        if token and not is_valid_token(token):
            logger.warning("Provided token appears to be invalid")

        if not token:
            try:
                token = await self._token_provider.generate_token(role)
            except Exception as exc:  # noqa: BLE001 - providers are injected and may fail in any way
                logger.error("Token generation failed: %s", exc)
                raise SessionError(TOKEN_GENERATION_FAILED_MESSAGE) from exc
            logger.info("Generated token for %s", role)

        client = self._engine.create_client(CLIENT_MODE, CLIENT_CODEC)
        self._attach_handlers(client)
        session = Session(client=client, is_publisher=role == "publisher")

        try:
            session.uid = await client.join(app_id, channel, token, self.config.uid or None)
        except Exception as exc:  # noqa: BLE001 - engine errors are mapped to messages
            logger.error("Failed to join channel: %s", exc)
            raise SessionError(describe_join_error(exc)) from exc

        logger.info("Joined channel %s as %s with uid %s", channel, role, session.uid)
        self._session = session
        self._refresh_remote_users()
        session.poll_task = asyncio.create_task(self._poll_remote_users())

    async def _create_and_publish_tracks(self) -> None:
        session = self._session
        if session is None or not session.is_publisher:
            return

        try:
            session.local_audio_track = await self._engine.create_microphone_audio_track()
            session.local_video_track = await self._engine.create_camera_video_track()
            await session.client.publish([session.local_audio_track, session.local_video_track])
        except Exception as exc:  # noqa: BLE001 - the join itself already succeeded
            logger.exception("Failed to create and publish tracks: %s", exc)
            self.error = f"Failed to publish local tracks: {exc}"
            self._release_local_tracks(session)
            return

        logger.info("Local tracks published successfully")
        local_slot = self._surface.find_slot(LOCAL_PLAYER_SLOT)
        if local_slot is None:
            return
        try:
            session.local_video_track.play(local_slot)
        except Exception as exc:  # noqa: BLE001 - the tracks are already published
            logger.warning("Failed to play local video preview: %s", exc)
            self.error = f"Failed to play local video: {exc}"

    async def leave(self) -> None:
        """Release tracks and leave the channel; does nothing when not connected."""

        async with self._lock:
            session = self._session
            if session is None:
                return

            self._cancel_background_tasks(session)
            self._release_local_tracks(session)
            self._session = None
            self.remote_users = []
            self.state = SessionState.IDLE

            try:
                await session.client.leave()
            except Exception as exc:  # noqa: BLE001 - surfaced to the caller below
                logger.error("Failed to leave channel: %s", exc)
                self.error = f"Failed to leave channel: {exc}"
                raise SessionError(self.error) from exc
            finally:
                session.is_publisher = False

            self.error = None
            logger.info("Left channel")

    async def aclose(self) -> None:
        """Tear down the session, logging rather than raising leave failures."""

        try:
            await self.leave()
        except SessionError as exc:
            logger.warning("Leave during teardown failed: %s", exc)

    async def mute_local_audio(self, mute: bool = True) -> None:
        track = self._session.local_audio_track if self._session else None
        if track is not None:
            await track.set_enabled(not mute)

    async def mute_local_video(self, mute: bool = True) -> None:
        track = self._session.local_video_track if self._session else None
        if track is not None:
            await track.set_enabled(not mute)

    def _release_local_tracks(self, session: Session) -> None:
        # Each track is released independently; one failure must not block the other.
        if session.local_video_track is not None:
            try:
                session.local_video_track.stop()
                session.local_video_track.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to release local video track: %s", exc)
            session.local_video_track = None

        if session.local_audio_track is not None:
            try:
                session.local_audio_track.stop()
                session.local_audio_track.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to release local audio track: %s", exc)
            session.local_audio_track = None

    def _cancel_background_tasks(self, session: Session) -> None:
        if session.poll_task is not None:
            session.poll_task.cancel()
            session.poll_task = None
        for task in session.render_tasks.values():
            task.cancel()
        session.render_tasks.clear()

    async def _poll_remote_users(self) -> None:
        while True:
            await asyncio.sleep(settings.remote_user_poll_interval)
            self._refresh_remote_users()

    def _refresh_remote_users(self) -> None:
        session = self._session
        if session is None or session.client.connection_state != CONNECTED:
            return
        self.remote_users = [
            RemoteUserView(uid=user.uid, has_audio=bool(user.has_audio), has_video=bool(user.has_video))
            for user in session.client.remote_users
        ]
        logger.debug("Remote users updated: %d", len(self.remote_users))

    def _attach_handlers(self, client: RtcClient) -> None:
        client.on(EVENT_USER_PUBLISHED, self._on_user_published)
        client.on(EVENT_USER_UNPUBLISHED, self._on_user_unpublished)
        client.on(EVENT_USER_LEFT, self._on_user_left)
        client.on(EVENT_CONNECTION_STATE_CHANGE, self._on_connection_state_change)

    async def _on_user_published(self, user: RemoteUser, media_type: MediaType) -> None:
        session = self._session
        if session is None:
            return

        try:
            await session.client.subscribe(user, media_type)
        except Exception as exc:  # noqa: BLE001 - a failed subscription never ends the session
            logger.error("Failed to subscribe to user %s (%s): %s", user.uid, media_type, exc)
            return
        if self._session is not session:
            return
        logger.info("Subscribed to user %s (%s)", user.uid, media_type)

        if media_type == "video":
            key = remote_slot_key(user.uid)
            previous = session.render_tasks.pop(key, None)
            if previous is not None:
                previous.cancel()
            session.render_tasks[key] = asyncio.create_task(self._place_remote_video(session, user))
        elif media_type == "audio" and user.audio_track is not None:
            user.audio_track.play()
            logger.info("Audio track playing for user %s", user.uid)

    async def _place_remote_video(self, session: Session, user: RemoteUser) -> None:
        key = remote_slot_key(user.uid)
        try:
            for attempt in range(settings.render_retry_limit):
                track = user.video_track
                slot = self._surface.find_slot(key)
                if slot is not None and track is not None:
                    track.play(slot)
                    logger.info("Playing video for user %s", user.uid)
                    return
                if attempt + 1 < settings.render_retry_limit:
                    await asyncio.sleep(settings.render_retry_delay)
            logger.warning(
                "Render slot %s not available after %d attempts; giving up",
                key,
                settings.render_retry_limit,
            )
        finally:
            if session.render_tasks.get(key) is asyncio.current_task():
                session.render_tasks.pop(key, None)

    def _on_user_unpublished(self, user: RemoteUser, media_type: MediaType) -> None:
        logger.info("User %s unpublished %s", user.uid, media_type)
        if media_type == "video":
            self._clear_remote_slot(user.uid)

    def _on_user_left(self, user: RemoteUser) -> None:
        logger.info("User %s left", user.uid)
        self._clear_remote_slot(user.uid)

    def _on_connection_state_change(self, current: str, previous: str) -> None:
        logger.info("Connection state changed: %s -> %s", previous, current)

    def _clear_remote_slot(self, uid: Uid) -> None:
        key = remote_slot_key(uid)
        if self._session is not None:
            task = self._session.render_tasks.pop(key, None)
            if task is not None:
                task.cancel()
        self._surface.clear_slot(key)

