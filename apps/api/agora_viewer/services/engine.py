"""Structural interface of the RTC engine the session controller drives.

The transport, codecs and signaling belong to the vendor SDK. An adapter for
that SDK satisfies these protocols; the controller never imports it directly.
"""
from __future__ import annotations

from typing import Any, Callable, Literal, Optional, Protocol, Sequence, Union

MediaType = Literal["audio", "video"]
Uid = Union[str, int]

EVENT_USER_PUBLISHED = "user-published"
EVENT_USER_UNPUBLISHED = "user-unpublished"
EVENT_USER_LEFT = "user-left"
EVENT_CONNECTION_STATE_CHANGE = "connection-state-change"

CONNECTED = "CONNECTED"


class EngineError(RuntimeError):
    """Failure reported by the engine, carrying the vendor error code."""

    def __init__(self, code: str | None = None, message: str = "") -> None:
        super().__init__(message or code or "Unknown error")
        self.code = code
        self.message = message


class RemoteTrack(Protocol):
    def play(self, target: Any = None) -> None: ...

    def stop(self) -> None: ...


class LocalTrack(Protocol):
    def play(self, target: Any = None) -> None: ...

    def stop(self) -> None: ...

    def close(self) -> None: ...

    async def set_enabled(self, enabled: bool) -> None: ...


class RemoteUser(Protocol):
    uid: Uid
    has_audio: bool
    has_video: bool
    audio_track: Optional[RemoteTrack]
    video_track: Optional[RemoteTrack]


class RtcClient(Protocol):
    """Handle to one engine connection.

    Handlers registered with :meth:`on` may be coroutine functions; the engine
    awaits or schedules them on the running loop.
    """

    @property
    def remote_users(self) -> Sequence[RemoteUser]: ...

    @property
    def connection_state(self) -> str: ...

    def on(self, event: str, handler: Callable[..., Any]) -> None: ...

    async def join(self, app_id: str, channel: str, token: str | None, uid: Uid | None) -> Uid: ...

    async def publish(self, tracks: Sequence[LocalTrack]) -> None: ...

    async def subscribe(self, user: RemoteUser, media_type: MediaType) -> None: ...

    async def leave(self) -> None: ...


class RtcEngine(Protocol):
    def create_client(self, mode: str, codec: str) -> RtcClient: ...

    async def create_microphone_audio_track(self) -> LocalTrack: ...

    async def create_camera_video_track(self) -> LocalTrack: ...
