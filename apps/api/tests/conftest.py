"""Shared doubles for the RTC engine and token provider."""
from __future__ import annotations

import inspect
from typing import Any, Callable

import pytest

from agora_viewer.core.config import settings
from agora_viewer.services.credential_store import CredentialStore
from agora_viewer.services.token_provider import TokenProviderError

APP_ID = "0123456789abcdef0123456789abcdef"
APP_CERTIFICATE = "fedcba9876543210fedcba9876543210"
VALID_TOKEN = "007" + "x" * 60


class DummyTrack:
    def __init__(self, name: str = "track") -> None:
        self.name = name
        self.played: list[Any] = []
        self.stopped = 0
        self.closed = 0
        self.enabled: list[bool] = []
        self.stop_error: Exception | None = None
        self.play_error: Exception | None = None

    def play(self, target: Any = None) -> None:
        if self.play_error is not None:
            raise self.play_error
        self.played.append(target)

    def stop(self) -> None:
        self.stopped += 1
        if self.stop_error is not None:
            raise self.stop_error

    def close(self) -> None:
        self.closed += 1

    async def set_enabled(self, enabled: bool) -> None:
        self.enabled.append(enabled)


class DummyRemoteUser:
    def __init__(self, uid: int, *, has_audio: bool = False, has_video: bool = False) -> None:
        self.uid = uid
        self.has_audio = has_audio
        self.has_video = has_video
        self.audio_track = DummyTrack(f"audio-{uid}")
        self.video_track = DummyTrack(f"video-{uid}")


class DummyClient:
    def __init__(self) -> None:
        self.remote_users: list[DummyRemoteUser] = []
        self.connection_state = "DISCONNECTED"
        self.handlers: dict[str, Callable[..., Any]] = {}
        self.join_calls: list[tuple] = []
        self.published: list[list[Any]] = []
        self.subscribed: list[tuple[Any, str]] = []
        self.leave_calls = 0
        self.join_error: Exception | None = None
        self.publish_error: Exception | None = None
        self.subscribe_error: Exception | None = None
        self.leave_error: Exception | None = None

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self.handlers[event] = handler

    async def emit(self, event: str, *args: Any) -> None:
        result = self.handlers[event](*args)
        if inspect.isawaitable(result):
            await result

    async def join(self, app_id: str, channel: str, token: str | None, uid: Any) -> Any:
        self.join_calls.append((app_id, channel, token, uid))
        if self.join_error is not None:
            raise self.join_error
        self.connection_state = "CONNECTED"
        return uid or 4242

    async def publish(self, tracks: list[Any]) -> None:
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append(list(tracks))

    async def subscribe(self, user: Any, media_type: str) -> None:
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.subscribed.append((user, media_type))

    async def leave(self) -> None:
        self.leave_calls += 1
        self.connection_state = "DISCONNECTED"
        if self.leave_error is not None:
            raise self.leave_error


class DummyEngine:
    def __init__(self) -> None:
        self.client = DummyClient()
        self.created: list[tuple[str, str]] = []
        self.audio_tracks: list[DummyTrack] = []
        self.video_tracks: list[DummyTrack] = []
        self.create_client_error: Exception | None = None
        self.video_play_error: Exception | None = None

    def create_client(self, mode: str, codec: str) -> DummyClient:
        if self.create_client_error is not None:
            raise self.create_client_error
        self.created.append((mode, codec))
        return self.client

    async def create_microphone_audio_track(self) -> DummyTrack:
        track = DummyTrack("microphone")
        self.audio_tracks.append(track)
        return track

    async def create_camera_video_track(self) -> DummyTrack:
        track = DummyTrack("camera")
        track.play_error = self.video_play_error
        self.video_tracks.append(track)
        return track


class DummyTokenProvider:
    def __init__(self, token: str = VALID_TOKEN, error: Exception | None = None) -> None:
        self.token = token
        self.error = error
        self.calls: list[str] = []

    async def generate_token(self, role: str = "audience") -> str:
        self.calls.append(role)
        if self.error is not None:
            raise self.error
        return self.token


@pytest.fixture(autouse=True)
def _clear_env_credentials(monkeypatch):
    monkeypatch.setattr(settings, "agora_app_id", "", raising=False)
    monkeypatch.setattr(settings, "agora_app_certificate", "", raising=False)


@pytest.fixture
def engine() -> DummyEngine:
    return DummyEngine()


@pytest.fixture
def token_provider() -> DummyTokenProvider:
    return DummyTokenProvider()


@pytest.fixture
def failing_token_provider() -> DummyTokenProvider:
    return DummyTokenProvider(error=TokenProviderError("service down"))


@pytest.fixture
def credential_store(tmp_path) -> CredentialStore:
    return CredentialStore(tmp_path / "credentials.json")
