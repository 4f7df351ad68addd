"""Connection settings for one RTC session."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from .engine import Uid

Role = Literal["publisher", "audience"]
ClientMode = Literal["rtc", "live"]
VideoCodec = Literal["vp8", "vp9", "h264"]


@dataclass(frozen=True, slots=True)
class SessionConfig:
    app_id: str
    channel: str
    token: Optional[str] = None
    uid: Optional[Uid] = None
    app_certificate: Optional[str] = None
    mode: ClientMode = "rtc"
    codec: VideoCodec = "vp8"

    @property
    def uid_or_zero(self) -> Uid:
        return self.uid or 0
