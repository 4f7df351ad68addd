"""Data contracts for the token endpoint."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class TokenRequest(_CamelModel):
    # Presence is checked by the handler so missing fields produce a 400 body.
    app_id: str | None = Field(default=None, alias="appId", description="32 character hex App ID")
    app_certificate: str | None = Field(default=None, alias="appCertificate")
    channel_name: str | None = Field(default=None, alias="channelName")
    uid: str | int | None = Field(default=0, description="Numeric uid; 0 lets the engine assign one")
    role: str = Field(default="audience", description="publisher or audience")
    expire_time_in_seconds: float = Field(default=3600, alias="expireTimeInSeconds")


class TokenResponse(_CamelModel):
    token: str
    uid: int
    channel: str
    role: str
    expire_time: int = Field(..., alias="expireTime", description="Unix timestamp of privilege expiry")
    generated_at: int = Field(..., alias="generatedAt")


class TokenErrorResponse(BaseModel):
    error: str
    details: str | None = None


class TokenQueryData(BaseModel):
    token: str
    appid: str


class TokenQueryResponse(BaseModel):
    code: int = 0
    data: TokenQueryData


class TokenQueryErrorResponse(BaseModel):
    code: int = 1
    message: str
    error: str
