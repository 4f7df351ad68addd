"""Token acquisition with ordered fallbacks.

Strategies run in a fixed order and each is attempted once:

1. JSON ``POST`` to the token service (needs an App Certificate).
2. Query-string ``GET`` to the same service.
3. The vendor demo token server, with encrypted launch credentials when the
   launch parameters carry them, otherwise with locally saved credentials.

The first non-empty token wins.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional
from uuid import uuid4

import httpx

from ..core.config import settings
from .credential_store import CredentialStore, credential_store
from .session_config import Role, SessionConfig

logger = logging.getLogger(__name__)

NO_TOKEN_METHOD_MESSAGE = "No token generation method available. Please provide App Certificate."
DEMO_SERVER_ERROR_MESSAGE = "Generate token error, please check your appid and appcertificate parameters"

ENCRYPTED_TOKEN_PATH = "/v1/webdemo/encrypted/token"
DIRECT_TOKEN_PATH = "/v2/token/generate"
# RTC and RTM privileges.
DEMO_TOKEN_TYPES = [1, 2]


class TokenProviderError(RuntimeError):
    """Raised when every token strategy failed."""


class TokenProvider:
    """Obtain an access token for one session configuration."""

    def __init__(
        self,
        config: SessionConfig,
        *,
        client: Optional[httpx.AsyncClient] = None,
        credentials: Optional[CredentialStore] = None,
        query_params: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._credentials = credentials or credential_store
        self._query_params = dict(query_params or {})

    async def generate_token(self, role: Role = "audience") -> str:
        if self._client is not None:
            return await self._generate(self._client, role)
        async with httpx.AsyncClient(
            base_url=settings.token_service_url,
            timeout=settings.token_request_timeout,
        ) as client:
            return await self._generate(client, role)

    async def _generate(self, client: httpx.AsyncClient, role: Role) -> str:
        endpoint_error: Exception | None = None

        if self._config.app_certificate:
            for strategy in (self._from_service_post, self._from_service_get):
                try:
                    return await strategy(client, role)
                except (httpx.HTTPError, ValueError, TokenProviderError) as exc:
                    logger.warning("Token service strategy %s failed: %s", strategy.__name__, exc)
                    endpoint_error = exc

        try:
            token = await self._from_demo_server(client)
        except (httpx.HTTPError, ValueError, TokenProviderError) as exc:
            logger.warning("Demo token server failed: %s", exc)
            token = None
        if token:
            return token

        if endpoint_error is not None:
            raise TokenProviderError(str(endpoint_error)) from endpoint_error
        raise TokenProviderError(NO_TOKEN_METHOD_MESSAGE)

    async def _from_service_post(self, client: httpx.AsyncClient, role: Role) -> str:
        response = await client.post(
            settings.token_endpoint_path,
            json={
                "appId": self._config.app_id,
                "appCertificate": self._config.app_certificate,
                "channelName": self._config.channel,
                "uid": self._config.uid_or_zero,
                "role": role,
                "expireTimeInSeconds": settings.default_token_expiry,
            },
        )
        payload = _read_service_payload(response)
        return _require_token(payload.get("token"))

    async def _from_service_get(self, client: httpx.AsyncClient, role: Role) -> str:
        response = await client.get(
            settings.token_endpoint_path,
            params={
                "appId": self._config.app_id,
                "appCertificate": self._config.app_certificate or "",
                "channel": self._config.channel,
                "uid": str(self._config.uid_or_zero),
                "role": role,
            },
        )
        payload = _read_service_payload(response)
        if payload.get("code") != 0:
            raise TokenProviderError(payload.get("message") or "Token generation failed")
        data = _require_data(payload)
        return _require_token(data.get("token"))

    async def _from_demo_server(self, client: httpx.AsyncClient) -> Optional[str]:
        base_url = settings.agora_token_server_url.rstrip("/")
        encrypted_id = self._query_params.get("encryptedId")
        encrypted_secret = self._query_params.get("encryptedSecret")

        if encrypted_id and encrypted_secret:
            url = f"{base_url}{ENCRYPTED_TOKEN_PATH}"
            body: dict[str, Any] = {
                "channelName": self._config.channel,
                "encryptedId": encrypted_id,
                "encryptedSecret": encrypted_secret,
                "traceId": str(uuid4()),
                "src": "webdemo",
            }
        else:
            saved = self._credentials.load()
            if not saved.app_certificate:
                logger.warning("No app certificate available for token generation")
                return None
            url = f"{base_url}{DIRECT_TOKEN_PATH}"
            body = {
                "appId": saved.app_id or self._config.app_id,
                "appCertificate": saved.app_certificate,
                "channelName": self._config.channel,
                "expire": settings.demo_token_expiry,
                "src": "web",
                "types": DEMO_TOKEN_TYPES,
                "uid": self._config.uid_or_zero,
            }

        response = await client.post(url, json=body)
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("Demo token server returned a malformed body")
        if payload.get("code") != 0:
            raise TokenProviderError(payload.get("message") or DEMO_SERVER_ERROR_MESSAGE)

        data = _require_data(payload)
        appid = data.get("appid")
        if appid and appid != self._config.app_id:
            logger.warning("Demo token server issued a token for app id %s", appid)
        return data.get("token") or None


def _read_service_payload(response: httpx.Response) -> dict[str, Any]:
    """Return the JSON body of a token service reply, raising on errors."""

    if not response.is_success:
        try:
            detail = response.json().get("error")
        except (ValueError, AttributeError):
            detail = None
        raise TokenProviderError(detail or f"HTTP {response.status_code}")
    payload = response.json()
    if not isinstance(payload, dict):
        raise ValueError("Token service returned a malformed body")
    return payload


def _require_data(payload: dict[str, Any]) -> dict[str, Any]:
    data = payload.get("data") or {}
    if not isinstance(data, dict):
        raise ValueError("Token response data is not an object")
    return data


def _require_token(value: object) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError("Token service response did not include a token")
    return value
