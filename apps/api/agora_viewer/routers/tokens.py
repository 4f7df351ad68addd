"""RTC token issuance endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..core.config import settings
from ..schemas import tokens as schemas
from ..services import tokens as token_service

logger = logging.getLogger(__name__)

router = APIRouter()

GENERATION_FAILED_MESSAGE = "Failed to generate token"


@router.post(
    "/token",
    response_model=schemas.TokenResponse,
    responses={400: {"model": schemas.TokenErrorResponse}, 500: {"model": schemas.TokenErrorResponse}},
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": schemas.TokenRequest.model_json_schema(by_alias=True)}},
        }
    },
)
async def create_token(request: Request):
    """Sign a token from credentials supplied in the request body.

    The body is validated here rather than by FastAPI so that every failure
    is reported with the ``{error, details}`` shape callers expect.
    """

    try:
        data = await request.json()
    except ValueError as exc:
        logger.warning("Unreadable token request body: %s", exc)
        body = schemas.TokenErrorResponse(error=GENERATION_FAILED_MESSAGE, details=str(exc))
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump())

    try:
        payload = schemas.TokenRequest.model_validate(data if isinstance(data, dict) else {})
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        body = schemas.TokenErrorResponse(error=f"Invalid {field}: {first['msg']}")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump(exclude_none=True))

    try:
        issued = token_service.issue_token(
            payload.app_id or "",
            payload.app_certificate or "",
            payload.channel_name or "",
            uid=payload.uid,
            role=payload.role,
            expire_seconds=payload.expire_time_in_seconds,
        )
    except token_service.TokenRequestError as exc:
        body = schemas.TokenErrorResponse(error=str(exc))
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump(exclude_none=True))
    except Exception as exc:  # noqa: BLE001 - signer failures are reported, not raised
        logger.exception("Token generation error: %s", exc)
        body = schemas.TokenErrorResponse(error=GENERATION_FAILED_MESSAGE, details=str(exc))
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump())

    return schemas.TokenResponse(
        token=issued.token,
        uid=issued.uid,
        channel=issued.channel,
        role=issued.role,
        expire_time=issued.expire_time,
        generated_at=issued.generated_at,
    )


@router.get(
    "/token",
    response_model=schemas.TokenQueryResponse,
    responses={400: {"model": schemas.TokenQueryErrorResponse}, 500: {"model": schemas.TokenQueryErrorResponse}},
)
async def create_token_from_query(
    appId: str | None = None,  # noqa: N803 - query parameter names are part of the contract
    appCertificate: str | None = None,  # noqa: N803
    channel: str | None = None,
    uid: str = "0",
    role: str = "audience",
):
    """Sign a token from query-string credentials with a fixed one hour expiry."""

    try:
        issued = token_service.issue_token(
            appId or "",
            appCertificate or "",
            channel or "",
            uid=uid,
            role=role,
            expire_seconds=settings.default_token_expiry,
        )
    except token_service.TokenRequestError as exc:
        body = schemas.TokenQueryErrorResponse(message=str(exc), error=str(exc))
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump())
    except Exception as exc:  # noqa: BLE001
        logger.exception("Token generation error: %s", exc)
        body = schemas.TokenQueryErrorResponse(message=GENERATION_FAILED_MESSAGE, error=str(exc))
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump())

    return schemas.TokenQueryResponse(data=schemas.TokenQueryData(token=issued.token, appid=appId or ""))
