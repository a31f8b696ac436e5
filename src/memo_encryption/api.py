"""
Remote encryption endpoint for the server-held-key deployment.

POST /api/encrypt  {"data": str | [str]}  ->  {"encrypted": ...}
POST /api/decrypt  {"data": str | {"cipher", "iv"} | [...]}  ->  {"decrypted": ...}

Errors are returned as {"error": str, "message"?: str}:
- 400 when the body is not JSON or "data" is missing/null
- 500 when encryption fails, or when single-value decryption fails
Batch decryption never fails per item; failing items carry the sentinel.
A missing server secret is logged here and reported to clients only as a
generic failure.

Run with: uvicorn --factory memo_encryption.api:create_app
"""

from __future__ import annotations

import json
import logging
from typing import Dict, List, Optional, Type, Union

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from .config import Settings
from .envelope import StoredValue
from .errors import ConfigurationError, EnvelopeError, KeyUnavailableError
from .log import configure_logging
from .service import FieldEncryptionService, build_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["encryption"])


# =============================================================================
# SCHEMAS
# =============================================================================


class DataRequest(BaseModel):
    data: Optional[Union[str, List[Optional[str]]]] = None


# Split-format deployments return {"cipher", "iv"} objects instead of strings
EncryptedValue = Union[str, Dict[str, str]]


class DecryptRequest(BaseModel):
    data: Optional[Union[EncryptedValue, List[Optional[EncryptedValue]]]] = None


class EncryptResponse(BaseModel):
    encrypted: Union[EncryptedValue, List[EncryptedValue]]


class DecryptResponse(BaseModel):
    decrypted: Union[str, List[str]]


# =============================================================================
# HELPERS
# =============================================================================


def get_service(request: Request) -> FieldEncryptionService:
    return request.app.state.service


def _error(status: int, error: str, message: Optional[str] = None) -> JSONResponse:
    body = {"error": error}
    if message is not None:
        body["message"] = message
    return JSONResponse(status_code=status, content=body)


async def _read_data(
    request: Request, model: Type[BaseModel] = DataRequest
) -> Union[StoredValue, List[StoredValue], JSONResponse]:
    """Parse the request body, or return a 400 response."""
    try:
        payload = await request.json()
        parsed = model.model_validate(payload)
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        logger.info("Rejected request body: %s", type(e).__name__)
        return _error(400, "Request body must be JSON with a 'data' string or array.")

    if parsed.data is None:
        return _error(400, "The 'data' field is required.")
    if isinstance(parsed.data, list):
        return [item or "" for item in parsed.data]
    return parsed.data


def _failure(error: str, exc: EnvelopeError) -> JSONResponse:
    if isinstance(exc, ConfigurationError):
        logger.error("Server encryption key is not configured")
        return _error(500, error)
    if isinstance(exc, KeyUnavailableError):
        return _error(500, error)
    return _error(500, error, str(exc))


# =============================================================================
# ENDPOINTS
# =============================================================================


@router.post("/encrypt", response_model=EncryptResponse)
async def encrypt_endpoint(
    request: Request,
    service: FieldEncryptionService = Depends(get_service),
):
    data = await _read_data(request)
    if isinstance(data, JSONResponse):
        return data

    try:
        if isinstance(data, list):
            encrypted = await service.encrypt_batch(data)
        else:
            encrypted = await service.encrypt(data)
    except EnvelopeError as e:
        logger.error("Encryption failed: %s", type(e).__name__)
        return _failure("Encryption failed.", e)

    return {"encrypted": encrypted}


@router.post("/decrypt", response_model=DecryptResponse)
async def decrypt_endpoint(
    request: Request,
    service: FieldEncryptionService = Depends(get_service),
):
    data = await _read_data(request, DecryptRequest)
    if isinstance(data, JSONResponse):
        return data

    try:
        if isinstance(data, list):
            decrypted = await service.decrypt_batch(data)
        else:
            decrypted = await service.decrypt(data)
    except EnvelopeError as e:
        # Log only the failure class and the input length, never the content
        logger.error(
            "Decryption failed: %s (length=%s)",
            type(e).__name__,
            len(data) if isinstance(data, str) else None,
        )
        return _failure("Decryption failed.", e)

    return {"decrypted": decrypted}


# =============================================================================
# APP FACTORY
# =============================================================================


def create_app(
    service: Optional[FieldEncryptionService] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        service: Service to serve (built from settings when omitted)
        settings: Settings (read from the environment when omitted)
    """
    if service is None:
        settings = settings or Settings.from_env()
        configure_logging(settings.log_level)
        service = build_service(settings)

    app = FastAPI(title="memo-encryption")
    app.state.service = service
    app.include_router(router)
    return app
