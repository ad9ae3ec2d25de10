from __future__ import annotations

import uuid
from typing import Any, Optional

import structlog
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException
from starlette.responses import FileResponse, JSONResponse, Response

from typeroute.errors import HttpError
from typeroute.runtime.binding import ControllerProperties
from typeroute.runtime.magic import FileRef, Res

logger = structlog.get_logger(__name__)


def _file_response(ref: FileRef, status: int = 200) -> Response:
    if ref.path is not None:
        return FileResponse(ref.path, status_code=status, media_type=ref.content_type, filename=ref.filename)
    headers = None
    if ref.filename:
        headers = {"content-disposition": f'attachment; filename="{ref.filename}"'}
    return Response(ref.content, status_code=status, media_type=ref.content_type, headers=headers)


def _request_path(properties: ControllerProperties) -> Optional[str]:
    url = getattr(properties.request, "url", None)
    return getattr(url, "path", None)


def success(value: Any, properties: ControllerProperties) -> Response:
    """Send a handler result unless a response was already sent."""
    if properties.responded:
        return properties.response
    if isinstance(value, Response):
        return properties.respond(value)
    if isinstance(value, Res):
        body = value.body
        if isinstance(body, FileRef):
            return properties.respond(_file_response(body, value.status_code))
        if body is None:
            return properties.respond(Response(status_code=value.status_code, headers=value.headers))
        return properties.respond(
            JSONResponse(jsonable_encoder(body), status_code=value.status_code, headers=value.headers)
        )
    if isinstance(value, FileRef):
        return properties.respond(_file_response(value))
    if value is None:
        logger.warning("null_result", path=_request_path(properties))
        return properties.respond(Response(status_code=204))
    return properties.respond(JSONResponse(jsonable_encoder(value)))


def error(err: BaseException, properties: ControllerProperties) -> Response:
    """
    Send an error. Errors carrying a status answer with it; anything else is
    logged under a reference id and answered with a 500.
    """
    if properties.responded:
        return properties.response
    if isinstance(err, HttpError):
        return properties.respond(JSONResponse(jsonable_encoder(err.to_body()), status_code=err.status))
    if isinstance(err, HTTPException):
        return properties.respond(
            JSONResponse({"error": {"message": err.detail}}, status_code=err.status_code, headers=err.headers)
        )
    status = getattr(err, "status", None) or getattr(err, "status_code", None)
    if isinstance(status, int) and not isinstance(status, bool):
        return properties.respond(JSONResponse({"error": {"message": str(err)}}, status_code=status))

    reference = uuid.uuid4().hex
    logger.error(
        "endpoint_failed",
        reference=reference,
        path=_request_path(properties),
        error_type=type(err).__name__,
        exc_info=err,
    )
    return properties.respond(
        JSONResponse({"error": {"message": "Internal Server Error", "reference": reference}}, status_code=500)
    )
