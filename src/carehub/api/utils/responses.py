from typing import Any, Dict, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def build_success(data: Any = None, meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "data": data}
    if meta is not None:
        body["meta"] = meta
    return body


def build_error(code: str, message: str, details: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"success": False, "error": error}


def ok(data: Any = None, meta: Optional[Dict[str, Any]] = None, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(build_success(data, meta)))


def created(data: Any = None) -> JSONResponse:
    return ok(data, status_code=status.HTTP_201_CREATED)


def fail(code: str, message: str, http_status: int, details: Any = None) -> JSONResponse:
    return JSONResponse(status_code=http_status, content=jsonable_encoder(build_error(code, message, details)))
