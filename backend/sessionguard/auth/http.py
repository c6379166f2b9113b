"""HTTP helpers for the unified result envelope."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException
from fastapi import Request
from fastapi.responses import JSONResponse

ENVELOPE_KEYS = frozenset({"code", "message", "data"})


def api_result(*, code: str = "OK", message: str = "success", data: Any = None) -> dict[str, Any]:
    """Build the {code,message,data} envelope used for every response."""
    return {"code": code, "message": message, "data": data}


async def handle_http_exception(_: Request, exc: HTTPException) -> JSONResponse:
    """Unify HTTP errors to the {code,message,data} envelope."""
    if isinstance(exc.detail, dict) and ENVELOPE_KEYS <= set(exc.detail):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.detail,
            headers=exc.headers,
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=api_result(code="HTTP_ERROR", message=str(exc.detail)),
        headers=exc.headers,
    )
