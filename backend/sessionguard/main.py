"""FastAPI application entrypoint for the session-and-trust API."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import HTTPException
from fastapi import Request
from fastapi.responses import JSONResponse

import sessionguard.runtime as runtime
from sessionguard.api.routers.auth import router as auth_router
from sessionguard.auth.http import handle_http_exception


def startup() -> None:
    """Prepare runtime state before handling traffic."""
    runtime.startup()


@asynccontextmanager
async def lifespan(_: FastAPI):
    startup()
    yield


app = FastAPI(lifespan=lifespan)
app.include_router(auth_router)


@app.exception_handler(HTTPException)
async def handle_http_exception_route(request: Request, exc: HTTPException) -> JSONResponse:
    return await handle_http_exception(request, exc)
