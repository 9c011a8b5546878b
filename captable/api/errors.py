"""Exception handlers translating domain errors into HTTP responses."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from captable.core.errors import CapTableError

logger = logging.getLogger(__name__)


async def cap_table_error_handler(request: Request, exc: CapTableError) -> JSONResponse:
    logger.info(
        "Request rejected",
        extra={"path": request.url.path, "code": exc.code, "status_code": exc.status_code},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(application: FastAPI) -> None:
    application.add_exception_handler(CapTableError, cap_table_error_handler)  # type: ignore[arg-type]


__all__ = ["cap_table_error_handler", "register_exception_handlers"]
