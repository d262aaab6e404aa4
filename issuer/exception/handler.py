# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import logging

from fastapi import Request, FastAPI
from fastapi.responses import JSONResponse

from .revocation_errors import RevocationError, PersistenceError

_logger = logging.getLogger(__name__)


def configure_exception_handlers(app: FastAPI) -> None:
    """
    Configure exception handlers rendering status list errors in the same
    shape as HTTPExceptions ({"detail": ...}) with an additional machine readable error code.

    Args:
        app (FastAPI): the instance to configure the handlers for.
    """

    @app.exception_handler(RevocationError)
    async def revocation_exception_handler(request: Request, exc: RevocationError):
        if isinstance(exc, PersistenceError):
            _logger.error(f"Status list persistence failed: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error": exc.error},
        )
