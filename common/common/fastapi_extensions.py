# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import contextlib
import logging
from typing import Callable

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, Request, HTTPException
from fastapi.exception_handlers import http_exception_handler

from common.logging.setup import configure_logging, get_log_id
from common.version import get_version
from common import config as conf

_logger = logging.getLogger(__name__)


class ExtendedFastAPI(FastAPI):
    """
    FastAPI application configured from a `common.config.Config`:
     - title & version from the config & environment
     - logging configured on startup
     - correlation id per request (x-request-id), included in the logs
     - documentation endpoints & CORS only if enabled
     - unexpected errors answered with 500 referencing the correlation id
    """

    def __init__(
        self,
        config: Callable[[], conf.Config],
        lifespan_functions: list[contextlib.AbstractContextManager] | None = None,
        **kwargs,
    ) -> None:
        """
        config: factory of the configuration, eg. the config class itself
        lifespan_functions: context managers entered on startup and exited on shutdown
        """
        self.config_instance = config()
        self.lifespan_functions = lifespan_functions or []

        if not self.config_instance.enable_documentation_endpoints:
            _logger.info("Deactivate documentation endpoints.")
            kwargs.update(docs_url=None, redoc_url=None, openapi_url=None)
        kwargs.setdefault("title", self.config_instance.app_name)
        kwargs.setdefault("version", get_version())
        kwargs.setdefault("lifespan", ExtendedFastAPI._lifespan)

        super().__init__(**kwargs)

        if self.config_instance.enable_cors:
            self._enable_cors()
        self.add_middleware(CorrelationIdMiddleware)
        self.add_exception_handler(Exception, self.unhandled_exception_handler)

    @staticmethod
    @contextlib.asynccontextmanager
    async def _lifespan(app: "ExtendedFastAPI"):
        configure_logging(app.config_instance)
        with contextlib.ExitStack() as stack:
            for lifespan_function in app.lifespan_functions:
                stack.enter_context(lifespan_function)
            yield

    def _enable_cors(self) -> None:
        from fastapi.middleware.cors import CORSMiddleware

        _logger.info("Activate CORs support.")
        allowed_origins = [self.config_instance.external_url or '*']
        if self.config_instance.additional_allowed_origins:
            allowed_origins += self.config_instance.additional_allowed_origins.split(',')
        self.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    async def unhandled_exception_handler(self, request: Request, exc: Exception):
        if not isinstance(exc, HTTPException):
            # the traceback itself is logged by starlette
            _logger.error(f"Unhandled exception on {request.method} {request.url.path}.")
            exc = HTTPException(
                500,
                f'Could not process the request. Please contact support with request id {get_log_id()}',
            )
        return await http_exception_handler(request, exc)
