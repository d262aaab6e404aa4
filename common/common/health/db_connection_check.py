# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""Readiness depending on the database connection"""

import logging

from sqlalchemy import text

from fastapi import Response

import common.db.postgres as db
from common.health import base

_logger = logging.getLogger(__name__)


def check_health_of_db(session: db.Session) -> bool:
    """True if a trivial statement can be executed on the session"""
    try:
        session.execute(text('SELECT 1'))
        return session.is_active
    except Exception:
        _logger.exception("Error in health check db probe.")
        return False


class ReadinessHealthResponseWithDBInject(base.HealthResponse):
    db_connectivity: base.HealthStatus = base.HealthStatus.unhealthy


class HealthAPIRouterWithDBInject(base.HealthAPIRouter):
    """Health router whose readiness requires the database of `common.db.postgres`"""

    def __init__(
        self,
        readiness_response_model: type[ReadinessHealthResponseWithDBInject] = ReadinessHealthResponseWithDBInject,
        liveness_response_model: type[base.HealthResponse] = base.HealthResponse,
        debug_response_model: type[base.HealthResponse] = base.HealthResponse,
        **kwargs,
    ) -> None:
        super().__init__(readiness_response_model, liveness_response_model, debug_response_model, **kwargs)

    def get_readiness_probe(self, response: Response, session: db.inject) -> ReadinessHealthResponseWithDBInject:
        result = ReadinessHealthResponseWithDBInject(db_connectivity=check_health_of_db(session))
        return self.resolve(result, response)
