# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""Health checks of the status list issuer"""
import logging

from fastapi import Response

from common import health
import common.db.postgres as db
import common.key_configuration as key
import issuer.db.status_list as sl_db
import issuer.config as conf

_logger = logging.getLogger(__name__)


class ReadinessHealthResponse(health.ReadinessHealthResponseWithDBInject):
    status_list_present: health.HealthStatus = health.HealthStatus.unhealthy
    """Credentials can only be issued once a status list exists"""


class LivenessHealthResponse(health.HealthResponse):
    signing_key_is_available: health.HealthStatus = health.HealthStatus.unhealthy


class DebugHealthResponse(health.HealthResponse):
    config_id_present: health.HealthStatus = health.HealthStatus.unhealthy
    config_revocation_url_present: health.HealthStatus = health.HealthStatus.unhealthy
    status_lists_signed: health.HealthStatus = health.HealthStatus.unhealthy


class IssuerHealthAPIRouter(health.HealthAPIRouterWithDBInject):
    def __init__(self) -> None:
        super().__init__(
            readiness_response_model=ReadinessHealthResponse,
            liveness_response_model=LivenessHealthResponse,
            debug_response_model=DebugHealthResponse,
        )

    def get_readiness_probe(self, response: Response, config: conf.inject, session: db.inject) -> ReadinessHealthResponse:
        result = ReadinessHealthResponse(db_connectivity=health.check_health_of_db(session))
        try:
            result.status_list_present = bool(sl_db.get_status_lists(session, issuer=config.issuer_id, purpose=config.status_list_purpose))
        except Exception:
            _logger.exception("Status lists could not be loaded for the readiness probe.")
        return self.resolve(result, response)

    def get_liveness_probe(self, response: Response, key_conf: key.inject) -> LivenessHealthResponse:
        """Without the signing key no status list can be updated, which only a restart can resolve"""
        result = LivenessHealthResponse()
        try:
            result.signing_key_is_available = bool(key_conf.get_pk())
        except Exception:
            _logger.exception("Cannot get signing public key.")
        return self.resolve(result, response)

    def get_debug_probe(self, response: Response, config: conf.inject, session: db.inject) -> DebugHealthResponse:
        result = DebugHealthResponse(
            config_id_present=bool(config.issuer_id),
            config_revocation_url_present=bool(config.revocation_url),
        )
        unsigned = [status_list.id for status_list in sl_db.get_status_lists(session, issuer=config.issuer_id) if not status_list.status_credential_jwt]
        if unsigned:
            _logger.error(f"Status lists without signed status list credential: {unsigned}")
        result.status_lists_signed = not unsigned
        return self.resolve(result, response)


router = IssuerHealthAPIRouter()
