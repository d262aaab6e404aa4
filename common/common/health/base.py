# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator

from fastapi import APIRouter, status, Response


class HealthStatus(Enum):
    """Outcome of a single check."""

    healthy = "HEALTHY"
    unhealthy = "UNHEALTHY"

    @staticmethod
    def of(passed: bool) -> "HealthStatus":
        return HealthStatus.healthy if passed else HealthStatus.unhealthy


class HealthResponse(BaseModel):
    """Result of a probe, one `HealthStatus` field per check.

    Checks can be assigned as bool, they are stored as `HealthStatus`."""

    model_config = ConfigDict(validate_assignment=True)

    http_server_connectivity: HealthStatus = HealthStatus.healthy
    """Always healthy, a response can only be sent by a running server"""

    @field_validator("*", mode="before")
    @classmethod
    def from_bool(cls, value):
        return HealthStatus.of(value) if isinstance(value, bool) else value

    def is_healthy(self) -> bool:
        return all(check == HealthStatus.healthy for _, check in self)


class HealthAPIRouter(APIRouter):
    """Router providing `/health/liveness`, `/health/readiness` and `/health/debug`.

    Applications subclass it, override the `get_*_probe` endpoints with their own
    checks (and dependencies) and hand the filled response model to `resolve`.
    """

    def __init__(
        self,
        readiness_response_model: type[HealthResponse] = HealthResponse,
        liveness_response_model: type[HealthResponse] = HealthResponse,
        debug_response_model: type[HealthResponse] = HealthResponse,
        **kwargs,
    ) -> None:
        super().__init__(prefix="/health", tags=["Health"], **kwargs)
        probes = [
            ("/liveness", self.get_liveness_probe, liveness_response_model, "Determines whether the application instance needs to be restarted."),
            ("/readiness", self.get_readiness_probe, readiness_response_model, "Determines whether the application instance is ready to accept requests."),
            ("/debug", self.get_debug_probe, debug_response_model, "Provides information regarding debug and config states."),
        ]
        for path, endpoint, model, description in probes:
            self.add_api_route(
                path,
                endpoint=endpoint,
                description=description,
                responses={
                    status.HTTP_200_OK: {"model": model},
                    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": model},
                },
            )

    @staticmethod
    def resolve(result: HealthResponse, response: Response) -> HealthResponse:
        """Sets 200 if every check passed, 503 otherwise"""
        response.status_code = status.HTTP_200_OK if result.is_healthy() else status.HTTP_503_SERVICE_UNAVAILABLE
        return result

    def get_liveness_probe(self, response: Response) -> HealthResponse:
        return self.resolve(HealthResponse(), response)

    def get_readiness_probe(self, response: Response) -> HealthResponse:
        return self.resolve(HealthResponse(), response)

    def get_debug_probe(self, response: Response) -> HealthResponse:
        return self.resolve(HealthResponse(), response)
