# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from .base import HealthAPIRouter, HealthResponse, HealthStatus  # noqa:F401
from .db_connection_check import HealthAPIRouterWithDBInject, ReadinessHealthResponseWithDBInject, check_health_of_db  # noqa:F401
