# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from enum import Enum

from common.logging import operations


class IssuerOperationsLogEntry(operations.OperationsLogEntry):
    """Container for status list operations specific logging."""

    class Operation(Enum):
        allocation = "ALLOCATION"
        revocation = "REVOCATION"
        provisioning = "PROVISIONING"

    class Step(Enum):
        allocation_index = "INDEX"
        allocation_record = "RECORD"
        revocation_bit = "BIT"
        revocation_publish = "PUBLISH"
        provisioning_create = "CREATE"

    operation: Operation
    step: Step

    status_list_index: int | None = None
