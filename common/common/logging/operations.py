# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from enum import Enum
from uuid import UUID
from common.logging import splunk


class OperationsLogEntry(splunk.SplunkExtendedLogEntry):
    """Log entry tracing the steps of a business operation"""

    class Status(Enum):
        success = "SUCCESS"
        error = "ERROR"

    class Operation(Enum):
        """
        Placeholder, components subclass the entry and declare their own operations.
        """

        only_test = "ONLY_TEST"

    class Step(Enum):
        """
        Placeholder for the component steps, named <operation>_<step>
        """

        only_test = "ONLY_TEST"

    status: Status
    operation: Operation
    step: Step
    status_list_id: str | UUID | None = None
    """Status list the operation acted on, if any"""
