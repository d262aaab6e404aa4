# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Errors of the status list index allocation & revocation.

They are independent of the http layer. `status_code` and `error` are used by the
exception handlers to render the response when an error reaches a route.
"""

import uuid


class RevocationError(Exception):
    """Base class for all status list errors."""

    status_code: int = 500
    error: str = "status_list_error"
    """Machine readable code identifieng the exception."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ExhaustedError(RevocationError):
    """Every index of the status list is assigned. A new list has to be provisioned."""

    status_code = 503
    error = "status_list_exhausted"

    def __init__(self, status_list_id: uuid.UUID, capacity: int) -> None:
        super().__init__(f"Status list {status_list_id} has no free index left (capacity {capacity})")
        self.status_list_id = status_list_id
        self.capacity = capacity


class CollisionDetectedError(RevocationError):
    """The index has been assigned by someone else in the meantime."""

    status_code = 409
    error = "status_list_index_collision"

    def __init__(self, status_list_id: uuid.UUID, index: int, detail: str = None) -> None:
        super().__init__(detail or f"Index {index} of status list {status_list_id} is already assigned")
        self.status_list_id = status_list_id
        self.index = index


class PersistenceError(RevocationError):
    """The ledger or status list store could not be written. Nothing has been issued."""

    status_code = 503
    error = "status_list_persistence_failed"


class StatusListNotFoundError(RevocationError):
    status_code = 404
    error = "status_list_not_found"

    def __init__(self, status_list_ref: uuid.UUID | str) -> None:
        super().__init__(f"No status list {status_list_ref}")
        self.status_list_ref = status_list_ref


class InvalidStatusListIndexError(RevocationError, ValueError):
    status_code = 400
    error = "invalid_status_list_index"

    def __init__(self, status_list_id: uuid.UUID, index: int, capacity: int) -> None:
        super().__init__(f"Index {index} is outside of status list {status_list_id} with capacity {capacity}")
        self.status_list_id = status_list_id
        self.index = index
