# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Index Allocator

Each revocable credential requires a unique index in a status list. Indices are
chosen at random so the position in the list does not reveal the issuance order.

While the list is mostly empty a random draw is rejected only rarely, so candidates
are drawn from the whole list and consumed ones are redrawn. The closer the list
gets to being full the more draws are rejected; from `free_list_threshold`
occupancy on the free indices are enumerated once and one of them is chosen,
which keeps the cost bounded by the capacity.

Choosing an index and recording it are one step: the ledger only accepts an index
once per status list, an index taken concurrently by someone else is replaced by a new draw.
"""

import logging
import random

import sqlalchemy.orm as sa_orm

import issuer.db.credential as ledger
from issuer.db.status_list import StatusList
from issuer.exception.revocation_errors import CollisionDetectedError, ExhaustedError
from issuer.logging import IssuerOperationsLogEntry

_logger = logging.getLogger(__name__)


class IndexAllocator:
    def __init__(
        self,
        free_list_threshold: float = 0.5,
        max_collision_retries: int = 10,
        persistence_attempts: int = 3,
        persistence_backoff_seconds: float = 0.1,
        rng: random.Random | None = None,
    ):
        """
        free_list_threshold: occupancy (0..1) from which on the free list is enumerated instead of drawing at random
        max_collision_retries: how often an index taken concurrently is replaced by a new one before giving up
        rng: source of randomness, a cryptographically secure one by default
        """
        self.free_list_threshold = free_list_threshold
        self.max_collision_retries = max_collision_retries
        self.persistence_attempts = persistence_attempts
        self.persistence_backoff_seconds = persistence_backoff_seconds
        self.rng = rng or random.SystemRandom()

    def pick_free_index(self, capacity: int, consumed: set[int], status_list_id=None) -> int:
        """
        Returns an index in [0, capacity) which is not part of consumed.
        Raises ExhaustedError if there is none.
        """
        # Indices outside of the list can not block a slot
        occupied = sum(1 for index in consumed if 0 <= index < capacity)
        if occupied >= capacity:
            raise ExhaustedError(status_list_id, capacity)

        if occupied / capacity < self.free_list_threshold:
            for _ in range(capacity):
                candidate = self.rng.randrange(capacity)
                if candidate not in consumed:
                    return candidate
            _logger.warning(f"No free index found by random draws in status list {status_list_id}, using the free list")

        free = [index for index in range(capacity) if index not in consumed]
        return self.rng.choice(free)

    def allocate(self, session: sa_orm.Session, status_list: StatusList, user_id: str, credential_type: str) -> ledger.IndexAssignment:
        """
        Assigns a free index of the status list to the credential and records it in the ledger.

        Raises ExhaustedError if the list is full, CollisionDetectedError if concurrent
        allocations kept taking the chosen indices and PersistenceError if the ledger is unavailable.
        """
        for attempt in range(self.max_collision_retries + 1):
            consumed = ledger.consumed_indexes(session, status_list.id)
            index = self.pick_free_index(status_list.capacity, consumed, status_list.id)
            assignment = ledger.IndexAssignment(
                user_id=user_id,
                credential_type=credential_type,
                status_list_id=status_list.id,
                index=index,
            )
            try:
                ledger.record(
                    session,
                    assignment,
                    attempts=self.persistence_attempts,
                    backoff_seconds=self.persistence_backoff_seconds,
                )
            except CollisionDetectedError:
                _logger.info(f"Index {index} of status list {status_list.id} was taken concurrently ({attempt=})")
                continue
            _logger.info(
                IssuerOperationsLogEntry(
                    message="Status list index assigned.",
                    status=IssuerOperationsLogEntry.Status.success,
                    operation=IssuerOperationsLogEntry.Operation.allocation,
                    step=IssuerOperationsLogEntry.Step.allocation_index,
                    status_list_id=status_list.id,
                    status_list_index=index,
                )
            )
            return assignment

        _logger.error(
            IssuerOperationsLogEntry(
                message="Gave up assigning a status list index after repeated collisions.",
                status=IssuerOperationsLogEntry.Status.error,
                operation=IssuerOperationsLogEntry.Operation.allocation,
                step=IssuerOperationsLogEntry.Step.allocation_index,
                status_list_id=status_list.id,
            )
        )
        raise CollisionDetectedError(
            status_list.id,
            index,
            detail=f"Could not assign an index in status list {status_list.id} after {self.max_collision_retries + 1} attempts",
        )
