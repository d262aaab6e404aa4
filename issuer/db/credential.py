# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Credential-Index Ledger: which (user, credential type) occupies which index in which status list
"""

import datetime
import uuid
import logging
from dataclasses import dataclass

import sqlalchemy.orm as sa_orm
import sqlalchemy.exc
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import DateTime, ForeignKey, Integer, Text, UniqueConstraint, Uuid, func, select

import common.db.postgres as db
from common.verifiable_credential import VerifiableCredential
from issuer.db.status_list import StatusList, get_status_list_by_uri
from issuer.exception.revocation_errors import CollisionDetectedError, InvalidStatusListIndexError, PersistenceError
from issuer.logging import IssuerOperationsLogEntry

_logger = logging.getLogger(__name__)


class RevocableCredential(db.Base):
    """
    Index assignment of an issued credential.
    An index can only be assigned once per status list.
    """

    __tablename__ = "revocable_credential"
    __table_args__ = (UniqueConstraint("status_list_id", "status_list_index", name="uq_revocable_credential_status_list_slot"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    """Internal customer id"""
    credential_type: Mapped[str] = mapped_column(Text, nullable=False)
    status_list_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey(StatusList.id), nullable=False)
    status_list: Mapped[StatusList] = sa_orm.relationship()
    status_list_index: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.datetime.now(datetime.timezone.utc))


@dataclass(frozen=True)
class IndexAssignment:
    user_id: str
    credential_type: str
    status_list_id: uuid.UUID
    index: int


def _to_assignment(entry: RevocableCredential) -> IndexAssignment:
    return IndexAssignment(
        user_id=entry.user_id,
        credential_type=entry.credential_type,
        status_list_id=entry.status_list_id,
        index=entry.status_list_index,
    )


def record(session: sa_orm.Session, assignment: IndexAssignment, attempts: int = 3, backoff_seconds: float = 0.1) -> IndexAssignment:
    """
    Persists the assignment. Only returns once it is committed.

    Raises CollisionDetectedError if the index is already taken in the status list
    and PersistenceError if the database stays unavailable. In both cases nothing is recorded.
    """
    return record_all(session, [assignment], attempts=attempts, backoff_seconds=backoff_seconds)[0]


def record_all(session: sa_orm.Session, assignments: list[IndexAssignment], attempts: int = 3, backoff_seconds: float = 0.1) -> list[IndexAssignment]:
    """
    Persists the assignments in a single transaction, either all of them are recorded or none.
    Raises like `record`, a collision names the first assignment found to be taken.
    """
    if not assignments:
        return []

    def insert() -> list[IndexAssignment]:
        session.add_all(
            [
                RevocableCredential(
                    user_id=assignment.user_id,
                    credential_type=assignment.credential_type,
                    status_list_id=assignment.status_list_id,
                    status_list_index=assignment.index,
                )
                for assignment in assignments
            ]
        )
        session.commit()
        return assignments

    try:
        return db.retry_on_operational_error(session, insert, attempts=attempts, backoff_seconds=backoff_seconds)
    except sqlalchemy.exc.IntegrityError as e:
        session.rollback()
        taken = next((a for a in assignments if get_assignment(session, a.status_list_id, a.index) is not None), assignments[0])
        raise CollisionDetectedError(taken.status_list_id, taken.index) from e
    except sqlalchemy.exc.OperationalError as e:
        first = assignments[0]
        _logger.error(
            IssuerOperationsLogEntry(
                message=f"{len(assignments)} index assignment(s) could not be recorded.",
                status=IssuerOperationsLogEntry.Status.error,
                operation=IssuerOperationsLogEntry.Operation.allocation,
                step=IssuerOperationsLogEntry.Step.allocation_record,
                status_list_id=first.status_list_id,
                status_list_index=first.index,
            )
        )
        raise PersistenceError(f"Index {first.index} of status list {first.status_list_id} could not be recorded") from e


def consumed_indexes(session: sa_orm.Session, status_list_id: uuid.UUID) -> set[int]:
    """All indices assigned within the given status list"""
    return set(session.scalars(select(RevocableCredential.status_list_index).where(RevocableCredential.status_list_id == status_list_id)).all())


def count_assignments(session: sa_orm.Session, status_list_id: uuid.UUID) -> int:
    return session.scalar(select(func.count()).select_from(RevocableCredential).where(RevocableCredential.status_list_id == status_list_id))


def get_assignment(session: sa_orm.Session, status_list_id: uuid.UUID, index: int) -> IndexAssignment | None:
    entry = session.scalars(
        select(RevocableCredential).where(
            RevocableCredential.status_list_id == status_list_id,
            RevocableCredential.status_list_index == index,
        )
    ).one_or_none()
    return _to_assignment(entry) if entry else None


def find_assignments(session: sa_orm.Session, user_id: str, credential_type: str | None = None) -> list[IndexAssignment]:
    query = select(RevocableCredential).where(RevocableCredential.user_id == user_id)
    if credential_type is not None:
        query = query.where(RevocableCredential.credential_type == credential_type)
    return list(map(_to_assignment, session.scalars(query.order_by(RevocableCredential.created_at)).all()))


def store_revocable_credential(
    session: sa_orm.Session,
    credentials: list[VerifiableCredential],
    user_id: str,
    attempts: int = 3,
    backoff_seconds: float = 0.1,
) -> list[IndexAssignment]:
    """
    Makes sure the index of every issued credential is recorded for the user.

    At bare minimum, we need to persist:
    1. Internal customer id
    2. Credential type
    3. Index of the credential
    4. Which status list the index is in

    Credentials without credentialStatus are skipped. An index already recorded for
    the same user is accepted as is, one recorded for a different user raises CollisionDetectedError.
    Every entry is checked before anything is recorded, a failing batch leaves the ledger unchanged.
    """
    stored = []
    pending: dict[tuple[uuid.UUID, int], IndexAssignment] = {}
    for credential in credentials:
        for entry in credential.status_entries:
            status_list = get_status_list_by_uri(entry.statusListCredential, session)
            if entry.index >= status_list.capacity:
                raise InvalidStatusListIndexError(status_list.id, entry.index, status_list.capacity)
            assignment = IndexAssignment(
                user_id=user_id,
                credential_type=credential.credential_type,
                status_list_id=status_list.id,
                index=entry.index,
            )
            slot = (status_list.id, entry.index)
            existing = pending.get(slot) or get_assignment(session, *slot)
            if existing is None:
                pending[slot] = assignment
            elif existing.user_id != user_id:
                raise CollisionDetectedError(status_list.id, assignment.index, detail=f"Index {assignment.index} of status list {status_list.id} belongs to a different user")
            stored.append(existing or assignment)
    record_all(session, list(pending.values()), attempts=attempts, backoff_seconds=backoff_seconds)
    return stored
