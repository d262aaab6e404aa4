# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Status List Store: durable mapping of status list -> compressed bitstring & signed status list credential
"""

import datetime
import uuid

import common.db.postgres as db
from sqlalchemy.orm import Mapped, mapped_column

import sqlalchemy.orm as sa_orm
import sqlalchemy.exc
from sqlalchemy import DateTime, Integer, Text, Uuid, select, update

import common.status_list as sl

from issuer.exception.revocation_errors import StatusListNotFoundError


class StatusList(db.Base):
    """
    StatusList Data for creating the VC
    """

    __tablename__ = "status_list"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    uri: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    """Public URI, used as id of the status list credential and as statusListCredential in the credentials"""
    issuer: Mapped[str] = mapped_column(Text, nullable=False)
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    """Number of usable indices. Fixed at creation."""
    data_zip: Mapped[str] = mapped_column(Text, nullable=False)
    status_credential_jwt: Mapped[str] = mapped_column(Text, nullable=True)
    """The current, signed status list credential"""
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.datetime.now(datetime.timezone.utc))
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    """Incremented by every update, a concurrent update of the same version fails with StaleDataError"""
    published_version: Mapped[int] = mapped_column(Integer, nullable=True)
    """Version whose status list credential was last published"""

    __mapper_args__ = {"version_id_col": version}

    def load(self) -> sl.StatusList2021:
        return sl.from_string(self.data_zip)

    @property
    def is_published(self) -> bool:
        return self.published_version == self.version


def create_status_list(
    session: sa_orm.Session,
    status_list_id: uuid.UUID,
    uri: str,
    issuer: str,
    purpose: str,
    status_list: sl.StatusList2021,
    capacity: int,
    status_credential_jwt: str | None = None,
) -> StatusList:
    """
    Stores a new status list
    """
    instance = StatusList(
        id=status_list_id,
        uri=uri,
        issuer=issuer,
        purpose=purpose,
        capacity=capacity,
        data_zip=status_list.pack(),
        status_credential_jwt=status_credential_jwt,
    )
    session.add(instance)
    session.commit()
    return instance


def get_status_list(status_list_id: uuid.UUID, session: sa_orm.Session) -> sl.StatusList2021:
    return get_status_list_orm(status_list_id, session).load()


def get_status_list_orm(status_list_id: uuid.UUID, session: sa_orm.Session, for_update: bool = False) -> StatusList:
    """
    for_update: lock the row (where supported) and refresh an already loaded instance, used before modifying the list
    """
    query = select(StatusList).where(StatusList.id == status_list_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    try:
        return session.scalars(query).one()
    except sqlalchemy.exc.NoResultFound:
        raise StatusListNotFoundError(status_list_id)


def get_status_list_by_uri(uri: str, session: sa_orm.Session) -> StatusList:
    try:
        return session.scalars(select(StatusList).where(StatusList.uri == uri)).one()
    except sqlalchemy.exc.NoResultFound:
        raise StatusListNotFoundError(uri)


def get_status_lists(session: sa_orm.Session, issuer: str | None = None, purpose: str | None = None) -> list[StatusList]:
    """All status lists, oldest first, optionally limited to an issuer & purpose"""
    query = select(StatusList)
    if issuer is not None:
        query = query.where(StatusList.issuer == issuer)
    if purpose is not None:
        query = query.where(StatusList.purpose == purpose)
    return list(session.scalars(query.order_by(StatusList.created_at, StatusList.id)).all())


def update_status_list(session: sa_orm.Session, orm_list: StatusList, status_list: sl.StatusList2021, status_credential_jwt: str) -> StatusList:
    """
    Writes the new bitstring & credential.
    Raises sqlalchemy.orm.exc.StaleDataError if the list has been updated since it was loaded.
    """
    orm_list.data_zip = status_list.pack()
    orm_list.status_credential_jwt = status_credential_jwt
    session.add(orm_list)
    session.commit()
    return orm_list


def mark_published(session: sa_orm.Session, status_list_id: uuid.UUID, version: int) -> None:
    """
    Records that the given version has been published.
    Has no effect if the list was updated in the meantime, the newer version still needs publishing.
    """
    # bulk update, leaves the version counter untouched
    session.execute(
        update(StatusList)
        .where(StatusList.id == status_list_id, StatusList.version == version)
        .values(published_version=version)
        .execution_options(synchronize_session=False)
    )
    session.commit()
