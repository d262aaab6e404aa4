# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import uuid
from pydantic import BaseModel, ConfigDict, Field

from common.verifiable_credential import RevocableCredential
from issuer.db.credential import IndexAssignment
from issuer.db.status_list import StatusList


class StatusRequest(BaseModel):
    """Credential about to be issued which requires a status list entry"""

    user_id: str
    """Internal customer id"""
    credential_type: str


class StoreCredentialsRequest(BaseModel):
    user_id: str
    credentials: list[RevocableCredential]


class RevokeIndexRequest(BaseModel):
    index: int = Field(ge=0)


class RevokeCredentialsRequest(BaseModel):
    """Revokes all credentials of the user, or only the ones of credential_type"""

    user_id: str
    credential_type: str | None = None


class IndexAssignmentInfo(BaseModel):
    user_id: str
    credential_type: str
    status_list_id: uuid.UUID
    index: int

    @staticmethod
    def from_assignment(assignment: IndexAssignment) -> "IndexAssignmentInfo":
        return IndexAssignmentInfo(
            user_id=assignment.user_id,
            credential_type=assignment.credential_type,
            status_list_id=assignment.status_list_id,
            index=assignment.index,
        )


class StatusListInfo(BaseModel):
    """
    Summary of a status list.

    standardized purpose are: "revocation" and "suspension". Other string can be used, but may not be understood by verifiers
    """

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    uri: str
    issuer: str
    purpose: str
    capacity: int

    @staticmethod
    def from_orm_list(status_list: StatusList) -> "StatusListInfo":
        return StatusListInfo.model_validate(status_list)
