# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


#############################
# DIF Presentation Exchange #
#############################


class StatusDirective(Enum):
    """
    https://identity.foundation/presentation-exchange/spec/v1.0.0/#input-descriptor-object
    """

    REQUIRED = "required"
    ALLOWED = "allowed"
    DISALLOWED = "disallowed"


class Filter(BaseModel):
    """JSON Schema descriptor the value found at the path has to match"""

    type: str
    pattern: str | None = None
    minimum: float | None = None
    exclusiveMinimum: float | None = None


class Constraint(BaseModel):
    path: list[str]
    """JSONPath expressions, evaluated in order until one matches"""
    purpose: str | None = None
    predicate: str | None = None
    """Either required or preferred"""
    filter: Filter | None = None


class StatusConstraint(BaseModel):
    directive: StatusDirective


class Statuses(BaseModel):
    active: StatusConstraint | None = None
    suspended: StatusConstraint | None = None
    revoked: StatusConstraint | None = None


class Constraints(BaseModel):
    statuses: Statuses | None = None
    fields: list[Constraint]


class SchemaReference(BaseModel):
    uri: str
    required: bool | None = None


class InputDescriptor(BaseModel):
    """
    https://identity.foundation/presentation-exchange/spec/v1.0.0/#input-descriptor-object
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str | None = None
    purpose: str | None = None
    input_schema: list[SchemaReference] | None = Field(default=None, alias="schema")
    format: dict | None = None
    constraints: Constraints


class PresentationDefinition(BaseModel):
    """
    https://identity.foundation/presentation-exchange/spec/v1.0.0/#presentation-definition
    """

    id: str
    input_descriptors: list[InputDescriptor]

    def to_document(self) -> dict:
        """Dumps the definition with the field names as defined by DIF"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class VerificationRequestDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    sender: str = Field(alias="from")
    created_time: int
    """Milliseconds since 1.1.1970"""
    expires_time: int
    """Milliseconds since 1.1.1970"""
    reply_url: str
    reply_to: list[str]
    callback_url: Optional[str] = None
    challenge: str


class VerificationRequest(BaseModel):
    """
    Request sent to a holder asking for a presentation matching the presentation definition
    """

    model_config = ConfigDict(populate_by_name=True)

    context: list[str] = Field(alias="@context")
    type: list[str]
    request: VerificationRequestDetails
    presentation_definition: PresentationDefinition

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
