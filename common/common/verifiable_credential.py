# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Credentials as far as the status list handling needs to understand them
https://www.w3.org/TR/vc-data-model-2.0/
"""

import datetime
from functools import cached_property

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

from common.parsing import object_from_url_safe
from common.status_list import StatusList2021Entry


class CredentialSubject(BaseModel):
    """Claims about the subject, any attestation is kept as extra field"""

    model_config = ConfigDict(extra='allow')

    id: str | None = None


class VerifiableCredential(BaseModel):
    """
    Unknown properties (eg. @context, evidence) are kept as they are.
    """

    model_config = ConfigDict(extra='allow')

    id: str | None = None
    type: list[str] | str
    issuer: str | dict
    """URL or object with an id"""
    validFrom: str | None = None
    validUntil: str | None = None
    credentialSubject: CredentialSubject | list[CredentialSubject]
    credentialStatus: StatusList2021Entry | list[StatusList2021Entry] | None = None

    @field_validator("validFrom", "validUntil")
    @classmethod
    def validate_date_time_stamp(cls, value: str | None, info: ValidationInfo) -> str | None:
        """dateTimeStamp as in https://www.w3.org/TR/xmlschema11-2/#dateTimeStamp, eg. 2010-01-01T19:23:24Z"""
        if value is not None:
            try:
                datetime.datetime.fromisoformat(value)
            except ValueError:
                raise ValueError(f"{info.field_name} must be an ISO8601 date time.")
        return value

    @property
    def credential_type(self) -> str:
        """
        The specific type of the credential, eg. KYCAMLAttestation for
        ["VerifiableCredential", "KYCAMLAttestation"]
        """
        if isinstance(self.type, str):
            return self.type
        return self.type[1] if len(self.type) > 1 else self.type[0]

    @property
    def status_entries(self) -> list[StatusList2021Entry]:
        if self.credentialStatus is None:
            return []
        if isinstance(self.credentialStatus, list):
            return self.credentialStatus
        return [self.credentialStatus]


class RevocableCredential(VerifiableCredential):
    """Credential pointing to its index in a status list"""

    credentialStatus: StatusList2021Entry | list[StatusList2021Entry]


class JsonWebToken(BaseModel):
    """
    Compact serialized JWT, split in its parts. The signature is not verified.
    https://datatracker.ietf.org/doc/html/rfc7519
    """

    header: str
    payload: str
    signature: str

    @staticmethod
    def from_str(compact: str) -> "JsonWebToken":
        parts = compact.split(".")
        if len(parts) != 3:
            raise ValueError("A compact JWT consists of three parts")
        return JsonWebToken(header=parts[0], payload=parts[1], signature=parts[2])

    @cached_property
    def head_dict(self) -> dict:
        return object_from_url_safe(self.header)

    @cached_property
    def body_dict(self) -> dict:
        return object_from_url_safe(self.payload)

    @cached_property
    def credential(self) -> VerifiableCredential:
        """The credential in the vc claim"""
        return VerifiableCredential.model_validate(self.body_dict["vc"])

    def to_raw(self) -> str:
        return ".".join([self.header, self.payload, self.signature])
