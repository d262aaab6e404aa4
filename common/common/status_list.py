# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Functions for Status List 2021
https://www.w3.org/TR/2023/WD-vc-status-list-20230427/
"""
import datetime
from typing import Literal
import bitarray

import gzip
import base64

from pydantic import BaseModel, field_validator

from common.parsing import add_padding, remove_padding, parse_status_list_index

STATUS_LIST_CONTEXT = ["https://www.w3.org/ns/credentials/v2", "https://w3id.org/vc/status-list/2021/v1"]

DEFAULT_CAPACITY = 131072
"""16KB of bits, the minimum size recommended to provide group privacy"""


def _from_bitarray_to_str(bit_data: bitarray.bitarray) -> str:
    """
    Converts a bitarray to StatusList2021 compatible b64 string (gzip, base64url without padding)
    """
    zipped = gzip.compress(bit_data.tobytes())
    encoded = base64.urlsafe_b64encode(zipped)
    return remove_padding(encoded.decode())


def _from_str_to_bitarray(encoded_data: str) -> bitarray.bitarray:
    """
    Converts the base64 encoded string to a bitarray. Accepts padded and unpadded input.
    """
    zipped = base64.urlsafe_b64decode(add_padding(encoded_data))
    unzipped = gzip.decompress(zipped)
    a = bitarray.bitarray(endian="big")
    a.frombytes(unzipped)
    return a


def from_string(base64_encoded: str) -> "StatusList2021":
    a = _from_str_to_bitarray(base64_encoded)
    return StatusList2021(a)


def create_empty(size: int) -> "StatusList2021":
    if size <= 0:
        raise ValueError(f"A status list needs a positive size, got {size}")
    a = bitarray.bitarray(size, endian="big")
    a.setall(0)
    return StatusList2021(a)


class StatusList2021:
    """
    Bit i is 1 if the credential holding index i has been revoked.
    Index 0 is the most significant bit of the first byte.
    """

    def __init__(self, data: bitarray.bitarray):
        self.data = data

    def __str__(self) -> str:
        return self.pack()

    @property
    def size(self) -> int:
        return len(self.data)

    def _check_index(self, index: int):
        if not 0 <= index < len(self.data):
            raise IndexError(f"Index {index} out of range for status list of {len(self.data)} bits")

    def set_bit(self, index: int, bit_value: bool = True):
        """
        Sets the bit at the index to the given bit_value (True = 1, False = 0)
        """
        self._check_index(index)
        self.data[index] = int(bit_value)

    def get_bit(self, index: int) -> bool:
        self._check_index(index)
        return bool(self.data[index])

    def count_set(self) -> int:
        return self.data.count(1)

    def pack(self) -> str:
        """
        Create the zipped & url-safe base64 encoded
        """
        return _from_bitarray_to_str(self.data)


class CredentialStatus(BaseModel):
    id: str
    """
    The value of the id property MUST be a URL which MAY be dereferenced.
    """
    type: str
    """
    Must express the credential status type, eg StatusList2021Entry
    """


class StatusList2021Entry(CredentialStatus):
    """
    https://www.w3.org/TR/2023/WD-vc-status-list-20230427/#statuslist2021entry
    id is expected to be a URL that identifies the status information associated with the verifiable credential.
    id must not be the url for the status list.
    """

    type: Literal['StatusList2021Entry'] = 'StatusList2021Entry'
    statusPurpose: str = "revocation"
    statusListIndex: str
    """
    an arbitrary size integer greater than or equal to 0, expressed as a string
    identifies the bit position of the status of the verifiable credential
    """
    statusListCredential: str
    """
    MUST be a URL to a verifiable credential
    resulting verifiable credential MUST have type property that includes the StatusList2021Credential value
    """

    @field_validator("statusListIndex", mode="before")
    @classmethod
    def validate_index(cls, value: str | int) -> str:
        """Ensure the index is a non negative integer, normalized to its string form"""
        return str(parse_status_list_index(value))

    @property
    def index(self) -> int:
        return int(self.statusListIndex)


def create_status_list_entry(status_list_uri: str, index: int, purpose: str = "revocation") -> StatusList2021Entry:
    """
    Creates the credentialStatus pointing to the bit at index in the list published at status_list_uri
    """
    return StatusList2021Entry(
        id=f'{status_list_uri}#{index}',
        statusPurpose=purpose,
        statusListIndex=str(index),
        statusListCredential=status_list_uri,
    )


def create_status_list_credential(status_list_uri: str, issuer: str, status_list: StatusList2021, purpose: str = "revocation") -> dict:
    """
    Creates the unsigned StatusList2021Credential document for the given bitstring
    """
    return {
        "@context": STATUS_LIST_CONTEXT,
        "id": status_list_uri,
        "type": ["VerifiableCredential", "StatusList2021Credential"],
        "issuer": issuer,
        "validFrom": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "credentialSubject": {
            "id": f"{status_list_uri}#list",
            "type": "StatusList2021",
            "statusPurpose": purpose,
            "encodedList": status_list.pack(),
        },
    }


def is_revoked(status_list_credential: dict, index: int) -> bool:
    """
    Reads the bit at index out of a (decoded) StatusList2021Credential.
    Accepts either the credential itself or a jwt body carrying it in the vc claim.
    """
    credential = status_list_credential.get("vc", status_list_credential)
    encoded_list = credential["credentialSubject"]["encodedList"]
    return from_string(encoded_list).get_bit(index)
