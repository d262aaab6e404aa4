# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import base64
import gzip

import pytest
from pydantic import ValidationError

import common.status_list as sl
from common import parsing

STATUS_LIST_URI = "https://issuer.example/status-list/3f0bd5c3-1d0e-4f4d-bd2c-96d1a3e3c8e2"


def test_empty_status_list():
    status_list = sl.create_empty(sl.DEFAULT_CAPACITY)
    assert status_list.size == 131072
    assert status_list.count_set() == 0
    assert not status_list.get_bit(0)
    assert not status_list.get_bit(131071)

    with pytest.raises(ValueError):
        sl.create_empty(0)


def test_bit_order():
    """Index 0 is the most significant bit of the first byte"""
    status_list = sl.create_empty(16)
    status_list.set_bit(0)
    status_list.set_bit(9)
    raw = gzip.decompress(base64.urlsafe_b64decode(parsing.add_padding(status_list.pack())))
    assert raw == bytes([0b10000000, 0b01000000])


def test_pack_and_load():
    status_list = sl.create_empty(64)
    for index in [1, 7, 63]:
        status_list.set_bit(index)
    packed = status_list.pack()
    assert "=" not in packed
    assert "+" not in packed and "/" not in packed

    loaded = sl.from_string(packed)
    assert [i for i in range(64) if loaded.get_bit(i)] == [1, 7, 63]
    # Padded input as produced by other implementations
    assert sl.from_string(packed + "=" * (-len(packed) % 4)).count_set() == 3

    status_list.set_bit(7, False)
    assert sl.from_string(status_list.pack()).count_set() == 2


def test_index_out_of_range():
    status_list = sl.create_empty(8)
    with pytest.raises(IndexError):
        status_list.set_bit(8)
    with pytest.raises(IndexError):
        status_list.get_bit(-1)


def test_status_list_entry():
    entry = sl.create_status_list_entry(STATUS_LIST_URI, 94567)
    assert entry.id == f"{STATUS_LIST_URI}#94567"
    assert entry.type == "StatusList2021Entry"
    assert entry.statusPurpose == "revocation"
    assert entry.statusListIndex == "94567"
    assert entry.statusListCredential == STATUS_LIST_URI
    assert entry.index == 94567

    # Integers are accepted and transported as decimal string
    entry = sl.StatusList2021Entry(id=f"{STATUS_LIST_URI}#3", statusListIndex=3, statusListCredential=STATUS_LIST_URI)
    assert entry.model_dump()["statusListIndex"] == "3"

    for invalid in ["-1", "one", "2.5"]:
        with pytest.raises(ValidationError):
            sl.StatusList2021Entry(id=STATUS_LIST_URI, statusListIndex=invalid, statusListCredential=STATUS_LIST_URI)


def test_status_list_credential():
    status_list = sl.create_empty(32)
    status_list.set_bit(5)
    credential = sl.create_status_list_credential(STATUS_LIST_URI, "did:example:issuer", status_list)

    assert credential["@context"] == sl.STATUS_LIST_CONTEXT
    assert credential["id"] == STATUS_LIST_URI
    assert credential["type"] == ["VerifiableCredential", "StatusList2021Credential"]
    assert credential["issuer"] == "did:example:issuer"
    assert credential["credentialSubject"]["id"] == f"{STATUS_LIST_URI}#list"
    assert credential["credentialSubject"]["type"] == "StatusList2021"
    assert credential["credentialSubject"]["statusPurpose"] == "revocation"

    assert sl.is_revoked(credential, 5)
    assert not sl.is_revoked(credential, 4)
    # As found in the body of a vc+jwt
    assert sl.is_revoked({"iss": "did:example:issuer", "vc": credential}, 5)
