# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Tests for the lifecycle of the status lists: creation, assignment of indices & revocation
"""

import json
import uuid
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest
import sqlalchemy.exc
from jwcrypto import jwt

import common.status_list as sl
import common.verifiable_credential as vc

import issuer.db.credential as ledger
import issuer.db.status_list as sl_db
import issuer.statuslist2021 as sl_2021
from issuer.exception.revocation_errors import InvalidStatusListIndexError, PersistenceError, StatusListNotFoundError
from issuer.publisher import StatusListPublisher


def _revoked_indices(status_credential_jwt: str, key_configuration) -> set[int]:
    """Verifies the signed status list credential & returns the indices set"""
    token = jwt.JWT(jwt=status_credential_jwt, key=key_configuration.public_jwk)
    claims = json.loads(token.claims)
    credential = claims["vc"]
    assert credential["type"] == ["VerifiableCredential", "StatusList2021Credential"]
    status_list = sl.from_string(credential["credentialSubject"]["encodedList"])
    return {i for i in range(status_list.size) if status_list.get_bit(i)}


def _list_id(entry: sl.StatusList2021Entry) -> uuid.UUID:
    return uuid.UUID(entry.statusListCredential.rsplit("/", 1)[1])


def test_ensure_active_list_is_idempotent(session, manager, config):
    first = manager.ensure_active_list(session)
    second = manager.ensure_active_list(session)

    assert first.id == second.id
    assert len(sl_db.get_status_lists(session)) == 1
    assert first.uri == f"{config.external_url}/status-list/{first.id}"
    assert first.capacity == config.status_list_capacity
    assert first.status_credential_jwt


def test_ensure_active_list_reuses_existing(session, config, key_configuration, status_list):
    manager = sl_2021.RevocationListManager(config, key_configuration, publisher=StatusListPublisher())
    assert manager.ensure_active_list(session).id == status_list.id
    assert len(sl_db.get_status_lists(session)) == 1


def test_empty_list_credential(session, manager, key_configuration):
    status_list = manager.ensure_active_list(session)
    token = vc.JsonWebToken.from_str(manager.get_status_list_credential(session, status_list.id))

    assert token.head_dict["typ"] == "vc+jwt"
    assert token.body_dict["iss"] == manager.config.issuer_id
    assert token.body_dict["jti"] == status_list.uri
    assert _revoked_indices(token.to_raw(), key_configuration) == set()


def test_pick_list_and_index(session, manager):
    entry = manager.pick_list_and_index(session, "user-1", "KYCAMLAttestation")

    status_list_id = _list_id(entry)
    assert entry.type == "StatusList2021Entry"
    assert entry.statusPurpose == "revocation"
    assert entry.id == f"{entry.statusListCredential}#{entry.statusListIndex}"
    assert ledger.find_assignments(session, "user-1") == [ledger.IndexAssignment("user-1", "KYCAMLAttestation", status_list_id, entry.index)]


def test_exhausted_list_is_followed_by_new_one(session, manager):
    manager.config.status_list_capacity = 8
    entries = [manager.pick_list_and_index(session, f"user-{i}", "KYCAMLAttestation") for i in range(8)]

    first_list_id = _list_id(entries[0])
    assert {_list_id(entry) for entry in entries} == {first_list_id}
    assert sorted(entry.index for entry in entries) == list(range(8))

    ninth = manager.pick_list_and_index(session, "user-9", "KYCAMLAttestation")
    assert _list_id(ninth) != first_list_id
    assert len(sl_db.get_status_lists(session)) == 2

    # Further credentials go to the list with free indices
    tenth = manager.pick_list_and_index(session, "user-10", "KYCAMLAttestation")
    assert _list_id(tenth) == _list_id(ninth)
    assert len(sl_db.get_status_lists(session)) == 2


def test_least_occupied_selection(session, manager, make_status_list):
    manager.config.status_list_selection = "least_occupied"
    busy = manager.ensure_active_list(session)
    for i in range(3):
        manager.allocator.allocate(session, busy, f"user-{i}", "KYCAMLAttestation")
    idle = make_status_list()

    assert manager.select_list(session).id == idle.id


def test_revoke_sets_only_the_targeted_bit(session, manager, key_configuration):
    entries = [manager.pick_list_and_index(session, f"user-{i}", "KYCAMLAttestation") for i in range(3)]
    status_list_id = _list_id(entries[0])

    manager.revoke(session, status_list_id, entries[1].index)

    published = manager.get_status_list_credential(session, status_list_id)
    assert _revoked_indices(published, key_configuration) == {entries[1].index}
    assert sl.is_revoked(vc.JsonWebToken.from_str(published).body_dict, entries[1].index)
    assert not sl.is_revoked(vc.JsonWebToken.from_str(published).body_dict, entries[0].index)


def test_revoke_is_idempotent(session, manager, key_configuration):
    status_list = manager.ensure_active_list(session)
    manager.revoke(session, status_list.id, 5)
    version = sl_db.get_status_list_orm(status_list.id, session).version

    manager.revoke(session, status_list.id, 5)

    assert sl_db.get_status_list_orm(status_list.id, session).version == version
    assert _revoked_indices(manager.get_status_list_credential(session, status_list.id), key_configuration) == {5}


def test_revoke_invalid_reference(session, manager):
    status_list = manager.ensure_active_list(session)

    with pytest.raises(InvalidStatusListIndexError):
        manager.revoke(session, status_list.id, status_list.capacity)
    with pytest.raises(InvalidStatusListIndexError):
        manager.revoke(session, status_list.id, -1)
    with pytest.raises(StatusListNotFoundError):
        manager.revoke(session, uuid.uuid4(), 0)


def test_concurrent_revocations_keep_every_bit(session, session_factory, manager, key_configuration):
    manager.config.revocation_max_retries = 20
    status_list_id = manager.ensure_active_list(session).id
    indices = [3, 9, 17, 33, 40, 63]

    def revoke(index: int) -> None:
        thread_session = session_factory()
        try:
            manager.revoke(thread_session, status_list_id, index)
        finally:
            thread_session.close()

    with ThreadPoolExecutor(max_workers=len(indices)) as executor:
        list(executor.map(revoke, indices))

    assert _revoked_indices(manager.get_status_list_credential(session, status_list_id), key_configuration) == set(indices)


def test_revoke_credentials_of_user(session, manager, key_configuration):
    kyc = manager.pick_list_and_index(session, "user-1", "KYCAMLAttestation")
    score = manager.pick_list_and_index(session, "user-1", "CreditScoreAttestation")
    other = manager.pick_list_and_index(session, "user-2", "KYCAMLAttestation")
    status_list_id = _list_id(kyc)

    revoked = manager.revoke_credentials(session, "user-1", "CreditScoreAttestation")
    assert [a.index for a in revoked] == [score.index]

    manager.revoke_credentials(session, "user-1")
    published = manager.get_status_list_credential(session, status_list_id)
    assert _revoked_indices(published, key_configuration) == {kyc.index, score.index}
    assert other.index not in _revoked_indices(published, key_configuration)

    assert manager.revoke_credentials(session, "unknown-user") == []


def test_publication_to_registry(session, config, key_configuration):
    received = []

    def registry(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(200)

    publisher = StatusListPublisher("https://registry.example/status-list/", httpx.Client(transport=httpx.MockTransport(registry)))
    manager = sl_2021.RevocationListManager(config, key_configuration, publisher=publisher)

    status_list = manager.ensure_active_list(session)
    manager.revoke(session, status_list.id, 2)

    assert [r.method for r in received] == ["PUT", "PUT"]
    assert str(received[-1].url) == f"https://registry.example/status-list/{status_list.id}"
    body = json.loads(received[-1].content)
    assert body["uri"] == status_list.uri
    assert _revoked_indices(body["status_credential_jwt"], key_configuration) == {2}


def test_publication_failure(session, config, key_configuration):
    publisher = StatusListPublisher(
        "https://registry.example/status-list",
        httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(503))),
    )
    manager = sl_2021.RevocationListManager(config, key_configuration, publisher=publisher)

    with pytest.raises(PersistenceError):
        manager.ensure_active_list(session)


class _Registry:
    """Registry answering with the configured status code, remembering the requests"""

    def __init__(self):
        self.status_code = 200
        self.received: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.received.append(request)
        return httpx.Response(self.status_code)

    def publisher(self) -> StatusListPublisher:
        return StatusListPublisher("https://registry.example/status-list", httpx.Client(transport=httpx.MockTransport(self)))


def test_revoke_republishes_after_failed_publication(session, config, key_configuration):
    registry = _Registry()
    manager = sl_2021.RevocationListManager(config, key_configuration, publisher=registry.publisher())
    status_list = manager.ensure_active_list(session)

    registry.status_code = 503
    with pytest.raises(PersistenceError):
        manager.revoke(session, status_list.id, 2)
    # The bit is stored, but the registry still has the old list
    assert _revoked_indices(manager.get_status_list_credential(session, status_list.id), key_configuration) == {2}
    assert not sl_db.get_status_list_orm(status_list.id, session).is_published

    registry.status_code = 200
    registry.received.clear()
    manager.revoke(session, status_list.id, 2)

    assert [r.method for r in registry.received] == ["PUT"]
    assert _revoked_indices(json.loads(registry.received[0].content)["status_credential_jwt"], key_configuration) == {2}
    assert sl_db.get_status_list_orm(status_list.id, session).is_published

    # Once published, revoking again has no effect
    registry.received.clear()
    manager.revoke(session, status_list.id, 2)
    assert registry.received == []


def test_ensure_active_list_republishes_after_failed_publication(session, config, key_configuration):
    registry = _Registry()
    registry.status_code = 503
    manager = sl_2021.RevocationListManager(config, key_configuration, publisher=registry.publisher())

    with pytest.raises(PersistenceError):
        manager.ensure_active_list(session)
    stored = sl_db.get_status_lists(session)
    assert len(stored) == 1
    assert not stored[0].is_published

    registry.status_code = 200
    registry.received.clear()
    status_list = manager.ensure_active_list(session)

    assert status_list.id == stored[0].id
    assert len(sl_db.get_status_lists(session)) == 1
    assert [str(r.url) for r in registry.received] == [f"https://registry.example/status-list/{status_list.id}"]
    assert status_list.is_published


def test_pick_list_and_index_publishes_pending_list(session, config, key_configuration, make_status_list):
    registry = _Registry()
    manager = sl_2021.RevocationListManager(config, key_configuration, publisher=registry.publisher())
    manager.config.status_list_selection = "least_occupied"
    manager.pick_list_and_index(session, "user-1", "KYCAMLAttestation")
    assert len(registry.received) == 1

    unpublished = make_status_list()
    entry = manager.pick_list_and_index(session, "user-2", "KYCAMLAttestation")

    assert _list_id(entry) == unpublished.id
    assert [str(r.url) for r in registry.received[1:]] == [f"https://registry.example/status-list/{unpublished.id}"]
    assert sl_db.get_status_list_orm(unpublished.id, session).is_published


def _fail_locked_reads(monkeypatch, failures: int) -> list[bool]:
    """Lets the next locked reads of a status list fail as if the row lock timed out"""
    get_status_list_orm = sl_db.get_status_list_orm
    calls = []

    def flaky_get_status_list_orm(status_list_id, session, for_update=False):
        if for_update:
            calls.append(for_update)
            if len(calls) <= failures:
                raise sqlalchemy.exc.OperationalError("SELECT ... FOR UPDATE", {}, Exception("lock timeout"))
        return get_status_list_orm(status_list_id, session, for_update)

    monkeypatch.setattr(sl_db, "get_status_list_orm", flaky_get_status_list_orm)
    return calls


def test_revoke_retries_transient_lock_failure(session, manager, key_configuration, monkeypatch):
    status_list = manager.ensure_active_list(session)
    calls = _fail_locked_reads(monkeypatch, failures=1)

    manager.revoke(session, status_list.id, 7)

    assert len(calls) == 2
    assert _revoked_indices(manager.get_status_list_credential(session, status_list.id), key_configuration) == {7}


def test_revoke_gives_up_on_persistent_lock_failure(session, manager, monkeypatch):
    manager.config.revocation_max_retries = 3
    status_list = manager.ensure_active_list(session)
    calls = _fail_locked_reads(monkeypatch, failures=10)

    with pytest.raises(PersistenceError):
        manager.revoke(session, status_list.id, 7)
    assert len(calls) == 3
