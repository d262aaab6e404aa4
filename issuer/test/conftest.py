# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Fixtures for the issuer tests.
Every test gets its own sqlite database, so no running postgres is required.
"""

import typing
import uuid

import pytest
from fastapi.testclient import TestClient
from jwcrypto import jwk
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import common.config
import common.db.postgres as db
import common.key_configuration as key
import common.status_list as sl

import issuer.config as conf
import issuer.db.credential  # noqa:F401 registers the ledger table
import issuer.db.status_list as sl_db
import issuer.statuslist2021 as sl_2021
from issuer.issuer import app
from issuer.publisher import StatusListPublisher

ISSUER_ID = "did:example:status-list-issuer"
EXTERNAL_URL = "https://issuer.example"
API_KEY = "test-api-key"
TEST_CAPACITY = 64


@pytest.fixture(scope="session")
def key_configuration() -> key.KeyConfiguration:
    signing_key = jwk.JWK.generate(kty="EC", crv="P-256")
    return key.KeyConfiguration(
        public_key=signing_key.export_to_pem().decode(),
        private_key=signing_key.export_to_pem(private_key=True, password=None).decode(),
        signing_algorithm="ES256",
    )


@pytest.fixture()
def config(monkeypatch) -> conf.IssuerConfig:
    monkeypatch.setenv("ISSUER_ID", ISSUER_ID)
    monkeypatch.setenv("EXTERNAL_URL", EXTERNAL_URL)
    monkeypatch.setenv("API_KEY", API_KEY)
    monkeypatch.setenv("STATUS_LIST_CAPACITY", str(TEST_CAPACITY))
    monkeypatch.setenv("PERSISTENCE_BACKOFF_SECONDS", "0")
    monkeypatch.delenv("REVOCATION_URL", raising=False)
    monkeypatch.delenv("STATUS_LIST_SELECTION", raising=False)
    monkeypatch.delenv("STATUS_LIST_REGISTRY_URL", raising=False)
    return conf.IssuerConfig()


@pytest.fixture()
def session_factory(tmp_path) -> sessionmaker:
    # File based, so the threads of the concurrency tests share the database
    engine = create_engine(f"sqlite:///{tmp_path / 'issuer.db'}", connect_args={"check_same_thread": False})
    db.Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture()
def session(session_factory) -> typing.Generator[db.Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def manager(config, key_configuration) -> sl_2021.RevocationListManager:
    return sl_2021.RevocationListManager(config, key_configuration, publisher=StatusListPublisher())


def create_test_status_list(session: db.Session, config: conf.IssuerConfig, capacity: int = TEST_CAPACITY) -> sl_db.StatusList:
    status_list_id = uuid.uuid4()
    return sl_db.create_status_list(
        session,
        status_list_id=status_list_id,
        uri=config.get_status_list_uri(status_list_id),
        issuer=config.issuer_id,
        purpose=config.status_list_purpose,
        status_list=sl.create_empty(capacity),
        capacity=capacity,
    )


@pytest.fixture()
def make_status_list(session, config) -> typing.Callable[..., sl_db.StatusList]:
    """Stores an empty status list, capacity can be passed as keyword"""
    return lambda capacity=TEST_CAPACITY: create_test_status_list(session, config, capacity)


@pytest.fixture()
def status_list(make_status_list) -> sl_db.StatusList:
    return make_status_list()


@pytest.fixture()
def client(config, manager, session_factory, key_configuration) -> typing.Generator[TestClient, None, None]:
    """
    Test client with injection of the test database, configuration & keys
    """

    def t_session() -> typing.Generator[db.Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[db.env_session] = t_session
    app.dependency_overrides[conf.IssuerConfig] = lambda: config
    app.dependency_overrides[common.config.Config] = lambda: config
    app.dependency_overrides[sl_2021.get_revocation_list_manager] = lambda: manager
    app.dependency_overrides[key.get_key_configuration] = lambda: key_configuration
    yield TestClient(app)
    app.dependency_overrides.clear()
