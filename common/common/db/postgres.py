# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import os
import time
from typing import Annotated, Callable, TypeVar
from collections.abc import Generator

from functools import cache
import logging
from common.config import inject_db_config

from sqlalchemy import create_engine, inspect, event, Engine
from sqlalchemy.orm import declarative_base, sessionmaker, DeclarativeBase, Session
from sqlalchemy.schema import CreateSchema
import sqlalchemy.exc

from alembic import command as alembic_command
from alembic.config import Config as AlembicConfig

from fastapi import Depends, status, HTTPException

#################
# DB Definition #
#################

_logger = logging.getLogger(__name__)

T = TypeVar("T")

Base: DeclarativeBase = declarative_base()


def alembic_upgrade(alembic_config_file: str):
    if not os.path.exists(alembic_config_file):
        _logger.error(f"{alembic_config_file=} does not exist!")
    alembic_config = AlembicConfig(alembic_config_file)
    alembic_config.set_main_option(
        'script_location',
        os.path.join(os.path.dirname(alembic_config_file), "alembic"),
    )
    alembic_command.upgrade(alembic_config, 'head')
    logging.info("Alembic Upgrade Done")


def create_db_engine(db_connection_string: str, db_schema: str | None = None, pool_timeout: float | None = None) -> Engine:
    """
    Creates the engine. On postgres the schema is created if missing and used as search path.
    Other dialects (sqlite for tests) are used as is.
    """
    is_postgres = db_connection_string.startswith("postgresql")
    engine_kwargs = {"pool_timeout": pool_timeout} if is_postgres and pool_timeout else {}
    engine = create_engine(db_connection_string, **engine_kwargs)
    if not is_postgres or not db_schema:
        return engine

    @event.listens_for(engine, "connect", insert=True)
    def set_search_path(dbapi_connection, connection_record):
        """
        Setting Session search path every time a new connection is made
        https://docs.sqlalchemy.org/en/20/dialects/postgresql.html#setting-alternate-search-paths-on-connect
        """
        existing_autocommit = dbapi_connection.autocommit
        dbapi_connection.autocommit = True
        cursor = dbapi_connection.cursor()
        cursor.execute("SET SESSION search_path TO '%s'" % db_schema)
        cursor.close()
        dbapi_connection.autocommit = existing_autocommit

    inspector = inspect(engine)
    if db_schema not in inspector.get_schema_names():
        with engine.connect() as conn:
            conn.execute(CreateSchema(db_schema, if_not_exists=True))
            conn.commit()
    return engine


@cache
def _setup_db(db_connection_string: str, db_schema: str, pool_timeout: float | None = None):
    """Sets up a DB connection with the schema"""
    engine = create_db_engine(db_connection_string, db_schema, pool_timeout)
    _session_local = sessionmaker(bind=engine)
    return engine, _session_local


def session(db_connection_string: str, db_schema: str, pool_timeout: float | None = None) -> Session:
    try:
        engine, _session_local = _setup_db(db_connection_string, db_schema, pool_timeout)
        db_session = _session_local()
        return db_session
    except sqlalchemy.exc.OperationalError:
        _logger.exception("Could not establish connection to database.")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not establish connection to database",
        )


def env_session(db_config: inject_db_config) -> Generator[Session, None, None]:
    db_session = session(
        db_connection_string=db_config.SQLALCHEMY_DATABASE_URL,
        db_schema=db_config.SQLALCHEMY_DATABASE_SCHEMA,
        pool_timeout=db_config.SQLALCHEMY_POOL_TIMEOUT,
    )
    try:
        yield db_session
    finally:
        db_session.close()


inject = Annotated[Session, Depends(env_session)]


def retry_on_operational_error(session: Session, operation: Callable[[], T], attempts: int = 3, backoff_seconds: float = 0.1) -> T:
    """
    Runs the operation, rolling back and retrying with exponential backoff when the database
    reports a transient failure (sqlalchemy OperationalError).
    The operation must add its own instances to the session, as a rollback discards pending objects.
    Reraises the last OperationalError once all attempts are used.
    """
    attempts = max(attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except sqlalchemy.exc.OperationalError:
            session.rollback()
            if attempt >= attempts:
                raise
            delay = backoff_seconds * 2 ** (attempt - 1)
            _logger.warning(f"Transient database failure, retrying in {delay}s ({attempt=}/{attempts})")
            time.sleep(delay)
