# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from alembic import context

import common.config
import common.db.postgres as db

# Registers the tables on the metadata
import issuer.db.credential  # noqa:F401
import issuer.db.status_list  # noqa:F401

target_metadata = db.Base.metadata


def run_migrations_offline() -> None:
    config = common.config.DBConfig()
    context.configure(
        url=config.SQLALCHEMY_DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    config = common.config.DBConfig()
    engine = db.create_db_engine(config.SQLALCHEMY_DATABASE_URL, config.SQLALCHEMY_DATABASE_SCHEMA)
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
