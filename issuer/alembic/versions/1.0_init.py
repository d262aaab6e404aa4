# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""init

Revision ID: 1.0
Revises: 
Create Date: 2024-02-09 11:12:59.698460

Status lists & the index assignments of the credentials issued.
Will check if tables already exist before attempting to forcefully create them.

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '1.0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    inspector = sa.Inspector.from_engine(op.get_bind())
    existing_tables = inspector.get_table_names()
    if "status_list" not in existing_tables:
        op.create_table(
            "status_list",
            sa.Column("id", sa.UUID, primary_key=True),
            sa.Column("uri", sa.TEXT, nullable=False, unique=True),
            sa.Column("issuer", sa.TEXT, nullable=False),
            sa.Column("purpose", sa.TEXT, nullable=False),
            sa.Column("capacity", sa.INTEGER, nullable=False),
            sa.Column("data_zip", sa.TEXT, nullable=False),
            sa.Column("status_credential_jwt", sa.TEXT, nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True)),
            sa.Column("version", sa.INTEGER, nullable=False),
        )
    if "revocable_credential" not in existing_tables:
        op.create_table(
            "revocable_credential",
            sa.Column("id", sa.UUID, primary_key=True),
            sa.Column("user_id", sa.TEXT, nullable=False, index=True),
            sa.Column("credential_type", sa.TEXT, nullable=False),
            sa.Column("status_list_id", sa.UUID, nullable=False),
            sa.Column("status_list_index", sa.INTEGER, nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True)),
            sa.ForeignKeyConstraint(
                columns=["status_list_id"],
                refcolumns=["status_list.id"],
            ),
            sa.UniqueConstraint("status_list_id", "status_list_index", name="uq_revocable_credential_status_list_slot"),
        )


def downgrade() -> None:
    op.drop_table("revocable_credential")
    op.drop_table("status_list")
