# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""Track publication of status lists

Alters Table status_list
* add published_version, the version last pushed to the registry

Revision ID: 1.1
Revises: 1.0
Create Date: 2024-03-04 10:21:43.118204

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '1.1'
down_revision: Union[str, None] = '1.0'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table(table_name="status_list") as status_list_upgrade:
        status_list_upgrade.add_column(sa.Column("published_version", sa.INTEGER, nullable=True))


def downgrade() -> None:
    with op.batch_alter_table(table_name="status_list") as status_list_downgrade:
        status_list_downgrade.drop_column("published_version")
