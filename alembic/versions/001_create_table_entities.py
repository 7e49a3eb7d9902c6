"""create table entities

Revision ID: 001
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'storage_tables',
        sa.Column('name', sa.String(length=63), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('name')
    )
    op.create_table(
        'table_entities',
        sa.Column('table_name', sa.String(length=63), nullable=False),
        sa.Column('partition_key', sa.String(length=255), nullable=False),
        sa.Column('row_key', sa.String(length=255), nullable=False),
        sa.Column('properties', sa.JSON(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('table_name', 'partition_key', 'row_key')
    )
    op.create_index('idx_table_entities_partition', 'table_entities', ['table_name', 'partition_key'])


def downgrade() -> None:
    op.drop_index('idx_table_entities_partition', table_name='table_entities')
    op.drop_table('table_entities')
    op.drop_table('storage_tables')
