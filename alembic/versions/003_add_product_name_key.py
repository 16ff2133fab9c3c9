"""Add products.name_key with a unique (name_key, category_id) constraint.

Existing rows keep a NULL key, which the constraint ignores, so
duplicates already in the catalog do not block the upgrade. They are
reported by scripts/check_duplicates.py.

Revision ID: 003
Revises: 002
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '003'
down_revision: Union[str, None] = '002'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add name key column and constraint."""
    # Batch mode recreates the table on SQLite, which cannot add constraints
    with op.batch_alter_table('products') as batch_op:
        batch_op.add_column(sa.Column('name_key', sa.String(255), nullable=True))
        batch_op.create_unique_constraint(
            'uq_products_name_category', ['name_key', 'category_id']
        )


def downgrade() -> None:
    """Drop name key column and constraint."""
    with op.batch_alter_table('products') as batch_op:
        batch_op.drop_constraint('uq_products_name_category', type_='unique')
        batch_op.drop_column('name_key')
