"""create serials table

Revision ID: 2026_10_01_0001
Revises:
Create Date: 2026-10-01 00:01:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '2026_10_01_0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create the serials table.

    serial_number is unique: a serial is recorded once no matter how many
    photos or imports mention it.
    """
    op.create_table(
        'serials',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('serial_number', sa.String(length=32), nullable=False),
        sa.Column('source_filename', sa.Text(), nullable=True),
        sa.Column(
            'extracted_at',
            sa.DateTime(),
            server_default=sa.text('CURRENT_TIMESTAMP'),
            nullable=False,
        ),
        sa.Column(
            'status',
            sa.String(length=20),
            server_default=sa.text("'confirmed'"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('serial_number', name='uq_serials_serial_number'),
        sqlite_autoincrement=True,
    )


def downgrade() -> None:
    op.drop_table('serials')
