"""add principals.totp_version

Revision ID: 8c3f41d0e2b7
Revises: 5b1e2c7d9a40
Create Date: 2026-10-19 11:47:12.318904

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8c3f41d0e2b7'
down_revision: Union[str, Sequence[str], None] = '5b1e2c7d9a40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # tokens emitidos antes de cambiar el estado del 2FA dejan de acreditarlo
    op.add_column(
        "principals",
        sa.Column("totp_version", sa.Integer(), nullable=False, server_default="0"),
    )


def downgrade() -> None:
    op.drop_column("principals", "totp_version")
