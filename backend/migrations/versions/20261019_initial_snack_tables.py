"""Create productos and ventas tables

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "productos",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("nombre", sa.String(length=255), nullable=False),
        sa.Column("precio", sa.Integer(), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("emoji", sa.String(length=16), nullable=True),
        sa.Column("imagen", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_productos_nombre", "productos", ["nombre"], unique=False)

    op.create_table(
        "ventas",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("cliente", sa.String(length=255), nullable=False),
        sa.Column("producto", sa.String(length=300), nullable=False),
        sa.Column("precio", sa.Integer(), nullable=False),
        sa.Column("fecha", sa.String(length=64), nullable=False),
        sa.Column("pagado", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_ventas_cliente_pagado", "ventas", ["cliente", "pagado"], unique=False)
    op.create_index("ix_ventas_created_at", "ventas", ["created_at"], unique=False)


def downgrade():
    op.drop_index("ix_ventas_created_at", table_name="ventas")
    op.drop_index("ix_ventas_cliente_pagado", table_name="ventas")
    op.drop_table("ventas")
    op.drop_index("ix_productos_nombre", table_name="productos")
    op.drop_table("productos")
