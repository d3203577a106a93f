"""create users, roles, customers and products tables

Revision ID: 3a7c2e91d4b0
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a7c2e91d4b0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create auth tables plus customers/products with their unique and check constraints."""
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "roles" not in existing_tables:
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(64), nullable=False, unique=True),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "user_roles" not in existing_tables:
        op.create_table(
            "user_roles",
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        )

    if "customers" not in existing_tables:
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("phone", sa.String(32), nullable=True),
            sa.Column("address", sa.Text(), nullable=True),
            sa.Column("cpf", sa.String(14), nullable=True, unique=True),
            sa.Column("birth_date", sa.Date(), nullable=True),
            sa.Column("registered_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_customers_name", "customers", ["name"])
        op.create_index("idx_customers_registered_at", "customers", ["registered_at"])

    if "products" not in existing_tables:
        op.create_table(
            "products",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False, unique=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("price", sa.Numeric(10, 2), nullable=False),
            sa.Column("stock_quantity", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("category", sa.String(128), nullable=True),
            sa.CheckConstraint("price > 0", name="ck_products_price_positive"),
            sa.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        )
        op.create_index("idx_products_category", "products", ["category"])
        op.create_index("idx_products_stock_quantity", "products", ["stock_quantity"])


def downgrade() -> None:
    op.drop_index("idx_products_stock_quantity", table_name="products")
    op.drop_index("idx_products_category", table_name="products")
    op.drop_table("products")
    op.drop_index("idx_customers_registered_at", table_name="customers")
    op.drop_index("idx_customers_name", table_name="customers")
    op.drop_table("customers")
    op.drop_table("user_roles")
    op.drop_table("roles")
    op.drop_table("users")
