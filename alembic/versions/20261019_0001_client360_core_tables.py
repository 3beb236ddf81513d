"""client 360 core tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _index_exists(inspector: sa.Inspector, table_name: str, index_name: str) -> bool:
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def _timestamps(*names: str) -> list[sa.Column]:
    return [
        sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
        for name in names
    ]


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("full_name", sa.String(length=100), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=True)
        op.create_index("ux_users_email_lower", "users", [sa.text("lower(email)")], unique=True)

    if not _table_exists(inspector, "clients"):
        op.create_table(
            "clients",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("phone", sa.String(length=40), nullable=True),
            sa.Column("tax_id", sa.String(length=40), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("risk_level", sa.String(length=20), nullable=True),
            *_timestamps("created_at", "updated_at"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint(
                "status IN ('active', 'follow_up', 'inactive', 'vip')",
                name="ck_clients_status",
            ),
        )

    if not _table_exists(inspector, "invoices"):
        op.create_table(
            "invoices",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("client_id", sa.String(length=36), nullable=True),
            sa.Column("type", sa.String(length=20), nullable=False, server_default="customer"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
            sa.Column("number", sa.String(length=40), nullable=False),
            sa.Column("currency", sa.String(length=3), nullable=False, server_default="EUR"),
            sa.Column("total", sa.Numeric(12, 2), nullable=False),
            sa.Column("issue_date", sa.Date(), nullable=False),
            sa.Column("due_date", sa.Date(), nullable=False),
            sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps("created_at", "updated_at"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint("type IN ('customer', 'supplier')", name="ck_invoices_type"),
            sa.CheckConstraint(
                "status IN ('canceled', 'draft', 'issued', 'overdue', 'paid', 'partial', 'sent')",
                name="ck_invoices_status",
            ),
        )

    if not _table_exists(inspector, "invoice_payments"):
        op.create_table(
            "invoice_payments",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("invoice_id", sa.String(length=36), nullable=False),
            sa.Column("amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("method", sa.String(length=30), nullable=True),
            sa.Column("reference", sa.String(length=120), nullable=True),
            *_timestamps("paid_at", "created_at"),
            sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "sales"):
        op.create_table(
            "sales",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("client_id", sa.String(length=36), nullable=False),
            sa.Column("product", sa.String(length=255), nullable=False),
            sa.Column("price", sa.Numeric(12, 2), nullable=False),
            sa.Column("discount", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("total", sa.Numeric(12, 2), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="paid"),
            sa.Column("currency", sa.String(length=3), nullable=False, server_default="EUR"),
            sa.Column("sale_date", sa.DateTime(timezone=True), nullable=False),
            *_timestamps("created_at"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    inspector = sa.inspect(bind)
    indexes = (
        ("clients", "ix_clients_user_id", ["user_id"]),
        ("clients", "ix_clients_user_name_created_at", ["user_id", "name", "created_at"]),
        ("clients", "ix_clients_user_status", ["user_id", "status"]),
        ("invoices", "ix_invoices_user_id", ["user_id"]),
        ("invoices", "ix_invoices_client_id", ["client_id"]),
        ("invoices", "ix_invoices_due_date", ["due_date"]),
        ("invoices", "ix_invoices_user_client_type_status", ["user_id", "client_id", "type", "status"]),
        ("invoices", "ix_invoices_user_issue_date", ["user_id", "issue_date"]),
        ("invoice_payments", "ix_invoice_payments_invoice_id", ["invoice_id"]),
        ("invoice_payments", "ix_invoice_payments_invoice_paid_at", ["invoice_id", "paid_at"]),
        ("sales", "ix_sales_user_id", ["user_id"]),
        ("sales", "ix_sales_client_id", ["client_id"]),
        ("sales", "ix_sales_user_client_sale_date", ["user_id", "client_id", "sale_date"]),
    )
    for table_name, index_name, columns in indexes:
        if not _index_exists(inspector, table_name, index_name):
            op.create_index(index_name, table_name, columns, unique=False)


def downgrade() -> None:
    op.drop_table("sales")
    op.drop_table("invoice_payments")
    op.drop_table("invoices")
    op.drop_table("clients")
    op.drop_index("ux_users_email_lower", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
