"""create clients, client_credit_accounts, credit_transactions and feature_credit_costs

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

CREDIT_NUMERIC = sa.Numeric(14, 4)


def upgrade() -> None:
    op.create_table(
        "clients",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("company_name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_clients_id"), "clients", ["id"], unique=False)

    op.create_table(
        "client_credit_accounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.String(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("balance", CREDIT_NUMERIC, nullable=False, server_default="0"),
        sa.Column("total_added", CREDIT_NUMERIC, nullable=False, server_default="0"),
        sa.Column("total_used", CREDIT_NUMERIC, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_client_credit_accounts_id"), "client_credit_accounts", ["id"], unique=False)
    op.create_index(
        op.f("ix_client_credit_accounts_client_id"), "client_credit_accounts", ["client_id"], unique=True
    )

    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "client_id", sa.String(), sa.ForeignKey("client_credit_accounts.client_id"), nullable=False
        ),
        sa.Column("client_name", sa.String(), nullable=True),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("amount", CREDIT_NUMERIC, nullable=False),
        sa.Column("balance", CREDIT_NUMERIC, nullable=False),
        sa.Column("description", sa.String(), nullable=False, server_default=""),
        sa.Column("feature", sa.String(), nullable=True),
        sa.Column("order_id", sa.String(), nullable=True),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("external_ref", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("client_id", "external_ref", name="uq_credit_transactions_client_external_ref"),
    )
    op.create_index(op.f("ix_credit_transactions_id"), "credit_transactions", ["id"], unique=False)
    op.create_index(op.f("ix_credit_transactions_client_id"), "credit_transactions", ["client_id"], unique=False)
    op.create_index(op.f("ix_credit_transactions_feature"), "credit_transactions", ["feature"], unique=False)
    op.create_index(op.f("ix_credit_transactions_order_id"), "credit_transactions", ["order_id"], unique=False)
    op.create_index(
        "ix_credit_transactions_client_created", "credit_transactions", ["client_id", "created_at"], unique=False
    )

    op.create_table(
        "feature_credit_costs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.String(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("feature", sa.String(), nullable=False),
        sa.Column("cost", CREDIT_NUMERIC, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("client_id", "feature", name="uq_feature_credit_costs_client_feature"),
    )
    op.create_index(op.f("ix_feature_credit_costs_id"), "feature_credit_costs", ["id"], unique=False)
    op.create_index(op.f("ix_feature_credit_costs_client_id"), "feature_credit_costs", ["client_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_feature_credit_costs_client_id"), table_name="feature_credit_costs")
    op.drop_index(op.f("ix_feature_credit_costs_id"), table_name="feature_credit_costs")
    op.drop_table("feature_credit_costs")

    op.drop_index("ix_credit_transactions_client_created", table_name="credit_transactions")
    op.drop_index(op.f("ix_credit_transactions_order_id"), table_name="credit_transactions")
    op.drop_index(op.f("ix_credit_transactions_feature"), table_name="credit_transactions")
    op.drop_index(op.f("ix_credit_transactions_client_id"), table_name="credit_transactions")
    op.drop_index(op.f("ix_credit_transactions_id"), table_name="credit_transactions")
    op.drop_table("credit_transactions")

    op.drop_index(op.f("ix_client_credit_accounts_client_id"), table_name="client_credit_accounts")
    op.drop_index(op.f("ix_client_credit_accounts_id"), table_name="client_credit_accounts")
    op.drop_table("client_credit_accounts")

    op.drop_index(op.f("ix_clients_id"), table_name="clients")
    op.drop_table("clients")
