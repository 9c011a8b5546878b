"""Cap table schema: companies, share classes, holdings, transactions, snapshots."""
from __future__ import annotations

from collections.abc import Iterable

import sqlalchemy as sa
from alembic import op

revision = "20241019_01"
down_revision = None
branch_labels = None
depends_on: Iterable[str] | None = None

_ENUMS = (
    "company_entity_type",
    "company_status",
    "share_class_type",
    "shareholder_type",
    "shareholder_status",
    "option_grant_status",
    "transaction_type",
    "transaction_status",
)


def _drop_enum(name: str) -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute(sa.text(f"DROP TYPE IF EXISTS {name}"))


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _quantity(name: str, nullable: bool = False, **kwargs) -> sa.Column:
    return sa.Column(name, sa.Numeric(24, 6), nullable=nullable, **kwargs)


def _percentage(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(9, 6), nullable=False, server_default="0")


def upgrade() -> None:  # noqa: D401
    """Create the cap table tables and constraints."""

    entity_type = sa.Enum("LTDA", "SA_CAPITAL_FECHADO", "SA_CAPITAL_ABERTO", name="company_entity_type")
    company_status = sa.Enum("DRAFT", "ACTIVE", "INACTIVE", "DISSOLVED", name="company_status")
    share_class_type = sa.Enum("COMMON_SHARES", "PREFERRED_SHARES", "QUOTA", name="share_class_type")
    shareholder_type = sa.Enum("INDIVIDUAL", "CORPORATE", "FUND", "EMPLOYEE", name="shareholder_type")
    shareholder_status = sa.Enum("ACTIVE", "INACTIVE", name="shareholder_status")
    option_grant_status = sa.Enum("ACTIVE", "EXERCISED", "CANCELLED", "EXPIRED", name="option_grant_status")
    transaction_type = sa.Enum("ISSUANCE", "TRANSFER", "CANCELLATION", "CONVERSION", "SPLIT", name="transaction_type")
    transaction_status = sa.Enum(
        "DRAFT", "PENDING_APPROVAL", "SUBMITTED", "CONFIRMED", "FAILED", "CANCELLED", name="transaction_status"
    )

    op.create_table(
        "companies",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("entity_type", entity_type, nullable=False, server_default="LTDA"),
        sa.Column("status", company_status, nullable=False, server_default="ACTIVE"),
        sa.Column("tax_id", sa.String(length=32)),
        sa.Column("founded_date", sa.Date()),
        *_timestamps(),
    )

    op.create_table(
        "share_classes",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("company_id", sa.String(length=36), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("class_name", sa.String(length=128), nullable=False),
        sa.Column("type", share_class_type, nullable=False, server_default="COMMON_SHARES"),
        sa.Column("votes_per_share", sa.Integer(), nullable=False, server_default="1"),
        _quantity("total_authorized", server_default="0"),
        _quantity("total_issued", server_default="0"),
        sa.Column("lock_up_period_months", sa.Integer()),
        _quantity("liquidation_preference_multiple", nullable=True),
        sa.Column("participating_rights", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("seniority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("anti_dilution_type", sa.String(length=32)),
        _quantity("conversion_ratio", nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("company_id", "class_name", name="uq_share_classes_company_name"),
    )
    op.create_index("ix_share_classes_company_id", "share_classes", ["company_id"])

    op.create_table(
        "shareholders",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("company_id", sa.String(length=36), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", shareholder_type, nullable=False, server_default="INDIVIDUAL"),
        sa.Column("status", shareholder_status, nullable=False, server_default="ACTIVE"),
        sa.Column("tax_id", sa.String(length=32)),
        sa.Column("nationality", sa.String(length=2)),
        sa.Column("is_foreign", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_shareholders_company_id", "shareholders", ["company_id"])

    op.create_table(
        "shareholdings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("company_id", sa.String(length=36), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "shareholder_id", sa.String(length=36), sa.ForeignKey("shareholders.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "share_class_id", sa.String(length=36), sa.ForeignKey("share_classes.id", ondelete="CASCADE"), nullable=False
        ),
        _quantity("quantity"),
        _percentage("ownership_pct"),
        _percentage("voting_power_pct"),
        *_timestamps(),
        sa.UniqueConstraint(
            "company_id", "shareholder_id", "share_class_id", name="uq_shareholdings_company_holder_class"
        ),
    )
    op.create_index("ix_shareholdings_company_id", "shareholdings", ["company_id"])
    op.create_index("ix_shareholdings_share_class_id", "shareholdings", ["share_class_id"])

    op.create_table(
        "option_grants",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("company_id", sa.String(length=36), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("shareholder_id", sa.String(length=36), sa.ForeignKey("shareholders.id", ondelete="SET NULL")),
        sa.Column("employee_name", sa.String(length=255), nullable=False),
        _quantity("quantity"),
        _quantity("exercised", server_default="0"),
        _quantity("strike_price", nullable=True),
        sa.Column("grant_date", sa.Date(), nullable=False),
        sa.Column("cliff_months", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("vesting_duration_months", sa.Integer(), nullable=False, server_default="0"),
        _percentage("cliff_percentage"),
        sa.Column("status", option_grant_status, nullable=False, server_default="ACTIVE"),
        *_timestamps(),
    )
    op.create_index("ix_option_grants_company_id", "option_grants", ["company_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("company_id", sa.String(length=36), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", transaction_type, nullable=False),
        sa.Column("status", transaction_status, nullable=False, server_default="DRAFT"),
        sa.Column("from_shareholder_id", sa.String(length=36), sa.ForeignKey("shareholders.id", ondelete="SET NULL")),
        sa.Column("to_shareholder_id", sa.String(length=36), sa.ForeignKey("shareholders.id", ondelete="SET NULL")),
        sa.Column(
            "share_class_id", sa.String(length=36), sa.ForeignKey("share_classes.id", ondelete="CASCADE"), nullable=False
        ),
        _quantity("quantity"),
        _quantity("price_per_share", nullable=True),
        _quantity("total_value", nullable=True),
        sa.Column("details", sa.JSON()),
        sa.Column("notes", sa.Text()),
        sa.Column("requires_board_approval", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.String(length=64)),
        sa.Column("approved_by", sa.String(length=64)),
        sa.Column("approved_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_by", sa.String(length=64)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("failure_reason", sa.Text()),
        sa.Column("lock_version", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_transactions_company_id", "transactions", ["company_id"])
    op.create_index("ix_transactions_company_status", "transactions", ["company_id", "status"])

    op.create_table(
        "settlement_records",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "transaction_id", sa.String(length=36), sa.ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("external_reference", sa.String(length=128)),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="PENDING"),
        sa.Column("settled_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index("ix_settlement_records_transaction_id", "settlement_records", ["transaction_id"])

    op.create_table(
        "cap_table_snapshots",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("company_id", sa.String(length=36), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("snapshot_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("trigger", sa.String(length=64), nullable=False, server_default="manual"),
        sa.Column("state_hash", sa.String(length=64), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_cap_table_snapshots_company_date", "cap_table_snapshots", ["company_id", "snapshot_date"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("company_id", sa.String(length=36), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("actor_id", sa.String(length=64)),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("resource_type", sa.String(length=128), nullable=False),
        sa.Column("resource_id", sa.String(length=128)),
        sa.Column("payload", sa.JSON()),
        *_timestamps(),
    )
    op.create_index("ix_audit_logs_company_id", "audit_logs", ["company_id"])


def downgrade() -> None:  # noqa: D401
    """Drop the cap table tables."""

    op.drop_index("ix_audit_logs_company_id", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_cap_table_snapshots_company_date", table_name="cap_table_snapshots")
    op.drop_table("cap_table_snapshots")
    op.drop_index("ix_settlement_records_transaction_id", table_name="settlement_records")
    op.drop_table("settlement_records")
    op.drop_index("ix_transactions_company_status", table_name="transactions")
    op.drop_index("ix_transactions_company_id", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_option_grants_company_id", table_name="option_grants")
    op.drop_table("option_grants")
    op.drop_index("ix_shareholdings_share_class_id", table_name="shareholdings")
    op.drop_index("ix_shareholdings_company_id", table_name="shareholdings")
    op.drop_table("shareholdings")
    op.drop_index("ix_shareholders_company_id", table_name="shareholders")
    op.drop_table("shareholders")
    op.drop_index("ix_share_classes_company_id", table_name="share_classes")
    op.drop_table("share_classes")
    op.drop_table("companies")

    for name in _ENUMS:
        _drop_enum(name)
