"""Position ledger schema baseline

Revision ID: 20261018_01
Revises: None
Create Date: 2026-10-18
"""
# pylint: disable=no-member,invalid-name,wrong-import-order

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20261018_01"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uint256() -> sa.Numeric:
    return sa.Numeric(78, 0)


def _int256() -> sa.Numeric:
    # one extra digit for sign-extended deltas and PnL values
    return sa.Numeric(79, 0)


def upgrade() -> None:
    """Upgrade schema."""

    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "token",
        sa.Column("token_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("chain_id", sa.BigInteger(), nullable=False),
        sa.Column("token_address", sa.Text(), nullable=False),
        sa.Column("symbol", sa.Text(), nullable=True),
        sa.Column("decimals", sa.SmallInteger(), nullable=False),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("chain_id", "token_address", name="uq_token_chain_address"),
        sa.CheckConstraint("decimals >= 0 AND decimals <= 255", name="ck_token_decimals"),
    )

    op.create_table(
        "pool",
        sa.Column("pool_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("chain_id", sa.BigInteger(), nullable=False),
        sa.Column("pool_address", sa.Text(), nullable=False),
        sa.Column("token0_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("token.token_id"), nullable=False),
        sa.Column("token1_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("token.token_id"), nullable=False),
        sa.Column("fee_tier", sa.Integer(), nullable=False),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("chain_id", "pool_address", name="uq_pool_chain_address"),
    )

    op.create_table(
        "position",
        sa.Column("position_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("pool_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("pool.pool_id"), nullable=False),
        sa.Column("chain_id", sa.BigInteger(), nullable=False),
        sa.Column("nft_id", _uint256(), nullable=False),
        sa.Column("tick_lower", sa.Integer(), nullable=False),
        sa.Column("tick_upper", sa.Integer(), nullable=False),
        sa.Column("token0_is_quote", sa.Boolean(), nullable=False),
        sa.Column("owner_address", sa.Text(), nullable=True),
        sa.Column("liquidity", _uint256(), nullable=False, server_default=sa.text("0")),
        sa.Column("fee_growth_inside0_last_x128", _uint256(), nullable=False, server_default=sa.text("0")),
        sa.Column("fee_growth_inside1_last_x128", _uint256(), nullable=False, server_default=sa.text("0")),
        sa.Column("tokens_owed0", _uint256(), nullable=False, server_default=sa.text("0")),
        sa.Column("tokens_owed1", _uint256(), nullable=False, server_default=sa.text("0")),
        sa.Column("current_value", _int256(), nullable=False, server_default=sa.text("0")),
        sa.Column("cost_basis", _int256(), nullable=False, server_default=sa.text("0")),
        sa.Column("realized_pnl", _int256(), nullable=False, server_default=sa.text("0")),
        sa.Column("unrealized_pnl", _int256(), nullable=False, server_default=sa.text("0")),
        sa.Column("collected_fees", _int256(), nullable=False, server_default=sa.text("0")),
        sa.Column("unclaimed_fees", _int256(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_fees_collected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("position_opened_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("position_closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("chain_id", "nft_id", name="uq_position_chain_nft"),
        sa.CheckConstraint("tick_lower < tick_upper", name="ck_position_tick_range"),
    )
    op.create_index("ix_position_pool_id", "position", ["pool_id"])

    op.create_table(
        "position_ledger_event",
        sa.Column(
            "ledger_event_id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "position_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("position.position_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("previous_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("chain_id", sa.BigInteger(), nullable=False),
        sa.Column("nft_id", _uint256(), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column("tx_index", sa.Integer(), nullable=False),
        sa.Column("log_index", sa.Integer(), nullable=False),
        sa.Column("tx_hash", sa.Text(), nullable=False),
        sa.Column("event_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("token0_amount", _uint256(), nullable=False),
        sa.Column("token1_amount", _uint256(), nullable=False),
        sa.Column("pool_price", _uint256(), nullable=False),
        sa.Column("token_value", _int256(), nullable=False),
        sa.Column("delta_cost_basis", _int256(), nullable=False),
        sa.Column("cost_basis_after", _int256(), nullable=False),
        sa.Column("delta_pnl", _int256(), nullable=False),
        sa.Column("pnl_after", _int256(), nullable=False),
        sa.Column("delta_l", _int256(), nullable=False),
        sa.Column("liquidity_after", _uint256(), nullable=False),
        sa.Column("fees_collected0", _uint256(), nullable=False),
        sa.Column("fees_collected1", _uint256(), nullable=False),
        sa.Column("uncollected_principal0_after", _uint256(), nullable=False),
        sa.Column("uncollected_principal1_after", _uint256(), nullable=False),
        sa.Column("sqrt_price_x96", _uint256(), nullable=False),
        sa.Column("rewards", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("price_approximate", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("recipient", sa.Text(), nullable=True),
        sa.Column("input_hash", sa.Text(), nullable=False),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("position_id", "input_hash", name="uq_position_ledger_event_input_hash"),
        sa.CheckConstraint(
            "event_type in ('INCREASE_POSITION', 'DECREASE_POSITION', 'COLLECT')",
            name="ck_position_ledger_event_type",
        ),
        sa.CheckConstraint("liquidity_after >= 0", name="ck_position_ledger_event_liquidity"),
    )
    op.create_index(
        "ix_position_ledger_event_coordinates",
        "position_ledger_event",
        ["position_id", "block_number", "tx_index", "log_index"],
    )

    op.create_table(
        "position_sync_state",
        sa.Column(
            "position_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("position.position_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("state", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_sync_by", sa.Text(), nullable=True),
    )

    op.create_table(
        "pool_price",
        sa.Column("pool_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("pool.pool_id", ondelete="CASCADE"), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column("sqrt_price_x96", _uint256(), nullable=False),
        sa.Column("block_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("pool_id", "block_number", name="pk_pool_price"),
    )

    op.create_table(
        "ledger_sync_run",
        sa.Column("sync_run_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "position_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("position.position_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("run_type", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("started_at_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at_utc", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.BigInteger(), nullable=True),
        sa.Column("error_code", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("diagnostics", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("from_block", sa.BigInteger(), nullable=True),
        sa.Column("finalized_block", sa.BigInteger(), nullable=True),
        sa.Column("events_added", sa.Integer(), nullable=True),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("status in ('started', 'success', 'failed')", name="ck_ledger_sync_run_status"),
        sa.CheckConstraint(
            "run_type in ('incremental', 'full_resync', 'refresh', 'import')",
            name="ck_ledger_sync_run_run_type",
        ),
    )
    op.create_index(
        "ix_ledger_sync_run_position_started",
        "ledger_sync_run",
        ["position_id", sa.text("started_at_utc DESC")],
    )

    op.create_table(
        "apr_recompute_request",
        sa.Column("request_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "position_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("position.position_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("requested_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("processed_at_utc", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "uq_apr_recompute_request_pending",
        "apr_recompute_request",
        ["position_id"],
        unique=True,
        postgresql_where=sa.text("processed_at_utc IS NULL"),
    )


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_index("uq_apr_recompute_request_pending", table_name="apr_recompute_request")
    op.drop_table("apr_recompute_request")
    op.drop_index("ix_ledger_sync_run_position_started", table_name="ledger_sync_run")
    op.drop_table("ledger_sync_run")
    op.drop_table("pool_price")
    op.drop_table("position_sync_state")
    op.drop_index("ix_position_ledger_event_coordinates", table_name="position_ledger_event")
    op.drop_table("position_ledger_event")
    op.drop_index("ix_position_pool_id", table_name="position")
    op.drop_table("position")
    op.drop_table("pool")
    op.drop_table("token")
