"""002: create balances table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE balances (
            user_id             VARCHAR(64) PRIMARY KEY,
            available           BIGINT      NOT NULL DEFAULT 0,
            locked              BIGINT      NOT NULL DEFAULT 0,
            total_deposited     BIGINT      NOT NULL DEFAULT 0,
            total_withdrawn     BIGINT      NOT NULL DEFAULT 0,
            total_earned        BIGINT      NOT NULL DEFAULT 0,
            version             BIGINT      NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_balances_available_gte_0  CHECK (available >= 0),
            CONSTRAINT ck_balances_locked_gte_0     CHECK (locked >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_balances_updated_at
            BEFORE UPDATE ON balances
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute(
        "COMMENT ON TABLE balances IS "
        "'Balance Cache — derived from ledger_entries, all amounts in USDT cents';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS balances CASCADE;")
