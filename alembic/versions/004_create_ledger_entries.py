"""004: create ledger_entries table

Revision ID: 004
Revises: 003
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE ledger_entries (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            kind            VARCHAR(30)     NOT NULL,
            amount          BIGINT          NOT NULL,
            balance_before  BIGINT          NOT NULL,
            balance_after   BIGINT          NOT NULL,
            position_ref    VARCHAR(64),
            period_key      VARCHAR(32),
            description     VARCHAR(500),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_ledger_kind CHECK (
                kind IN (
                    'deposit', 'withdrawal', 'earning', 'principal_return',
                    'refund', 'admin_adjustment', 'investment'
                )
            ),
            CONSTRAINT ck_ledger_amount_ne_0 CHECK (amount <> 0),
            CONSTRAINT ck_ledger_balance_chain CHECK (balance_after = balance_before + amount)
        );
    """)
    # Store-level idempotency: one entry per (position, kind, period window)
    op.execute("""
        CREATE UNIQUE INDEX uq_ledger_position_kind_period
        ON ledger_entries (position_ref, kind, period_key)
        WHERE position_ref IS NOT NULL;
    """)
    op.execute("CREATE INDEX idx_ledger_user_id ON ledger_entries (user_id, id DESC);")
    op.execute("CREATE INDEX idx_ledger_kind ON ledger_entries (kind, created_at);")
    op.execute("""
        CREATE TRIGGER trg_ledger_entries_append_only
            BEFORE UPDATE OR DELETE ON ledger_entries
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute(
        "COMMENT ON TABLE ledger_entries IS "
        "'Ledger — append-only source of truth, all amounts in USDT cents';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ledger_entries CASCADE;")
