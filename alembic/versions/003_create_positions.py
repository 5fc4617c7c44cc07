"""003: create positions table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE positions (
            id                  VARCHAR(64)     PRIMARY KEY,
            user_id             VARCHAR(64)     NOT NULL,
            plan_id             VARCHAR(64),
            principal           BIGINT          NOT NULL,
            rate                NUMERIC(10, 4)  NOT NULL,
            duration_periods    INT             NOT NULL,
            payout_mode         VARCHAR(30)     NOT NULL,
            started_at          TIMESTAMPTZ     NOT NULL,
            matures_at          TIMESTAMPTZ     NOT NULL,
            next_due_at         TIMESTAMPTZ,
            cumulative_earned   BIGINT          NOT NULL DEFAULT 0,
            status              VARCHAR(20)     NOT NULL DEFAULT 'active',
            completed_at        TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_positions_principal_gt_0   CHECK (principal > 0),
            CONSTRAINT ck_positions_duration_gt_0    CHECK (duration_periods > 0),
            CONSTRAINT ck_positions_cumulative_gte_0 CHECK (cumulative_earned >= 0),
            CONSTRAINT ck_positions_payout_mode CHECK (
                payout_mode IN ('periodic', 'lump_sum_at_maturity')
            ),
            CONSTRAINT ck_positions_status CHECK (status IN ('active', 'completed')),
            CONSTRAINT ck_positions_matures_after_start CHECK (matures_at > started_at)
        );
    """)
    op.execute("CREATE INDEX idx_positions_user ON positions (user_id, started_at DESC);")
    # Due-position scan only looks at active rows
    op.execute("""
        CREATE INDEX idx_positions_active_due
        ON positions (next_due_at)
        WHERE status = 'active';
    """)
    op.execute("""
        CREATE INDEX idx_positions_active_maturity
        ON positions (matures_at)
        WHERE status = 'active';
    """)
    op.execute("""
        CREATE TRIGGER trg_positions_updated_at
            BEFORE UPDATE ON positions
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute(
        "COMMENT ON TABLE positions IS "
        "'Investment positions — principal and cumulative_earned in USDT cents';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS positions CASCADE;")
