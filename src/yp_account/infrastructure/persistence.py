"""AccountRepository — concrete implementation of AccountRepositoryProtocol.

Balance rows are locked with SELECT ... FOR UPDATE before every posting and
mutated with atomic UPDATE ... RETURNING. Ledger inserts rely on the partial
unique index uq_ledger_position_kind_period for idempotency.

Transaction ownership: The CALLER (application service or accrual engine) is
responsible for starting and committing the transaction via `async with db.begin()`.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.yp_account.domain.models import (
    Balance,
    BalanceDelta,
    BalanceTotals,
    LedgerEntry,
    NewLedgerEntry,
)
from src.yp_common.errors import InternalError

_BALANCE_COLUMNS = """
    user_id, available, locked, total_deposited, total_withdrawn, total_earned,
    version, created_at, updated_at
"""

_LEDGER_COLUMNS = """
    id, user_id, kind, amount, balance_before, balance_after,
    position_ref, period_key, description, created_at
"""

# ---------------------------------------------------------------------------
# SQL: balances
# ---------------------------------------------------------------------------

_ENSURE_BALANCE_SQL = text("""
    INSERT INTO balances (user_id)
    VALUES (:user_id)
    ON CONFLICT (user_id) DO NOTHING
""")

_LOCK_BALANCE_SQL = text(f"""
    SELECT {_BALANCE_COLUMNS}
    FROM balances
    WHERE user_id = :user_id
    FOR UPDATE
""")

_GET_BALANCE_SQL = text(f"""
    SELECT {_BALANCE_COLUMNS}
    FROM balances
    WHERE user_id = :user_id
""")

_APPLY_DELTA_SQL = text(f"""
    UPDATE balances
    SET available       = available       + :available,
        locked          = locked          + :locked,
        total_deposited = total_deposited + :total_deposited,
        total_withdrawn = total_withdrawn + :total_withdrawn,
        total_earned    = total_earned    + :total_earned,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id
    RETURNING {_BALANCE_COLUMNS}
""")

_OVERWRITE_BALANCE_SQL = text(f"""
    UPDATE balances
    SET available       = :available,
        locked          = :locked,
        total_deposited = :total_deposited,
        total_withdrawn = :total_withdrawn,
        total_earned    = :total_earned,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id
    RETURNING {_BALANCE_COLUMNS}
""")

_LIST_BALANCE_USERS_SQL = text("SELECT user_id FROM balances ORDER BY user_id")

# ---------------------------------------------------------------------------
# SQL: ledger_entries
# ---------------------------------------------------------------------------

_INSERT_LEDGER_SQL = text(f"""
    INSERT INTO ledger_entries
        (user_id, kind, amount, balance_before, balance_after,
         position_ref, period_key, description)
    VALUES
        (:user_id, :kind, :amount, :balance_before, :balance_after,
         :position_ref, :period_key, :description)
    ON CONFLICT (position_ref, kind, period_key)
        WHERE position_ref IS NOT NULL
        DO NOTHING
    RETURNING {_LEDGER_COLUMNS}
""")

_LIST_LEDGER_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM ledger_entries
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
      AND (CAST(:kind AS VARCHAR) IS NULL OR kind = :kind)
    ORDER BY id DESC
    LIMIT :limit
""")

_LIST_ALL_LEDGER_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM ledger_entries
    WHERE user_id = :user_id
    ORDER BY id ASC
""")


def _row_to_balance(row: object) -> Balance:
    return Balance(
        user_id=row.user_id,  # type: ignore[attr-defined]
        available=row.available,  # type: ignore[attr-defined]
        locked=row.locked,  # type: ignore[attr-defined]
        total_deposited=row.total_deposited,  # type: ignore[attr-defined]
        total_withdrawn=row.total_withdrawn,  # type: ignore[attr-defined]
        total_earned=row.total_earned,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_ledger(row: object) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        kind=row.kind,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        balance_before=row.balance_before,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        position_ref=row.position_ref,  # type: ignore[attr-defined]
        period_key=row.period_key,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class AccountRepository:
    """Concrete repository — all operations atomic at the SQL level."""

    async def get_balance(self, db: AsyncSession, user_id: str) -> Balance | None:
        result = await db.execute(_GET_BALANCE_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_balance(row) if row else None

    async def lock_balance(self, db: AsyncSession, user_id: str) -> Balance:
        await db.execute(_ENSURE_BALANCE_SQL, {"user_id": user_id})
        result = await db.execute(_LOCK_BALANCE_SQL, {"user_id": user_id})
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Balance row missing right after upsert for user {user_id}")
        return _row_to_balance(row)

    async def append_ledger(
        self, db: AsyncSession, entry: NewLedgerEntry
    ) -> LedgerEntry | None:
        result = await db.execute(
            _INSERT_LEDGER_SQL,
            {
                "user_id": entry.user_id,
                "kind": entry.kind,
                "amount": entry.amount,
                "balance_before": entry.balance_before,
                "balance_after": entry.balance_after,
                "position_ref": entry.position_ref,
                "period_key": entry.period_key,
                "description": entry.description,
            },
        )
        row = result.fetchone()
        return _row_to_ledger(row) if row else None

    async def apply_balance_delta(
        self, db: AsyncSession, user_id: str, delta: BalanceDelta
    ) -> Balance:
        result = await db.execute(
            _APPLY_DELTA_SQL,
            {
                "user_id": user_id,
                "available": delta.available,
                "locked": delta.locked,
                "total_deposited": delta.total_deposited,
                "total_withdrawn": delta.total_withdrawn,
                "total_earned": delta.total_earned,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Balance not found for user {user_id}")
        return _row_to_balance(row)

    async def overwrite_balance(
        self, db: AsyncSession, user_id: str, totals: BalanceTotals
    ) -> Balance:
        await db.execute(_ENSURE_BALANCE_SQL, {"user_id": user_id})
        result = await db.execute(
            _OVERWRITE_BALANCE_SQL,
            {
                "user_id": user_id,
                "available": totals.available,
                "locked": totals.locked,
                "total_deposited": totals.total_deposited,
                "total_withdrawn": totals.total_withdrawn,
                "total_earned": totals.total_earned,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Balance not found for user {user_id}")
        return _row_to_balance(row)

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        kind: str | None,
    ) -> list[LedgerEntry]:
        result = await db.execute(
            _LIST_LEDGER_SQL,
            {
                "user_id": user_id,
                "cursor_id": cursor_id,
                "kind": kind,
                "limit": limit,
            },
        )
        return [_row_to_ledger(row) for row in result.fetchall()]

    async def list_all_ledger_entries(
        self, db: AsyncSession, user_id: str
    ) -> list[LedgerEntry]:
        result = await db.execute(_LIST_ALL_LEDGER_SQL, {"user_id": user_id})
        return [_row_to_ledger(row) for row in result.fetchall()]

    async def list_balance_user_ids(self, db: AsyncSession) -> list[str]:
        result = await db.execute(_LIST_BALANCE_USERS_SQL)
        return [row.user_id for row in result.fetchall()]
