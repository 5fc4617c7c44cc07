"""Tests for ReconciliationService against the in-memory store."""

from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import IntegrityError

DAY = timedelta(days=1)
T0 = datetime(2026, 3, 1, tzinfo=UTC)


class TestReconcileUser:
    async def test_clean_user_has_no_drift(
        self, open_funded_position, accrual_engine, reconciliation, session
    ) -> None:
        await open_funded_position()
        await accrual_engine.run_due_accrual(now=T0)

        report = await reconciliation.reconcile_user(session, "user-1")

        assert report.has_drift is False
        assert report.applied is False

    async def test_reports_cache_drift_without_writing(
        self, open_funded_position, reconciliation, session, store
    ) -> None:
        await open_funded_position()
        store.balances["user-1"].available = 999

        report = await reconciliation.reconcile_user(session, "user-1")

        assert [d.field for d in report.balance_drift] == ["available"]
        drift = report.balance_drift[0]
        assert drift.stored == "9.99"
        assert drift.computed == "0.00"
        assert drift.difference == "-9.99"
        assert store.balances["user-1"].available == 999

    async def test_apply_overwrites_and_is_idempotent(
        self, open_funded_position, accrual_engine, reconciliation, session, store
    ) -> None:
        pid = await open_funded_position()
        await accrual_engine.run_due_accrual(now=T0)
        store.balances["user-1"].total_earned = 0
        store.positions[pid].cumulative_earned = 0

        applied = await reconciliation.reconcile_user(session, "user-1", apply=True)

        assert applied.applied is True
        assert [d.field for d in applied.balance_drift] == ["total_earned"]
        assert applied.position_drift[0].position_id == pid
        assert applied.position_drift[0].ledger_earned == "2.00"
        assert store.balances["user-1"].total_earned == 200
        assert store.positions[pid].cumulative_earned == 200

        second = await reconciliation.reconcile_user(session, "user-1", apply=True)
        assert second.has_drift is False
        assert second.applied is False

    async def test_completes_position_whose_principal_was_returned(
        self, open_funded_position, accrual_engine, reconciliation, session, store
    ) -> None:
        pid = await open_funded_position(duration=3)
        await accrual_engine.run_due_accrual(now=T0 + 3 * DAY)
        store.positions[pid].status = "active"
        store.positions[pid].completed_at = None

        report = await reconciliation.reconcile_user(session, "user-1", apply=True)

        assert report.position_drift[0].principal_returned is True
        assert "principal returned but position still active" in report.position_drift[0].issues
        assert store.positions[pid].status == "completed"
        assert store.positions[pid].completed_at is not None

    async def test_read_only_after_engine_runs_matches_fold(
        self, open_funded_position, accrual_engine, reconciliation, session
    ) -> None:
        await open_funded_position(user_id="a", duration=3)
        await open_funded_position(user_id="a", rate="120", duration=30)
        for day in (0, 1, 2, 3, 30):
            await accrual_engine.run_due_accrual(now=T0 + day * DAY)

        report = await reconciliation.reconcile_user(session, "a")

        assert report.balance_drift == []
        assert report.position_drift == []

    async def test_read_only_report_uses_one_snapshot(
        self, open_funded_position, reconciliation, session
    ) -> None:
        await open_funded_position()

        await reconciliation.reconcile_user(session, "user-1")

        assert session.execution_options == {"isolation_level": "REPEATABLE READ"}
        assert session.in_transaction() is False

    async def test_apply_keeps_default_isolation(
        self, open_funded_position, reconciliation, session
    ) -> None:
        await open_funded_position()

        await reconciliation.reconcile_user(session, "user-1", apply=True)

        assert session.execution_options == {}

    async def test_camel_case_dump(self, reconciliation, session) -> None:
        report = await reconciliation.reconcile_user(session, "nobody")

        data = report.model_dump(by_alias=True)

        assert set(data) == {"userId", "balanceDrift", "positionDrift", "applied"}


class TestReconcileAll:
    async def test_only_drifting_users_reported(
        self, open_funded_position, reconciliation, session, store
    ) -> None:
        await open_funded_position(user_id="clean")
        await open_funded_position(user_id="dirty")
        store.balances["dirty"].locked = 1

        result = await reconciliation.reconcile_all(session)

        assert result.users_checked == 2
        assert result.users_with_drift == 1
        assert result.reports[0].user_id == "dirty"
        assert store.balances["dirty"].locked == 1

    async def test_apply_fixes_everyone(
        self, open_funded_position, reconciliation, session, store
    ) -> None:
        await open_funded_position(user_id="dirty")
        store.balances["dirty"].locked = 1

        await reconciliation.reconcile_all(session, apply=True)
        again = await reconciliation.reconcile_all(session)

        assert store.balances["dirty"].locked == 10000
        assert again.users_with_drift == 0

    async def test_failing_user_does_not_stop_sweep(
        self, open_funded_position, account_repo, reconciliation, session, store
    ) -> None:
        await open_funded_position(user_id="bad")
        await open_funded_position(user_id="good")
        store.balances["bad"].available = 5
        store.balances["good"].available = 5
        overwrite = account_repo.overwrite_balance

        async def rejecting_bad(db, user_id, totals):
            if user_id == "bad":
                raise IntegrityError("UPDATE balances", {}, Exception("chk_available"))
            return await overwrite(db, user_id, totals)

        account_repo.overwrite_balance = rejecting_bad

        result = await reconciliation.reconcile_all(session, apply=True)

        assert result.users_checked == 2
        assert [r.user_id for r in result.reports] == ["good"]
        assert len(result.errors) == 1
        assert result.errors[0].startswith("bad: IntegrityError")
        assert store.balances["good"].available == 0
        assert store.balances["bad"].available == 5


class TestMissingPeriods:
    async def test_completed_without_any_credit_reported(
        self, open_funded_position, accrual_engine, reconciliation, session
    ) -> None:
        pid = await open_funded_position(duration=3)
        # Every daily scan missed; the first scan is already past maturity
        await accrual_engine.run_due_accrual(now=T0 + 3 * DAY)

        report = await reconciliation.reconcile_user(session, "user-1")

        assert report.has_drift is True
        assert report.balance_drift == []
        drift = report.position_drift[0]
        assert drift.position_id == pid
        assert drift.status == "completed"
        assert drift.issues == ["missing periods: 0 of 3 credited"]

    async def test_partial_credits_reported_and_not_rewritten(
        self, open_funded_position, accrual_engine, reconciliation, session, store
    ) -> None:
        pid = await open_funded_position(duration=3)
        await accrual_engine.run_due_accrual(now=T0)
        await accrual_engine.run_due_accrual(now=T0 + 3 * DAY)

        report = await reconciliation.reconcile_user(session, "user-1", apply=True)

        assert report.position_drift[0].issues == ["missing periods: 1 of 3 credited"]
        assert report.applied is False
        assert store.positions[pid].cumulative_earned == 200
        assert store.positions[pid].status == "completed"

    async def test_lump_sum_not_checked_for_periods(
        self, open_funded_position, accrual_engine, reconciliation, session
    ) -> None:
        await open_funded_position(rate="120", duration=30)
        await accrual_engine.run_due_accrual(now=T0 + 30 * DAY)

        report = await reconciliation.reconcile_user(session, "user-1")

        assert report.position_drift == []
