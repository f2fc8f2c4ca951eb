"""Tests for the finance ledger and recurring cash flows."""

from __future__ import annotations

from datetime import date

import numpy as np
import pytest

from conftest import RULES_PATH, build_world
from matchday.db.models import StaffContractDB
from matchday.models.competition import Match
from matchday.services.finance import (
    BROADCAST,
    MERCHANDISE,
    SALARIES,
    SPONSORSHIP,
    TICKET_SALES,
    FinanceLedger,
    FinanceService,
)

FIRST_OF_MONTH = date(2025, 9, 1)


def _make_match(home: int = 1, away: int = 2) -> Match:
    return Match(
        id=10,
        competition_id=1,
        season_id=1,
        home_club_id=home,
        away_club_id=away,
        match_date=date(2025, 8, 2),
        leg_number=1,
    )


class TestLedger:
    def test_balance_accumulates(self, context):
        with context.session_scope() as session:
            ledger = FinanceLedger(session)
            assert ledger.get_club_balance(1) == 0.0
            assert ledger.record_transaction(1, MERCHANDISE, 500.0, FIRST_OF_MONTH) == 500.0
            assert ledger.record_transaction(1, SALARIES, -200.0, FIRST_OF_MONTH) == 300.0

        with context.session_scope() as session:
            ledger = FinanceLedger(session)
            assert ledger.get_club_balance(1) == 300.0
            assert [t.category for t in ledger.get_transactions(1)] == [MERCHANDISE, SALARIES]
            assert len(ledger.get_transactions(1, category=SALARIES)) == 1


class TestTicketRevenue:
    def test_home_club_credited(self, context, world):
        service = FinanceService()
        with context.session_scope() as session:
            revenue = service.record_ticket_revenue(session, _make_match(), np.random.default_rng(1))
            ledger = FinanceLedger(session)
            (txn,) = ledger.get_transactions(1, category=TICKET_SALES)
            away_balance = ledger.get_club_balance(2)

        # 60-90% of a 20,000 seat stadium at 30 + reputation/100
        assert 12_000 * 30.41 <= revenue <= 18_000 * 30.41
        assert txn.amount == revenue
        assert txn.related_match_id == 10
        assert "Round 1" in txn.description
        assert away_balance == 0.0

    def test_unknown_home_club_is_skipped(self, context, world):
        with context.session_scope() as session:
            revenue = FinanceService().record_ticket_revenue(
                session, _make_match(home=99), np.random.default_rng(1)
            )
        assert revenue == 0.0


class TestMonthly:
    def test_wage_bill_counts_active_player_and_staff_contracts(self, context, world):
        with context.session_scope() as session:
            session.add(StaffContractDB(
                staff_id=1, club_id=1,
                start_date=date(2025, 7, 1), end_date=date(2026, 6, 30),
                monthly_wage=5_000,
            ))
            session.flush()
            service = FinanceService()
            assert service.monthly_wage_bill(session, 1, FIRST_OF_MONTH) == 11 * 10_000 + 5_000
            assert service.monthly_wage_bill(session, 1, date(2031, 1, 1)) == 0

    def test_process_monthly_posts_every_club(self, context, world):
        processed = FinanceService(rules_path=RULES_PATH).process_monthly(
            context, FIRST_OF_MONTH, np.random.default_rng(3)
        )
        assert processed == 4

        with context.session_scope() as session:
            ledger = FinanceLedger(session)
            txns = ledger.get_transactions(1)
            balance = ledger.get_club_balance(1)

        by_category = {t.category: t.amount for t in txns}
        assert by_category[SALARIES] == -110_000
        assert by_category[SPONSORSHIP] == 41 * 300
        assert by_category[BROADCAST] == 41 * 400
        assert 41 * 500 <= by_category[MERCHANDISE] < 41 * 500 + 2000
        assert balance == pytest.approx(sum(by_category.values()))
        assert "September 2025" in txns[0].description

    def test_no_salary_row_without_contracts(self, context):
        build_world(context, {"ENG": 2}, squad_size=0)
        FinanceService().process_monthly(context, FIRST_OF_MONTH, np.random.default_rng(3))
        with context.session_scope() as session:
            categories = {t.category for t in FinanceLedger(session).get_transactions(1)}
        assert SALARIES not in categories
        assert categories == {MERCHANDISE, SPONSORSHIP, BROADCAST}
