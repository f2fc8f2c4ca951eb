"""Club finance — the transaction ledger and the game's recurring cash flows.

FinanceLedger records categorized transactions and keeps one balance row
per club. FinanceService applies matchday ticket revenue and the monthly
wage bill and commercial income on the first day of each month.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

import numpy as np
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from matchday.db.models import (
    ClubDB,
    ClubFinanceDB,
    FinancialTransactionDB,
    PlayerContractDB,
    StaffContractDB,
)
from matchday.db.session import GameContext
from matchday.models.competition import Match
from matchday.utils.rules import load_section

logger = logging.getLogger(__name__)

TICKET_SALES = "Ticket Sales"
SALARIES = "Salaries"
MERCHANDISE = "Merchandise Sales"
SPONSORSHIP = "Sponsorship"
BROADCAST = "Broadcast Revenue"
PRIZE_MONEY = "Prize Money"


class FinanceLedger:
    """Session-bound ledger. Writes join the caller's transaction."""

    def __init__(self, session: Session):
        self.session = session

    def record_transaction(
        self,
        club_id: int,
        category: str,
        amount: float,
        transaction_date: date,
        description: str = "",
        related_match_id: int | None = None,
    ) -> float:
        """Record one transaction and return the club's new balance."""
        self.session.add(FinancialTransactionDB(
            club_id=club_id,
            category=category,
            amount=amount,
            transaction_date=transaction_date,
            description=description,
            related_match_id=related_match_id,
        ))

        summary = self.session.get(ClubFinanceDB, club_id)
        if summary is None:
            summary = ClubFinanceDB(club_id=club_id, balance=0.0)
            self.session.add(summary)
        summary.balance = (summary.balance or 0.0) + amount
        summary.last_updated_date = transaction_date
        self.session.flush()
        return summary.balance

    def get_club_balance(self, club_id: int) -> float:
        summary = self.session.get(ClubFinanceDB, club_id)
        return summary.balance if summary is not None else 0.0

    def get_transactions(
        self, club_id: int, category: str | None = None
    ) -> list[FinancialTransactionDB]:
        stmt = select(FinancialTransactionDB).where(FinancialTransactionDB.club_id == club_id)
        if category is not None:
            stmt = stmt.where(FinancialTransactionDB.category == category)
        return list(self.session.scalars(
            stmt.order_by(FinancialTransactionDB.transaction_date, FinancialTransactionDB.id)
        ).all())


class FinanceService:
    """Recurring income and expenses, tuned from the "finance" rules section."""

    def __init__(self, rules_path: str | Path | None = None):
        self.base_ticket_price = 30.0
        self.merchandise_per_reputation = 500
        self.sponsorship_per_reputation = 300
        self.broadcast_per_reputation = 400

        if rules_path is not None:
            self._load_rules(rules_path)

    def _load_rules(self, rules_path: str | Path) -> None:
        finance_rules = load_section(rules_path, "finance")
        self.base_ticket_price = finance_rules.get("base_ticket_price", self.base_ticket_price)
        self.merchandise_per_reputation = finance_rules.get(
            "merchandise_per_reputation", self.merchandise_per_reputation
        )
        self.sponsorship_per_reputation = finance_rules.get(
            "sponsorship_per_reputation", self.sponsorship_per_reputation
        )
        self.broadcast_per_reputation = finance_rules.get(
            "broadcast_per_reputation", self.broadcast_per_reputation
        )

    # ── Matchday ─────────────────────────────────────────────────────────

    def record_ticket_revenue(
        self,
        session: Session,
        match: Match,
        rng: np.random.Generator,
    ) -> float:
        """Credit the home club with gate receipts for a played match.

        Returns the amount credited (0 when the home club is unknown).
        """
        home = session.get(ClubDB, match.home_club_id)
        if home is None:
            logger.warning(f"Club {match.home_club_id} not found, no ticket revenue for match {match.id}")
            return 0.0

        away = session.get(ClubDB, match.away_club_id)
        away_name = away.name if away is not None else f"club {match.away_club_id}"

        capacity = home.stadium_capacity or 0
        spectators = int(capacity * rng.uniform(0.6, 0.9))
        ticket_price = self.base_ticket_price + (home.reputation or 0) / 100
        revenue = round(spectators * ticket_price, 2)

        FinanceLedger(session).record_transaction(
            home.id,
            TICKET_SALES,
            revenue,
            match.match_date,
            f"Ticket sales for the match vs. {away_name} (Round {match.leg_number})",
            related_match_id=match.id,
        )
        return revenue

    # ── Monthly ──────────────────────────────────────────────────────────

    def monthly_wage_bill(self, session: Session, club_id: int, on_date: date) -> int:
        """Sum of monthly wages of player and staff contracts active on a date."""
        total = 0
        for contract in (PlayerContractDB, StaffContractDB):
            total += session.scalar(
                select(func.coalesce(func.sum(contract.monthly_wage), 0)).where(
                    contract.club_id == club_id,
                    contract.start_date <= on_date,
                    contract.end_date >= on_date,
                )
            ) or 0
        return int(total)

    def process_club_month(
        self,
        session: Session,
        club: ClubDB,
        on_date: date,
        rng: np.random.Generator,
    ) -> float:
        """Post one club's salaries and commercial income. Returns the net amount."""
        ledger = FinanceLedger(session)
        reputation = club.reputation or 0
        month = on_date.strftime("%B %Y")

        wages = self.monthly_wage_bill(session, club.id, on_date)
        merchandise = reputation * self.merchandise_per_reputation + int(rng.integers(0, 2000))
        sponsorship = reputation * self.sponsorship_per_reputation
        broadcast = reputation * self.broadcast_per_reputation

        if wages:
            ledger.record_transaction(club.id, SALARIES, -wages, on_date, f"Salaries for {month}")
        ledger.record_transaction(club.id, MERCHANDISE, merchandise, on_date, f"Merchandise sales for {month}")
        ledger.record_transaction(club.id, SPONSORSHIP, sponsorship, on_date, f"Sponsorship for {month}")
        ledger.record_transaction(club.id, BROADCAST, broadcast, on_date, f"Broadcast revenue for {month}")
        return merchandise + sponsorship + broadcast - wages

    def process_monthly(
        self,
        context: GameContext,
        on_date: date,
        rng: np.random.Generator | None = None,
    ) -> int:
        """Run the monthly cash flows for every club, one transaction per club.

        A failure for one club is logged and does not stop the others.
        Returns the number of clubs processed.
        """
        if rng is None:
            rng = np.random.default_rng()

        logger.info(f"Processing monthly payments for {on_date}")
        with context.session_scope() as session:
            club_ids = list(session.scalars(select(ClubDB.id).order_by(ClubDB.id)).all())

        processed = 0
        for club_id in club_ids:
            try:
                with context.session_scope() as session:
                    club = session.get(ClubDB, club_id)
                    self.process_club_month(session, club, on_date, rng)
                processed += 1
            except SQLAlchemyError as exc:
                logger.error(f"Monthly finances failed for club {club_id}: {exc}")
        return processed
