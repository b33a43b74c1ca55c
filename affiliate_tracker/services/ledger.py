"""
Ledger / Balance Manager

Owns every mutation of ``affiliates.balance``. Balance changes are issued as
relative UPDATEs (``balance = balance + :amount``) inside the caller's
transaction, so two concurrent requests against the same affiliate serialize
in the database instead of overwriting each other.

Invariant: balance == sum(approved commissions) - sum(requested or paid payouts)
"""
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ..core.errors import (
    AlreadySettledError,
    BelowMinimumError,
    InsufficientBalanceError,
    InvalidInputError,
    NotFoundError,
)
from ..models import Affiliate, Conversion, ConversionStatus, Payout, PayoutStatus
from ..utils.log import get_logger, log_ledger_event
from .attribution import get_affiliate_by_code

logger = get_logger(__name__)

DEBITING_PAYOUT_STATUSES = (PayoutStatus.REQUESTED.value, PayoutStatus.PAID.value)


@dataclass
class BalanceReconciliation:
    affiliate_id: str
    balance: int
    approved_commission: int
    payouts_debited: int

    @property
    def expected_balance(self) -> int:
        return self.approved_commission - self.payouts_debited

    @property
    def consistent(self) -> bool:
        return self.balance == self.expected_balance


class LedgerService:
    """Balance credits, payout requests and settlements"""

    @staticmethod
    def credit_for_conversion(db: Session, affiliate_id: str, amount: int) -> None:
        """
        Credit an approved commission. Runs inside the caller's transaction
        and never commits on its own.
        """
        if amount < 0:
            raise InvalidInputError("credit amount must be >= 0", {"affiliate_id": affiliate_id, "amount": amount})

        result = db.execute(
            update(Affiliate)
            .where(Affiliate.id == affiliate_id)
            .values(balance=Affiliate.balance + amount, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Affiliate {affiliate_id} not found", {"affiliate_id": affiliate_id})

    @staticmethod
    def request_payout(
        db: Session,
        affiliate_code: str,
        amount: int,
        *,
        minimum_payout: int,
    ) -> Payout:
        """
        Create a payout request and debit the balance in one transaction.

        Raises:
            InvalidInputError: amount is not a positive whole number
            NotFoundError: unknown affiliate code
            BelowMinimumError: amount < minimum_payout (regardless of balance)
            InsufficientBalanceError: balance < amount
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidInputError("amount must be a positive whole number", {"amount": amount})

        affiliate = get_affiliate_by_code(db, affiliate_code)

        if amount < minimum_payout:
            raise BelowMinimumError(
                f"Minimum payout is {minimum_payout}",
                {"affiliate_id": affiliate.id, "amount": amount, "minimum_payout": minimum_payout},
            )

        try:
            # Conditional relative debit: only succeeds while the balance covers it
            result = db.execute(
                update(Affiliate)
                .where(Affiliate.id == affiliate.id, Affiliate.balance >= amount)
                .values(balance=Affiliate.balance - amount, updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                current = db.execute(
                    select(Affiliate.balance).where(Affiliate.id == affiliate.id)
                ).scalar()
                raise InsufficientBalanceError(
                    "Insufficient balance",
                    {"affiliate_id": affiliate.id, "balance": current, "amount": amount},
                )

            payout = Payout(
                affiliate_id=affiliate.id,
                amount=amount,
                status=PayoutStatus.REQUESTED.value,
                requested_at=datetime.utcnow(),
            )
            db.add(payout)
            db.commit()
        except Exception:
            db.rollback()
            log_ledger_event(logger, "payout_request", False, affiliate_id=affiliate.id, amount=amount)
            raise

        db.refresh(payout)
        log_ledger_event(logger, "payout_request", True, affiliate_id=affiliate.id, payout_id=payout.id, amount=amount)
        return payout

    @staticmethod
    def settle_payout(db: Session, payout_id: str) -> Payout:
        """
        Mark a requested payout as paid. The balance was already debited at
        request time, so nothing else changes.

        Raises:
            NotFoundError: unknown payout
            AlreadySettledError: payout is not in the requested state
        """
        try:
            result = db.execute(
                update(Payout)
                .where(Payout.id == payout_id, Payout.status == PayoutStatus.REQUESTED.value)
                .values(status=PayoutStatus.PAID.value, processed_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                current = db.execute(select(Payout.status).where(Payout.id == payout_id)).scalar()
                if current is None:
                    raise NotFoundError(f"Payout {payout_id} not found", {"payout_id": payout_id})
                raise AlreadySettledError(
                    f"Payout already {current}",
                    {"payout_id": payout_id, "status": current},
                )
            db.commit()
        except Exception:
            db.rollback()
            raise

        payout = db.query(Payout).filter(Payout.id == payout_id).one()
        log_ledger_event(logger, "payout_settle", True, payout_id=payout.id, amount=payout.amount)
        return payout

    @staticmethod
    def reconcile_balance(db: Session, affiliate_id: str) -> BalanceReconciliation:
        """Compare the stored balance with the sum of its ledger sources."""
        approved = (
            select(func.coalesce(func.sum(Conversion.commission_amount), 0))
            .where(
                Conversion.affiliate_id == affiliate_id,
                Conversion.status == ConversionStatus.APPROVED.value,
            )
            .scalar_subquery()
        )
        debited = (
            select(func.coalesce(func.sum(Payout.amount), 0))
            .where(
                Payout.affiliate_id == affiliate_id,
                Payout.status.in_(DEBITING_PAYOUT_STATUSES),
            )
            .scalar_subquery()
        )
        row = db.execute(
            select(Affiliate.balance, approved, debited).where(Affiliate.id == affiliate_id)
        ).first()
        if row is None:
            raise NotFoundError(f"Affiliate {affiliate_id} not found", {"affiliate_id": affiliate_id})

        return BalanceReconciliation(
            affiliate_id=affiliate_id,
            balance=int(row[0]),
            approved_commission=int(row[1]),
            payouts_debited=int(row[2]),
        )
