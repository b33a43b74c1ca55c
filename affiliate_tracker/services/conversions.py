"""
Conversion State Machine

pending -> approved | rejected, exactly once. Approval and the balance credit
commit together or not at all.
"""
from datetime import datetime
from typing import Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import (
    AlreadyDecidedError,
    DuplicateOrderError,
    InvalidInputError,
    NotFoundError,
)
from ..models import Affiliate, Conversion, ConversionStatus, DecisionAction, Product
from ..utils.log import get_logger, log_ledger_event
from .commission import compute_commission
from .ledger import LedgerService

logger = get_logger(__name__)


def _existing_conversion(db: Session, order_id: str, product_id: str):
    return db.execute(
        select(Conversion.id, Conversion.status).where(
            Conversion.order_id == order_id,
            Conversion.product_id == product_id,
        )
    ).first()


def _duplicate_order(order_id: str, product: Product, existing) -> DuplicateOrderError:
    return DuplicateOrderError(
        "Order already tracked for this product",
        {
            "order_id": order_id,
            "product_id": product.id,
            "conversion_id": existing.id,
            "status": existing.status,
        },
    )


class ConversionService:
    """Reporting and deciding conversions"""

    @staticmethod
    def report_conversion(
        db: Session,
        product: Product,
        affiliate: Affiliate,
        order_id: str,
        order_amount: int,
    ) -> Conversion:
        """
        Record a reported order as a pending conversion.

        The unique (order_id, product_id) constraint is the arbiter: when two
        reports of the same order race, the loser's INSERT fails and is
        reported as DuplicateOrderError. An order never earns two commissions.

        Raises:
            DuplicateOrderError: order already recorded for this product
            InvalidInputError: bad order amount
        """
        order_id = str(order_id).strip()

        existing = _existing_conversion(db, order_id, product.id)
        if existing:
            raise _duplicate_order(order_id, product, existing)

        commission_amount = compute_commission(product.commission_rule, order_amount)

        conversion = Conversion(
            product_id=product.id,
            affiliate_id=affiliate.id,
            order_id=order_id,
            order_amount=int(order_amount),
            commission_amount=commission_amount,
            status=ConversionStatus.PENDING.value,
        )
        db.add(conversion)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            # Lost the race against a concurrent report of the same order
            existing = _existing_conversion(db, order_id, product.id)
            if existing:
                raise _duplicate_order(order_id, product, existing) from e
            raise
        except Exception:
            db.rollback()
            raise

        db.refresh(conversion)
        logger.info(
            f"Conversion {conversion.id} recorded: order {order_id} on {product.slug} "
            f"for {affiliate.code} (commission {commission_amount})"
        )
        return conversion

    @staticmethod
    def decide(
        db: Session,
        conversion_id: str,
        action: Union[DecisionAction, str],
    ) -> Conversion:
        """
        Approve or reject a pending conversion. Decisions are final.

        Raises:
            InvalidInputError: action is not approve/reject
            NotFoundError: unknown conversion
            AlreadyDecidedError: conversion is not pending
        """
        try:
            action = DecisionAction(action)
        except ValueError:
            raise InvalidInputError('Action must be "approve" or "reject"', {"action": str(action)})

        new_status = (
            ConversionStatus.APPROVED if action is DecisionAction.APPROVE else ConversionStatus.REJECTED
        )

        try:
            # Only one caller can move the row out of pending
            result = db.execute(
                update(Conversion)
                .where(
                    Conversion.id == conversion_id,
                    Conversion.status == ConversionStatus.PENDING.value,
                )
                .values(status=new_status.value, decided_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                current = db.execute(
                    select(Conversion.status).where(Conversion.id == conversion_id)
                ).scalar()
                if current is None:
                    raise NotFoundError(
                        f"Conversion {conversion_id} not found",
                        {"conversion_id": conversion_id},
                    )
                raise AlreadyDecidedError(
                    f"Conversion already {current}",
                    {"conversion_id": conversion_id, "status": current},
                )

            if new_status is ConversionStatus.APPROVED:
                row = db.execute(
                    select(Conversion.affiliate_id, Conversion.commission_amount).where(
                        Conversion.id == conversion_id
                    )
                ).one()
                LedgerService.credit_for_conversion(db, row.affiliate_id, row.commission_amount)

            db.commit()
        except Exception:
            db.rollback()
            log_ledger_event(logger, f"conversion_{action.value}", False, conversion_id=conversion_id)
            raise

        conversion = db.query(Conversion).filter(Conversion.id == conversion_id).one()
        log_ledger_event(
            logger,
            f"conversion_{action.value}",
            True,
            conversion_id=conversion.id,
            affiliate_id=conversion.affiliate_id,
            commission_amount=conversion.commission_amount,
        )
        return conversion
