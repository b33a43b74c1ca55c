"""
Conversion state machine tests: idempotent reporting and one-time decisions.
"""
from datetime import datetime

import pytest
from freezegun import freeze_time
from sqlalchemy.orm import Session

from affiliate_tracker.core.errors import (
    AlreadyDecidedError,
    DuplicateOrderError,
    InvalidInputError,
    NotFoundError,
)
from affiliate_tracker.models import Conversion
from affiliate_tracker.services.conversions import ConversionService
from affiliate_tracker.services.ledger import LedgerService
from tests.helpers.affiliate_helpers import (
    create_test_affiliate,
    create_test_product,
    create_test_tenant,
    current_balance,
    report_order,
)


@pytest.fixture
def tenant(db: Session):
    return create_test_tenant(db)


@pytest.fixture
def product(db: Session, tenant):
    return create_test_product(db, tenant, slug="app", commission_value="0.2")


@pytest.fixture
def affiliate(db: Session, tenant):
    return create_test_affiliate(db, tenant, code="ALICE")


class TestReportConversion:
    def test_creates_pending_conversion(self, db: Session, product, affiliate):
        conversion = ConversionService.report_conversion(db, product, affiliate, "ORD-1", 500000)

        assert conversion.status == "pending"
        assert conversion.order_id == "ORD-1"
        assert conversion.order_amount == 500000
        assert conversion.commission_amount == 100000
        assert conversion.decided_at is None
        # Reporting never touches the balance
        assert current_balance(db, affiliate.id) == 0

    def test_fixed_commission(self, db: Session, tenant, affiliate):
        fixed = create_test_product(db, tenant, slug="fixed-app", commission_type="fixed", commission_value=150000)
        conversion = ConversionService.report_conversion(db, fixed, affiliate, "ORD-1", 42)
        assert conversion.commission_amount == 150000

    def test_duplicate_order_rejected(self, db: Session, product, affiliate):
        first = ConversionService.report_conversion(db, product, affiliate, "ORD-1", 500000)

        with pytest.raises(DuplicateOrderError) as exc_info:
            ConversionService.report_conversion(db, product, affiliate, "ORD-1", 999999)

        assert exc_info.value.context["conversion_id"] == first.id
        assert exc_info.value.context["status"] == "pending"
        assert db.query(Conversion).filter(Conversion.order_id == "ORD-1").count() == 1

    def test_duplicate_detected_after_decision(self, db: Session, product, affiliate):
        first = ConversionService.report_conversion(db, product, affiliate, "ORD-1", 500000)
        ConversionService.decide(db, first.id, "approve")

        with pytest.raises(DuplicateOrderError) as exc_info:
            ConversionService.report_conversion(db, product, affiliate, "ORD-1", 500000)
        assert exc_info.value.context["status"] == "approved"
        assert current_balance(db, affiliate.id) == 100000

    def test_same_order_id_on_other_product_is_separate(self, db: Session, tenant, product, affiliate):
        other = create_test_product(db, tenant, slug="other-app")
        ConversionService.report_conversion(db, product, affiliate, "ORD-1", 1000)
        ConversionService.report_conversion(db, other, affiliate, "ORD-1", 1000)

        assert db.query(Conversion).filter(Conversion.order_id == "ORD-1").count() == 2

    def test_invalid_amount_writes_nothing(self, db: Session, product, affiliate):
        with pytest.raises(InvalidInputError):
            ConversionService.report_conversion(db, product, affiliate, "ORD-1", -5)
        assert db.query(Conversion).count() == 0

    def test_zero_amount_order(self, db: Session, product, affiliate):
        conversion = ConversionService.report_conversion(db, product, affiliate, "ORD-0", 0)
        assert conversion.commission_amount == 0


class TestDecide:
    @freeze_time("2026-03-01 09:30:00")
    def test_approve_credits_commission(self, db: Session, product, affiliate):
        conversion = report_order(db, product, affiliate, 500000)

        decided = ConversionService.decide(db, conversion.id, "approve")

        assert decided.status == "approved"
        assert decided.decided_at == datetime(2026, 3, 1, 9, 30)
        assert current_balance(db, affiliate.id) == 100000

    def test_reject_has_no_balance_effect(self, db: Session, product, affiliate):
        conversion = report_order(db, product, affiliate, 500000)

        decided = ConversionService.decide(db, conversion.id, "reject")

        assert decided.status == "rejected"
        assert decided.decided_at is not None
        assert current_balance(db, affiliate.id) == 0

    @pytest.mark.parametrize("first,second", [
        ("approve", "approve"),
        ("approve", "reject"),
        ("reject", "approve"),
        ("reject", "reject"),
    ])
    def test_decisions_are_final(self, db: Session, product, affiliate, first, second):
        conversion = report_order(db, product, affiliate, 500000)
        ConversionService.decide(db, conversion.id, first)
        balance_after_first = current_balance(db, affiliate.id)

        with pytest.raises(AlreadyDecidedError) as exc_info:
            ConversionService.decide(db, conversion.id, second)

        expected_status = "approved" if first == "approve" else "rejected"
        assert exc_info.value.context["status"] == expected_status
        assert current_balance(db, affiliate.id) == balance_after_first
        db.expire_all()
        assert db.query(Conversion).filter(Conversion.id == conversion.id).one().status == expected_status

    def test_unknown_conversion(self, db: Session):
        with pytest.raises(NotFoundError):
            ConversionService.decide(db, "no-such-conversion", "approve")

    def test_invalid_action(self, db: Session, product, affiliate):
        conversion = report_order(db, product, affiliate, 500000)
        with pytest.raises(InvalidInputError):
            ConversionService.decide(db, conversion.id, "maybe")
        db.expire_all()
        assert db.query(Conversion).filter(Conversion.id == conversion.id).one().status == "pending"

    def test_approvals_accumulate(self, db: Session, product, affiliate):
        for amount in (100000, 250000, 5):
            conversion = report_order(db, product, affiliate, amount)
            ConversionService.decide(db, conversion.id, "approve")

        # 20000 + 50000 + round(1.0)
        assert current_balance(db, affiliate.id) == 70001

    def test_failed_credit_rolls_back_decision(self, db: Session, product, affiliate, monkeypatch):
        conversion = report_order(db, product, affiliate, 500000)
        real_credit = LedgerService.credit_for_conversion

        def credit_then_fail(session, affiliate_id, amount):
            real_credit(session, affiliate_id, amount)
            raise RuntimeError("storage failure after credit")

        monkeypatch.setattr(LedgerService, "credit_for_conversion", staticmethod(credit_then_fail))

        with pytest.raises(RuntimeError):
            ConversionService.decide(db, conversion.id, "approve")

        db.expire_all()
        stored = db.query(Conversion).filter(Conversion.id == conversion.id).one()
        assert stored.status == "pending"
        assert stored.decided_at is None
        assert current_balance(db, affiliate.id) == 0

        # Nothing was half-applied, so the decision can still be made
        monkeypatch.undo()
        assert ConversionService.decide(db, conversion.id, "approve").status == "approved"
        assert current_balance(db, affiliate.id) == 100000
