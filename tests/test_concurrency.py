"""
Test race conditions and concurrency guards.

These tests ensure no double-credit, double-report or overdraft under
concurrent requests. Each thread uses its own session (and connection) from
the same file-backed database, and a barrier releases them together.
"""
import threading
from typing import Callable, List, Tuple

import pytest
from sqlalchemy.orm import Session

from affiliate_tracker.core.errors import (
    AffiliateError,
    AlreadyDecidedError,
    AlreadySettledError,
    DuplicateOrderError,
    InsufficientBalanceError,
)
from affiliate_tracker.models import Affiliate, Conversion, Payout, Product
from affiliate_tracker.services.conversions import ConversionService
from affiliate_tracker.services.ledger import LedgerService
from tests.helpers.affiliate_helpers import (
    create_test_affiliate,
    create_test_product,
    create_test_tenant,
    current_balance,
    earn_commission,
    report_order,
)


def run_concurrently(session_factory, worker: Callable[[Session], object], threads: int) -> Tuple[List, List]:
    """
    Run ``worker`` in ``threads`` threads at once.

    Returns (results, errors); unexpected exceptions are collected as errors too.
    """
    barrier = threading.Barrier(threads)
    results = []
    errors = []
    lock = threading.Lock()

    def target():
        session = session_factory()
        try:
            barrier.wait()
            result = worker(session)
            with lock:
                results.append(result)
        except Exception as e:
            with lock:
                errors.append(e)
        finally:
            session.close()

    workers = [threading.Thread(target=target) for _ in range(threads)]
    for t in workers:
        t.start()
    for t in workers:
        t.join(timeout=60)
    return results, errors


@pytest.fixture
def tenant(db: Session):
    return create_test_tenant(db)


@pytest.fixture
def product(db: Session, tenant):
    return create_test_product(db, tenant, slug="app", commission_value="0.2")


@pytest.fixture
def affiliate(db: Session, tenant):
    return create_test_affiliate(db, tenant, code="ALICE")


class TestConcurrentApproval:
    def test_two_approvals_credit_once(self, db: Session, session_factory, product, affiliate):
        conversion_id = report_order(db, product, affiliate, 500000).id

        results, errors = run_concurrently(
            session_factory,
            lambda session: ConversionService.decide(session, conversion_id, "approve").status,
            threads=2,
        )

        assert results == ["approved"]
        assert len(errors) == 1
        assert isinstance(errors[0], AlreadyDecidedError), errors
        assert current_balance(db, affiliate.id) == 100000

    def test_approve_and_reject_race(self, db: Session, session_factory, product, affiliate):
        conversion_id = report_order(db, product, affiliate, 500000).id
        actions = iter(["approve", "reject"])
        actions_lock = threading.Lock()

        def worker(session):
            with actions_lock:
                action = next(actions)
            return ConversionService.decide(session, conversion_id, action).status

        results, errors = run_concurrently(session_factory, worker, threads=2)

        assert len(results) == 1
        assert len(errors) == 1 and isinstance(errors[0], AlreadyDecidedError), errors
        expected_balance = 100000 if results == ["approved"] else 0
        assert current_balance(db, affiliate.id) == expected_balance

    def test_many_conversions_approved_in_parallel(self, db: Session, session_factory, product, affiliate):
        conversions = [report_order(db, product, affiliate, 100000) for _ in range(5)]
        ids = iter([c.id for c in conversions])
        ids_lock = threading.Lock()

        def worker(session):
            with ids_lock:
                conversion_id = next(ids)
            return ConversionService.decide(session, conversion_id, "approve").status

        results, errors = run_concurrently(session_factory, worker, threads=5)

        assert errors == []
        assert results == ["approved"] * 5
        # Relative increments: no credit is lost
        assert current_balance(db, affiliate.id) == 5 * 20000


class TestConcurrentReports:
    def test_same_order_reported_in_parallel(self, db: Session, session_factory, product, affiliate):
        product_id, affiliate_id = product.id, affiliate.id

        def worker(session):
            return ConversionService.report_conversion(
                session,
                session.get(Product, product_id),
                session.get(Affiliate, affiliate_id),
                "ORD-RACE",
                500000,
            ).id

        results, errors = run_concurrently(session_factory, worker, threads=4)

        assert len(results) == 1
        assert len(errors) == 3
        assert all(isinstance(e, DuplicateOrderError) for e in errors), errors
        db.expire_all()
        assert db.query(Conversion).filter(Conversion.order_id == "ORD-RACE").count() == 1


class TestConcurrentPayouts:
    def test_overdraft_is_impossible(self, db: Session, session_factory, tenant, affiliate):
        full = create_test_product(db, tenant, slug="full", commission_value="1")
        earn_commission(db, full, affiliate, 1000000)

        results, errors = run_concurrently(
            session_factory,
            lambda session: LedgerService.request_payout(session, "ALICE", 600000, minimum_payout=500000).id,
            threads=2,
        )

        assert len(results) == 1
        assert len(errors) == 1 and isinstance(errors[0], InsufficientBalanceError), errors
        assert current_balance(db, affiliate.id) == 400000
        assert db.query(Payout).count() == 1

    def test_many_small_payouts_never_go_negative(self, db: Session, session_factory, tenant, affiliate):
        full = create_test_product(db, tenant, slug="full", commission_value="1")
        earn_commission(db, full, affiliate, 3500)

        results, errors = run_concurrently(
            session_factory,
            lambda session: LedgerService.request_payout(session, "ALICE", 1000, minimum_payout=0).id,
            threads=6,
        )

        assert len(results) == 3
        assert len(errors) == 3
        assert all(isinstance(e, InsufficientBalanceError) for e in errors), errors
        assert current_balance(db, affiliate.id) == 500
        assert LedgerService.reconcile_balance(db, affiliate.id).consistent

    def test_settle_race(self, db: Session, session_factory, tenant, affiliate):
        full = create_test_product(db, tenant, slug="full", commission_value="1")
        earn_commission(db, full, affiliate, 500000)
        payout_id = LedgerService.request_payout(db, "ALICE", 500000, minimum_payout=500000).id

        results, errors = run_concurrently(
            session_factory,
            lambda session: LedgerService.settle_payout(session, payout_id).status,
            threads=3,
        )

        assert results == ["paid"]
        assert len(errors) == 2
        assert all(isinstance(e, AlreadySettledError) for e in errors), errors
        assert all(isinstance(e, AffiliateError) for e in errors)
        assert current_balance(db, affiliate.id) == 0
