"""
Affiliate self-service API tests
"""
import pytest
from sqlalchemy.orm import Session

from affiliate_tracker.models import Payout
from tests.helpers.affiliate_helpers import (
    create_test_affiliate,
    create_test_product,
    create_test_tenant,
    current_balance,
    earn_commission,
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


class TestDashboard:
    def test_dashboard(self, client, db: Session, product, affiliate):
        earn_commission(db, product, affiliate, 3000000)
        report_order(db, product, affiliate, 100000)

        response = client.get("/api/v1/affiliate/dashboard", params={"code": "alice"})

        assert response.status_code == 200
        data = response.json()
        assert data["affiliate"]["balance"] == 600000
        assert data["affiliate"]["product_slug"] == "app"
        assert data["commissions"]["pending"] == {"count": 1, "amount": 20000}
        assert data["commissions"]["approved"] == {"count": 1, "amount": 600000}

    def test_missing_code(self, client):
        assert client.get("/api/v1/affiliate/dashboard").status_code == 400

    def test_unknown_code(self, client):
        response = client.get("/api/v1/affiliate/dashboard", params={"code": "NOBODY"})
        assert response.status_code == 404


class TestAffiliateConversions:
    def test_paginated(self, client, db: Session, product, affiliate):
        for i in range(3):
            report_order(db, product, affiliate, 1000 * (i + 1), order_id=f"ORD-{i}")

        response = client.get("/api/v1/affiliate/conversions", params={"code": "ALICE", "limit": 2})

        assert response.status_code == 200
        data = response.json()
        assert len(data["data"]) == 2
        assert data["pagination"] == {"total": 3, "page": 1, "limit": 2, "total_pages": 2}


class TestPayoutRequest:
    def test_request_payout(self, client, db: Session, product, affiliate):
        earn_commission(db, product, affiliate, 3000000)  # 600000 commission

        response = client.post("/api/v1/affiliate/payouts", json={"code": "ALICE", "amount": 500000})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "requested"
        assert data["amount"] == 500000
        assert current_balance(db, affiliate.id) == 100000

    def test_below_minimum(self, client, db: Session, product, affiliate):
        earn_commission(db, product, affiliate, 3000000)

        response = client.post("/api/v1/affiliate/payouts", json={"code": "ALICE", "amount": 400000})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "below_minimum"
        assert body["context"]["minimum_payout"] == 500000
        assert current_balance(db, affiliate.id) == 600000

    def test_insufficient_balance(self, client, db: Session, product, affiliate):
        response = client.post("/api/v1/affiliate/payouts", json={"code": "ALICE", "amount": 500000})

        assert response.status_code == 400
        assert response.json()["error"] == "insufficient_balance"
        assert db.query(Payout).count() == 0

    def test_unknown_affiliate(self, client):
        response = client.post("/api/v1/affiliate/payouts", json={"code": "NOBODY", "amount": 500000})
        assert response.status_code == 404

    def test_non_positive_amount(self, client, affiliate):
        response = client.post("/api/v1/affiliate/payouts", json={"code": "ALICE", "amount": 0})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_input"
