"""
HTTP API tests through FastAPI's TestClient.

The app is wired to the test engine and the deterministic clock, so
requests and direct store reads see the same data.
"""

from dataclasses import replace
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from accrual_api import create_app

ADMIN = {"X-Admin": "true", "X-Owner-Id": str(uuid4())}


@pytest.fixture
def app(settings, session_factory, clock):
    # One worker: the in-memory engine has a single connection.
    settings = replace(settings, distribution=replace(settings.distribution, max_workers=1))
    return create_app(settings, session_factory=session_factory, clock=clock)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def owner(owner_id):
    return {"X-Owner-Id": str(owner_id)}


def _credit(client, owner_id, component, amount):
    response = client.post(
        "/admin/balance",
        json={
            "ownerId": str(owner_id),
            "component": component,
            "amount": amount,
            "direction": "credit",
        },
        headers=ADMIN,
    )
    assert response.status_code == 200, response.text
    return response.json()


class TestAuthHeaders:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_missing_owner(self, client):
        response = client.get("/balance")
        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHORIZED"

    def test_malformed_owner(self, client):
        response = client.get("/balance", headers={"X-Owner-Id": "not-a-uuid"})
        assert response.status_code == 401

    def test_admin_required(self, client, owner, owner_id):
        response = client.post(
            "/admin/balance",
            json={"ownerId": str(owner_id), "component": "deposit", "amount": "1.00", "direction": "credit"},
            headers=owner,
        )
        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"


class TestBalances:
    def test_new_owner_has_zero_balance(self, client, owner):
        body = client.get("/balance", headers=owner).json()
        assert body == {
            "total": "0.00",
            "deposit": "0.00",
            "profit": "0.00",
            "bonus": "0.00",
            "card": "0.00",
            "creditScore": "0.00",
        }

    def test_admin_credit(self, client, owner, owner_id):
        body = _credit(client, owner_id, "deposit", "50.00")
        assert body["balance"]["total"] == "50.00"
        assert body["transaction"]["kind"] == "admin_funding"
        assert body["transaction"]["direction"] == "credit"

        [txn] = client.get("/transactions", headers=owner).json()
        assert txn["amount"] == "50.00"
        assert txn["component"] == "deposit"

    def test_total_cannot_be_adjusted(self, client, owner_id):
        response = client.post(
            "/admin/balance",
            json={"ownerId": str(owner_id), "component": "total", "amount": "1.00", "direction": "credit"},
            headers=ADMIN,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "COMPONENT_NOT_MUTABLE"

    @pytest.mark.parametrize("kind", ["profit", "principal_return", "referral_commission"])
    def test_system_kinds_rejected(self, client, owner_id, kind):
        response = client.post(
            "/admin/balance",
            json={
                "ownerId": str(owner_id),
                "component": "deposit",
                "amount": "1.00",
                "direction": "credit",
                "kind": kind,
            },
            headers=ADMIN,
        )
        assert response.status_code == 422
        assert client.get("/transactions", headers={"X-Owner-Id": str(owner_id)}).json() == []

    def test_operator_kind_accepted(self, client, owner_id):
        response = client.post(
            "/admin/balance",
            json={
                "ownerId": str(owner_id),
                "component": "card",
                "amount": "5.00",
                "direction": "credit",
                "kind": "deposit",
            },
            headers=ADMIN,
        )
        assert response.status_code == 200
        assert response.json()["transaction"]["kind"] == "deposit"

    def test_overdraft_is_conflict(self, client, owner_id):
        _credit(client, owner_id, "bonus", "1.00")
        response = client.post(
            "/admin/balance",
            json={"ownerId": str(owner_id), "component": "bonus", "amount": "2.00", "direction": "debit"},
            headers=ADMIN,
        )
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "INSUFFICIENT_FUNDS"
        assert body["requested"] == "2.00"
        assert body["available"] == "1.00"

    def test_transactions_newest_first(self, client, clock, owner, owner_id):
        _credit(client, owner_id, "deposit", "1.00")
        clock.advance(seconds=5)
        _credit(client, owner_id, "deposit", "2.00")

        amounts = [t["amount"] for t in client.get("/transactions", headers=owner).json()]
        assert amounts == ["2.00", "1.00"]
        page = client.get("/transactions", params={"limit": 1, "offset": 1}, headers=owner).json()
        assert [t["amount"] for t in page] == ["1.00"]

    def test_limit_bounds(self, client, owner):
        response = client.get("/transactions", params={"limit": 0}, headers=owner)
        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"


class TestWithdrawals:
    def _request(self, client, owner, amount="12.00"):
        response = client.post(
            "/withdrawals",
            json={"amount": amount, "method": "bank", "accountDetails": {"iban": "DE00"}},
            headers=owner,
        )
        assert response.status_code == 201, response.text
        return response.json()

    def test_approval_spans_components(self, client, owner, owner_id):
        _credit(client, owner_id, "deposit", "10.00")
        _credit(client, owner_id, "profit", "5.00")
        request = self._request(client, owner)
        assert request["status"] == "pending"
        assert request["accountDetails"] == {"iban": "DE00"}

        response = client.put(
            f"/withdrawals/{request['id']}", json={"status": "approved", "notes": "ok"}, headers=ADMIN
        )

        assert response.status_code == 200
        assert response.json()["status"] == "approved"
        assert response.json()["adminNotes"] == "ok"
        balance = client.get("/balance", headers=owner).json()
        assert (balance["deposit"], balance["profit"], balance["total"]) == ("0.00", "3.00", "3.00")

    def test_insufficient_funds_conflict(self, client, owner, owner_id):
        _credit(client, owner_id, "deposit", "5.00")
        request = self._request(client, owner)

        response = client.put(f"/withdrawals/{request['id']}", json={"status": "approved"}, headers=ADMIN)

        assert response.status_code == 409
        assert response.json()["component"] == "total"
        listed = client.get("/withdrawals", headers=owner).json()
        assert [w["status"] for w in listed] == ["pending"]

    def test_decline_after_approval_refunds(self, client, owner, owner_id):
        _credit(client, owner_id, "deposit", "20.00")
        request = self._request(client, owner)
        client.put(f"/withdrawals/{request['id']}", json={"status": "approved"}, headers=ADMIN)
        client.put(f"/withdrawals/{request['id']}", json={"status": "declined"}, headers=ADMIN)

        assert client.get("/balance", headers=owner).json()["deposit"] == "20.00"

    def test_invalid_transition(self, client, owner):
        request = self._request(client, owner)
        response = client.put(f"/withdrawals/{request['id']}", json={"status": "processed"}, headers=ADMIN)
        assert response.status_code == 422
        assert response.json()["error"] == "INVALID_STATUS_TRANSITION"

    def test_unknown_request(self, client):
        response = client.put(f"/withdrawals/{uuid4()}", json={"status": "approved"}, headers=ADMIN)
        assert response.status_code == 404
        assert response.json()["error"] == "WITHDRAWAL_NOT_FOUND"

    def test_status_filter(self, client, owner, owner_id):
        _credit(client, owner_id, "deposit", "20.00")
        first = self._request(client, owner, "5.00")
        self._request(client, owner, "6.00")
        client.put(f"/withdrawals/{first['id']}", json={"status": "declined"}, headers=ADMIN)

        declined = client.get("/withdrawals", params={"status": "declined"}, headers=owner).json()
        assert [w["id"] for w in declined] == [first["id"]]

    def test_bad_amount(self, client, owner):
        response = client.post("/withdrawals", json={"amount": "-1", "method": "bank"}, headers=owner)
        assert response.status_code == 422
        assert response.json()["error"] == "INVALID_AMOUNT"


class TestPlansContractsAndDistribution:
    @pytest.fixture
    def plan(self, client):
        response = client.post(
            "/admin/plans",
            json={
                "contractClass": "investment",
                "name": "Starter",
                "minAmount": "100.00",
                "rate": "0.02",
                "durationPeriods": 5,
            },
            headers=ADMIN,
        )
        assert response.status_code == 201, response.text
        return response.json()

    @pytest.fixture
    def contract(self, client, plan, owner, owner_id):
        _credit(client, owner_id, "deposit", "1000.00")
        response = client.post(
            "/contracts", json={"planId": plan["id"], "amount": "1000.00"}, headers=owner
        )
        assert response.status_code == 201, response.text
        return response.json()

    def test_plans_listed_by_class(self, client, plan):
        assert [p["id"] for p in client.get("/plans", params={"contractClass": "investment"}).json()] == [plan["id"]]
        assert client.get("/plans", params={"contractClass": "liveTrade"}).json() == []

    def test_open_contract_debits_deposit(self, client, contract, owner):
        assert contract["status"] == "active"
        assert contract["periodUnit"] == "day"
        assert contract["principal"] == "1000.00"
        assert client.get("/balance", headers=owner).json()["deposit"] == "0.00"
        assert [c["id"] for c in client.get("/contracts", headers=owner).json()] == [contract["id"]]

    def test_distribute_then_cooldown(self, client, clock, contract, owner):
        clock.advance(days=3)

        response = client.post("/distribute", json={"contractClass": "investment"}, headers=ADMIN)

        assert response.status_code == 200
        body = response.json()
        assert body["periodsCredited"] == 3
        assert body["totalAmount"] == "60.00"
        assert body["errors"] == 0
        assert client.get("/balance", headers=owner).json()["profit"] == "60.00"

        again = client.post("/distribute", json={"contractClass": "investment"}, headers=ADMIN)
        assert again.status_code == 429
        rejection = again.json()
        assert rejection["error"] == "ON_COOLDOWN"
        assert rejection["onCooldown"] is True
        assert rejection["remainingSeconds"] == 86400

        status = client.get("/distribute/investment/cooldown", headers=ADMIN).json()
        assert status["onCooldown"] is True
        assert status["windowSeconds"] == 86400

    def test_unknown_class(self, client):
        response = client.post("/distribute", json={"contractClass": "bonds"}, headers=ADMIN)
        assert response.status_code == 422
        assert response.json()["error"] == "INVALID_CONTRACT_CLASS"

    def test_distribute_requires_admin(self, client, owner):
        response = client.post("/distribute", json={"contractClass": "investment"}, headers=owner)
        assert response.status_code == 403

    def test_suspend_contract(self, client, contract):
        response = client.put(
            f"/admin/contracts/{contract['id']}/status", json={"action": "suspend"}, headers=ADMIN
        )
        assert response.status_code == 200
        assert response.json()["status"] == "suspended"

    def test_complete_refused_while_periods_remain(self, client, clock, contract, owner):
        clock.advance(days=2)
        response = client.put(
            f"/admin/contracts/{contract['id']}/status", json={"action": "complete"}, headers=ADMIN
        )
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "INVALID_STATUS_TRANSITION"
        assert body["reason"] == "2 of 5 periods elapsed"
        assert client.get("/balance", headers=owner).json()["profit"] == "0.00"

    def test_complete_credits_owed_periods(self, client, clock, contract, owner):
        clock.advance(days=5)
        response = client.put(
            f"/admin/contracts/{contract['id']}/status", json={"action": "complete"}, headers=ADMIN
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["periodsDistributed"] == 5
        balance = client.get("/balance", headers=owner).json()
        assert balance["profit"] == "100.00"
        assert balance["deposit"] == "1000.00"

    def test_unknown_action(self, client, contract):
        response = client.put(
            f"/admin/contracts/{contract['id']}/status", json={"action": "pause"}, headers=ADMIN
        )
        assert response.status_code == 422

    def test_plan_limit(self, client, plan, owner, owner_id):
        _credit(client, owner_id, "deposit", "50.00")
        response = client.post("/contracts", json={"planId": plan["id"], "amount": "50.00"}, headers=owner)
        assert response.status_code == 422
        assert response.json()["error"] == "PLAN_LIMIT"

    def test_missing_field(self, client, owner):
        response = client.post("/contracts", json={"amount": "50.00"}, headers=owner)
        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"
