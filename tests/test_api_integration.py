"""
Integration tests for the Back Office API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from fastapi.testclient import TestClient

from back_office.api import create_app
from back_office.bank import BackOffice
from back_office.config import BackOfficeConfig
from back_office.storage import InMemoryStorage


@pytest.fixture
def system():
    """Back office on in-memory storage"""
    back_office = BackOffice(InMemoryStorage(), BackOfficeConfig(_env_file=None))
    yield back_office
    back_office.close()


@pytest.fixture
def client(system):
    """Create a test client for the API bound to the test back office"""
    return TestClient(create_app(system))


def create_alice(client, balance=100):
    r = client.post("/api/accounts", json={"acc_no": 1001, "name": "Alice", "balance": balance})
    assert r.status_code == 200
    return r.json()


class TestHealthEndpoints:
    """Test basic health and root endpoints"""

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "healthy"
        assert data["counts"]["accounts"] == 0

    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        data = r.json()
        assert data["name"] == "Back Office Banking API"
        assert "endpoints" in data


class TestAccountEndpoints:
    """Account CRUD and balance endpoints"""

    def test_create_and_get_account(self, client):
        data = create_alice(client)
        assert data["msg"] == "Account created successfully"

        r = client.get("/api/accounts/1001")
        assert r.status_code == 200
        account = r.json()
        assert account["acc_no"] == 1001
        assert account["name"] == "Alice"
        assert account["balance"] == "100.00"

    def test_create_duplicate_account(self, client):
        create_alice(client)

        r = client.post("/api/accounts", json={"acc_no": 1001, "name": "Bob"})
        assert r.status_code == 409
        assert r.json() == {"kind": "Conflict", "msg": "Account already exists"}

    @pytest.mark.parametrize("body, message", [
        ({"name": "Alice"}, "Invalid acc_no"),
        ({"acc_no": 0, "name": "Alice"}, "Invalid acc_no"),
        ({"acc_no": 10 ** 20, "name": "Alice"}, "Invalid acc_no"),
        ({"acc_no": 1001, "name": " A "}, "Invalid name"),
        ({"acc_no": 1001, "name": "Alice", "balance": -5}, "Balance can't be negative"),
    ])
    def test_create_account_validation(self, client, body, message):
        r = client.post("/api/accounts", json=body)
        assert r.status_code == 400
        assert r.json() == {"kind": "InvalidArgument", "msg": message}

    def test_malformed_body(self, client):
        r = client.post("/api/accounts", json={"acc_no": "not-a-number", "name": "Alice"})
        assert r.status_code == 400
        assert r.json()["kind"] == "InvalidArgument"

    def test_out_of_range_account_number(self, client):
        create_alice(client)
        huge = 10 ** 20

        for method, path in [
            ("GET", f"/api/accounts/{huge}"),
            ("GET", f"/api/accounts/{huge}/transactions"),
            ("DELETE", f"/api/accounts/{huge}"),
        ]:
            r = client.request(method, path)
            assert r.status_code == 400, path
            assert r.json() == {"kind": "InvalidArgument", "msg": "Invalid acc_no"}

        r = client.put("/api/accounts/1001/full-update", json={"new_acc_no": huge, "name": "Alice"})
        assert r.status_code == 400

    def test_get_missing_account(self, client):
        r = client.get("/api/accounts/4242")
        assert r.status_code == 404
        assert r.json() == {"kind": "NotFound", "msg": "Account not found"}

    def test_list_accounts(self, client):
        client.post("/api/accounts", json={"acc_no": 1002, "name": "Bob"})
        create_alice(client)

        r = client.get("/api/accounts")
        assert r.status_code == 200
        assert [a["acc_no"] for a in r.json()] == [1001, 1002]

    def test_next_number(self, client):
        assert client.get("/api/accounts/next-number").json() == {"next_acc_no": 1001}
        create_alice(client)
        assert client.get("/api/accounts/next-number").json() == {"next_acc_no": 1002}

    def test_deposit_and_withdraw(self, client):
        create_alice(client)

        r = client.post("/api/accounts/1001/deposit", json={"amount": 50})
        assert r.status_code == 200
        assert r.json() == {"msg": "Deposit successful", "before": "100.00", "after": "150.00"}

        r = client.post("/api/accounts/1001/withdraw", json={"amount": "200"})
        assert r.status_code == 400
        assert r.json() == {"kind": "InsufficientFunds", "msg": "Insufficient balance"}

        r = client.post("/api/accounts/1001/withdraw", json={"amount": "0.50"})
        assert r.json() == {"msg": "Withdraw successful", "before": "150.00", "after": "149.50"}

    @pytest.mark.parametrize("amount", [0, -1, "abc", None, "1.999"])
    def test_invalid_amount(self, client, amount):
        create_alice(client)

        r = client.post("/api/accounts/1001/deposit", json={"amount": amount})
        assert r.status_code == 400
        assert r.json() == {"kind": "InvalidAmount", "msg": "Invalid amount"}

    def test_deposit_to_missing_account(self, client):
        r = client.post("/api/accounts/4242/deposit", json={"amount": 5})
        assert r.status_code == 404

    def test_transactions(self, client):
        create_alice(client)
        client.post("/api/accounts/1001/deposit", json={"amount": 10})
        client.post("/api/accounts/1001/withdraw", json={"amount": 5})

        r = client.get("/api/accounts/1001/transactions")
        assert r.status_code == 200
        history = r.json()
        assert [t["type"] for t in history] == ["WITHDRAW", "DEPOSIT"]
        assert history[0]["before_balance"] == "110.00"
        assert history[0]["after_balance"] == "105.00"

        assert client.get("/api/accounts/4242/transactions").json() == []

    def test_full_update(self, client):
        create_alice(client)
        client.post("/api/accounts/1001/deposit", json={"amount": 10})

        r = client.put("/api/accounts/1001/full-update", json={"new_acc_no": 2002, "name": "Alice B"})
        assert r.status_code == 200
        assert r.json()["account"]["acc_no"] == 2002

        assert client.get("/api/accounts/1001").status_code == 404
        assert len(client.get("/api/accounts/2002/transactions").json()) == 1

    def test_full_update_errors(self, client):
        create_alice(client)
        client.post("/api/accounts", json={"acc_no": 2002, "name": "Bob"})

        r = client.put("/api/accounts/1001/full-update", json={"new_acc_no": 2002, "name": "Alice"})
        assert r.status_code == 409
        assert r.json()["msg"] == "New account number already exists"

        r = client.put("/api/accounts/4242/full-update", json={"new_acc_no": 5000, "name": "Nobody"})
        assert r.status_code == 404
        assert r.json()["msg"] == "Old account not found"

        r = client.put("/api/accounts/1001/full-update", json={"name": "Alice"})
        assert r.status_code == 400

    def test_delete_account(self, client):
        create_alice(client)

        r = client.delete("/api/accounts/1001")
        assert r.status_code == 200
        assert client.get("/api/accounts/1001").status_code == 404
        assert client.delete("/api/accounts/1001").status_code == 404


class TestLockerEndpoints:
    """Locker creation and access"""

    def test_locker_flow(self, client):
        create_alice(client)

        r = client.post("/api/accounts/1001/locker")
        assert r.status_code == 200
        key = r.json()["locker_key"]
        assert key.startswith("LOCK-")

        assert client.post("/api/accounts/1001/locker").status_code == 409
        assert client.get("/api/accounts/1001/locker").json()["locker_key"] == key

        r = client.post("/api/locker/access", json={"acc_no": 1001, "locker_key": key})
        assert r.status_code == 200

        r = client.post("/api/locker/access", json={"acc_no": 1001, "locker_key": "LOCK-NOPE-NOPE"})
        assert r.status_code == 401
        assert r.json() == {"kind": "Unauthorized", "msg": "Wrong locker key"}

    def test_locker_errors(self, client):
        assert client.post("/api/accounts/4242/locker").status_code == 404
        assert client.get("/api/accounts/4242/locker").status_code == 404

        r = client.post("/api/locker/access", json={"acc_no": 1001, "locker_key": "short"})
        assert r.status_code == 400
        assert r.json()["msg"] == "Invalid locker key"


class TestRequestEndpoints:
    """Staff request submission and decisions"""

    def test_create_account_request_flow(self, client):
        r = client.post("/api/requests", json={
            "request_type": "CREATE_ACCOUNT",
            "payload": {"name": "Bob", "opening_balance": 0}
        })
        assert r.status_code == 200
        request_id = r.json()["request"]["id"]
        assert r.json()["request"]["status"] == "PENDING"

        r = client.post(f"/api/requests/{request_id}/decision", json={"action": "approve"})
        assert r.status_code == 200
        data = r.json()
        assert data["approved"] is True
        assert data["acc_no"] == 1001
        assert data["request"]["status"] == "APPROVED"

        history = client.get("/api/accounts/1001/transactions").json()
        assert history[0]["type"] == "OPEN"

        r = client.post(f"/api/requests/{request_id}/decision", json={"action": "APPROVE"})
        assert r.status_code == 409
        assert r.json()["kind"] == "InvalidState"

    def test_auto_rejected_approval(self, client):
        create_alice(client)
        key = client.post("/api/accounts/1001/locker").json()["locker_key"]

        r = client.post("/api/requests", json={"request_type": "CREATE_LOCKER", "acc_no": 1001})
        request_id = r.json()["request"]["id"]

        r = client.post(f"/api/requests/{request_id}/decision", json={"action": "APPROVE"})
        assert r.status_code == 400
        data = r.json()
        assert data["kind"] == "AutoRejected"
        assert data["auto_rejected"] is True
        assert data["request"]["status"] == "REJECTED"

        assert client.get("/api/accounts/1001/locker").json()["locker_key"] == key

    def test_submission_errors(self, client):
        r = client.post("/api/requests", json={"request_type": "CREATE_LOCKER", "acc_no": 4242})
        assert r.status_code == 404

        r = client.post("/api/requests", json={"request_type": "TELEPORT", "acc_no": 4242})
        assert r.status_code == 400

        create_alice(client)
        client.post("/api/requests", json={"request_type": "CREATE_LOCKER", "acc_no": 1001})
        r = client.post("/api/requests", json={"request_type": "CREATE_LOCKER", "acc_no": 1001})
        assert r.status_code == 409

    def test_list_and_get_requests(self, client):
        create_alice(client)
        first = client.post("/api/requests", json={"request_type": "CREATE_LOCKER", "acc_no": 1001}).json()
        second = client.post("/api/requests", json={
            "request_type": "UPDATE_ACCOUNT", "acc_no": 1001,
            "payload": {"new_acc_no": 3003, "name": "Alice"}
        }).json()
        client.post(f"/api/requests/{first['request']['id']}/decision", json={"action": "reject"})

        r = client.get("/api/requests")
        assert [req["id"] for req in r.json()] == [second["request"]["id"], first["request"]["id"]]

        r = client.get("/api/requests", params={"status": "PENDING"})
        assert [req["id"] for req in r.json()] == [second["request"]["id"]]

        r = client.get(f"/api/requests/{first['request']['id']}")
        assert r.json()["status"] == "REJECTED"
        assert client.get("/api/requests/999").status_code == 404

    def test_decide_unknown_action(self, client):
        create_alice(client)
        request_id = client.post(
            "/api/requests", json={"request_type": "CREATE_LOCKER", "acc_no": 1001}
        ).json()["request"]["id"]

        r = client.post(f"/api/requests/{request_id}/decision", json={"action": "ESCALATE"})
        assert r.status_code == 400


class TestAdminEndpoints:
    """Wipe endpoint"""

    def test_wipe(self, client):
        create_alice(client)
        client.post("/api/accounts/1001/deposit", json={"amount": 10})

        r = client.delete("/api/wipe")
        assert r.status_code == 200
        assert r.json()["msg"] == "All data wiped"
        assert client.get("/api/accounts").json() == []
