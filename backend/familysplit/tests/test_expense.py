"""
Tests for expense endpoints.
"""
from fastapi.testclient import TestClient
from familysplit.main import app

client = TestClient(app)


def setup_trip():
    response = client.post(
        "/api/trips",
        json={"name": "Coast", "admin_family_name": "Garcia", "member_count": 2}
    )
    data = response.json()
    return data["id"], {"k": data["access_key"]}, data["document"]["admin_id"]


def test_create_expense():
    """Test expense creation."""
    trip_id, params, admin_id = setup_trip()

    response = client.post(
        f"/api/expenses/{trip_id}",
        params=params,
        json={"concept": "Groceries", "amount": 42.5, "family_id": admin_id}
    )
    assert response.status_code == 201
    expenses = response.json()["document"]["expenses"]
    assert len(expenses) == 1
    assert expenses[0]["concept"] == "Groceries"
    assert float(expenses[0]["amount"]) == 42.5
    assert expenses[0]["family_id"] == admin_id


def test_create_expense_unknown_family():
    trip_id, params, _ = setup_trip()

    response = client.post(
        f"/api/expenses/{trip_id}",
        params=params,
        json={"concept": "Groceries", "amount": 10, "family_id": "ghost"}
    )
    assert response.status_code == 404


def test_create_expense_negative_amount():
    trip_id, params, admin_id = setup_trip()

    response = client.post(
        f"/api/expenses/{trip_id}",
        params=params,
        json={"concept": "Refund", "amount": -5, "family_id": admin_id}
    )
    assert response.status_code == 422


def test_delete_expense():
    """Test expense deletion."""
    trip_id, params, admin_id = setup_trip()
    created = client.post(
        f"/api/expenses/{trip_id}",
        params=params,
        json={"concept": "Tolls", "amount": 12, "family_id": admin_id}
    ).json()
    expense_id = created["document"]["expenses"][0]["id"]

    response = client.delete(f"/api/expenses/{trip_id}/{expense_id}", params=params)
    assert response.status_code == 200
    assert response.json()["document"]["expenses"] == []

    response = client.delete(f"/api/expenses/{trip_id}/{expense_id}", params=params)
    assert response.status_code == 404
