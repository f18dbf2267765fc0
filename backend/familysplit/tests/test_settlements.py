"""
Tests for settlement endpoints.
"""
from fastapi.testclient import TestClient
from familysplit.main import app

client = TestClient(app)


def setup_trip_with_expense():
    """Two families of two; the admin family pays 100."""
    data = client.post(
        "/api/trips",
        json={"name": "Lakes", "admin_family_name": "Garcia", "member_count": 2}
    ).json()
    trip_id = data["id"]
    params = {"k": data["access_key"]}
    admin_id = data["document"]["admin_id"]

    joined = client.post(f"/api/trips/{trip_id}/join", params=params, json={"name": "Lopez", "member_count": 2})
    other_id = joined.json()["family_id"]

    client.post(
        f"/api/expenses/{trip_id}",
        params=params,
        json={"concept": "Cabin", "amount": 100, "family_id": admin_id}
    )
    return trip_id, params, admin_id, other_id


def test_get_settlement():
    """Test balances and transfers of a simple trip."""
    trip_id, params, admin_id, other_id = setup_trip_with_expense()

    response = client.get(f"/api/settlement/{trip_id}", params={**params, "method": "BY_MEMBER"})
    assert response.status_code == 200
    data = response.json()

    assert data["method"] == "BY_MEMBER"
    assert float(data["total_spent"]) == 100
    balances = {b["family_id"]: float(b["balance"]) for b in data["balances"]}
    assert balances == {admin_id: 50.0, other_id: -50.0}
    assert len(data["transfers"]) == 1
    transfer = data["transfers"][0]
    assert transfer["from_family_id"] == other_id
    assert transfer["to_family_id"] == admin_id
    assert transfer["key"] == f"{other_id}-{admin_id}-50.00"
    assert transfer["is_settled"] is False
    assert data["all_settled"] is False


def test_settlement_methods_differ():
    trip_id, params, admin_id, other_id = setup_trip_with_expense()
    client.patch(
        f"/api/trips/{trip_id}/families/{other_id}/members",
        params=params,
        json={"actor_family_id": other_id, "member_count": 8}
    )

    by_member = client.get(f"/api/settlement/{trip_id}", params={**params, "method": "BY_MEMBER"}).json()
    by_family = client.get(f"/api/settlement/{trip_id}", params={**params, "method": "BY_FAMILY"}).json()

    assert float(by_member["transfers"][0]["amount"]) == 80.0
    assert float(by_family["transfers"][0]["amount"]) == 50.0


def test_toggle_settlement():
    """Test confirming and unconfirming a transfer."""
    trip_id, params, admin_id, other_id = setup_trip_with_expense()
    key = f"{other_id}-{admin_id}-50.00"

    response = client.post(f"/api/settlement/{trip_id}/toggle", params=params, json={"key": key})
    assert response.status_code == 200
    assert response.json()["transfers"][0]["is_settled"] is True
    assert response.json()["all_settled"] is True

    stored = client.get(f"/api/trips/{trip_id}", params=params).json()
    assert stored["document"]["settled_transfers"] == [key]

    response = client.post(f"/api/settlement/{trip_id}/toggle", params=params, json={"key": key})
    assert response.json()["transfers"][0]["is_settled"] is False


def test_orphaned_key_is_kept():
    """A key with no matching transfer is stored but has no visible effect."""
    trip_id, params, _, _ = setup_trip_with_expense()

    response = client.post(f"/api/settlement/{trip_id}/toggle", params=params, json={"key": "x-y-1.00"})
    assert response.status_code == 200
    assert all(not t["is_settled"] for t in response.json()["transfers"])

    stored = client.get(f"/api/trips/{trip_id}", params=params).json()
    assert stored["document"]["settled_transfers"] == ["x-y-1.00"]


def test_settlement_invalid_method():
    trip_id, params, _, _ = setup_trip_with_expense()
    response = client.get(f"/api/settlement/{trip_id}", params={**params, "method": "BY_WEIGHT"})
    assert response.status_code == 422


def test_settlement_wrong_key():
    trip_id, _, _, _ = setup_trip_with_expense()
    response = client.get(f"/api/settlement/{trip_id}", params={"k": "bad"})
    assert response.status_code == 403
