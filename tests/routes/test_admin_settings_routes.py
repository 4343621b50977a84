"""HTTP tests for /api/v1/admin/settings."""

from tutorhub.models.wallet import WalletType

BASE = "/api/v1/admin/settings"


def test_read_default(client):
    response = client.get(f"{BASE}/min_payout_amount")

    assert response.status_code == 200
    assert response.json() == {
        "key": "min_payout_amount",
        "value": "5000",
        "is_default": True,
        "updated_at": None,
        "updated_by_id": None,
    }


def test_unknown_key(client):
    response = client.get(f"{BASE}/no_such_setting")

    assert response.status_code == 404
    assert response.json()["code"] == "SETTING_NOT_FOUND"


def test_update_applies_to_payouts(client, funded_wallet, make_id):
    admin_id = make_id()
    updated = client.put(
        f"{BASE}/min_payout_amount", json={"value": "1000"}, headers={"X-User-Id": admin_id}
    )

    assert updated.status_code == 200
    assert updated.json()["is_default"] is False
    assert updated.json()["updated_by_id"] == admin_id

    teacher = funded_wallet(WalletType.TEACHER, "1500")
    payout = client.post(
        "/api/v1/payouts", json={"amount": 1200}, headers={"X-User-Id": teacher.user_id}
    )
    assert payout.status_code == 201


def test_update_requires_identity(client):
    response = client.put(f"{BASE}/min_payout_amount", json={"value": "1"})

    assert response.status_code == 401
