"""HTTP tests for /api/v1/wallets."""

import pytest

from tutorhub.models.wallet import WalletType

BASE = "/api/v1/wallets"


def _auth(user_id):
    return {"X-User-Id": user_id}


class TestWalletRoutes:
    def test_fund_then_read(self, client, make_id):
        user_id = make_id()

        response = client.post(
            f"{BASE}/student/{user_id}/fund",
            json={"amount": "2500.50", "description": "Top up"},
            headers=_auth(user_id),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["transaction_type"] == "credit"
        assert body["amount"] == 2500.5
        assert body["balance_after"] == 2500.5
        assert body["created_by_id"] == user_id

        wallet = client.get(f"{BASE}/student/{user_id}").json()
        assert wallet["balance"] == 2500.5
        assert wallet["wallet_type"] == "student"

    def test_missing_wallet(self, client, make_id):
        response = client.get(f"{BASE}/teacher/{make_id()}")

        assert response.status_code == 404
        assert response.json()["code"] == "WALLET_NOT_FOUND"

    def test_unknown_wallet_type(self, client, make_id):
        response = client.get(f"{BASE}/piggybank/{make_id()}")

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    def test_write_requires_user_header(self, client, make_id):
        response = client.post(f"{BASE}/student/{make_id()}/fund", json={"amount": 10})

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHENTICATED"

    def test_rejects_non_positive_and_extra_fields(self, client, make_id):
        user_id = make_id()

        zero = client.post(
            f"{BASE}/student/{user_id}/fund", json={"amount": 0}, headers=_auth(user_id)
        )
        extra = client.post(
            f"{BASE}/student/{user_id}/fund",
            json={"amount": 10, "currency": "USD"},
            headers=_auth(user_id),
        )
        garbage = client.post(
            f"{BASE}/student/{user_id}/fund", json={"amount": "ten"}, headers=_auth(user_id)
        )

        assert zero.status_code == 422
        assert extra.status_code == 422
        assert garbage.status_code == 422

    def test_deduct_insufficient(self, client, funded_wallet):
        wallet = funded_wallet(WalletType.STUDENT, "100")

        response = client.post(
            f"{BASE}/student/{wallet.user_id}/deduct",
            json={"amount": 150},
            headers=_auth(wallet.user_id),
        )

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "INSUFFICIENT_BALANCE"
        assert response.headers["content-type"].startswith("application/problem+json")

    def test_deduct_rejects_credit_type(self, client, funded_wallet):
        wallet = funded_wallet(WalletType.STUDENT, "100")

        response = client.post(
            f"{BASE}/student/{wallet.user_id}/deduct",
            json={"amount": 10, "transaction_type": "refund"},
            headers=_auth(wallet.user_id),
        )

        assert response.status_code == 422

    @pytest.mark.parametrize("transaction_type", ["payout_hold", "family_transfer"])
    def test_deduct_rejects_workflow_debits(self, client, funded_wallet, transaction_type):
        wallet = funded_wallet(WalletType.TEACHER, "1000")

        response = client.post(
            f"{BASE}/teacher/{wallet.user_id}/deduct",
            json={"amount": 400, "transaction_type": transaction_type},
            headers=_auth(wallet.user_id),
        )

        assert response.status_code == 422
        balance = client.get(f"{BASE}/teacher/{wallet.user_id}", headers=_auth(wallet.user_id))
        assert balance.json()["balance"] == 1000.0

    def test_refund_and_adjust(self, client, funded_wallet, make_id):
        wallet = funded_wallet(WalletType.STUDENT, "100")
        admin_id = make_id()

        refund = client.post(
            f"{BASE}/student/{wallet.user_id}/refund",
            json={"amount": 50},
            headers=_auth(admin_id),
        )
        adjust = client.post(
            f"{BASE}/student/{wallet.user_id}/adjust",
            json={"amount": 30, "direction": "debit", "reason": "Duplicate credit"},
            headers=_auth(admin_id),
        )

        assert refund.status_code == 201
        assert adjust.status_code == 201
        assert adjust.json()["transaction_type"] == "adjustment"
        assert adjust.json()["signed_amount"] == -30.0
        assert adjust.json()["metadata"]["admin_id"] == admin_id

        reconcile = client.get(f"{BASE}/student/{wallet.user_id}/reconcile").json()
        assert reconcile["balance"] == 120.0
        assert reconcile["balanced"] is True

    def test_transactions_are_paginated(self, client, funded_wallet):
        wallet = funded_wallet(WalletType.STUDENT, "100")
        for _ in range(2):
            client.post(
                f"{BASE}/student/{wallet.user_id}/fund",
                json={"amount": 5},
                headers=_auth(wallet.user_id),
            )

        response = client.get(
            f"{BASE}/student/{wallet.user_id}/transactions", params={"per_page": 2}
        )

        assert response.status_code == 200
        body = response.json()
        assert len(body["data"]) == 2
        assert body["meta"]["total"] == 3
        assert body["meta"]["last_page"] == 2
        assert body["links"]["next"].endswith("per_page=2&page=2")
        assert body["links"]["prev"] is None


class TestGuardianRoutes:
    def test_fund_child(self, client, funded_wallet, link_child, make_id):
        guardian = funded_wallet(WalletType.GUARDIAN, "5000")
        child_id = make_id()
        link_child(guardian.user_id, child_id)

        response = client.post(
            f"{BASE}/guardian/{guardian.user_id}/children/{child_id}/fund",
            json={"amount": 2000},
            headers=_auth(guardian.user_id),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["guardian_balance"] == 3000.0
        assert body["child_balance"] == 2000.0
        assert body["guardian_transaction"]["transaction_type"] == "family_transfer"
        assert body["child_transaction"]["counterparty_wallet_id"] == guardian.id

    def test_unlinked_child(self, client, funded_wallet, make_id):
        guardian = funded_wallet(WalletType.GUARDIAN, "5000")

        response = client.post(
            f"{BASE}/guardian/{guardian.user_id}/children/{make_id()}/fund",
            json={"amount": 100},
            headers=_auth(guardian.user_id),
        )

        assert response.status_code == 403
        assert response.json()["code"] == "CHILD_NOT_OWNED"

    def test_only_the_guardian_acts(self, client, funded_wallet, link_child, make_id):
        guardian = funded_wallet(WalletType.GUARDIAN, "5000")
        child_id = make_id()
        link_child(guardian.user_id, child_id)

        response = client.post(
            f"{BASE}/guardian/{guardian.user_id}/children/{child_id}/fund",
            json={"amount": 100},
            headers=_auth(make_id()),
        )

        assert response.status_code == 403
        assert response.json()["code"] == "WALLET_NOT_OWNED"

    def test_allowance_and_summary(self, client, funded_wallet, link_child, make_id):
        guardian = funded_wallet(WalletType.GUARDIAN, "5000")
        child_id = make_id()
        link_child(guardian.user_id, child_id)
        headers = _auth(guardian.user_id)

        allowance = client.put(
            f"{BASE}/guardian/{guardian.user_id}/children/{child_id}/allowance",
            json={"amount": 1000, "period": "weekly"},
            headers=headers,
        )
        assert allowance.status_code == 200
        assert allowance.json()["amount"] == 1000.0
        assert allowance.json()["period"] == "weekly"

        over = client.post(
            f"{BASE}/guardian/{guardian.user_id}/children/{child_id}/fund",
            json={"amount": 1500},
            headers=headers,
        )
        assert over.status_code == 422
        assert over.json()["code"] == "ALLOWANCE_EXCEEDED"

        summary = client.get(
            f"{BASE}/guardian/{guardian.user_id}/family-summary", headers=headers
        ).json()
        assert summary["guardian_balance"] == 5000.0
        assert summary["family_total"] == 5000.0
        assert [c["child_id"] for c in summary["children"]] == [child_id]
