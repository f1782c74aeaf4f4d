import pytest
from httpx import AsyncClient

from tests.utils import SellerFactory, seed_approved_commissions


async def register(client: AsyncClient, **overrides) -> dict:
    response = await client.post(
        "/v1/sellers", json=SellerFactory.create_seller_data(**overrides)
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.integration
class TestSellerRegistrationAPI:
    async def test_register_seller(
        self, client: AsyncClient, sample_seller_data: dict
    ) -> None:
        response = await client.post("/v1/sellers", json=sample_seller_data)

        assert response.status_code == 201
        data = response.json()
        assert data["id"].startswith("sel_")
        assert data["customer_id"] == "cus_test_001"
        assert data["verification_status"] == "pending"
        assert data["is_active"] is True
        assert "meta" in data

    async def test_register_reports_all_errors(self, client: AsyncClient) -> None:
        response = await client.post(
            "/v1/sellers",
            json={"customer_id": "cus_bad", "business_name": "ab", "business_email": "nope"},
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "SELLER_VALIDATION_ERROR"
        assert error["details"]["reasons"] == [
            "business_name must be between 3 and 255 characters",
            "Invalid business_email format",
        ]

    async def test_duplicate_customer(
        self, client: AsyncClient, sample_seller_data: dict
    ) -> None:
        await client.post("/v1/sellers", json=sample_seller_data)
        response = await client.post("/v1/sellers", json=sample_seller_data)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "SELLER_ALREADY_EXISTS"

    async def test_registration_rate_limited(
        self, client: AsyncClient, sample_seller_data: dict
    ) -> None:
        codes = [
            (await client.post("/v1/sellers", json=sample_seller_data)).status_code
            for _ in range(4)
        ]

        assert codes == [201, 409, 409, 429]

    async def test_get_unknown_seller(self, client: AsyncClient) -> None:
        response = await client.get("/v1/sellers/sel_missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SELLER_NOT_FOUND"


@pytest.mark.integration
class TestSellerVerificationAPI:
    async def test_verify_seller(self, client: AsyncClient) -> None:
        seller = await register(client)

        response = await client.post(
            f"/v1/sellers/{seller['id']}/verify", json={"admin_id": "admin_1"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["verification_status"] == "verified"
        assert data["verified_at"] is not None
        assert data["verification_notes"] == "Approved by admin"

    async def test_verify_requires_payout_method(self, client: AsyncClient) -> None:
        seller = await register(client, payout_method=None)

        response = await client.post(
            f"/v1/sellers/{seller['id']}/verify", json={"admin_id": "admin_1"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"]["reasons"] == [
            "Seller must have a payout method configured"
        ]

    async def test_reject_only_pending(self, client: AsyncClient) -> None:
        seller = await register(client)
        await client.post(
            f"/v1/sellers/{seller['id']}/verify", json={"admin_id": "admin_1"}
        )

        response = await client.post(
            f"/v1/sellers/{seller['id']}/reject",
            json={"admin_id": "admin_1", "reason": "Incomplete documents"},
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_TRANSITION"

    async def test_suspend_and_reactivate(self, client: AsyncClient) -> None:
        seller = await register(client)
        await client.post(
            f"/v1/sellers/{seller['id']}/verify", json={"admin_id": "admin_1"}
        )

        suspended = await client.post(
            f"/v1/sellers/{seller['id']}/suspend",
            json={"admin_id": "admin_1", "reason": "Chargeback spike"},
        )
        assert suspended.status_code == 200
        assert suspended.json()["verification_status"] == "suspended"
        assert suspended.json()["is_active"] is False
        assert suspended.json()["suspension_count"] == 1

        reactivated = await client.post(
            f"/v1/sellers/{seller['id']}/reactivate", json={"admin_id": "admin_1"}
        )
        assert reactivated.json()["verification_status"] == "verified"
        assert reactivated.json()["is_active"] is True

    async def test_seller_changes_are_audited(self, client: AsyncClient) -> None:
        seller = await register(client)
        await client.post(
            f"/v1/sellers/{seller['id']}/verify", json={"admin_id": "admin_1"}
        )

        response = await client.get(
            "/v1/audit-logs",
            params={"entity_type": "seller", "entity_id": seller["id"]},
        )

        assert response.status_code == 200
        items = response.json()["items"]
        assert [item["action"] for item in items] == ["created", "verified"]
        assert items[1]["old_values"] == {"status": "pending"}
        assert items[1]["user_id"] == "admin_1"


@pytest.mark.integration
class TestSellerReportingAPI:
    async def test_eligibility(
        self, client: AsyncClient, verified_seller_id: str, approved_commission_ids
    ) -> None:
        response = await client.get(f"/v1/sellers/{verified_seller_id}/eligibility")

        assert response.status_code == 200
        data = response.json()
        assert data["eligible"] is True
        assert data["reasons"] == []
        assert data["available_for_payout_cents"] == 7200
        assert data["risk"]["level"] == "low"

    async def test_pending_seller_not_eligible(self, client: AsyncClient) -> None:
        seller = await register(client)

        response = await client.get(f"/v1/sellers/{seller['id']}/eligibility")

        data = response.json()
        assert data["eligible"] is False
        assert data["reasons"] == ["Seller must be verified to request payouts"]
        assert "Very new seller" in data["risk"]["flags"]

    async def test_earnings(
        self, client: AsyncClient, session_factory, verified_seller_id: str
    ) -> None:
        await seed_approved_commissions(
            session_factory, verified_seller_id, [5000, 2000], currency="EUR"
        )

        response = await client.get(
            f"/v1/sellers/{verified_seller_id}/earnings", params={"currency": "EUR"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["currency"] == "EUR"
        assert data["totals"]["seller_payout_cents"] == 6300
        assert data["by_status"]["approved"]["count"] == 2
        assert data["by_status"]["paid"]["count"] == 0
        assert data["available_for_payout_cents"] == 6300

    async def test_payout_summary_for_unknown_seller(self, client: AsyncClient) -> None:
        response = await client.get("/v1/sellers/sel_missing/payouts/summary")

        assert response.status_code == 404
