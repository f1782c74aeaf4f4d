from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tests.utils import OrderEventFactory, process_order_events_batch, seed_seller


@pytest.mark.integration
class TestOrderEventsAPI:
    async def test_order_placed_records_commissions(
        self, client: AsyncClient, verified_seller_id: str
    ) -> None:
        event = OrderEventFactory.create_order_placed(
            order_id="ord_api_001",
            items=[
                OrderEventFactory.create_line_item(verified_seller_id, 5000),
                OrderEventFactory.create_line_item(
                    verified_seller_id, 2000, category_commission_rate="15"
                ),
            ],
        )

        response = await client.post("/v1/orders/events", json=event)

        assert response.status_code == 201
        data = response.json()
        assert data["created"] == 2
        assert data["idempotent"] is False
        amounts = [
            (c["commission_amount_cents"], c["seller_payout_cents"])
            for c in data["commissions"]
        ]
        assert amounts == [(500, 4500), (300, 1700)]
        assert all(c["status"] == "pending" for c in data["commissions"])

    async def test_seller_rate_overrides_category_rate(
        self,
        client: AsyncClient,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        seller = await seed_seller(session_factory, commission_rate=Decimal("8"))
        event = OrderEventFactory.create_order_placed(
            items=[
                OrderEventFactory.create_line_item(
                    seller.id, 10000, category_commission_rate="15"
                )
            ]
        )

        response = await client.post("/v1/orders/events", json=event)

        commission = response.json()["commissions"][0]
        assert commission["commission_rate"] == "8.00"
        assert commission["commission_amount_cents"] == 800

    async def test_replayed_event_is_idempotent(
        self, client: AsyncClient, verified_seller_id: str
    ) -> None:
        event = OrderEventFactory.create_order_placed(
            order_id="ord_api_002",
            items=[OrderEventFactory.create_line_item(verified_seller_id, 5000)],
        )

        first = await client.post("/v1/orders/events", json=event)
        second = await client.post("/v1/orders/events", json=event)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["idempotent"] is True
        assert (
            second.json()["commissions"][0]["id"]
            == first.json()["commissions"][0]["id"]
        )

    async def test_unknown_seller(self, client: AsyncClient) -> None:
        event = OrderEventFactory.create_order_placed(
            items=[OrderEventFactory.create_line_item("sel_missing", 5000)]
        )

        response = await client.post("/v1/orders/events", json=event)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SELLER_NOT_FOUND"

    async def test_negative_total_rejected(
        self, client: AsyncClient, verified_seller_id: str
    ) -> None:
        event = OrderEventFactory.create_order_placed(
            items=[OrderEventFactory.create_line_item(verified_seller_id, -100)]
        )

        response = await client.post("/v1/orders/events", json=event)

        assert response.status_code == 422

    async def test_category_rate_with_extra_decimals_rejected(
        self, client: AsyncClient, verified_seller_id: str
    ) -> None:
        event = OrderEventFactory.create_order_placed(
            items=[
                OrderEventFactory.create_line_item(
                    verified_seller_id, 1000, category_commission_rate="12.345"
                )
            ]
        )

        response = await client.post("/v1/orders/events", json=event)

        assert response.status_code == 422

    async def test_order_completed_approves_commissions(
        self, client: AsyncClient, verified_seller_id: str
    ) -> None:
        order_id = "ord_api_003"
        responses = await process_order_events_batch(
            client,
            [
                OrderEventFactory.create_order_placed(
                    order_id=order_id,
                    items=[
                        OrderEventFactory.create_line_item(verified_seller_id, 5000),
                        OrderEventFactory.create_line_item(verified_seller_id, 3000),
                    ],
                ),
                OrderEventFactory.create_order_completed(order_id, "system"),
            ],
        )

        completed = responses[1]
        assert len(completed["result"]["succeeded"]) == 2
        assert completed["result"]["failed"] == []
        assert {c["status"] for c in completed["commissions"]} == {"approved"}

    async def test_order_completed_reports_failures_per_item(
        self, client: AsyncClient, verified_seller_id: str
    ) -> None:
        order_id = "ord_api_004"
        placed = await client.post(
            "/v1/orders/events",
            json=OrderEventFactory.create_order_placed(
                order_id=order_id,
                items=[
                    OrderEventFactory.create_line_item(verified_seller_id, 5000),
                    OrderEventFactory.create_line_item(verified_seller_id, 3000),
                ],
            ),
        )
        cancelled_id = placed.json()["commissions"][0]["id"]
        await client.post(f"/v1/commissions/{cancelled_id}/cancel")

        response = await client.post(
            "/v1/orders/events",
            json=OrderEventFactory.create_order_completed(order_id),
        )

        assert response.status_code == 200
        result = response.json()["result"]
        assert result["succeeded"] == [placed.json()["commissions"][1]["id"]]
        assert result["failed"][0]["id"] == cancelled_id
        assert result["failed"][0]["error_code"] == "INVALID_TRANSITION"

    async def test_order_cancelled(
        self, client: AsyncClient, verified_seller_id: str
    ) -> None:
        order_id = "ord_api_005"
        await client.post(
            "/v1/orders/events",
            json=OrderEventFactory.create_order_placed(
                order_id=order_id,
                items=[OrderEventFactory.create_line_item(verified_seller_id, 5000)],
            ),
        )

        response = await client.post(
            "/v1/orders/events",
            json=OrderEventFactory.create_order_cancelled(order_id, "Out of stock"),
        )

        assert response.status_code == 200
        commission = response.json()["commissions"][0]
        assert commission["status"] == "cancelled"
        assert commission["notes"] == "Out of stock"
