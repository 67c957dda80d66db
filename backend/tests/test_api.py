"""HTTP API tests: auth, error envelope and an end-to-end stock flow."""

import pytest
from httpx import AsyncClient


async def _setup_catalog(client: AsyncClient, headers: dict) -> dict:
    category = await client.post(
        "/api/categories/", json={"name": "Fasteners"}, headers=headers
    )
    assert category.status_code == 201, category.text

    main = await client.post(
        "/api/warehouses/", json={"name": "Main", "code": "MAIN"}, headers=headers
    )
    spare = await client.post(
        "/api/warehouses/", json={"name": "Spare", "code": "SPARE"}, headers=headers
    )
    assert main.status_code == spare.status_code == 201

    product = await client.post(
        "/api/products/",
        json={
            "name": "Hex Bolt",
            "sku": "HEX-10",
            "category_id": category.json()["id"],
            "unit_of_measure": "pcs",
            "reorder_level": 5,
            "initial_stock": 20,
            "warehouse_id": main.json()["id"],
        },
        headers=headers,
    )
    assert product.status_code == 201, product.text

    return {
        "category_id": category.json()["id"],
        "main_id": main.json()["id"],
        "spare_id": spare.json()["id"],
        "product_id": product.json()["id"],
    }


async def _create_operation(client, headers, body: dict, lines: list[dict]) -> dict:
    resp = await client.post("/api/operations/", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    operation = resp.json()
    for line in lines:
        line_resp = await client.post(
            f"/api/operations/{operation['id']}/lines", json=line, headers=headers
        )
        assert line_resp.status_code == 201, line_resp.text
    return operation


@pytest.mark.api
@pytest.mark.asyncio
class TestAuthentication:
    """Every endpoint except health requires a valid bearer token."""

    @pytest.mark.parametrize("method, path", [
        ("get", "/api/products/"),
        ("get", "/api/operations/"),
        ("post", "/api/operations/some-id/process"),
        ("get", "/api/stock/levels"),
        ("get", "/api/stock/movements"),
        ("get", "/api/dashboard/kpis"),
    ])
    async def test_requires_auth(self, client: AsyncClient, method, path):
        resp = await client.request(method.upper(), path)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "HTTP_401"

    async def test_invalid_token(self, client: AsyncClient):
        resp = await client.get(
            "/api/products/", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"

    async def test_missing_permission(self, client: AsyncClient, reader_headers):
        resp = await client.post(
            "/api/categories/", json={"name": "Nope"}, headers=reader_headers
        )
        assert resp.status_code == 403

    async def test_process_needs_process_permission(
        self, client: AsyncClient, reader_headers
    ):
        resp = await client.post("/api/operations/some-id/process", headers=reader_headers)
        assert resp.status_code == 403

    async def test_read_permission_is_enough_to_read(
        self, client: AsyncClient, reader_headers
    ):
        resp = await client.get("/api/stock/levels", headers=reader_headers)
        assert resp.status_code == 200
        assert resp.json() == []

    async def test_health_is_public(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["service"] == "Stockroom"


@pytest.mark.api
@pytest.mark.asyncio
class TestStockFlow:
    async def test_receipt_transfer_delivery(self, client: AsyncClient, auth_headers):
        ids = await _setup_catalog(client, auth_headers)

        # Receipt of 10 more at MAIN (20 opening stock)
        receipt = await _create_operation(
            client, auth_headers,
            {"type": "receipt", "warehouse_id": ids["main_id"], "supplier_name": "Acme"},
            [{"product_id": ids["product_id"], "planned_quantity": 10}],
        )
        assert receipt["reference"] == "REC-00001"
        assert receipt["status"] == "draft"

        resp = await client.post(
            f"/api/operations/{receipt['id']}/process", headers=auth_headers
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "done"
        assert resp.json()["completed_date"] is not None

        # Transfer 12 MAIN -> SPARE
        transfer = await _create_operation(
            client, auth_headers,
            {
                "type": "transfer",
                "warehouse_id": ids["main_id"],
                "destination_warehouse_id": ids["spare_id"],
            },
            [{"product_id": ids["product_id"], "planned_quantity": 12}],
        )
        resp = await client.post(
            f"/api/operations/{transfer['id']}/process", headers=auth_headers
        )
        assert resp.status_code == 200

        # Delivery of 30 from MAIN with 18 on hand floors at zero
        delivery = await _create_operation(
            client, auth_headers,
            {"type": "delivery", "warehouse_id": ids["main_id"], "customer_name": "Bob"},
            [{"product_id": ids["product_id"], "planned_quantity": 30}],
        )
        resp = await client.post(
            f"/api/operations/{delivery['id']}/process", headers=auth_headers
        )
        assert resp.status_code == 200

        levels = await client.get(
            "/api/stock/levels",
            params={"product_id": ids["product_id"]},
            headers=auth_headers,
        )
        by_warehouse = {lvl["warehouse_id"]: lvl for lvl in levels.json()}
        assert by_warehouse[ids["main_id"]]["quantity"] == 0
        assert by_warehouse[ids["spare_id"]]["quantity"] == 12
        assert by_warehouse[ids["spare_id"]]["sku"] == "HEX-10"
        assert by_warehouse[ids["spare_id"]]["warehouse_name"] == "Spare"

        movements = await client.get(
            "/api/stock/movements",
            params={"operation_id": delivery["id"]},
            headers=auth_headers,
        )
        page = movements.json()
        assert page["total"] == 1
        [out] = page["items"]
        assert (out["quantity"], out["requested_quantity"]) == (-18, -30)

        history = await client.get(
            "/api/stock/movements", params={"limit": 2}, headers=auth_headers
        )
        assert history.json()["total"] == 5  # opening + receipt + 2 transfer + delivery
        assert len(history.json()["items"]) == 2

        reconciliation = await client.get("/api/stock/reconciliation", headers=auth_headers)
        assert reconciliation.json()["is_consistent"] is True

        kpis = await client.get("/api/dashboard/kpis", headers=auth_headers)
        assert kpis.status_code == 200
        assert kpis.json()["total_products"] == 1
        assert kpis.json()["pending_receipts"] == 0

    async def test_partial_fulfillment_and_detail(self, client: AsyncClient, auth_headers):
        ids = await _setup_catalog(client, auth_headers)
        receipt = await _create_operation(
            client, auth_headers,
            {"type": "receipt", "warehouse_id": ids["main_id"]},
            [{"product_id": ids["product_id"], "planned_quantity": 10}],
        )

        detail = await client.get(f"/api/operations/{receipt['id']}", headers=auth_headers)
        assert detail.status_code == 200
        body = detail.json()
        assert body["warehouse"] == "Main"
        assert body["total_items"] == 10
        [line] = body["lines"]

        resp = await client.patch(
            f"/api/operations/{receipt['id']}/lines/{line['id']}",
            json={"actual_quantity": 4},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["effective_quantity"] == 4

        await client.post(f"/api/operations/{receipt['id']}/process", headers=auth_headers)

        product = await client.get("/api/products/", headers=auth_headers)
        [row] = product.json()
        assert row["total_stock"] == 24

    async def test_operation_list_filters(self, client: AsyncClient, auth_headers):
        ids = await _setup_catalog(client, auth_headers)
        await _create_operation(
            client, auth_headers, {"type": "receipt", "warehouse_id": ids["main_id"]}, []
        )
        await _create_operation(
            client, auth_headers, {"type": "delivery", "warehouse_id": ids["main_id"]}, []
        )

        resp = await client.get(
            "/api/operations/", params={"type": "delivery"}, headers=auth_headers
        )
        assert [op["type"] for op in resp.json()] == ["delivery"]


@pytest.mark.api
@pytest.mark.asyncio
class TestErrorEnvelope:
    async def test_reprocess_conflict(self, client: AsyncClient, auth_headers):
        ids = await _setup_catalog(client, auth_headers)
        receipt = await _create_operation(
            client, auth_headers,
            {"type": "receipt", "warehouse_id": ids["main_id"]},
            [{"product_id": ids["product_id"], "planned_quantity": 1}],
        )
        await client.post(f"/api/operations/{receipt['id']}/process", headers=auth_headers)

        resp = await client.post(
            f"/api/operations/{receipt['id']}/process", headers=auth_headers
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "OPERATION_ALREADY_PROCESSED"

    async def test_canceled_conflict(self, client: AsyncClient, auth_headers):
        ids = await _setup_catalog(client, auth_headers)
        receipt = await _create_operation(
            client, auth_headers,
            {"type": "receipt", "warehouse_id": ids["main_id"]},
            [{"product_id": ids["product_id"], "planned_quantity": 1}],
        )
        resp = await client.patch(
            f"/api/operations/{receipt['id']}/status",
            json={"status": "canceled"},
            headers=auth_headers,
        )
        assert resp.json()["status"] == "canceled"

        resp = await client.post(
            f"/api/operations/{receipt['id']}/process", headers=auth_headers
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "OPERATION_CANCELED"

    async def test_invalid_transition(self, client: AsyncClient, auth_headers):
        ids = await _setup_catalog(client, auth_headers)
        receipt = await _create_operation(
            client, auth_headers, {"type": "receipt", "warehouse_id": ids["main_id"]}, []
        )
        resp = await client.patch(
            f"/api/operations/{receipt['id']}/status",
            json={"status": "done"},
            headers=auth_headers,
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"

    async def test_not_found(self, client: AsyncClient, auth_headers):
        resp = await client.post("/api/operations/missing/process", headers=auth_headers)
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    async def test_duplicate_sku(self, client: AsyncClient, auth_headers):
        ids = await _setup_catalog(client, auth_headers)
        resp = await client.post(
            "/api/products/",
            json={
                "name": "Copy",
                "sku": "HEX-10",
                "category_id": ids["category_id"],
                "unit_of_measure": "pcs",
            },
            headers=auth_headers,
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "DUPLICATE_KEY"

    async def test_transfer_without_destination_is_invalid(
        self, client: AsyncClient, auth_headers
    ):
        ids = await _setup_catalog(client, auth_headers)
        resp = await client.post(
            "/api/operations/",
            json={"type": "transfer", "warehouse_id": ids["main_id"]},
            headers=auth_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_insufficient_stock_under_reject_policy(
        self, client: AsyncClient, auth_headers, monkeypatch
    ):
        from stockroom.config import settings

        monkeypatch.setattr(settings, "negative_stock_policy", "reject")
        ids = await _setup_catalog(client, auth_headers)
        delivery = await _create_operation(
            client, auth_headers,
            {"type": "delivery", "warehouse_id": ids["main_id"]},
            [{"product_id": ids["product_id"], "planned_quantity": 50}],
        )

        resp = await client.post(
            f"/api/operations/{delivery['id']}/process", headers=auth_headers
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "INSUFFICIENT_STOCK"

        detail = await client.get(f"/api/operations/{delivery['id']}", headers=auth_headers)
        assert detail.json()["status"] == "draft"


@pytest.mark.api
@pytest.mark.asyncio
class TestDashboardCache:
    """Writes that change KPIs evict the cached dashboard."""

    async def _kpis(self, client: AsyncClient, headers: dict) -> dict:
        resp = await client.get("/api/dashboard/kpis", headers=headers)
        assert resp.status_code == 200
        return resp.json()

    async def test_pending_counts_follow_create_and_cancel(
        self, client: AsyncClient, auth_headers, fake_redis
    ):
        ids = await _setup_catalog(client, auth_headers)
        assert (await self._kpis(client, auth_headers))["pending_receipts"] == 0
        assert any(key.startswith("dashboard:") for key in fake_redis.store)

        receipt = await _create_operation(
            client, auth_headers, {"type": "receipt", "warehouse_id": ids["main_id"]}, []
        )
        assert (await self._kpis(client, auth_headers))["pending_receipts"] == 1

        resp = await client.patch(
            f"/api/operations/{receipt['id']}/status",
            json={"status": "canceled"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert (await self._kpis(client, auth_headers))["pending_receipts"] == 0

    async def test_reorder_level_change_refreshes_low_stock(
        self, client: AsyncClient, auth_headers, fake_redis
    ):
        ids = await _setup_catalog(client, auth_headers)
        assert (await self._kpis(client, auth_headers))["low_stock_items"] == 0

        resp = await client.patch(
            f"/api/products/{ids['product_id']}",
            json={"reorder_level": 25},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert (await self._kpis(client, auth_headers))["low_stock_items"] == 1

    async def test_processing_refreshes_stock_counts(
        self, client: AsyncClient, auth_headers, fake_redis
    ):
        ids = await _setup_catalog(client, auth_headers)
        assert (await self._kpis(client, auth_headers))["out_of_stock_items"] == 0

        delivery = await _create_operation(
            client, auth_headers,
            {"type": "delivery", "warehouse_id": ids["main_id"]},
            [{"product_id": ids["product_id"], "planned_quantity": 20}],
        )
        await client.post(f"/api/operations/{delivery['id']}/process", headers=auth_headers)

        kpis = await self._kpis(client, auth_headers)
        assert kpis["out_of_stock_items"] == 1
        assert kpis["pending_deliveries"] == 0
