# Overview: Pytest coverage for the HTTP client, served in-process over WSGI.

import httpx
import pytest

from stockroom.client import ApiError, StockroomClient

from conftest import ADMIN_A, ORG_A, make_token


@pytest.fixture
def api(app, db_session):
    token = make_token(ADMIN_A, ORG_A, "org:admin", first_name="Ada", last_name="Admin")
    client = StockroomClient("http://stockroom.test", token, transport=httpx.WSGITransport(app=app))
    yield client
    client.close()


class TestStockroomClient:
    def test_catalog_and_stock_flow(self, api, warehouse_a, warehouse_a2):
        product = api.create_product({"sku": "CLI-1", "name": "Client Cable", "low_stock_threshold": 3})

        adjusted = api.adjust_stock(product["id"], warehouse_a["id"], 5, movement_type="receipt")
        assert adjusted["new_quantity"] == 5

        moved = api.transfer_stock(product["id"], warehouse_a["id"], warehouse_a2["id"], 3)
        assert moved["from_new_quantity"] == 2

        summary = api.product_inventory(product["id"])
        assert summary["total_quantity"] == 5
        assert [r["quantity"] for r in api.low_stock()] == [2, 3]
        assert len(api.recent_movements(5)) == 2
        assert api.search("client")["total"] == 1

    def test_error_message_comes_from_body(self, api, warehouse_a, product_a):
        with pytest.raises(ApiError) as info:
            api.adjust_stock(product_a["id"], warehouse_a["id"], -1)
        assert info.value.status_code == 400
        assert info.value.message == "Insufficient stock"

    def test_missing_token(self, app, db_session):
        anonymous = StockroomClient("http://stockroom.test", transport=httpx.WSGITransport(app=app))
        with pytest.raises(ApiError) as info:
            anonymous.list_products()
        assert info.value.status_code == 401
        assert info.value.message == "Unauthorized"

    def test_role_and_preferences(self, api):
        assert api.role()["is_admin"] is True
        api.update_table_preferences("products", {"page_size": 50})
        assert api.table_preferences("products") == {"page_size": 50}

    def test_preference_writes_and_reset(self, api):
        api.update_preferences({"ui_preferences": {"sidebar_collapsed": True}})
        assert api.preferences()["ui_preferences"] == {"sidebar_collapsed": True}

        api.update_table_preferences("inventory", {"page_size": 25})
        api.update_table_preferences("inventory", {"sort": "sku"})
        assert api.table_preferences("inventory") == {"page_size": 25, "sort": "sku"}

        assert api.reset_table_preferences("inventory") == {"success": True}
        assert api.table_preferences("inventory") == {}

    def test_export_bytes(self, api, stocked_a):
        body = api.export("inventory")
        assert body.startswith(b"Product,SKU,Warehouse")

    def test_fallback_message_without_json(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway"))
        client = StockroomClient("http://stockroom.test", "t", transport=transport)
        with pytest.raises(ApiError, match="Failed to fetch warehouses"):
            client.list_warehouses()

    def test_quote_flow(self, api, stocked_a, warehouse_a):
        recipient = api.create_client({"name": "Initech", "email": "bill@initech.test"})
        service = api.create_service({"name": "Setup", "rate": 40, "rate_type": "fixed"})
        quote = api.create_quote({"client_id": recipient["id"]})

        api.add_quote_item(quote["id"], {
            "item_type": "product", "product_id": stocked_a["id"], "warehouse_id": warehouse_a["id"], "quantity": 3,
        })
        api.add_quote_item(quote["id"], {"item_type": "service", "service_id": service["id"]})
        sent = api.send_quote(quote["id"])
        assert sent["access_url"].endswith(sent["token"])

        detail = api.get_quote(quote["id"])
        assert detail["status"] == "sent"
        assert detail["total"] == 69.97
        assert api.product_inventory(stocked_a["id"])["total_reserved"] == 3
        assert [q["id"] for q in api.list_quotes(status="sent")["data"]] == [quote["id"]]

        assert [h["type"] for h in api.search("setup", kind="service")["results"]] == ["service"]

    def test_company_with_contact(self, api):
        company = api.create_company({"name": "Umbrella"}, primary_contact={"first_name": "Al", "last_name": "Wesker"})
        contacts = api.list_contacts(company["id"])
        assert [c["is_primary"] for c in contacts] == [True]
        listed = api.list_companies(with_contacts=True)["data"]
        assert listed[0]["contacts"][0]["last_name"] == "Wesker"

    def test_quote_errors_surface(self, api):
        with pytest.raises(ApiError) as info:
            api.create_quote({})
        assert info.value.status_code == 400
        assert info.value.message == "Client is required"
