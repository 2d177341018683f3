# Overview: Pytest coverage for inventory adjustments, transfers, reservations and reads.

import io

from openpyxl import load_workbook

from stockroom.models import Inventory, StockMovement

from conftest import ORG_A, create_product, stock


def _row(db_session, product_id, warehouse_id):
    db_session.expire_all()
    return db_session.query(Inventory).filter_by(product_id=product_id, warehouse_id=warehouse_id).one_or_none()


class TestAdjust:
    def test_stock_in_creates_row_and_movement(self, client, db_session, admin_a, product_a, warehouse_a):
        response = client.post('/api/inventory/adjust', headers=admin_a, json={
            "product_id": product_a["id"], "warehouse_id": warehouse_a["id"],
            "quantity_change": 7, "movement_type": "receipt", "reason": "Delivery",
        })
        assert response.status_code == 200
        data = response.json["data"]
        assert response.json["success"] is True
        assert data["previous_quantity"] == 0
        assert data["new_quantity"] == 7

        movement = db_session.get(StockMovement, data["movement_id"])
        assert movement.movement_type == "receipt"
        assert movement.quantity == 7
        assert movement.to_warehouse_id == warehouse_a["id"]
        assert movement.from_warehouse_id is None
        assert movement.status == "completed"
        assert float(movement.total_cost) == 17.5

    def test_camel_case_body(self, client, db_session, admin_a, stocked_a, warehouse_a):
        response = client.post('/api/inventory/adjust', headers=admin_a, json={
            "productId": stocked_a["id"], "warehouseId": warehouse_a["id"], "quantity": -5, "movementType": "sale",
        })
        assert response.status_code == 200
        assert response.json["data"]["new_quantity"] == 15

        movement = db_session.get(StockMovement, response.json["data"]["movement_id"])
        assert movement.from_warehouse_id == warehouse_a["id"]
        assert movement.quantity == 5

    def test_cannot_go_negative(self, client, db_session, admin_a, stocked_a, warehouse_a):
        response = client.post('/api/inventory/adjust', headers=admin_a, json={
            "product_id": stocked_a["id"], "warehouse_id": warehouse_a["id"], "quantity_change": -21,
        })
        assert response.status_code == 400
        assert response.json["error"] == "Insufficient stock"
        assert _row(db_session, stocked_a["id"], warehouse_a["id"]).quantity == 20

    def test_zero_change_rejected(self, client, db_session, admin_a, product_a, warehouse_a):
        response = client.post('/api/inventory/adjust', headers=admin_a, json={
            "product_id": product_a["id"], "warehouse_id": warehouse_a["id"], "quantity_change": 0,
        })
        assert response.status_code == 400

    def test_transfer_type_not_allowed(self, client, db_session, admin_a, product_a, warehouse_a):
        response = client.post('/api/inventory/adjust', headers=admin_a, json={
            "product_id": product_a["id"], "warehouse_id": warehouse_a["id"],
            "quantity_change": 1, "movement_type": "transfer",
        })
        assert response.status_code == 400

    def test_unknown_product_is_404(self, client, db_session, admin_a, warehouse_a):
        response = client.post('/api/inventory/adjust', headers=admin_a, json={
            "product_id": "00000000-0000-0000-0000-000000000000", "warehouse_id": warehouse_a["id"],
            "quantity_change": 1,
        })
        assert response.status_code == 404

    def test_cannot_drop_below_reserved(self, client, db_session, admin_a, stocked_a, warehouse_a):
        client.post('/api/inventory/reserve', headers=admin_a, json={
            "product_id": stocked_a["id"], "warehouse_id": warehouse_a["id"], "quantity": 15,
        })
        response = client.post('/api/inventory/adjust', headers=admin_a, json={
            "product_id": stocked_a["id"], "warehouse_id": warehouse_a["id"], "quantity_change": -10,
        })
        assert response.status_code == 400
        assert "reserved" in response.json["error"]

    def test_member_cannot_adjust(self, client, db_session, member_a, product_a, warehouse_a):
        response = client.post('/api/inventory/adjust', headers=member_a, json={
            "product_id": product_a["id"], "warehouse_id": warehouse_a["id"], "quantity_change": 1,
        })
        assert response.status_code == 403
        assert response.json["error"] == "Only administrators can adjust inventory"


class TestTransfer:
    def test_moves_stock(self, client, db_session, admin_a, stocked_a, warehouse_a, warehouse_a2):
        response = client.post('/api/inventory/transfer', headers=admin_a, json={
            "productId": stocked_a["id"], "fromWarehouseId": warehouse_a["id"],
            "toWarehouseId": warehouse_a2["id"], "quantity": 8,
        })
        assert response.status_code == 200
        data = response.json["data"]
        assert data["from_new_quantity"] == 12
        assert data["to_new_quantity"] == 8

        movement = db_session.get(StockMovement, data["movement_id"])
        assert movement.movement_type == "transfer"
        assert movement.from_warehouse_id == warehouse_a["id"]
        assert movement.to_warehouse_id == warehouse_a2["id"]

    def test_same_warehouse(self, client, db_session, admin_a, stocked_a, warehouse_a):
        response = client.post('/api/inventory/transfer', headers=admin_a, json={
            "product_id": stocked_a["id"], "from_warehouse_id": warehouse_a["id"],
            "to_warehouse_id": warehouse_a["id"], "quantity": 1,
        })
        assert response.status_code == 400
        assert response.json["error"] == "Cannot transfer to the same warehouse"

    def test_reserved_stock_is_not_available(self, client, db_session, admin_a, stocked_a, warehouse_a, warehouse_a2):
        client.post('/api/inventory/reserve', headers=admin_a, json={
            "product_id": stocked_a["id"], "warehouse_id": warehouse_a["id"], "quantity": 15,
        })
        response = client.post('/api/inventory/transfer', headers=admin_a, json={
            "product_id": stocked_a["id"], "from_warehouse_id": warehouse_a["id"],
            "to_warehouse_id": warehouse_a2["id"], "quantity": 6,
        })
        assert response.status_code == 400
        assert response.json["error"] == "Insufficient available stock in source warehouse"
        assert _row(db_session, stocked_a["id"], warehouse_a2["id"]) is None

    def test_foreign_destination_is_404(self, client, db_session, admin_a, stocked_a, warehouse_a, warehouse_b):
        response = client.post('/api/inventory/transfer', headers=admin_a, json={
            "product_id": stocked_a["id"], "from_warehouse_id": warehouse_a["id"],
            "to_warehouse_id": warehouse_b["id"], "quantity": 1,
        })
        assert response.status_code == 404


class TestReservations:
    def test_reserve_and_release(self, client, db_session, admin_a, stocked_a, warehouse_a):
        body = {"product_id": stocked_a["id"], "warehouse_id": warehouse_a["id"], "quantity": 4}

        response = client.post('/api/inventory/reserve', headers=admin_a, json={**body, "referenceNumber": "SO-1"})
        assert response.status_code == 200
        assert response.json["data"]["reserved_quantity"] == 4
        assert response.json["data"]["available_quantity"] == 16
        assert response.json["data"]["reference_number"] == "SO-1"

        response = client.post('/api/inventory/release', headers=admin_a, json=body)
        assert response.json["data"]["reserved_quantity"] == 0
        assert db_session.query(StockMovement).filter_by(product_id=stocked_a["id"]).count() == 1

    def test_cannot_reserve_more_than_available(self, client, db_session, admin_a, stocked_a, warehouse_a):
        response = client.post('/api/inventory/reserve', headers=admin_a, json={
            "product_id": stocked_a["id"], "warehouse_id": warehouse_a["id"], "quantity": 21,
        })
        assert response.status_code == 400

    def test_cannot_release_more_than_reserved(self, client, db_session, admin_a, stocked_a, warehouse_a):
        response = client.post('/api/inventory/release', headers=admin_a, json={
            "product_id": stocked_a["id"], "warehouse_id": warehouse_a["id"], "quantity": 1,
        })
        assert response.status_code == 400
        assert response.json["error"] == "Cannot release more than the reserved quantity"


class TestBatchAdjust:
    def test_add_remove_set(self, client, db_session, admin_a, stocked_a, warehouse_a, warehouse_a2):
        other = create_product(ORG_A, "OTHER-1")
        response = client.post('/api/inventory/batch-adjust', headers=admin_a, json={"items": [
            {"productId": stocked_a["id"], "warehouseId": warehouse_a["id"], "quantity": 5, "type": "remove"},
            {"product_id": other["id"], "warehouse_id": warehouse_a2["id"], "quantity": 3, "type": "add"},
            {"product_id": stocked_a["id"], "warehouse_id": warehouse_a2["id"], "quantity": 9, "type": "set"},
        ]})
        assert response.status_code == 200
        report = response.json
        assert report["totalSuccess"] == 3
        assert report["totalFailed"] == 0

        assert _row(db_session, stocked_a["id"], warehouse_a["id"]).quantity == 15
        assert _row(db_session, other["id"], warehouse_a2["id"]).quantity == 3
        assert _row(db_session, stocked_a["id"], warehouse_a2["id"]).quantity == 9

    def test_set_to_current_writes_no_movement(self, client, db_session, admin_a, stocked_a, warehouse_a):
        response = client.post('/api/inventory/batch-adjust', headers=admin_a, json={"items": [
            {"product_id": stocked_a["id"], "warehouse_id": warehouse_a["id"], "quantity": 20, "type": "set"},
        ]})
        result = response.json["successful"][0]
        assert result["movement_id"] is None
        assert result["quantity_change"] == 0
        assert db_session.query(StockMovement).count() == 1

    def test_failures_are_reported_per_item(self, client, db_session, admin_a, stocked_a, warehouse_a):
        response = client.post('/api/inventory/batch-adjust', headers=admin_a, json={"items": [
            {"product_id": stocked_a["id"], "warehouse_id": warehouse_a["id"], "quantity": 50, "type": "remove"},
            {"product_id": stocked_a["id"], "warehouse_id": warehouse_a["id"], "quantity": 0, "type": "add"},
            {"product_id": stocked_a["id"], "warehouse_id": warehouse_a["id"], "quantity": 1, "type": "explode"},
            {"product_id": stocked_a["id"], "warehouse_id": warehouse_a["id"], "quantity": 2, "type": "add"},
        ]})
        report = response.json
        assert report["totalSuccess"] == 1
        assert report["totalFailed"] == 3
        assert report["failed"][0]["error"] == "Insufficient stock"
        assert _row(db_session, stocked_a["id"], warehouse_a["id"]).quantity == 22

    def test_empty_items(self, client, db_session, admin_a):
        response = client.post('/api/inventory/batch-adjust', headers=admin_a, json={"items": []})
        assert response.status_code == 400


class TestReads:
    def test_list_and_filters(self, client, db_session, member_a, stocked_a, warehouse_a, warehouse_a2):
        stock(ORG_A, stocked_a["id"], warehouse_a2["id"], 2)

        response = client.get('/api/inventory', headers=member_a)
        assert [r["warehouse_name"] for r in response.json] == ["Main Office", "Service Van"]
        assert response.json[0]["product_sku"] == "CBL-001"

        response = client.get(f'/api/inventory?warehouse_id={warehouse_a2["id"]}', headers=member_a)
        assert [r["quantity"] for r in response.json] == [2]

    def test_summary(self, client, db_session, admin_a, stocked_a, warehouse_a, warehouse_a2):
        stock(ORG_A, stocked_a["id"], warehouse_a2["id"], 5)
        client.post('/api/inventory/reserve', headers=admin_a, json={
            "product_id": stocked_a["id"], "warehouse_id": warehouse_a["id"], "quantity": 3,
        })

        response = client.get(f'/api/inventory/summary/{stocked_a["id"]}', headers=admin_a)
        body = response.json
        assert body["total_quantity"] == 25
        assert body["total_reserved"] == 3
        assert body["total_available"] == 22
        assert body["warehouse_count"] == 2

    def test_summary_unknown_product(self, client, db_session, admin_a):
        response = client.get('/api/inventory/summary/00000000-0000-0000-0000-000000000000', headers=admin_a)
        assert response.status_code == 404

    def test_low_stock(self, client, db_session, admin_a, product_a, warehouse_a, warehouse_a2):
        stock(ORG_A, product_a["id"], warehouse_a["id"], 5)
        stock(ORG_A, product_a["id"], warehouse_a2["id"], 6)
        untracked = create_product(ORG_A, "NO-THRESHOLD")
        stock(ORG_A, untracked["id"], warehouse_a["id"], 1)

        response = client.get('/api/inventory/low-stock', headers=admin_a)
        assert [(r["product_sku"], r["quantity"]) for r in response.json] == [("CBL-001", 5)]

    def test_export_csv(self, client, db_session, admin_a, stocked_a):
        response = client.get('/api/inventory/export', headers=admin_a)
        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert "attachment; filename=\"inventory_" in response.headers["Content-Disposition"]
        lines = response.data.decode().splitlines()
        assert lines[0] == "Product,SKU,Warehouse,Quantity,Reserved,Available,Low Stock Threshold,Updated"
        assert lines[1].startswith("USB-C Cable,CBL-001,Main Office,20,0,20,5,")

    def test_export_xlsx(self, client, db_session, admin_a, stocked_a):
        response = client.get('/api/inventory/export?format=xlsx', headers=admin_a)
        assert response.headers["Content-Disposition"].endswith('.xlsx"')
        sheet = load_workbook(io.BytesIO(response.data)).active
        assert sheet.title == "Inventory"
        assert sheet["A2"].value == "USB-C Cable"
        assert sheet["D2"].value == 20

    def test_export_rejects_unknown_format(self, client, db_session, admin_a):
        response = client.get('/api/inventory/export?format=pdf', headers=admin_a)
        assert response.status_code == 400
