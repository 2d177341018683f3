# Overview: Pytest coverage for the health endpoint and the catalog CLI commands.

from stockroom.models import CategoryTemplate, Inventory, Product, StockMovement, Warehouse

from conftest import ADMIN_A, ORG_A, stock


class TestHealth:
    def test_health_needs_no_auth(self, client, db_session):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.json["status"] == "ok"
        assert response.json["database"] == "ok"
        assert response.json["timestamp"].endswith("Z")

    def test_cors_headers(self, client, db_session):
        response = client.get('/api/health', headers={"Origin": "http://localhost:3000"})
        assert response.headers.get("Access-Control-Allow-Origin") == "http://localhost:3000"


class TestCatalogCli:
    def _invoke(self, app, *args):
        return app.test_cli_runner().invoke(args=["catalog", *args])

    def test_seed(self, app, db_session):
        result = self._invoke(app, "seed", "--org", ORG_A, "--user", ADMIN_A)
        assert result.exit_code == 0, result.output
        assert "PASS Seeded 4 products" in result.output
        assert "$9.99" in result.output

        assert db_session.query(Warehouse).filter_by(organization_id=ORG_A, is_default=True).count() == 1
        assert db_session.query(Product).filter_by(organization_id=ORG_A).count() == 4
        assert db_session.query(StockMovement).filter_by(movement_type="receipt").count() == 4
        assert sum(r.quantity for r in db_session.query(Inventory)) == 71

    def test_seed_skips_existing_org(self, app, db_session, warehouse_a):
        result = self._invoke(app, "seed", "--org", ORG_A, "--user", ADMIN_A)
        assert result.exit_code == 0
        assert "SKIP" in result.output
        assert db_session.query(Product).count() == 0

    def test_seed_templates(self, app, db_session):
        result = self._invoke(app, "seed-templates")
        assert result.exit_code == 0, result.output
        assert "PASS Added 3 template(s)" in result.output
        assert db_session.query(CategoryTemplate).count() == 3

        result = self._invoke(app, "seed-templates")
        assert "SKIP" in result.output
        assert db_session.query(CategoryTemplate).count() == 3

    def test_low_stock(self, app, db_session):
        self._invoke(app, "seed", "--org", ORG_A, "--user", ADMIN_A)
        result = self._invoke(app, "low-stock", "--org", ORG_A)
        assert result.exit_code == 0
        assert "CBL-HDMI-2M" in result.output
        assert "PPR-A4-500" in result.output
        assert "CBL-USBC-1M" not in result.output
        assert "Total: 2 row(s)" in result.output

    def test_low_stock_empty(self, app, db_session):
        result = self._invoke(app, "low-stock", "--org", ORG_A)
        assert "No low stock items" in result.output

    def test_export_movements(self, app, db_session, tmp_path, product_a, warehouse_a):
        stock(ORG_A, product_a["id"], warehouse_a["id"], 3)
        target = tmp_path / "movements.csv"

        result = self._invoke(app, "export-movements", "--org", ORG_A, "--output", str(target))
        assert result.exit_code == 0, result.output
        assert "PASS Wrote 1 movement(s)" in result.output
        lines = target.read_text().splitlines()
        assert lines[0].startswith("Date,Type,Product")
        assert ",receipt,USB-C Cable,CBL-001,3," in lines[1]

    def test_cleanup_images_dry_run(self, app, db_session, product_a, fake_storage):
        orphan = f"{ORG_A}/{product_a['id']}/stale.png"
        fake_storage.objects[orphan] = b"x"

        result = self._invoke(app, "cleanup-images", "--org", ORG_A, "--dry-run")
        assert result.exit_code == 0, result.output
        assert orphan in result.output
        assert "PASS Found 1 orphaned photo(s)" in result.output
        assert orphan in fake_storage.objects

    def test_cleanup_images_storage_down(self, app, db_session, product_a, fake_storage):
        fake_storage.status_override = 500
        result = self._invoke(app, "cleanup-images", "--org", ORG_A)
        assert result.exit_code != 0
        assert "Storage request failed" in result.output
