# Overview: Pytest coverage for categories, subcategories and feature definitions.

from stockroom.models import Category, FeatureDefinition, ProductFeature, Subcategory

from conftest import ORG_A, ORG_B, create_product


class TestCategories:
    def test_create_and_list(self, client, db_session, admin_a):
        for name, order in (("Tools", 2), ("Cables", 1), ("Adapters", 1)):
            response = client.post('/api/categories', headers=admin_a, json={"name": name, "display_order": order})
            assert response.status_code == 201

        response = client.get('/api/categories', headers=admin_a)
        assert [c["name"] for c in response.json] == ["Adapters", "Cables", "Tools"]
        assert all(c["status"] == "active" for c in response.json)

    def test_duplicate_name_is_409(self, client, db_session, admin_a, category_a):
        response = client.post('/api/categories', headers=admin_a, json={"name": "Electronics"})
        assert response.status_code == 409
        assert response.json["error"] == "A category with this name already exists"

    def test_same_name_allowed_in_other_org(self, client, db_session, admin_b, category_a):
        response = client.post('/api/categories', headers=admin_b, json={"name": "Electronics"})
        assert response.status_code == 201

    def test_get_includes_subcategories(self, client, db_session, admin_a, category_a, subcategory_a):
        response = client.get(f'/api/categories/{category_a["id"]}', headers=admin_a)
        assert response.status_code == 200
        assert [s["name"] for s in response.json["subcategories"]] == ["Cables"]

    def test_rename_to_existing_is_409(self, client, db_session, admin_a, category_a):
        other = client.post('/api/categories', headers=admin_a, json={"name": "Office"}).json
        response = client.put(f'/api/categories/{other["id"]}', headers=admin_a, json={"name": "Electronics"})
        assert response.status_code == 409

    def test_delete_blocked_by_products(self, client, db_session, admin_a, category_a, subcategory_a):
        create_product(ORG_A, "SUB-1", category_id=category_a["id"], subcategory_id=subcategory_a["id"])
        response = client.delete(f'/api/categories/{category_a["id"]}', headers=admin_a)
        assert response.status_code == 409
        assert response.json["error"] == "Cannot delete category with existing products"

    def test_delete_removes_subcategories_and_definitions(self, client, db_session, admin_a, category_a, subcategory_a):
        client.post('/api/feature-definitions', headers=admin_a,
                    json={"name": "Length", "input_type": "number", "subcategory_id": subcategory_a["id"]})

        response = client.delete(f'/api/categories/{category_a["id"]}', headers=admin_a)
        assert response.status_code == 200
        assert response.json == {"success": True}
        assert db_session.get(Category, category_a["id"]) is None
        assert db_session.get(Subcategory, subcategory_a["id"]) is None
        assert db_session.query(FeatureDefinition).count() == 0


class TestSubcategories:
    def test_create_requires_known_category(self, client, db_session, admin_a):
        response = client.post('/api/subcategories', headers=admin_a, json={
            "category_id": "00000000-0000-0000-0000-000000000000", "name": "Loose",
        })
        assert response.status_code == 400
        assert response.json["error"] == "Category not found"

    def test_duplicate_within_category_is_409(self, client, db_session, admin_a, category_a, subcategory_a):
        response = client.post('/api/subcategories', headers=admin_a,
                               json={"category_id": category_a["id"], "name": "Cables"})
        assert response.status_code == 409

    def test_list_filtered_by_category(self, client, db_session, admin_a, category_a, subcategory_a):
        other = client.post('/api/categories', headers=admin_a, json={"name": "Office"}).json
        client.post('/api/subcategories', headers=admin_a, json={"category_id": other["id"], "name": "Paper"})

        response = client.get(f'/api/subcategories?category_id={category_a["id"]}', headers=admin_a)
        assert [s["name"] for s in response.json] == ["Cables"]
        response = client.get('/api/subcategories', headers=admin_a)
        assert len(response.json) == 2

    def test_delete_blocked_by_products(self, client, db_session, admin_a, category_a, subcategory_a):
        create_product(ORG_A, "SUB-1", category_id=category_a["id"], subcategory_id=subcategory_a["id"])
        response = client.delete(f'/api/subcategories/{subcategory_a["id"]}', headers=admin_a)
        assert response.status_code == 409
        assert response.json["error"] == "Cannot delete subcategory with existing products"

    def test_product_cannot_mix_categories(self, client, db_session, admin_a, subcategory_a):
        other = client.post('/api/categories', headers=admin_a, json={"name": "Office"}).json
        response = client.post('/api/products', headers=admin_a, json={
            "sku": "MIX-1", "name": "Mixed", "category_id": other["id"], "subcategory_id": subcategory_a["id"],
        })
        assert response.status_code == 400
        assert response.json["error"] == "Subcategory does not belong to the selected category"


class TestFeatureDefinitions:
    def _create(self, client, headers, **payload):
        return client.post('/api/feature-definitions', headers=headers, json=payload)

    def test_create_assigns_display_order(self, client, db_session, admin_a, category_a):
        first = self._create(client, admin_a, name="Color", input_type="text", category_id=category_a["id"])
        second = self._create(client, admin_a, name="Weight", input_type="number", unit="g",
                              category_id=category_a["id"])
        assert first.status_code == 201
        assert first.json["display_order"] == 0
        assert second.json["display_order"] == 1
        assert second.json["is_required"] is False

    def test_requires_category_or_subcategory(self, client, db_session, admin_a):
        response = self._create(client, admin_a, name="Color", input_type="text")
        assert response.status_code == 400

    def test_select_requires_options(self, client, db_session, admin_a, category_a):
        response = self._create(client, admin_a, name="Size", input_type="select", category_id=category_a["id"])
        assert response.status_code == 400
        assert response.json["error"] == "options are required for select features"

    def test_update_to_select_without_options(self, client, db_session, admin_a, category_a):
        created = self._create(client, admin_a, name="Size", input_type="text", category_id=category_a["id"]).json
        response = client.put(f'/api/feature-definitions/{created["id"]}', headers=admin_a,
                              json={"input_type": "select"})
        assert response.status_code == 400
        assert db_session.get(FeatureDefinition, created["id"]).input_type == "text"

        response = client.put(f'/api/feature-definitions/{created["id"]}', headers=admin_a,
                              json={"input_type": "select", "options": ["S", "M", "L"]})
        assert response.status_code == 200
        assert response.json["options"] == ["S", "M", "L"]

    def test_duplicate_name_in_scope_is_409(self, client, db_session, admin_a, category_a):
        self._create(client, admin_a, name="Color", input_type="text", category_id=category_a["id"])
        response = self._create(client, admin_a, name="Color", input_type="text", category_id=category_a["id"])
        assert response.status_code == 409

    def test_subcategory_listing_includes_parent_definitions(
        self, client, db_session, admin_a, category_a, subcategory_a
    ):
        self._create(client, admin_a, name="Brand", input_type="text", category_id=category_a["id"])
        self._create(client, admin_a, name="Length", input_type="number", subcategory_id=subcategory_a["id"])

        response = client.get(f'/api/feature-definitions?subcategory_id={subcategory_a["id"]}', headers=admin_a)
        assert sorted(d["name"] for d in response.json) == ["Brand", "Length"]

        response = client.get(f'/api/feature-definitions?category_id={category_a["id"]}', headers=admin_a)
        assert [d["name"] for d in response.json] == ["Brand"]

    def test_reorder(self, client, db_session, admin_a, category_a):
        a = self._create(client, admin_a, name="A", input_type="text", category_id=category_a["id"]).json
        b = self._create(client, admin_a, name="B", input_type="text", category_id=category_a["id"]).json

        response = client.post('/api/feature-definitions/reorder', headers=admin_a, json={"ids": [b["id"], a["id"]]})
        assert response.status_code == 200
        assert [(d["name"], d["display_order"]) for d in response.json] == [("B", 0), ("A", 1)]

    def test_reorder_rejects_foreign_ids(self, client, db_session, admin_a, admin_b, category_a):
        a = self._create(client, admin_a, name="A", input_type="text", category_id=category_a["id"]).json
        response = client.post('/api/feature-definitions/reorder', headers=admin_b, json={"ids": [a["id"]]})
        assert response.status_code == 400

    def test_delete_keeps_values_as_custom(self, client, db_session, admin_a, category_a, product_a):
        d = self._create(client, admin_a, name="Color", input_type="text", category_id=category_a["id"]).json
        client.put(f'/api/products/{product_a["id"]}/features', headers=admin_a, json={"features": [
            {"name": "Color", "value": "Black", "feature_definition_id": d["id"]},
        ]})

        response = client.delete(f'/api/feature-definitions/{d["id"]}', headers=admin_a)
        assert response.status_code == 200

        db_session.expire_all()
        feature = db_session.query(ProductFeature).filter_by(product_id=product_a["id"]).one()
        assert feature.feature_definition_id is None
        assert feature.is_custom is True


class TestProductFeatures:
    def test_replace_and_list(self, client, db_session, admin_a, product_a):
        response = client.put(f'/api/products/{product_a["id"]}/features', headers=admin_a, json={"features": [
            {"name": "Waterproof", "value": True},
            {"name": "Color", "value": " Black "},
        ]})
        assert response.status_code == 200
        assert [(f["name"], f["value"], f["is_custom"]) for f in response.json] == [
            ("Color", "Black", True),
            ("Waterproof", "true", True),
        ]

        response = client.put(f'/api/products/{product_a["id"]}/features', headers=admin_a,
                              json={"features": [{"name": "Length", "value": 1}]})
        assert [f["name"] for f in response.json] == ["Length"]

        response = client.get(f'/api/products/{product_a["id"]}/features', headers=admin_a)
        assert [f["value"] for f in response.json] == ["1"]

    def test_duplicate_names_rejected(self, client, db_session, admin_a, product_a):
        response = client.put(f'/api/products/{product_a["id"]}/features', headers=admin_a, json={"features": [
            {"name": "Color", "value": "Red"}, {"name": "Color", "value": "Blue"},
        ]})
        assert response.status_code == 400
        assert response.json["error"] == "Duplicate feature name: Color"

    def test_features_must_be_list(self, client, db_session, admin_a, product_a):
        response = client.put(f'/api/products/{product_a["id"]}/features', headers=admin_a, json={"features": "x"})
        assert response.status_code == 400

    def test_foreign_definition_rejected(self, client, db_session, admin_a, admin_b, product_a):
        category_b = client.post('/api/categories', headers=admin_b, json={"name": "Beta"}).json
        definition_b = client.post('/api/feature-definitions', headers=admin_b, json={
            "name": "Color", "input_type": "text", "category_id": category_b["id"],
        }).json
        assert category_b["organization_id"] == ORG_B

        response = client.put(f'/api/products/{product_a["id"]}/features', headers=admin_a, json={"features": [
            {"name": "Color", "value": "Red", "feature_definition_id": definition_b["id"]},
        ]})
        assert response.status_code == 400
