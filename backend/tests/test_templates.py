# Overview: Pytest coverage for the category template library and template imports.

from datetime import timedelta

import pytest

from stockroom.models import CategoryTemplate, FeatureDefinition, TemplateImportJob
from stockroom.services import category_service, template_service
from stockroom.time_utils import utcnow

from conftest import ADMIN_A, ORG_A

LIBRARY = [
    {
        "name": "Electrician",
        "business_type": "Trades",
        "categories": [
            {
                "name": "Wiring",
                "description": "Cable and connectors",
                "features": [{"name": "Gauge", "input_type": "select", "options": ["12 AWG", "14 AWG"]}],
                "subcategories": [
                    {"name": "Cable", "features": [{"name": "Length", "input_type": "number", "unit": "m"}]},
                    {"name": "Connectors"},
                ],
            },
            {"name": "Lighting"},
        ],
    },
    {"name": "Bakery", "business_type": "Food", "categories": [{"name": "Flour"}]},
]


@pytest.fixture
def template(db_session):
    template_service.seed_library(LIBRARY)
    row = db_session.query(CategoryTemplate).filter_by(name="Electrician").one()
    return template_service.get_template(row.id)


def _wiring_selection(template, *, with_features=True):
    wiring = template["categories"][0]
    cable = wiring["subcategories"][0]
    return {"categories": [{
        "templateCategoryId": wiring["id"],
        "includeFeatures": with_features,
        "featureIds": [f["id"] for f in wiring["features"]],
        "subcategories": [{
            "templateSubcategoryId": cable["id"],
            "includeFeatures": with_features,
            "featureIds": [f["id"] for f in cable["features"]],
        }],
    }]}


def _import(client, headers, template, selections, mode="merge"):
    return client.post(f'/api/category-templates/{template["id"]}/import', headers=headers, json={
        "importMode": mode, "selections": selections,
    })


def _progress(client, headers, job_id):
    return client.get(f'/api/category-templates/import-progress/{job_id}', headers=headers)


class TestLibrary:
    def test_list(self, client, db_session, admin_a, template):
        response = client.get('/api/category-templates', headers=admin_a)
        assert response.status_code == 200
        assert response.json["totalCount"] == 2
        assert [t["name"] for t in response.json["templates"]] == ["Bakery", "Electrician"]

    def test_detail(self, client, db_session, member_a, template):
        response = client.get(f'/api/category-templates/{template["id"]}', headers=member_a)
        wiring = response.json["categories"][0]
        assert [c["name"] for c in response.json["categories"]] == ["Wiring", "Lighting"]
        assert [s["name"] for s in wiring["subcategories"]] == ["Cable", "Connectors"]
        assert wiring["features"][0]["options"] == ["12 AWG", "14 AWG"]

    def test_unknown_template(self, client, db_session, admin_a):
        response = client.get('/api/category-templates/nope', headers=admin_a)
        assert response.status_code == 404

    def test_seed_is_idempotent(self, db_session, template):
        assert template_service.seed_library(LIBRARY) == 0


class TestImport:
    def test_merge_creates_rows(self, client, db_session, admin_a, template):
        response = _import(client, admin_a, template, _wiring_selection(template))
        assert response.status_code == 200
        assert response.json["message"] == "Import started successfully"

        progress = _progress(client, admin_a, response.json["jobId"]).json
        assert progress["status"] == "completed"
        assert progress["percentage"] == 100
        assert progress["totalItems"] == 4
        assert progress["completedItems"] == 4
        assert progress["errors"] == []
        assert progress["result"]["categoriesCreated"] == 1
        assert progress["result"]["subcategoriesCreated"] == 1
        assert progress["result"]["featuresCreated"] == 2

        categories = client.get('/api/categories', headers=admin_a).json
        assert [c["name"] for c in categories] == ["Wiring"]
        assert categories[0]["description"] == "Cable and connectors"
        features = db_session.query(FeatureDefinition).filter_by(organization_id=ORG_A).all()
        assert sorted(f.name for f in features) == ["Gauge", "Length"]

        row = db_session.query(CategoryTemplate).filter_by(name="Electrician").one()
        assert row.usage_count == 1

    def test_merge_skips_existing(self, client, db_session, admin_a, template):
        job = _import(client, admin_a, template, _wiring_selection(template)).json
        _progress(client, admin_a, job["jobId"])

        job = _import(client, admin_a, template, _wiring_selection(template)).json
        result = _progress(client, admin_a, job["jobId"]).json["result"]
        assert result["categoriesSkipped"] == 1
        assert result["subcategoriesSkipped"] == 1
        assert result["featuresSkipped"] == 2
        assert result["categoriesCreated"] == 0

    def test_replace_updates_existing(self, client, db_session, admin_a, template):
        category_service.create_category(
            org_id=ORG_A, user_id=ADMIN_A, user_name="Fixture",
            patch={"name": "Wiring", "description": "Old text", "display_order": 9},
        )
        job = _import(client, admin_a, template, _wiring_selection(template, with_features=False), mode="replace").json
        result = _progress(client, admin_a, job["jobId"]).json["result"]
        assert result["categoriesUpdated"] == 1
        assert result["subcategoriesCreated"] == 1

        category = client.get('/api/categories', headers=admin_a).json[0]
        assert category["description"] == "Cable and connectors"
        assert category["display_order"] == 0

    def test_unknown_selection_is_reported(self, client, db_session, admin_a, template):
        job = _import(client, admin_a, template, {"categories": [{"templateCategoryId": "missing"}]}).json
        progress = _progress(client, admin_a, job["jobId"]).json
        assert progress["status"] == "completed"
        assert progress["errors"][0]["error"] == "Template category not found"
        assert progress["errors"][0]["item"] == "missing"

    def test_runs_in_chunks_until_cancelled(self, app, client, db_session, admin_a, template, monkeypatch):
        monkeypatch.setitem(app.config, "TEMPLATE_IMPORT_CHUNK_SIZE", 1)
        job_id = _import(client, admin_a, template, _wiring_selection(template)).json["jobId"]

        progress = _progress(client, admin_a, job_id).json
        assert progress["status"] == "importing"
        assert progress["completedItems"] == 2
        assert progress["percentage"] == 50
        assert progress["result"] is None

        response = client.delete(f'/api/category-templates/import-progress/{job_id}', headers=admin_a)
        assert response.json == {"success": True, "message": "Import cancelled"}

        progress = _progress(client, admin_a, job_id).json
        assert progress["status"] == "cancelled"
        assert progress["completedItems"] == 2

        response = client.delete(f'/api/category-templates/import-progress/{job_id}', headers=admin_a)
        assert response.status_code == 404

    def test_claimed_job_is_not_run_twice(self, app, client, db_session, admin_a, template, monkeypatch):
        monkeypatch.setitem(app.config, "TEMPLATE_IMPORT_CHUNK_SIZE", 1)
        job_id = _import(client, admin_a, template, _wiring_selection(template)).json["jobId"]
        job = db_session.get(TemplateImportJob, job_id)
        assert job.claimed_at is None
        assert job.completed_items == 1

        job.claimed_at = utcnow()
        db_session.commit()
        progress = _progress(client, admin_a, job_id).json
        assert progress["status"] == "importing"
        assert progress["completedItems"] == 1
        assert progress["result"] is None

        db_session.expire_all()
        job = db_session.get(TemplateImportJob, job_id)
        job.claimed_at = utcnow() - timedelta(minutes=10)
        db_session.commit()
        progress = _progress(client, admin_a, job_id).json
        assert progress["completedItems"] == 2

        db_session.expire_all()
        assert db_session.get(TemplateImportJob, job_id).claimed_at is None


class TestImportRequests:
    def test_member_forbidden(self, client, db_session, member_a, template):
        response = _import(client, member_a, template, _wiring_selection(template))
        assert response.status_code == 403
        assert response.json["error"] == "Only administrators can import templates"

    def test_bad_mode(self, client, db_session, admin_a, template):
        response = _import(client, admin_a, template, _wiring_selection(template), mode="overwrite")
        assert response.status_code == 400

    def test_selections_required(self, client, db_session, admin_a, template):
        response = _import(client, admin_a, template, None)
        assert response.status_code == 400
        assert response.json["error"] == "Invalid import request: selections are required"

    def test_progress_of_other_organization(self, client, db_session, admin_a, admin_b, template):
        job_id = _import(client, admin_a, template, _wiring_selection(template)).json["jobId"]
        assert _progress(client, admin_b, job_id).status_code == 404
