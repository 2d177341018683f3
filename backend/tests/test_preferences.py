# Overview: Pytest coverage for per-user UI preferences.

from stockroom.models import UserPreference

from conftest import ADMIN_A, ORG_A


class TestPreferences:
    def test_defaults_without_row(self, client, db_session, admin_a):
        response = client.get('/api/user/preferences', headers=admin_a)
        assert response.status_code == 200
        assert response.json["id"] is None
        assert response.json["user_id"] == ADMIN_A
        assert response.json["table_preferences"] == {}
        assert response.json["navigation_state"] is None
        assert db_session.query(UserPreference).count() == 0

    def test_put_upserts_sections(self, client, db_session, admin_a):
        response = client.put('/api/user/preferences', headers=admin_a, json={
            "ui_preferences": {"theme": "dark"},
            "navigation_state": {"last": "/inventory"},
        })
        assert response.status_code == 200
        assert response.json["ui_preferences"] == {"theme": "dark"}
        assert response.json["organization_id"] == ORG_A

        response = client.put('/api/user/preferences', headers=admin_a, json={"feature_settings": {"beta": True}})
        assert response.json["ui_preferences"] == {"theme": "dark"}
        assert response.json["feature_settings"] == {"beta": True}
        assert db_session.query(UserPreference).count() == 1

    def test_sections_must_be_objects(self, client, db_session, admin_a):
        response = client.put('/api/user/preferences', headers=admin_a, json={"ui_preferences": ["dark"]})
        assert response.status_code == 400
        assert response.json["error"] == "ui_preferences must be an object"

    def test_unknown_section_rejected(self, client, db_session, admin_a):
        response = client.put('/api/user/preferences', headers=admin_a, json={"user_id": "someone_else"})
        assert response.status_code == 400

    def test_preferences_are_per_user(self, client, db_session, admin_a, member_a):
        client.put('/api/user/preferences', headers=admin_a, json={"ui_preferences": {"theme": "dark"}})
        response = client.get('/api/user/preferences', headers=member_a)
        assert response.json["ui_preferences"] == {}


class TestTablePreferences:
    def test_merge_and_reset(self, client, db_session, admin_a):
        url = '/api/user/preferences/table/products'
        assert client.get(url, headers=admin_a).json == {}

        client.put(url, headers=admin_a, json={"columns": ["sku", "name"], "page_size": 25})
        response = client.put(url, headers=admin_a, json={"page_size": 50})
        assert response.status_code == 200
        assert response.json == {"columns": ["sku", "name"], "page_size": 50}
        assert client.get(url, headers=admin_a).json == response.json

        response = client.delete(url, headers=admin_a)
        assert response.json == {"success": True}
        assert client.get(url, headers=admin_a).json == {}

    def test_tables_are_independent(self, client, db_session, admin_a):
        client.put('/api/user/preferences/table/products', headers=admin_a, json={"page_size": 10})
        client.put('/api/user/preferences/table/inventory', headers=admin_a, json={"page_size": 99})
        prefs = client.get('/api/user/preferences', headers=admin_a).json
        assert prefs["table_preferences"] == {"products": {"page_size": 10}, "inventory": {"page_size": 99}}

    def test_body_must_be_object(self, client, db_session, admin_a):
        response = client.put('/api/user/preferences/table/products', headers=admin_a, json=[1, 2])
        assert response.status_code == 400
        assert response.json["error"] == "Table preferences must be an object"

    def test_invalid_table_key(self, client, db_session, admin_a):
        response = client.get('/api/user/preferences/table/bad key!', headers=admin_a)
        assert response.status_code == 400
        assert response.json["error"] == "Invalid table key"

    def test_reset_without_row_is_ok(self, client, db_session, admin_a):
        response = client.delete('/api/user/preferences/table/products', headers=admin_a)
        assert response.status_code == 200


class TestPatchAndOnboarding:
    def test_patch_updates_sections(self, client, db_session, admin_a):
        response = client.patch('/api/user/preferences', headers=admin_a, json={"ui_preferences": {"density": "compact"}})
        assert response.status_code == 200
        assert response.json["ui_preferences"] == {"density": "compact"}

    def test_patch_merges_table(self, client, db_session, admin_a):
        url = '/api/user/preferences/table/products'
        client.patch(url, headers=admin_a, json={"columns": ["sku"]})
        response = client.patch(url, headers=admin_a, json={"page_size": 25})
        assert response.status_code == 200
        assert response.json == {"columns": ["sku"], "page_size": 25}

    def test_user_without_org_gets_defaults(self, client, db_session, no_org):
        response = client.get('/api/user/preferences', headers=no_org)
        assert response.status_code == 200
        assert response.json["user_id"] == ADMIN_A
        assert response.json["organization_id"] is None
        assert client.get('/api/user/preferences/table/products', headers=no_org).json == {}

    def test_user_without_org_can_save(self, client, db_session, no_org, admin_a):
        response = client.patch('/api/user/preferences/table/products', headers=no_org, json={"page_size": 10})
        assert response.status_code == 200
        row = db_session.query(UserPreference).filter_by(user_id=ADMIN_A).one()
        assert row.organization_id is None

        # The organization is recorded once the user has one
        client.patch('/api/user/preferences', headers=admin_a, json={"ui_preferences": {"theme": "dark"}})
        db_session.refresh(row)
        assert row.organization_id == ORG_A
        assert row.table_preferences == {"products": {"page_size": 10}}
