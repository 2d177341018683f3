# Overview: Pytest coverage for quotes, their lines, sending and the public quote link.

from datetime import timedelta

import pytest

from stockroom.models import QuoteAccessToken
from stockroom.time_utils import utcnow

from conftest import ORG_A, create_client_record


def _reserved(client, headers, product_id):
    return client.get(f'/api/inventory/summary/{product_id}', headers=headers).json["total_reserved"]


@pytest.fixture
def quote_a(client, db_session, admin_a, client_a):
    response = client.post('/api/quotes', headers=admin_a, json={"clientId": client_a["id"]})
    assert response.status_code == 201
    return response.json


@pytest.fixture
def priced_quote(client, admin_a, quote_a, stocked_a, warehouse_a, service_a):
    """quote_a with 2 x product_a from warehouse_a and 1.5 hours of service_a."""
    client.post(f'/api/quotes/{quote_a["id"]}/items', headers=admin_a, json={
        "item_type": "product", "product_id": stocked_a["id"], "warehouse_id": warehouse_a["id"], "quantity": 2,
        "display_order": 0,
    })
    client.post(f'/api/quotes/{quote_a["id"]}/items', headers=admin_a, json={
        "item_type": "service", "service_id": service_a["id"], "quantity": 1.5, "display_order": 1,
    })
    return quote_a


@pytest.fixture
def sent_token(client, admin_a, priced_quote):
    response = client.post(f'/api/quotes/{priced_quote["id"]}/send', headers=admin_a)
    assert response.status_code == 200
    return response.json["token"]


class TestQuoteCreate:
    def test_numbering_and_defaults(self, client, db_session, admin_a, client_a, quote_a):
        year = utcnow().year
        assert quote_a["quote_number"] == f"Q-{year}-0001"
        assert quote_a["status"] == "draft"
        assert quote_a["assigned_to_user_id"] == "user_admin_a"
        assert quote_a["client"]["name"] == "Acme Corp"
        assert quote_a["valid_from"] == utcnow().date().isoformat()
        assert quote_a["valid_until"] == (utcnow().date() + timedelta(days=30)).isoformat()

        second = client.post('/api/quotes', headers=admin_a, json={"client_id": client_a["id"]}).json
        assert second["quote_number"] == f"Q-{year}-0002"

    def test_client_required(self, client, db_session, admin_a):
        response = client.post('/api/quotes', headers=admin_a, json={})
        assert response.status_code == 400
        assert response.json["error"] == "Client is required"

    def test_client_of_other_organization_rejected(self, client, db_session, admin_b, client_a):
        response = client.post('/api/quotes', headers=admin_b, json={"client_id": client_a["id"]})
        assert response.status_code == 400
        assert response.json["error"] == "Client not found"

    def test_numbering_is_per_organization(self, client, db_session, admin_b, quote_a):
        other = create_client_record("org_beta", "Beta Buyer")
        response = client.post('/api/quotes', headers=admin_b, json={"client_id": other["id"]})
        assert response.json["quote_number"] == quote_a["quote_number"]

    def test_list_filters_by_status(self, client, db_session, admin_a, quote_a):
        response = client.get('/api/quotes?status=draft', headers=admin_a)
        assert response.json["count"] == 1
        response = client.get('/api/quotes?status=sent', headers=admin_a)
        assert response.json["data"] == []
        response = client.get('/api/quotes?status=bogus', headers=admin_a)
        assert response.status_code == 400


class TestQuoteItems:
    def test_lines_copy_catalog_and_totals(self, client, db_session, admin_a, priced_quote):
        items = client.get(f'/api/quotes/{priced_quote["id"]}/items', headers=admin_a).json
        product_line, service_line = items
        assert product_line["name"] == "USB-C Cable"
        assert product_line["sku"] == "CBL-001"
        assert product_line["unit_price"] == 9.99
        assert product_line["subtotal"] == 19.98
        assert product_line["warehouse"]["name"] == "Main Office"
        assert service_line["unit_price"] == 85.0
        assert service_line["subtotal"] == 127.5

        response = client.patch(f'/api/quotes/{priced_quote["id"]}', headers=admin_a, json={
            "discount_type": "percentage", "discount_value": 10, "tax_rate": 10,
        })
        quote = response.json
        assert quote["subtotal"] == 147.48
        assert quote["discount_amount"] == 14.75
        assert quote["tax_amount"] == 13.27
        assert quote["total"] == 146.0

    def test_line_discount_never_negative(self, client, db_session, admin_a, quote_a):
        response = client.post(f'/api/quotes/{quote_a["id"]}/items', headers=admin_a, json={
            "item_type": "custom", "name": "Freight", "unit_price": 10,
            "discount_type": "fixed", "discount_value": 25,
        })
        assert response.status_code == 201
        assert response.json["subtotal"] == 0.0

    def test_product_quantity_must_be_whole(self, client, db_session, admin_a, quote_a, product_a):
        response = client.post(f'/api/quotes/{quote_a["id"]}/items', headers=admin_a, json={
            "item_type": "product", "product_id": product_a["id"], "quantity": 1.5,
        })
        assert response.status_code == 400
        assert response.json["error"] == "Product quantity must be a whole number"

    def test_item_validation(self, client, db_session, admin_a, quote_a):
        url = f'/api/quotes/{quote_a["id"]}/items'
        assert client.post(url, headers=admin_a, json={"item_type": "bundle"}).json["error"] == "Invalid item type"
        assert client.post(url, headers=admin_a, json={"item_type": "custom"}).json["error"] == "Item name is required"
        response = client.post(url, headers=admin_a, json={"item_type": "product"})
        assert response.json["error"] == "Product ID is required for product items"
        response = client.post(url, headers=admin_a, json={
            "item_type": "custom", "name": "Freight", "discount_type": "percentage", "discount_value": 150,
        })
        assert response.json["error"] == "Percentage discount cannot exceed 100"


class TestQuotePermissions:
    def test_member_cannot_edit_others_quote(self, client, db_session, member_a, quote_a):
        response = client.patch(f'/api/quotes/{quote_a["id"]}', headers=member_a, json={"notes": "hi"})
        assert response.status_code == 403
        response = client.post(f'/api/quotes/{quote_a["id"]}/items', headers=member_a, json={
            "item_type": "custom", "name": "Freight",
        })
        assert response.status_code == 403

    def test_assignee_can_edit(self, client, db_session, admin_a, member_a, quote_a):
        client.patch(f'/api/quotes/{quote_a["id"]}', headers=admin_a, json={"assignedToUserId": "user_member_a"})
        response = client.patch(f'/api/quotes/{quote_a["id"]}', headers=member_a, json={"notes": "hi"})
        assert response.status_code == 200
        assert response.json["notes"] == "hi"

    def test_member_can_comment(self, client, db_session, member_a, quote_a):
        response = client.post(f'/api/quotes/{quote_a["id"]}/comments', headers=member_a, json={"comment": " ok "})
        assert response.status_code == 201
        assert response.json["comment"] == "ok"
        assert response.json["is_internal"] is True

        response = client.post(f'/api/quotes/{quote_a["id"]}/comments', headers=member_a, json={"comment": ""})
        assert response.status_code == 400

    def test_only_admin_deletes(self, client, db_session, admin_a, member_a, quote_a):
        assert client.delete(f'/api/quotes/{quote_a["id"]}', headers=member_a).status_code == 403
        assert client.delete(f'/api/quotes/{quote_a["id"]}', headers=admin_a).status_code == 200
        assert client.get(f'/api/quotes/{quote_a["id"]}', headers=admin_a).status_code == 404

    def test_other_organization_404(self, client, db_session, admin_b, quote_a):
        assert client.get(f'/api/quotes/{quote_a["id"]}', headers=admin_b).status_code == 404


class TestSendQuote:
    def test_send_creates_link_and_reserves(self, client, db_session, admin_a, priced_quote, sent_token):
        quote = client.get(f'/api/quotes/{priced_quote["id"]}', headers=admin_a).json
        assert quote["status"] == "sent"
        assert quote["sent_at"] is not None
        assert {e["event_type"] for e in quote["events"]} >= {"created", "sent"}
        assert quote["items"][0]["reserved_quantity"] == 2
        assert _reserved(client, admin_a, quote["items"][0]["product_id"]) == 2

    def test_access_url(self, client, db_session, admin_a, priced_quote):
        body = client.post(f'/api/quotes/{priced_quote["id"]}/send', headers=admin_a).json
        assert body["access_url"] == f'https://app.test/quote/{body["token"]}'
        assert body["success"] is True

    def test_empty_quote_cannot_be_sent(self, client, db_session, admin_a, quote_a):
        response = client.post(f'/api/quotes/{quote_a["id"]}/send', headers=admin_a)
        assert response.status_code == 400
        assert response.json["error"] == "Cannot send a quote without items"

    def test_client_needs_email(self, client, db_session, admin_a):
        recipient = create_client_record(ORG_A, "No Email")
        quote = client.post('/api/quotes', headers=admin_a, json={"client_id": recipient["id"]}).json
        client.post(f'/api/quotes/{quote["id"]}/items', headers=admin_a, json={"item_type": "custom", "name": "Work"})
        response = client.post(f'/api/quotes/{quote["id"]}/send', headers=admin_a)
        assert response.status_code == 400
        assert response.json["error"] == "Client must have an email address"

    def test_back_to_draft_releases(self, client, db_session, admin_a, stocked_a, priced_quote, sent_token):
        client.patch(f'/api/quotes/{priced_quote["id"]}', headers=admin_a, json={"status": "draft"})
        assert _reserved(client, admin_a, stocked_a["id"]) == 0

        client.patch(f'/api/quotes/{priced_quote["id"]}', headers=admin_a, json={"status": "sent"})
        assert _reserved(client, admin_a, stocked_a["id"]) == 2

    def test_delete_open_quote_releases(self, client, db_session, admin_a, stocked_a, priced_quote, sent_token):
        client.delete(f'/api/quotes/{priced_quote["id"]}', headers=admin_a)
        assert _reserved(client, admin_a, stocked_a["id"]) == 0


class TestPublicQuote:
    def test_public_view_hides_internal(self, client, db_session, admin_a, priced_quote, sent_token):
        client.post(f'/api/quotes/{priced_quote["id"]}/comments', headers=admin_a, json={"comment": "margin is thin"})
        client.post(f'/api/quotes/{priced_quote["id"]}/comments', headers=admin_a, json={
            "comment": "Thanks for asking", "is_internal": False,
        })

        response = client.get(f'/api/public/quote/{sent_token}')
        assert response.status_code == 200
        body = response.json
        assert body["quote_number"] == priced_quote["quote_number"]
        assert "internal_notes" not in body
        assert body["organization"]["name"] == "Alpha Supplies"
        assert body["client"]["email"] == "buyer@acme.test"
        assert [i["type"] for i in body["items"]] == ["product", "service"]
        assert [c["comment"] for c in body["comments"]] == ["Thanks for asking"]

    def test_view_marks_viewed(self, client, db_session, admin_a, priced_quote, sent_token):
        assert client.post(f'/api/public/quote/{sent_token}/view').status_code == 200
        link = db_session.query(QuoteAccessToken).filter_by(token=sent_token).one()
        assert link.access_count == 1
        assert client.get(f'/api/quotes/{priced_quote["id"]}', headers=admin_a).json["status"] == "viewed"

    def test_approve(self, client, db_session, admin_a, stocked_a, priced_quote, sent_token):
        response = client.post(f'/api/public/quote/{sent_token}/approve', json={"comment": "Go ahead"})
        assert response.json == {"success": True, "message": "Quote approved successfully"}

        quote = client.get(f'/api/quotes/{priced_quote["id"]}', headers=admin_a).json
        assert quote["status"] == "approved"
        assert quote["comments"][0]["user_type"] == "client"
        assert quote["comments"][0]["user_name"] == "Acme Corp"
        # Approved quotes keep their stock held
        assert _reserved(client, admin_a, stocked_a["id"]) == 2

        response = client.post(f'/api/public/quote/{sent_token}/decline', json={"comment": "Changed my mind"})
        assert response.status_code == 400

    def test_decline_releases(self, client, db_session, admin_a, stocked_a, priced_quote, sent_token):
        response = client.post(f'/api/public/quote/{sent_token}/decline', json={})
        assert response.status_code == 400
        assert response.json["error"] == "A reason for declining is required"

        response = client.post(f'/api/public/quote/{sent_token}/decline', json={"reason": "Too expensive"})
        assert response.status_code == 200
        quote = client.get(f'/api/quotes/{priced_quote["id"]}', headers=admin_a).json
        assert quote["status"] == "declined"
        assert quote["comments"][0]["comment"] == "Declined: Too expensive"
        assert _reserved(client, admin_a, stocked_a["id"]) == 0

    def test_client_comment(self, client, db_session, admin_a, priced_quote, sent_token):
        response = client.post(f'/api/public/quote/{sent_token}/comment', json={"comment": "Can you do Friday?"})
        assert response.status_code == 200
        comments = client.get(f'/api/quotes/{priced_quote["id"]}/comments', headers=admin_a).json
        assert comments[0]["is_internal"] is False
        assert comments[0]["user_type"] == "client"

    def test_unknown_token(self, client, db_session):
        response = client.get('/api/public/quote/not-a-token')
        assert response.status_code == 404
        assert response.json["error"] == "Invalid or expired link"

    def test_expired_link(self, client, db_session, sent_token):
        db_session.query(QuoteAccessToken).update({"expires_at": utcnow() - timedelta(days=1)})
        db_session.commit()
        response = client.get(f'/api/public/quote/{sent_token}')
        assert response.status_code == 404
        assert response.json["error"] == "This link has expired"
