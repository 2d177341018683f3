"""
Pytest fixtures for Stockroom backend tests.

Provides the test app and database, provider-style session tokens for two
organizations, seeded catalog rows and a mock storage service.
"""

import json
import time
from decimal import Decimal

import httpx
import jwt
import pytest

from stockroom import create_app
from stockroom.config import TestConfig
from stockroom.extensions import db
from stockroom.services import (
    category_service,
    client_service,
    inventory_service,
    offering_service,
    products_service,
    storage_service,
    warehouse_service,
)

ORG_A = "org_alpha"
ORG_B = "org_beta"
ADMIN_A = "user_admin_a"
MEMBER_A = "user_member_a"
ADMIN_B = "user_admin_b"

WAREHOUSE_ADDRESS = {
    "address": "1 Main St",
    "city": "Springfield",
    "state_province": "IL",
    "postal_code": "62701",
    "country": "US",
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        app.extensions.pop("stockroom.storage", None)

        yield db.session

        # Cleanup after test
        db.session.rollback()


# ----------------------------------------------------------------------------
# Session tokens (minted the way the hosted provider would)
# ----------------------------------------------------------------------------

def make_token(
    user_id: str,
    org_id: str | None = None,
    role: str | None = None,
    *,
    expires_in: int = 3600,
    key: str = TestConfig.AUTH_JWT_KEY,
    **extra,
) -> str:
    now = int(time.time())
    payload = {"sub": user_id, "iat": now, "exp": now + expires_in, **extra}
    if org_id is not None:
        payload["o"] = {"id": org_id, "rol": role or "member"}
    return jwt.encode(payload, key, algorithm="HS256")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_a():
    return auth_headers(make_token(ADMIN_A, ORG_A, "org:admin", first_name="Ada", last_name="Admin"))


@pytest.fixture
def member_a():
    return auth_headers(make_token(MEMBER_A, ORG_A, "org:member", email="member@alpha.test"))


@pytest.fixture
def admin_b():
    return auth_headers(make_token(ADMIN_B, ORG_B, "org:admin", username="beta-admin"))


@pytest.fixture
def no_org():
    return auth_headers(make_token(ADMIN_A))


@pytest.fixture
def expired():
    return auth_headers(make_token(ADMIN_A, ORG_A, "org:admin", expires_in=-3600))


# ----------------------------------------------------------------------------
# Seeded rows (created through the services, committed)
# ----------------------------------------------------------------------------

def _actor(org_id: str, user_id: str) -> dict:
    return {"org_id": org_id, "user_id": user_id, "user_name": "Fixture"}


def create_warehouse(org_id: str, name: str, **overrides) -> dict:
    patch = {"name": name, "type": "office", "status": "active", "is_default": False, **WAREHOUSE_ADDRESS}
    patch.update(overrides)
    return warehouse_service.create_warehouse(**_actor(org_id, ADMIN_A), patch=patch)


def create_product(org_id: str, sku: str, **overrides) -> dict:
    patch = {"sku": sku, "name": f"Product {sku}", "status": "active"}
    patch.update(overrides)
    return products_service.create_product(**_actor(org_id, ADMIN_A), patch=patch)


def create_service(org_id: str, name: str, **overrides) -> dict:
    patch = {"name": name, "rate": Decimal("0.00"), "rate_type": "fixed", "status": "active"}
    patch.update(overrides)
    return offering_service.create_service(**_actor(org_id, ADMIN_A), patch=patch)


def create_client_record(org_id: str, name: str, **overrides) -> dict:
    patch = {"name": name, "tags": []}
    patch.update(overrides)
    return client_service.create_client(**_actor(org_id, ADMIN_A), patch=patch)


def stock(org_id: str, product_id: str, warehouse_id: str, quantity: int) -> dict:
    return inventory_service.adjust_inventory(
        **_actor(org_id, ADMIN_A),
        product_id=product_id,
        warehouse_id=warehouse_id,
        quantity_change=quantity,
        movement_type="receipt",
        reason="Fixture stock",
    )


@pytest.fixture
def warehouse_a(db_session):
    return create_warehouse(ORG_A, "Main Office", is_default=True)


@pytest.fixture
def warehouse_a2(db_session):
    return create_warehouse(ORG_A, "Service Van", type="vehicle")


@pytest.fixture
def warehouse_b(db_session):
    return create_warehouse(ORG_B, "Beta Office")


@pytest.fixture
def category_a(db_session):
    return category_service.create_category(**_actor(ORG_A, ADMIN_A), patch={"name": "Electronics"})


@pytest.fixture
def subcategory_a(db_session, category_a):
    return category_service.create_subcategory(
        **_actor(ORG_A, ADMIN_A), patch={"category_id": category_a["id"], "name": "Cables"},
    )


@pytest.fixture
def product_a(db_session):
    return create_product(
        ORG_A, "CBL-001",
        name="USB-C Cable",
        description="Braided cable, 1 meter",
        cost=Decimal("2.50"),
        price=Decimal("9.99"),
        low_stock_threshold=5,
    )


@pytest.fixture
def product_b(db_session):
    return create_product(ORG_B, "BETA-001", name="Beta Widget", price=Decimal("20.00"))


@pytest.fixture
def stocked_a(db_session, product_a, warehouse_a):
    """product_a with 20 units in warehouse_a."""
    stock(ORG_A, product_a["id"], warehouse_a["id"], 20)
    return product_a


@pytest.fixture
def client_a(db_session):
    return create_client_record(ORG_A, "Acme Corp", email="buyer@acme.test", company="Acme")


@pytest.fixture
def service_a(db_session):
    return create_service(ORG_A, "Installation", rate=Decimal("85.00"), rate_type="hourly", unit="hour")


# ----------------------------------------------------------------------------
# Storage service
# ----------------------------------------------------------------------------

class FakeStorage:
    """In-memory stand-in for the storage REST API, served through httpx.MockTransport."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self.fail_sign: set[str] = set()
        self.status_override: int | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_override is not None:
            return httpx.Response(self.status_override, json={"error": "unavailable"})

        path = request.url.path.split("/storage/v1", 1)[1]
        bucket_prefix = "/object/product-images"
        sign_prefix = "/object/sign/product-images/"
        list_prefix = "/object/list/product-images"

        if request.method == "POST" and path.startswith(sign_prefix):
            key = path[len(sign_prefix):]
            if key in self.fail_sign or key not in self.objects:
                return httpx.Response(400, json={"error": "not found"})
            return httpx.Response(200, json={"signedURL": f"/object/sign/product-images/{key}?token=t"})

        if request.method == "POST" and path == list_prefix:
            body = json.loads(request.content)
            wanted = body["prefix"].rstrip("/") + "/"
            # One level at a time: folders come back without an id
            entries, folders = [], set()
            for key in sorted(self.objects):
                if not key.startswith(wanted):
                    continue
                rest = key[len(wanted):]
                if "/" in rest:
                    folder = rest.split("/", 1)[0]
                    if folder not in folders:
                        folders.add(folder)
                        entries.append({"name": folder, "id": None})
                else:
                    entries.append({"name": rest, "id": f"obj-{len(entries)}"})
            return httpx.Response(200, json=entries)

        if request.method == "POST" and path.startswith(bucket_prefix + "/"):
            key = path[len(bucket_prefix) + 1:]
            self.objects[key] = request.content
            return httpx.Response(200, json={"Key": f"product-images/{key}"})

        if request.method == "DELETE" and path == bucket_prefix:
            body = json.loads(request.content)
            for key in body["prefixes"]:
                self.objects.pop(key, None)
            return httpx.Response(200, json=[])

        return httpx.Response(404, json={"error": "unknown route"})


@pytest.fixture
def fake_storage(app, db_session):
    fake = FakeStorage()
    app.extensions["stockroom.storage"] = storage_service.StorageClient(
        base_url=app.config["STORAGE_URL"],
        api_key=app.config["STORAGE_API_KEY"],
        bucket=app.config["STORAGE_BUCKET"],
        transport=httpx.MockTransport(fake.handler),
        retry_delay=0,
    )
    return fake
