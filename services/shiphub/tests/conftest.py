import os

# Must be set before app modules build their engine
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.infrastructure.db import get_db
from app.domain.models import Base

REQUEST_PAYLOAD = {
    "userId": "user-1",
    "source": {"address": "1 Harbour Rd", "city": "Jeddah", "country": "SA"},
    "destination": {"address": "9 King St", "city": "Riyadh", "country": "SA"},
    "items": [
        {"name": "Box of books", "category": "Books", "dimensions": "40x30x20", "weight": "12", "quantity": 2}
    ],
    "sourcePickupMode": "Delegate",
    "destinationPickupMode": "Delegate",
    "deliveryType": "Normal",
}


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_request(client):
    """POST a new request and return its JSON body."""
    def _make(**overrides):
        resp = client.post("/requests/", json={**REQUEST_PAYLOAD, **overrides})
        assert resp.status_code == 201, resp.text
        return resp.json()["request"]
    return _make


@pytest.fixture
def open_request(client, make_request):
    """A request an admin has accepted, so companies can bid on it."""
    def _open(**overrides):
        request = make_request(**overrides)
        resp = client.put("/admin/orders", json={"requestId": request["id"], "requestStatus": "Accepted"})
        assert resp.status_code == 200, resp.text
        return resp.json()["request"]
    return _open


@pytest.fixture
def send_offer(client):
    def _send(request_id, company_id, cost, name="Fast Ship", comment=""):
        return client.post("/company/requests", json={
            "action": "add-offer",
            "requestId": request_id,
            "companyId": company_id,
            "company": {"name": name, "rate": "4.5"},
            "offer": {"cost": cost, "comment": comment},
        })
    return _send


@pytest.fixture
def request_payload():
    return {**REQUEST_PAYLOAD, "items": [dict(i) for i in REQUEST_PAYLOAD["items"]]}
