import pytest
from fastapi.testclient import TestClient

from boxoffice.dependencies import get_store
from boxoffice.main import app
from boxoffice.repositories.memory import InMemoryStore
from boxoffice.seed import seed_store

ADMIN = {"X-User-Id": "admin001"}


@pytest.fixture(autouse=True)
def store():
    """Fresh seeded in-memory store for every test"""
    store = InMemoryStore()
    seed_store(store)
    app.dependency_overrides[get_store] = lambda: store
    yield store
    app.dependency_overrides.clear()


@pytest.fixture
def basketball(store):
    """The seeded Basketball vs Citadel event"""
    return next(e for e in store.list_events() if e.name == "Cougar Basketball vs Citadel")


@pytest.fixture
def jazz_night():
    """Three-seat event created through the admin API"""
    client = TestClient(app)
    response = client.post(
        "/admin/events",
        headers=ADMIN,
        json={
            "name": "Jazz Night",
            "venue": "Recital Hall",
            "date": "2025-12-12",
            "time": "20:00",
            "capacity": 3,
            "layout": {"seatPrices": [30, 20, 12]},
        },
    )
    assert response.status_code == 201
    return response.json()
