from datetime import datetime, timezone

import pytest

from app.models.user_model import Actor
from app.services.moderation import ModerationEngine
from app.services.notifications import NotificationDispatcher
from app.services.products import ProductService
from tests.fakes import FakePushSink, InMemoryStore


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def push_sink():
    return FakePushSink()


@pytest.fixture
def dispatcher(store, push_sink):
    return NotificationDispatcher(store, push_sink, type_id=2)


@pytest.fixture
def engine(store, dispatcher):
    return ModerationEngine(store, dispatcher, auto_suspend_threshold=5, auto_escalate=True)


@pytest.fixture
def product_service(store):
    return ProductService(store)


@pytest.fixture
def make_user(store):
    def _make_user(*roles, name="user"):
        record = store.create("users", {"email": f"{name}@example.com", "name": name, "roles": list(roles)})
        return Actor(id=record["id"], roles=frozenset(roles))

    return _make_user


@pytest.fixture
def seller(make_user):
    return make_user("User", name="seller")


@pytest.fixture
def admin(make_user):
    return make_user("Administrator", name="admin")


@pytest.fixture
def moderator(make_user):
    return make_user("Moderator", name="moderator")


@pytest.fixture
def make_product(store, seller):
    def _make_product(**overrides):
        fields = {
            "seller_id": seller.id,
            "title": "Vintage bike",
            "description": "Steel frame, new tyres",
            "price": 120.0,
            "category_id": "bikes",
            "location": "Lima",
            "location_coords": {"latitude": -12.04, "longitude": -77.03},
            "images": [],
            "status": "active",
            "moderation_status": "active",
            "created_at": datetime.now(timezone.utc),
        }
        fields.update(overrides)
        return store.create("products", fields)

    return _make_product


@pytest.fixture
def product(make_product):
    return make_product()

