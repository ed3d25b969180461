import json
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Generator, List, Optional
from unittest.mock import MagicMock

import pytest

# Avant tout import de l'app: pas de Redis pendant les tests
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

from fastapi.testclient import TestClient

from storefront.app import create_app
from storefront.catalog.models import Product, StockUpdate
from storefront.errors import SignatureVerificationError, StorageError
from storefront.orders.models import Order, PaymentStatus
from storefront.payments.gateway import PaymentIntent, Refund
from storefront.realtime.broadcaster import StockBroadcaster
from storefront.tags.models import Tag
from storefront.utils.security import require_admin, require_user

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


class InMemoryStore:
    """
    Remplace les repositories catalog / orders / payments / tags par des dicts.
    Mêmes signatures et mêmes sémantiques (transition conditionnelle,
    stock borné à zéro, unicité des événements).
    """

    def __init__(self):
        self.products: Dict[str, Product] = {}
        self.orders: Dict[str, Order] = {}
        self.events: Dict[str, Dict[str, Any]] = {}
        self.tags: Dict[str, Tag] = {}
        self.stock_calls: List[Dict[str, int]] = []
        self.fail_stock = False
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _now(self) -> datetime:
        self._clock += timedelta(minutes=1)
        return self._clock

    # --- helpers de test ---

    def add_product(self, **fields) -> Product:
        data: Dict[str, Any] = {
            "id": f"prod-{len(self.products) + 1}",
            "name": "Produit",
            "description": "Description",
            "price": Decimal("10.00"),
            "stock_qty": 5,
            "is_active": True,
            "created_at": self._now(),
        }
        data.update(fields)
        product = Product.model_validate(data)
        self.products[product.id] = product
        return product

    def add_order(self, items: List[Dict[str, Any]], **fields) -> Order:
        subtotal = sum(Decimal(str(i["price"])) * i["quantity"] for i in items)
        data: Dict[str, Any] = {
            "email": "buyer@example.com",
            "items": items,
            "subtotal": subtotal,
            "shipping": Decimal("0"),
            "total": subtotal,
            "payment_intent_id": f"pi_{len(self.orders) + 1}",
            "client_secret": "secret",
        }
        data.update(fields)
        return self.create_order(data)

    def stock(self, product_id: str) -> int:
        return self.products[product_id].stock_qty

    # --- catalog ---

    def get_product(self, product_id):
        return self.products.get(product_id)

    def get_active_product(self, product_id):
        product = self.products.get(product_id)
        return product if product and product.is_active else None

    def list_active_products(self):
        return [p for p in self.list_all_products() if p.is_active]

    def list_all_products(self):
        return sorted(self.products.values(), key=lambda p: p.created_at, reverse=True)

    def create_product(self, data, max_attempts=5):
        return self.add_product(**{"sku": "ABCD1234", **data})

    def update_product(self, product_id, data):
        product = self.products.get(product_id)
        if product is None:
            return None
        product = product.model_copy(update=data)
        self.products[product_id] = product
        return product

    def set_active(self, product_id, is_active):
        return self.update_product(product_id, {"is_active": is_active})

    def adjust_stock(self, deltas):
        self.stock_calls.append(dict(deltas))
        if self.fail_stock:
            raise StorageError("Ajustement du stock impossible")
        updates = []
        for product_id, delta in deltas.items():
            product = self.products.get(product_id)
            if product is None:
                continue
            qty = max(product.stock_qty + delta, 0)
            self.products[product_id] = product.model_copy(update={"stock_qty": qty})
            updates.append(StockUpdate(product_id=product_id, stock_qty=qty))
        return updates

    # --- orders ---

    def _replace(self, order: Order, data: Dict[str, Any]) -> Order:
        updated = Order.model_validate({**order.model_dump(), **data})
        self.orders[order.id] = updated
        return updated

    def create_order(self, data):
        order = Order.model_validate({"id": f"order-{len(self.orders) + 1}", "created_at": self._now(), **data})
        self.orders[order.id] = order
        return order

    def get_order(self, order_id):
        return self.orders.get(order_id)

    def get_order_by_payment_intent(self, payment_intent_id):
        return next((o for o in self.orders.values() if o.payment_intent_id == payment_intent_id), None)

    def list_orders_by_user(self, user_id, limit=100):
        mine = [o for o in self.orders.values() if o.user_id == user_id]
        return sorted(mine, key=lambda o: o.created_at, reverse=True)[:limit]

    def list_orders(self, limit=100):
        return sorted(self.orders.values(), key=lambda o: o.created_at, reverse=True)[:limit]

    def update_order(self, order_id, data):
        order = self.orders.get(order_id)
        return self._replace(order, data) if order else None

    def transition_payment_status(self, order_id, from_statuses, to_status, extra=None):
        order = self.orders.get(order_id)
        if order is None or order.payment_status not in [PaymentStatus(s) for s in from_statuses]:
            return None
        return self._replace(order, {**(extra or {}), "payment_status": PaymentStatus(to_status)})

    # --- tags ---

    def list_tags(self):
        return sorted(self.tags.values(), key=lambda t: t.name)

    def create_tag(self, name):
        if any(t.name.lower() == name.lower() for t in self.tags.values()):
            return None
        tag = Tag(id=f"tag-{len(self.tags) + 1}", name=name, created_at=self._now())
        self.tags[tag.id] = tag
        return tag

    def delete_tag(self, tag_id):
        return self.tags.pop(tag_id, None) is not None

    # --- payment_events ---

    def claim_event(self, event_id, event_type, payment_intent_id=None):
        if event_id in self.events:
            return False
        self.events[event_id] = {"event_type": event_type, "payment_intent_id": payment_intent_id}
        return True

    def release_event(self, event_id):
        self.events.pop(event_id, None)
        return True


class FakeGateway:
    """Passerelle Stripe en mémoire; signature acceptée si 'valid'."""

    configured = True

    def __init__(self):
        self.intents: List[Dict[str, Any]] = []
        self.refunds: List[Dict[str, Any]] = []
        self.latest_charge: Optional[str] = "ch_test"
        self.error: Optional[Exception] = None

    def create_payment_intent(self, *, amount, currency, metadata, receipt_email=None):
        if self.error:
            raise self.error
        n = len(self.intents) + 1
        self.intents.append({
            "amount": amount, "currency": currency, "metadata": metadata, "receipt_email": receipt_email,
        })
        return PaymentIntent(id=f"pi_test_{n}", client_secret=f"pi_test_{n}_secret", status="requires_payment_method", amount=amount)

    def retrieve_payment_intent(self, intent_id):
        return PaymentIntent(id=intent_id, client_secret=None, status="succeeded", amount=0, latest_charge=self.latest_charge)

    def create_refund(self, *, charge_id, amount, idempotency_key=None):
        if self.error:
            raise self.error
        self.refunds.append({"charge_id": charge_id, "amount": amount, "idempotency_key": idempotency_key})
        return Refund(id=f"re_{len(self.refunds)}", amount=amount, status="succeeded")

    def construct_event(self, payload, signature):
        if signature != "valid":
            raise SignatureVerificationError("Signature webhook invalide")
        return json.loads(payload)


class RecordingBroadcaster(StockBroadcaster):
    def __init__(self):
        super().__init__()
        self.sent: List[List[StockUpdate]] = []

    async def broadcast(self, updates):
        self.sent.append(list(updates))
        return 0


@pytest.fixture
def make_event():
    """Fabrique un événement Stripe {id, type, data.object}."""
    def _make(event_type: str, obj: Dict[str, Any], event_id: str = "evt_1") -> Dict[str, Any]:
        return {"id": event_id, "type": event_type, "data": {"object": obj}}
    return _make


@pytest.fixture(autouse=True)
def store(request, monkeypatch) -> InMemoryStore:
    """
    Aucun test n'atteint Supabase: repositories branchés sur un store mémoire.
    Les tests marqués 'repository' gardent le code réel des repositories
    et ne voient qu'un client Supabase simulé (MagicMock).
    """
    monkeypatch.setattr("storefront.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: MagicMock())

    s = InMemoryStore()
    if request.node.get_closest_marker("repository"):
        return s
    for name in (
        "get_product", "get_active_product", "list_active_products", "list_all_products",
        "create_product", "update_product", "set_active", "adjust_stock",
    ):
        monkeypatch.setattr(f"storefront.catalog.repository.{name}", getattr(s, name))
    for name in (
        "create_order", "get_order", "get_order_by_payment_intent", "list_orders_by_user",
        "list_orders", "update_order", "transition_payment_status",
    ):
        monkeypatch.setattr(f"storefront.orders.repository.{name}", getattr(s, name))
    for name in ("claim_event", "release_event"):
        monkeypatch.setattr(f"storefront.payments.repository.{name}", getattr(s, name))
    for name in ("list_tags", "create_tag", "delete_tag"):
        monkeypatch.setattr(f"storefront.tags.repository.{name}", getattr(s, name))
    return s


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def app(gateway, broadcaster):
    return create_app(payment_gateway=gateway, stock_broadcaster=broadcaster)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture
def as_user(app):
    fake_user: Dict[str, Any] = {
        "id": "test-user",
        "email": "test@example.com",
        "role": "user",
        "metadata": {"full_name": "Test User"},
        "token": "fake-token",
    }
    app.dependency_overrides[require_user] = lambda: fake_user
    yield fake_user
    app.dependency_overrides.pop(require_user, None)


@pytest.fixture
def as_admin(app):
    admin_user = {"id": "admin-user-id", "role": "admin", "email": "admin@example.com", "metadata": {}}
    app.dependency_overrides[require_admin] = lambda: admin_user
    yield admin_user
    app.dependency_overrides.pop(require_admin, None)
