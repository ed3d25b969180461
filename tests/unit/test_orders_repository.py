import pytest
from unittest.mock import MagicMock

from postgrest.exceptions import APIError

import storefront.orders.repository as repo
from storefront.errors import StorageError
from storefront.orders.models import FulfillmentStatus, PaymentStatus

pytestmark = pytest.mark.repository


class _Resp:
    def __init__(self, data=None):
        self.data = data


def _row(**fields):
    row = {
        "id": "o1",
        "email": "buyer@example.com",
        "items": [{"product_id": "p1", "name": "Mug", "price": 25.5, "quantity": 1}],
        "subtotal": 25.5,
        "shipping": 0,
        "total": 25.5,
        "payment_status": "pending",
        "fulfillment_status": "pending",
        "payment_intent_id": "pi_1",
    }
    row.update(fields)
    return row


def _mk_client(data=None):
    client = MagicMock()
    query = MagicMock()
    client.table.return_value = query
    for method in ("select", "insert", "update", "eq", "in_", "order", "limit"):
        getattr(query, method).return_value = query
    query.execute.return_value = _Resp(data)
    return client, query


def test_transition_filters_on_expected_statuses(monkeypatch):
    client, query = _mk_client([_row(payment_status="succeeded")])
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)

    order = repo.transition_payment_status(
        "o1", (PaymentStatus.PENDING, PaymentStatus.FAILED), PaymentStatus.SUCCEEDED
    )

    assert order.payment_status == PaymentStatus.SUCCEEDED
    query.update.assert_called_once_with({"payment_status": "succeeded"})
    query.eq.assert_called_once_with("id", "o1")
    query.in_.assert_called_once_with("payment_status", ["pending", "failed"])


def test_transition_returns_none_when_no_row_matches(monkeypatch):
    client, query = _mk_client([])
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    assert repo.transition_payment_status("o1", (PaymentStatus.SUCCEEDED,), PaymentStatus.REFUNDED) is None


def test_transition_carries_extra_fields(monkeypatch):
    client, query = _mk_client([_row(payment_status="failed", fulfillment_status="cancelled")])
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)

    order = repo.transition_payment_status(
        "o1", (PaymentStatus.PENDING,), PaymentStatus.FAILED,
        extra={"fulfillment_status": FulfillmentStatus.CANCELLED.value},
    )

    assert order.fulfillment_status == FulfillmentStatus.CANCELLED
    query.update.assert_called_once_with({"fulfillment_status": "cancelled", "payment_status": "failed"})


def test_transition_storage_failure(monkeypatch):
    client, query = _mk_client()
    query.execute.side_effect = Exception("boom")
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    with pytest.raises(StorageError):
        repo.transition_payment_status("o1", (PaymentStatus.PENDING,), PaymentStatus.FAILED)


def test_get_order_malformed_id_is_not_found(monkeypatch):
    client, query = _mk_client()
    query.execute.side_effect = APIError({"code": "22P02", "message": "invalid input syntax for type uuid"})
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    assert repo.get_order("not-a-uuid") is None


def test_get_order_other_error_raises(monkeypatch):
    client, query = _mk_client()
    query.execute.side_effect = APIError({"code": "57014", "message": "statement timeout"})
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    with pytest.raises(StorageError):
        repo.get_order("o1")


def test_get_order_by_payment_intent(monkeypatch):
    client, query = _mk_client([_row()])
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    order = repo.get_order_by_payment_intent("pi_1")
    assert order.id == "o1"
    query.eq.assert_called_once_with("payment_intent_id", "pi_1")
    assert repo.get_order_by_payment_intent("") is None


def test_list_orders_by_user_newest_first(monkeypatch):
    client, query = _mk_client([_row(id="o2"), _row(id="o1")])
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    assert [o.id for o in repo.list_orders_by_user("u1")] == ["o2", "o1"]
    query.order.assert_called_once_with("created_at", desc=True)
    assert repo.list_orders_by_user("") == []


def test_create_order_without_returned_row(monkeypatch):
    client, query = _mk_client([])
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    with pytest.raises(StorageError):
        repo.create_order(_row())
