"""
Accès aux données pour les commandes (table 'orders').

Toutes les opérations passent par le client service-role: les commandes
sont créées et modifiées côté serveur uniquement (checkout, webhook, admin).
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from postgrest.exceptions import APIError

import storefront.infra.supabase_client as supabase_client
from storefront.errors import StorageError
from storefront.orders.models import Order, PaymentStatus

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"
PG_INVALID_TEXT = "22P02"


def _rows(res) -> List[dict]:
    data = getattr(res, "data", None)
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return [data]
    return []


def _first_order(res) -> Optional[Order]:
    rows = _rows(res)
    return Order.model_validate(rows[0]) if rows else None


# module storefront.orders.repository
def create_order(data: Dict[str, Any]) -> Order:
    """
    Insère une commande et retourne la ligne créée.
    - data doit être sérialisable JSON (montants en float, dates en ISO).
    - payment_intent_id est unique côté base.
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .insert(data)
            .execute()
        )
    except Exception as e:
        logger.exception(
            "orders.repository.create_order failed payment_intent_id=%s", data.get("payment_intent_id")
        )
        raise StorageError("Enregistrement de la commande impossible") from e
    order = _first_order(res)
    if order is None:
        raise StorageError("Enregistrement de la commande impossible")
    return order


def get_order(order_id: str) -> Optional[Order]:
    if not order_id:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .select("*")
            .eq("id", order_id)
            .limit(1)
            .execute()
        )
    except APIError as e:
        if getattr(e, "code", None) == PG_INVALID_TEXT:
            return None
        logger.exception("orders.repository.get_order failed id=%s", order_id)
        raise StorageError("Lecture de la commande impossible") from e
    return _first_order(res)


def get_order_by_payment_intent(payment_intent_id: str) -> Optional[Order]:
    """Clé de réconciliation des webhooks Stripe."""
    if not payment_intent_id:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .select("*")
            .eq("payment_intent_id", payment_intent_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.exception(
            "orders.repository.get_order_by_payment_intent failed payment_intent_id=%s", payment_intent_id
        )
        raise StorageError("Lecture de la commande impossible") from e
    return _first_order(res)


def list_orders_by_user(user_id: str, limit: int = 100) -> List[Order]:
    """Commandes d'un utilisateur, les plus récentes d'abord."""
    if not user_id:
        return []
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
    except Exception as e:
        logger.exception("orders.repository.list_orders_by_user failed user_id=%s", user_id)
        raise StorageError("Lecture des commandes impossible") from e
    return [Order.model_validate(r) for r in _rows(res)]


def list_orders(limit: int = 100) -> List[Order]:
    """Toutes les commandes pour l'admin, les plus récentes d'abord."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .select("*")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
    except Exception as e:
        logger.exception("orders.repository.list_orders failed")
        raise StorageError("Lecture des commandes impossible") from e
    return [Order.model_validate(r) for r in _rows(res)]


def update_order(order_id: str, data: Dict[str, Any]) -> Optional[Order]:
    """Mise à jour libre par id (statut de livraison, infos transporteur)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .update(data)
            .eq("id", order_id)
            .execute()
        )
    except Exception as e:
        logger.exception("orders.repository.update_order failed id=%s data=%s", order_id, data)
        raise StorageError("Mise à jour de la commande impossible") from e
    return _first_order(res)


def transition_payment_status(
    order_id: str,
    from_statuses: Iterable[PaymentStatus],
    to_status: PaymentStatus,
    extra: Optional[Dict[str, Any]] = None,
) -> Optional[Order]:
    """
    Transition conditionnelle (compare-and-set) du statut de paiement:
    UPDATE ... WHERE id = :id AND payment_status IN (:from_statuses).
    - Retourne la commande mise à jour, ou None si elle n'était plus dans
      un des statuts attendus (événement rejoué, remboursement concurrent...).
    - Seul l'appelant qui obtient la commande applique les effets de stock.
    """
    allowed = [PaymentStatus(s).value for s in from_statuses]
    payload: Dict[str, Any] = dict(extra or {})
    payload["payment_status"] = PaymentStatus(to_status).value
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .update(payload)
            .eq("id", order_id)
            .in_("payment_status", allowed)
            .execute()
        )
    except Exception as e:
        logger.exception(
            "orders.repository.transition_payment_status failed id=%s from=%s to=%s",
            order_id, allowed, payload["payment_status"],
        )
        raise StorageError("Mise à jour du paiement impossible") from e
    return _first_order(res)
