"""
Réconciliation des événements Stripe avec les commandes et le stock.

Garanties:
- un même événement (event.id) n'applique ses effets qu'une fois (journal payment_events)
- chaque transition de statut est conditionnelle: seul l'appelant qui la
  réalise applique les deltas de stock
- un échec interne libère l'événement et remonte l'erreur (Stripe relivrera)
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import storefront.catalog.repository as catalog_repository
import storefront.orders.repository as orders_repository
import storefront.payments.repository as events_repository
from storefront.catalog.models import StockUpdate
from storefront.errors import StorefrontError
from storefront.orders.models import FulfillmentStatus, Order, PaymentStatus

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
PAYMENT_CANCELED = "payment_intent.canceled"
CHARGE_REFUNDED = "charge.refunded"

# Actions renvoyées à Stripe dans l'accusé de réception
APPLIED = "applied"
DUPLICATE = "duplicate"
IGNORED = "ignored"
ORDER_NOT_FOUND = "order_not_found"
NOOP = "noop"


@dataclass
class ReconciliationResult:
    event_id: Optional[str]
    event_type: str
    action: str
    order_id: Optional[str] = None
    stock_updates: List[StockUpdate] = field(default_factory=list)


def _payment_intent_id(event_type: str, obj: Dict[str, Any]) -> Optional[str]:
    if event_type == CHARGE_REFUNDED:
        pi = obj.get("payment_intent")
        if isinstance(pi, dict):
            pi = pi.get("id")
        return pi or None
    return obj.get("id") or None


def _is_partial_refund(charge: Dict[str, Any]) -> bool:
    if charge.get("refunded") is True:
        return False
    try:
        amount = int(charge.get("amount") or 0)
        refunded = int(charge.get("amount_refunded") or 0)
    except (TypeError, ValueError):
        return False
    return refunded < amount


# module storefront.payments.reconciler
class PaymentEventReconciler:
    def __init__(self, catalog=catalog_repository, orders=orders_repository, events=events_repository):
        self.catalog = catalog
        self.orders = orders
        self.events = events
        self._handlers: Dict[str, Callable[..., ReconciliationResult]] = {
            PAYMENT_SUCCEEDED: self._on_succeeded,
            PAYMENT_FAILED: self._on_failed,
            PAYMENT_CANCELED: self._on_canceled,
            CHARGE_REFUNDED: self._on_refunded,
        }

    def reconcile(self, event: Dict[str, Any]) -> ReconciliationResult:
        """
        Applique un événement Stripe déjà authentifié.
        - Types non gérés: ignorés (action "ignored")
        - Événement déjà traité: action "duplicate", aucun effet
        - Commande inconnue: journalisé en erreur, action "order_not_found"
        Lève l'erreur d'origine si la persistance échoue.
        """
        event_type = str(event.get("type") or "")
        event_id = event.get("id")
        obj = (event.get("data") or {}).get("object") or {}

        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info("Événement Stripe ignoré type=%s id=%s", event_type, event_id)
            return ReconciliationResult(event_id, event_type, IGNORED)

        intent_id = _payment_intent_id(event_type, obj)
        if event_id and not self.events.claim_event(event_id, event_type, intent_id):
            logger.info("Événement Stripe déjà traité id=%s type=%s", event_id, event_type)
            return ReconciliationResult(event_id, event_type, DUPLICATE)

        try:
            result = handler(event_id, event_type, intent_id, obj)
        except Exception:
            logger.exception(
                "payments.reconciler.reconcile failed event=%s type=%s payment_intent=%s",
                event_id, event_type, intent_id,
            )
            if event_id:
                self.events.release_event(event_id)
            raise
        logger.info(
            "Événement Stripe traité id=%s type=%s action=%s order=%s",
            event_id, event_type, result.action, result.order_id,
        )
        return result

    def _find_order(self, event_id: Optional[str], event_type: str, intent_id: Optional[str]) -> Optional[Order]:
        order = self.orders.get_order_by_payment_intent(intent_id) if intent_id else None
        if order is None:
            logger.error(
                "Aucune commande pour l'événement Stripe id=%s type=%s payment_intent=%s",
                event_id, event_type, intent_id,
            )
        return order

    def _apply_stock(self, order: Order, sign: int, applied: PaymentStatus, previous: PaymentStatus) -> List[StockUpdate]:
        """
        Ajuste le stock des lignes de la commande (sign=-1 vente, +1 restitution).
        Si l'ajustement échoue, la transition de statut est annulée pour que
        la relivraison de l'événement puisse la rejouer.
        """
        deltas = {pid: sign * qty for pid, qty in order.quantities_by_product().items()}
        try:
            return self.catalog.adjust_stock(deltas)
        except StorefrontError:
            reverted = self.orders.transition_payment_status(order.id, (applied,), previous)
            if reverted is None:
                logger.error(
                    "Annulation de transition impossible order=%s %s->%s", order.id, applied.value, previous.value
                )
            raise

    def _on_succeeded(self, event_id, event_type, intent_id, obj) -> ReconciliationResult:
        order = self._find_order(event_id, event_type, intent_id)
        if order is None:
            return ReconciliationResult(event_id, event_type, ORDER_NOT_FOUND)
        updated = self.orders.transition_payment_status(
            order.id, (PaymentStatus.PENDING, PaymentStatus.FAILED), PaymentStatus.SUCCEEDED
        )
        if updated is None:
            logger.info("Paiement déjà réconcilié order=%s status=%s", order.id, order.payment_status.value)
            return ReconciliationResult(event_id, event_type, NOOP, order.id)
        updates = self._apply_stock(updated, -1, PaymentStatus.SUCCEEDED, order.payment_status)
        return ReconciliationResult(event_id, event_type, APPLIED, order.id, updates)

    def _on_failed(self, event_id, event_type, intent_id, obj) -> ReconciliationResult:
        order = self._find_order(event_id, event_type, intent_id)
        if order is None:
            return ReconciliationResult(event_id, event_type, ORDER_NOT_FOUND)
        updated = self.orders.transition_payment_status(order.id, (PaymentStatus.PENDING,), PaymentStatus.FAILED)
        action = APPLIED if updated is not None else NOOP
        return ReconciliationResult(event_id, event_type, action, order.id)

    def _on_canceled(self, event_id, event_type, intent_id, obj) -> ReconciliationResult:
        order = self._find_order(event_id, event_type, intent_id)
        if order is None:
            return ReconciliationResult(event_id, event_type, ORDER_NOT_FOUND)
        updated = self.orders.transition_payment_status(
            order.id,
            (PaymentStatus.PENDING, PaymentStatus.FAILED),
            PaymentStatus.FAILED,
            extra={"fulfillment_status": FulfillmentStatus.CANCELLED.value},
        )
        action = APPLIED if updated is not None else NOOP
        return ReconciliationResult(event_id, event_type, action, order.id)

    def _on_refunded(self, event_id, event_type, intent_id, obj) -> ReconciliationResult:
        if _is_partial_refund(obj):
            logger.info(
                "Remboursement partiel ignoré payment_intent=%s amount_refunded=%s",
                intent_id, obj.get("amount_refunded"),
            )
            return ReconciliationResult(event_id, event_type, IGNORED)
        order = self._find_order(event_id, event_type, intent_id)
        if order is None:
            return ReconciliationResult(event_id, event_type, ORDER_NOT_FOUND)
        updated = self.orders.transition_payment_status(order.id, (PaymentStatus.SUCCEEDED,), PaymentStatus.REFUNDED)
        if updated is None:
            # déjà remboursée (workflow admin ou relivraison): stock déjà restitué
            return ReconciliationResult(event_id, event_type, NOOP, order.id)
        updates = self._apply_stock(updated, 1, PaymentStatus.REFUNDED, PaymentStatus.SUCCEEDED)
        return ReconciliationResult(event_id, event_type, APPLIED, order.id, updates)
