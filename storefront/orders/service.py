"""
Cas d'usage 'orders': consultation (client, admin) et suivi de livraison.
"""
import logging
from typing import List, Optional

from storefront.errors import ConflictError, NotFoundError, ValidationError
from storefront.orders import repository
from storefront.orders.models import FulfillmentStatus, FulfillmentUpdate, Order, PaymentStatus

logger = logging.getLogger(__name__)

# Livraison impossible tant que le paiement n'est pas confirmé
PAID_FULFILLMENT = {FulfillmentStatus.SHIPPED, FulfillmentStatus.DELIVERED}


# module storefront.orders.service
def get_order(order_id: str) -> Order:
    order = repository.get_order(order_id)
    if order is None:
        raise NotFoundError("Commande introuvable")
    return order


def list_user_orders(user_id: str) -> List[Order]:
    return repository.list_orders_by_user(user_id)


def list_admin_orders(limit: int = 100) -> List[Order]:
    return repository.list_orders(limit=limit)


def update_fulfillment(order_id: str, update: FulfillmentUpdate) -> Order:
    """
    Met à jour le statut de livraison d'une commande (admin).
    - shipped exige transporteur et numéro de suivi
    - shipped / delivered exigent un paiement réussi
    - le statut de paiement n'est jamais modifié ici
    - annuler une commande payée ne rembourse pas: un avertissement est
      journalisé et l'admin doit appeler /refund
    """
    order = get_order(order_id)
    data = {"fulfillment_status": update.status.value}

    if update.status == FulfillmentStatus.SHIPPED:
        carrier = (update.carrier or "").strip()
        tracking = (update.tracking_number or "").strip()
        if not carrier or not tracking:
            raise ValidationError("Transporteur et numéro de suivi requis pour une expédition")
        data["shipping_info"] = {"carrier": carrier, "tracking_number": tracking}

    if update.status in PAID_FULFILLMENT and order.payment_status != PaymentStatus.SUCCEEDED:
        raise ConflictError(
            f"Livraison impossible: paiement {order.payment_status.value}"
        )

    updated: Optional[Order] = repository.update_order(order.id, data)
    if updated is None:
        raise NotFoundError("Commande introuvable")
    logger.info("Livraison mise à jour order=%s status=%s", order.id, update.status.value)
    if updated.needs_refund():
        logger.warning("Commande payée annulée sans remboursement order=%s total=%s", order.id, updated.total)
    return updated
