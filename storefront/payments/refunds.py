"""
Remboursement total d'une commande payée, déclenché par un admin.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

import storefront.catalog.repository as catalog_repository
import storefront.orders.repository as orders_repository
from storefront.catalog.models import StockUpdate
from storefront.checkout.cart import to_minor_units
from storefront.errors import ConflictError, NotFoundError, StorefrontError
from storefront.orders.models import Order, PaymentStatus
from storefront.payments.gateway import Refund, StripeGateway

logger = logging.getLogger(__name__)


@dataclass
class RefundOutcome:
    order: Order
    refund: Refund
    stock_updates: List[StockUpdate] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order": self.order.to_owner_dict(),
            "refund": {"id": self.refund.id, "amount": self.refund.amount, "status": self.refund.status},
        }


def refund_idempotency_key(order_id: str) -> str:
    return f"refund-{order_id}"


# module storefront.payments.refunds
class RefundWorkflow:
    def __init__(self, gateway: StripeGateway, catalog=catalog_repository, orders=orders_repository):
        self.gateway = gateway
        self.catalog = catalog
        self.orders = orders

    def refund(self, order_id: str) -> RefundOutcome:
        """
        Rembourse intégralement une commande 'succeeded'.
        - 404 si la commande n'existe pas, 409 si déjà remboursée ou non payée
        - Stripe: remboursement de la dernière charge du PaymentIntent,
          clé d'idempotence dérivée de la commande
        - Statut succeeded -> refunded conditionnel: le stock n'est restitué
          que si cet appel réalise la transition (le webhook charge.refunded
          peut l'avoir déjà faite)
        """
        order = self.orders.get_order(order_id)
        if order is None:
            raise NotFoundError("Commande introuvable")
        if order.payment_status == PaymentStatus.REFUNDED:
            raise ConflictError("Commande déjà remboursée")
        if order.payment_status != PaymentStatus.SUCCEEDED:
            raise ConflictError("Seule une commande payée peut être remboursée")

        intent = self.gateway.retrieve_payment_intent(order.payment_intent_id)
        if not intent.latest_charge:
            raise ConflictError("Aucune charge Stripe à rembourser pour cette commande")

        refund = self.gateway.create_refund(
            charge_id=intent.latest_charge,
            amount=to_minor_units(order.total),
            idempotency_key=refund_idempotency_key(order.id),
        )
        logger.info("Remboursement Stripe créé order=%s refund=%s amount=%s", order.id, refund.id, refund.amount)

        updated = self.orders.transition_payment_status(order.id, (PaymentStatus.SUCCEEDED,), PaymentStatus.REFUNDED)
        if updated is None:
            current = self.orders.get_order(order.id) or order
            logger.info("Commande déjà passée en remboursée par ailleurs order=%s", order.id)
            return RefundOutcome(current, refund)

        deltas = order.quantities_by_product()
        try:
            updates = self.catalog.adjust_stock(deltas)
        except StorefrontError:
            # Le webhook charge.refunded rejouera la restitution sur une commande 'succeeded'
            self.orders.transition_payment_status(order.id, (PaymentStatus.REFUNDED,), PaymentStatus.SUCCEEDED)
            logger.exception("payments.refunds.refund stock restore failed order=%s", order.id)
            raise
        return RefundOutcome(updated, refund, updates)
