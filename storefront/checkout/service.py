"""
Cas d'usage 'checkout': orchestre catalogue, panier, Stripe et commandes.

Le stock n'est PAS réservé ici: il est décrémenté à la réception du
webhook payment_intent.succeeded (voir storefront.payments.reconciler).
"""
import logging
from typing import Callable, Dict, List, Optional

import storefront.catalog.repository as catalog_repository
import storefront.orders.repository as orders_repository
from storefront.auth.service import resolve_identity
from storefront.checkout import cart
from storefront.checkout.models import CheckoutRequest, CheckoutResult
from storefront.config import STRIPE_CURRENCY
from storefront.errors import ConflictError, NotFoundError, ValidationError
from storefront.orders.models import FulfillmentStatus, OrderItem, PaymentStatus
from storefront.payments.gateway import StripeGateway

logger = logging.getLogger(__name__)


# module storefront.checkout.service
class CheckoutService:
    def __init__(
        self,
        gateway: StripeGateway,
        catalog=catalog_repository,
        orders=orders_repository,
        identity_resolver: Callable[[Optional[str]], Optional[str]] = resolve_identity,
        currency: str = STRIPE_CURRENCY,
    ):
        self.gateway = gateway
        self.catalog = catalog
        self.orders = orders
        self.identity_resolver = identity_resolver
        self.currency = currency

    def checkout(self, request: CheckoutRequest, credential: Optional[str] = None) -> CheckoutResult:
        """
        Transforme un panier en commande en attente + PaymentIntent.
        Étapes:
          1) validation (panier non vide, email, quantités)
          2) relecture des produits: existence, actif, stock suffisant
          3) totaux calculés côté serveur (les prix du client sont ignorés)
          4) PaymentIntent Stripe
          5) identité optionnelle (checkout invité si absente/invalide)
          6) persistance de la commande pending/pending
        Aucune commande n'est écrite si une étape échoue.
        """
        if not request.items:
            raise ValidationError("Panier vide")
        email = (request.email or "").strip().lower()
        if not email:
            raise ValidationError("Email requis")

        quantities = cart.aggregate_quantities(request.items)
        items = self._build_items(quantities)
        subtotal, shipping, total = cart.compute_totals(items)

        intent = self.gateway.create_payment_intent(
            amount=cart.to_minor_units(total),
            currency=self.currency,
            metadata=cart.make_metadata(email, len(items)),
            receipt_email=email,
        )

        user_id = self.identity_resolver(credential) if credential else None

        order = self.orders.create_order({
            "user_id": user_id,
            "email": email,
            "items": [item.model_dump(mode="json") for item in items],
            "subtotal": float(subtotal),
            "shipping": float(shipping),
            "total": float(total),
            "payment_status": PaymentStatus.PENDING.value,
            "fulfillment_status": FulfillmentStatus.PENDING.value,
            "payment_intent_id": intent.id,
            "client_secret": intent.client_secret,
            "shipping_address": (
                request.shipping_address.model_dump(mode="json") if request.shipping_address else None
            ),
        })
        logger.info(
            "Commande créée id=%s payment_intent=%s total=%s invite=%s",
            order.id, intent.id, total, user_id is None,
        )
        return CheckoutResult(client_secret=intent.client_secret or "", order_id=order.id, total=total)

    def _build_items(self, quantities: Dict[str, int]) -> List[OrderItem]:
        items: List[OrderItem] = []
        for product_id, qty in quantities.items():
            product = self.catalog.get_product(product_id)
            if product is None:
                raise NotFoundError(f"Produit introuvable: {product_id}")
            if not product.is_active:
                raise ConflictError(f"Produit indisponible: {product.name}")
            if product.stock_qty < qty:
                raise ConflictError(
                    f"Stock insuffisant pour {product.name} (disponible: {product.stock_qty})"
                )
            items.append(OrderItem(
                product_id=product.id,
                name=product.name,
                price=product.price,
                quantity=qty,
                image_url=product.primary_image,
            ))
        return items
