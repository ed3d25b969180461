"""
Logique panier pure (pas de Stripe, pas de DB).
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Iterable, List, Tuple

from storefront.checkout.models import CartLine
from storefront.config import SHIPPING_FLAT_FEE
from storefront.errors import ValidationError
from storefront.orders.models import OrderItem

CENT = Decimal("0.01")


# module storefront.checkout.cart
def aggregate_quantities(lines: Iterable[CartLine]) -> Dict[str, int]:
    """
    Agrège un panier [{product_id, quantity}, ...] en {product_id: quantité totale}.
    - Une quantité < 1 ou un product_id vide rend tout le panier invalide.
    - L'ordre de première apparition est conservé.
    """
    quantities: Dict[str, int] = {}
    for line in lines:
        product_id = (line.product_id or "").strip()
        if not product_id:
            raise ValidationError("Article sans identifiant produit")
        if line.quantity < 1:
            raise ValidationError(f"Quantité invalide pour le produit {product_id}")
        quantities[product_id] = quantities.get(product_id, 0) + line.quantity
    if not quantities:
        raise ValidationError("Panier vide")
    return quantities


def shipping_for(subtotal: Decimal) -> Decimal:
    """Frais de port forfaitaires (0 par défaut: livraison offerte)."""
    return Decimal(SHIPPING_FLAT_FEE)


def compute_totals(
    items: List[OrderItem],
    shipping_policy: Callable[[Decimal], Decimal] = shipping_for,
) -> Tuple[Decimal, Decimal, Decimal]:
    """Retourne (subtotal, shipping, total) arrondis au centime."""
    subtotal = sum((item.price * item.quantity for item in items), Decimal("0"))
    subtotal = subtotal.quantize(CENT, rounding=ROUND_HALF_UP)
    shipping = Decimal(shipping_policy(subtotal)).quantize(CENT, rounding=ROUND_HALF_UP)
    return subtotal, shipping, subtotal + shipping


def to_minor_units(amount: Decimal) -> int:
    """
    Convertit un montant décimal en plus petite unité (cents).
    Arrondi au plus proche, demi vers le haut: 25.50 -> 2550, 0.005 -> 1.
    """
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def make_metadata(email: str, item_count: int) -> Dict[str, str]:
    """Métadonnées Stripe du PaymentIntent (valeurs texte uniquement)."""
    return {"email": email, "item_count": str(item_count)}
