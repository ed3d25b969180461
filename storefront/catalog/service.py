"""
Cas d'usage catalogue: lecture publique et gestion admin des produits.
"""
import logging
from typing import List, Optional

from storefront.catalog import repository
from storefront.catalog.models import Product, ProductCreate, ProductUpdate, StockUpdate
from storefront.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


# module storefront.catalog.service
def list_storefront_products() -> List[Product]:
    return repository.list_active_products()


def list_admin_products() -> List[Product]:
    return repository.list_all_products()


def get_storefront_product(product_id: str) -> Product:
    """Produit visible en boutique; un produit désactivé est traité comme introuvable."""
    product = repository.get_active_product(product_id)
    if product is None:
        raise NotFoundError("Produit introuvable")
    return product


def get_admin_product(product_id: str) -> Product:
    """Lecture admin: produit actif ou non."""
    product = repository.get_product(product_id)
    if product is None:
        raise NotFoundError("Produit introuvable")
    return product


def create_product(payload: ProductCreate) -> Product:
    data = payload.model_dump(exclude_none=True)
    if "sku" in data:
        data["sku"] = data["sku"].strip().upper()
    product = repository.create_product(data)
    logger.info("Produit créé id=%s sku=%s", product.id, product.sku)
    return product


def update_product(product_id: str, payload: ProductUpdate) -> Product:
    """
    Mise à jour partielle.
    - stock_qty écrase la valeur courante (inventaire manuel)
    - stock_delta passe par adjust_stock, comme les ventes et les remboursements
    """
    data = payload.model_dump(exclude_unset=True)
    data = {k: v for k, v in data.items() if v is not None}
    delta = data.pop("stock_delta", 0)
    if delta and "stock_qty" in data:
        raise ValidationError("stock_qty et stock_delta ne peuvent pas être combinés")
    if not data and not delta:
        raise ValidationError("Aucun champ à mettre à jour")

    product = repository.update_product(product_id, data) if data else repository.get_product(product_id)
    if product is None:
        raise NotFoundError("Produit introuvable")
    if delta:
        for update in repository.adjust_stock({product_id: delta}):
            product = product.model_copy(update={"stock_qty": update.stock_qty})
        logger.info("Stock ajusté id=%s delta=%s stock=%s", product_id, delta, product.stock_qty)
    return product


def set_product_active(product_id: str, is_active: bool) -> Product:
    product = repository.set_active(product_id, is_active)
    if product is None:
        raise NotFoundError("Produit introuvable")
    logger.info("Produit %s id=%s", "activé" if is_active else "désactivé", product_id)
    return product


def stock_update_for(product: Product, payload: ProductUpdate) -> Optional[StockUpdate]:
    """StockUpdate à diffuser si la mise à jour a touché le stock."""
    if payload.stock_qty is None and not payload.stock_delta:
        return None
    return StockUpdate(product_id=product.id, stock_qty=product.stock_qty)
