"""
Accès aux données du catalogue (table 'products').

Les lectures retournent None / [] quand rien n'est trouvé; une erreur
Supabase est journalisée puis relevée en StorageError pour ne pas être
confondue avec un produit absent.
"""
import logging
import secrets
import string
from decimal import Decimal
from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError

import storefront.infra.supabase_client as supabase_client
from storefront.catalog.models import Product, StockUpdate
from storefront.errors import StorageError

logger = logging.getLogger(__name__)

PRODUCTS_TABLE = "products"
SKU_ALPHABET = string.ascii_uppercase + string.digits
SKU_LENGTH = 8
# Postgres: invalid_text_representation (id non-UUID), unique_violation
PG_INVALID_TEXT = "22P02"
PG_UNIQUE_VIOLATION = "23505"


def _rows(res) -> List[dict]:
    data = getattr(res, "data", None)
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return [data]
    return []


def _serialize(data: Dict[str, Any]) -> Dict[str, Any]:
    # PostgREST reçoit du JSON: Decimal -> float
    return {k: (float(v) if isinstance(v, Decimal) else v) for k, v in data.items()}


def generate_sku() -> str:
    return "".join(secrets.choice(SKU_ALPHABET) for _ in range(SKU_LENGTH))


# module storefront.catalog.repository
def get_product(product_id: str) -> Optional[Product]:
    """
    Récupère un produit par id, actif ou non.
    - Retourne None si l'id est inconnu ou mal formé.
    """
    if not product_id:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(PRODUCTS_TABLE)
            .select("*")
            .eq("id", product_id)
            .limit(1)
            .execute()
        )
    except APIError as e:
        if getattr(e, "code", None) == PG_INVALID_TEXT:
            return None
        logger.exception("catalog.repository.get_product failed id=%s", product_id)
        raise StorageError("Lecture du produit impossible") from e
    rows = _rows(res)
    return Product.model_validate(rows[0]) if rows else None


def get_active_product(product_id: str) -> Optional[Product]:
    product = get_product(product_id)
    if product and product.is_active:
        return product
    return None


def list_active_products() -> List[Product]:
    """Produits actifs, les plus récents d'abord (vitrine publique)."""
    try:
        res = (
            supabase_client.get_supabase()
            .table(PRODUCTS_TABLE)
            .select("*")
            .eq("is_active", True)
            .order("created_at", desc=True)
            .execute()
        )
    except Exception as e:
        logger.exception("catalog.repository.list_active_products failed")
        raise StorageError("Lecture du catalogue impossible") from e
    return [Product.model_validate(r) for r in _rows(res)]


def list_all_products() -> List[Product]:
    """Tous les produits, y compris inactifs (admin)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(PRODUCTS_TABLE)
            .select("*")
            .order("created_at", desc=True)
            .execute()
        )
    except Exception as e:
        logger.exception("catalog.repository.list_all_products failed")
        raise StorageError("Lecture du catalogue impossible") from e
    return [Product.model_validate(r) for r in _rows(res)]


def create_product(data: Dict[str, Any], max_attempts: int = 5) -> Product:
    """
    Insère un produit. Génère un SKU de 8 caractères si absent et
    recommence tant que l'index unique le refuse.
    """
    payload = _serialize(data)
    explicit_sku = bool(payload.get("sku"))
    for _ in range(max_attempts):
        if not explicit_sku:
            payload["sku"] = generate_sku()
        try:
            res = (
                supabase_client.get_service_supabase()
                .table(PRODUCTS_TABLE)
                .insert(payload)
                .execute()
            )
        except APIError as e:
            if getattr(e, "code", None) == PG_UNIQUE_VIOLATION and not explicit_sku:
                continue
            logger.exception("catalog.repository.create_product failed data=%s", payload)
            raise StorageError("Création du produit impossible") from e
        rows = _rows(res)
        if rows:
            return Product.model_validate(rows[0])
        raise StorageError("Création du produit impossible")
    raise StorageError("Impossible de générer un SKU unique")


def update_product(product_id: str, data: Dict[str, Any]) -> Optional[Product]:
    """Mise à jour par id; None si le produit n'existe pas."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(PRODUCTS_TABLE)
            .update(_serialize(data))
            .eq("id", product_id)
            .execute()
        )
    except APIError as e:
        if getattr(e, "code", None) == PG_INVALID_TEXT:
            return None
        logger.exception("catalog.repository.update_product failed id=%s data=%s", product_id, data)
        raise StorageError("Mise à jour du produit impossible") from e
    rows = _rows(res)
    return Product.model_validate(rows[0]) if rows else None


def set_active(product_id: str, is_active: bool) -> Optional[Product]:
    return update_product(product_id, {"is_active": is_active})


def adjust_stock(deltas: Dict[str, int]) -> List[StockUpdate]:
    """
    Applique des deltas de stock {product_id: delta} en une seule transaction
    via la fonction SQL adjust_stock_batch (stock_qty = greatest(stock_qty + delta, 0)).
    - Aucune lecture-modification-écriture côté Python.
    - Tout ou rien: si une ligne échoue, aucune n'est appliquée.
    - Retourne les nouveaux stocks des produits touchés.
    """
    adjustments = [
        {"product_id": str(pid), "delta": int(delta)}
        for pid, delta in deltas.items()
        if int(delta) != 0
    ]
    if not adjustments:
        return []
    try:
        res = (
            supabase_client.get_service_supabase()
            .rpc("adjust_stock_batch", {"p_adjustments": adjustments})
            .execute()
        )
    except Exception as e:
        logger.exception("catalog.repository.adjust_stock failed adjustments=%s", adjustments)
        raise StorageError("Ajustement du stock impossible") from e
    return [
        StockUpdate(product_id=str(r.get("product_id")), stock_qty=int(r.get("stock_qty") or 0))
        for r in _rows(res)
    ]
