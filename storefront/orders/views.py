from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from storefront.orders import service
from storefront.orders.models import FulfillmentUpdate
from storefront.utils.security import require_admin, require_user

# --- API client (/api/checkout/orders) ---

router = APIRouter(prefix="/api/checkout", tags=["Orders"])


@router.get("/orders")
def my_orders(user: Dict[str, Any] = Depends(require_user)):
    """Commandes de l'utilisateur connecté, les plus récentes d'abord."""
    return [o.to_owner_dict() for o in service.list_user_orders(user["id"])]


@router.get("/orders/{order_id}")
def order_confirmation(order_id: str):
    """Vue de confirmation accessible par id, sans secrets de paiement."""
    return service.get_order(order_id).to_public_dict()

# --- API admin (/api/admin/orders) ---

admin_router = APIRouter(prefix="/api/admin/orders", tags=["Admin Orders"])


@admin_router.get("")
def admin_list_orders(
    limit: int = Query(100, ge=1, le=500),
    admin: Dict[str, Any] = Depends(require_admin),
):
    return [o.to_owner_dict() for o in service.list_admin_orders(limit=limit)]


@admin_router.get("/{order_id}")
def admin_get_order(order_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    return service.get_order(order_id).to_owner_dict()


@admin_router.patch("/{order_id}")
def admin_update_fulfillment(
    order_id: str,
    payload: FulfillmentUpdate,
    admin: Dict[str, Any] = Depends(require_admin),
):
    """Statut de livraison; refund_required signale une commande payée annulée."""
    order = service.update_fulfillment(order_id, payload)
    body = order.to_owner_dict()
    body["refund_required"] = order.needs_refund()
    return body
