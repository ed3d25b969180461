from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends

from storefront.catalog import service
from storefront.catalog.models import ProductCreate, ProductUpdate
from storefront.realtime.broadcaster import StockBroadcaster
from storefront.utils.dependencies import get_stock_broadcaster
from storefront.utils.security import require_admin

router = APIRouter(prefix="/api/products", tags=["Products"])


# module storefront.catalog.views
@router.get("")
def list_products():
    """Produits actifs, les plus récents d'abord."""
    return [p.model_dump(mode="json") for p in service.list_storefront_products()]


@router.get("/admin/all")
def list_all_products(admin: Dict[str, Any] = Depends(require_admin)):
    return [p.model_dump(mode="json") for p in service.list_admin_products()]


@router.get("/admin/{product_id}")
def get_admin_product(product_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    """Fiche produit admin, y compris un produit désactivé."""
    return service.get_admin_product(product_id).model_dump(mode="json")


@router.get("/{product_id}")
def get_product(product_id: str):
    return service.get_storefront_product(product_id).model_dump(mode="json")


@router.post("", status_code=201)
def create_product(payload: ProductCreate, admin: Dict[str, Any] = Depends(require_admin)):
    return service.create_product(payload).model_dump(mode="json")


@router.put("/{product_id}")
def update_product(
    product_id: str,
    payload: ProductUpdate,
    background_tasks: BackgroundTasks,
    admin: Dict[str, Any] = Depends(require_admin),
    broadcaster: StockBroadcaster = Depends(get_stock_broadcaster),
):
    product = service.update_product(product_id, payload)
    update = service.stock_update_for(product, payload)
    if update is not None:
        background_tasks.add_task(broadcaster.broadcast, [update])
    return product.model_dump(mode="json")


@router.patch("/{product_id}/activate")
def activate_product(product_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    return service.set_product_active(product_id, True).model_dump(mode="json")


@router.patch("/{product_id}/deactivate")
def deactivate_product(product_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    return service.set_product_active(product_id, False).model_dump(mode="json")
