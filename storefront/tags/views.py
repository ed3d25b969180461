from typing import Any, Dict

from fastapi import APIRouter, Depends

from storefront.tags import service
from storefront.tags.models import TagCreate
from storefront.utils.security import require_admin

router = APIRouter(prefix="/api/tags", tags=["Tags"])


# module storefront.tags.views
@router.get("")
def list_tags():
    """Étiquettes triées par nom (filtres de la vitrine)."""
    return [t.model_dump(mode="json") for t in service.list_tags()]


@router.post("", status_code=201)
def create_tag(payload: TagCreate, admin: Dict[str, Any] = Depends(require_admin)):
    return service.create_tag(payload.name).model_dump(mode="json")


@router.delete("/{tag_id}")
def delete_tag(tag_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    service.delete_tag(tag_id)
    return {"message": "Étiquette supprimée"}
