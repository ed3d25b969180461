"""
Accès aux données des étiquettes (table 'tags').
"""
import logging
from typing import List, Optional

from postgrest.exceptions import APIError

import storefront.infra.supabase_client as supabase_client
from storefront.errors import StorageError
from storefront.tags.models import Tag

logger = logging.getLogger(__name__)

TAGS_TABLE = "tags"
PG_INVALID_TEXT = "22P02"
PG_UNIQUE_VIOLATION = "23505"


def _rows(res) -> List[dict]:
    data = getattr(res, "data", None)
    return data if isinstance(data, list) else []


# module storefront.tags.repository
def list_tags() -> List[Tag]:
    """Toutes les étiquettes, triées par nom."""
    try:
        res = (
            supabase_client.get_supabase()
            .table(TAGS_TABLE)
            .select("*")
            .order("name")
            .execute()
        )
    except Exception as e:
        logger.exception("tags.repository.list_tags failed")
        raise StorageError("Lecture des étiquettes impossible") from e
    return [Tag.model_validate(r) for r in _rows(res)]


def create_tag(name: str) -> Optional[Tag]:
    """
    Insère une étiquette.
    - None si le nom existe déjà (index unique sur lower(name))
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TAGS_TABLE)
            .insert({"name": name})
            .execute()
        )
    except APIError as e:
        if getattr(e, "code", None) == PG_UNIQUE_VIOLATION:
            return None
        logger.exception("tags.repository.create_tag failed name=%s", name)
        raise StorageError("Création de l'étiquette impossible") from e
    rows = _rows(res)
    if not rows:
        raise StorageError("Création de l'étiquette impossible")
    return Tag.model_validate(rows[0])


def delete_tag(tag_id: str) -> bool:
    """True si une ligne a été supprimée, False si l'id est inconnu ou mal formé."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TAGS_TABLE)
            .delete()
            .eq("id", tag_id)
            .execute()
        )
    except APIError as e:
        if getattr(e, "code", None) == PG_INVALID_TEXT:
            return False
        logger.exception("tags.repository.delete_tag failed id=%s", tag_id)
        raise StorageError("Suppression de l'étiquette impossible") from e
    return bool(_rows(res))
