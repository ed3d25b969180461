import logging
from typing import List

from storefront.errors import NotFoundError, ValidationError
from storefront.tags import repository
from storefront.tags.models import Tag

logger = logging.getLogger(__name__)


# module storefront.tags.service
def list_tags() -> List[Tag]:
    return repository.list_tags()


def create_tag(name: str) -> Tag:
    """Nom nettoyé des espaces; vide ou déjà existant (casse ignorée) -> 400."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Nom d'étiquette requis")
    tag = repository.create_tag(name)
    if tag is None:
        raise ValidationError("Cette étiquette existe déjà")
    logger.info("Étiquette créée id=%s name=%s", tag.id, tag.name)
    return tag


def delete_tag(tag_id: str) -> None:
    if not repository.delete_tag(tag_id):
        raise NotFoundError("Étiquette introuvable")
    logger.info("Étiquette supprimée id=%s", tag_id)
