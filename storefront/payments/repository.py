"""
Journal des événements Stripe traités (table 'payment_events').

Un événement est "réservé" avant tout effet de bord: la clé primaire
event_id garantit qu'une redélivrance ne ré-applique pas les deltas de stock.
"""
import logging
from typing import Optional

from postgrest.exceptions import APIError

import storefront.infra.supabase_client as supabase_client
from storefront.errors import StorageError

logger = logging.getLogger(__name__)

EVENTS_TABLE = "payment_events"
PG_UNIQUE_VIOLATION = "23505"

# module storefront.payments.repository
def claim_event(event_id: str, event_type: str, payment_intent_id: Optional[str] = None) -> bool:
    """
    Enregistre l'événement comme en cours de traitement.
    - True: première réception, l'appelant peut appliquer les effets.
    - False: déjà reçu (violation d'unicité), à acquitter sans rien faire.
    """
    try:
        (
            supabase_client.get_service_supabase()
            .table(EVENTS_TABLE)
            .insert({
                "event_id": event_id,
                "event_type": event_type,
                "payment_intent_id": payment_intent_id,
            })
            .execute()
        )
        return True
    except APIError as e:
        if getattr(e, "code", None) == PG_UNIQUE_VIOLATION:
            return False
        logger.exception("payments.repository.claim_event failed event_id=%s", event_id)
        raise StorageError("Journalisation de l'événement impossible") from e
    except Exception as e:
        logger.exception("payments.repository.claim_event failed event_id=%s", event_id)
        raise StorageError("Journalisation de l'événement impossible") from e


def release_event(event_id: str) -> bool:
    """
    Libère la réservation après un échec de traitement, pour que la
    relivraison Stripe puisse réessayer. Retourne False si la suppression échoue.
    """
    try:
        supabase_client.get_service_supabase().table(EVENTS_TABLE).delete().eq("event_id", event_id).execute()
        return True
    except Exception:
        logger.exception("payments.repository.release_event failed event_id=%s", event_id)
        return False
