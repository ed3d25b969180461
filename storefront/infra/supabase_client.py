"""
Clients Supabase partagés, créés au premier usage.

- anon: lectures publiques du catalogue et Supabase Auth
- service: écritures serveur (bypass RLS): commandes, ajustements de
  stock, journal des événements Stripe
"""
import logging
from typing import Dict

from supabase import Client, create_client

from storefront.config import SUPABASE_ANON_KEY, SUPABASE_SERVICE_KEY, SUPABASE_URL
from storefront.errors import StorageError

logger = logging.getLogger(__name__)

ANON = "anon"
SERVICE = "service"

_clients: Dict[str, Client] = {}


def _client(role: str, key: str) -> Client:
    client = _clients.get(role)
    if client is not None:
        return client
    if not SUPABASE_URL or not key:
        raise StorageError(f"Supabase non configuré (URL ou clé '{role}' manquante)")
    client = create_client(SUPABASE_URL, key)
    _clients[role] = client
    logger.info("Client Supabase '%s' initialisé", role)
    return client


def get_supabase() -> Client:
    return _client(ANON, SUPABASE_ANON_KEY)


def get_service_supabase() -> Client:
    return _client(SERVICE, SUPABASE_SERVICE_KEY)
