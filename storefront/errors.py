"""
Taxonomie des erreurs métier de la boutique.

Les services lèvent ces exceptions; storefront.app_setup.exceptions les
transforme en réponses JSON {"detail": ...} avec le code HTTP associé.
"""
from typing import Optional


class StorefrontError(Exception):
    """Erreur de base: porte un message affichable et un code HTTP."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(StorefrontError):
    """Entrée invalide ou manquante (corrigible par l'utilisateur)."""

    status_code = 400


class AuthenticationError(StorefrontError):
    status_code = 401


class NotFoundError(StorefrontError):
    """Produit ou commande introuvable."""

    status_code = 404


class ConflictError(StorefrontError):
    """Règle métier violée: stock insuffisant, produit inactif, déjà remboursé..."""

    status_code = 409


class SignatureVerificationError(StorefrontError):
    """Signature webhook absente ou invalide: l'événement n'est pas traité."""

    status_code = 400


class StorageError(StorefrontError):
    """Échec d'écriture/lecture côté Supabase."""

    status_code = 500


class GatewayError(StorefrontError):
    """Appel à un service externe en échec (Stripe, Supabase Auth)."""

    status_code = 502


class GatewayUnavailableError(GatewayError):
    """Stripe non configuré (clé ou secret webhook manquant)."""

    status_code = 503

    def __init__(self, message: str = "Service de paiement indisponible"):
        super().__init__(message)
