"""
Adaptateur Stripe: centralise les appels au SDK et la conversion des
objets Stripe en types simples.

La clé secrète est passée à chaque appel (api_key=...) plutôt que posée
globalement sur le module stripe.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import stripe

from storefront.config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from storefront.errors import (
    GatewayError,
    GatewayUnavailableError,
    SignatureVerificationError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    client_secret: Optional[str]
    status: str
    amount: int
    latest_charge: Optional[str] = None


@dataclass(frozen=True)
class Refund:
    id: str
    amount: int
    status: str


def _field(obj: Any, key: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _object_id(value: Any) -> Optional[str]:
    # latest_charge peut être un id ou un objet Charge expansé
    if value is None or isinstance(value, str):
        return value
    return _field(value, "id")


def _to_intent(obj: Any) -> PaymentIntent:
    return PaymentIntent(
        id=str(_field(obj, "id")),
        client_secret=_field(obj, "client_secret"),
        status=str(_field(obj, "status", "")),
        amount=int(_field(obj, "amount", 0) or 0),
        latest_charge=_object_id(_field(obj, "latest_charge")),
    )


def _user_message(err: Exception) -> str:
    msg = getattr(err, "user_message", None)
    return str(msg) if msg else "Erreur du service de paiement"


# module storefront.payments.gateway
class StripeGateway:
    """Passerelle de paiement Stripe (PaymentIntents, remboursements, webhooks)."""

    def __init__(self, secret_key: str, webhook_secret: str = ""):
        self._secret_key = secret_key or ""
        self._webhook_secret = webhook_secret or ""

    @classmethod
    def from_config(cls) -> "StripeGateway":
        return cls(STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET)

    @property
    def configured(self) -> bool:
        return bool(self._secret_key)

    def _require_key(self) -> str:
        if not self._secret_key:
            raise GatewayUnavailableError("Stripe non configuré (STRIPE_SECRET_KEY manquant)")
        return self._secret_key

    def create_payment_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        receipt_email: Optional[str] = None,
    ) -> PaymentIntent:
        """
        Crée un PaymentIntent.
        - amount: montant en plus petite unité (cents)
        - metadata: valeurs texte uniquement (contrainte Stripe)
        Retour: PaymentIntent avec client_secret pour le front.
        """
        api_key = self._require_key()
        params: Dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
        }
        if receipt_email:
            params["receipt_email"] = receipt_email
        try:
            intent = stripe.PaymentIntent.create(api_key=api_key, **params)
        except stripe.StripeError as e:
            logger.exception("payments.gateway.create_payment_intent failed amount=%s", amount)
            raise GatewayError(_user_message(e)) from e
        return _to_intent(intent)

    def retrieve_payment_intent(self, intent_id: str) -> PaymentIntent:
        api_key = self._require_key()
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=api_key)
        except stripe.StripeError as e:
            logger.exception("payments.gateway.retrieve_payment_intent failed id=%s", intent_id)
            raise GatewayError(_user_message(e)) from e
        return _to_intent(intent)

    def create_refund(self, *, charge_id: str, amount: int, idempotency_key: Optional[str] = None) -> Refund:
        """
        Rembourse une charge. La clé d'idempotence évite un double
        remboursement si l'appel est rejoué (retry réseau, double clic admin).
        """
        api_key = self._require_key()
        params: Dict[str, Any] = {"charge": charge_id, "amount": amount}
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        try:
            refund = stripe.Refund.create(api_key=api_key, **params)
        except stripe.StripeError as e:
            logger.exception("payments.gateway.create_refund failed charge=%s amount=%s", charge_id, amount)
            raise GatewayError(_user_message(e)) from e
        return Refund(
            id=str(_field(refund, "id")),
            amount=int(_field(refund, "amount", amount) or 0),
            status=str(_field(refund, "status", "")),
        )

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Valide la signature d'un webhook et retourne l'événement en dict.
        - Secret absent: 503 (impossible de vérifier quoi que ce soit)
        - Signature absente ou invalide: 400
        """
        if not self._webhook_secret:
            raise GatewayUnavailableError("Webhook Stripe non configuré (STRIPE_WEBHOOK_SECRET manquant)")
        if not signature:
            raise SignatureVerificationError("En-tête Stripe-Signature manquant")
        try:
            stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise SignatureVerificationError("Signature webhook invalide") from e
        except ValueError as e:
            raise ValidationError("Payload webhook invalide") from e
        # La signature porte sur le corps brut: on le relit en dict simple
        try:
            event = json.loads(payload)
        except ValueError as e:
            raise ValidationError("Payload webhook invalide") from e
        if not isinstance(event, dict):
            raise ValidationError("Payload webhook invalide")
        return event
