"""
Paiements: passerelle Stripe, réconciliation des webhooks, remboursements.
Façade de ré-export pour les appelants (app, tests).
"""
from .gateway import PaymentIntent, Refund, StripeGateway
from .reconciler import PaymentEventReconciler, ReconciliationResult
from .refunds import RefundOutcome, RefundWorkflow

__all__ = [
    "PaymentIntent",
    "Refund",
    "StripeGateway",
    "PaymentEventReconciler",
    "ReconciliationResult",
    "RefundOutcome",
    "RefundWorkflow",
]
