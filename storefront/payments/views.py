import logging
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from starlette.concurrency import run_in_threadpool

from storefront.errors import SignatureVerificationError, ValidationError
from storefront.payments.gateway import StripeGateway
from storefront.payments.reconciler import PaymentEventReconciler
from storefront.payments.refunds import RefundWorkflow
from storefront.realtime.broadcaster import StockBroadcaster
from storefront.utils.dependencies import get_payment_gateway, get_stock_broadcaster
from storefront.utils.security import require_admin

logger = logging.getLogger(__name__)


def get_reconciler() -> PaymentEventReconciler:
    return PaymentEventReconciler()


def get_refund_workflow(gateway: StripeGateway = Depends(get_payment_gateway)) -> RefundWorkflow:
    return RefundWorkflow(gateway)

# --- Webhook Stripe (/api/webhooks/stripe) ---

webhook_router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


@webhook_router.post("/stripe", include_in_schema=False)
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    gateway: StripeGateway = Depends(get_payment_gateway),
    reconciler: PaymentEventReconciler = Depends(get_reconciler),
    broadcaster: StockBroadcaster = Depends(get_stock_broadcaster),
):
    """
    Réception des événements Stripe.
    - Corps brut lu avant tout parsing (la signature porte dessus)
    - 400 signature/payload invalide, 503 secret non configuré
    - 500 si la réconciliation échoue: Stripe relivrera l'événement
    - Diffusion des nouveaux stocks après la réponse
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        event = gateway.construct_event(payload, signature)
    except (SignatureVerificationError, ValidationError) as e:
        logger.warning("Webhook Stripe rejeté: %s", e.message)
        raise

    result = await run_in_threadpool(reconciler.reconcile, event)
    if result.stock_updates:
        background_tasks.add_task(broadcaster.broadcast, result.stock_updates)
    return {"received": True, "action": result.action}

# --- Remboursement admin (/api/admin/orders/{id}/refund) ---

admin_router = APIRouter(prefix="/api/admin/orders", tags=["Admin Orders"])


@admin_router.post("/{order_id}/refund")
def refund_order(
    order_id: str,
    background_tasks: BackgroundTasks,
    admin: Dict[str, Any] = Depends(require_admin),
    workflow: RefundWorkflow = Depends(get_refund_workflow),
    broadcaster: StockBroadcaster = Depends(get_stock_broadcaster),
):
    outcome = workflow.refund(order_id)
    logger.info("Remboursement admin order=%s par %s", order_id, admin.get("email"))
    if outcome.stock_updates:
        background_tasks.add_task(broadcaster.broadcast, outcome.stock_updates)
    return outcome.to_dict()
