from typing import Optional

from fastapi import APIRouter, Depends

from storefront.checkout.models import CheckoutRequest
from storefront.checkout.service import CheckoutService
from storefront.payments.gateway import StripeGateway
from storefront.utils.dependencies import get_payment_gateway
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import get_optional_credential

router = APIRouter(prefix="/api/checkout", tags=["Checkout"])


def get_checkout_service(gateway: StripeGateway = Depends(get_payment_gateway)) -> CheckoutService:
    return CheckoutService(gateway)


# module storefront.checkout.views
@router.post(
    "/create-payment-intent",
    dependencies=[Depends(optional_rate_limit(times=10, seconds=60))],
)
def create_payment_intent(
    payload: CheckoutRequest,
    credential: Optional[str] = Depends(get_optional_credential),
    checkout: CheckoutService = Depends(get_checkout_service),
):
    """
    Crée la commande en attente et le PaymentIntent Stripe.
    Retour: {client_secret, order_id, total}; le front confirme ensuite
    le paiement avec Stripe.js, le webhook finalise la commande.
    """
    return checkout.checkout(payload, credential=credential).model_dump(mode="json")
