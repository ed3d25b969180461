# module storefront.checkout.models
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from storefront.orders.models import ShippingAddress


class CartLine(BaseModel):
    """
    Ligne de panier envoyée par le front.
    Seuls product_id et quantity font foi: nom, prix et image sont
    relus depuis le catalogue.
    """

    model_config = ConfigDict(extra="ignore")

    product_id: str
    quantity: int
    name: Optional[str] = None
    price: Optional[Decimal] = None
    image_url: Optional[str] = None


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    items: List[CartLine] = Field(default_factory=list)
    email: Optional[str] = None
    shipping_address: Optional[ShippingAddress] = None


class CheckoutResult(BaseModel):
    client_secret: str
    order_id: str
    total: Decimal

    @field_serializer("total")
    def _money(self, v: Decimal) -> float:
        return float(v)
