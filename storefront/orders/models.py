# module storefront.orders.models
"""
Modèles de commande.

Les lignes d'une commande sont une copie figée du produit au moment de
l'achat (nom, prix, image): un changement de prix ultérieur ne modifie
jamais une commande passée.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class FulfillmentStatus(str, Enum):
    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    product_id: str
    name: str
    price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)
    image_url: str = ""

    @field_serializer("price")
    def _money(self, v: Decimal) -> float:
        return float(v)


class ShippingAddress(BaseModel):
    first_name: str
    last_name: str
    phone_number: str
    line1: str
    line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str = "US"


class ShippingInfo(BaseModel):
    carrier: str
    tracking_number: str


class Order(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: Optional[str] = None
    email: str
    items: List[OrderItem]
    subtotal: Decimal
    shipping: Decimal
    total: Decimal
    payment_status: PaymentStatus = PaymentStatus.PENDING
    fulfillment_status: FulfillmentStatus = FulfillmentStatus.PENDING
    payment_intent_id: str
    client_secret: Optional[str] = None
    shipping_address: Optional[ShippingAddress] = None
    shipping_info: Optional[ShippingInfo] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_serializer("subtotal", "shipping", "total")
    def _money(self, v: Decimal) -> float:
        return float(v)

    def quantities_by_product(self) -> Dict[str, int]:
        """Quantités achetées par produit (une commande peut répéter un produit)."""
        quantities: Dict[str, int] = {}
        for item in self.items:
            quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
        return quantities

    def to_public_dict(self) -> Dict[str, Any]:
        """Vue confirmation (accès par id sans authentification): sans secrets Stripe."""
        return self.model_dump(
            mode="json",
            exclude={"client_secret", "payment_intent_id", "user_id", "shipping_info"},
        )

    def needs_refund(self) -> bool:
        """Commande annulée alors que le paiement a été encaissé."""
        return (
            self.fulfillment_status == FulfillmentStatus.CANCELLED
            and self.payment_status == PaymentStatus.SUCCEEDED
        )

    def to_owner_dict(self) -> Dict[str, Any]:
        """Vue propriétaire / admin: tout sauf le client secret."""
        return self.model_dump(mode="json", exclude={"client_secret"})


class FulfillmentUpdate(BaseModel):
    status: FulfillmentStatus
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
