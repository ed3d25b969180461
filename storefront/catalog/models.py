# module storefront.catalog.models
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class Product(BaseModel):
    """Produit du catalogue tel que stocké dans la table 'products'."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: str = ""
    price: Decimal = Field(ge=0)
    stock_qty: int = Field(ge=0)
    image_urls: List[str] = Field(default_factory=list)
    sku: Optional[str] = None
    tag: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_serializer("price")
    def _money(self, v: Decimal) -> float:
        return float(v)

    @property
    def primary_image(self) -> str:
        return self.image_urls[0] if self.image_urls else ""


class StockUpdate(BaseModel):
    """Nouveau stock d'un produit après ajustement (diffusé en temps réel)."""

    product_id: str
    stock_qty: int


class ProductCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    price: Decimal = Field(ge=0)
    stock_qty: int = Field(default=0, ge=0)
    image_urls: List[str] = Field(default_factory=list)
    sku: Optional[str] = Field(default=None, max_length=10)
    tag: Optional[str] = None


class ProductUpdate(BaseModel):
    """Mise à jour partielle admin.
    - stock_qty: écrase la valeur (inventaire physique); une vente concurrente
      entre la lecture admin et l'écriture est perdue
    - stock_delta: réassort ou correction relative, appliqué atomiquement
      comme les ventes (adjust_stock); exclusif avec stock_qty
    """

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    stock_qty: Optional[int] = Field(default=None, ge=0)
    stock_delta: Optional[int] = None
    image_urls: Optional[List[str]] = None
    tag: Optional[str] = None
