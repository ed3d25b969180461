# module storefront.tags.models
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Tag(BaseModel):
    """Étiquette du catalogue (table 'tags'), nom unique sans tenir compte de la casse."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TagCreate(BaseModel):
    name: str = Field(max_length=50)
