"""
Catalog Schemas for CleanCare
=============================

Admin edits to catalog items and cart quotes priced against the catalog.
Field names follow the catalog JSON the clients consume (``minQuantity``).
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class ServiceUpdate(BaseModel):
    price: Optional[float] = Field(default=None, allow_inf_nan=False)
    enabled: Optional[bool] = None
    popular: Optional[bool] = None
    description: Optional[str] = None
    name: Optional[str] = None
    unit: Optional[str] = None
    image: Optional[str] = None
    minQuantity: Optional[int] = Field(default=None, ge=1)


class QuoteItem(BaseModel):
    service_id: str
    quantity: int = Field(ge=1)


class QuoteRequest(BaseModel):
    items: List[QuoteItem]
    coupon_code: Optional[str] = None
