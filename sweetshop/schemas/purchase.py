from pydantic import BaseModel, ConfigDict
from datetime import datetime
from decimal import Decimal
from uuid import UUID


class PurchaseResponse(BaseModel):
    """Schema for a purchase audit record."""
    id: UUID
    user_id: UUID
    sweet_id: UUID
    quantity: int
    total_price: Decimal
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PurchaseResult(BaseModel):
    success: bool = True
    purchase: PurchaseResponse
    message: str = "Purchase successful"


class PurchaseListResponse(BaseModel):
    """Schema for paginated purchase history."""
    success: bool = True
    items: list[PurchaseResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
