from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

# Upper bound of a 32-bit INTEGER column
MAX_QUANTITY = 2**31 - 1


class SweetBase(BaseModel):
    """Base schema for Sweet with common attributes."""
    name: str = Field(..., min_length=1, max_length=255, description="Sweet name")
    category: str = Field(..., min_length=1, max_length=100, description="Sweet category")
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, description="Unit price (must be positive)")
    quantity: int = Field(..., ge=0, le=MAX_QUANTITY, description="Units in stock (must be non-negative)")
    description: Optional[str] = Field(None, max_length=2000)


class SweetCreate(SweetBase):
    """Schema for creating a new sweet."""
    quantity: int = Field(0, ge=0, le=MAX_QUANTITY, description="Initial stock (defaults to 0)")


class SweetUpdate(BaseModel):
    """Schema for updating an existing sweet. All fields are optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    quantity: Optional[int] = Field(None, ge=0, le=MAX_QUANTITY)
    description: Optional[str] = Field(None, max_length=2000)


class StockChange(BaseModel):
    """Body of purchase and restock requests."""
    quantity: int = Field(..., ge=1, le=MAX_QUANTITY, description="Number of units (positive)")


class SweetResponse(SweetBase):
    """Schema for sweet response including all fields."""
    id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SweetEnvelope(BaseModel):
    success: bool = True
    sweet: SweetResponse


class SweetListResponse(BaseModel):
    success: bool = True
    sweets: list[SweetResponse]
    total: int


class RestockResponse(SweetEnvelope):
    message: str = "Restock successful"
