import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    text,
    true,
)
from sqlalchemy.sql import func

from sweetshop.database import Base


class Sweet(Base):
    """
    Stock-keeping unit sold by the shop.

    Attributes:
        id: Unique identifier for the sweet
        name: Sweet name, unique among active sweets
        category: Category used for exact-match filtering
        price: Unit price (fixed-point, must be positive)
        quantity: Units in stock (must be non-negative)
        description: Optional free text
        is_active: False once the sweet has been deleted
        deleted_at: Timestamp of the soft delete
        created_at: Timestamp when sweet was created
        updated_at: Timestamp when sweet was last updated
    """
    __tablename__ = "sweets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, index=True)
    category = Column(String(100), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Database-level constraints; the quantity check is the last line behind
    # the conditional decrement in InventoryService.purchase
    __table_args__ = (
        CheckConstraint("price > 0", name="check_price_positive"),
        CheckConstraint("quantity >= 0", name="check_quantity_non_negative"),
        Index(
            "uq_sweets_active_name",
            "name",
            unique=True,
            sqlite_where=text("is_active"),
            postgresql_where=text("is_active"),
        ),
    )

    def __repr__(self):
        return f"<Sweet(id={self.id}, name='{self.name}', quantity={self.quantity})>"
