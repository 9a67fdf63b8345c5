import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from sweetshop.database import Base


class Purchase(Base):
    """
    Immutable audit record of a completed purchase.

    Rows are only inserted, in the same transaction as the stock decrement
    they record, and never updated.

    Attributes:
        id: Unique identifier for the purchase
        user_id: Reference to the purchasing user
        sweet_id: Reference to the purchased sweet
        quantity: Number of units purchased
        total_price: quantity x unit price in effect at the decrement
            (wide enough for the largest price times MAX_QUANTITY)
        created_at: Timestamp when the purchase was recorded
    """
    __tablename__ = "purchases"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    sweet_id = Column(Uuid, ForeignKey("sweets.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    total_price = Column(Numeric(20, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_purchase_quantity_positive"),
    )

    user = relationship("User", backref="purchases")
    sweet = relationship("Sweet", backref="purchases")

    def __repr__(self):
        return f"<Purchase(id={self.id}, sweet_id={self.sweet_id}, quantity={self.quantity})>"
