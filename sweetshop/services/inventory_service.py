from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple
from uuid import UUID
import math
import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sweetshop.errors import InsufficientStock, NotFound, ValidationFailed
from sweetshop.models.purchase import Purchase
from sweetshop.models.sweet import Sweet
from sweetshop.schemas.sweet import MAX_QUANTITY
from sweetshop.security import Principal
from sweetshop.utils.cache import cache_service

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class InventoryService:
    """
    Quantity side of the inventory ledger: purchases, restocks and the
    purchase audit trail.

    STOCK CONSISTENCY STRATEGY:
    ===========================
    Every quantity change is a single conditional UPDATE evaluated by the
    database:

        UPDATE sweets SET quantity = quantity - :n
        WHERE id = :id AND is_active AND quantity >= :n
        RETURNING price, quantity

    The check and the decrement happen in one statement, so the row lock the
    database takes for the UPDATE serializes concurrent purchases of the same
    sweet. A request that loses the race re-evaluates the WHERE clause against
    the committed quantity and matches no row. No in-process lock is involved,
    which keeps the guarantee when several API instances share one database.

    The unit price comes back from the same statement, so the purchase total
    always uses the price in effect at the moment of the decrement. The
    audit record is inserted in the same transaction and commits together
    with the decrement.
    """

    def __init__(self, db: Session):
        self.db = db

    def purchase(self, buyer: Principal, sweet_id: UUID, quantity: int) -> Tuple[Purchase, int]:
        """
        Atomically take ``quantity`` units of a sweet and record the purchase.

        Args:
            buyer: Authenticated caller
            sweet_id: Sweet to purchase
            quantity: Units to take (positive)

        Returns:
            Tuple of (purchase record, quantity left after the decrement)

        Raises:
            ValidationFailed: quantity is not a positive integer
            NotFound: no active sweet with this ID
            InsufficientStock: fewer than ``quantity`` units in stock
        """
        self._check_quantity(quantity)

        stmt = (
            update(Sweet)
            .where(
                Sweet.id == sweet_id,
                Sweet.is_active.is_(True),
                Sweet.quantity >= quantity,
            )
            .values(quantity=Sweet.quantity - quantity)
            .returning(Sweet.price, Sweet.quantity)
            .execution_options(synchronize_session=False)
        )

        try:
            row = self.db.execute(stmt).first()

            if row is None:
                exists = self._exists(sweet_id)
                self.db.rollback()
                if not exists:
                    raise NotFound(f"Sweet with ID {sweet_id} not found")
                logger.info(
                    f"Purchase of {quantity} x sweet {sweet_id} rejected: insufficient stock"
                )
                raise InsufficientStock(
                    f"Insufficient stock for the requested quantity of {quantity}"
                )

            unit_price, remaining = row
            total_price = (Decimal(unit_price) * quantity).quantize(CENTS, rounding=ROUND_HALF_UP)

            purchase = Purchase(
                user_id=UUID(buyer.user_id),
                sweet_id=sweet_id,
                quantity=quantity,
                total_price=total_price,
            )
            self.db.add(purchase)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error purchasing sweet {sweet_id}: {e}")
            raise

        self.db.refresh(purchase)
        cache_service.invalidate("sweet", str(sweet_id))

        logger.info(
            f"Purchase {purchase.id}: user {buyer.user_id} bought {quantity} x sweet {sweet_id}, "
            f"{remaining} left"
        )
        return purchase, remaining

    def restock(self, sweet_id: UUID, quantity: int) -> Sweet:
        """
        Atomically add ``quantity`` units to a sweet.

        Uses ``quantity = quantity + :n`` in the database so concurrent
        restocks and purchases on the same row never lose an update.

        Raises:
            ValidationFailed: quantity is not positive, or the result would overflow
            NotFound: no active sweet with this ID
        """
        self._check_quantity(quantity)

        stmt = (
            update(Sweet)
            .where(
                Sweet.id == sweet_id,
                Sweet.is_active.is_(True),
                Sweet.quantity <= MAX_QUANTITY - quantity,
            )
            .values(quantity=Sweet.quantity + quantity)
            .returning(Sweet.quantity)
            .execution_options(synchronize_session=False)
        )

        try:
            row = self.db.execute(stmt).first()

            if row is None:
                exists = self._exists(sweet_id)
                self.db.rollback()
                if not exists:
                    raise NotFound(f"Sweet with ID {sweet_id} not found")
                raise ValidationFailed(
                    "Restock would exceed the maximum stock level",
                    details=[{"field": "quantity", "message": "too large"}],
                )

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error restocking sweet {sweet_id}: {e}")
            raise

        cache_service.invalidate("sweet", str(sweet_id))
        logger.info(f"Sweet {sweet_id} restocked by {quantity}, now {row[0]}")

        return self.db.get(Sweet, sweet_id, populate_existing=True)

    def get_purchases(
        self,
        viewer: Principal,
        page: int = 1,
        page_size: int = 10,
        sweet_id: Optional[UUID] = None,
    ) -> Tuple[List[Purchase], int, int]:
        """
        Get paginated purchase history, newest first.

        Non-admin viewers only see their own purchases.

        Returns:
            Tuple of (purchases list, total count, total pages)
        """
        query = self.db.query(Purchase)

        if not viewer.is_admin:
            query = query.filter(Purchase.user_id == UUID(viewer.user_id))
        if sweet_id:
            query = query.filter(Purchase.sweet_id == sweet_id)

        total = query.count()
        total_pages = math.ceil(total / page_size) if total > 0 else 1

        offset = (page - 1) * page_size
        purchases = (
            query.order_by(Purchase.created_at.desc(), Purchase.id)
            .offset(offset)
            .limit(page_size)
            .all()
        )

        return purchases, total, total_pages

    def _exists(self, sweet_id: UUID) -> bool:
        return (
            self.db.query(Sweet.id)
            .filter(Sweet.id == sweet_id, Sweet.is_active.is_(True))
            .first()
            is not None
        )

    @staticmethod
    def _check_quantity(quantity: int) -> None:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationFailed(
                "Quantity must be a positive integer",
                details=[{"field": "quantity", "message": "must be a positive integer"}],
            )
