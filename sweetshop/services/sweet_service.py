from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, List, Optional
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sweetshop.errors import Conflict, InvalidQuery, NotFound, ValidationFailed
from sweetshop.models.sweet import Sweet
from sweetshop.schemas.sweet import SweetCreate, SweetUpdate
from sweetshop.utils.cache import cache_service

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def parse_price_bound(raw: Optional[str], field: str) -> Optional[Decimal]:
    """
    Parse a minPrice/maxPrice query value.

    Empty or missing values mean "no bound". Anything that is not a finite,
    non-negative decimal raises InvalidQuery.
    """
    if raw is None or raw.strip() == "":
        return None
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        raise InvalidQuery(f"Invalid {field} parameter")
    if not value.is_finite() or value < 0:
        raise InvalidQuery(f"Invalid {field} parameter")
    return value


class SweetService:
    """
    Catalogue side of the inventory ledger.

    This service handles:
    - Creating sweets (name unique among active sweets)
    - Reading sweets (with caching for single lookups)
    - Searching by name, category and price range
    - Partial updates
    - Soft deletes that keep purchase records pointing at their sweet
    - Cache invalidation

    Quantity changes driven by sales and deliveries live in InventoryService.
    """

    CACHE_PREFIX = "sweet"

    def __init__(self, db: Session):
        self.db = db

    def create(self, sweet_data: SweetCreate) -> Sweet:
        """
        Create a new sweet.

        Raises:
            Conflict: an active sweet already uses the name
            ValidationFailed: price or quantity breaks the stock invariants
        """
        price = self._check_price(sweet_data.price)
        self._check_quantity(sweet_data.quantity)

        if self._name_taken(sweet_data.name):
            raise Conflict(f"Sweet with name '{sweet_data.name}' already exists")

        sweet = Sweet(
            name=sweet_data.name,
            category=sweet_data.category,
            price=price,
            quantity=sweet_data.quantity,
            description=sweet_data.description,
        )
        self.db.add(sweet)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent create of the same name
            self.db.rollback()
            raise Conflict(f"Sweet with name '{sweet_data.name}' already exists")
        self.db.refresh(sweet)

        logger.info(f"Sweet {sweet.id} '{sweet.name}' created with quantity {sweet.quantity}")
        return sweet

    def get(self, sweet_id: UUID) -> Sweet:
        """Get an active sweet by ID or raise NotFound."""
        sweet = (
            self.db.query(Sweet)
            .filter(Sweet.id == sweet_id, Sweet.is_active.is_(True))
            .first()
        )
        if not sweet:
            raise NotFound(f"Sweet with ID {sweet_id} not found")
        return sweet

    def get_cached(self, sweet_id: UUID) -> dict[str, Any]:
        """
        Get sweet details from cache or database.
        Returns a dictionary (suitable for API response).
        """
        return cache_service.get_or_load(
            self.CACHE_PREFIX,
            str(sweet_id),
            lambda: self._to_cache_dict(self.get(sweet_id)),
        )

    def list_all(self) -> List[Sweet]:
        return self._active().order_by(Sweet.name).all()

    def search(
        self,
        name: Optional[str] = None,
        category: Optional[str] = None,
        min_price: Optional[str] = None,
        max_price: Optional[str] = None,
    ) -> List[Sweet]:
        """
        Search active sweets. All filters are optional and combined with AND.

        Args:
            name: Case-insensitive substring of the name
            category: Exact category
            min_price: Inclusive lower price bound (decimal string)
            max_price: Inclusive upper price bound (decimal string)

        Raises:
            InvalidQuery: a price bound is malformed or negative, or min > max
        """
        low = parse_price_bound(min_price, "minPrice")
        high = parse_price_bound(max_price, "maxPrice")
        if low is not None and high is not None and low > high:
            raise InvalidQuery(
                "Invalid price range: minimum price cannot be greater than maximum price"
            )

        query = self._active()
        if name:
            query = query.filter(Sweet.name.ilike(f"%{_escape_like(name)}%", escape="\\"))
        if category:
            query = query.filter(Sweet.category == category)
        if low is not None:
            query = query.filter(Sweet.price >= low)
        if high is not None:
            query = query.filter(Sweet.price <= high)

        return query.order_by(Sweet.name).all()

    def update(self, sweet_id: UUID, sweet_data: SweetUpdate) -> Sweet:
        """
        Update an existing sweet. Only provided fields are changed. An explicit
        null clears the description and is ignored for every other field.

        Raises:
            NotFound: no active sweet with this ID
            ValidationFailed: nothing to update, or price/quantity out of range
            Conflict: the new name belongs to another active sweet
        """
        update_data = {
            field: value
            for field, value in sweet_data.model_dump(exclude_unset=True).items()
            if value is not None or field == "description"
        }
        if not update_data:
            raise ValidationFailed("No valid fields to update")

        if "price" in update_data:
            update_data["price"] = self._check_price(update_data["price"])
        if "quantity" in update_data:
            self._check_quantity(update_data["quantity"])

        sweet = self.get(sweet_id)

        new_name = update_data.get("name")
        if new_name is not None and new_name != sweet.name and self._name_taken(new_name):
            raise Conflict(f"Sweet with name '{new_name}' already exists")

        for field, value in update_data.items():
            setattr(sweet, field, value)

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict(f"Sweet with name '{new_name}' already exists")
        self.db.refresh(sweet)

        self._invalidate_cache(sweet_id)
        logger.info(f"Sweet {sweet_id} updated: {sorted(update_data)}")
        return sweet

    def delete(self, sweet_id: UUID) -> None:
        """
        Soft-delete a sweet. Existing purchase records keep their reference;
        the name becomes available for a new sweet.
        """
        sweet = self.get(sweet_id)
        sweet.is_active = False
        sweet.deleted_at = datetime.now(timezone.utc)
        self.db.commit()

        self._invalidate_cache(sweet_id)
        logger.info(f"Sweet {sweet_id} deleted")

    def _active(self):
        return self.db.query(Sweet).filter(Sweet.is_active.is_(True))

    def _name_taken(self, name: str) -> bool:
        return self._active().filter(Sweet.name == name).first() is not None

    @staticmethod
    def _check_price(price: Decimal) -> Decimal:
        if price is None or price <= 0:
            raise ValidationFailed(
                "Price must be greater than 0",
                details=[{"field": "price", "message": "must be greater than 0"}],
            )
        return Decimal(price).quantize(CENTS, rounding=ROUND_HALF_UP)

    @staticmethod
    def _check_quantity(quantity: int) -> None:
        if quantity is None or quantity < 0:
            raise ValidationFailed(
                "Quantity cannot be negative",
                details=[{"field": "quantity", "message": "must be greater than or equal to 0"}],
            )

    @staticmethod
    def _to_cache_dict(sweet: Sweet) -> dict[str, Any]:
        return {
            "id": str(sweet.id),
            "name": sweet.name,
            "category": sweet.category,
            "price": str(sweet.price),
            "quantity": sweet.quantity,
            "description": sweet.description,
            "created_at": sweet.created_at.isoformat(),
            "updated_at": sweet.updated_at.isoformat(),
        }

    def _invalidate_cache(self, sweet_id: UUID) -> None:
        """Invalidate cache for a sweet."""
        cache_service.invalidate(self.CACHE_PREFIX, str(sweet_id))
