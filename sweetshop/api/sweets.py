from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from sweetshop.api.deps import get_current_user, require_admin
from sweetshop.database import get_db
from sweetshop.schemas.common import MessageResponse
from sweetshop.schemas.purchase import PurchaseResponse, PurchaseResult
from sweetshop.schemas.sweet import (
    RestockResponse,
    StockChange,
    SweetCreate,
    SweetEnvelope,
    SweetListResponse,
    SweetResponse,
    SweetUpdate,
)
from sweetshop.security import Principal
from sweetshop.services.inventory_service import InventoryService
from sweetshop.services.sweet_service import SweetService
from sweetshop.tasks.purchase_tasks import queue_purchase_notifications

router = APIRouter(prefix="/sweets", tags=["Sweets"])


def _list_response(sweets) -> SweetListResponse:
    return SweetListResponse(
        sweets=[SweetResponse.model_validate(s) for s in sweets],
        total=len(sweets),
    )


@router.get(
    "",
    response_model=SweetListResponse,
    summary="List all sweets",
    description="Get every sweet currently on sale."
)
def list_sweets(
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    return _list_response(SweetService(db).list_all())


@router.get(
    "/search",
    response_model=SweetListResponse,
    summary="Search sweets",
    description="Filter sweets by name, category and price range. Filters combine with AND."
)
def search_sweets(
    name: Optional[str] = Query(None, max_length=255, description="Case-insensitive substring of the name"),
    category: Optional[str] = Query(None, max_length=100, description="Exact category"),
    min_price: Optional[str] = Query(None, alias="minPrice", description="Inclusive minimum price"),
    max_price: Optional[str] = Query(None, alias="maxPrice", description="Inclusive maximum price"),
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    """
    Search sweets.

    An empty result is a normal 200 response. Malformed or negative price
    bounds, or minPrice greater than maxPrice, are rejected with 400.
    """
    sweets = SweetService(db).search(name, category, min_price, max_price)
    return _list_response(sweets)


@router.get(
    "/{sweet_id}",
    response_model=SweetEnvelope,
    summary="Get sweet by ID",
    description="Get a single sweet. Results are cached in Redis."
)
def get_sweet(
    sweet_id: UUID,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    return SweetEnvelope(sweet=SweetResponse.model_validate(SweetService(db).get_cached(sweet_id)))


@router.post(
    "",
    response_model=SweetEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new sweet (admin)",
    description="Create a sweet with name, category, price and initial quantity."
)
def create_sweet(
    sweet_data: SweetCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    """
    Create a new sweet.

    - **name**: Sweet name, unique among sweets on sale (required)
    - **category**: Category (required)
    - **price**: Unit price, must be positive (required)
    - **quantity**: Initial stock, must be non-negative (default 0)
    - **description**: Free text (optional)
    """
    sweet = SweetService(db).create(sweet_data)
    return SweetEnvelope(sweet=SweetResponse.model_validate(sweet))


@router.put(
    "/{sweet_id}",
    response_model=SweetEnvelope,
    summary="Update a sweet (admin)",
    description="Update sweet details. Only provided fields will be updated."
)
def update_sweet(
    sweet_id: UUID,
    sweet_data: SweetUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    sweet = SweetService(db).update(sweet_id, sweet_data)
    return SweetEnvelope(sweet=SweetResponse.model_validate(sweet))


@router.delete(
    "/{sweet_id}",
    response_model=MessageResponse,
    summary="Delete a sweet (admin)",
    description="Remove a sweet from sale. Its purchase history is kept."
)
def delete_sweet(
    sweet_id: UUID,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    SweetService(db).delete(sweet_id)
    return MessageResponse(message="Sweet deleted successfully")


@router.post(
    "/{sweet_id}/purchase",
    response_model=PurchaseResult,
    summary="Purchase a sweet",
    description="""
    Buy units of a sweet.

    **Overselling protection:**
    Stock is decremented with a single conditional UPDATE in the database.
    When several users race for the last units, only the requests that fit
    the remaining stock succeed; the others receive 400 `insufficient_stock`.

    After the purchase commits, receipt and low-stock notifications are
    queued as Celery tasks.
    """
)
def purchase_sweet(
    sweet_id: UUID,
    body: StockChange,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    purchase, remaining = InventoryService(db).purchase(user, sweet_id, body.quantity)
    result = PurchaseResult(purchase=PurchaseResponse.model_validate(purchase))

    queue_purchase_notifications(result.purchase, user, remaining)
    return result


@router.post(
    "/{sweet_id}/restock",
    response_model=RestockResponse,
    summary="Restock a sweet (admin)",
    description="Add units to a sweet's stock."
)
def restock_sweet(
    sweet_id: UUID,
    body: StockChange,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    sweet = InventoryService(db).restock(sweet_id, body.quantity)
    return RestockResponse(sweet=SweetResponse.model_validate(sweet))
