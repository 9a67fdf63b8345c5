from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from sweetshop.api.deps import get_current_user
from sweetshop.database import get_db
from sweetshop.schemas.purchase import PurchaseListResponse, PurchaseResponse
from sweetshop.security import Principal
from sweetshop.services.inventory_service import InventoryService

router = APIRouter(prefix="/purchases", tags=["Purchases"])


@router.get(
    "",
    response_model=PurchaseListResponse,
    summary="List purchases",
    description="Paginated purchase history. Regular users see their own purchases, admins see all."
)
def list_purchases(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    sweet_id: Optional[UUID] = Query(None, description="Only purchases of this sweet"),
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    purchases, total, total_pages = InventoryService(db).get_purchases(user, page, page_size, sweet_id)

    return PurchaseListResponse(
        items=[PurchaseResponse.model_validate(p) for p in purchases],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages
    )
