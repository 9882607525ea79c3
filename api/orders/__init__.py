"""Orders API endpoints."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status, Security
from pydantic import BaseModel, Field, field_validator

from auth import get_current_user, AuthenticatedUser
from errors import MarketplaceError
from items import DEFAULT_LIMIT, MAX_LIMIT
from orders import OrderManager, MAX_QUANTITY

# Create router
router = APIRouter(
    prefix="/orders",
    tags=["Orders"]
)

class OrderLine(BaseModel):
    """Request model for an order line."""
    item_id: UUID
    quantity: int = Field(1, ge=1, le=MAX_QUANTITY)

class CreateOrderRequest(BaseModel):
    """Request model for placing an order."""
    items: List[OrderLine] = Field(..., min_length=1)

    @field_validator('items')
    @classmethod
    def items_must_be_unique(cls, items):
        item_ids = [line.item_id for line in items]
        if len(item_ids) != len(set(item_ids)):
            raise ValueError("Each item may appear only once per order")
        return items

class UpdateOrderStatusRequest(BaseModel):
    """Request model for changing an order's status."""
    status: str = Field(..., description="processing, completed or cancelled")

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    order_request: CreateOrderRequest,
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """Place an order for one or more items."""
    try:
        order = await OrderManager().create_order(
            buyer_id=current_user.id,
            line_items=[line.model_dump() for line in order_request.items]
        )
        return {"order": order}
    except MarketplaceError as e:
        # Rejected orders are all answered with 400
        code = e.status_code if e.status_code >= 500 else status.HTTP_400_BAD_REQUEST
        raise HTTPException(status_code=code, detail=e.message)

@router.get("")
async def list_orders(
    status: Optional[str] = Query(None, description="Optional order status filter"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """List all orders. Admin only."""
    try:
        return await OrderManager().list_orders(current_user, status=status, page=page, limit=limit)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

# Buyer's own orders before the order ID route
@router.get("/user")
async def list_my_orders(
    status: Optional[str] = Query(None, description="Optional order status filter"),
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """Get the current user's orders."""
    try:
        return {"orders": await OrderManager().list_user_orders(current_user.id, status)}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.get("/{order_id}")
async def get_order(
    order_id: UUID,
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """Get order details. Buyer only."""
    try:
        return {"order": await OrderManager().get_order(order_id, current_user)}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: UUID,
    update: UpdateOrderStatusRequest,
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """Move an order to a new status. Buyer only."""
    try:
        order = await OrderManager().update_order_status(order_id, update.status, current_user)
        return {"order": order}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

# Export the router
__all__ = ['router']
