"""Items API endpoints.

Browsing the catalog and fetching a single item are public; everything
else needs a session token.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status, Security, Depends
from pydantic import BaseModel, Field

from auth import get_current_user, AuthenticatedUser
from errors import MarketplaceError
from items import ItemManager, DEFAULT_LIMIT, MAX_LIMIT

router = APIRouter(
    prefix="/items",
    tags=["Items"]
)

# Model definitions
class ItemFilters(BaseModel):
    """Catalog search filters."""
    search: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    size: Optional[str] = None
    condition: Optional[str] = None
    category: Optional[str] = None
    status: str = 'available'
    sort: str = 'newest'
    page: int = 1
    limit: int = DEFAULT_LIMIT

def item_filters(
    search: Optional[str] = Query(None, description="Text matched against title and description"),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    size: Optional[str] = Query(None),
    condition: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    status: str = Query('available', description="available, reserved or sold"),
    sort: str = Query('newest', description="newest, oldest, price_asc or price_desc"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)
) -> ItemFilters:
    """Collect catalog query parameters into an ItemFilters model."""
    return ItemFilters(
        search=search,
        min_price=min_price,
        max_price=max_price,
        size=size,
        condition=condition,
        category=category,
        status=status,
        sort=sort,
        page=page,
        limit=limit
    )

class CreateItemRequest(BaseModel):
    """Request model for listing an item."""
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    size: str = Field(..., min_length=1)
    condition: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    photo_url: str = Field(..., min_length=1, description="URL of the item photo")

class UpdateItemRequest(BaseModel):
    """Request model for updating an item. Omitted fields are left unchanged."""
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    size: Optional[str] = Field(None, min_length=1)
    condition: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    photo_url: Optional[str] = Field(None, min_length=1)
    status: Optional[str] = None

@router.get("")
async def list_items(filters: ItemFilters = Depends(item_filters)):
    """Browse the catalog with filters and pagination."""
    try:
        return await ItemManager().search_items(**filters.model_dump())
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.get("/user/items")
async def list_my_items(
    status: Optional[str] = Query(None, description="Optional item status filter"),
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """Get the current user's items."""
    try:
        return {"items": await ItemManager().list_user_items(current_user.id, status)}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.get("/{item_id}")
async def get_item(item_id: UUID):
    """Get an item by ID."""
    try:
        return {"item": await ItemManager().get_item(item_id)}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_item(
    item: CreateItemRequest,
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """List a new item for sale."""
    try:
        result = await ItemManager().create_item(
            owner_id=current_user.id,
            title=item.title,
            description=item.description,
            price=item.price,
            size=item.size,
            condition=item.condition,
            category=item.category,
            photo_url=item.photo_url
        )
        return {"item": result}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.put("/{item_id}")
async def update_item(
    item_id: UUID,
    update: UpdateItemRequest,
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """Update an item. Owner or admin only."""
    try:
        result = await ItemManager().update_item(
            item_id,
            update.model_dump(exclude_unset=True),
            current_user
        )
        return {"item": result}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.delete("/{item_id}")
async def delete_item(
    item_id: UUID,
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """Delete an item. Owner or admin only."""
    try:
        await ItemManager().delete_item(item_id, current_user)
        return {"message": "Item deleted successfully"}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

# Export the router
__all__ = ['router']
