"""Wishlists API endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, status, Security
from pydantic import BaseModel, Field

from auth import get_current_user, AuthenticatedUser
from errors import MarketplaceError
from wishlists import WishlistManager

router = APIRouter(
    prefix="/wishlists",
    tags=["Wishlists"]
)

class CreateWishlistRequest(BaseModel):
    """Request model for creating a wishlist."""
    name: str = Field(..., min_length=1)
    is_public: bool = False

class UpdateWishlistRequest(BaseModel):
    """Request model for updating a wishlist. Omitted fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=1)
    is_public: Optional[bool] = None

class AddWishlistItemRequest(BaseModel):
    """Request model for adding an item to a wishlist."""
    item_id: UUID

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_wishlist(
    request: CreateWishlistRequest,
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """Create a wishlist."""
    try:
        wishlist = await WishlistManager().create_wishlist(
            current_user.id, request.name, request.is_public
        )
        return {"wishlist": wishlist}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.get("")
async def list_wishlists(current_user: AuthenticatedUser = Security(get_current_user)):
    """Get the current user's wishlists."""
    try:
        return {"wishlists": await WishlistManager().list_wishlists(current_user.id)}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.get("/{wishlist_id}")
async def get_wishlist(
    wishlist_id: UUID,
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """Get a wishlist. Owner only."""
    try:
        return {"wishlist": await WishlistManager().get_wishlist(wishlist_id, current_user)}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.put("/{wishlist_id}")
async def update_wishlist(
    wishlist_id: UUID,
    update: UpdateWishlistRequest,
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """Rename a wishlist or change its visibility. Owner only."""
    try:
        wishlist = await WishlistManager().update_wishlist(
            wishlist_id,
            update.model_dump(exclude_unset=True),
            current_user
        )
        return {"wishlist": wishlist}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.delete("/{wishlist_id}")
async def delete_wishlist(
    wishlist_id: UUID,
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """Delete a wishlist. Owner only."""
    try:
        await WishlistManager().delete_wishlist(wishlist_id, current_user)
        return {"message": "Wishlist deleted successfully"}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.post("/{wishlist_id}/items", status_code=status.HTTP_201_CREATED)
async def add_wishlist_item(
    wishlist_id: UUID,
    request: AddWishlistItemRequest,
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """Add an item to a wishlist. Owner only."""
    try:
        entry = await WishlistManager().add_item(wishlist_id, request.item_id, current_user)
        return {"wishlistItem": entry}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.delete("/{wishlist_id}/items/{item_id}")
async def remove_wishlist_item(
    wishlist_id: UUID,
    item_id: UUID,
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """Remove an item from a wishlist. Owner only."""
    try:
        await WishlistManager().remove_item(wishlist_id, item_id, current_user)
        return {"message": "Item removed from wishlist"}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

# Export the router
__all__ = ['router']
