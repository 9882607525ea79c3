"""User administration API endpoints. Admin only."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Security
from pydantic import BaseModel, Field

from auth import get_current_user, AuthenticatedUser
from errors import MarketplaceError
from users import UserManager

router = APIRouter(
    prefix="/users",
    tags=["Users"]
)

class UpdateRoleRequest(BaseModel):
    """Request model for changing a user's role."""
    role: str = Field(..., description="USER or ADMIN")

@router.get("")
async def list_users(current_user: AuthenticatedUser = Security(get_current_user)):
    """List all users."""
    try:
        return {"users": await UserManager().list_users(current_user)}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.patch("/{user_id}/role")
async def update_user_role(
    user_id: UUID,
    request: UpdateRoleRequest,
    current_user: AuthenticatedUser = Security(get_current_user)
):
    """Change a user's role."""
    try:
        user = await UserManager().update_user_role(user_id, request.role, current_user)
        return {"user": user}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

# Export the router
__all__ = ['router']
