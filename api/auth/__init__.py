"""Authentication API endpoints."""

from typing import Optional

from fastapi import APIRouter, HTTPException, status, Security
from pydantic import BaseModel, EmailStr, Field

from auth import manager, get_current_user, AuthenticatedUser, ROLE_USER
from errors import MarketplaceError

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

class RegisterRequest(BaseModel):
    """Request model for registering an account."""
    email: EmailStr
    password: str = Field(..., min_length=6, description="At least 6 characters")
    name: str = Field(..., min_length=1)
    role: str = Field(ROLE_USER, description="USER or ADMIN")
    admin_code: Optional[str] = Field(None, description="Required when role is ADMIN")

class LoginRequest(BaseModel):
    """Request model for logging in."""
    email: str
    password: str

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest):
    """Register a new account and start a session."""
    try:
        return await manager.register(
            email=request.email,
            password=request.password,
            name=request.name,
            role=request.role,
            admin_code=request.admin_code
        )
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.post("/login")
async def login(request: LoginRequest):
    """Log in with email and password."""
    try:
        return await manager.login(request.email, request.password)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.get("/me")
async def me(current_user: AuthenticatedUser = Security(get_current_user)):
    """Get the current user's profile."""
    try:
        return {"user": await manager.get_user(current_user.id)}
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

# Export the router
__all__ = ['router']
