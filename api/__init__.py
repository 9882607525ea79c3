"""REST API module for the marketplace.

This module provides HTTP endpoints for:
- Registration, login and the current user
- Browsing and managing item listings
- Placing and managing orders
- Managing wishlists
- User administration
- Health checks
"""

import logging
from datetime import datetime, timezone
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings_conf
from database import init_db, close as db_close

logger = logging.getLogger(__name__)

# Lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("Initializing database...")
    await init_db()
    logger.info("API ready")

    yield

    logger.info("Shutting down API...")
    await db_close()

# Create FastAPI app
app = FastAPI(
    title="Thrift Market API",
    description="REST API for the Thrift Market second-hand marketplace",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings_conf['cors_origins'],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def _format_validation_error(error) -> str:
    location = '.'.join(str(part) for part in error['loc'] if part not in ('body', 'query', 'path'))
    return f"{location}: {error['msg']}" if location else error['msg']

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Answer malformed requests with 400 and the validation messages."""
    messages = [_format_validation_error(e) for e in exc.errors()]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "; ".join(messages) or "Invalid request",
            "errors": jsonable_encoder(exc.errors(), custom_encoder={Exception: str})
        }
    )

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log unexpected failures and hide their details from the client."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )

@app.get("/health", tags=["System"])
async def health():
    """Liveness check."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }

# Import and include all routers
from .auth import router as auth_router
from .items import router as items_router
from .orders import router as orders_router
from .wishlists import router as wishlists_router
from .users import router as users_router

app.include_router(auth_router)
app.include_router(items_router)
app.include_router(orders_router)
app.include_router(wishlists_router)
app.include_router(users_router)
