from fastapi import APIRouter

from labforms.api.v1.endpoints import bookings, forms, health

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(forms.router, prefix="/forms", tags=["Forms"])
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])
api_router.include_router(health.router, prefix="/health", tags=["Health"])

__all__ = ["api_router"]
