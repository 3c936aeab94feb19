"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from travel_booking.api.routes import auth, packages, bookings, admin

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(packages.router)
api_router.include_router(bookings.router)
api_router.include_router(admin.router)
