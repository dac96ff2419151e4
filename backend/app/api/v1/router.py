"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import auth, users, parcels, locations, analytics

router = APIRouter()

router.include_router(auth.router)
router.include_router(users.router)
router.include_router(parcels.router)
router.include_router(locations.router)
router.include_router(analytics.router)
