"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import trips, companions

router = APIRouter()

# Trip lifecycle, ingestion, detail, events and analytics
router.include_router(trips.router)

# Saved companion contacts
router.include_router(companions.router)
