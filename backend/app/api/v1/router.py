"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import auth, admin, tokens, vehicles

router = APIRouter()

# Include authentication endpoints
router.include_router(auth.router)

# Include admin endpoints
router.include_router(admin.router)

# Print token issuance, exit marking and reports
router.include_router(tokens.router)

# Vehicle types and rates (read-only)
router.include_router(vehicles.router)
