"""
API v1 Router
Aggregates all API endpoints
"""
from fastapi import APIRouter

from marketplace.api.v1 import auth, listings, uploads


api_router = APIRouter()

# Include all route modules
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(listings.router, prefix="/listings", tags=["listings"])
api_router.include_router(uploads.router, prefix="/uploads", tags=["uploads"])
