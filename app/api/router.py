"""
Top-level API router.
Combines all sub-routers into a single router.
"""

from fastapi import APIRouter

from app.api.health import router as health_router
from app.api.me import router as me_router
from app.api.claim_requests import router as claim_requests_router
from app.api.claim_submit import router as claim_submit_router
from app.api.image_annotations import router as image_annotations_router
from app.api.policies import router as policies_router
from app.api.customers import router as customers_router
from app.api.admin import router as admin_router

api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(me_router)
api_router.include_router(claim_requests_router)
api_router.include_router(claim_submit_router)
api_router.include_router(image_annotations_router)
api_router.include_router(policies_router)
api_router.include_router(customers_router)
api_router.include_router(admin_router)
