"""API router: aggregates all endpoints."""

from fastapi import APIRouter

from privacyguard.api import assessments, health, locate, pending, root

api_router = APIRouter()

api_router.include_router(root.router)
api_router.include_router(health.router)
api_router.include_router(assessments.router)
api_router.include_router(pending.router)
api_router.include_router(locate.router)
