"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter
from tracker.api.routes import (
    sessions, locations, images, feedback, imports, health
)

api_router = APIRouter()

# Include all route modules
api_router.include_router(sessions.router)
api_router.include_router(locations.router)
api_router.include_router(images.router)
api_router.include_router(feedback.router)
api_router.include_router(imports.router)
api_router.include_router(health.router)
