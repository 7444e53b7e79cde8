"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from marketplace.api.routes.auth_routes import router as auth_router
from marketplace.api.routes.student_routes import router as student_router
from marketplace.api.routes.professor_routes import router as professor_router
from marketplace.api.routes.opportunity_routes import router as opportunity_router
from marketplace.api.routes.notification_routes import router as notification_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(student_router)
api_router.include_router(professor_router)
api_router.include_router(opportunity_router)
api_router.include_router(notification_router)
