"""API v1 router configuration."""

from fastapi import APIRouter

from recipebox.api.v1.endpoints import auth, favorites, health, session, users

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(session.router, tags=["Session"])
api_router.include_router(users.router)
api_router.include_router(favorites.router)
