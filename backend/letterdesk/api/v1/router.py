from fastapi import APIRouter
from letterdesk.api.v1.endpoints import auth, letters

api_router = APIRouter()


@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint for load balancer"""
    return {"status": "healthy", "service": "letterdesk-backend"}


api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(letters.router, prefix="/letters", tags=["Letters"])
