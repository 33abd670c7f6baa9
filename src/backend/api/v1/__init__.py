"""
API v1 routes.

HTTP routes are mounted under the v1 prefix; the dashboard WebSocket lives
on its own path (settings.websocket.path) and is exported separately.
"""

from fastapi import APIRouter

from .endpoints import auth, complaints, dashboard_socket, stats

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(complaints.router, tags=["Complaints"])
api_router.include_router(stats.router, tags=["Stats"])

websocket_router = dashboard_socket.router

__all__ = ["api_router", "websocket_router"]
