"""
Realtime dashboard WebSocket endpoint.

Authentication happens once, at connect time, from the identity and role
cookies. A rejected client is accepted just long enough to receive a
connect_error event and is then closed with code 4001.
"""

import logging

from fastapi import APIRouter, Depends, WebSocket

from core.config import settings
from core.dependencies import authenticate_cookies, get_scope_resolver, get_snapshot_provider
from core.exceptions import PortalError
from core.role_scope import RoleScopeResolver
from services.dashboard_channel import ChannelIntervals, DashboardConnection, reject
from services.dashboard_service import DashboardService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket(settings.websocket.path)
async def dashboard_socket(
    websocket: WebSocket,
    provider: DashboardService = Depends(get_snapshot_provider),
    resolver: RoleScopeResolver = Depends(get_scope_resolver),
):
    try:
        admin = authenticate_cookies(websocket.cookies)
        scopes = resolver.resolve_all(admin.role)
    except PortalError as e:
        logger.info(f"Dashboard connection rejected: {e.message}")
        await reject(websocket, e.message)
        return

    await websocket.accept()
    connection = DashboardConnection(
        websocket=websocket,
        username=admin.username,
        scopes=scopes,
        provider=provider,
        intervals=ChannelIntervals.from_settings(settings.websocket),
    )
    await connection.run()
