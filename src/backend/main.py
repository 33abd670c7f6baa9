"""
Complaint Portal API entry point.

    uvicorn main:app            # served by an external process manager
    python main.py              # development server, settings from .env
"""

from app import create_app

app = create_app()


if __name__ == "__main__":
    import uvicorn

    from core.config import settings
    from core.uvicorn_logging import build_uvicorn_log_config

    # Each worker runs its own lifespan and its own dashboard connections
    uvicorn.run(
        "main:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.api.debug,
        workers=1 if settings.api.debug else settings.api.workers,
        log_config=build_uvicorn_log_config(settings.logging.level),
        access_log=True,
        ws_ping_interval=None,  # the dashboard channel runs its own heartbeat
        timeout_graceful_shutdown=10,
        server_header=False,
    )
