"""
Lifespan startup and shutdown task functions.

Each function handles a single step of the startup or shutdown sequence.
"""

import logging


async def initialize_logging(log_config):
    """Setup logging configuration."""
    from core.logging_config import setup_logging

    setup_logging(log_config)
    logging.getLogger("main").info("Starting Complaint Portal API...")


async def log_cors_configuration(settings, logger):
    """Log CORS configuration for debugging."""
    logger.info(f"CORS Allowed Origins: {settings.cors.origins}")


async def initialize_database():
    """Initialize database tables."""
    from core.database import init_db

    logger = logging.getLogger("main")
    await init_db()
    logger.info("Database initialized")


async def initialize_identity_provider(app, settings):
    """Select the identity provider from settings and store it on app.state."""
    from services.identity_service import build_identity_provider

    logger = logging.getLogger("main")
    provider = build_identity_provider(settings)
    app.state.identity_provider = provider
    logger.info(f"Identity provider: {provider.name}")


async def shutdown_database():
    """Close database connections."""
    from core.database import close_db

    logger = logging.getLogger("main")
    await close_db()
    logger.info("Database connections closed")
