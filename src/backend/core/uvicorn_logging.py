"""
Uvicorn logging configuration.

Server lines use the application console layout, including the correlation
column, so a failing request can be followed from the handler into uvicorn's
own error output. Socket upgrade and close lines from the dashboard channel
come through ``uvicorn.error``.
"""

from typing import Any, Dict

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def build_uvicorn_log_config(level: str = "INFO") -> Dict[str, Any]:
    """Return a ``logging.config.dictConfig`` mapping for uvicorn."""
    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "correlation": {"()": "core.middleware.correlation.CorrelationIdFilter"},
        },
        "formatters": {
            "default": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": "%(asctime)s | %(name)s | %(levelname)s | %(correlation_id)s | %(message)s",
                "datefmt": DATE_FORMAT,
            },
            # Emitted after the response, outside the request context
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": '%(asctime)s | %(name)s | %(levelname)s | %(client_addr)s - "%(request_line)s" %(status_code)s',
                "datefmt": DATE_FORMAT,
            },
        },
        "handlers": {
            "default": {
                "formatter": "default",
                "filters": ["correlation"],
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
            },
            "access": {
                "formatter": "access",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn.error": {"level": level},
            "uvicorn.access": {"handlers": ["access"], "level": level, "propagate": False},
        },
    }
