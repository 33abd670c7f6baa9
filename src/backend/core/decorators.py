"""
Error handling decorators for database operations.

Raw SQLAlchemy errors never leave the data layer: they are logged here and
turned into domain errors, or into a default value for best-effort reads.
Domain errors raised inside a decorated function pass through untouched.
"""
import functools
import logging
import traceback
from typing import Any, Callable, Optional

from sqlalchemy.exc import (
    DisconnectionError,
    IntegrityError,
    OperationalError,
    PendingRollbackError,
    SQLAlchemyError,
    StatementError,
    TimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import InternalError, PortalError

logger = logging.getLogger(__name__)


class DatabaseErrorHandler:
    """Classify and log store failures."""

    DATABASE_EXCEPTIONS = (
        SQLAlchemyError,
        PendingRollbackError,
        ConnectionError,
    )

    # (exception types, label, log level, recoverable)
    CLASSIFICATION = (
        ((IntegrityError,), "integrity error", logging.WARNING, False),
        ((ConnectionError, DisconnectionError), "connection error", logging.ERROR, True),
        ((TimeoutError,), "pool timeout", logging.WARNING, True),
        ((OperationalError,), "operational error", logging.ERROR, True),
        ((StatementError,), "statement error", logging.WARNING, False),
    )

    @staticmethod
    def handle_database_error(
        exc: Exception,
        operation: str,
        context: Optional[dict] = None
    ) -> tuple[bool, str]:
        """
        Log a database error at a level matching its kind.

        Returns:
            Tuple of (is_recoverable, error_message)
        """
        suffix = f" | Context: {context}" if context else ""

        for types, label, level, recoverable in DatabaseErrorHandler.CLASSIFICATION:
            if isinstance(exc, types):
                message = f"Database {label} during {operation}: {exc}{suffix}"
                logger.log(level, message)
                return recoverable, message

        message = (
            f"Unexpected database error during {operation}: "
            f"{type(exc).__name__}: {exc}{suffix}"
        )
        logger.error(f"{message}\nTraceback: {traceback.format_exc()}")
        return False, message


def _default(value: Any) -> Any:
    return value() if callable(value) else value


def _find_session(args: tuple, kwargs: dict) -> Optional[AsyncSession]:
    return next(
        (a for a in (*args, *kwargs.values()) if isinstance(a, AsyncSession)),
        None,
    )


def handle_database_exceptions(
    operation_name: Optional[str] = None,
    reraise: bool = True,
    default_return: Any = None,
) -> Callable:
    """
    Wrap an async database operation with error handling.

    Args:
        operation_name: Name used in log lines (defaults to the function name)
        reraise: If True, database errors surface as InternalError and domain
            errors propagate. If False, every failure is logged and
            default_return is returned instead.
        default_return: Value returned on failure when reraise=False.
            Callables are invoked to build a fresh value per failure.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            operation = operation_name or func.__name__
            try:
                result = await func(*args, **kwargs)
                logger.debug(f"Successfully completed {operation}")
                return result

            except PortalError as exc:
                if reraise:
                    raise
                logger.warning(
                    f"{operation} failed ({type(exc).__name__}: {exc.message}), using default"
                )

            except DatabaseErrorHandler.DATABASE_EXCEPTIONS as exc:
                DatabaseErrorHandler.handle_database_error(
                    exc, operation, {"function": func.__name__, "args_count": len(args)}
                )
                if reraise:
                    raise InternalError() from exc
                logger.info(f"Operation {operation} failed but continuing with default return")

            except Exception as exc:
                if reraise:
                    raise
                logger.error(
                    f"Unexpected error in {operation}: {type(exc).__name__}: {exc}\n"
                    f"Traceback: {traceback.format_exc()}"
                )

            return _default(default_return)

        return wrapper

    return decorator


def database_transaction(operation_name: Optional[str] = None) -> Callable:
    """
    Commit the session passed to the wrapped function on success and roll
    it back on any error. The session is found among the arguments.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            operation = operation_name or func.__name__
            db = _find_session(args, kwargs)
            if db is None:
                logger.warning(f"No AsyncSession found for transaction operation {operation}")
                return await func(*args, **kwargs)

            try:
                result = await func(*args, **kwargs)
                await db.commit()
                logger.debug(f"Transaction committed for {operation}")
                return result
            except Exception:
                try:
                    await db.rollback()
                    logger.debug(f"Transaction rolled back for {operation}")
                except Exception as rollback_exc:
                    logger.error(f"Failed to rollback transaction for {operation}: {rollback_exc}")
                raise

        return wrapper

    return decorator


def log_database_operation(operation: str, level: str = "debug") -> Callable:
    """Log start, completion and failure of an operation at ``level``."""
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            log = getattr(logger, level)
            log(f"Starting {operation} via {func.__name__}")
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                log(f"Failed {operation} via {func.__name__}: {exc}")
                raise
            log(f"Completed {operation} via {func.__name__}")
            return result

        return wrapper

    return decorator


def safe_database_query(func=None, operation_name: Optional[str] = None, default_return: Any = None) -> Callable:
    """
    Best-effort read that never raises; failures yield ``default_return``.

    Can be used with or without parentheses:
        @safe_database_query
        async def my_func(...): ...

        @safe_database_query("compute_stats", default_return=AggregateStats.zero)
        async def my_func(...): ...
    """
    if isinstance(func, str):
        operation_name, func = func, None

    decorator = handle_database_exceptions(
        operation_name=operation_name,
        reraise=False,
        default_return=default_return,
    )
    return decorator(func) if func is not None else decorator


def transactional_database_operation(func=None, operation_name: Optional[str] = None) -> Callable:
    """
    Transaction plus error handling for write operations.

    Can be used with or without parentheses:
        @transactional_database_operation
        async def my_func(...): ...

        @transactional_database_operation("update_complaint_status")
        async def my_func(...): ...
    """
    if isinstance(func, str):
        operation_name, func = func, None

    def decorator(f: Callable) -> Callable:
        return handle_database_exceptions(operation_name=operation_name)(
            database_transaction(operation_name=operation_name)(f)
        )

    return decorator(func) if func is not None else decorator
