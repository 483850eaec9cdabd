# backend/sati/services/base.py
"""
Base service for the SATI platform.

Every service gets a class-named logger, account cache invalidation and the
``measure_operation`` decorator, which times a call and reports it to
Prometheus.
"""

from functools import wraps
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar, cast

from sqlalchemy.orm import Session

from ..monitoring.prometheus_metrics import prometheus_metrics

if TYPE_CHECKING:
    from .cache_service import TTLCache

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """
    Base class for all service layer components.

    Transactions are owned by repositories (``with self.repository.transaction()``)
    so the same service code runs against SQLAlchemy and in-memory storage.
    """

    def __init__(self, db: Optional[Session], cache: Optional["TTLCache"] = None):
        """
        Args:
            db: Database session, None when every repository is injected
            cache: Shared account-view cache, if the service writes payments
        """
        self.db = db
        self.cache = cache
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Time a service method and record it as a Prometheus observation.

        Usage:
            @BaseService.measure_operation("create_booking")
            def create_booking(self, actor, data):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(
                            f"Slow operation detected: {operation_name} took {elapsed:.2f}s"
                        )
                    try:
                        prometheus_metrics.record_service_operation(
                            service=self.__class__.__name__,
                            operation=operation_name,
                            duration=elapsed,
                            status="error" if error_type else "success",
                            error_type=error_type,
                        )
                    except Exception:
                        # Metrics never break the operation
                        logger.debug("Failed to record metrics for %s", operation_name)

            return cast(F, wrapper)

        return decorator

    def invalidate_cache(self, *keys: str) -> None:
        if not self.cache:
            return
        for key in keys:
            self.cache.invalidate(key)
            self.logger.debug(f"Invalidated cache key: {key}")

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log an operation with context. Use @measure_operation for timing."""
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})
