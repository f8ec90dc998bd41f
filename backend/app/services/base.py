# backend/app/services/base.py
"""
Base Service Pattern for the trainer booking platform.

Provides common functionality for all service classes including:
- Transaction management
- Logging
- Error handling
- Performance monitoring
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


def _publish_metric(
    service_name: str,
    operation_name: str,
    elapsed: float,
    success: bool,
    error_type: Optional[str] = None,
) -> None:
    try:
        prometheus_metrics.record_service_operation(
            service=service_name,
            operation=operation_name,
            duration=elapsed,
            status="success" if success else "error",
            error_type=error_type,
        )
    except Exception as exc:
        # Metrics collection must not break the operation
        logger.debug("Failed to record service metric %s.%s: %s", service_name, operation_name, exc)


class BaseService:
    """
    Base class for all service layer components.

    Provides common patterns for:
    - Database session management
    - Logging
    - Transaction handling
    - Performance monitoring
    """

    def __init__(self, db: Session):
        """
        Initialize base service.

        Args:
            db: Database session
        """
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Context manager for database transactions.

        Usage:
            with self.transaction():
                # Do multiple operations
                self.db.add(entity)
                # Note: commit is handled automatically
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except SQLAlchemyError as e:
            self.logger.error(f"Transaction failed: {str(e)}")
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {str(e)}")
        except Exception as e:
            self.logger.debug(f"Transaction rolled back: {type(e).__name__}: {str(e)}")
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("book_session")
            def book_session(self, data):
                # Method implementation

        Args:
            operation_name: Name of the operation for metrics

        Returns:
            Decorator function
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                start_time = time.time()
                success = False
                error_type = None
                try:
                    result = func(self, *args, **kwargs)
                    success = True
                    return result
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    BaseService._finish_measurement(
                        self, operation_name, time.time() - start_time, success, error_type
                    )

            return cast(F, wrapper)

        return decorator

    @staticmethod
    def _finish_measurement(
        instance: Any,
        operation_name: str,
        elapsed: float,
        success: bool,
        error_type: Optional[str],
    ) -> None:
        if isinstance(instance, BaseService) and elapsed > SLOW_OPERATION_SECONDS:
            instance.logger.warning(f"Slow operation detected: {operation_name} took {elapsed:.2f}s")
        _publish_metric(instance.__class__.__name__, operation_name, elapsed, success, error_type)

    @contextmanager
    def measure_operation_context(self, operation_name: str) -> Iterator[None]:
        """
        Context manager to measure operation performance.

        Usage:
            with self.measure_operation_context("gateway_call"):
                # Do work here
                pass
        """
        start_time = time.time()
        success = False
        error_type = None
        try:
            yield
            success = True
        except Exception as e:
            error_type = type(e).__name__
            raise
        finally:
            BaseService._finish_measurement(
                self, operation_name, time.time() - start_time, success, error_type
            )

    def log_operation(self, operation: str, **context: Any) -> None:
        """
        Log an operation with context.

        Use @measure_operation or measure_operation_context for timing.
        """
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})

