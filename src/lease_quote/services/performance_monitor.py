"""Performance monitoring decorator for pricing and cost sheet operations."""

import inspect
import time
from collections.abc import Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from beartype import beartype

from ..core.config import get_settings
from ..core.logging_utils import get_logger

P = ParamSpec("P")
T = TypeVar("T")

logger = get_logger(__name__)


@beartype
def performance_monitor(
    operation_name: str,
    max_duration_ms: int | None = None,
    log_slow_operations: bool = True,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator to time calculation and workflow operations.

    Operations slower than the threshold are logged as warnings and
    failures are logged with their duration before being re-raised.

    Args:
        operation_name: Name of the operation for monitoring
        max_duration_ms: Alert threshold in milliseconds; defaults to the
            ``slow_calculation_ms`` setting
        log_slow_operations: Whether to log slow operations
    """

    def _threshold() -> int:
        if max_duration_ms is not None:
            return max_duration_ms
        return get_settings().slow_calculation_ms

    def _report(duration_ms: float) -> None:
        threshold = _threshold()
        if log_slow_operations and duration_ms > threshold:
            logger.warning(
                "PERFORMANCE WARNING: %s took %.2fms (threshold: %dms)",
                operation_name,
                duration_ms,
                threshold,
            )
        else:
            logger.debug("%s completed in %.2fms", operation_name, duration_ms)

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)  # type: ignore[misc]
            except Exception as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                logger.error(
                    "PERFORMANCE ERROR: %s failed after %.2fms: %s",
                    operation_name,
                    duration_ms,
                    e,
                )
                raise
            _report((time.perf_counter() - start_time) * 1000)
            return result

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                logger.error(
                    "PERFORMANCE ERROR: %s failed after %.2fms: %s",
                    operation_name,
                    duration_ms,
                    e,
                )
                raise
            _report((time.perf_counter() - start_time) * 1000)
            return result

        # Return appropriate wrapper based on function type
        if inspect.iscoroutinefunction(func):
            return async_wrapper  # type: ignore[return-value]
        return sync_wrapper

    return decorator
