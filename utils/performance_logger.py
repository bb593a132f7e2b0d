import time
import logging
from functools import wraps
from typing import Callable, Any, Optional
import os

# Performance thresholds configuration
PERFORMANCE_CONFIG = {
    'SLOW_QUERY_THRESHOLD_MS': float(os.getenv('SLOW_QUERY_THRESHOLD_MS', '100')),
    'PERMISSION_QUERY_THRESHOLD_MS': float(os.getenv('PERMISSION_QUERY_THRESHOLD_MS', '50')),
    'BULK_OPERATION_THRESHOLD_MS': float(os.getenv('BULK_OPERATION_THRESHOLD_MS', '200')),
    'ENABLE_DEBUG_LOGGING': os.getenv('ENABLE_PERFORMANCE_DEBUG', 'false').lower() == 'true'
}

# Configure performance logger
performance_logger = logging.getLogger('performance')
performance_logger.setLevel(logging.DEBUG if PERFORMANCE_CONFIG['ENABLE_DEBUG_LOGGING'] else logging.INFO)

# Configure permission-specific logger
permission_logger = logging.getLogger('performance.permissions')
permission_logger.setLevel(logging.INFO)

# Create handlers if not exist
if not performance_logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    handler.setFormatter(formatter)
    performance_logger.addHandler(handler)

if not permission_logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        '%(asctime)s - PERMISSION_PERF - %(message)s'
    )
    handler.setFormatter(formatter)
    permission_logger.addHandler(handler)


def _threshold_for(operation_type: str) -> float:
    if operation_type == "permission":
        return PERFORMANCE_CONFIG['PERMISSION_QUERY_THRESHOLD_MS']
    if operation_type == "bulk":
        return PERFORMANCE_CONFIG['BULK_OPERATION_THRESHOLD_MS']
    return PERFORMANCE_CONFIG['SLOW_QUERY_THRESHOLD_MS']


def performance_monitor(operation_name: str = None,
                        log_threshold_ms: Optional[float] = None,
                        operation_type: str = "general"):
    """
    Decorator to monitor and log performance of database operations.

    Args:
        operation_name: Name of the operation being monitored
        log_threshold_ms: Threshold in milliseconds above which to log performance
        operation_type: Type of operation ('permission', 'bulk', 'general')
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            start_time = time.perf_counter()
            threshold = log_threshold_ms if log_threshold_ms is not None else _threshold_for(operation_type)
            op_name = operation_name or f"{func.__module__}.{func.__name__}"
            logger = permission_logger if operation_type == "permission" else performance_logger

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                logger.error(
                    f"ERROR - {op_name} failed after {duration_ms:.2f}ms - {str(e)}"
                )
                raise

            duration_ms = (time.perf_counter() - start_time) * 1000
            if duration_ms >= threshold:
                logger.warning(
                    f"SLOW_{operation_type.upper()} - {op_name} took {duration_ms:.2f}ms "
                    f"(threshold: {threshold}ms)"
                )
            elif PERFORMANCE_CONFIG['ENABLE_DEBUG_LOGGING']:
                logger.debug(
                    f"{op_name} took {duration_ms:.2f}ms (threshold: {threshold}ms)"
                )
            return result

        return wrapper
    return decorator


class PerformanceTracker:
    """Context manager for tracking performance of code blocks."""

    def __init__(self, operation_name: str, log_threshold_ms: float = 50.0):
        self.operation_name = operation_name
        self.log_threshold_ms = log_threshold_ms
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.perf_counter()
        duration_ms = (self.end_time - self.start_time) * 1000

        if exc_type is not None:
            performance_logger.error(
                f"ERROR - {self.operation_name} failed after {duration_ms:.2f}ms - {str(exc_val)}"
            )
        elif duration_ms >= self.log_threshold_ms:
            performance_logger.info(
                f"SLOW_OPERATION - {self.operation_name} took {duration_ms:.2f}ms "
                f"(threshold: {self.log_threshold_ms}ms)"
            )
        else:
            performance_logger.debug(
                f"{self.operation_name} took {duration_ms:.2f}ms"
            )

    @property
    def duration_ms(self) -> float:
        """Get the duration in milliseconds (so far, while still inside the block)."""
        if self.start_time is None:
            return 0.0
        end_time = self.end_time if self.end_time is not None else time.perf_counter()
        return (end_time - self.start_time) * 1000


def log_permission_query_stats(user_id: int, resource_type: str, resource_count: int,
                               duration_ms: float, query_type: str = "single"):
    """
    Log statistics about permission resolutions for analysis.

    Args:
        user_id: ID of the user
        resource_type: Type of resource ('file', 'folder', 'folder_tree')
        resource_count: Number of resources resolved
        duration_ms: Duration of the resolution in milliseconds
        query_type: Type of query ('single', 'children', 'subtree')
    """
    threshold = PERFORMANCE_CONFIG['PERMISSION_QUERY_THRESHOLD_MS']

    log_message = (
        f"PERMISSION_QUERY - user_id: {user_id}, type: {resource_type}, "
        f"count: {resource_count}, duration: {duration_ms:.2f}ms, "
        f"query_type: {query_type}"
    )

    if duration_ms >= threshold:
        permission_logger.warning(f"SLOW - {log_message}")
    else:
        permission_logger.debug(log_message)
