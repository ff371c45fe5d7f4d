"""
Performance monitoring utilities for the scoring pipeline
Provides a timing decorator and a context manager for timing run stages
"""

import functools
import time

from flask import current_app, has_app_context

from fantasy_corps.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_SLOW_THRESHOLD = 1.0


def _slow_threshold():
    if has_app_context():
        return current_app.config.get("SLOW_FUNCTION_THRESHOLD", DEFAULT_SLOW_THRESHOLD)
    return DEFAULT_SLOW_THRESHOLD


def timer(func):
    """
    Decorator to time function execution

    Args:
        func: Function to time

    Returns:
        Wrapped function with timing
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        try:
            result = func(*args, **kwargs)
            execution_time = time.time() - start_time

            # Log slow functions
            threshold = _slow_threshold()
            if execution_time > threshold:
                logger.warning(
                    f"Slow function {func.__name__} took {execution_time:.2f}s "
                    f"(threshold: {threshold}s)"
                )
            else:
                logger.debug(
                    f"Function {func.__name__} executed in {execution_time:.2f}s"
                )

            return result

        except Exception as e:
            execution_time = time.time() - start_time
            logger.error(
                f"Function {func.__name__} failed after {execution_time:.2f}s: {str(e)}"
            )
            raise

    return wrapper


class PerformanceMonitor:
    """Context manager timing one stage of a scoring run

    Durations are appended to ``metrics`` when a list is given, so a run can
    report per-stage timings in its result.
    """

    def __init__(self, operation_name, log_threshold=0.1, metrics=None):
        self.operation_name = operation_name
        self.log_threshold = log_threshold
        self.metrics = metrics
        self.start_time = None
        self.end_time = None
        self.duration = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.time()
        self.duration = self.end_time - self.start_time

        if self.duration > self.log_threshold:
            if exc_type:
                logger.error(
                    f"Operation '{self.operation_name}' failed after {self.duration:.3f}s: {exc_val}"
                )
            else:
                logger.info(
                    f"Operation '{self.operation_name}' completed in {self.duration:.3f}s"
                )

        if self.metrics is not None:
            self.metrics.append(
                {
                    "operation": self.operation_name,
                    "duration": round(self.duration, 3),
                    "success": exc_type is None,
                }
            )
