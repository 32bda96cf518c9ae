import functools
import logging
import time
import warnings

logger = logging.getLogger("campus.performance")


def time_it(func):
    """Decorator to measure execution time of async functions"""

    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            execution_time = time.perf_counter() - start_time
            logger.debug(f"{func.__name__} completed in {execution_time:.3f} seconds")

    return async_wrapper


def setup_logs(level: int = logging.DEBUG):
    # logging.captureWarnings(True)
    warnings.simplefilter("default")
    logging.getLogger("campus").setLevel(level)
    # passlib complains about newer bcrypt builds not exposing __about__
    logging.getLogger("passlib").setLevel(logging.ERROR)
    logging.basicConfig()
