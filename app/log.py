# app/log.py
import asyncio
import logging
import sys
import time
from typing import Callable

from fastapi import Request

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("app.access")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[logging.StreamHandler()])


async def log_requests(request: Request, call_next):
    """HTTP middleware: one access line per request."""
    start = time.perf_counter()
    # an exception escaping call_next becomes a 500 further out
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info("%s %s %s %.1fms", request.method, request.url.path, status, elapsed_ms)


# ---------------------------
# Fatal errors
# ---------------------------
def _exit_on_uncaught(exc_type, exc, tb):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc, tb)
        return
    logging.getLogger("app").critical("Uncaught exception", exc_info=(exc_type, exc, tb))
    sys.exit(1)


def install_fatal_handlers(on_fatal: Callable[[], None]) -> None:
    """
    Log uncaught exceptions and unhandled task errors at CRITICAL.

    Must be called from inside the running loop. on_fatal is invoked after an
    unhandled task error so the caller can stop serving and exit non-zero.
    """
    sys.excepthook = _exit_on_uncaught

    def _handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
        logging.getLogger("app").critical(
            "Unhandled error in event loop: %s", context.get("message"),
            exc_info=context.get("exception"),
        )
        on_fatal()

    asyncio.get_running_loop().set_exception_handler(_handler)
