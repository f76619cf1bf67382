"""Medição de latência por componente."""

from __future__ import annotations

import contextlib
import time
from collections.abc import Generator

from skiddly.observability.logging import get_logger

logger = get_logger(__name__)


@contextlib.contextmanager
def timed(component: str) -> Generator[None, None, None]:
    """Mede e loga o tempo do bloco.

    Uso:
        with timed("dispatch_due"):
            ...
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "component_latency",
            extra={"component": component, "elapsed_ms": round(elapsed_ms, 2)},
        )
