"""Thread management for the test dispatcher and numpy BLAS calls.

PopPAnTe runs one variance-components test per worker thread. Each test
does many small dense solves, so letting BLAS spawn its own threads inside
every worker oversubscribes the machine. Two knobs are exposed:
- get_worker_count: size of the test worker pool
- blas_threads: scoped BLAS thread cap for numpy operations
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import contextmanager

import psutil
from loguru import logger
from threadpoolctl import threadpool_limits


def _env_int(name: str, max_value: int) -> int | None:
    """Read a positive integer override from the environment."""
    raw = os.environ.get(name)
    if raw is None:
        return None
    try:
        n = int(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not a valid integer, ignoring it")
        return None
    return max(1, min(n, max_value))


def get_worker_count(requested: int | None = None) -> int:
    """Determine the number of test worker threads.

    Priority:
    1. Explicit request (CLI --threads or AnalysisConfig.threads)
    2. POPPANTE_THREADS env var
    3. A single worker

    Returns:
        Positive integer, capped at os.cpu_count().
    """
    max_threads = os.cpu_count() or 1
    if requested is not None and requested > 0:
        return min(requested, max_threads)

    n = _env_int("POPPANTE_THREADS", max_threads)
    if n is not None:
        logger.debug(f"Worker threads from POPPANTE_THREADS: {n}")
        return n
    return 1


def get_blas_thread_count(n_workers: int = 1) -> int:
    """Determine the number of BLAS threads per worker.

    Priority:
    1. POPPANTE_BLAS_THREADS env var
    2. Physical core count divided among the workers

    Args:
        n_workers: Number of concurrent worker threads sharing the cores.

    Returns:
        Positive integer thread count, capped at os.cpu_count().
    """
    max_threads = os.cpu_count() or 64

    n = _env_int("POPPANTE_BLAS_THREADS", max_threads)
    if n is not None:
        logger.debug(f"BLAS threads from POPPANTE_BLAS_THREADS: {n}")
        return n

    physical = psutil.cpu_count(logical=False) or max_threads
    n = max(1, min(physical // max(n_workers, 1), max_threads))
    logger.debug(f"BLAS threads from physical core count: {n}")
    return n


@contextmanager
def blas_threads(n_threads: int | None = None) -> Generator[None, None, None]:
    """Context manager for scoped BLAS thread control.

    Args:
        n_threads: Number of BLAS threads. None uses get_blas_thread_count().

    Example:
        >>> with blas_threads(1):
        ...     eigenvalues, eigenvectors = np.linalg.eigh(K)
    """
    if n_threads is None:
        n_threads = get_blas_thread_count()

    with threadpool_limits(limits=n_threads, user_api="blas"):
        yield
