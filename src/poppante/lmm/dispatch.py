"""Test enumeration and parallel execution.

Tests run in a thread pool; numpy releases the GIL inside the LAPACK calls
that dominate each fit. Results land in slots indexed by test id, so the
output order is the enumeration order whatever the completion order.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed

from loguru import logger

from poppante.core.config import AnalysisConfig, Mode
from poppante.core.progress import progress_iterator
from poppante.core.threading import blas_threads, get_blas_thread_count, get_worker_count
from poppante.dataset import Dataset
from poppante.lmm.stats import NullModel, TestResult
from poppante.lmm.vc import TestSpec, VarianceComponentsTest


def enumerate_tests(n_markers: int, n_responses: int, mode: Mode) -> list[TestSpec]:
    """Tests in output order: for each predictor, for each response."""
    if mode != Mode.ASSOCIATION:
        return [TestSpec(test_id=m, marker=m) for m in range(n_markers)]
    return [
        TestSpec(test_id=m * n_responses + p, marker=m, response=p)
        for m in range(n_markers)
        for p in range(n_responses)
    ]


class NullModelCache:
    """Null models shared by tests with the same response and missingness.

    The first model stored under a key is kept; later stores return it.
    """

    def __init__(self) -> None:
        self._models: dict[tuple[int, str], NullModel] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._models)

    def get(self, key: tuple[int, str]) -> NullModel | None:
        with self._lock:
            model = self._models.get(key)
            if model is not None:
                self.hits += 1
            return model

    def put(self, key: tuple[int, str], model: NullModel) -> NullModel:
        with self._lock:
            self.misses += 1
            return self._models.setdefault(key, model)

    def lookup(
        self, key: tuple[int, str], fit: Callable[[], NullModel]
    ) -> tuple[NullModel, bool]:
        """Return the cached model for key, fitting and storing it on a miss."""
        model = self.get(key)
        if model is not None:
            return model, True
        return self.put(key, fit()), False


def run_tests(
    dataset: Dataset,
    config: AnalysisConfig,
    show_progress: bool = True,
    cache: NullModelCache | None = None,
) -> list[TestResult]:
    """Run every test of the dataset.

    Args:
        dataset: Prepared dataset.
        config: Analysis options.
        show_progress: Show a progress bar.
        cache: Null model cache; a fresh one is used when None.

    Returns:
        One TestResult per test, in enumeration order.
    """
    cache = cache if cache is not None else NullModelCache()
    tester = VarianceComponentsTest(dataset, config, cache.lookup)
    specs = enumerate_tests(len(dataset.markers), len(dataset.response_names), config.mode)
    n_workers = get_worker_count(config.threads)
    logger.info(f"Running {len(specs)} tests on {n_workers} worker thread(s)")

    results: list[TestResult | None] = [None] * len(specs)
    with blas_threads(get_blas_thread_count(n_workers)):
        if n_workers == 1:
            for spec in progress_iterator(specs, len(specs), "Tests", show_progress):
                results[spec.test_id] = tester.run(spec)
        else:
            with ThreadPoolExecutor(max_workers=n_workers) as pool:
                futures = {pool.submit(tester.run, spec): spec for spec in specs}
                done = as_completed(futures)
                for future in progress_iterator(done, len(futures), "Tests", show_progress):
                    result = future.result()
                    results[result.test_id] = result

    n_failed = sum(1 for r in results if not r.ok)
    logger.info(f"Completed {len(results)} tests ({n_failed} with warnings)")
    if config.mode == Mode.ASSOCIATION:
        logger.info(f"Null model cache: {cache.hits} hits, {len(cache)} models fitted")
    return results
