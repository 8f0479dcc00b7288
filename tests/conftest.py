"""Pytest fixtures for the PopPAnTe test suite."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import numpy as np
import pytest

from poppante.dataset import Dataset, FamilyBlock
from poppante.io.predictor import Marker
from poppante.pedigree.model import Individual

# =============================================================================
# Test Tier System
# =============================================================================
#
# tier0 - Fast unit tests (<5s each)
#   - Pure computation on tiny in-memory inputs
#   - Run: pytest -m tier0
#
# tier1 - Scenario tests on small synthetic cohorts
#   - Whole-test fits (null + full), readers on tmp_path files
#   - Run: pytest -m tier1
#
# slow - Permutation runs and larger cohorts
#   - Run: pytest -m slow
#
# Quick reference:
#   pytest -m tier0             # Fast tests only
#   pytest -m "not slow"        # Skip permutation-heavy tests
#   pytest                      # All tests
# =============================================================================


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, list[str]], Path]:
    """Write whitespace-separated lines to a file under tmp_path.

    Returns:
        Function (name, lines) -> path.
    """

    def _write(name: str, lines: list[str]) -> Path:
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n")
        return path

    return _write


@pytest.fixture
def make_dataset() -> Callable[..., Dataset]:
    """Build an in-memory Dataset from per-family kinship matrices.

    Family f is named "F{f}" and its members "1".."n". Predictors and
    responses are given as (M, N) and (P, N) arrays in family order.
    """

    def _make(
        kinships: list[np.ndarray],
        predictors: np.ndarray,
        responses: np.ndarray | None = None,
        covariates: np.ndarray | None = None,
        markers: list[Marker] | None = None,
        external_kinship: bool = False,
    ) -> Dataset:
        individuals = []
        blocks = []
        start = 0
        for f, k in enumerate(kinships):
            fam_id = f"F{f}"
            size = k.shape[0]
            individuals.extend(Individual(fam_id, str(i + 1)) for i in range(size))
            blocks.append(FamilyBlock(fam_id, start, size, np.asarray(k, dtype=np.float64)))
            start += size
        n = start

        predictors = np.atleast_2d(np.asarray(predictors, dtype=np.float64))
        if markers is None:
            markers = [Marker(f"m{j}") for j in range(predictors.shape[0])]
        if responses is None:
            responses = np.empty((0, n))
        responses = np.atleast_2d(np.asarray(responses, dtype=np.float64))
        if covariates is None:
            covariates = np.empty((0, n))
        covariates = np.atleast_2d(np.asarray(covariates, dtype=np.float64))

        return Dataset(
            individuals=individuals,
            positions={p.key: i for i, p in enumerate(individuals)},
            blocks=blocks,
            markers=markers,
            predictors=predictors,
            response_names=[f"r{p}" for p in range(responses.shape[0])],
            responses=responses,
            covariates=covariates,
            external_kinship=external_kinship,
            positioned=all(m.mapped for m in markers),
        )

    return _make


@pytest.fixture
def sibling_kinship() -> np.ndarray:
    """Kinship of two parents and two full siblings (doubled coefficients)."""
    return np.array(
        [
            [1.0, 0.0, 0.5, 0.5],
            [0.0, 1.0, 0.5, 0.5],
            [0.5, 0.5, 1.0, 0.5],
            [0.5, 0.5, 0.5, 1.0],
        ]
    )


@pytest.fixture
def family_cohort(make_dataset, sibling_kinship) -> Dataset:
    """Twelve four-member families with a heritable predictor and one response.

    The predictor is drawn with covariance 0.6 K + 0.4 I inside each family;
    the response is 0.8 * predictor plus noise.
    """
    rng = np.random.default_rng(20140101)
    chol = np.linalg.cholesky(0.6 * sibling_kinship + 0.4 * np.eye(4))
    n_fam = 12
    x = np.concatenate([chol @ rng.standard_normal(4) for _ in range(n_fam)])
    x2 = np.concatenate([chol @ rng.standard_normal(4) for _ in range(n_fam)])
    y = 0.8 * x + 0.5 * rng.standard_normal(x.size)
    return make_dataset(
        [sibling_kinship] * n_fam,
        predictors=np.vstack([x, x2]),
        responses=y[np.newaxis, :],
    )


@pytest.fixture
def cohort_files(write_file, sibling_kinship) -> dict[str, Path]:
    """Input files for ten nuclear families with one response "y".

    Three mapped predictors: cg1 (chr1:100) drives y, cg2 (chr1:130) is
    noise, cg3 (chr2:50) is noise. Family F10 lists its members out of
    order, children before parents.
    """
    rng = np.random.default_rng(1983)
    chol = np.linalg.cholesky(0.5 * sibling_kinship + 0.5 * np.eye(4))
    ped_lines = []
    value_lines = []
    for f in range(1, 11):
        cg1 = chol @ rng.standard_normal(4)
        y = cg1 + 0.5 * rng.standard_normal(4)
        noise = rng.standard_normal((2, 4))
        rows = [
            (f"F{f} 1 0 0 1 0 0", 0),
            (f"F{f} 2 0 0 2 0 0", 1),
            (f"F{f} 3 1 2 1 0 0", 2),
            (f"F{f} 4 1 2 2 0 0", 3),
        ]
        if f == 10:
            rows.reverse()
        for prefix, i in rows:
            ped_lines.append(f"{prefix} {y[i]:.6f}")
            fam_id, ind_id = prefix.split()[:2]
            value_lines.append(
                f"{fam_id} {ind_id} {cg1[i]:.6f} {noise[0, i]:.6f} {noise[1, i]:.6f}"
            )
    return {
        "ped": write_file("cohort.ped", ped_lines),
        "predictor": write_file("cohort.meth", value_lines),
        "map": write_file("cohort.map", ["cg1 1 100", "cg2 1 130", "cg3 2 50"]),
        "response": write_file("cohort.resp", ["y"]),
    }


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Create temporary output directory for test results."""
    out = tmp_path / "output"
    out.mkdir()
    return out
