"""Preprocessing of response and predictor values.

- inverse_normal_transform: rank-based inverse normal transform
- residualise: OLS residuals on correction covariates
- principal_components: PCA of a variables x observations matrix with
  missing values, used for predictor correction and region collapsing
- n_components_for: number of components reaching a variance fraction

All functions keep NaN (missing) entries in place.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.special import ndtri
from scipy.stats import rankdata

from poppante.core.errors import ConfigError
from poppante.core.missing import is_missing
from poppante.linalg.svd import Svd


def inverse_normal_transform(values: np.ndarray) -> np.ndarray:
    """Map observed values to normal scores.

    Rank r (ties share the average rank) of n observed values becomes
    Phi^-1((r - 0.5) / n).

    Args:
        values: 1-D array, NaN for missing.

    Returns:
        Transformed copy with NaN left in place.
    """
    out = np.array(values, dtype=np.float64)
    observed = ~is_missing(out)
    n = int(observed.sum())
    if n == 0:
        return out
    ranks = rankdata(out[observed], method="average")
    out[observed] = ndtri((ranks - 0.5) / n)
    return out


def residualise(values: np.ndarray, covariates: np.ndarray) -> np.ndarray:
    """Residuals of an OLS fit with intercept on the observed rows.

    A row is observed when the value and every covariate are present.

    Args:
        values: 1-D array (N,), NaN for missing.
        covariates: (K, N) matrix.

    Returns:
        Residuals at observed rows, NaN elsewhere.

    Raises:
        ConfigError: If there are no more observations than regressors.
    """
    out = np.array(values, dtype=np.float64)
    observed = ~is_missing(out) & ~is_missing(covariates).any(axis=0)
    out[~observed] = np.nan
    n = int(observed.sum())
    x = np.column_stack([np.ones(n), covariates[:, observed].T])
    if n <= x.shape[1] - 1:
        raise ConfigError(
            f"not enough observations ({n}) to regress on {x.shape[1] - 1} covariates"
        )
    y = out[observed]
    beta, *_ = np.linalg.lstsq(x, y, rcond=None)
    out[observed] = y - x @ beta
    return out


@dataclass
class PrincipalComponents:
    """Left singular vectors of a standardised data matrix.

    Attributes:
        components: (n_observations, k) matrix; column j is PC j+1.
        proportion: Share of total variance per component.
    """

    components: np.ndarray
    proportion: np.ndarray

    def first(self, n: int) -> np.ndarray:
        """The leading n components as an (n, n_observations) matrix."""
        if not 0 < n <= self.components.shape[1]:
            raise ValueError(f"principal component {n} does not exist")
        return self.components[:, :n].T


def standardise(matrix: np.ndarray) -> np.ndarray:
    """Centre and scale each variable (row), then set missing entries to 0.

    The sample standard deviation over observed values is used. Variables
    with zero variance become all zeros.
    """
    data = np.array(matrix, dtype=np.float64)
    missing = is_missing(data)
    data[missing] = 0.0
    counts = (~missing).sum(axis=1, keepdims=True)
    with np.errstate(invalid="ignore", divide="ignore"):
        mean = data.sum(axis=1, keepdims=True) / counts
        centred = np.where(missing, 0.0, data - mean)
        sd = np.sqrt((centred**2).sum(axis=1, keepdims=True) / (counts - 1))
        scaled = np.where(sd > 0, centred / sd, 0.0)
    scaled[missing] = 0.0
    return np.nan_to_num(scaled, nan=0.0)


def principal_components(matrix: np.ndarray) -> PrincipalComponents:
    """PCA of a (variables, observations) matrix that may hold NaN.

    Raises:
        SvdNonConvergence: If the SVD fails.
    """
    data = standardise(matrix).T
    svd = Svd.of(data)
    power = svd.w**2
    total = float(power.sum())
    proportion = power / total if total > 0 else np.zeros_like(power)
    return PrincipalComponents(components=svd.u, proportion=proportion)


def n_components_for(proportion: np.ndarray, fraction: float) -> int:
    """Smallest number of leading components whose variance share reaches fraction."""
    cumulative = np.cumsum(proportion)
    reached = np.flatnonzero(cumulative >= fraction - 1e-12)
    if reached.size == 0:
        return int(proportion.size)
    return int(reached[0]) + 1
