"""Gaussian likelihood of one family block.

A block holds, for one family in one test, the scores y (m,), the design
X (m, L) and the variance components V_k (m, m). Parameters are passed in
at every evaluation; the block keeps no reference to the set that owns it.

    r = X beta - y
    Sigma = sum_k sigma2_k V_k
    lnL = -0.5 r' Sigma^-1 r - 0.5 ln|Sigma| (- 0.5 m ln 2 pi)
"""

from __future__ import annotations

import math

import numpy as np

from poppante.core.errors import InfiniteLikelihood
from poppante.linalg.decompose import Decomposition, decompose

LOG_2PI = math.log(2.0 * math.pi)


class Normal:
    """One single-equation linear mixed model.

    Args:
        scores: Outcome values (m,).
        design: Fixed-effect design (m, L); column 0 is the intercept.
        components: Variance component matrices, each (m, m). The first is
            the environmental identity.
        decomposition: Decomposition used for Sigma.
    """

    def __init__(
        self,
        scores: np.ndarray,
        design: np.ndarray,
        components: list[np.ndarray],
        decomposition: Decomposition = Decomposition.CHOLESKY,
    ) -> None:
        self.scores = np.asarray(scores, dtype=np.float64)
        self.design = np.asarray(design, dtype=np.float64)
        self.components = components
        self.decomposition = decomposition
        self.constant = -0.5 * LOG_2PI * self.dim
        self.include_constant = False
        self.evaluated = False
        self.likelihood = 0.0

    @property
    def dim(self) -> int:
        return self.scores.shape[0]

    @property
    def n_columns(self) -> int:
        return self.design.shape[1]

    def residuals(self, beta: np.ndarray) -> np.ndarray:
        return self.design @ beta - self.scores

    def covariance(self, variances: np.ndarray) -> np.ndarray:
        sigma = np.zeros((self.dim, self.dim))
        for v, component in zip(variances, self.components):
            sigma += v * component
        return 0.5 * (sigma + sigma.T)

    def evaluate(self, beta: np.ndarray, variances: np.ndarray) -> float:
        """Log-likelihood at (beta, variances).

        Raises:
            NotPositiveDefinite: Cholesky failed on Sigma.
            InfiniteLikelihood: The likelihood is not finite.
        """
        lik = self.constant if self.include_constant else 0.0
        r = self.residuals(beta)
        dec = decompose(self.covariance(variances), self.decomposition)
        with np.errstate(over="ignore", invalid="ignore"):
            lik -= 0.5 * float(r @ dec.solve(r))
        lik -= dec.half_log_det()
        if not math.isfinite(lik):
            raise InfiniteLikelihood("Warning : matrix decomposition failed")
        self.likelihood = lik
        self.evaluated = True
        return lik

    def enable_constant(self) -> None:
        """Include -0.5 m ln 2 pi, adjusting an already computed likelihood."""
        if not self.include_constant:
            self.include_constant = True
            if self.evaluated:
                self.likelihood += self.constant

    def disable_constant(self) -> None:
        if self.include_constant:
            self.include_constant = False
            if self.evaluated:
                self.likelihood -= self.constant

    def delete_column(self, c: int) -> None:
        """Drop design column c (and with it one beta slot)."""
        self.design = np.delete(self.design, c, axis=1)

    def predictor(self, j: int) -> np.ndarray:
        return self.design[:, j].copy()

    def set_predictor(self, values: np.ndarray, j: int) -> None:
        self.design[:, j] = values
