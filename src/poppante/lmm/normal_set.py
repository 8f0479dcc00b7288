"""Variance-components model over a set of family blocks.

All family blocks share one beta vector (fixed effects) and one vector of
variance components. NormalSet owns the parameters, broadcasts them to the
blocks at every evaluation and minimises -sum_f lnL_f with Nelder-Mead
over (beta, ln sigma^2).

Solve procedure:
1. Drop linearly dependent design columns (SVD with singular value editing)
   and take the least-squares beta as the start point.
2. Seed each variance component from the residual variance, weighted by the
   share of that component on the diagonal of the covariance.
3. Run Nelder-Mead, then restart it with a halved simplex until the
   minimum stops improving. Before every restart the log-variances are
   pulled up to within 5 of the largest one.
"""

from __future__ import annotations

import math

import numpy as np
from loguru import logger

from poppante.core.errors import NotEstimable
from poppante.linalg.svd import SVD_TOL, Svd, residual_sum_of_squares
from poppante.lmm.nelder_mead import NelderMead
from poppante.lmm.normal import Normal

PRECISION = 1.0e-8
FPMIN = 1.0e-320
LOG_VAR_BOUND = 16.0
LOG_VAR_SPREAD = 5.0


def clamp_log_variances(log_var: np.ndarray) -> np.ndarray:
    """Pull every log-variance up to at least max(log_var) - 5."""
    if log_var.size == 0:
        return log_var
    return np.maximum(log_var, float(log_var.max()) - LOG_VAR_SPREAD)


class NormalSet:
    """Set of family blocks sharing beta and variance components.

    Args:
        blocks: One Normal per family, all with the same number of design
            columns and variance components.
        n_components: Number of variance components (1 or 2).
    """

    def __init__(self, blocks: list[Normal], n_components: int) -> None:
        self.blocks = blocks
        self.n_components = n_components
        n_columns = blocks[0].n_columns if blocks else 0
        self.kept_columns: list[int] = list(range(n_columns))
        self.beta = np.zeros(n_columns)
        self.variances = np.ones(n_components)
        self.log_likelihood = math.nan

    @property
    def n_columns(self) -> int:
        return len(self.kept_columns)

    @property
    def n_parameters(self) -> int:
        return self.n_columns + self.n_components

    @property
    def n_observations(self) -> int:
        return sum(block.dim for block in self.blocks)

    @property
    def df(self) -> int:
        return self.n_observations - self.n_parameters

    def column_position(self, original: int) -> int | None:
        """Current position of an original design column, None if removed."""
        try:
            return self.kept_columns.index(original)
        except ValueError:
            return None

    def coefficient(self, original: int) -> float | None:
        position = self.column_position(original)
        return None if position is None else float(self.beta[position])

    def enable_constant(self) -> None:
        for block in self.blocks:
            block.enable_constant()

    def disable_constant(self) -> None:
        for block in self.blocks:
            block.disable_constant()

    def edit_linear_degenerates(self) -> None:
        """Remove dependent design columns and compute start values.

        Columns are added one at a time; a column whose addition produces a
        zero (edited) singular value is removed from every block.

        Raises:
            SvdNonConvergence: If the SVD fails.
        """
        m = np.vstack([block.design for block in self.blocks])
        b = np.concatenate([block.scores for block in self.blocks])
        rows = m.shape[0]
        cols = m.shape[1]

        engine = None
        c = 1
        while c <= cols:
            engine = Svd.of(m[:, :c])
            engine.edit(SVD_TOL)
            if engine.has_zero():
                logger.debug(
                    f"Removing linearly dependent design column {self.kept_columns[c - 1]}"
                )
                for block in self.blocks:
                    block.delete_column(c - 1)
                m = np.delete(m, c - 1, axis=1)
                del self.kept_columns[c - 1]
                cols -= 1
                if c > cols:
                    engine = Svd.of(m) if cols > 0 else None
            else:
                c += 1

        self.beta = engine.back_substitute(b) if engine is not None else np.zeros(0)
        residual_var = (abs(residual_sum_of_squares(m, self.beta, b)) + FPMIN) / rows

        # Seed each component with its average share of the diagonal
        weights = np.zeros(self.n_components)
        counts = np.zeros(self.n_components, dtype=np.int64)
        for block in self.blocks:
            diagonals = np.array(
                [np.diag(block.components[k]) for k in range(self.n_components)]
            )
            totals = diagonals.sum(axis=0)
            with np.errstate(divide="ignore", invalid="ignore"):
                shares = diagonals / totals
            positive = shares > 0.0
            weights += np.where(positive, shares, 0.0).sum(axis=1)
            counts += positive.sum(axis=1)

        self.variances = np.where(
            counts > 0, residual_var * weights / np.maximum(counts, 1), residual_var
        )

    def start_point(self) -> np.ndarray:
        return np.concatenate([self.beta, np.log(self.variances)])

    def select_point(self, point: np.ndarray) -> None:
        """Decode (beta, ln sigma^2); log-variances beyond +/-16 are clamped."""
        self.beta = point[: self.n_columns].copy()
        log_var = point[self.n_columns :]
        variances = np.exp(np.clip(log_var, -LOG_VAR_BOUND, LOG_VAR_BOUND))
        variances[log_var > LOG_VAR_BOUND] = 1.0e7
        variances[log_var < -LOG_VAR_BOUND] = 1.0e-7
        self.variances = variances

    def evaluate(self) -> float:
        """Sum of block log-likelihoods at the current parameters."""
        return sum(block.evaluate(self.beta, self.variances) for block in self.blocks)

    def objective(self, point: np.ndarray) -> float:
        self.select_point(point)
        return -self.evaluate()

    def details(self) -> np.ndarray:
        """Per-family log-likelihoods from the last evaluation."""
        return np.array([block.likelihood for block in self.blocks])

    def solve(self, required_column: int | None = None) -> float:
        """Fit the model and return its log-likelihood (constant included).

        Args:
            required_column: Original index of a design column that must
                survive the degeneracy edit.

        Raises:
            NotEstimable: If required_column was removed.
            NotConverging: If Nelder-Mead exhausts its budget.
            NotPositiveDefinite, InfiniteLikelihood, SvdNonConvergence:
                On numerical failure.
        """
        self.disable_constant()
        self.edit_linear_degenerates()
        if required_column is not None and self.column_position(required_column) is None:
            raise NotEstimable(
                "Warning : tested predictor is linearly dependent on the covariates"
            )

        n_beta = self.n_columns
        solver = NelderMead(self.objective, self.n_parameters)
        solver.reset(1.0)
        solver.point = self.start_point()
        solver.minimize(PRECISION)

        scale = 2.0
        while True:
            solver.point[n_beta:] = clamp_log_variances(solver.point[n_beta:])

            last_min = solver.fmin
            scale *= 0.5
            solver.reset(scale)
            current_min = solver.minimize(PRECISION)
            if not (current_min > PRECISION and (last_min - current_min) / current_min > PRECISION):
                break

        self.select_point(solver.point)
        self.evaluate()
        self.enable_constant()
        self.log_likelihood = float(self.details().sum())
        return self.log_likelihood
