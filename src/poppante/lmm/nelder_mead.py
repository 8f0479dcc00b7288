"""Downhill simplex (Nelder-Mead) minimisation.

The variance-components objective has no cheap gradient, so the joint
(beta, log sigma^2) vector is optimised with the simplex method. The
minimiser keeps its point between calls, which lets the caller restart it
from the previous optimum with a smaller simplex.

Reference: Press, W.H. et al. (1992) "Numerical Recipes in C", 2nd ed.,
section 10.4 (amoeba / amotry).
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np

from poppante.core.errors import NotConverging

CYCLE_MAX = 50_000
ZEPS = 3.0e-10


class NelderMead:
    """Simplex minimiser with a persistent current point.

    Args:
        objective: Function of a parameter vector returning the value to
            minimise.
        n: Number of parameters.
    """

    def __init__(self, objective: Callable[[np.ndarray], float], n: int) -> None:
        self.objective = objective
        self.n = n
        self.point = np.zeros(n)
        self.directions = np.eye(n)
        self.fmin = np.inf
        self.evaluations = 0

    def reset(self, scale: float) -> None:
        """Rebuild the simplex directions as scale * I and forget fmin."""
        self.directions = scale * np.eye(self.n)
        self.fmin = np.inf

    def minimize(self, ftol: float) -> float:
        """Minimise from the current point.

        On convergence the best vertex becomes the current point.

        Args:
            ftol: Fractional tolerance on the spread of simplex values.

        Returns:
            The minimum value found.

        Raises:
            NotConverging: If the evaluation budget is exhausted.
        """
        n = self.n
        if n == 0:
            self.fmin = self._evaluate(self.point)
            return self.fmin

        nvertex = n + 1
        simplex = np.empty((nvertex, n))
        simplex[:n] = self.point + self.directions
        simplex[n] = self.point
        y = np.array([self._evaluate(v) for v in simplex])
        self.fmin = min(self.fmin, float(y.min()))

        cycles = nvertex
        psum = simplex.sum(axis=0)

        while True:
            ilo, ihi, inhi = _rank_vertices(y)

            rtol = 2.0 * abs(y[ihi] - y[ilo]) / (abs(y[ihi]) + abs(y[ilo]) + ZEPS)
            if rtol < ftol:
                self.point = simplex[ilo].copy()
                self.fmin = float(y[ilo])
                return self.fmin

            if cycles > CYCLE_MAX:
                raise NotConverging(
                    f"Warning : Amoeba couldn't converge in {CYCLE_MAX} cycles"
                )
            cycles += 2

            # Reflect through the face opposite the worst vertex
            ytry = self._try(simplex, y, psum, ihi, -1.0)
            if ytry <= y[ilo]:
                self._try(simplex, y, psum, ihi, 2.0)
            elif ytry >= y[inhi]:
                ysave = y[ihi]
                ytry = self._try(simplex, y, psum, ihi, 0.5)
                if ytry >= ysave:
                    # Contract every vertex towards the best one
                    for i in range(nvertex):
                        if i != ilo:
                            simplex[i] = 0.5 * (simplex[i] + simplex[ilo])
                            y[i] = self._evaluate(simplex[i])
                    cycles += n
                    psum = simplex.sum(axis=0)
            else:
                cycles -= 1

    def _try(
        self,
        simplex: np.ndarray,
        y: np.ndarray,
        psum: np.ndarray,
        ihi: int,
        factor: float,
    ) -> float:
        """Extrapolate the worst vertex by factor and keep it if better."""
        fac1 = (1.0 - factor) / self.n
        fac2 = factor - fac1
        ptry = fac1 * psum + fac2 * simplex[ihi]
        ytry = self._evaluate(ptry)
        if ytry < y[ihi]:
            y[ihi] = ytry
            psum += ptry - simplex[ihi]
            simplex[ihi] = ptry
        return ytry

    def _evaluate(self, x: np.ndarray) -> float:
        self.evaluations += 1
        return float(self.objective(x))


def _rank_vertices(y: np.ndarray) -> tuple[int, int, int]:
    """Indices of the lowest, highest and next-highest simplex values."""
    if y[0] > y[1]:
        ilo = inhi = 1
        ihi = 0
    else:
        ilo = inhi = 0
        ihi = 1
    for i in range(2, len(y)):
        if y[i] <= y[ilo]:
            ilo = i
        elif y[i] > y[ihi]:
            inhi = ihi
            ihi = i
        elif y[i] > y[inhi]:
            inhi = i
    return ilo, ihi, inhi
