"""Singular value decomposition with singular value editing.

Used to detect linearly dependent design columns and to compute the
least-squares start point for the variance-components optimiser.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from poppante.core.errors import SvdNonConvergence

SVD_TOL = 1e-6


@dataclass
class Svd:
    """Thin SVD m = u @ diag(w) @ vt.

    Attributes:
        u: Left singular vectors (rows, k).
        w: Singular values (k,). Edited values are exactly 0.0.
        vt: Right singular vectors, transposed (k, cols).
    """

    u: np.ndarray
    w: np.ndarray
    vt: np.ndarray

    @classmethod
    def of(cls, m: np.ndarray) -> Svd:
        """Decompose a matrix.

        Raises:
            SvdNonConvergence: If LAPACK fails to converge.
        """
        try:
            u, w, vt = np.linalg.svd(m, full_matrices=False)
        except np.linalg.LinAlgError as e:
            raise SvdNonConvergence("Warning : SVD decomposition did not converge") from e
        return cls(u=u, w=w, vt=vt)

    def edit(self, tol: float = SVD_TOL) -> None:
        """Zero singular values below tol times the largest one."""
        if self.w.size == 0:
            return
        threshold = tol * float(np.max(self.w))
        self.w = np.where(self.w < threshold, 0.0, self.w)

    def has_zero(self) -> bool:
        return bool(np.any(self.w == 0.0))

    def back_substitute(self, b: np.ndarray) -> np.ndarray:
        """Least-squares solution, skipping zeroed singular values."""
        utb = self.u.T @ b
        scaled = np.zeros_like(utb)
        nonzero = self.w != 0.0
        scaled[nonzero] = utb[nonzero] / self.w[nonzero]
        return self.vt.T @ scaled


def residual_sum_of_squares(m: np.ndarray, x: np.ndarray, b: np.ndarray) -> float:
    """Return |m x - b|^2."""
    r = m @ x - b
    return float(r @ r)
