"""Matrix decompositions for covariance solves.

Each decomposer factorises a square symmetric matrix once and then answers
two questions the likelihood needs: the solution of A x = b and half the
log of |det A|. Cholesky is the default and the only choice for
pedigree-derived kinship. LU and QR are offered for external kinship
matrices that are not positive definite and are not bent.

LU and QR report 0.5 * sum(log|d_ii|) over the triangular diagonal, so the
sign of det A is dropped. The chi-square statistic only compares absolute
determinants between nested models, which keeps this harmless there.
"""

from __future__ import annotations

from enum import Enum

import numpy as np
import scipy.linalg

from poppante.core.errors import InfiniteLikelihood, NotPositiveDefinite


class Decomposition(str, Enum):
    """Available covariance decompositions."""

    CHOLESKY = "cholesky"
    LU = "lu"
    QR = "qr"


class CholeskyDecomposer:
    """Cholesky factorisation A = L L'.

    Raises:
        NotPositiveDefinite: If A is not positive definite.
    """

    def __init__(self, a: np.ndarray) -> None:
        try:
            self._factor = scipy.linalg.cho_factor(a, lower=True, check_finite=False)
        except np.linalg.LinAlgError as e:
            raise NotPositiveDefinite(
                "Warning : covariance matrix is not positive definite"
            ) from e

    def solve(self, b: np.ndarray) -> np.ndarray:
        return scipy.linalg.cho_solve(self._factor, b, check_finite=False)

    def half_log_det(self) -> float:
        # log|A| = 2 * sum(log L_ii)
        return float(np.sum(np.log(np.diag(self._factor[0]))))


class LUDecomposer:
    """LU factorisation with partial pivoting."""

    def __init__(self, a: np.ndarray) -> None:
        with np.errstate(divide="ignore", invalid="ignore"):
            self._lu, self._piv = scipy.linalg.lu_factor(a, check_finite=False)

    def solve(self, b: np.ndarray) -> np.ndarray:
        with np.errstate(divide="ignore", invalid="ignore"):
            return scipy.linalg.lu_solve((self._lu, self._piv), b, check_finite=False)

    def half_log_det(self) -> float:
        with np.errstate(divide="ignore"):
            return float(0.5 * np.sum(np.log(np.abs(np.diag(self._lu)))))


class QRDecomposer:
    """Householder QR factorisation A = Q R.

    Raises:
        InfiniteLikelihood: From solve() when R has an exact zero pivot.
    """

    def __init__(self, a: np.ndarray) -> None:
        self._q, self._r = scipy.linalg.qr(a, check_finite=False)

    def solve(self, b: np.ndarray) -> np.ndarray:
        try:
            with np.errstate(divide="ignore", invalid="ignore"):
                return scipy.linalg.solve_triangular(
                    self._r, self._q.T @ b, check_finite=False
                )
        except np.linalg.LinAlgError as e:
            raise InfiniteLikelihood("Warning : matrix decomposition failed") from e

    def half_log_det(self) -> float:
        # |R_ii| keeps the log defined when R carries negative pivots
        with np.errstate(divide="ignore"):
            return float(0.5 * np.sum(np.log(np.abs(np.diag(self._r)))))


Decomposer = CholeskyDecomposer | LUDecomposer | QRDecomposer

_DECOMPOSERS = {
    Decomposition.CHOLESKY: CholeskyDecomposer,
    Decomposition.LU: LUDecomposer,
    Decomposition.QR: QRDecomposer,
}


def decompose(a: np.ndarray, method: Decomposition = Decomposition.CHOLESKY) -> Decomposer:
    """Factorise a square matrix with the requested method.

    Args:
        a: Square symmetric matrix.
        method: Decomposition to use.

    Returns:
        Decomposer exposing solve() and half_log_det().

    Raises:
        NotPositiveDefinite: Cholesky on a matrix that is not positive definite.
    """
    return _DECOMPOSERS[Decomposition(method)](a)
