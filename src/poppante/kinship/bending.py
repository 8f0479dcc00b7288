"""Eigenvalue bending of kinship matrices that are not positive definite."""

from __future__ import annotations

import numpy as np
from loguru import logger

from poppante.core.errors import ConfigError
from poppante.core.threading import blas_threads

BENDING_TOL = 1e-6


def bend(k: np.ndarray, tol: float = BENDING_TOL) -> np.ndarray:
    """Force a symmetric matrix to be positive definite.

    Eigen-decomposes the symmetrised matrix and lifts every eigenvalue
    below tol * lambda_max to that floor, then reconstructs. A matrix whose
    eigenvalues already clear the floor is returned unchanged, so bending
    twice equals bending once.

    Args:
        k: Square kinship matrix.
        tol: Floor relative to the largest eigenvalue.

    Returns:
        Symmetric positive definite matrix.

    Raises:
        ConfigError: If the largest eigenvalue is not positive.
    """
    sym = 0.5 * (k + k.T)
    with blas_threads():
        eigenvalues, eigenvectors = np.linalg.eigh(sym)

    lam_max = float(eigenvalues[-1]) if eigenvalues.size else 0.0
    if lam_max <= 0.0:
        raise ConfigError("cannot bend a kinship matrix without positive eigenvalues")

    floor = tol * lam_max
    low = eigenvalues < floor
    if not np.any(low):
        return k

    logger.info(f"Bending kinship matrix: {int(low.sum())} eigenvalues below {floor:.3g}")
    eigenvalues = np.where(low, floor, eigenvalues)
    bent = (eigenvectors * eigenvalues) @ eigenvectors.T
    return 0.5 * (bent + bent.T)
