"""Numeric kernel: covariance decompositions and SVD editing.

Key components:
- decompose: Cholesky / LU / QR factorisation exposing solve and half log-det
- Svd: thin SVD with singular value editing and back-substitution
"""

from poppante.linalg.decompose import (
    CholeskyDecomposer,
    Decomposer,
    Decomposition,
    LUDecomposer,
    QRDecomposer,
    decompose,
)
from poppante.linalg.svd import SVD_TOL, Svd, residual_sum_of_squares

__all__ = [
    "CholeskyDecomposer",
    "Decomposer",
    "Decomposition",
    "LUDecomposer",
    "QRDecomposer",
    "SVD_TOL",
    "Svd",
    "decompose",
    "residual_sum_of_squares",
]
