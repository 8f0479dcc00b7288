"""Benjamini-Hochberg false discovery rate adjustment.

Reference: Benjamini, Y. and Hochberg, Y. (1995) Controlling the false
discovery rate: a practical and powerful approach to multiple testing.
JRSS B, 57(1), 289-300.
"""

from __future__ import annotations

import numpy as np
import statsmodels.stats.multitest as smm

from poppante.lmm.stats import TestResult


def benjamini_hochberg(pvalues: np.ndarray) -> np.ndarray:
    """BH step-up adjusted p-values, capped at 1.

    NaN entries are left out of the adjustment and stay NaN.
    """
    p = np.asarray(pvalues, dtype=np.float64)
    out = np.full(p.shape, np.nan)
    observed = ~np.isnan(p)
    if not observed.any():
        return out
    out[observed] = smm.multipletests(p[observed], method="fdr_bh")[1]
    return out


def adjust_results(results: list[TestResult]) -> None:
    """Fill adjusted p-values (and empirical ones when present) in place.

    Only successful tests enter the adjustment.
    """
    ok = [r for r in results if r.ok]
    if not ok:
        return
    adjusted = benjamini_hochberg(np.array([r.stats.pvalue for r in ok]))
    for r, adj in zip(ok, adjusted):
        r.stats.adj_pvalue = float(adj)

    empirical = [r for r in ok if r.stats.epvalue is not None]
    if empirical:
        adjusted = benjamini_hochberg(np.array([r.stats.epvalue for r in empirical]))
        for r, adj in zip(empirical, adjusted):
            r.stats.adj_epvalue = float(adj)
