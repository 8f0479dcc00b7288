"""Test statistics and result records for variance-components tests."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

from poppante.lmm.distributions import chi2_pvalue

NO_OBSERVATIONS = "Warning : no observations"
NOT_ENOUGH_OBSERVATIONS = "Warning : not enough observations to estimate the model parameters"


@dataclass
class NullModel:
    """Fitted null model shared by tests with the same missingness pattern.

    Attributes:
        log_likelihood: Null model log-likelihood.
        df: Null model degrees of freedom.
        variances: Variance component estimates.
        details: Per-family log-likelihoods.
    """

    log_likelihood: float
    df: int
    variances: np.ndarray
    details: np.ndarray


@dataclass
class TestStats:
    """Statistics of one successful test.

    Heritability tests fill `heritability`; association tests fill beta,
    se and variance_explained. Optional outputs stay None when not requested.
    """

    __test__ = False

    n_obs: int
    lnl_null: float
    lnl_full: float
    df_null: int
    df_full: int
    chi2: float
    pvalue: float
    var_null: np.ndarray
    var_full: np.ndarray
    heritability: float | None = None
    beta: float | None = None
    se: float | None = None
    variance_explained: float | None = None
    pos_f: float | None = None
    gini: float | None = None
    epvalue: float | None = None
    permutations: int | None = None
    adj_pvalue: float | None = None
    adj_epvalue: float | None = None
    null_cached: bool = False


@dataclass
class TestResult:
    """Outcome of one (response, predictor) test.

    Exactly one of `stats` and `warning` is set.

    Attributes:
        test_id: Position in the test enumeration order.
        predictor: Predictor (marker) name.
        response: Response name, None in heritability mode.
        chromosome: Marker chromosome, if mapped.
        position: Marker position in bp, if mapped.
        stats: Statistics of a successful test.
        warning: Message of a failed test.
        kind: Failure kind (see NumericalError.kind), None on success.
    """

    __test__ = False

    test_id: int
    predictor: str
    response: str | None = None
    chromosome: str | None = None
    position: int | None = None
    stats: TestStats | None = None
    warning: str | None = None
    kind: str | None = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.stats is not None


def chi_square(lnl_null: float, lnl_full: float) -> float:
    """Likelihood-ratio statistic max(0, 2 (lnL_full - lnL_null))."""
    return max(0.0, 2.0 * (lnl_full - lnl_null))


def lrt_pvalue(lnl_null: float, lnl_full: float) -> tuple[float, float]:
    """Chi-square statistic on 1 df and its p-value."""
    chi2 = chi_square(lnl_null, lnl_full)
    return chi2, chi2_pvalue(chi2, df=1)


def heritability(variances: np.ndarray) -> float:
    """Genetic share sigma2_g / (sigma2_e + sigma2_g) of a two-component fit."""
    return float(variances[1] / (variances[0] + variances[1]))


def variance_explained(beta: float, predictor: np.ndarray, response: np.ndarray) -> float:
    """beta^2 Var(predictor) / Var(response), sample variances."""
    var_y = float(np.var(response, ddof=1)) if response.size > 1 else math.nan
    var_x = float(np.var(predictor, ddof=1)) if predictor.size > 1 else math.nan
    with np.errstate(divide="ignore", invalid="ignore"):
        return beta * beta * var_x / var_y if var_y else math.nan


def standard_error(beta: float, chi2: float) -> float:
    """|beta| / sqrt(chi2), NaN when chi2 is 0."""
    if chi2 <= 0.0:
        return math.nan
    return abs(beta / math.sqrt(chi2))


def family_contributions(
    full_details: np.ndarray, null_details: np.ndarray
) -> tuple[float, float]:
    """Share of families supporting the full model and the Gini coefficient.

    Delta_f = lnL_full,f - lnL_null,f. PosF is the fraction of families with
    a positive Delta. The Gini coefficient is computed over the positive
    Deltas, sorted ascending:

        gini = sum(2 i d_i) / (k sum(d_i)) - (k + 1) / k,  i = 1..k

    Returns:
        (pos_f, gini); gini is NaN when no family has a positive Delta.
    """
    deltas = np.asarray(full_details) - np.asarray(null_details)
    positive = np.sort(deltas[deltas > 0.0])
    k = positive.size
    pos_f = k / deltas.size if deltas.size else math.nan
    if k == 0:
        return pos_f, math.nan
    ranks = np.arange(1, k + 1)
    gsum = float(np.sum(2.0 * positive * ranks))
    total = float(positive.sum()) * k
    return pos_f, gsum / total - (k + 1) / k
