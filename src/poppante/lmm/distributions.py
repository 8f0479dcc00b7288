"""Probability distributions used by the test statistics.

- chi2_pvalue: upper tail of the chi-square distribution via the
  regularised upper incomplete gamma function
- normal_quantile: inverse normal CDF on scipy's ndtri, the same routine
  the inverse-normal transform uses
- negative_binomial_quantile: Cornish-Fisher approximation of the
  negative-binomial quantile, as used to calibrate adaptive permutation
"""

from __future__ import annotations

import math
import sys

from scipy.special import gammaincc, ndtri

DBL_EPSILON = 2.22e-16


def chi2_pvalue(chi2: float, df: int = 1) -> float:
    """Upper-tail p-value of a chi-square statistic.

    Args:
        chi2: Non-negative test statistic.
        df: Degrees of freedom (default 1).

    Returns:
        Q(df/2, chi2/2), which is 1.0 at chi2 = 0.
    """
    return float(gammaincc(0.5 * df, 0.5 * max(chi2, 0.0)))


def normal_quantile(p: float) -> float:
    """Inverse standard normal CDF.

    Args:
        p: Probability in (0, 1).

    Returns:
        z such that Phi(z) = p. Returns +/- sys.float_info.max at the
        open boundaries.

    Raises:
        ValueError: If p is outside [0, 1] or a tail probability is
            below 1e-200.
    """
    if not 0.0 <= p <= 1.0:
        raise ValueError(f"probability {p} outside [0, 1]")
    tail = min(p, 1.0 - p)
    if tail <= 0.0:
        return -sys.float_info.max if p < 0.5 else sys.float_info.max
    if tail < 1e-200:
        raise ValueError(f"p-value {tail} outside range in normal quantile")
    return float(ndtri(p))


def negative_binomial_quantile(p: float, size: int, prob: float) -> float:
    """Approximate quantile of the negative-binomial distribution.

    Counts failures before `size` successes with success probability
    `prob`. Uses the Cornish-Fisher expansion with a skewness correction
    around the normal quantile; the result is rarely more than one or two
    away from the exact quantile, which is enough to size the permutation
    stopping rule.

    Args:
        p: Probability in [0, 1].
        size: Number of successes (> 0).
        prob: Success probability in (0, 1].

    Returns:
        The quantile as a non-negative integer-valued float, or inf at the
        upper boundary.
    """
    if prob == 1.0 or p == 0.0:
        return 0.0
    if p == 1.0:
        return math.inf

    big_q = 1.0 / prob
    big_p = (1.0 - prob) * big_q
    mu = size * big_p
    sigma = math.sqrt(size * big_p * big_q)
    gamma = (big_q + big_p) / sigma

    if p + 1.01 * DBL_EPSILON >= 1.0:
        return math.inf

    z = normal_quantile(p)
    return float(max(0, math.floor(mu + sigma * (z + gamma * (z * z - 1.0) / 6.0) + 0.5)))
