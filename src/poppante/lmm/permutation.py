"""Adaptive permutation p-values.

Sequential Monte-Carlo permutation with early stopping: permutations run
until R successes (permuted p-value <= observed) are seen, or the budget B
is exhausted. B and R are chosen from the target significance alpha and
the relative precision c, so that a p-value near alpha is estimated with a
standard error of about c * alpha.

References:
    Besag, J. and Clifford, P. (1991) Sequential Monte Carlo p-values.
    Biometrika, 78(2), 301-304.
    Che, R. et al. (2014) An adaptive permutation approach for genome-wide
    association study. BioData Mining, 7(9).
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache

from poppante.lmm.distributions import negative_binomial_quantile

# Permuted fits that fail report this p-value, so they never count as successes
FAILED_PERMUTATION_PVALUE = 1.1

# Normal CDF at -1 and +1: bounds of a one standard error interval
_LOWER_TAIL = 0.1586553
_UPPER_TAIL = 0.8413447


def max_permutations(alpha: float, c: float) -> int:
    """Permutation budget B = ceil(alpha (1 - alpha) / (alpha c)^2)."""
    return math.ceil((alpha * (1.0 - alpha)) / (alpha * c) ** 2)


@lru_cache(maxsize=32)
def success_threshold(alpha: float, c: float) -> int:
    """Smallest success count R whose 68% interval around alpha is within alpha * c.

    The interval is taken from the negative-binomial distribution of the
    number of failures before R successes at success probability alpha.
    """
    error = alpha * c
    r = 0
    while True:
        r += 1
        lower = r / (negative_binomial_quantile(_LOWER_TAIL, r, alpha) + r)
        upper = r / (negative_binomial_quantile(_UPPER_TAIL, r, alpha) + r)
        if max(abs(lower - alpha), abs(upper - alpha)) < error:
            return r


@dataclass
class AdaptiveResult:
    """Outcome of an adaptive permutation run.

    Attributes:
        pvalue: Empirical p-value.
        permutations: Number of permutations performed.
        successes: Permutations with p-value <= the observed one.
        stopped_early: True when the success threshold was reached.
    """

    pvalue: float
    permutations: int
    successes: int
    stopped_early: bool


def adaptive_pvalue(
    observed: float, permute: Callable[[], float], alpha: float, c: float
) -> AdaptiveResult:
    """Estimate an empirical p-value by adaptive permutation.

    Args:
        observed: The observed (theoretical) p-value.
        permute: Runs one permutation and returns its p-value.
        alpha: Target significance.
        c: Relative precision at alpha.

    Returns:
        AdaptiveResult with R / i on early stop, else (successes + 1) / (B + 1).
    """
    budget = max_permutations(alpha, c)
    threshold = success_threshold(alpha, c)
    successes = 0
    for i in range(1, budget + 1):
        if permute() <= observed:
            successes += 1
        if successes == threshold:
            return AdaptiveResult(successes / i, i, successes, True)
    return AdaptiveResult((successes + 1) / (budget + 1), budget, successes, False)
