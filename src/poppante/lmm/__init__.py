"""Variance-components linear mixed model tests.

Key components:
- Normal / NormalSet: per-family Gaussian likelihood and the shared-parameter
  optimiser over all families
- NelderMead: simplex minimiser with restarts
- VarianceComponentsTest: null and full fits of one test, with statistics
- run_tests: enumeration, null model cache and the worker pool
- adaptive_pvalue: sequential permutation p-values
- adjust_results / write_results: BH adjustment and the result table
"""

from poppante.lmm.dispatch import NullModelCache, enumerate_tests, run_tests
from poppante.lmm.fdr import adjust_results, benjamini_hochberg
from poppante.lmm.io import TableLayout, format_result_line, write_results
from poppante.lmm.nelder_mead import NelderMead
from poppante.lmm.normal import Normal
from poppante.lmm.normal_set import NormalSet
from poppante.lmm.permutation import adaptive_pvalue, max_permutations, success_threshold
from poppante.lmm.stats import NullModel, TestResult, TestStats
from poppante.lmm.vc import TestSpec, VarianceComponentsTest, missingness_fingerprint

__all__ = [
    "NelderMead",
    "Normal",
    "NormalSet",
    "NullModel",
    "NullModelCache",
    "TableLayout",
    "TestResult",
    "TestSpec",
    "TestStats",
    "VarianceComponentsTest",
    "adaptive_pvalue",
    "adjust_results",
    "benjamini_hochberg",
    "enumerate_tests",
    "format_result_line",
    "max_permutations",
    "missingness_fingerprint",
    "run_tests",
    "success_threshold",
    "write_results",
]
