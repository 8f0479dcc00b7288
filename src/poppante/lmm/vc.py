"""Variance-components test of one (response, predictor) pair.

For every test the analysable individuals are selected, one Normal block
is built per family with at least one of them, and a null and a full
NormalSet are fitted:

- heritability: scores are the predictor (or its region collapse); the
  null model has the environmental component only, the full model adds
  the kinship component.
- association: scores are the response; both models have both components
  and the full model adds the predictor as design column 1.

The likelihood-ratio statistic is chi^2 on 1 df. Numerical failures are
caught here and returned as a warning result.
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
from loguru import logger

from poppante.core.config import AnalysisConfig, Mode
from poppante.core.errors import NotEnoughData, NumericalError
from poppante.core.missing import is_missing
from poppante.dataset import Dataset, FamilyBlock
from poppante.lmm.normal import Normal
from poppante.lmm.normal_set import NormalSet
from poppante.lmm.permutation import FAILED_PERMUTATION_PVALUE, adaptive_pvalue
from poppante.lmm.region import markers_in_window, region_scores
from poppante.lmm.stats import (
    NO_OBSERVATIONS,
    NOT_ENOUGH_OBSERVATIONS,
    NullModel,
    TestResult,
    TestStats,
    family_contributions,
    heritability,
    lrt_pvalue,
    standard_error,
    variance_explained,
)

# Design column of the tested predictor in association models
PREDICTOR_COLUMN = 1


@dataclass(frozen=True)
class TestSpec:
    """One entry of the test enumeration.

    Attributes:
        test_id: Position in the enumeration (and in the output).
        marker: Predictor index.
        response: Response index, None in heritability mode.
    """

    __test__ = False

    test_id: int
    marker: int
    response: int | None = None


@dataclass(frozen=True)
class AnalysableFamily:
    """Analysable members of one family block.

    Attributes:
        block: The family block.
        local: Member indices within the family.
    """

    block: FamilyBlock
    local: np.ndarray

    @property
    def rows(self) -> np.ndarray:
        return self.block.start + self.local

    def kinship(self) -> np.ndarray:
        return self.block.kinship[np.ix_(self.local, self.local)]


def analysable_families(blocks: list[FamilyBlock], mask: np.ndarray) -> list[AnalysableFamily]:
    """Families with at least one analysable member, in block order."""
    families = []
    for block in blocks:
        local = np.flatnonzero(mask[block.start : block.stop])
        if local.size:
            families.append(AnalysableFamily(block, local))
    return families


def missingness_fingerprint(missing_rows: np.ndarray) -> str:
    """SHA-256 digest of a sorted list of missing row indices."""
    rows = np.sort(np.asarray(missing_rows, dtype=np.int64))
    return hashlib.sha256(rows.tobytes()).hexdigest()


NullLookup = Callable[[tuple[int, str], Callable[[], NullModel]], tuple[NullModel, bool]]


def _no_cache(key: tuple[int, str], fit: Callable[[], NullModel]) -> tuple[NullModel, bool]:
    return fit(), False


class VarianceComponentsTest:
    """Runs variance-components tests against one prepared dataset.

    Args:
        dataset: Aligned pedigree, kinship and value matrices.
        config: Analysis options.
        null_lookup: Callable (key, fit) -> (null model, cache hit) used to
            share association null models. Defaults to always refitting.
    """

    def __init__(
        self,
        dataset: Dataset,
        config: AnalysisConfig,
        null_lookup: NullLookup | None = None,
    ) -> None:
        self.dataset = dataset
        self.config = config
        self.null_lookup = null_lookup or _no_cache
        self.association = config.mode == Mode.ASSOCIATION

    def predictor_values(self, marker: int) -> np.ndarray:
        """(N,) values of the tested predictor, region-collapsed if requested."""
        if self.config.region is None:
            return self.dataset.predictors[marker]
        indices = markers_in_window(self.dataset.markers, marker, self.config.region)
        return region_scores(self.dataset.predictors, indices)

    def analysable_mask(self, spec: TestSpec) -> np.ndarray:
        mask = ~is_missing(self.dataset.predictors[spec.marker])
        if spec.response is not None:
            mask &= ~is_missing(self.dataset.responses[spec.response])
        return mask

    def _design(self, families: list[AnalysableFamily], predictor: np.ndarray | None):
        """Per-family design matrices: intercept, [predictor,] covariates."""
        covariates = self.dataset.covariates
        designs = []
        for fam in families:
            rows = fam.rows
            columns = [np.ones(rows.size)]
            if predictor is not None:
                columns.append(predictor[rows])
            columns.extend(covariates[:, rows])
            designs.append(np.column_stack(columns))
        return designs

    def _model(
        self,
        families: list[AnalysableFamily],
        scores: np.ndarray,
        predictor: np.ndarray | None,
        genetic: bool,
    ) -> NormalSet:
        blocks = []
        for fam, design in zip(families, self._design(families, predictor)):
            components = [np.eye(fam.local.size)]
            if genetic:
                components.append(fam.kinship())
            blocks.append(
                Normal(scores[fam.rows], design, components, self.config.decomposition)
            )
        return NormalSet(blocks, 2 if genetic else 1)

    def run(self, spec: TestSpec) -> TestResult:
        """Run one test; numerical failures become a warning result."""
        marker = self.dataset.markers[spec.marker]
        result = TestResult(
            test_id=spec.test_id,
            predictor=marker.name,
            response=(
                self.dataset.response_names[spec.response]
                if spec.response is not None
                else None
            ),
            chromosome=marker.chromosome,
            position=marker.position,
        )
        try:
            result.stats = self._fit(spec)
        except NumericalError as e:
            logger.debug(f"Test {spec.test_id} ({marker.name}): {e}")
            result.warning = str(e)
            result.kind = e.kind
        return result

    def _fit(self, spec: TestSpec) -> TestStats:
        mask = self.analysable_mask(spec)
        families = analysable_families(self.dataset.blocks, mask)
        if not families:
            raise NotEnoughData(NO_OBSERVATIONS)

        values = self.predictor_values(spec.marker)
        if self.association:
            scores = self.dataset.responses[spec.response]
            null_set = self._model(families, scores, None, genetic=True)
            full_set = self._model(families, scores, values, genetic=True)
        else:
            scores = values
            null_set = self._model(families, scores, None, genetic=False)
            full_set = self._model(families, scores, None, genetic=True)

        def fit_null() -> NullModel:
            lnl = null_set.solve()
            return NullModel(lnl, null_set.df, null_set.variances.copy(), null_set.details())

        if self.association:
            key = (spec.response, missingness_fingerprint(np.flatnonzero(~mask)))
            null, cached = self.null_lookup(key, fit_null)
        else:
            null, cached = fit_null(), False

        lnl_full = full_set.solve()
        if null.df < 1 or full_set.df < 1:
            raise NotEnoughData(NOT_ENOUGH_OBSERVATIONS)
        chi2, pvalue = lrt_pvalue(null.log_likelihood, lnl_full)

        stats = TestStats(
            n_obs=full_set.n_observations,
            lnl_null=null.log_likelihood,
            lnl_full=lnl_full,
            df_null=null.df,
            df_full=full_set.df,
            chi2=chi2,
            pvalue=pvalue,
            var_null=null.variances,
            var_full=full_set.variances.copy(),
            null_cached=cached,
        )

        if self.association:
            rows = np.concatenate([fam.rows for fam in families])
            beta = full_set.coefficient(PREDICTOR_COLUMN)
            if beta is None:
                beta = 0.0
            stats.beta = beta
            stats.se = standard_error(beta, chi2)
            stats.variance_explained = variance_explained(beta, values[rows], scores[rows])
        else:
            stats.heritability = heritability(full_set.variances)

        if self.config.family_stats and pvalue <= self.config.relc:
            stats.pos_f, stats.gini = family_contributions(full_set.details(), null.details)

        if self.association and self.config.permutation:
            rng = np.random.default_rng([self.config.seed, spec.test_id])
            outcome = adaptive_pvalue(
                pvalue,
                lambda: self._permuted_pvalue(families, scores, values, null, rng),
                self.config.alpha,
                self.config.c,
            )
            stats.epvalue = outcome.pvalue
            stats.permutations = outcome.permutations

        return stats

    def _permuted_pvalue(
        self,
        families: list[AnalysableFamily],
        scores: np.ndarray,
        values: np.ndarray,
        null: NullModel,
        rng: np.random.Generator,
    ) -> float:
        """Refit the full model with the predictor shuffled within each family."""
        permuted = values.copy()
        for fam in families:
            rows = fam.rows
            permuted[rows] = rng.permutation(values[rows])
        try:
            full_set = self._model(families, scores, permuted, genetic=True)
            lnl = full_set.solve(required_column=PREDICTOR_COLUMN)
        except NumericalError:
            return FAILED_PERMUTATION_PVALUE
        return lrt_pvalue(null.log_likelihood, lnl)[1]
