"""Property-based tests using Hypothesis.

These tests verify properties that must hold for any input:
1. Kinship matrices of random pedigrees are symmetric with non-negative entries
2. Benjamini-Hochberg adjustment preserves order and never lowers a p-value
3. The likelihood-ratio statistic and its p-value stay in range
"""

from __future__ import annotations

import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from poppante.lmm.fdr import benjamini_hochberg
from poppante.lmm.stats import family_contributions, lrt_pvalue
from poppante.pedigree import Individual, Sex, group_families
from poppante.transform import inverse_normal_transform

pytestmark = pytest.mark.tier0


# -----------------------------------------------------------------------------
# Custom Strategies
# -----------------------------------------------------------------------------


@st.composite
def random_pedigree(draw, max_founders=4, max_offspring=6):
    """Generate a family where each non-founder picks parents among earlier members.

    Members are emitted in shuffled order so the topological sort is exercised.
    """
    n_founders = draw(st.integers(min_value=2, max_value=max_founders))
    n_offspring = draw(st.integers(min_value=0, max_value=max_offspring))
    people = []
    males, females = [], []
    for i in range(n_founders):
        sex = Sex.MALE if i % 2 == 0 else Sex.FEMALE
        people.append(Individual("F", str(i + 1), sex=sex))
        (males if sex == Sex.MALE else females).append(str(i + 1))
    for j in range(n_offspring):
        ident = str(n_founders + j + 1)
        father = draw(st.sampled_from(males))
        mother = draw(st.sampled_from(females))
        sex = draw(st.sampled_from([Sex.MALE, Sex.FEMALE]))
        people.append(Individual("F", ident, father, mother, sex=sex))
        (males if sex == Sex.MALE else females).append(ident)
    order = draw(st.permutations(list(range(len(people)))))
    return [people[i] for i in order]


pvalue_lists = st.lists(
    st.floats(min_value=0.0, max_value=1.0, allow_nan=False), min_size=1, max_size=60
)


# -----------------------------------------------------------------------------
# Kinship
# -----------------------------------------------------------------------------


@settings(max_examples=50, deadline=None)
@given(random_pedigree())
def test_kinship_symmetric_and_bounded(people):
    family = group_families(people)["F"]
    family.sort_members()
    k = family.compute_kinship()
    np.testing.assert_array_equal(k, k.T)
    assert np.all(k >= 0.0)
    assert np.all(np.diag(k) >= 1.0)
    assert np.all(np.diag(k) <= 2.0)


@settings(max_examples=50, deadline=None)
@given(random_pedigree())
def test_kinship_positive_semidefinite(people):
    family = group_families(people)["F"]
    family.sort_members()
    k = family.compute_kinship()
    assert np.linalg.eigvalsh(k)[0] > -1e-10


# -----------------------------------------------------------------------------
# Multiple testing and statistics
# -----------------------------------------------------------------------------


@given(pvalue_lists)
def test_bh_never_below_raw_and_capped(pvalues):
    p = np.array(pvalues)
    adjusted = benjamini_hochberg(p)
    assert np.all(adjusted >= p - 1e-15)
    assert np.all(adjusted <= 1.0)


@given(pvalue_lists)
def test_bh_preserves_order(pvalues):
    p = np.array(pvalues)
    adjusted = benjamini_hochberg(p)
    order = np.argsort(p, kind="stable")
    assert np.all(np.diff(adjusted[order]) >= -1e-15)


@given(
    st.floats(min_value=-1e4, max_value=0.0, allow_nan=False),
    st.floats(min_value=-1e4, max_value=0.0, allow_nan=False),
)
def test_lrt_in_range(lnl_null, lnl_full):
    chi2, p = lrt_pvalue(lnl_null, lnl_full)
    assert chi2 >= 0.0
    assert 0.0 <= p <= 1.0


@given(
    st.lists(st.floats(min_value=-50, max_value=50, allow_nan=False), min_size=1, max_size=30)
)
def test_family_contributions_in_range(deltas):
    full = np.array(deltas)
    pos_f, gini = family_contributions(full, np.zeros_like(full))
    assert 0.0 <= pos_f <= 1.0
    if not np.isnan(gini):
        assert -1e-9 <= gini < 1.0


@given(
    st.lists(
        st.floats(min_value=-1e6, max_value=1e6, allow_nan=False), min_size=2, max_size=40
    )
)
def test_inverse_normal_transform_preserves_order(values):
    x = np.array(values)
    out = inverse_normal_transform(x)
    order = np.argsort(x, kind="stable")
    assert np.all(np.diff(out[order]) >= 0.0)
    assert np.all(np.isfinite(out))
