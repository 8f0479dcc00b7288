"""Tests for pedigree kinship, external kinship and bending."""

import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from hypothesis.extra.numpy import arrays

from poppante.kinship import (
    bend,
    build_external_kinship,
    compute_family_kinship,
    reset_kinship,
)
from poppante.pedigree import Individual, Sex, Twin, group_families

pytestmark = pytest.mark.tier0


def _sorted_family(people):
    family = group_families(people)["F1"]
    family.sort_members()
    return family


class TestPedigreeKinship:
    def test_trio(self):
        family = _sorted_family(
            [
                Individual("F1", "1", sex=Sex.MALE),
                Individual("F1", "2", sex=Sex.FEMALE),
                Individual("F1", "3", "1", "2"),
            ]
        )
        k = family.compute_kinship()
        np.testing.assert_array_equal(
            k, [[1.0, 0.0, 0.5], [0.0, 1.0, 0.5], [0.5, 0.5, 1.0]]
        )

    def test_full_siblings_and_grandchild(self):
        family = _sorted_family(
            [
                Individual("F1", "1", sex=Sex.MALE),
                Individual("F1", "2", sex=Sex.FEMALE),
                Individual("F1", "3", "1", "2", sex=Sex.MALE),
                Individual("F1", "4", "1", "2", sex=Sex.FEMALE),
                Individual("F1", "5", sex=Sex.FEMALE),
                Individual("F1", "6", "3", "5"),
            ]
        )
        k = family.compute_kinship()
        idx = {m.id: i for i, m in enumerate(family.members)}
        assert k[idx["3"], idx["4"]] == 0.5
        assert k[idx["1"], idx["6"]] == 0.25
        assert k[idx["4"], idx["6"]] == 0.25
        assert k[idx["5"], idx["6"]] == 0.5

    def test_inbred_child_self_kinship(self):
        family = _sorted_family(
            [
                Individual("F1", "1", sex=Sex.MALE),
                Individual("F1", "2", sex=Sex.FEMALE),
                Individual("F1", "3", "1", "2", sex=Sex.MALE),
                Individual("F1", "4", "1", "2", sex=Sex.FEMALE),
                Individual("F1", "5", "3", "4"),
            ]
        )
        k = family.compute_kinship()
        assert k[4, 4] == pytest.approx(1.25)

    def test_mz_twins_share_kinship_one(self):
        family = _sorted_family(
            [
                Individual("F1", "1", sex=Sex.MALE),
                Individual("F1", "2", sex=Sex.FEMALE),
                Individual("F1", "3", "1", "2", sex=Sex.MALE, twin=Twin.MZ),
                Individual("F1", "4", "1", "2", sex=Sex.MALE, twin=Twin.MZ),
            ]
        )
        assert family.has_mz_twin
        k = family.compute_kinship()
        assert k[2, 3] == 1.0
        assert k[0, 3] == 0.5

    def test_dz_twins_are_siblings(self):
        family = _sorted_family(
            [
                Individual("F1", "1", sex=Sex.MALE),
                Individual("F1", "2", sex=Sex.FEMALE),
                Individual("F1", "3", "1", "2", sex=Sex.MALE, twin=Twin.DZ),
                Individual("F1", "4", "1", "2", sex=Sex.MALE, twin=Twin.DZ),
            ]
        )
        assert family.compute_kinship()[2, 3] == 0.5

    def test_missing_parent_contributes_zero(self):
        members = [
            Individual("F1", "1", sex=Sex.MALE),
            Individual("F1", "3", "1", "9"),
        ]
        k = compute_family_kinship(members)
        np.testing.assert_array_equal(k, [[1.0, 0.5], [0.5, 1.0]])

    def test_reset_kinship_drops_rows_and_columns(self):
        k = np.arange(16, dtype=float).reshape(4, 4)
        out = reset_kinship(k, [2, 0])
        np.testing.assert_array_equal(out, [[5.0, 7.0], [13.0, 15.0]])
        assert reset_kinship(k, []) is k


class TestExternalKinship:
    def test_builds_symmetric_matrix(self):
        positions = {("A", "1"): 0, ("A", "2"): 1, ("B", "1"): 2}
        triples = [
            ("A", "1", "A", "2", 0.5),
            ("A", "2", "B", "1", 0.01),
            ("A", "1", "Z", "9", 0.5),
            ("A", "1", "A", "1", 2.0),
        ]
        k = build_external_kinship(positions, triples, mink=0.0315)
        expected = np.array([[1.0, 0.5, 0.0], [0.5, 1.0, 0.0], [0.0, 0.0, 1.0]])
        np.testing.assert_array_equal(k, expected)


class TestBending:
    def test_indefinite_matrix_becomes_positive_definite(self):
        k = np.array([[1.0, 0.9, 0.9], [0.9, 1.0, -0.9], [0.9, -0.9, 1.0]])
        assert np.linalg.eigvalsh(k)[0] < 0
        bent = bend(k)
        np.testing.assert_allclose(bent, bent.T)
        assert np.linalg.eigvalsh(bent)[0] > 0
        np.linalg.cholesky(bent)

    def test_bending_is_idempotent(self):
        k = np.array([[1.0, 0.9, 0.9], [0.9, 1.0, -0.9], [0.9, -0.9, 1.0]])
        once = bend(k)
        np.testing.assert_allclose(bend(once), once, atol=1e-10)

    def test_positive_definite_matrix_unchanged(self):
        k = np.array([[1.0, 0.5], [0.5, 1.0]])
        assert bend(k) is k

    def test_rejects_non_positive_spectrum(self):
        with pytest.raises(ValueError):
            bend(-np.eye(3))

    @settings(max_examples=30, deadline=None)
    @given(
        arrays(
            np.float64,
            (5, 5),
            elements=st.floats(-1.0, 1.0, allow_nan=False, allow_subnormal=False),
        )
    )
    def test_bent_matrix_is_symmetric_with_floored_spectrum(self, a):
        k = 0.5 * (a + a.T) + np.eye(5)
        if np.linalg.eigvalsh(k)[-1] <= 0.1:
            return
        bent = bend(k)
        np.testing.assert_allclose(bent, bent.T, atol=1e-12)
        eigenvalues = np.linalg.eigvalsh(bent)
        assert eigenvalues[0] >= 1e-6 * eigenvalues[-1] - 1e-9
