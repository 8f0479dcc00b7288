"""Tests for the pedigree model, member ordering and pedcheck."""

import pytest

from poppante.core.errors import PedigreeError
from poppante.pedigree import (
    Family,
    Individual,
    Sex,
    Twin,
    check_family,
    format_report,
    group_families,
    single_family,
)
from poppante.pedigree.check import PEDIGREE_CORRECT
from poppante.pipeline import check_pedigree_file

pytestmark = pytest.mark.tier0


def _trio(child_twin=Twin.NONE):
    return [
        Individual("F1", "3", "1", "2", sex=Sex.MALE, twin=child_twin),
        Individual("F1", "1", sex=Sex.MALE),
        Individual("F1", "2", sex=Sex.FEMALE),
    ]


class TestFamily:
    def test_group_sorts_family_ids(self):
        people = [Individual("B", "1"), Individual("A", "1"), Individual("B", "2")]
        families = group_families(people)
        assert list(families) == ["A", "B"]
        assert len(families["B"]) == 2

    def test_duplicate_id_raises(self):
        family = Family("F1")
        family.add_member(Individual("F1", "1"))
        with pytest.raises(PedigreeError, match="already present"):
            family.add_member(Individual("F1", "1"))

    def test_sort_puts_parents_first(self):
        family = group_families(_trio())["F1"]
        family.sort_members()
        order = [m.id for m in family.members]
        assert order.index("1") < order.index("3")
        assert order.index("2") < order.index("3")
        assert family.index_of(("F1", "3")) == 2

    def test_sort_detects_cycle(self):
        people = [
            Individual("F1", "1", "2", "0"),
            Individual("F1", "2", "1", "0"),
        ]
        family = group_families(people)["F1"]
        with pytest.raises(PedigreeError, match="own ancestor"):
            family.sort_members()

    def test_remove_where_shrinks_kinship(self):
        family = group_families(_trio())["F1"]
        family.sort_members()
        family.compute_kinship()
        removed = family.remove_where(lambda m: m.id == "2")
        assert removed == [1]
        assert family.kinship.shape == (2, 2)
        assert family.kinship[0, 1] == 0.5

    def test_mz_flag_only_for_non_founders(self):
        family = Family("F1")
        family.add_member(Individual("F1", "1", twin=Twin.MZ))
        assert not family.has_mz_twin
        family.add_member(Individual("F1", "2", "a", "b", twin=Twin.MZ))
        assert family.has_mz_twin

    def test_single_family_keeps_all(self):
        people = [Individual("A", "1"), Individual("B", "1")]
        families = single_family(people)
        (family,) = families.values()
        assert family.index_of(("B", "1")) == 1


class TestCheckFamily:
    def test_correct_trio(self):
        family = group_families(_trio())["F1"]
        assert check_family(family) == []
        assert format_report([]) == PEDIGREE_CORRECT

    def test_missing_mother(self):
        people = [
            Individual("F1", "1", sex=Sex.MALE),
            Individual("F1", "3", "1", "9", sex=Sex.MALE),
        ]
        problems = check_family(group_families(people)["F1"])
        assert problems == ["In family F1 subject 3 has no mother information."]

    def test_father_not_male(self):
        people = [
            Individual("F1", "1", sex=Sex.FEMALE),
            Individual("F1", "2", sex=Sex.FEMALE),
            Individual("F1", "3", "1", "2"),
        ]
        problems = check_family(group_families(people)["F1"])
        assert len(problems) == 1
        assert "father, but is not male" in problems[0]

    def test_twin_without_cotwin(self):
        problems = check_family(group_families(_trio(Twin.DZ))["F1"])
        assert problems == ["In family F1 subject 3 has no information about their DZ twin."]

    def test_mz_twins_of_different_sex(self):
        people = _trio() + [
            Individual("F1", "4", "1", "2", sex=Sex.MALE, twin=Twin.MZ),
            Individual("F1", "5", "1", "2", sex=Sex.FEMALE, twin=Twin.MZ),
        ]
        problems = check_family(group_families(people)["F1"])
        assert sum("different sex" in p for p in problems) == 2

    def test_report_lists_problems(self):
        report = format_report(["a", "b"])
        assert report == "\t- a\n\t- b"


class TestCheckPedigreeFile:
    def test_clean_file(self, write_file):
        path = write_file(
            "fam.ped",
            ["F1 1 0 0 1 0 0", "F1 2 0 0 2 0 0", "F1 3 1 2 1 0 0"],
        )
        assert check_pedigree_file(path) == []

    def test_collects_line_and_structure_errors(self, write_file):
        path = write_file(
            "fam.ped",
            [
                "F1 1 0 0 1 0 0",
                "F1 1 0 0 1 0 0",
                "F1 3 1 2 1 0 0",
                "F2 1 0 0 7 0 0",
            ],
        )
        problems = check_pedigree_file(path)
        assert any(p.startswith("Line 4: Sex") for p in problems)
        assert any("already present" in p for p in problems)
        assert any("has no mother information" in p for p in problems)

    def test_external_kinship_skips_structure(self, write_file):
        path = write_file("fam.ped", ["F1 3 1 2 1 0 0"])
        assert check_pedigree_file(path, external_kinship=True) == []
        assert check_pedigree_file(path) != []
