"""Pedigree model and checks."""

from poppante.pedigree.check import check_family, check_pedigree, format_report
from poppante.pedigree.model import (
    EXTERNAL_FAMILY_ID,
    FOUNDER_ID,
    MOCK_AFFECTION,
    Family,
    Individual,
    Sex,
    Twin,
    group_families,
    single_family,
)

__all__ = [
    "EXTERNAL_FAMILY_ID",
    "FOUNDER_ID",
    "MOCK_AFFECTION",
    "Family",
    "Individual",
    "Sex",
    "Twin",
    "check_family",
    "check_pedigree",
    "format_report",
    "group_families",
    "single_family",
]
