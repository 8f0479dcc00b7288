"""Kinship matrix construction.

Key functions:
- compute_family_kinship: pedigree kinship by Lange's recursion, with the
  MZ twin correction
- reset_kinship: shrink a family matrix after member removal
- build_external_kinship: all-individual matrix from kinship triples
- bend: eigenvalue flooring for matrices that are not positive definite
- read_kinship_triples: external kinship file reader
"""

from poppante.kinship.bending import BENDING_TOL, bend
from poppante.kinship.compute import (
    build_external_kinship,
    compute_family_kinship,
    reset_kinship,
)
from poppante.kinship.io import read_kinship_triples

__all__ = [
    "BENDING_TOL",
    "bend",
    "build_external_kinship",
    "compute_family_kinship",
    "read_kinship_triples",
    "reset_kinship",
]
