"""Input readers.

- pedigree: PED file
- predictor: predictor map, predictor values, name lists
- covariate: model covariates and predictor correction covariates
"""

from poppante.io.covariate import read_correction_covariates, read_covariates
from poppante.io.pedigree import PedigreeTable, parse_individual, read_pedigree
from poppante.io.predictor import (
    Marker,
    MarkerMap,
    read_marker_map,
    read_name_list,
    read_predictor_values,
)

__all__ = [
    "Marker",
    "MarkerMap",
    "PedigreeTable",
    "parse_individual",
    "read_correction_covariates",
    "read_covariates",
    "read_marker_map",
    "read_name_list",
    "read_pedigree",
    "read_predictor_values",
]
