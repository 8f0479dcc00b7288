"""Core infrastructure for PopPAnTe.

- config: OutputConfig and AnalysisConfig dataclasses
- errors: exception hierarchy
- missing: the single missing-value predicate
- progress: progressbar2 iterator
- threading: worker and BLAS thread control
"""

from poppante.core.config import AnalysisConfig, Mode, Normalise, OutputConfig
from poppante.core.errors import (
    ConfigError,
    InfiniteLikelihood,
    InputFormatError,
    NotConverging,
    NotEnoughData,
    NotEstimable,
    NotPositiveDefinite,
    NumericalError,
    PedigreeError,
    PoppanteError,
    SvdNonConvergence,
)
from poppante.core.missing import is_missing

__all__ = [
    "AnalysisConfig",
    "ConfigError",
    "InfiniteLikelihood",
    "InputFormatError",
    "Mode",
    "Normalise",
    "NotConverging",
    "NotEnoughData",
    "NotEstimable",
    "NotPositiveDefinite",
    "NumericalError",
    "OutputConfig",
    "PedigreeError",
    "PoppanteError",
    "SvdNonConvergence",
    "is_missing",
]
