"""Configuration dataclasses for PopPAnTe.

OutputConfig controls where results and the run log go. AnalysisConfig
holds every option that changes what is computed; validate() rejects
conflicting combinations before any input file is read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from poppante.core.errors import ConfigError
from poppante.linalg.decompose import Decomposition

# Kinship thresholds for second and third cousins
MINK_SHORTHANDS = {"c2": 0.0315, "c3": 0.0078}


class Mode(str, Enum):
    """Analysis mode."""

    PEDCHECK = "pedcheck"
    HERITABILITY = "heritability"
    ASSOCIATION = "association"


class Normalise(str, Enum):
    """Which values receive the inverse-normal transform."""

    RESPONSE = "response"
    PREDICTOR = "predictor"
    BOTH = "both"

    @property
    def response(self) -> bool:
        return self in (Normalise.RESPONSE, Normalise.BOTH)

    @property
    def predictor(self) -> bool:
        return self in (Normalise.PREDICTOR, Normalise.BOTH)


def parse_mink(value: str | float | None) -> float:
    """Parse a minimum-kinship threshold.

    Accepts a number <= 1 or one of the shorthands "c2" and "c3".

    Raises:
        ConfigError: On an unknown shorthand or a value above 1.
    """
    if value is None:
        return 0.0
    if isinstance(value, str):
        key = value.strip().lower()
        if key in MINK_SHORTHANDS:
            return MINK_SHORTHANDS[key]
        try:
            value = float(key)
        except ValueError:
            raise ConfigError(
                f"invalid mink value {value!r}: expected a number, 'c2' or 'c3'"
            ) from None
    if value > 1.0:
        raise ConfigError(f"mink must be <= 1, got {value}")
    return float(value)


def parse_correction(value: str | None) -> tuple[Path | None, float | None]:
    """Split a correction option into (covariate file, variance fraction).

    A value that parses as a number in (0, 1] is a principal-component
    variance fraction; anything else is a file path.
    """
    if value is None:
        return None, None
    try:
        fraction = float(value)
    except ValueError:
        return Path(value), None
    if not 0.0 < fraction <= 1.0:
        raise ConfigError(f"correction fraction must be in (0, 1], got {fraction}")
    return None, fraction


@dataclass
class OutputConfig:
    """Configuration for output files and directories.

    Attributes:
        outdir: Output directory for result files. Created if it doesn't exist.
        prefix: Prefix for output filenames (e.g., "result" produces "result.tsv").
        verbose: Enable verbose/debug output to console.
        header: Write the column header line of the result table.
    """

    outdir: Path = field(default_factory=lambda: Path("output"))
    prefix: str = "result"
    verbose: bool = False
    header: bool = True

    @property
    def results_path(self) -> Path:
        """Path to the result table: {outdir}/{prefix}.tsv"""
        return self.outdir / f"{self.prefix}.tsv"

    @property
    def log_path(self) -> Path:
        """Path to the run log: {outdir}/{prefix}.log.txt"""
        return self.outdir / f"{self.prefix}.log.txt"

    def ensure_outdir(self) -> None:
        """Create output directory if it doesn't exist."""
        self.outdir.mkdir(parents=True, exist_ok=True)


@dataclass
class AnalysisConfig:
    """Options that change what is computed.

    Attributes:
        mode: pedcheck, heritability or association.
        decomposition: Covariance decomposition. LU and QR are only allowed
            with an external kinship matrix.
        region: Window size in bp for region collapsing, or None.
        alpha: Target significance for adaptive permutation.
        c: Relative precision for adaptive permutation.
        relc: p-value threshold under which family contributions are reported.
        mink: Kinship values below this are set to 0 (external kinship only).
        normalise: Inverse-normal transform target, or None.
        correction_file: Covariates to regress out of the predictors.
        correction_fraction: Regress out the leading predictor principal
            components explaining this fraction of variance.
        report_variances: Add null and full variance estimates to the output.
        external_kinship: True when a kinship file replaces the pedigree.
        threads: Worker pool size (None = POPPANTE_THREADS or a single worker).
        seed: Base seed for permutation generators.
    """

    mode: Mode = Mode.ASSOCIATION
    decomposition: Decomposition = Decomposition.CHOLESKY
    region: int | None = None
    alpha: float | None = None
    c: float | None = None
    relc: float | None = None
    mink: float = 0.0
    normalise: Normalise | None = None
    correction_file: Path | None = None
    correction_fraction: float | None = None
    report_variances: bool = False
    external_kinship: bool = False
    threads: int | None = None
    seed: int = 0

    @property
    def permutation(self) -> bool:
        """True when adaptive permutation runs for association tests."""
        return (
            self.mode == Mode.ASSOCIATION
            and self.alpha is not None
            and self.c is not None
        )

    @property
    def family_stats(self) -> bool:
        """True when per-family contribution statistics are computed."""
        return self.relc is not None and not self.external_kinship

    def validate(self) -> None:
        """Check option combinations.

        Raises:
            ConfigError: On conflicting or out-of-range options.
        """
        if (self.alpha is None) != (self.c is None):
            raise ConfigError("--alpha and --c must be given together")
        if self.alpha is not None and not 0.0 < self.alpha < 1.0:
            raise ConfigError(f"alpha must be in (0, 1), got {self.alpha}")
        if self.c is not None and self.c <= 0.0:
            raise ConfigError(f"c must be positive, got {self.c}")
        if self.relc is not None and not 0.0 < self.relc <= 1.0:
            raise ConfigError(f"relc must be in (0, 1], got {self.relc}")
        if self.region is not None and self.region < 0:
            raise ConfigError(f"region window must be non-negative, got {self.region}")
        if self.mink > 1.0:
            raise ConfigError(f"mink must be <= 1, got {self.mink}")
        if self.decomposition != Decomposition.CHOLESKY and not self.external_kinship:
            raise ConfigError(
                f"decomposition {self.decomposition.value!r} requires an external kinship file"
            )
        if self.correction_file is not None and self.correction_fraction is not None:
            raise ConfigError("correction takes either a covariate file or a fraction")
        if self.threads is not None and self.threads < 1:
            raise ConfigError(f"threads must be >= 1, got {self.threads}")
