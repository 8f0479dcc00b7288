"""Top-level API for PopPAnTe.

Provides a single-call entry point for a heritability or association run:
read the inputs, run every test, adjust p-values, write the result table.

Example:
    >>> from poppante import scan
    >>> result = scan("fam.ped", "meth.txt", "meth.map", response="resp.txt")
    >>> print(f"{result.n_tests} tests in {result.timing['total_s']:.1f}s")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from poppante.core.config import (
    AnalysisConfig,
    Mode,
    Normalise,
    OutputConfig,
    parse_correction,
    parse_mink,
)
from poppante.dataset import DatasetFiles
from poppante.linalg.decompose import Decomposition
from poppante.lmm.stats import TestResult
from poppante.pipeline import PipelineConfig, PipelineRunner


@dataclass
class ScanResult:
    """Result of a scan.

    Attributes:
        results: One result per test, in output order.
        n_individuals: Individuals analysed.
        n_tests: Number of tests run.
        n_failed: Tests that ended with a warning.
        results_path: Path of the written result table.
        timing: Timing breakdown with keys 'load_s', 'tests_s', 'total_s'.
    """

    results: list[TestResult]
    n_individuals: int
    n_tests: int
    n_failed: int
    results_path: Path
    timing: dict[str, float] = field(default_factory=dict)


def _path(value: str | Path | None) -> Path | None:
    return Path(value) if value is not None else None


def scan(
    ped: str | Path,
    predictor: str | Path,
    map_file: str | Path,
    *,
    response: str | Path | None = None,
    covariate: str | Path | None = None,
    kinship: str | Path | None = None,
    include: str | Path | None = None,
    filter: str | Path | None = None,
    mode: str | None = None,
    decomposition: str = "cholesky",
    region: int | None = None,
    alpha: float | None = None,
    c: float | None = None,
    relc: float | None = None,
    mink: str | float | None = None,
    normalise: str | None = None,
    correct: str | None = None,
    report_variances: bool = False,
    threads: int | None = None,
    seed: int = 0,
    output_dir: str | Path = "output",
    output_prefix: str = "result",
    show_progress: bool = True,
) -> ScanResult:
    """Run a complete heritability or association scan in a single call.

    Equivalent to the CLI ``poppante heritability`` / ``poppante association``
    commands. The mode defaults to association when a response file is
    given and to heritability otherwise.

    Args:
        ped: Pedigree file.
        predictor: Predictor values file.
        map_file: Predictor map.
        response: Response names (association mode).
        covariate: Model covariates.
        kinship: External kinship triples, replacing pedigree kinship.
        include: Predictor names to test.
        filter: Response names to test.
        mode: "heritability" or "association".
        decomposition: "cholesky", "lu" or "qr" (the last two need kinship).
        region: Region collapsing window in bp.
        alpha: Target significance for adaptive permutation.
        c: Relative precision for adaptive permutation.
        relc: p-value threshold for family contribution statistics.
        mink: Minimum kinship, a number or "c2"/"c3".
        normalise: "response", "predictor" or "both".
        correct: Correction covariate file or a variance fraction in (0, 1].
        report_variances: Add variance estimates to the result table.
        threads: Worker threads.
        seed: Base seed for permutations.
        output_dir: Directory for output files (created if needed).
        output_prefix: Prefix for output filenames.
        show_progress: If True, show a progress bar.

    Returns:
        ScanResult with results, counts, output path and timing.

    Raises:
        FileNotFoundError: If an input file does not exist.
        ValueError: On conflicting options or malformed input.
    """
    if mode is None:
        mode = "association" if response is not None else "heritability"
    correction_file, correction_fraction = parse_correction(
        str(correct) if correct is not None else None
    )
    analysis = AnalysisConfig(
        mode=Mode(mode),
        decomposition=Decomposition(decomposition),
        region=region,
        alpha=alpha,
        c=c,
        relc=relc,
        mink=parse_mink(mink),
        normalise=Normalise(normalise) if normalise is not None else None,
        correction_file=correction_file,
        correction_fraction=correction_fraction,
        report_variances=report_variances,
        threads=threads,
        seed=seed,
    )
    files = DatasetFiles(
        ped=Path(ped),
        predictor=Path(predictor),
        map_file=Path(map_file),
        response=_path(response),
        covariate=_path(covariate),
        kinship=_path(kinship),
        include=_path(include),
        filter=_path(filter),
    )
    output = OutputConfig(outdir=Path(output_dir), prefix=output_prefix)

    result = PipelineRunner(
        PipelineConfig(files=files, analysis=analysis, output=output, show_progress=show_progress)
    ).run()
    return ScanResult(
        results=result.results,
        n_individuals=result.n_individuals,
        n_tests=result.n_tests,
        n_failed=result.n_failed,
        results_path=result.results_path,
        timing=result.timing,
    )
