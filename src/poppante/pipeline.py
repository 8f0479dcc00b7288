"""Pipeline orchestration for PopPAnTe.

Provides a single PipelineRunner service class that encapsulates the shared
pipeline: validate inputs, load the dataset, run the tests, adjust p-values
and write the result table. Both the CLI (cli.py) and the Python API
(scan.py) delegate to this runner.

Example:
    >>> from poppante.pipeline import PipelineConfig, PipelineRunner
    >>> config = PipelineConfig(files=DatasetFiles(ped=..., predictor=..., map_file=...))
    >>> result = PipelineRunner(config).run()
    >>> print(f"Ran {result.n_tests} tests")
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from poppante.core.config import AnalysisConfig, Mode, OutputConfig
from poppante.core.errors import ConfigError, PedigreeError
from poppante.dataset import Dataset, DatasetFiles, load_dataset
from poppante.io.pedigree import read_pedigree
from poppante.lmm.dispatch import NullModelCache, run_tests
from poppante.lmm.fdr import adjust_results
from poppante.lmm.io import TableLayout, write_results
from poppante.lmm.stats import TestResult
from poppante.pedigree.check import check_pedigree
from poppante.pedigree.model import Family, Individual
from poppante.utils.logging import log_rss_memory


@dataclass
class PipelineConfig:
    """Configuration for a pipeline run.

    Attributes:
        files: Input files.
        analysis: Analysis options.
        output: Output directory and prefix.
        show_progress: If True, show a progress bar while tests run.
    """

    files: DatasetFiles
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    show_progress: bool = True


@dataclass
class PipelineResult:
    """Result of a pipeline run.

    Attributes:
        results: One result per test, in output order.
        n_individuals: Individuals left after the removal passes.
        n_families: Families (blocks) left after the removal passes.
        n_tests: Number of tests run.
        n_failed: Tests that ended with a warning.
        null_cache_hits: Tests that reused a cached null model.
        results_path: Path of the written result table.
        timing: Timing breakdown by pipeline phase.
        n_responses: Responses tested (0 in heritability mode).
        n_predictors: Predictors tested.
    """

    results: list[TestResult]
    n_individuals: int
    n_families: int
    n_tests: int
    n_failed: int
    null_cache_hits: int
    results_path: Path
    timing: dict[str, float] = field(default_factory=dict)
    n_responses: int = 0
    n_predictors: int = 0


class PipelineRunner:
    """Orchestrates a complete heritability or association run.

    Raises PoppanteError subclasses (ConfigError, InputFormatError,
    PedigreeError) and FileNotFoundError rather than calling sys.exit or
    typer.Exit. The CLI wrapper catches these and converts them to
    user-friendly error messages.

    Args:
        config: Pipeline configuration.
    """

    def __init__(self, config: PipelineConfig) -> None:
        self.config = config

    def validate_inputs(self) -> None:
        """Validate that input files exist and options are consistent.

        Raises:
            FileNotFoundError: If a given input file is missing.
            ConfigError: On conflicting options.
        """
        analysis = self.config.analysis
        files = self.config.files
        if analysis.mode == Mode.PEDCHECK:
            raise ConfigError("pedcheck runs through check_pedigree_file, not the pipeline")
        analysis.external_kinship = files.kinship is not None
        analysis.validate()

        if analysis.mode == Mode.ASSOCIATION and files.response is None:
            raise ConfigError("association mode requires a response file")

        for name, path in files.existing():
            if not Path(path).exists():
                raise FileNotFoundError(f"{name} file not found: {path}")
        if analysis.correction_file is not None and not analysis.correction_file.exists():
            raise FileNotFoundError(f"correction file not found: {analysis.correction_file}")

        if analysis.mode == Mode.HERITABILITY and (
            analysis.alpha is not None or files.response is not None
        ):
            logger.warning("Responses and permutation options are ignored in heritability mode")
        if analysis.relc is not None and analysis.external_kinship:
            logger.warning("relc is ignored with an external kinship matrix")

    def layout(self, dataset: Dataset) -> TableLayout:
        analysis = self.config.analysis
        return TableLayout(
            association=analysis.mode == Mode.ASSOCIATION,
            positioned=dataset.positioned,
            empirical=analysis.permutation,
            family_stats=analysis.family_stats,
            variances=analysis.report_variances,
        )

    def run(self) -> PipelineResult:
        """Execute the pipeline.

        Pipeline steps:
        1. Validate inputs
        2. Load and prepare the dataset
        3. Run the tests
        4. Benjamini-Hochberg adjustment
        5. Write the result table

        Returns:
            PipelineResult with results, counts, output path and timing.
        """
        t_start = time.perf_counter()
        self.validate_inputs()
        log_rss_memory("load", "start")

        dataset = load_dataset(self.config.files, self.config.analysis)
        load_s = time.perf_counter() - t_start
        log_rss_memory("load", "end")

        t_tests = time.perf_counter()
        cache = NullModelCache()
        results = run_tests(
            dataset, self.config.analysis, self.config.show_progress, cache=cache
        )
        tests_s = time.perf_counter() - t_tests
        log_rss_memory("tests", "end")

        adjust_results(results)
        self.config.output.ensure_outdir()
        results_path = self.config.output.results_path
        write_results(
            results, results_path, self.layout(dataset), header=self.config.output.header
        )
        logger.info(f"Results written to {results_path}")

        total_s = time.perf_counter() - t_start
        n_failed = sum(1 for r in results if not r.ok)
        logger.info(f"Analysis complete: {len(results)} tests in {total_s:.1f}s")

        return PipelineResult(
            results=results,
            n_individuals=dataset.n_individuals,
            n_families=dataset.n_families,
            n_tests=len(results),
            n_failed=n_failed,
            null_cache_hits=cache.hits,
            results_path=results_path,
            timing={"load_s": load_s, "tests_s": tests_s, "total_s": total_s},
            n_responses=len(dataset.response_names),
            n_predictors=len(dataset.markers),
        )


def _families_for_check(
    individuals: list[Individual], problems: list[str]
) -> dict[str, Family]:
    """Group individuals, recording duplicate IDs instead of raising."""
    families: dict[str, Family] = {}
    for person in individuals:
        family = families.setdefault(person.fam_id, Family(person.fam_id))
        try:
            family.add_member(person)
        except PedigreeError as e:
            problems.append(str(e))
    return {key: families[key] for key in sorted(families)}


def check_pedigree_file(ped: Path, external_kinship: bool = False) -> list[str]:
    """Validate a pedigree file and its family structure.

    Line-level problems come first, then duplicate IDs, then structural
    problems per family. With an external kinship matrix the parent and
    twin links are not used, so only the lines are checked.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    if not Path(ped).exists():
        raise FileNotFoundError(f"ped file not found: {ped}")
    table = read_pedigree(ped, lenient=True)
    problems = list(table.errors)
    families = _families_for_check(table.individuals, problems)
    if external_kinship:
        return problems
    return check_pedigree(families, problems)
