"""Logging utilities for PopPAnTe.

loguru console and file sinks, the "##" run log written next to the result
table, and resident memory checkpoints.
"""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import psutil
from loguru import logger

import poppante
from poppante.lmm.permutation import max_permutations, success_threshold

if TYPE_CHECKING:
    from poppante.core.config import AnalysisConfig, OutputConfig
    from poppante.pipeline import PipelineResult

CONSOLE_FORMAT = "{time:HH:mm:ss} | <level>{level: <8}</level> | {message}"


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure loguru for PopPAnTe.

    Per-test numerical warnings are logged at DEBUG, so they only reach the
    console with --verbose. The optional file sink always records DEBUG as
    JSON lines.

    Args:
        verbose: If True, set console logging to DEBUG level.
        log_file: Optional path of a JSON log file.
    """
    logger.remove()
    logger.add(
        sys.stdout,
        level="DEBUG" if verbose else "INFO",
        format=CONSOLE_FORMAT,
        colorize=True,
    )
    if log_file:
        logger.add(log_file, serialize=True, level="DEBUG")


def _analysis_lines(analysis: AnalysisConfig) -> list[str]:
    lines = [
        f"mode = {analysis.mode.value}",
        f"decomposition = {analysis.decomposition.value}",
        "kinship = " + ("external matrix" if analysis.external_kinship else "pedigree"),
    ]
    if analysis.region is not None:
        lines.append(f"region window = {analysis.region} bp")
    if analysis.normalise is not None:
        lines.append(f"inverse-normal transform = {analysis.normalise.value}")
    if analysis.correction_file is not None:
        lines.append(f"predictor correction = {analysis.correction_file}")
    elif analysis.correction_fraction is not None:
        lines.append(f"predictor correction = PCs explaining {analysis.correction_fraction:g}")
    if analysis.permutation:
        lines.append(
            f"adaptive permutation = alpha {analysis.alpha:g}, c {analysis.c:g}, "
            f"at most {max_permutations(analysis.alpha, analysis.c)} permutations, "
            f"stop at {success_threshold(analysis.alpha, analysis.c)} successes, "
            f"seed {analysis.seed}"
        )
    if analysis.family_stats:
        lines.append(f"family contributions below p = {analysis.relc:g}")
    return lines


def format_run_log(
    analysis: AnalysisConfig,
    result: PipelineResult,
    command_line: str,
    date: datetime | None = None,
) -> list[str]:
    """Lines of the run log, without the trailing newlines."""
    date = date or datetime.now()
    sections = {
        "analysis": _analysis_lines(analysis),
        "data": [
            f"individuals = {result.n_individuals}",
            f"families = {result.n_families}",
            f"responses = {result.n_responses}",
            f"predictors = {result.n_predictors}",
        ],
        "tests": [
            f"tests performed = {result.n_tests}",
            f"tests with warnings = {result.n_failed}",
            f"null models reused = {result.null_cache_hits}",
        ],
        "time": [
            f"data loaded in {result.timing.get('load_s', 0.0):.2f} s",
            f"tests performed in {result.timing.get('tests_s', 0.0):.2f} s",
            f"total {result.timing.get('total_s', 0.0):.2f} s",
        ],
    }
    lines = [
        f"## PopPAnTe {poppante.__version__} run log",
        f"## date: {date.isoformat(timespec='seconds')}",
        f"## command: {command_line}",
        f"## results: {result.results_path}",
    ]
    for title, entries in sections.items():
        lines.append("##")
        lines.append(f"## [{title}]")
        lines.extend(f"## {entry}" for entry in entries)
    lines.append("##")
    return lines


def write_run_log(
    output_config: OutputConfig,
    analysis: AnalysisConfig,
    result: PipelineResult,
    command_line: str,
) -> Path:
    """Write the run log to {outdir}/{prefix}.log.txt.

    Example output:
        ## PopPAnTe 0.1.0 run log
        ## date: 2026-10-17T10:30:00
        ## command: poppante association --ped fam.ped ...
        ## results: output/result.tsv
        ##
        ## [analysis]
        ## mode = association
        ## ...
        ##
        ## [tests]
        ## tests performed = 12226
        ## tests with warnings = 3
        ## null models reused = 12100

    Returns:
        Path to the written log file.
    """
    output_config.ensure_outdir()
    log_path = output_config.log_path
    log_path.write_text("\n".join(format_run_log(analysis, result, command_line)) + "\n")
    return log_path


def log_rss_memory(phase: str, checkpoint: str) -> float:
    """Log resident memory at a pipeline checkpoint.

    Returns:
        Current RSS in GB.
    """
    rss_gb = psutil.Process().memory_info().rss / 1e9
    logger.bind(phase=phase, checkpoint=checkpoint).debug(
        f"RSS memory at {phase}/{checkpoint}: {rss_gb:.2f}GB"
    )
    return rss_gb
