"""Result table writer.

Tab-separated, one header line (dropped with --no-header), one row per
test in enumeration order. Columns depend on the run options:

    [Response] Predictor [Chr Position] Nobs Lnlk_Null Lnlk_Full df_Null
    df_Full chi^2 pvalue adj_pvalue [epvalue adj_epvalue]
    (Heritability | beta se Variance.Explained) [PosF GiniC]
    [var_Null var_Full]

A failed test prints its warning message in place of the statistics.

Lnlk_Null and Lnlk_Full are log-likelihoods ln L, so the full model has
the larger value and chi^2 = 2 (Lnlk_Full - Lnlk_Null). They are not the
minimised objective -ln L.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from poppante.lmm.stats import TestResult, TestStats

SCIENTIFIC_THRESHOLD = 0.001


@dataclass(frozen=True)
class TableLayout:
    """Optional column groups of the result table.

    Attributes:
        association: Association columns (Response, beta, se, ...) instead
            of Heritability.
        positioned: Chr and Position columns.
        empirical: epvalue and adj_epvalue columns.
        family_stats: PosF and GiniC columns.
        variances: var_Null and var_Full columns.
    """

    association: bool = False
    positioned: bool = False
    empirical: bool = False
    family_stats: bool = False
    variances: bool = False

    def header(self) -> str:
        columns = ["Predictor"]
        if self.association:
            columns.insert(0, "Response")
        if self.positioned:
            columns += ["Chr", "Position"]
        columns += [
            "Nobs",
            "Lnlk_Null",
            "Lnlk_Full",
            "df_Null",
            "df_Full",
            "chi^2",
            "pvalue",
            "adj_pvalue",
        ]
        if self.empirical:
            columns += ["epvalue", "adj_epvalue"]
        if self.association:
            columns += ["beta", "se", "Variance.Explained"]
        else:
            columns.append("Heritability")
        if self.family_stats:
            columns += ["PosF", "GiniC"]
        if self.variances:
            columns += ["var_Null", "var_Full"]
        return "\t".join(columns)


def _finite(value: float | None) -> bool:
    return value is not None and not math.isnan(value)


def format_fixed(value: float | None, decimals: int = 2) -> str:
    if not _finite(value):
        return "NaN"
    return f"{value:.{decimals}f}"


def format_scientific(value: float) -> str:
    """Two-decimal mantissa, unpadded exponent: 1.23E-5."""
    mantissa, exponent = f"{value:.2E}".split("E")
    return f"{mantissa}E{int(exponent)}"


def format_small(value: float | None, magnitude: bool = False) -> str:
    """Four decimals, or scientific below 0.001.

    Args:
        value: Value to format.
        magnitude: Compare |value| with the threshold (signed statistics).
    """
    if not _finite(value):
        return "NaN"
    check = abs(value) if magnitude else value
    if check < SCIENTIFIC_THRESHOLD:
        return format_scientific(value)
    return f"{value:.4f}"


def format_percent(value: float | None) -> str:
    if not _finite(value):
        return "NaN"
    return f"{value * 100:.2f}%"


def format_variances(values: np.ndarray) -> str:
    return "( " + " ".join(format_small(float(v)) for v in values) + " )"


def format_stats(stats: TestStats, layout: TableLayout) -> list[str]:
    fields = [
        str(stats.n_obs),
        format_fixed(stats.lnl_null),
        format_fixed(stats.lnl_full),
        str(stats.df_null),
        str(stats.df_full),
        format_fixed(stats.chi2),
        format_small(stats.pvalue),
        format_small(stats.adj_pvalue),
    ]
    if layout.empirical:
        fields += [format_small(stats.epvalue), format_small(stats.adj_epvalue)]
    if layout.association:
        fields += [
            format_small(stats.beta, magnitude=True),
            format_small(stats.se, magnitude=True),
            format_percent(stats.variance_explained),
        ]
    else:
        fields.append(format_fixed(stats.heritability, 4))
    if layout.family_stats:
        fields += [format_percent(stats.pos_f), format_fixed(stats.gini)]
    if layout.variances:
        fields += [format_variances(stats.var_null), format_variances(stats.var_full)]
    return fields


def format_result_line(result: TestResult, layout: TableLayout) -> str:
    """Format one result as a tab-separated line (no newline).

    Family statistics are only computed below the relc threshold; other
    rows show NaN in those columns.
    """
    fields = []
    if layout.association:
        fields.append(result.response or "")
    fields.append(result.predictor)
    if layout.positioned:
        fields += [str(result.chromosome), str(result.position)]
    if result.stats is None:
        fields.append(result.warning or "")
    else:
        fields += format_stats(result.stats, layout)
    return "\t".join(fields)


def write_results(
    results: list[TestResult], path: Path, layout: TableLayout, header: bool = True
) -> int:
    """Write the result table.

    Args:
        results: Results in output order.
        path: Output file path (parent directories created if needed).
        layout: Column layout.
        header: Write the column header line first.

    Returns:
        Number of rows written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        if header:
            f.write(layout.header() + "\n")
        for result in results:
            f.write(format_result_line(result, layout) + "\n")
    return len(results)
