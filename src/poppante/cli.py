"""PopPAnTe command-line interface.

Typer application with three commands: pedcheck, heritability and
association. Global options (-outdir, -o, -v) are set by the callback and
shared by every command.
"""

import sys
from pathlib import Path
from typing import Annotated

import typer

import poppante
from poppante.core import AnalysisConfig, Mode, Normalise, OutputConfig, PoppanteError
from poppante.core.config import parse_correction, parse_mink
from poppante.dataset import DatasetFiles
from poppante.linalg.decompose import Decomposition
from poppante.pedigree.check import format_report
from poppante.pipeline import PipelineConfig, PipelineRunner, check_pedigree_file
from poppante.utils import setup_logging, write_run_log

# Create Typer app
app = typer.Typer(
    name="poppante",
    help="PopPAnTe: variance-components association and heritability in related individuals.",
    add_completion=False,
)

# Store global options set by callback
_global_config: OutputConfig | None = None


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"PopPAnTe version {poppante.__version__}")
        raise typer.Exit()


@app.callback()
def main(
    outdir: Annotated[
        Path,
        typer.Option("-outdir", help="Output directory"),
    ] = Path("output"),
    output: Annotated[
        str,
        typer.Option("-o", help="Output file prefix"),
    ] = "result",
    verbose: Annotated[
        bool,
        typer.Option("-v", "--verbose", help="Verbose output"),
    ] = False,
    header: Annotated[
        bool,
        typer.Option("--header/--no-header", help="Write the result table header line"),
    ] = True,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
) -> None:
    """PopPAnTe: Population and Pedigree Association Testing.

    Fits a variance-components linear mixed model per (response, predictor)
    pair across families and reports likelihood-ratio tests.
    """
    global _global_config
    _global_config = OutputConfig(
        outdir=outdir, prefix=output, verbose=verbose, header=header
    )
    setup_logging(verbose=verbose)


def _output_config() -> OutputConfig:
    global _global_config
    if _global_config is None:
        _global_config = OutputConfig()
    return _global_config


@app.command("pedcheck")
def pedcheck_command(
    ped: Annotated[Path, typer.Option("--ped", help="Pedigree file")],
    kinship: Annotated[
        Path | None,
        typer.Option("--kinship", help="External kinship file (skips structure checks)"),
    ] = None,
) -> None:
    """Check a pedigree file for format and structure problems."""
    typer.echo("Checking pedigree file")
    try:
        problems = check_pedigree_file(ped, external_kinship=kinship is not None)
    except (PoppanteError, FileNotFoundError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None
    if problems:
        typer.echo("The pedigree checker has found the following problems:")
    typer.echo(format_report(problems))


def _run_analysis(
    mode: Mode,
    files: DatasetFiles,
    decomposition: Decomposition,
    region: int | None,
    alpha: float | None,
    c: float | None,
    relc: float | None,
    mink: str | None,
    normalise: Normalise | None,
    correct: str | None,
    variance: bool,
    threads: int | None,
    seed: int,
) -> None:
    output_config = _output_config()
    command_line = " ".join(sys.argv)

    try:
        correction_file, correction_fraction = parse_correction(correct)
        analysis = AnalysisConfig(
            mode=mode,
            decomposition=decomposition,
            region=region,
            alpha=alpha,
            c=c,
            relc=relc,
            mink=parse_mink(mink),
            normalise=normalise,
            correction_file=correction_file,
            correction_fraction=correction_fraction,
            report_variances=variance,
            threads=threads,
            seed=seed,
        )
        config = PipelineConfig(files=files, analysis=analysis, output=output_config)
        result = PipelineRunner(config).run()
    except (PoppanteError, FileNotFoundError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None

    typer.echo(f"Results written to {result.results_path}")
    log_path = write_run_log(output_config, analysis, result, command_line)
    typer.echo(f"Log written to {log_path}")


PedOption = Annotated[Path, typer.Option("--ped", help="Pedigree file")]
PredictorOption = Annotated[Path, typer.Option("--predictor", help="Predictor values file")]
MapOption = Annotated[Path, typer.Option("--map", help="Predictor map file")]
CovariateOption = Annotated[
    Path | None, typer.Option("--covariate", help="Covariate file")
]
KinshipOption = Annotated[
    Path | None, typer.Option("--kinship", help="External kinship file")
]
IncludeOption = Annotated[
    Path | None, typer.Option("--include", help="Predictors to test, one per line")
]
CorrectOption = Annotated[
    str | None,
    typer.Option(
        "--correct",
        help="Correction covariate file, or a variance fraction in (0, 1] of predictor PCs",
    ),
]
NormaliseOption = Annotated[
    Normalise | None,
    typer.Option("--normalise", help="Inverse-normal transform target"),
]
DecompositionOption = Annotated[
    Decomposition,
    typer.Option("--decomposition", help="Covariance decomposition (lu/qr need --kinship)"),
]
RegionOption = Annotated[
    int | None, typer.Option("--region", help="Region collapsing window in bp")
]
RelcOption = Annotated[
    float | None,
    typer.Option("--relc", help="p-value threshold for family contribution statistics"),
]
MinkOption = Annotated[
    str | None,
    typer.Option("--mink", help="Minimum external kinship value, a number or c2/c3"),
]
VarianceOption = Annotated[
    bool, typer.Option("--variance", help="Report null and full variance estimates")
]
ThreadsOption = Annotated[
    int | None, typer.Option("--threads", help="Worker threads (default: POPPANTE_THREADS or 1)")
]
SeedOption = Annotated[int, typer.Option("--seed", help="Permutation seed")]


@app.command("heritability")
def heritability_command(
    ped: PedOption,
    predictor: PredictorOption,
    map_file: MapOption,
    covariate: CovariateOption = None,
    kinship: KinshipOption = None,
    include: IncludeOption = None,
    correct: CorrectOption = None,
    normalise: NormaliseOption = None,
    decomposition: DecompositionOption = Decomposition.CHOLESKY,
    region: RegionOption = None,
    relc: RelcOption = None,
    mink: MinkOption = None,
    variance: VarianceOption = False,
    threads: ThreadsOption = None,
) -> None:
    """Estimate the heritability of every predictor."""
    files = DatasetFiles(
        ped=ped,
        predictor=predictor,
        map_file=map_file,
        covariate=covariate,
        kinship=kinship,
        include=include,
    )
    _run_analysis(
        Mode.HERITABILITY,
        files,
        decomposition,
        region,
        None,
        None,
        relc,
        mink,
        normalise,
        correct,
        variance,
        threads,
        0,
    )


@app.command("association")
def association_command(
    ped: PedOption,
    predictor: PredictorOption,
    map_file: MapOption,
    response: Annotated[
        Path, typer.Option("--response", help="Response names, one per pedigree response column")
    ],
    filter_file: Annotated[
        Path | None, typer.Option("--filter", help="Responses to test, one per line")
    ] = None,
    alpha: Annotated[
        float | None, typer.Option("--alpha", help="Target significance for permutation")
    ] = None,
    c: Annotated[
        float | None, typer.Option("--c", help="Relative precision for permutation")
    ] = None,
    covariate: CovariateOption = None,
    kinship: KinshipOption = None,
    include: IncludeOption = None,
    correct: CorrectOption = None,
    normalise: NormaliseOption = None,
    decomposition: DecompositionOption = Decomposition.CHOLESKY,
    region: RegionOption = None,
    relc: RelcOption = None,
    mink: MinkOption = None,
    variance: VarianceOption = False,
    threads: ThreadsOption = None,
    seed: SeedOption = 0,
) -> None:
    """Test every (response, predictor) pair for association."""
    files = DatasetFiles(
        ped=ped,
        predictor=predictor,
        map_file=map_file,
        response=response,
        covariate=covariate,
        kinship=kinship,
        include=include,
        filter=filter_file,
    )
    _run_analysis(
        Mode.ASSOCIATION,
        files,
        decomposition,
        region,
        alpha,
        c,
        relc,
        mink,
        normalise,
        correct,
        variance,
        threads,
        seed,
    )


if __name__ == "__main__":
    app()
