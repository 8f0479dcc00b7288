"""Exception hierarchy for PopPAnTe.

Numerical failures raised while fitting a single test derive from
NumericalError. The test driver traps them and reports the test as a
warning result, so one ill-conditioned family never aborts a batch.
Problems with the inputs or options (InputFormatError, PedigreeError,
ConfigError) also derive from ValueError; the CLI reports any
PoppanteError as an error message and exit code 1.
"""

from __future__ import annotations


class PoppanteError(Exception):
    """Base class for all PopPAnTe errors."""


class NumericalError(PoppanteError):
    """A numerical failure local to one test."""

    kind = "numerical"


class NotPositiveDefinite(NumericalError):
    """Cholesky decomposition of a covariance matrix failed."""

    kind = "not_positive_definite"


class InfiniteLikelihood(NumericalError):
    """A log-likelihood or log-determinant was not finite."""

    kind = "infinite_likelihood"


class NotConverging(NumericalError):
    """The simplex minimiser exceeded its evaluation budget."""

    kind = "not_converging"


class SvdNonConvergence(NumericalError):
    """The singular value decomposition did not converge."""

    kind = "svd_non_convergence"


class NotEnoughData(NumericalError):
    """Too few observations for the number of model parameters."""

    kind = "not_enough_data"


class NotEstimable(NumericalError):
    """A required design column was removed as a linear degenerate."""

    kind = "not_estimable"


class InputFormatError(PoppanteError, ValueError):
    """A malformed line in an input file.

    Args:
        message: Description of the problem.
        path: File that contains the problem, if known.
        line: 1-based line number, if known.
    """

    def __init__(
        self, message: str, path: object | None = None, line: int | None = None
    ) -> None:
        self.path = path
        self.line = line
        where = ""
        if path is not None:
            where = f"{path}"
            if line is not None:
                where += f", line {line}"
            where += ": "
        super().__init__(f"{where}{message}")


class PedigreeError(PoppanteError, ValueError):
    """An inconsistent pedigree structure (duplicate IDs, parent cycles)."""


class ConfigError(PoppanteError, ValueError):
    """Options or input data that make a run impossible.

    Conflicting command-line options, a response filter that matches
    nothing, a region window on an unpositioned map and similar problems
    found before any test runs.
    """
