"""PopPAnTe: Population and Pedigree Association Testing.

PopPAnTe tests quantitative predictors (for example DNA methylation sites)
against quantitative responses in samples of related individuals. Each
test fits a variance-components linear mixed model across families, with
kinship from the pedigree or from an external matrix, and compares it to
a nested null model by a likelihood-ratio test.

Key features:
- Pedigree kinship by Lange's recursion, or a bent external kinship matrix
- Heritability and association modes with region collapsing
- Null model reuse across tests sharing a missingness pattern
- Adaptive permutation p-values and Benjamini-Hochberg adjustment

Example:
    >>> from poppante import scan
    >>> result = scan("fam.ped", "meth.txt", "meth.map", response="resp.txt")
    >>> print(f"{result.n_tests} tests in {result.timing['total_s']:.1f}s")
"""

import sys
from importlib.metadata import version

from loguru import logger

__version__ = version("poppante")

# Configure loguru with sensible defaults on import
# Users can override by calling logger.remove()/add()
logger.remove()  # Remove default handler
logger.add(
    sys.stdout,
    level="INFO",
    format="{time:HH:mm:ss} | <level>{level: <8}</level> | {message}",
    colorize=True,
)

from poppante.scan import ScanResult, scan  # noqa: E402

__all__ = ["scan", "ScanResult", "__version__"]
