"""External kinship file reader."""

from collections.abc import Iterator
from pathlib import Path

from poppante.core.errors import InputFormatError

KINSHIP_FIELDS = 5


def read_kinship_triples(path: Path) -> Iterator[tuple[str, str, str, str, float]]:
    """Read kinship entries from a whitespace-separated file.

    Each line is ``famA idA famB idB value``, with value already doubled
    (1.0 for an individual with itself). Extra trailing fields are ignored.

    Args:
        path: Kinship file path.

    Yields:
        (famA, idA, famB, idB, value) tuples.

    Raises:
        InputFormatError: If a line has fewer than five fields or a
            non-numeric value.
    """
    with open(path) as f:
        for line_no, line in enumerate(f, start=1):
            fields = line.split()
            if not fields:
                continue
            if len(fields) < KINSHIP_FIELDS:
                raise InputFormatError(
                    "line does not describe a valid kinship entry", path, line_no
                )
            try:
                value = float(fields[4])
            except ValueError:
                raise InputFormatError(
                    f"non-numeric kinship value {fields[4]!r}", path, line_no
                ) from None
            yield fields[0], fields[1], fields[2], fields[3], value
