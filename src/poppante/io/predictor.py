"""Predictor map, predictor values and name list readers.

Map file: one marker per line, either ``name`` or ``name chrom position``.
The width of the first line decides which form the whole file uses.

Predictor file: ``famId id value_1 ... value_M`` with one value per map
line, in map order. Individuals absent from the pedigree are skipped;
individuals absent from the file keep missing values.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np

from poppante.core.errors import InputFormatError
from poppante.core.missing import parse_value

MAP_FIELDS_POSITIONED = 3
KEY_FIELDS = 2


@dataclass(frozen=True)
class Marker:
    """A predictor and its optional genomic location.

    Attributes:
        name: Predictor name.
        chromosome: Chromosome label, None for an unmapped marker.
        position: Base-pair position, None for an unmapped marker.
    """

    name: str
    chromosome: str | None = None
    position: int | None = None

    @property
    def mapped(self) -> bool:
        return self.chromosome is not None and self.position is not None


@dataclass
class MarkerMap:
    """Markers selected from a map file.

    Attributes:
        markers: Kept markers, in file order.
        columns: Column index (0-based, among predictor values) of each kept marker.
        n_total: Number of lines in the map file.
        positioned: True when the map carries chromosome and position.
    """

    markers: list[Marker]
    columns: list[int]
    n_total: int
    positioned: bool


def read_name_list(path: Path) -> list[str]:
    """First column of every non-empty line (response, include, filter files)."""
    names = []
    with open(path) as f:
        for line in f:
            fields = line.split()
            if fields:
                names.append(fields[0])
    return names


def read_marker_map(path: Path, include: set[str] | None = None) -> MarkerMap:
    """Read a predictor map.

    Args:
        path: Map file.
        include: Marker names to keep, or None to keep all.

    Raises:
        InputFormatError: If a line is narrower than the first one or a
            position is not an integer.
    """
    markers: list[Marker] = []
    columns: list[int] = []
    width = None
    n_total = 0
    with open(path) as f:
        for line_no, line in enumerate(f, start=1):
            fields = line.split()
            if not fields:
                continue
            if width is None:
                width = MAP_FIELDS_POSITIONED if len(fields) >= MAP_FIELDS_POSITIONED else 1
            column = n_total
            n_total += 1
            if len(fields) < width:
                raise InputFormatError(
                    f"not a valid predictor description: expected {width} columns",
                    path,
                    line_no,
                )
            if include is not None and fields[0] not in include:
                continue
            if width == MAP_FIELDS_POSITIONED:
                try:
                    position = int(fields[2])
                except ValueError:
                    raise InputFormatError(
                        f"non-numeric position {fields[2]!r}", path, line_no
                    ) from None
                markers.append(Marker(fields[0], fields[1], position))
            else:
                markers.append(Marker(fields[0]))
            columns.append(column)
    return MarkerMap(
        markers=markers,
        columns=columns,
        n_total=n_total,
        positioned=width == MAP_FIELDS_POSITIONED,
    )


def read_predictor_values(
    path: Path,
    positions: dict[tuple[str, str], int],
    marker_map: MarkerMap,
) -> np.ndarray:
    """Read predictor values into an (M, N) matrix aligned to the position table.

    Args:
        path: Predictor file.
        positions: (famId, id) -> row index of the position table.
        marker_map: Selected markers and their columns.

    Returns:
        float64 matrix, NaN for missing or absent values.

    Raises:
        InputFormatError: On a wrong field count or non-numeric value.
    """
    values = np.full((len(marker_map.markers), len(positions)), np.nan)
    columns = np.asarray(marker_map.columns, dtype=np.intp) + KEY_FIELDS
    expected = KEY_FIELDS + marker_map.n_total
    with open(path) as f:
        for line_no, line in enumerate(f, start=1):
            fields = line.split()
            if not fields:
                continue
            if len(fields) != expected:
                raise InputFormatError(
                    f"expected {marker_map.n_total} predictor values, "
                    f"found {len(fields) - KEY_FIELDS}",
                    path,
                    line_no,
                )
            row = positions.get((fields[0], fields[1]))
            if row is None:
                continue
            try:
                values[:, row] = [parse_value(fields[c]) for c in columns]
            except ValueError:
                raise InputFormatError("non-numeric predictor value", path, line_no) from None
    return values
