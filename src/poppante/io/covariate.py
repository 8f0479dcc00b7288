"""Covariate file readers.

Format: ``famId id value_1 ... value_K`` (whitespace-separated, no header).
Every line must have the same width. Rows for individuals absent from the
pedigree are ignored by the callers.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np

from poppante.core.errors import InputFormatError
from poppante.core.missing import is_missing_token

KEY_FIELDS = 2


def _read_rows(path: Path, allow_missing: bool) -> tuple[dict[tuple[str, str], np.ndarray | None], int]:
    rows: dict[tuple[str, str], np.ndarray | None] = {}
    width = None
    with open(path) as f:
        for line_no, line in enumerate(f, start=1):
            fields = line.split()
            if not fields:
                continue
            if width is None:
                if len(fields) <= KEY_FIELDS:
                    raise InputFormatError("no covariate values on the first line", path, line_no)
                width = len(fields)
            if len(fields) != width:
                raise InputFormatError(
                    f"unexpected number of covariates: expected {width - KEY_FIELDS}, "
                    f"found {len(fields) - KEY_FIELDS}",
                    path,
                    line_no,
                )
            tokens = fields[KEY_FIELDS:]
            key = (fields[0], fields[1])
            if any(is_missing_token(t) for t in tokens):
                if not allow_missing:
                    raise InputFormatError(
                        "correction covariates cannot be missing", path, line_no
                    )
                rows[key] = None
                continue
            try:
                rows[key] = np.array([float(t) for t in tokens])
            except ValueError:
                raise InputFormatError("non-numeric covariate value", path, line_no) from None
    if width is None:
        raise InputFormatError("covariate file is empty", path)
    return rows, width - KEY_FIELDS


def read_covariates(path: Path) -> tuple[dict[tuple[str, str], np.ndarray | None], int]:
    """Read model covariates.

    Returns:
        Tuple of (rows, n_covariates). rows maps (famId, id) to the values,
        or to None when any of them is missing.

    Raises:
        InputFormatError: On an empty file, inconsistent width or a
            non-numeric value.
    """
    return _read_rows(path, allow_missing=True)


def read_correction_covariates(path: Path) -> tuple[dict[tuple[str, str], np.ndarray], int]:
    """Read predictor correction covariates; missing values are an error."""
    rows, n = _read_rows(path, allow_missing=False)
    return rows, n  # type: ignore[return-value]
