"""Pedigree (PED) file reader.

Whitespace-separated, no header. Columns:

    famId id fatherId motherId sex affection twin [response ...]

- sex: 1/M male, 2/F female, 0 or a missing token unknown
- affection: 0, 1, or -9 for a mock individual (kept only to link the
  pedigree, removed before analysis)
- twin: 0 none, 1/MZ monozygotic, 2/DZ dizygotic

Response columns are present in association mode only, one per name in
the response file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from poppante.core.errors import InputFormatError
from poppante.core.missing import is_missing_token, parse_value
from poppante.pedigree.model import MOCK_AFFECTION, Individual, Sex, Twin

PED_FIELDS = 7

_SEX = {"1": Sex.MALE, "M": Sex.MALE, "2": Sex.FEMALE, "F": Sex.FEMALE, "0": Sex.UNKNOWN}
_TWIN = {"0": Twin.NONE, "1": Twin.MZ, "MZ": Twin.MZ, "2": Twin.DZ, "DZ": Twin.DZ}
_AFFECTION = {"0": 0, "1": 1, "-9": MOCK_AFFECTION}


@dataclass
class PedigreeTable:
    """Parsed pedigree.

    Attributes:
        individuals: One entry per valid line, in file order.
        errors: Line-level problems collected in lenient (pedcheck) mode.
        n_lines: Number of non-empty lines read.
    """

    individuals: list[Individual] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    n_lines: int = 0


def parse_individual(
    fields: list[str],
    response_columns: list[int] | None = None,
    n_responses: int = 0,
    strict_codes: bool = False,
) -> Individual:
    """Parse the fields of one pedigree line.

    Args:
        fields: Whitespace-split line.
        response_columns: Indices (0-based, among the response columns) of
            the responses to keep, or None when responses are not read.
        n_responses: Total number of response columns expected.
        strict_codes: Reject invalid sex and affection codes. They do not
            enter any model, so they only matter for pedigree checks.

    Raises:
        ValueError: On a malformed field.
    """
    if len(fields) < PED_FIELDS:
        raise ValueError("Not well-formed PED line: fewer than 7 fields")

    sex_token = fields[4]
    if sex_token in _SEX:
        sex = _SEX[sex_token]
    elif is_missing_token(sex_token) or not strict_codes:
        sex = Sex.UNKNOWN
    else:
        raise ValueError(f"Sex information {sex_token!r} is not valid")

    affection_token = fields[5]
    if affection_token in _AFFECTION:
        affection = _AFFECTION[affection_token]
    elif strict_codes:
        raise ValueError(f"Affection information {affection_token!r} is not valid")
    else:
        affection = 0

    twin = _TWIN.get(fields[6])
    if twin is None:
        raise ValueError(f"Twin information {fields[6]!r} is not valid")

    responses = np.empty(0)
    if response_columns is not None:
        if len(fields) != PED_FIELDS + n_responses:
            raise ValueError(
                f"expected {n_responses} response values, found {len(fields) - PED_FIELDS}"
            )
        try:
            responses = np.array(
                [parse_value(fields[PED_FIELDS + c]) for c in response_columns],
                dtype=np.float64,
            )
        except ValueError:
            raise ValueError(f"Wrong response values for individual {fields[1]}") from None

    return Individual(
        fam_id=fields[0],
        id=fields[1],
        father=fields[2],
        mother=fields[3],
        sex=sex,
        twin=twin,
        affection=affection,
        responses=responses,
    )


def read_pedigree(
    path: Path,
    response_columns: list[int] | None = None,
    n_responses: int = 0,
    lenient: bool = False,
) -> PedigreeTable:
    """Read a pedigree file.

    Args:
        path: PED file.
        response_columns: Response columns to keep (association mode), or
            None to ignore trailing columns.
        n_responses: Total number of response columns in the file.
        lenient: Collect line errors instead of raising (pedcheck mode).
            Lenient mode also validates sex and affection codes.

    Returns:
        PedigreeTable with the parsed individuals.

    Raises:
        InputFormatError: On a malformed line when not lenient.
    """
    table = PedigreeTable()
    with open(path) as f:
        for line_no, line in enumerate(f, start=1):
            fields = line.split()
            if not fields:
                continue
            table.n_lines += 1
            try:
                person = parse_individual(
                    fields, response_columns, n_responses, strict_codes=lenient
                )
            except ValueError as e:
                if not lenient:
                    raise InputFormatError(str(e), path, line_no) from None
                table.errors.append(f"Line {line_no}: {e}")
                continue
            table.individuals.append(person)
    return table
