"""Dataset assembly: pedigree, kinship and value matrices for the tests.

load_dataset() reads every input file and runs the preparation passes in
a fixed order. Each pass that removes individuals shrinks the family
kinship matrices in lockstep, and the position table is built once, after
the last removal, so every value matrix shares the same column order.

Example:
    >>> files = DatasetFiles(ped=Path("fam.ped"), predictor=Path("meth.txt"),
    ...                      map_file=Path("meth.map"))
    >>> data = load_dataset(files, AnalysisConfig(mode=Mode.HERITABILITY))
    >>> data.predictors.shape
    (12226, 1940)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from loguru import logger

from poppante.core.config import AnalysisConfig, Mode
from poppante.core.errors import ConfigError, InputFormatError
from poppante.io import (
    Marker,
    read_correction_covariates,
    read_covariates,
    read_marker_map,
    read_name_list,
    read_pedigree,
    read_predictor_values,
)
from poppante.kinship import bend, build_external_kinship, read_kinship_triples
from poppante.linalg.decompose import Decomposition
from poppante.pedigree.model import Family, Individual, group_families, single_family
from poppante.transform import (
    inverse_normal_transform,
    n_components_for,
    principal_components,
    residualise,
)


@dataclass
class DatasetFiles:
    """Input files of a run.

    Attributes:
        ped: Pedigree file.
        predictor: Predictor values file.
        map_file: Predictor map.
        response: Response names, one per response column of the pedigree
            (association mode).
        covariate: Model covariates.
        kinship: External kinship triples; replaces pedigree kinship.
        include: Predictor names to test.
        filter: Response names to test.
    """

    ped: Path
    predictor: Path
    map_file: Path
    response: Path | None = None
    covariate: Path | None = None
    kinship: Path | None = None
    include: Path | None = None
    filter: Path | None = None

    def existing(self) -> list[tuple[str, Path]]:
        """(label, path) of every file that was given."""
        return [(name, path) for name, path in vars(self).items() if path is not None]


@dataclass
class FamilyBlock:
    """Contiguous columns of one family in the value matrices.

    Attributes:
        fam_id: Family identifier.
        start: First column in the position table.
        size: Number of members.
        kinship: (size, size) kinship matrix.
    """

    fam_id: str
    start: int
    size: int
    kinship: np.ndarray

    @property
    def stop(self) -> int:
        return self.start + self.size


@dataclass
class Dataset:
    """Everything a test needs, aligned to one position table.

    Attributes:
        individuals: Analysed individuals in position order.
        positions: (famId, id) -> column index.
        blocks: Family blocks in position order.
        markers: Tested predictors.
        predictors: (M, N) predictor values, NaN for missing.
        response_names: Tested responses.
        responses: (P, N) response values, NaN for missing.
        covariates: (C, N) covariate values without missing entries.
        external_kinship: True when kinship came from a kinship file.
        positioned: True when the map carries chromosome and position.
    """

    individuals: list[Individual]
    positions: dict[tuple[str, str], int]
    blocks: list[FamilyBlock]
    markers: list[Marker] = field(default_factory=list)
    predictors: np.ndarray = field(default_factory=lambda: np.empty((0, 0)))
    response_names: list[str] = field(default_factory=list)
    responses: np.ndarray = field(default_factory=lambda: np.empty((0, 0)))
    covariates: np.ndarray = field(default_factory=lambda: np.empty((0, 0)))
    external_kinship: bool = False
    positioned: bool = False

    @property
    def n_individuals(self) -> int:
        return len(self.individuals)

    @property
    def n_families(self) -> int:
        return len(self.blocks)


def _response_selection(files: DatasetFiles) -> tuple[list[str], list[int], int]:
    """Names and pedigree columns of the responses to test."""
    if files.response is None:
        raise ConfigError("association mode requires a response file")
    names = read_name_list(files.response)
    if not names:
        raise ConfigError(f"response file {files.response} lists no responses")
    if files.filter is None:
        return names, list(range(len(names))), len(names)
    wanted = set(read_name_list(files.filter))
    columns = [i for i, name in enumerate(names) if name in wanted]
    if not columns:
        raise ConfigError("none of the filtered responses is in the response file")
    return [names[i] for i in columns], columns, len(names)


def _drop_empty(families: dict[str, Family]) -> dict[str, Family]:
    return {key: family for key, family in families.items() if len(family) > 0}


def _remove(families: dict[str, Family], predicate, reason: str) -> dict[str, Family]:
    removed = sum(len(family.remove_where(predicate)) for family in families.values())
    if removed:
        logger.info(f"Removed {removed} individuals ({reason})")
    return _drop_empty(families)


def build_families(
    individuals: list[Individual], external_kinship: bool
) -> dict[str, Family]:
    """Group individuals and, with pedigree kinship, sort and compute it.

    Raises:
        PedigreeError: On duplicate IDs or a parent cycle.
    """
    if external_kinship:
        return single_family(individuals)
    families = group_families(individuals)
    for family in families.values():
        family.sort_members()
        family.compute_kinship()
    return families


def position_table(
    families: dict[str, Family],
) -> tuple[list[Individual], dict[tuple[str, str], int]]:
    """Individuals in column order and their (famId, id) -> column map."""
    individuals = [person for family in families.values() for person in family.members]
    return individuals, {person.key: i for i, person in enumerate(individuals)}


def attach_covariates(families: dict[str, Family], path: Path) -> int:
    """Give every individual their covariate row; returns the covariate count."""
    rows, n_covariates = read_covariates(path)
    for family in families.values():
        for person in family.members:
            person.covariates = rows.get(person.key)
    return n_covariates


def correction_matrix(path: Path, individuals: list[Individual]) -> np.ndarray:
    """(K, N) correction covariates in position order.

    Raises:
        InputFormatError: If an analysed individual has no correction row.
    """
    rows, n = read_correction_covariates(path)
    matrix = np.empty((n, len(individuals)))
    for i, person in enumerate(individuals):
        values = rows.get(person.key)
        if values is None:
            raise InputFormatError(
                f"no correction covariates for individual {person.id} "
                f"of family {person.fam_id}",
                path,
            )
        matrix[:, i] = values
    return matrix


def correct_predictors(
    predictors: np.ndarray,
    correction: np.ndarray | None = None,
    fraction: float | None = None,
) -> np.ndarray:
    """Replace each predictor by its residuals on the correction design.

    Args:
        predictors: (M, N) predictor values.
        correction: (K, N) correction covariates, or None.
        fraction: Use the leading principal components of the predictor
            matrix explaining this share of variance instead.
    """
    if correction is None:
        if fraction is None:
            return predictors
        pcs = principal_components(predictors)
        n = n_components_for(pcs.proportion, fraction)
        logger.info(
            f"Regressing {n} principal components "
            f"({float(pcs.proportion[:n].sum()):.1%} of variance) out of the predictors"
        )
        correction = pcs.first(n)
    return np.vstack([residualise(row, correction) for row in predictors])


def load_dataset(files: DatasetFiles, config: AnalysisConfig) -> Dataset:
    """Read the inputs and prepare aligned matrices.

    Passes, in order:
    1. Read the pedigree; with pedigree kinship sort families and compute kinship.
    2. Remove mock individuals, then empty families.
    3. Attach covariates and remove individuals with missing covariates.
    4. Build the position table.
    5. External kinship: load the triples and bend for Cholesky.
    6. Read predictor values and correction covariates.
    7. Inverse-normal transform.
    8. Predictor correction.

    Raises:
        InputFormatError: On malformed input.
        PedigreeError: On an inconsistent pedigree.
        ConfigError: On an empty analysis set.
    """
    external = config.external_kinship
    association = config.mode == Mode.ASSOCIATION

    response_names: list[str] = []
    response_columns = None
    n_response_columns = 0
    if association:
        response_names, response_columns, n_response_columns = _response_selection(files)

    table = read_pedigree(files.ped, response_columns, n_response_columns)
    logger.info(f"Read {len(table.individuals)} individuals from {files.ped}")
    families = build_families(table.individuals, external)

    families = _remove(families, lambda p: p.is_mock, "mock individuals")

    n_covariates = 0
    if files.covariate is not None:
        n_covariates = attach_covariates(families, files.covariate)
        families = _remove(families, lambda p: p.covariates is None, "missing covariates")

    individuals, positions = position_table(families)
    if not individuals:
        raise ConfigError("no individuals left to analyse")
    n = len(individuals)

    if external:
        family = next(iter(families.values()))
        kinship = build_external_kinship(
            positions, read_kinship_triples(files.kinship), config.mink
        )
        if config.decomposition == Decomposition.CHOLESKY:
            kinship = bend(kinship)
        family.kinship = kinship

    blocks = []
    start = 0
    for family in families.values():
        blocks.append(FamilyBlock(family.id, start, len(family), family.kinship))
        start += len(family)

    include = set(read_name_list(files.include)) if files.include is not None else None
    marker_map = read_marker_map(files.map_file, include)
    if config.region is not None and not marker_map.positioned:
        raise ConfigError("region collapsing needs a map with chromosome and position")
    predictors = read_predictor_values(files.predictor, positions, marker_map)
    logger.info(
        f"Loaded {len(marker_map.markers)} of {marker_map.n_total} predictors "
        f"for {n} individuals in {len(blocks)} families"
    )

    correction = None
    if config.correction_file is not None:
        correction = correction_matrix(config.correction_file, individuals)

    if association:
        responses = np.vstack([person.responses for person in individuals]).T
    else:
        responses = np.empty((0, n))
    covariates = (
        np.vstack([person.covariates for person in individuals]).T
        if n_covariates
        else np.empty((0, n))
    )

    if config.normalise is not None:
        if config.normalise.response and association:
            responses = np.vstack([inverse_normal_transform(r) for r in responses])
        if config.normalise.predictor and len(predictors):
            predictors = np.vstack([inverse_normal_transform(r) for r in predictors])

    if len(predictors):
        predictors = correct_predictors(predictors, correction, config.correction_fraction)

    return Dataset(
        individuals=individuals,
        positions=positions,
        blocks=blocks,
        markers=marker_map.markers,
        predictors=predictors,
        response_names=response_names,
        responses=responses,
        covariates=covariates,
        external_kinship=external,
        positioned=marker_map.positioned,
    )
