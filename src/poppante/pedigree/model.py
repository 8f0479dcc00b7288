"""Pedigree data model: individuals and families.

A Family keeps its members in an order where every non-founder follows
both of its parents, which is what the kinship recursion needs. The
family kinship matrix, when present, always has one row per member in
member order.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import IntEnum

import numpy as np

from poppante.core.errors import PedigreeError
from poppante.kinship.compute import compute_family_kinship, reset_kinship

FOUNDER_ID = "0"
MOCK_AFFECTION = -9
EXTERNAL_FAMILY_ID = "__all__"


class Sex(IntEnum):
    UNKNOWN = 0
    MALE = 1
    FEMALE = 2


class Twin(IntEnum):
    NONE = 0
    MZ = 1
    DZ = 2

    @property
    def label(self) -> str:
        return {Twin.NONE: "0", Twin.MZ: "MZ", Twin.DZ: "DZ"}[self]


@dataclass
class Individual:
    """One pedigree row.

    Attributes:
        fam_id: Family identifier.
        id: Individual identifier, unique within the family.
        father: Father identifier, "0" when unknown.
        mother: Mother identifier, "0" when unknown.
        sex: Sex code.
        twin: Twin status.
        affection: Affection code; -9 marks a mock individual that only
            exists to connect the pedigree.
        responses: Response values (NaN for missing), empty outside
            association mode.
        covariates: Covariate values, or None when any is missing or the
            individual is absent from the covariate file.
    """

    fam_id: str
    id: str
    father: str = FOUNDER_ID
    mother: str = FOUNDER_ID
    sex: Sex = Sex.UNKNOWN
    twin: Twin = Twin.NONE
    affection: int = 0
    responses: np.ndarray = field(default_factory=lambda: np.empty(0))
    covariates: np.ndarray | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.fam_id, self.id)

    @property
    def is_founder(self) -> bool:
        return self.father == FOUNDER_ID and self.mother == FOUNDER_ID

    @property
    def is_mz(self) -> bool:
        return self.twin == Twin.MZ

    @property
    def is_mock(self) -> bool:
        return self.affection == MOCK_AFFECTION

    def same_parents(self, other: Individual) -> bool:
        return self.father == other.father and self.mother == other.mother


class Family:
    """An ordered group of related individuals with their kinship matrix.

    Members are looked up by their (fam_id, id) key, so a pseudo-family
    holding every individual (external kinship mode) works the same way
    as a real one.

    Args:
        fam_id: Family identifier.
    """

    def __init__(self, fam_id: str) -> None:
        self.id = fam_id
        self.members: list[Individual] = []
        self.kinship: np.ndarray | None = None
        self.has_mz_twin = False
        self._index: dict[tuple[str, str], int] = {}

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self):
        return iter(self.members)

    def __repr__(self) -> str:
        return f"Family({self.id!r}, n={len(self.members)})"

    def add_member(self, person: Individual) -> None:
        """Append a member.

        Raises:
            PedigreeError: If the individual is already present.
        """
        if person.key in self._index:
            raise PedigreeError(
                f"An individual with ID {person.id} is already present in family "
                f"with ID {person.fam_id}"
            )
        if person.is_mz and not person.is_founder:
            self.has_mz_twin = True
        self._index[person.key] = len(self.members)
        self.members.append(person)

    def index_of(self, key: tuple[str, str]) -> int | None:
        return self._index.get(key)

    def member(self, key: tuple[str, str]) -> Individual | None:
        i = self._index.get(key)
        return None if i is None else self.members[i]

    def father_of(self, person: Individual) -> Individual | None:
        return self.member((person.fam_id, person.father))

    def mother_of(self, person: Individual) -> Individual | None:
        return self.member((person.fam_id, person.mother))

    def _set_members(self, members: list[Individual]) -> None:
        self.members = members
        self._index = {m.key: i for i, m in enumerate(members)}

    def sort_members(self) -> None:
        """Reorder members so that parents precede their offspring.

        Founders and members whose parents are absent keep their relative
        order (stable depth-first topological sort).

        Raises:
            PedigreeError: If the parent links form a cycle.
        """
        ordered: list[Individual] = []
        state: dict[tuple[str, str], int] = {}  # 1 = visiting, 2 = done

        def visit(person: Individual) -> None:
            mark = state.get(person.key)
            if mark == 2:
                return
            if mark == 1:
                raise PedigreeError(
                    f"Family {person.fam_id}: individual {person.id} is their own ancestor"
                )
            state[person.key] = 1
            if not person.is_founder:
                for parent in (self.father_of(person), self.mother_of(person)):
                    if parent is not None:
                        visit(parent)
            state[person.key] = 2
            ordered.append(person)

        for person in self.members:
            visit(person)
        self._set_members(ordered)

    def compute_kinship(self) -> np.ndarray:
        """Compute and store the pedigree kinship matrix (members must be sorted)."""
        self.kinship = compute_family_kinship(self.members, self.has_mz_twin)
        return self.kinship

    def remove_where(self, predicate: Callable[[Individual], bool]) -> list[int]:
        """Remove members matching a predicate and shrink the kinship matrix.

        Returns:
            Positions (in the old member order) of the removed members.
        """
        positions = [i for i, m in enumerate(self.members) if predicate(m)]
        if not positions:
            return positions
        drop = set(positions)
        self._set_members([m for i, m in enumerate(self.members) if i not in drop])
        if self.kinship is not None:
            self.kinship = reset_kinship(self.kinship, positions)
        return positions


def group_families(individuals: list[Individual]) -> dict[str, Family]:
    """Group individuals into families, keyed and ordered by family ID."""
    families: dict[str, Family] = {}
    for person in individuals:
        family = families.get(person.fam_id)
        if family is None:
            family = families[person.fam_id] = Family(person.fam_id)
        family.add_member(person)
    return {key: families[key] for key in sorted(families)}


def single_family(
    individuals: list[Individual], fam_id: str = EXTERNAL_FAMILY_ID
) -> dict[str, Family]:
    """Put every individual into one pseudo-family (external kinship mode)."""
    family = Family(fam_id)
    for person in individuals:
        family.add_member(person)
    return {fam_id: family}
