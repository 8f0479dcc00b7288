"""Kinship matrix construction.

Kinship here is twice the kinship coefficient, so self-kinship of a
non-inbred individual is 1 and parent-offspring or full-sibling pairs are
0.5.

Key functions:
- compute_family_kinship: Lange recursion over a sorted family
- reset_kinship: drop rows and columns of removed members
- build_external_kinship: one matrix for all individuals from triples
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

import numpy as np
from loguru import logger

if TYPE_CHECKING:
    from poppante.pedigree.model import Individual


def _is_mz_copy(me: Individual, other: Individual) -> bool:
    """True when two members are the same MZ twin pair."""
    return (
        me.is_mz
        and other.is_mz
        and me.same_parents(other)
        and me.sex == other.sex
    )


def compute_family_kinship(
    members: Sequence[Individual], has_mz_twin: bool = False
) -> np.ndarray:
    """Compute the kinship matrix of one family by Lange's recursion.

    Members must be ordered so that parents precede their offspring.
    For each member in turn:

    - founder: K(i, i) = 0.5
    - non-founder with parents f, m: K(i, i) = 0.5 + 0.5 K(f, m) and
      K(i, j) = 0.5 (K(f, j) + K(m, j)) for every earlier member j

    An MZ twin pair (same parents, same sex) is treated as one individual,
    K(i, j) = 0.5. A parent missing from the family contributes 0.
    The whole matrix is doubled at the end.

    Args:
        members: Family members in topological order.
        has_mz_twin: Whether the family holds a non-founder MZ twin.

    Returns:
        Symmetric (n, n) kinship matrix.
    """
    n = len(members)
    k = np.zeros((n, n), dtype=np.float64)
    index = {m.key: i for i, m in enumerate(members)}

    for i, person in enumerate(members):
        if person.is_founder:
            k[i, i] = 0.5
            continue

        f = index.get((person.fam_id, person.father))
        m = index.get((person.fam_id, person.mother))
        k[i, i] = 0.5 + (0.5 * k[f, m] if f is not None and m is not None else 0.0)

        for j in range(i):
            if has_mz_twin and _is_mz_copy(person, members[j]):
                value = 0.5
            else:
                fv = k[f, j] if f is not None else 0.0
                mv = k[m, j] if m is not None else 0.0
                value = 0.5 * (fv + mv)
            k[i, j] = k[j, i] = value

    return 2.0 * k


def reset_kinship(k: np.ndarray, positions: Sequence[int]) -> np.ndarray:
    """Remove rows and columns of the given positions in lockstep."""
    if len(positions) == 0:
        return k
    idx = np.asarray(sorted(set(positions)), dtype=np.intp)
    return np.delete(np.delete(k, idx, axis=0), idx, axis=1)


def build_external_kinship(
    positions: dict[tuple[str, str], int],
    triples: Iterable[tuple[str, str, str, str, float]],
    mink: float = 0.0,
) -> np.ndarray:
    """Build an all-individual kinship matrix from (famA, idA, famB, idB, value) triples.

    Pairs naming an individual absent from the position table are skipped.
    Values below mink become 0. The diagonal is forced to 1 after loading,
    so self-entries in the file are ignored.

    Args:
        positions: (fam_id, id) -> row index.
        triples: Kinship entries, already doubled (self-kinship 1).
        mink: Minimum retained kinship value.

    Returns:
        Symmetric (N, N) kinship matrix.
    """
    n = len(positions)
    k = np.zeros((n, n), dtype=np.float64)
    skipped = 0
    for fam_a, id_a, fam_b, id_b, value in triples:
        p1 = positions.get((fam_a, id_a))
        p2 = positions.get((fam_b, id_b))
        if p1 is None or p2 is None:
            skipped += 1
            continue
        if value < mink:
            value = 0.0
        k[p1, p2] = k[p2, p1] = value
    np.fill_diagonal(k, 1.0)
    if skipped:
        logger.debug(f"Skipped {skipped} kinship entries for individuals not in the pedigree")
    return k
