"""Pedigree consistency checks for the pedcheck command."""

from __future__ import annotations

from poppante.pedigree.model import Family, Individual, Sex, Twin

PEDIGREE_CORRECT = "Pedigree correct"


def _check_parents(family: Family, person: Individual) -> list[str]:
    if person.is_founder:
        return []
    problems = []
    father = family.father_of(person)
    mother = family.mother_of(person)

    if father is None:
        problems.append(
            f"In family {family.id} subject {person.id} has no father information."
        )
    elif father.sex != Sex.MALE:
        problems.append(
            f"In family {family.id} subject {father.id} has been assigned to be "
            f"subject {person.id}'s father, but is not male."
        )

    if mother is None:
        problems.append(
            f"In family {family.id} subject {person.id} has no mother information."
        )
    elif mother.sex != Sex.FEMALE:
        problems.append(
            f"In family {family.id} subject {mother.id} has been assigned to be "
            f"subject {person.id}'s mother, but is not female."
        )
    return problems


def _check_twins(family: Family, person: Individual) -> list[str]:
    # Two members are a twin pair when they share twin status and both parents
    if person.is_founder or person.twin == Twin.NONE:
        return []
    problems = []
    found = False
    for other in family.members:
        if other is person or other.is_founder:
            continue
        if other.twin == person.twin and other.same_parents(person):
            found = True
            if person.twin == Twin.MZ and other.sex != person.sex:
                problems.append(
                    f"In family {family.id} subjects {person.id} and {other.id} should "
                    "represent a monozygotic twin pair, but they have different sex."
                )
    if not found:
        problems.append(
            f"In family {family.id} subject {person.id} has no information about "
            f"their {person.twin.label} twin."
        )
    return problems


def check_family(family: Family) -> list[str]:
    """List structural problems of one family.

    Reports missing parents, parents of the wrong sex, twins without a
    co-twin and MZ twins of different sex.
    """
    problems: list[str] = []
    for person in family.members:
        problems.extend(_check_parents(family, person))
        problems.extend(_check_twins(family, person))
    return problems


def check_pedigree(families: dict[str, Family], input_errors: list[str] | None = None) -> list[str]:
    """Collect problems across all families, input errors first."""
    problems = list(input_errors or [])
    for family in families.values():
        problems.extend(check_family(family))
    return problems


def format_report(problems: list[str]) -> str:
    """Render the pedcheck report printed by the CLI."""
    if not problems:
        return PEDIGREE_CORRECT
    return "\n".join(f"\t- {p}" for p in problems)
