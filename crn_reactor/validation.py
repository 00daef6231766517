"""
Validation and normalization of CRN specifications.

``check_crn`` runs once per network before simulation. It checks that the
fields are well typed and consistent, then passes every reaction through
``check_fix_reaction``, which rejects malformed reactions and repairs the
ones that can be repaired. The repaired reaction strings are the ones used
downstream.
"""

import numbers
from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np

from .errors import (
    AutoRepairWarning,
    DegenerateReactionError,
    Diagnostic,
    DuplicateSpeciesError,
    EmptyFieldError,
    FieldTypeError,
    GrammarError,
    InvalidValueError,
    LengthMismatchError,
    MolecularityError,
    report,
)
from .parser import (
    OPERATOR,
    Term,
    TokenKind,
    combine_reaction_parts,
    is_empty_part,
    split_sides,
    terms_of,
    tokenize,
)


MAX_MOLECULARITY = 2   # Only uni- and bimolecular reactions


def _is_text(value: Any) -> bool:
    return isinstance(value, str)


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, (bool, np.bool_))


def is_valid_species_name(name: str) -> bool:
    """True if ``name`` is a letter-initial identifier such as ``A``, ``X_2``."""
    tokens = tokenize(name)
    return (
        len(tokens) == 1
        and tokens[0].kind == TokenKind.SPECIES
        and tokens[0].text == name
    )


def _check_field(
    name: str,
    values: Any,
    element_check: Callable[[Any], bool],
    element_desc: str,
) -> None:
    """Check that a field is a flat sequence whose elements pass ``element_check``."""
    if isinstance(values, str) or not isinstance(values, (list, tuple, np.ndarray)):
        raise FieldTypeError(
            f"{name} parameter should be a list, tuple or 1-D array, "
            f"got {type(values).__name__}"
        )
    if isinstance(values, np.ndarray) and values.ndim != 1:
        raise FieldTypeError(f"{name} parameter should be 1-D, got shape {values.shape}")

    for value in values:
        if not element_check(value):
            raise FieldTypeError(
                f"All elements of {name} must be {element_desc}; got {value!r}"
            )


def _check_non_negative(name: str, values: Sequence[float]) -> None:
    arr = np.asarray(values, dtype=float)
    if not np.all(np.isfinite(arr)):
        raise InvalidValueError(f"All elements of {name} must be finite")
    if np.any(arr < 0):
        bad = [float(v) for v in arr[arr < 0]]
        raise InvalidValueError(f"All elements of {name} must be >= 0, got {bad}")


def check_fix_reaction(
    reaction: str,
    diagnostics: Optional[List[Diagnostic]] = None,
) -> str:
    """
    Check a reaction and fix it when possible.

    A reaction must have exactly one ``->``, a non-blank left and right part,
    at most two reactant molecules, and cannot be ``0 -> 0``. A ``0`` written
    next to real species (``A + 0 -> B``) is removed and the user is warned.

    Parameters
    ----------
    reaction : str
        The reaction string.
    diagnostics : list of Diagnostic, optional
        Collects non-fatal problems. If omitted they are issued as warnings.

    Returns
    -------
    str
        The fixed reaction, or ``reaction`` itself when no fix was needed.

    Raises
    ------
    GrammarError
        Missing or repeated ``->``, or a side that is blank or only ``+``.
    DegenerateReactionError
        Both sides are empty or ``0``.
    MolecularityError
        More than two reactant molecules.
    """
    left, right = split_sides(reaction)

    for part in (left, right):
        # blank, or nothing but "+" signs
        if all(tok.kind == TokenKind.PLUS for tok in tokenize(part)):
            raise GrammarError(
                f"The reaction '{reaction}' is badly formed. "
                f"It must have a left and a right part."
            )

    new_left, left_terms = _fix_species_0(left, reaction, diagnostics)
    new_right, _ = _fix_species_0(right, reaction, diagnostics)

    if is_empty_part(new_left) and is_empty_part(new_right):
        raise DegenerateReactionError(
            f"The reaction '{reaction}' is badly formed. Both sides are 0."
        )

    molecularity = sum(t.coefficient for t in left_terms if not t.is_sentinel)
    if molecularity > MAX_MOLECULARITY:
        raise MolecularityError(
            f"The reaction '{reaction}' consumes {molecularity} molecules; "
            f"only uni- and bimolecular reactions are supported."
        )

    new_reaction = combine_reaction_parts(new_left, new_right, OPERATOR)
    if new_reaction != reaction:
        report(Diagnostic(
            AutoRepairWarning,
            f"The reaction '{reaction}' is invalid. "
            f"It is being changed to '{new_reaction}'",
            reaction,
        ), diagnostics)

    return new_reaction


def _fix_species_0(
    reaction_part: str,
    reaction: str,
    diagnostics: Optional[List[Diagnostic]],
) -> Tuple[str, List[Term]]:
    """
    Remove ``0`` terms that sit next to real species.

    ``'A + 0 '`` becomes ``'A '`` and ``' 0 + A + 2B'`` becomes ``' A + 2B'``.
    A part made only of ``0`` is left alone.
    """
    terms = terms_of(reaction_part, diagnostics, reaction)
    real = [t for t in terms if not t.is_sentinel]
    if not real or len(real) == len(terms):
        return reaction_part, terms

    stripped = reaction_part.strip()
    lead = reaction_part[:reaction_part.index(stripped)]
    trail = reaction_part[len(lead) + len(stripped):]
    return lead + " + ".join(str(t) for t in real) + trail, real


def check_crn(
    species: Sequence[str],
    ci: Sequence[float],
    reactions: Sequence[str],
    ki: Sequence[float],
    t: Optional[Sequence[float]],
    diagnostics: Optional[List[Diagnostic]] = None,
) -> List[str]:
    """
    Check a CRN specification before simulation.

    Checks that:
    - all fields are flat sequences of the right element type;
    - ``species``, ``reactions`` and ``t`` are not empty;
    - species names are identifiers, ``ci`` and ``ki`` are finite and
      non-negative, ``t`` is finite and strictly monotonic (increasing or
      decreasing);
    - ``species`` has no duplicates;
    - ``len(species) == len(ci)`` and ``len(reactions) == len(ki)``;
    - every reaction passes ``check_fix_reaction``.

    ``t=None`` skips the time checks (used when validating a network that
    has no time grid yet).

    Returns
    -------
    list of str
        The reactions after ``check_fix_reaction``, in input order.
    """
    _check_field("species", species, _is_text, "text")
    _check_field("ci", ci, _is_number, "numbers")
    _check_field("reactions", reactions, _is_text, "text")
    _check_field("ki", ki, _is_number, "numbers")
    if t is not None:
        _check_field("t", t, _is_number, "numbers")

    if len(species) == 0:
        raise EmptyFieldError("species parameter must not be empty")
    if len(reactions) == 0:
        raise EmptyFieldError("reactions parameter must not be empty")
    if t is not None and len(t) == 0:
        raise EmptyFieldError("t parameter must not be empty")

    bad_names = [name for name in species if not is_valid_species_name(name)]
    if bad_names:
        raise InvalidValueError(
            f"Species names must start with a letter and contain only letters, "
            f"digits and underscores: {bad_names}"
        )
    _check_non_negative("ci", ci)
    _check_non_negative("ki", ki)
    if t is not None:
        t_arr = np.asarray(t, dtype=float)
        if not np.all(np.isfinite(t_arr)):
            raise InvalidValueError("All elements of t must be finite")
        steps = np.diff(t_arr)
        if not (np.all(steps > 0) or np.all(steps < 0)):
            raise InvalidValueError(
                "t must be strictly increasing or strictly decreasing"
            )

    seen = set()
    duplicates = []
    for name in species:
        if name in seen and name not in duplicates:
            duplicates.append(name)
        seen.add(name)
    if duplicates:
        raise DuplicateSpeciesError(
            f"species parameter has duplicate elements: {duplicates}"
        )

    if len(species) != len(ci):
        raise LengthMismatchError(
            f"The length of species ({len(species)}) and ci ({len(ci)}) are not equal"
        )
    if len(reactions) != len(ki):
        raise LengthMismatchError(
            f"The length of reactions ({len(reactions)}) and ki ({len(ki)}) are not equal"
        )

    return [check_fix_reaction(reaction, diagnostics) for reaction in reactions]
