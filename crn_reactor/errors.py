"""
Errors, warnings and diagnostics for reaction network specifications.

Fatal problems (bad grammar, mismatched lengths, duplicate species, degenerate
reactions) raise a subclass of ``ValidationError`` before any integration
starts. Non-fatal problems (malformed species names, auto-repaired reactions)
are recorded as ``Diagnostic`` entries and/or issued through ``warnings``.
"""

import warnings
from dataclasses import dataclass
from typing import List, Optional, Type


class CRNError(Exception):
    """Base class for all errors raised by crn_reactor."""


class ValidationError(CRNError, ValueError):
    """A CRN specification violates a structural constraint."""


class FieldTypeError(ValidationError):
    """A field (species, ci, reactions, ki, t) has the wrong container or element type."""


class EmptyFieldError(ValidationError):
    """A required field is empty."""


class InvalidValueError(ValidationError):
    """A field holds an out-of-range value (negative rate, time going back and forth, ...)."""


class DuplicateSpeciesError(ValidationError):
    """The species list contains the same name more than once."""


class LengthMismatchError(ValidationError):
    """Paired fields (species/ci or reactions/ki) have different lengths."""


class GrammarError(ValidationError):
    """A reaction cannot be split into exactly one left and one right part."""


class DegenerateReactionError(ValidationError):
    """Both sides of a reaction are empty or the sentinel ``0``."""


class MolecularityError(ValidationError):
    """A reaction consumes more than two reactant molecules."""


class IntegrationError(CRNError, RuntimeError):
    """The ODE solver failed to produce a trajectory."""


class CRNWarning(UserWarning):
    """Base class for non-fatal reaction specification problems."""


class MalformedSpeciesWarning(CRNWarning):
    """A term in a reaction part has no valid species name and was ignored."""


class AutoRepairWarning(CRNWarning):
    """A reaction was rewritten (a ``0`` term next to real species was removed)."""


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal condition found while parsing or validating a reaction."""
    category: Type[CRNWarning]
    message: str
    reaction: str = ""

    def __str__(self) -> str:
        return f"{self.category.__name__}: {self.message}"

    def emit(self, stacklevel: int = 2) -> None:
        """Issue this diagnostic through the ``warnings`` module."""
        warnings.warn(self.message, self.category, stacklevel=stacklevel + 1)


def report(
    diagnostic: Diagnostic,
    diagnostics: Optional[List[Diagnostic]] = None,
) -> None:
    """
    Record a diagnostic.

    Appends to ``diagnostics`` when a list is given, otherwise issues the
    diagnostic as a warning.
    """
    if diagnostics is not None:
        diagnostics.append(diagnostic)
    else:
        diagnostic.emit(stacklevel=3)
