"""
Reaction string parser.

Turns reaction strings such as ``"A + 2B -> C"`` into structured
stoichiometric data. A reaction has exactly one relation operator ``->``;
each side is a ``+``-separated list of terms, and each term is an optional
positive integer coefficient glued to a species name (``2A``). A side may be
empty or the sentinel species ``0`` for formation (``0 -> A``) and
degradation (``A -> 0``) reactions.

Parsing goes through an explicit tokenizer (``tokenize``) so every piece of a
reaction is classified as a coefficient, a species, the sentinel ``0``, a
``+``, the relation operator, or a malformed word.
"""

import string
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from .errors import Diagnostic, GrammarError, MalformedSpeciesWarning, report


ZERO = "0"                         # Sentinel species: "nothing"
OPERATOR = "->"
RELATION_OPERATORS = (OPERATOR,)   # Only irreversible reactions are supported

_WORD_CHARS = frozenset(string.ascii_letters + string.digits + "_")


class TokenKind(Enum):
    """Token classes produced by ``tokenize``."""
    COEFFICIENT = "coefficient"
    SPECIES = "species"
    ZERO = "zero"
    PLUS = "plus"
    OPERATOR = "operator"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class Token:
    """A classified piece of a reaction string."""
    kind: TokenKind
    text: str
    position: int


@dataclass(frozen=True)
class Term:
    """One ``coefficient * species`` term of a reaction part."""
    coefficient: int
    species: str
    text: str = ""     # Raw text as written, e.g. "2A"

    @property
    def is_sentinel(self) -> bool:
        return self.species == ZERO

    def __str__(self) -> str:
        if self.text:
            return self.text
        if self.coefficient == 1:
            return self.species
        return f"{self.coefficient}{self.species}"


class Stoichiometry(NamedTuple):
    """Counts of a species (or of all species) on each side of a reaction."""
    left_sto: int
    right_sto: int


# -----------------------------------------------------------------------------
# Tokenizer
# -----------------------------------------------------------------------------

def _coefficient_length(word: str) -> int:
    """Length of the leading digit run of ``word``."""
    i = 0
    while i < len(word) and word[i].isdigit():
        i += 1
    return i


def _classify_word(word: str, position: int) -> List[Token]:
    """Classify a maximal run of ``[A-Za-z0-9_]`` characters."""
    if not word.strip("0"):
        return [Token(TokenKind.ZERO, word, position)]

    n_digits = _coefficient_length(word)
    if n_digits == 0:
        if word[0].isalpha():
            return [Token(TokenKind.SPECIES, word, position)]
        return [Token(TokenKind.MALFORMED, word, position)]

    name = word[n_digits:]
    # Coefficients are positive integers without leading zeros
    if word[0] != "0" and name and name[0].isalpha():
        return [
            Token(TokenKind.COEFFICIENT, word[:n_digits], position),
            Token(TokenKind.SPECIES, name, position + n_digits),
        ]
    return [Token(TokenKind.MALFORMED, word, position)]


def tokenize(text: str) -> List[Token]:
    """
    Split a reaction (or a reaction part) into classified tokens.

    Whitespace is insignificant. Any character that is not a letter, digit,
    underscore, ``+`` or part of ``->`` separates words and yields no token.

    Examples
    --------
    >>> [t.kind.value for t in tokenize("2A + B -> 0")]
    ['coefficient', 'species', 'plus', 'species', 'operator', 'zero']
    """
    tokens: List[Token] = []
    i = 0
    n = len(text)
    while i < n:
        if text.startswith(OPERATOR, i):
            tokens.append(Token(TokenKind.OPERATOR, OPERATOR, i))
            i += len(OPERATOR)
            continue

        ch = text[i]
        if ch == "+":
            tokens.append(Token(TokenKind.PLUS, ch, i))
        elif ch in _WORD_CHARS:
            j = i
            while j < n and text[j] in _WORD_CHARS:
                j += 1
            tokens.extend(_classify_word(text[i:j], i))
            i = j
            continue
        i += 1

    return tokens


# -----------------------------------------------------------------------------
# Sides of a reaction
# -----------------------------------------------------------------------------

def relation_operator(reaction: str) -> str:
    """
    Return the relation operator used by ``reaction``.

    Raises
    ------
    GrammarError
        If the reaction has no supported relation operator.
    """
    for op in RELATION_OPERATORS:
        if op in reaction:
            return op
    raise GrammarError(
        f"The reaction '{reaction}' does not have a valid relation operator "
        f"(expected one of {', '.join(RELATION_OPERATORS)})"
    )


def split_sides(reaction: str) -> Tuple[str, str]:
    """
    Split a reaction into its left and right parts.

    The parts are returned untrimmed, so
    ``left + "->" + right == reaction``.

    Raises
    ------
    GrammarError
        If the reaction does not contain exactly one ``->``.
    """
    op = relation_operator(reaction)
    n_ops = reaction.count(op)
    if n_ops != 1:
        raise GrammarError(
            f"The reaction '{reaction}' has {n_ops} relation operators; "
            f"exactly one '{op}' is allowed. Describe reversible reactions "
            f"as two separate reactions."
        )
    left, right = reaction.split(op)
    return left, right


def get_first_part(reaction: str) -> str:
    """Left part of a reaction: ``'A + B -> C'`` gives ``'A + B '``."""
    return split_sides(reaction)[0]


def get_second_part(reaction: str) -> str:
    """Right part of a reaction: ``'A + B -> C'`` gives ``' C'``."""
    return split_sides(reaction)[1]


def combine_reaction_parts(left_part: str, right_part: str,
                           operator: str = OPERATOR) -> str:
    """Join two reaction parts with ``operator`` and no extra whitespace."""
    return f"{left_part}{operator}{right_part}"


def is_empty_part(reaction_part: str) -> bool:
    """
    Check whether a reaction part denotes "nothing".

    True for a blank part or one made only of the sentinel ``0``
    (``''``, ``' 0 '``). A part of bare ``+`` signs is not empty.
    Used to detect formation and degradation reactions.
    """
    tokens = tokenize(reaction_part)
    if not tokens:
        return True
    kinds = {tok.kind for tok in tokens}
    return TokenKind.ZERO in kinds and kinds <= {TokenKind.ZERO, TokenKind.PLUS}


# -----------------------------------------------------------------------------
# Terms and stoichiometry
# -----------------------------------------------------------------------------

def terms_of(
    reaction_part: str,
    diagnostics: Optional[List[Diagnostic]] = None,
    reaction: Optional[str] = None,
) -> List[Term]:
    """
    Extract the ``(coefficient, species)`` terms of a reaction part.

    Malformed words (``"12"``, ``"_x"``, ``"0A"``) are dropped and a
    ``MalformedSpeciesWarning`` diagnostic is recorded.

    Parameters
    ----------
    reaction_part : str
        Left or right part of a reaction.
    diagnostics : list of Diagnostic, optional
        Collects non-fatal problems. If omitted they are issued as warnings.
    reaction : str, optional
        Full reaction text, used in diagnostic messages.

    Returns
    -------
    list of Term
        Terms in order of appearance. The sentinel ``0`` is kept as a term.

    Examples
    --------
    >>> [(t.coefficient, t.species) for t in terms_of("A + 2B")]
    [(1, 'A'), (2, 'B')]
    """
    terms: List[Term] = []
    coefficient: Optional[Token] = None

    for tok in tokenize(reaction_part):
        if tok.kind == TokenKind.COEFFICIENT:
            coefficient = tok
        elif tok.kind == TokenKind.SPECIES:
            if coefficient is not None:
                terms.append(Term(int(coefficient.text), tok.text,
                                  coefficient.text + tok.text))
            else:
                terms.append(Term(1, tok.text, tok.text))
            coefficient = None
        elif tok.kind == TokenKind.ZERO:
            terms.append(Term(1, ZERO, tok.text))
        elif tok.kind == TokenKind.MALFORMED:
            context = reaction if reaction is not None else reaction_part
            report(Diagnostic(
                MalformedSpeciesWarning,
                f"The reaction part '{reaction_part}' has a badly formed "
                f"species name '{tok.text}'. Species names must start with a "
                f"letter or be 0 (for formation and degradation reactions). "
                f"Ignoring the species name.",
                context,
            ), diagnostics)

    return terms


def count_species(
    reaction_part: str,
    diagnostics: Optional[List[Diagnostic]] = None,
    reaction: Optional[str] = None,
) -> Dict[str, int]:
    """Map each species in a part to its summed coefficient, in order of appearance."""
    counts: Dict[str, int] = {}
    for term in terms_of(reaction_part, diagnostics, reaction):
        counts[term.species] = counts.get(term.species, 0) + term.coefficient
    return counts


def species_count(one_species: str, reaction_part: str,
                  diagnostics: Optional[List[Diagnostic]] = None) -> int:
    """
    Count how many molecules of ``one_species`` a reaction part holds.

    Names match exactly, so ``A`` does not match ``A2`` and repeated
    occurrences add up: ``species_count('A', 'A + 2A')`` is 3.
    """
    return count_species(reaction_part, diagnostics).get(one_species, 0)


def stoichiometry_of_species(
    one_species: str,
    reaction: str,
    diagnostics: Optional[List[Diagnostic]] = None,
) -> Stoichiometry:
    """
    Stoichiometry of one species on both sides of a reaction.

    Examples
    --------
    >>> stoichiometry_of_species('A', 'A + B -> 2A')
    Stoichiometry(left_sto=1, right_sto=2)
    >>> stoichiometry_of_species('A', 'B -> A + B')
    Stoichiometry(left_sto=0, right_sto=1)
    """
    left, right = split_sides(reaction)
    return Stoichiometry(
        left_sto=species_count(one_species, left, diagnostics),
        right_sto=species_count(one_species, right, diagnostics),
    )


def stoichiometry_of_part(reaction_part: str,
                          diagnostics: Optional[List[Diagnostic]] = None) -> int:
    """
    Total number of molecules in a reaction part.

    The sentinel ``0`` counts as nothing: ``stoichiometry_of_part('0')`` is 0,
    ``stoichiometry_of_part('A + B ')`` and ``stoichiometry_of_part('2A ')``
    are 2.
    """
    return sum(
        term.coefficient
        for term in terms_of(reaction_part, diagnostics)
        if not term.is_sentinel
    )


def stoichiometry_of_reaction(reaction: str,
                              diagnostics: Optional[List[Diagnostic]] = None) -> Stoichiometry:
    """Molecularity of both sides: ``'A + B -> C'`` gives ``(2, 1)``."""
    left, right = split_sides(reaction)
    return Stoichiometry(
        left_sto=stoichiometry_of_part(left, diagnostics),
        right_sto=stoichiometry_of_part(right, diagnostics),
    )


def remove_stoichiometry(species: Sequence[str]) -> List[str]:
    """
    Strip leading coefficients from raw term strings.

    ``['2A', '2A2', 'B']`` gives ``['A', 'A2', 'B']``; digits after the first
    letter belong to the name.
    """
    stripped = []
    for word in species:
        if word.startswith("0"):
            stripped.append(word)
        else:
            stripped.append(word[_coefficient_length(word):])
    return stripped


# -----------------------------------------------------------------------------
# Reactants, products and classification
# -----------------------------------------------------------------------------

def _unique_species(terms: List[Term]) -> List[str]:
    seen: List[str] = []
    for term in terms:
        if term.species not in seen:
            seen.append(term.species)
    return seen


def get_reactants(reaction: str,
                  diagnostics: Optional[List[Diagnostic]] = None) -> List[str]:
    """
    Species consumed by a reaction, without coefficients or repeats.

    ``'A + B -> C'`` gives ``['A', 'B']``; ``'2A -> B'`` gives ``['A']``.
    """
    left = get_first_part(reaction)
    return _unique_species(terms_of(left, diagnostics, reaction))


def get_products(reaction: str,
                 diagnostics: Optional[List[Diagnostic]] = None) -> List[str]:
    """
    Species produced by a reaction, without coefficients or repeats.

    For a degradation reaction the sentinel is returned as a product:
    ``'A -> 0'`` gives ``['0']``.
    """
    right = get_second_part(reaction)
    return _unique_species(terms_of(right, diagnostics, reaction))


def reactants_in_reaction(species: Sequence[str], reaction: str,
                          diagnostics: Optional[List[Diagnostic]] = None) -> List[int]:
    """
    Indexes into ``species`` of the registered species consumed by ``reaction``.

    Indexes follow the order of ``species``. Reactants missing from
    ``species`` are ignored.

    Examples
    --------
    >>> reactants_in_reaction(['A', 'B', 'C'], 'A + C -> B')
    [0, 2]
    """
    reactants = set(get_reactants(reaction, diagnostics))
    return [i for i, name in enumerate(species) if name in reactants]


def is_unimolecular(reaction: str) -> bool:
    """True if the reaction consumes exactly one molecule (``'A -> B'``)."""
    return stoichiometry_of_part(get_first_part(reaction)) == 1


def is_bimolecular(reaction: str) -> bool:
    """True if the reaction consumes exactly two molecules (``'2A -> B'``, ``'A + B -> C'``)."""
    return stoichiometry_of_part(get_first_part(reaction)) == 2


def is_formation(reaction: str) -> bool:
    """True if the left part is empty or ``0`` (``'0 -> A'``)."""
    return is_empty_part(get_first_part(reaction))


def is_degradation(reaction: str) -> bool:
    """True if the right part is empty or ``0`` (``'A -> 0'``)."""
    return is_empty_part(get_second_part(reaction))


def expand_species(species: Sequence[str],
                   stoichiometry: Callable[[str], int]) -> List[str]:
    """
    Repeat each species as many times as its stoichiometry.

    With ``species = ['A', 'B']`` and a stoichiometry of 1 for A and 2 for B
    the result is ``['A', 'B', 'B']``.
    """
    expanded: List[str] = []
    for name in species:
        expanded.extend([name] * stoichiometry(name))
    return expanded
