"""
CRN specification container and network combination.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .errors import Diagnostic
from .validation import check_crn


@dataclass
class ReactionNetwork:
    """
    A chemical reaction network specification.

    ``species``/``ci`` and ``reactions``/``ki`` are paired by position. The
    order of ``species`` is the column order of every matrix and of the
    simulated trajectory. ``t`` is optional so networks can be built and
    combined before a time grid is chosen.
    """
    species: Sequence[str]
    ci: Sequence[float]
    reactions: Sequence[str]
    ki: Sequence[float]
    t: Optional[Sequence[float]] = None
    name: str = ""

    @property
    def n_species(self) -> int:
        return len(self.species)

    @property
    def n_reactions(self) -> int:
        return len(self.reactions)

    def validate(self, diagnostics: Optional[List[Diagnostic]] = None) -> List[str]:
        """
        Run ``check_crn`` on this network.

        Returns the normalized reactions; raises a ``ValidationError`` on the
        first structural problem (duplicate species, length mismatch, ...).
        """
        return check_crn(self.species, self.ci, self.reactions, self.ki, self.t,
                         diagnostics)

    def to_dict(self) -> Dict[str, Any]:
        parms: Dict[str, Any] = {
            'species': list(self.species),
            'ci': list(self.ci),
            'reactions': list(self.reactions),
            'ki': list(self.ki),
        }
        if self.t is not None:
            parms['t'] = list(self.t)
        return parms

    @classmethod
    def from_dict(cls, parms: Mapping[str, Any]) -> "ReactionNetwork":
        return cls(
            species=list(parms['species']),
            ci=list(parms['ci']),
            reactions=list(parms['reactions']),
            ki=list(parms['ki']),
            t=list(parms['t']) if parms.get('t') is not None else None,
            name=parms.get('name', ""),
        )


NetworkLike = Union[ReactionNetwork, Mapping[str, Any]]


def combine_crns(crns: Iterable[NetworkLike], t: Optional[Sequence[float]] = None) -> ReactionNetwork:
    """
    Combine several CRNs into one larger CRN.

    Species, initial concentrations, reactions and rate constants are
    concatenated in input order. Nothing is deduplicated: a species shared by
    two inputs appears twice and the combined network fails validation with
    ``DuplicateSpeciesError``.

    Parameters
    ----------
    crns : iterable of ReactionNetwork or dict
        Networks to combine. Dicts need ``species``, ``ci``, ``reactions``
        and ``ki`` keys.
    t : sequence of float, optional
        Time grid of the combined network.

    Returns
    -------
    ReactionNetwork
    """
    species: List[str] = []
    ci: List[float] = []
    reactions: List[str] = []
    ki: List[float] = []

    for crn in crns:
        if not isinstance(crn, ReactionNetwork):
            crn = ReactionNetwork.from_dict(crn)
        species.extend(crn.species)
        ci.extend(crn.ci)
        reactions.extend(crn.reactions)
        ki.extend(crn.ki)

    return ReactionNetwork(species=species, ci=ci, reactions=reactions, ki=ki, t=t)
