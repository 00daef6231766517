"""
Stoichiometry matrices of reaction networks.

Builds the reactant, product and net-change matrices used by the simulator,
and analyses the net-change matrix:
- Stoichiometric rank
- Conservation law space dimension (n_species - rank)
- Null space basis (conservation law vectors)

All matrices built here have one row per reaction and one column per species,
in the order of the ``species`` list.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import scipy
from numpy.typing import ArrayLike
from scipy.linalg import null_space

from .errors import Diagnostic
from .parser import count_species, split_sides


@dataclass
class StoichiometryMatrices:
    """Reactant, product and net-change matrices of a network."""
    species: List[str]
    reactions: List[str]

    # Shape (n_reactions, n_species)
    reactant_matrix: np.ndarray       # molecules of species j consumed by reaction i
    product_matrix: np.ndarray        # molecules of species j produced by reaction i
    net_change_matrix: np.ndarray     # M = product_matrix - reactant_matrix

    @property
    def n_species(self) -> int:
        return len(self.species)

    @property
    def n_reactions(self) -> int:
        return len(self.reactions)

    @property
    def stoichiometric_matrix(self) -> np.ndarray:
        """M transposed: shape (n_species, n_reactions), column j is reaction j."""
        return self.net_change_matrix.T


def build_matrices(
    species: Sequence[str],
    reactions: Sequence[str],
    diagnostics: Optional[List[Diagnostic]] = None,
) -> StoichiometryMatrices:
    """
    Build the stoichiometry matrices of a network.

    Cell ``(i, j)`` of the reactant (product) matrix is the number of
    molecules of ``species[j]`` on the left (right) side of ``reactions[i]``.
    Species named in a reaction but missing from ``species`` are ignored.

    Parameters
    ----------
    species : sequence of str
        Ordered species list; defines the column order.
    reactions : sequence of str
        Reactions, normally already passed through ``check_crn``.
    diagnostics : list of Diagnostic, optional
        Collects non-fatal parsing problems.

    Returns
    -------
    StoichiometryMatrices

    Examples
    --------
    >>> m = build_matrices(["A", "B", "C"], ["A + B -> C"])
    >>> m.net_change_matrix
    array([[-1, -1,  1]])
    """
    species = list(species)
    reactions = list(reactions)
    index = {name: j for j, name in enumerate(species)}  # O(1) lookup

    reactants = np.zeros((len(reactions), len(species)), dtype=int)
    products = np.zeros((len(reactions), len(species)), dtype=int)

    for i, reaction in enumerate(reactions):
        left, right = split_sides(reaction)
        for name, count in count_species(left, diagnostics, reaction).items():
            if name in index:
                reactants[i, index[name]] = count
        for name, count in count_species(right, diagnostics, reaction).items():
            if name in index:
                products[i, index[name]] = count

    return StoichiometryMatrices(
        species=species,
        reactions=reactions,
        reactant_matrix=reactants,
        product_matrix=products,
        net_change_matrix=products - reactants,
    )


@dataclass
class StoichiometricAnalysis:
    """Results of stoichiometric analysis."""

    # Core results
    rank: int                           # r_S
    n_species: int                      # m
    n_reactions: int                    # n
    n_conservation_laws: int            # m - r_S

    # The matrix and its decomposition
    stoichiometric_matrix: np.ndarray   # S (m x n) = M^T
    null_space_basis: np.ndarray        # Basis for ker(S^T), shape (m, m-r_S)
    singular_values: np.ndarray

    svd_tolerance: float
    numpy_version: str = ""
    scipy_version: str = ""

    species_names: Optional[List[str]] = None
    reaction_names: Optional[List[str]] = None

    def __repr__(self) -> str:
        return (
            f"StoichiometricAnalysis(\n"
            f"  rank={self.rank}, n_species={self.n_species}, "
            f"n_reactions={self.n_reactions},\n"
            f"  n_conservation_laws={self.n_conservation_laws},\n"
            f"  svd_tolerance={self.svd_tolerance:.2e},\n"
            f"  numpy={self.numpy_version}, scipy={self.scipy_version}\n"
            f")"
        )

    def is_conserved(self, weights: ArrayLike, atol: float = 1e-9) -> bool:
        """
        Check whether ``sum_j weights[j] * [species_j]`` is constant in time.

        True when ``weights`` is orthogonal to every reaction's net change.
        """
        w = np.asarray(weights, dtype=float)
        if w.shape != (self.n_species,):
            raise ValueError(
                f"Expected {self.n_species} weights, got shape {w.shape}"
            )
        return bool(np.allclose(w @ self.stoichiometric_matrix, 0.0, atol=atol))


class StoichiometricAnalyzer:
    """
    Analyzer for stoichiometric properties of reaction networks.

    Examples
    --------
    >>> analyzer = StoichiometricAnalyzer()
    >>> result = analyzer.from_network(["A", "B", "C"], ["A + B -> C"])
    >>> result.rank, result.n_conservation_laws
    (1, 2)
    """

    def from_matrix(
        self,
        S: ArrayLike,
        species_names: Optional[List[str]] = None,
        reaction_names: Optional[List[str]] = None,
    ) -> StoichiometricAnalysis:
        """
        Analyze a stoichiometric matrix directly.

        Parameters
        ----------
        S : array_like
            Stoichiometric matrix of shape (n_species, n_reactions), the
            transpose of the net-change matrix.
        species_names : list of str, optional
        reaction_names : list of str, optional

        Returns
        -------
        StoichiometricAnalysis
        """
        S = np.asarray(S, dtype=float)

        if S.ndim != 2:
            raise ValueError(f"S must be 2D, got shape {S.shape}")

        m, n = S.shape

        if S.size:
            singular_values = np.linalg.svd(S, compute_uv=False)
            # Conservation laws span ker(S^T)
            null_basis = null_space(S.T)
        else:
            # No reactions (or no species): every species is conserved
            singular_values = np.zeros(0)
            null_basis = np.eye(m)

        # NumPy default rank tolerance
        eps = np.finfo(S.dtype).eps
        if singular_values.size and singular_values[0] > 0:
            tol = max(m, n) * eps * singular_values[0]
        else:
            tol = eps

        rank = int(np.sum(singular_values > tol))

        return StoichiometricAnalysis(
            rank=rank,
            n_species=m,
            n_reactions=n,
            n_conservation_laws=m - rank,
            stoichiometric_matrix=S,
            null_space_basis=null_basis,
            singular_values=singular_values,
            svd_tolerance=tol,
            numpy_version=np.__version__,
            scipy_version=scipy.__version__,
            species_names=species_names,
            reaction_names=reaction_names,
        )

    def from_matrices(self, matrices: StoichiometryMatrices) -> StoichiometricAnalysis:
        """Analyze the net-change matrix of already built matrices."""
        return self.from_matrix(
            matrices.stoichiometric_matrix,
            species_names=list(matrices.species),
            reaction_names=list(matrices.reactions),
        )

    def from_network(
        self,
        species: Sequence[str],
        reactions: Sequence[str],
    ) -> StoichiometricAnalysis:
        """Analyze a network given as a species list and reaction strings."""
        return self.from_matrices(build_matrices(species, reactions))


def compute_rank(S: ArrayLike) -> int:
    """Stoichiometric rank of ``S`` (shape (n_species, n_reactions))."""
    return StoichiometricAnalyzer().from_matrix(S).rank


def get_conservation_laws(S: ArrayLike) -> np.ndarray:
    """
    Conservation law vectors of ``S`` (shape (n_species, n_reactions)).

    Each column of the result is a conservation law. For example, if a
    column is proportional to [1, 0, 1], then species 0 + species 2 is
    conserved.
    """
    return StoichiometricAnalyzer().from_matrix(S).null_space_basis
