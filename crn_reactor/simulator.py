"""
Mass-action simulator for chemical reaction networks.

Turns a validated network into the right-hand side of an ODE system and
integrates it with ``scipy.integrate.solve_ivp``.

For reaction i with rate constant k_i, the instantaneous rate is

    v_i = k_i * prod_j y[j] ** R[i, j]

where R is the reactant matrix (a species consumed n times enters the rate
with exponent n). Species derivatives are ``dy = M.T @ v`` with M the
net-change matrix. Reactions whose reactants are all unregistered (or the
sentinel ``0``) have a constant rate k_i.
"""

import numpy as np
from numpy.typing import ArrayLike
from scipy.integrate import solve_ivp
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .errors import Diagnostic, EmptyFieldError, IntegrationError
from .network import ReactionNetwork
from .stoichiometry import StoichiometryMatrices, build_matrices
from .validation import check_crn


Derivative = Callable[[float, np.ndarray], np.ndarray]


@dataclass(frozen=True)
class RateLaw:
    """Mass-action rate law of one reaction."""
    reaction: str
    rate_constant: float
    reactant_indices: Tuple[int, ...]   # columns of the consumed species
    exponents: Tuple[int, ...]          # stoichiometry of each consumed species

    @property
    def order(self) -> int:
        return int(sum(self.exponents))

    def rate(self, y: ArrayLike) -> float:
        """Instantaneous rate at concentrations ``y`` (empty product is 1)."""
        y = np.asarray(y, dtype=float)
        idx = list(self.reactant_indices)
        return float(self.rate_constant * np.prod(y[idx] ** np.asarray(self.exponents)))


def build_rate_laws(
    matrices: StoichiometryMatrices,
    rate_constants: ArrayLike,
) -> List[RateLaw]:
    """
    Derive the rate law of every reaction from the reactant matrix.

    Parameters
    ----------
    matrices : StoichiometryMatrices
        Matrices of the network.
    rate_constants : array_like
        One rate constant per reaction.

    Returns
    -------
    list of RateLaw
        In reaction order.
    """
    k = np.asarray(rate_constants, dtype=float)
    if len(k) != matrices.n_reactions:
        raise ValueError(
            f"Expected {matrices.n_reactions} rate constants, got {len(k)}"
        )

    laws = []
    for i, reaction in enumerate(matrices.reactions):
        row = matrices.reactant_matrix[i]
        idx = np.flatnonzero(row > 0)
        laws.append(RateLaw(
            reaction=reaction,
            rate_constant=float(k[i]),
            reactant_indices=tuple(int(j) for j in idx),
            exponents=tuple(int(e) for e in row[idx]),
        ))
    return laws


def build_derivative(
    matrices: StoichiometryMatrices,
    rate_laws: Sequence[RateLaw],
) -> Derivative:
    """
    Build the ODE right-hand side ``derivative(t, y) -> dy``.

    Everything the closure needs is computed here and frozen, so the
    function keeps no state between calls and can be evaluated at any
    (t, y) the solver chooses.
    """
    n_reactions, n_species = matrices.reactant_matrix.shape

    k = np.array([law.rate_constant for law in rate_laws], dtype=float)

    # Exponent matrix: zero outside the reactant columns, so y**0 == 1
    E = np.zeros((n_reactions, n_species))
    for i, law in enumerate(rate_laws):
        E[i, list(law.reactant_indices)] = law.exponents

    Mt = matrices.net_change_matrix.T.astype(float)

    for arr in (k, E, Mt):
        arr.setflags(write=False)

    def derivative(t, y):
        y = np.asarray(y, dtype=float)
        # v_i = k_i * prod_j y_j^E_ij
        v = k * np.prod(np.power(y[np.newaxis, :], E), axis=1)
        # dy/dt = M^T @ v
        return Mt @ v

    return derivative


@dataclass
class ReactionSystem:
    """
    A validated network ready for integration.

    Holds the normalized reactions, the stoichiometry matrices, the rate laws
    and the derivative built from them.
    """
    species: List[str]
    reactions: List[str]
    rate_constants: np.ndarray
    matrices: StoichiometryMatrices
    rate_laws: List[RateLaw]
    derivative: Derivative
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def n_species(self) -> int:
        return len(self.species)

    @property
    def n_reactions(self) -> int:
        return len(self.reactions)

    def rates(self, y: ArrayLike) -> np.ndarray:
        """Rate vector v at concentrations ``y``."""
        return np.array([law.rate(y) for law in self.rate_laws])


@dataclass
class SolverOptions:
    """Options forwarded to ``scipy.integrate.solve_ivp``."""
    method: str = "LSODA"      # Handles stiff and non-stiff problems
    rtol: float = 1e-6
    atol: float = 1e-9
    max_step: float = np.inf
    extra: Dict[str, Any] = field(default_factory=dict)

    def with_overrides(self, **kwargs) -> "SolverOptions":
        """Copy with known fields replaced; unknown keys go to ``extra``."""
        names = {f.name for f in fields(self)} - {"extra"}
        known = {key: val for key, val in kwargs.items() if key in names}
        extra = dict(self.extra)
        extra.update({key: val for key, val in kwargs.items() if key not in names})
        return replace(self, extra=extra, **known)

    def to_kwargs(self) -> Dict[str, Any]:
        kwargs = {
            "method": self.method,
            "rtol": self.rtol,
            "atol": self.atol,
            "max_step": self.max_step,
        }
        kwargs.update(self.extra)
        return kwargs


@dataclass
class SimulationResult:
    """Results of a reaction network simulation."""

    # Time and concentration data
    time: np.ndarray                          # Shape (n_times,)
    concentrations: np.ndarray                # Shape (n_times, n_species)

    species_names: List[str]
    reactions: List[str]                      # Normalized reactions actually simulated
    rate_constants: np.ndarray
    initial_concentrations: np.ndarray

    # Non-fatal problems found while parsing/validating
    diagnostics: List[Diagnostic]

    # Integration metadata
    solver_message: str
    n_function_evals: int
    success: bool

    # Version info for reproducibility
    numpy_version: str = ""
    scipy_version: str = ""

    def __repr__(self) -> str:
        return (
            f"SimulationResult(\n"
            f"  n_times={len(self.time)}, n_species={self.n_species},\n"
            f"  t=[{self.time[0]:.2f}, {self.time[-1]:.2f}],\n"
            f"  n_diagnostics={len(self.diagnostics)},\n"
            f"  success={self.success}\n"
            f")"
        )

    @property
    def n_species(self) -> int:
        return len(self.species_names)

    @property
    def columns(self) -> List[str]:
        """Column labels of ``table``: ``time`` then the species."""
        return ["time"] + list(self.species_names)

    @property
    def table(self) -> np.ndarray:
        """Shape (n_times, 1 + n_species): time column then concentrations."""
        return np.column_stack([self.time, self.concentrations])

    def get_species(self, name: str) -> np.ndarray:
        """Get concentration time series for a specific species."""
        if name not in self.species_names:
            raise KeyError(f"Species '{name}' not found. Available: {self.species_names}")
        idx = self.species_names.index(name)
        return self.concentrations[:, idx]

    def to_records(self) -> List[Dict[str, float]]:
        """One dict per time point, keyed by ``columns``."""
        cols = self.columns
        return [dict(zip(cols, map(float, row))) for row in self.table]


class ReactionSimulator:
    """
    Simulator for reaction networks with mass-action kinetics.

    Examples
    --------
    >>> sim = ReactionSimulator()
    >>> network = ReactionNetwork(
    ...     species=["A", "B", "C"],
    ...     ci=[1.0, 1.0, 0.0],
    ...     reactions=["A + B -> C"],
    ...     ki=[1.0],
    ... )
    >>> result = sim.simulate(network, t=[0, 1, 2])
    >>> result.columns
    ['time', 'A', 'B', 'C']
    """

    def compile(
        self,
        species: Sequence[str],
        reactions: Sequence[str],
        rate_constants: ArrayLike,
        diagnostics: Optional[List[Diagnostic]] = None,
    ) -> ReactionSystem:
        """
        Build matrices, rate laws and the derivative of a validated network.

        ``reactions`` should already have gone through ``check_crn``.
        Problems already present in ``diagnostics`` are not recorded twice,
        even when validation rewrote the reaction they were found in.
        """
        if diagnostics is None:
            diagnostics = []
        k = np.asarray(rate_constants, dtype=float)

        # Messages name the reaction part, which survives a repair of the
        # other side; the reaction context does not.
        known = {(d.category, d.message) for d in diagnostics}
        found: List[Diagnostic] = []
        matrices = build_matrices(species, reactions, found)
        for diagnostic in found:
            if (diagnostic.category, diagnostic.message) not in known:
                diagnostics.append(diagnostic)

        rate_laws = build_rate_laws(matrices, k)
        return ReactionSystem(
            species=list(matrices.species),
            reactions=list(matrices.reactions),
            rate_constants=k,
            matrices=matrices,
            rate_laws=rate_laws,
            derivative=build_derivative(matrices, rate_laws),
            diagnostics=diagnostics,
        )

    def prepare(
        self,
        network: ReactionNetwork,
        t: Optional[Sequence[float]] = None,
    ) -> ReactionSystem:
        """Validate ``network`` (and ``t`` if given) and compile it."""
        diagnostics: List[Diagnostic] = []
        reactions = check_crn(
            network.species, network.ci, network.reactions, network.ki, t,
            diagnostics,
        )
        return self.compile(network.species, reactions, network.ki, diagnostics)

    def simulate(
        self,
        network: ReactionNetwork,
        t: Optional[ArrayLike] = None,
        solver_options: Optional[SolverOptions] = None,
        verbose: bool = False,
        emit_warnings: bool = True,
        **solver_kwargs,
    ) -> SimulationResult:
        """
        Simulate the reaction network.

        Parameters
        ----------
        network : ReactionNetwork
            Species, initial concentrations, reactions and rate constants.
        t : array_like, optional
            Strictly monotonic time points (increasing, or decreasing to
            integrate backwards). Defaults to ``network.t``.
        solver_options : SolverOptions, optional
            Integrator settings. Defaults to LSODA with rtol=1e-6, atol=1e-9.
        verbose : bool
            Print the integration status.
        emit_warnings : bool
            Re-issue diagnostics through ``warnings``. They are always
            available on ``SimulationResult.diagnostics``.
        **solver_kwargs
            Overrides for ``solver_options`` (e.g. ``method="BDF"``).

        Returns
        -------
        SimulationResult
            One row per time point, one column per species, in the order of
            ``network.species``. Values are not clamped at zero.

        Raises
        ------
        ValidationError
            If the network is invalid. Nothing is integrated.
        IntegrationError
            If the solver fails.
        """
        import scipy

        if t is None:
            t = network.t
        if t is None:
            raise EmptyFieldError("t parameter must not be empty")

        system = self.prepare(network, t)

        options = solver_options if solver_options is not None else SolverOptions()
        if solver_kwargs:
            options = options.with_overrides(**solver_kwargs)

        t_eval = np.asarray(t, dtype=float)
        c0 = np.asarray(network.ci, dtype=float)

        if len(t_eval) == 1:
            concentrations = c0[np.newaxis, :].copy()
            message = "Single time point; returned the initial state."
            nfev = 0
            success = True
        else:
            sol = solve_ivp(
                system.derivative,
                (t_eval[0], t_eval[-1]),
                c0,
                t_eval=t_eval,
                **options.to_kwargs(),
            )
            if not sol.success:
                raise IntegrationError(f"Integration failed: {sol.message}")
            concentrations = sol.y.T  # Shape (n_times, n_species)
            message = sol.message
            nfev = int(sol.nfev)
            success = bool(sol.success)

        if verbose:
            print(
                f"Integrated {system.n_species} species, {system.n_reactions} "
                f"reactions over {len(t_eval)} time points with {options.method}: "
                f"{message} (nfev={nfev}, success={success})"
            )

        if emit_warnings:
            for diagnostic in system.diagnostics:
                diagnostic.emit()

        return SimulationResult(
            time=t_eval,
            concentrations=concentrations,
            species_names=list(system.species),
            reactions=list(system.reactions),
            rate_constants=system.rate_constants,
            initial_concentrations=c0,
            diagnostics=list(system.diagnostics),
            solver_message=message,
            n_function_evals=nfev,
            success=success,
            numpy_version=np.__version__,
            scipy_version=scipy.__version__,
        )


# Convenience function

def react(
    species: Sequence[str],
    ci: Sequence[float],
    reactions: Sequence[str],
    ki: Sequence[float],
    t: ArrayLike,
    solver_options: Optional[SolverOptions] = None,
    verbose: bool = False,
    **kwargs,
) -> SimulationResult:
    """
    Simulate a CRN given as parallel lists.

    Parameters
    ----------
    species : sequence of str
        Species names. Their order is the column order of the result.
    ci : sequence of float
        Initial concentration of each species.
    reactions : sequence of str
        Reactions such as ``"A + B -> C"``, ``"0 -> A"`` or ``"A -> 0"``.
        Reactants missing from ``species`` are ignored, so a reaction whose
        reactants are all unregistered behaves like ``0 -> products``.
    ki : sequence of float
        Rate constant of each reaction.
    t : array_like
        Strictly monotonic time points (increasing, or decreasing to
        integrate backwards).
    solver_options : SolverOptions, optional
    verbose : bool
    **kwargs
        Passed to ``ReactionSimulator.simulate`` (``emit_warnings`` and
        solver overrides).

    Returns
    -------
    SimulationResult
    """
    network = ReactionNetwork(
        species=species,
        ci=ci,
        reactions=reactions,
        ki=ki,
        t=t,
    )
    return ReactionSimulator().simulate(
        network, solver_options=solver_options, verbose=verbose, **kwargs
    )
