"""
Tests for simulator module.

1. Derivative construction: mass-action rates with stoichiometric exponents
2. Analytical solutions: first-order decay, dimerization, constant formation
3. Conservation laws for A + B -> C
4. Diagnostics, validation before integration, solver options and results
"""

import types

import numpy as np
import pytest
from numpy.testing import assert_allclose

import crn_reactor.simulator as simulator_module
from crn_reactor.errors import (
    AutoRepairWarning,
    CRNWarning,
    DuplicateSpeciesError,
    EmptyFieldError,
    GrammarError,
    IntegrationError,
    MalformedSpeciesWarning,
)
from crn_reactor.network import ReactionNetwork
from crn_reactor.simulator import (
    ReactionSimulator,
    SimulationResult,
    SolverOptions,
    build_derivative,
    build_rate_laws,
    react,
)
from crn_reactor.stoichiometry import build_matrices


def _derivative(species, reactions, ki):
    matrices = build_matrices(species, reactions)
    return build_derivative(matrices, build_rate_laws(matrices, ki))


class TestRateLaws:
    """Tests for reactant indices and exponents."""

    def test_indices_and_exponents(self):
        matrices = build_matrices(["A", "B", "C"], ["A + B -> C", "2A -> B", "C -> 0"])
        laws = build_rate_laws(matrices, [1.0, 2.0, 3.0])

        assert laws[0].reactant_indices == (0, 1)
        assert laws[0].exponents == (1, 1)
        assert laws[1].reactant_indices == (0,)
        assert laws[1].exponents == (2,)
        assert laws[2].reactant_indices == (2,)
        assert [law.order for law in laws] == [2, 2, 1]
        assert [law.rate_constant for law in laws] == [1.0, 2.0, 3.0]

    def test_formation_has_no_reactants(self):
        matrices = build_matrices(["A"], ["0 -> A", "X -> A"])
        laws = build_rate_laws(matrices, [0.5, 0.25])

        assert laws[0].reactant_indices == ()
        assert laws[0].rate([7.0]) == 0.5
        assert laws[1].rate([7.0]) == 0.25

    def test_rate(self):
        matrices = build_matrices(["A", "B"], ["2A -> B"])
        law = build_rate_laws(matrices, [3.0])[0]
        assert law.rate([2.0, 5.0]) == pytest.approx(12.0)

    def test_rate_constant_count_checked(self):
        matrices = build_matrices(["A", "B"], ["A -> B"])
        with pytest.raises(ValueError, match="rate constants"):
            build_rate_laws(matrices, [1.0, 2.0])


class TestDerivative:
    """Tests for the ODE right-hand side."""

    def test_association_at_initial_state(self):
        f = _derivative(["A", "B", "C"], ["A + B -> C"], [1.0])
        assert_allclose(f(0.0, np.array([1.0, 1.0, 0.0])), [-1.0, -1.0, 1.0])

    def test_exponent_is_stoichiometry(self):
        """2A -> B: dA/dt = -2 k A^2, dB/dt = k A^2."""
        f = _derivative(["A", "B"], ["2A -> B"], [0.5])
        assert_allclose(f(0.0, np.array([3.0, 0.0])), [-9.0, 4.5])

    def test_repeated_reactant_same_as_coefficient(self):
        f1 = _derivative(["A", "B"], ["A + A -> B"], [0.5])
        f2 = _derivative(["A", "B"], ["2A -> B"], [0.5])
        y = np.array([1.7, 0.3])
        assert_allclose(f1(0.0, y), f2(0.0, y))

    def test_constant_formation(self):
        f = _derivative(["A"], ["0 -> A"], [2.0])
        assert_allclose(f(0.0, np.array([5.0])), [2.0])

    def test_unregistered_reactants_ignored(self):
        """'X + A -> B' with X unregistered behaves like 'A -> B'."""
        f1 = _derivative(["A", "B"], ["X + A -> B"], [1.5])
        f2 = _derivative(["A", "B"], ["A -> B"], [1.5])
        y = np.array([2.0, 1.0])
        assert_allclose(f1(0.0, y), f2(0.0, y))

    def test_catalyst_unchanged(self):
        f = _derivative(["E", "S", "P"], ["E + S -> E + P"], [1.0])
        assert_allclose(f(0.0, np.array([2.0, 3.0, 0.0])), [0.0, -6.0, 6.0])

    def test_stateless(self):
        f = _derivative(["A", "B", "C"], ["A + B -> C", "C -> A"], [1.0, 0.1])
        y1 = np.array([1.0, 2.0, 0.5])
        y2 = np.array([0.1, 0.0, 3.0])

        first = f(0.0, y1)
        f(5.0, y2)
        f(-1.0, y2)
        assert_allclose(f(0.0, y1), first)
        # Input is not modified
        assert_allclose(y1, [1.0, 2.0, 0.5])

    def test_negative_concentrations_not_clamped(self):
        f = _derivative(["A", "B"], ["A -> B"], [1.0])
        assert_allclose(f(0.0, np.array([-0.1, 0.0])), [0.1, -0.1])


class TestReactionSimulator:
    """Tests for ReactionSimulator and react()."""

    def setup_method(self):
        self.sim = ReactionSimulator()

    # -------------------------------------------------------------------------
    # Analytical solutions
    # -------------------------------------------------------------------------

    def test_first_order_decay_analytical(self):
        """A -> B with [A](t) = [A]_0 * exp(-kt)."""
        k, A0 = 0.5, 1.0
        t = np.linspace(0, 10, 100)

        result = react(["A", "B"], [A0, 0.0], ["A -> B"], [k], t)

        assert_allclose(result.get_species("A"), A0 * np.exp(-k * t), rtol=1e-4)
        assert_allclose(result.get_species("B"), A0 * (1 - np.exp(-k * t)), rtol=1e-4, atol=1e-8)

    def test_dimerization_analytical(self):
        """2A -> B with [A](t) = A0 / (1 + 2 k A0 t)."""
        k, A0 = 0.2, 2.0
        t = np.linspace(0, 20, 50)

        result = react(["A", "B"], [A0, 0.0], ["2A -> B"], [k], t)

        A_exact = A0 / (1 + 2 * k * A0 * t)
        assert_allclose(result.get_species("A"), A_exact, rtol=1e-4)
        assert_allclose(result.get_species("B"), (A0 - A_exact) / 2, rtol=1e-4, atol=1e-8)

    def test_formation_degradation_steady_state(self):
        """0 -> A, A -> 0 relaxes to k_f / k_d."""
        t = np.linspace(0, 50, 200)
        result = react(["A"], [0.0], ["0 -> A", "A -> 0"], [2.0, 0.5], t)

        assert_allclose(result.get_species("A"), 4.0 * (1 - np.exp(-0.5 * t)), rtol=1e-4, atol=1e-8)

    # -------------------------------------------------------------------------
    # A + B -> C scenario
    # -------------------------------------------------------------------------

    def test_association_conservation(self):
        t = np.arange(0, 72000 + 10, 10)
        result = react(["A", "B", "C"], [1e3, 1e3, 0.0], ["A + B -> C"], [1e-7], t)

        A = result.get_species("A")
        B = result.get_species("B")
        C = result.get_species("C")

        assert np.all(np.diff(A) <= 1e-3)
        assert np.all(np.diff(B) <= 1e-3)
        assert np.all(np.diff(C) >= -1e-3)
        assert A[-1] < A[0]
        assert C[-1] > C[0]
        assert_allclose(A + C, 1e3, rtol=1e-6)
        assert_allclose(B + C, 1e3, rtol=1e-6)

        # [A](t) = A0 / (1 + k A0 t) since A = B
        assert_allclose(A, 1e3 / (1 + 1e-7 * 1e3 * t), rtol=1e-3)

    # -------------------------------------------------------------------------
    # Result layout
    # -------------------------------------------------------------------------

    def test_result_layout(self):
        t = [0.0, 0.5, 1.0, 2.0]
        result = react(["C", "A", "B"], [0.0, 1.0, 1.0], ["A + B -> C"], [1.0], t)

        assert isinstance(result, SimulationResult)
        assert result.columns == ["time", "C", "A", "B"]
        assert result.concentrations.shape == (4, 3)
        assert result.table.shape == (4, 4)
        assert_allclose(result.time, t)
        assert_allclose(result.table[0], [0.0, 0.0, 1.0, 1.0], atol=1e-8)
        assert result.success

    def test_to_records(self):
        result = react(["A", "B"], [1.0, 0.0], ["A -> B"], [1.0], [0.0, 1.0])
        records = result.to_records()

        assert len(records) == 2
        assert records[0] == pytest.approx({"time": 0.0, "A": 1.0, "B": 0.0}, abs=1e-8)
        assert records[1]["A"] + records[1]["B"] == pytest.approx(1.0)

    def test_get_species_unknown(self):
        result = react(["A", "B"], [1.0, 0.0], ["A -> B"], [1.0], [0.0, 1.0])
        with pytest.raises(KeyError, match="X"):
            result.get_species("X")

    def test_descending_time_grid(self):
        """A -> B integrated backwards from t = 10: [A](t) = exp(-k (t - 10))."""
        k = 0.1
        t = [10.0, 5.0, 0.0]

        result = react(["A", "B"], [1.0, 0.0], ["A -> B"], [k], t)

        assert_allclose(result.time, t)
        assert_allclose(result.get_species("A"), np.exp(-k * (np.array(t) - 10.0)), rtol=1e-4)
        assert_allclose(result.get_species("A") + result.get_species("B"), 1.0, rtol=1e-6)

    def test_single_time_point(self):
        result = react(["A", "B"], [1.0, 2.0], ["A -> B"], [1.0], [3.0])

        assert result.concentrations.shape == (1, 2)
        assert_allclose(result.concentrations[0], [1.0, 2.0])
        assert result.n_function_evals == 0

    # -------------------------------------------------------------------------
    # Validation and diagnostics
    # -------------------------------------------------------------------------

    def test_repaired_reaction_used(self):
        with pytest.warns(AutoRepairWarning):
            result = react(["A", "B"], [1.0, 0.0], ["A + 0 -> B"], [1.0], [0.0, 1.0])

        assert result.reactions == ["A -> B"]
        assert len(result.diagnostics) == 1
        assert result.diagnostics[0].category is AutoRepairWarning
        assert_allclose(result.get_species("A")[-1], np.exp(-1.0), rtol=1e-4)

    def test_diagnostics_without_warnings(self, recwarn):
        result = react(["A", "B"], [1.0, 0.0], ["A + 0 -> B"], [1.0], [0.0, 1.0],
                       emit_warnings=False)

        assert len(result.diagnostics) == 1
        assert not any(issubclass(w.category, CRNWarning) for w in recwarn)

    def test_malformed_species_reported_once(self):
        with pytest.warns(MalformedSpeciesWarning):
            result = react(["A", "B"], [1.0, 0.0], ["A + 12 -> B"], [1.0], [0.0, 1.0])

        assert [d.category for d in result.diagnostics] == [MalformedSpeciesWarning]
        assert_allclose(result.get_species("B")[-1], 1 - np.exp(-1.0), rtol=1e-4)

    def test_malformed_species_reported_once_when_other_side_repaired(self):
        result = react(["A", "B"], [1.0, 0.0], ["A + _x -> B + 0"], [1.0], [0.0, 1.0],
                       emit_warnings=False)

        categories = [d.category for d in result.diagnostics]
        assert categories.count(MalformedSpeciesWarning) == 1
        assert categories.count(AutoRepairWarning) == 1
        assert result.reactions == ["A + _x -> B"]

    def test_invalid_network_not_integrated(self, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("solver must not be called")

        monkeypatch.setattr(simulator_module, "solve_ivp", fail)

        with pytest.raises(DuplicateSpeciesError):
            react(["A", "A"], [1.0, 0.0], ["A -> B"], [1.0], [0.0, 1.0])
        with pytest.raises(GrammarError):
            react(["A", "B"], [1.0, 0.0], ["A => B"], [1.0], [0.0, 1.0])

    def test_solver_failure(self, monkeypatch):
        def failed(*args, **kwargs):
            return types.SimpleNamespace(success=False, message="step size too small")

        monkeypatch.setattr(simulator_module, "solve_ivp", failed)

        with pytest.raises(IntegrationError, match="step size too small"):
            react(["A", "B"], [1.0, 0.0], ["A -> B"], [1.0], [0.0, 1.0])

    # -------------------------------------------------------------------------
    # Networks and options
    # -------------------------------------------------------------------------

    def test_simulate_network_uses_its_time_grid(self):
        network = ReactionNetwork(
            species=["A", "B"], ci=[1.0, 0.0], reactions=["A -> B"], ki=[1.0],
            t=[0.0, 1.0, 2.0],
        )
        result = self.sim.simulate(network)
        assert len(result.time) == 3

    def test_simulate_without_time_grid(self):
        network = ReactionNetwork(species=["A"], ci=[1.0], reactions=["A -> 0"], ki=[1.0])
        with pytest.raises(EmptyFieldError):
            self.sim.simulate(network)

    def test_solver_overrides(self):
        network = ReactionNetwork(
            species=["A", "B"], ci=[1.0, 0.0], reactions=["A -> B"], ki=[1.0],
        )
        t = np.linspace(0, 5, 20)
        result = self.sim.simulate(network, t=t, method="BDF", rtol=1e-8, atol=1e-10)
        assert_allclose(result.get_species("A"), np.exp(-t), rtol=1e-5)

    def test_verbose(self, capsys):
        react(["A", "B"], [1.0, 0.0], ["A -> B"], [1.0], [0.0, 1.0], verbose=True)
        out = capsys.readouterr().out
        assert "LSODA" in out
        assert "success=True" in out

    def test_prepare(self):
        network = ReactionNetwork(
            species=["A", "B", "C"], ci=[1.0, 1.0, 0.0],
            reactions=["A + B + 0 -> C"], ki=[1.0],
        )
        system = self.sim.prepare(network)

        assert system.reactions == ["A + B -> C"]
        assert system.n_species == 3
        assert len(system.diagnostics) == 1
        assert_allclose(system.rates([1.0, 2.0, 0.0]), [2.0])
        assert_allclose(system.derivative(0.0, np.array([1.0, 1.0, 0.0])), [-1.0, -1.0, 1.0])


class TestSolverOptions:

    def test_defaults(self):
        opts = SolverOptions()
        kwargs = opts.to_kwargs()
        assert kwargs["method"] == "LSODA"
        assert kwargs["rtol"] == 1e-6
        assert kwargs["atol"] == 1e-9

    def test_overrides(self):
        opts = SolverOptions().with_overrides(method="Radau", first_step=1e-3)
        assert opts.method == "Radau"
        assert opts.extra == {"first_step": 1e-3}
        assert opts.to_kwargs()["first_step"] == 1e-3
        # Original untouched
        assert SolverOptions().extra == {}
