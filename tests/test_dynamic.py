# tests/test_dynamic.py
"""
DYNAMIC ANALYZER TESTS
======================

Checks on the time-stepping parent analyzer:
1. A long Crank-Nicolson run settles on the steady-state solution
2. Each step obeys the defining equations of the (α, β) scheme exactly
3. Keff is factorized once per run, not once per step
4. Bad parameters and lifecycle misuse raise ConfigurationError
5. A failing child surfaces as TimeStepError carrying the step index
"""

import numpy as np
import pytest

from skyheat import DynamicConfig, LinearAnalyzer, ThermalDynamicAnalyzer
from skyheat.elements import ThermalElementProvider
from skyheat.kernel.dynamic import AnalysisState
from skyheat.kernel.errors import ConfigurationError, SingularMatrixError, TimeStepError
from skyheat.meshing import make_plate
from skyheat.model import Model, ThermalMaterial

from conftest import UNIT_MATERIAL


# =============================================================================
# Single-DOF fixture: c·dT/dt + k·T = f
# =============================================================================

class _PointHandle:
    dofs_per_node = 1

    def __init__(self, k, c):
        self.k, self.c = k, c

    def node_dofs(self):
        return [()]

    def conductivity_matrix(self):
        return np.array([[self.k]])

    def capacity_matrix(self):
        return np.array([[self.c]])


class _PointProvider:
    """One node, one 'element' that contributes scalars k and c."""

    def __init__(self, k, c):
        self.k, self.c = k, c

    def create_element(self, cell_type, nodes, material):
        return _PointHandle(self.k, self.c)


def scalar_model(f, T0=0.0):
    model = Model()
    node = model.add_node(0.0, 0.0)
    model.add_element("Point", [node], UNIT_MATERIAL)
    model.add_load(node, f)
    if T0:
        model.set_initial_temperature(node, T0)
    return model


def reference_scalar_steps(k, c, f, T0, v0, dt, alpha, beta, n_steps):
    """March the two defining equations directly as a 2×2 system in (T, v)."""
    T, v = T0, v0
    out = [T]
    A = np.array([
        [1.0, -alpha * dt],
        [beta * k, beta * c],
    ])
    for _ in range(n_steps):
        b = np.array([
            T + dt * (1.0 - alpha) * v,
            f - (1.0 - beta) * (c * v + k * T),
        ])
        T, v = np.linalg.solve(A, b)
        out.append(T)
    return np.array(out)


def run(model, provider, **kwargs):
    config = DynamicConfig(**kwargs)
    analyzer = ThermalDynamicAnalyzer(model, provider, LinearAnalyzer(), config)
    analyzer.solve()
    return analyzer


# =============================================================================
# Accuracy
# =============================================================================

def test_converges_to_steady_state(flux_plate, provider, steady_state):
    analyzer = run(flux_plate, provider, time_step=0.5, n_steps=1000, alpha=0.5, beta=0.5)

    T = analyzer.temperatures
    print(f"\nT after 1000 steps: {np.round(T, 6)}")
    np.testing.assert_allclose(T, steady_state, atol=1e-5)
    assert analyzer.state is AnalysisState.COMPLETED
    print("✓ Crank-Nicolson run settles on the steady state")


@pytest.mark.parametrize("alpha, beta", [(0.5, 0.5), (1.0, 1.0), (0.6, 0.8), (1.0, 0.5), (0.75, 0.6)])
def test_scalar_matches_defining_equations(alpha, beta):
    k, c, f, T0, dt, n = 2.0, 3.0, 5.0, 1.0, 0.4, 25
    analyzer = ThermalDynamicAnalyzer(
        scalar_model(f, T0), _PointProvider(k, c), LinearAnalyzer(),
        DynamicConfig(time_step=dt, n_steps=n, alpha=alpha, beta=beta, keep_history=True),
    )
    analyzer.solve()

    expected = reference_scalar_steps(k, c, f, T0, 0.0, dt, alpha, beta, n)
    np.testing.assert_allclose(analyzer.history[:, 0], expected, rtol=1e-12, atol=1e-12)


def test_backward_euler_closed_form():
    k, c, f, dt = 2.0, 1.0, 4.0, 0.1
    analyzer = run(scalar_model(f), _PointProvider(k, c),
                   time_step=dt, n_steps=30, alpha=1.0, beta=1.0, keep_history=True)

    r = (c / dt) / (c / dt + k)
    n = np.arange(31)
    np.testing.assert_allclose(analyzer.history[:, 0], (f / k) * (1.0 - r ** n), rtol=1e-12, atol=1e-14)


def test_consistent_initial_rate():
    k, c, f, T0 = 2.0, 4.0, 10.0, 1.0
    analyzer = ThermalDynamicAnalyzer(
        scalar_model(f, T0), _PointProvider(k, c), LinearAnalyzer(),
        DynamicConfig(time_step=0.2, n_steps=10, alpha=0.6, beta=0.9,
                      consistent_initial_rate=True, keep_history=True),
    )
    analyzer.initialize()
    v0 = (f - k * T0) / c
    np.testing.assert_allclose(analyzer.rates, [v0])

    analyzer.solve()
    expected = reference_scalar_steps(k, c, f, T0, v0, 0.2, 0.6, 0.9, 10)
    np.testing.assert_allclose(analyzer.history[:, 0], expected, rtol=1e-12)


def test_initial_temperatures_and_history(flux_plate, provider):
    flux_plate.set_initial_temperature(4, 40.0)
    flux_plate.set_initial_temperature(0, 999.0)   # constrained, ignored
    analyzer = run(flux_plate, provider, time_step=0.1, n_steps=5, keep_history=True)

    history = analyzer.history
    assert history.shape == (6, 6)
    np.testing.assert_array_equal(history[0], [0, 0, 40.0, 0, 0, 0])
    np.testing.assert_allclose(analyzer.times, np.arange(6) * 0.1)
    np.testing.assert_array_equal(history[-1], analyzer.temperatures)


def test_symmetric_response(flux_plate, provider):
    """Top and bottom rows see identical histories (mirror symmetry)."""
    analyzer = run(flux_plate, provider, time_step=0.25, n_steps=20, keep_history=True)
    history = analyzer.history
    np.testing.assert_allclose(history[:, [0, 1]], history[:, [4, 5]], atol=1e-10)


# =============================================================================
# Factorization reuse
# =============================================================================

def test_single_factorization_per_run(flux_plate, provider):
    child = LinearAnalyzer()
    analyzer = ThermalDynamicAnalyzer(flux_plate, provider, child, DynamicConfig(time_step=0.5, n_steps=50))
    analyzer.solve()
    assert child.factorizations == 1


def test_modified_matrix_is_refactorized(flux_plate, provider):
    child = LinearAnalyzer()
    analyzer = ThermalDynamicAnalyzer(flux_plate, provider, child, DynamicConfig(time_step=0.5, n_steps=5))
    analyzer.initialize()
    assert child.factorizations == 1
    analyzer.effective_matrix.mark_modified()
    analyzer.solve()
    assert child.factorizations == 2


# =============================================================================
# Configuration and lifecycle
# =============================================================================

@pytest.mark.parametrize("kwargs", [
    dict(time_step=0.0, n_steps=10),
    dict(time_step=-1.0, n_steps=10),
    dict(time_step=float("nan"), n_steps=10),
    dict(time_step=0.1, n_steps=0),
    dict(time_step=0.1, n_steps=10, alpha=0.0),
    dict(time_step=0.1, n_steps=10, alpha=1.5),
    dict(time_step=0.1, n_steps=10, beta=-0.5),
    dict(time_step=0.1, n_steps=10, log_interval=-1),
    dict(time_step=0.1, n_steps=float("inf")),
    dict(time_step=0.1, n_steps=float("nan")),
    dict(time_step=0.1, n_steps=2.5),
])
def test_invalid_config(flux_plate, provider, kwargs):
    analyzer = ThermalDynamicAnalyzer(flux_plate, provider, LinearAnalyzer(), DynamicConfig(**kwargs))
    with pytest.raises(ConfigurationError):
        analyzer.initialize()
    assert analyzer.state is AnalysisState.UNINITIALIZED


def test_conditionally_stable_parameters_warn(flux_plate, provider, caplog):
    analyzer = ThermalDynamicAnalyzer(
        flux_plate, provider, LinearAnalyzer(),
        DynamicConfig(time_step=0.01, n_steps=1, alpha=0.3, beta=0.3),
    )
    with caplog.at_level("WARNING", logger="skyheat.kernel.dynamic"):
        analyzer.initialize()
    assert "conditionally stable" in caplog.text


def test_no_free_dofs(provider):
    model = make_plate(1, 1, UNIT_MATERIAL)
    for node_id in range(4):
        model.add_constraint(node_id, 0.0)
    analyzer = ThermalDynamicAnalyzer(model, provider, LinearAnalyzer(), DynamicConfig(time_step=0.1, n_steps=1))
    with pytest.raises(ConfigurationError):
        analyzer.solve()


def test_lifecycle(flux_plate, provider):
    analyzer = ThermalDynamicAnalyzer(flux_plate, provider, LinearAnalyzer(), DynamicConfig(time_step=0.1, n_steps=3))
    assert analyzer.state is AnalysisState.UNINITIALIZED
    with pytest.raises(ConfigurationError):
        analyzer.temperatures

    analyzer.initialize()
    assert analyzer.state is AnalysisState.INITIALIZED
    with pytest.raises(ConfigurationError):
        analyzer.initialize()
    with pytest.raises(ConfigurationError):
        analyzer.results()

    analyzer.solve()
    assert analyzer.state is AnalysisState.COMPLETED
    assert analyzer.step == 3
    with pytest.raises(ConfigurationError):
        analyzer.solve()


def test_history_requires_flag(flux_plate, provider):
    analyzer = run(flux_plate, provider, time_step=0.1, n_steps=2)
    with pytest.raises(ConfigurationError):
        analyzer.history
    assert analyzer.results().history is None


def test_outputs_are_read_only(flux_plate, provider):
    analyzer = run(flux_plate, provider, time_step=0.1, n_steps=2)
    with pytest.raises(ValueError):
        analyzer.temperatures[0] = 1.0
    with pytest.raises(ValueError):
        analyzer.rates[0] = 1.0


# =============================================================================
# Step failures
# =============================================================================

class _FailingChild:
    """Delegates to a LinearAnalyzer until the given solve call, then fails."""

    def __init__(self, fail_at):
        self.inner = LinearAnalyzer()
        self.fail_at = fail_at
        self.calls = 0

    def prepare(self, matrix):
        self.inner.prepare(matrix)

    def solve(self, system):
        if self.calls == self.fail_at:
            raise SingularMatrixError("forced failure", column=0)
        self.calls += 1
        return self.inner.solve(system)


def test_failing_step_reports_index(flux_plate, provider):
    analyzer = ThermalDynamicAnalyzer(flux_plate, provider, _FailingChild(fail_at=3),
                                      DynamicConfig(time_step=0.1, n_steps=10))
    with pytest.raises(TimeStepError) as info:
        analyzer.solve()

    assert info.value.step == 3
    assert isinstance(info.value.__cause__, SingularMatrixError)
    assert analyzer.state is AnalysisState.FAILED
    assert analyzer.step == 3
    with pytest.raises(ConfigurationError):
        analyzer.results()
    with pytest.raises(ConfigurationError):
        analyzer.temperatures


class _NaNChild(_FailingChild):
    def solve(self, system):
        return np.full(system.rhs.shape, np.nan)


def test_non_finite_step_fails(flux_plate, provider):
    analyzer = ThermalDynamicAnalyzer(flux_plate, provider, _NaNChild(fail_at=0),
                                      DynamicConfig(time_step=0.1, n_steps=4))
    with pytest.raises(TimeStepError) as info:
        analyzer.solve()
    assert info.value.step == 0
    assert analyzer.state is AnalysisState.FAILED


class _LinAlgFailingChild(_FailingChild):
    def solve(self, system):
        if self.calls == self.fail_at:
            raise np.linalg.LinAlgError("factorization broke down")
        self.calls += 1
        return self.inner.solve(system)


def test_foreign_child_error_is_wrapped(flux_plate, provider):
    """Errors from outside the package still report their step and fail the run."""
    analyzer = ThermalDynamicAnalyzer(flux_plate, provider, _LinAlgFailingChild(fail_at=2),
                                      DynamicConfig(time_step=0.1, n_steps=10))
    with pytest.raises(TimeStepError) as info:
        analyzer.solve()

    assert info.value.step == 2
    assert isinstance(info.value.__cause__, np.linalg.LinAlgError)
    assert analyzer.state is AnalysisState.FAILED
    with pytest.raises(ConfigurationError):
        analyzer.temperatures
    with pytest.raises(ConfigurationError):
        analyzer.rates
    with pytest.raises(ConfigurationError):
        analyzer.results()


class _InterruptingChild(_FailingChild):
    def solve(self, system):
        if self.calls == self.fail_at:
            raise KeyboardInterrupt
        self.calls += 1
        return self.inner.solve(system)


def test_interrupted_run_is_marked_failed(flux_plate, provider):
    analyzer = ThermalDynamicAnalyzer(flux_plate, provider, _InterruptingChild(fail_at=1),
                                      DynamicConfig(time_step=0.1, n_steps=10))
    with pytest.raises(KeyboardInterrupt):
        analyzer.solve()

    assert analyzer.state is AnalysisState.FAILED
    assert analyzer.step == 1
    with pytest.raises(ConfigurationError):
        analyzer.temperatures


def test_lumped_and_consistent_agree_at_steady_state(make_flux_plate, steady_state):
    analyzer = run(make_flux_plate(), ThermalElementProvider(capacity="lumped"),
                   time_step=1.0, n_steps=400, alpha=1.0, beta=1.0)
    np.testing.assert_allclose(analyzer.temperatures, steady_state, atol=1e-5)


def test_material_capacity_slows_response(make_flux_plate, provider):
    fast = run(make_flux_plate(), provider, time_step=0.1, n_steps=10)

    slow_model = make_plate(2, 2, ThermalMaterial(density=10.0, specific_heat=1.0, conductivity=1.0))
    for node_id in (0, 3, 6):
        slow_model.add_constraint(node_id, 100.0)
    for node_id, q in ((2, 25.0), (5, 50.0), (8, 25.0)):
        slow_model.add_load(node_id, q)
    slow = run(slow_model, provider, time_step=0.1, n_steps=10)

    assert np.all(slow.temperatures < fast.temperatures)
