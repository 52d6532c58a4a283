# skyheat/kernel/dynamic.py
"""
DYNAMIC THERMAL ANALYZER: Implicit Time Integration
===================================================

PURPOSE:
--------
Integrates the semi-discrete heat equation

    C·dT/dt + K·T = F

with a fixed step Δt over n_steps steps, using the two-parameter
generalized trapezoidal family:

    T_{n+1} = T_n + Δt·[(1-α)·v_n + α·v_{n+1}]        (rate weight α)
    C·v_{n+β} + K·T_{n+β} = F                          (balance weight β)

where x_{n+β} = (1-β)·x_n + β·x_{n+1} and v = dT/dt.

Eliminating v_{n+1} leaves one linear system per step in T_{n+1}:

    Keff = (β/α)·C/Δt + β·K

    rhs  = F - (1-β)·K·T_n + (β/(αΔt))·C·T_n
             + [β(1-α)/α - (1-β)]·C·v_n

    v_{n+1} = (T_{n+1} - T_n)/(αΔt) - ((1-α)/α)·v_n

With α = β = θ the C·v_n term cancels and this is the classic theta
method: θ = 1 backward Euler, θ = 1/2 Crank-Nicolson. Both are
unconditionally stable for min(α, β) >= 1/2.

Keff does not change during a run (Δt, α, β and the profile are fixed),
so it is built and factorized once in initialize(); each step is then a
matrix-vector product for the rhs plus one pair of triangular solves.

LIFECYCLE:
----------
    UNINITIALIZED -> INITIALIZED -> STEPPING -> COMPLETED
    STEPPING -> FAILED when a step raises
"""

import logging
import numbers
from enum import Enum
from typing import List, Optional

import numpy as np

from ..config import DynamicConfig
from ..post import TemperatureResults
from .assemble import GlobalSystem, assemble_system
from .errors import ConfigurationError, TimeStepError
from .skyline import SkylineMatrix
from .solve import Analyzer, LinearAnalyzer, LinearSystem

logger = logging.getLogger(__name__)


class AnalysisState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    STEPPING = "stepping"
    COMPLETED = "completed"
    FAILED = "failed"


def _read_only(a: np.ndarray) -> np.ndarray:
    view = a.view()
    view.flags.writeable = False
    return view


class ThermalDynamicAnalyzer:
    """
    Parent analyzer driving the time-stepping loop.

    It holds a child Analyzer (normally a LinearAnalyzer) and hands it
    the effective system once per step; the child owns the factorization.

    Parameters:
    -----------
    model : Model
    provider : ElementProvider
    child : Analyzer
        Solves Keff·T = rhs; must also offer prepare(matrix)
    config : DynamicConfig
        Δt, step count, α, β and history/initial-rate options
    """

    def __init__(self, model, provider, child: Analyzer, config: DynamicConfig):
        self.model = model
        self.provider = provider
        self.child = child
        self.config = config

        self.state = AnalysisState.UNINITIALIZED
        self.step = 0
        self.system: Optional[GlobalSystem] = None
        self.effective_matrix: Optional[SkylineMatrix] = None

        self._T: Optional[np.ndarray] = None
        self._v: Optional[np.ndarray] = None
        self._history: List[np.ndarray] = []
        self._coeff_C_T = 0.0
        self._coeff_K_T = 0.0
        self._coeff_C_v = 0.0

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _validate_config(self) -> None:
        cfg = self.config
        if not (np.isfinite(cfg.time_step) and cfg.time_step > 0.0):
            raise ConfigurationError(f"time_step must be positive, got {cfg.time_step}")
        if (
            not isinstance(cfg.n_steps, numbers.Real)
            or not np.isfinite(cfg.n_steps)
            or int(cfg.n_steps) != cfg.n_steps
            or cfg.n_steps < 1
        ):
            raise ConfigurationError(f"n_steps must be a positive integer, got {cfg.n_steps}")
        if not 0.0 < cfg.alpha <= 1.0:
            raise ConfigurationError(f"alpha must lie in (0, 1], got {cfg.alpha}")
        if not 0.0 < cfg.beta <= 1.0:
            raise ConfigurationError(f"beta must lie in (0, 1], got {cfg.beta}")
        if cfg.log_interval < 0:
            raise ConfigurationError(f"log_interval must be >= 0, got {cfg.log_interval}")
        if min(cfg.alpha, cfg.beta) < 0.5:
            logger.warning(
                "alpha=%.3g, beta=%.3g: scheme is only conditionally stable", cfg.alpha, cfg.beta
            )

    def _initial_temperatures(self) -> np.ndarray:
        T0 = np.zeros(self.system.n_free, dtype=float)
        dofs = self.system.dofs
        for node_id, value in self.model.initial_temperatures.items():
            g = dofs.idx(node_id)
            if dofs.is_free(g):
                T0[g] = value
        return T0

    def _initial_rates(self, T0: np.ndarray) -> np.ndarray:
        if not self.config.consistent_initial_rate:
            return np.zeros_like(T0)
        # C·v0 = F - K·T0, factorized separately so Keff stays cached in the child
        rate_solver = LinearAnalyzer()
        residual = self.system.F - self.system.K.matvec(T0)
        return rate_solver.solve(LinearSystem(self.system.C, residual))

    def initialize(self) -> None:
        """
        Validate parameters, assemble, build and factorize Keff once.

        Raises:
            ConfigurationError: invalid parameters, no free DOFs, or called twice
            SingularMatrixError: Keff cannot be factorized
        """
        if self.state is not AnalysisState.UNINITIALIZED:
            raise ConfigurationError(f"initialize() called in state {self.state.value}")
        self._validate_config()

        system = assemble_system(self.model, self.provider)
        if system.n_free == 0:
            raise ConfigurationError("Model has no free DOFs to integrate")
        self.system = system

        dt, alpha, beta = self.config.time_step, self.config.alpha, self.config.beta
        self._coeff_C_T = beta / (alpha * dt)
        self._coeff_K_T = -(1.0 - beta)
        self._coeff_C_v = beta * (1.0 - alpha) / alpha - (1.0 - beta)

        self.effective_matrix = SkylineMatrix.linear_combination(self._coeff_C_T, system.C, beta, system.K)
        self.child.prepare(self.effective_matrix)

        self._T = self._initial_temperatures()
        self._v = self._initial_rates(self._T)
        self._history = [self._T.copy()] if self.config.keep_history else []
        self.step = 0
        self.state = AnalysisState.INITIALIZED
        logger.info(
            "Dynamic analysis initialized: %d free DOFs, dt=%g, steps=%d, alpha=%g, beta=%g",
            system.n_free, dt, self.config.n_steps, alpha, beta,
        )

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def _effective_rhs(self) -> np.ndarray:
        K, C = self.system.K, self.system.C
        rhs = self.system.F + self._coeff_C_T * C.matvec(self._T)
        if self._coeff_K_T != 0.0:
            rhs += self._coeff_K_T * K.matvec(self._T)
        if self._coeff_C_v != 0.0:
            rhs += self._coeff_C_v * C.matvec(self._v)
        return rhs

    def _advance(self, T_new: np.ndarray) -> None:
        alpha, dt = self.config.alpha, self.config.time_step
        self._v = (T_new - self._T) / (alpha * dt) - ((1.0 - alpha) / alpha) * self._v
        self._T = T_new

    def solve(self) -> np.ndarray:
        """
        Run all configured steps and return the final free-DOF temperatures.

        Raises:
            TimeStepError: a step failed; `.step` is the failing step index
            ConfigurationError: analysis already ran (or failed)
        """
        if self.state is AnalysisState.UNINITIALIZED:
            self.initialize()
        if self.state is not AnalysisState.INITIALIZED:
            raise ConfigurationError(f"solve() called in state {self.state.value}")

        self.state = AnalysisState.STEPPING
        n_steps = int(self.config.n_steps)
        log_interval = self.config.log_interval

        completed = False
        try:
            for step in range(n_steps):
                try:
                    rhs = self._effective_rhs()
                    T_new = self.child.solve(LinearSystem(self.effective_matrix, rhs))
                except Exception as exc:
                    raise TimeStepError(f"Time step {step} failed: {exc}", step=step) from exc
                if not np.all(np.isfinite(T_new)):
                    raise TimeStepError(f"Time step {step} produced non-finite temperatures", step=step)

                self._advance(T_new)
                if self.config.keep_history:
                    self._history.append(self._T.copy())
                self.step = step + 1

                if log_interval and self.step % log_interval == 0:
                    logger.debug(
                        "step %d/%d: t=%g, max|T|=%.6g", self.step, n_steps,
                        self.step * self.config.time_step, float(np.max(np.abs(self._T))),
                    )
            completed = True
        finally:
            # any early exit, interrupts included, leaves no usable state
            if not completed:
                self.state = AnalysisState.FAILED
                logger.error("Dynamic analysis failed at step %d", self.step)

        self.state = AnalysisState.COMPLETED
        logger.info("Dynamic analysis completed after %d steps", n_steps)
        return self.temperatures

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _require_state(self) -> None:
        if self._T is None:
            raise ConfigurationError("Analyzer has not been initialized")
        if self.state is AnalysisState.FAILED:
            raise ConfigurationError(f"Analysis failed at step {self.step}; no valid state to report")
        if self.state is AnalysisState.STEPPING:
            raise ConfigurationError(f"Analysis is still stepping (step {self.step}); state is incomplete")

    @property
    def temperatures(self) -> np.ndarray:
        """Latest free-DOF temperature vector (read-only)."""
        self._require_state()
        return _read_only(self._T)

    @property
    def rates(self) -> np.ndarray:
        """Latest free-DOF rate vector dT/dt (read-only)."""
        self._require_state()
        return _read_only(self._v)

    @property
    def times(self) -> np.ndarray:
        return np.arange(self.step + 1) * self.config.time_step

    @property
    def history(self) -> np.ndarray:
        """Temperatures at every step so far, shape (step + 1, n_free)."""
        self._require_state()
        if not self.config.keep_history:
            raise ConfigurationError("History was not kept; set keep_history=True")
        return _read_only(np.array(self._history))

    def results(self) -> TemperatureResults:
        if self.state is not AnalysisState.COMPLETED:
            raise ConfigurationError(f"No completed results (state is {self.state.value})")
        history = self.history if self.config.keep_history else None
        return TemperatureResults(
            self.model, self.system, self.temperatures,
            history=history, times=self.times if history is not None else None,
        )
