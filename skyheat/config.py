# skyheat/config.py
"""
Solver and time-integration configuration values.

Both are plain dataclasses handed to constructor functions; nothing here
validates itself. Range checks happen where the values are consumed, so an
analyzer can report them as ConfigurationError.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SolverConfig:
    """Settings for the skyline LDLᵗ solver."""

    # Pivots with |d| <= pivot_tolerance * max|diag(A)| are treated as zero
    pivot_tolerance: float = 1e-12


@dataclass(frozen=True)
class DynamicConfig:
    """
    Time-integration settings for ThermalDynamicAnalyzer.

    alpha weights the rate vector in the temperature update,
    beta weights the time level at which C·v + K·T = F is enforced.
    alpha = beta = theta reproduces the classic theta method:
        1.0 -> backward Euler
        0.5 -> Crank-Nicolson
    """

    time_step: float
    n_steps: int
    alpha: float = 0.5
    beta: float = 0.5

    keep_history: bool = False           # store T at every step
    consistent_initial_rate: bool = False  # v0 = C^-1 (F - K T0) instead of 0
    log_interval: int = 100              # steps between progress log lines (0 = off)


# Module-level defaults
DEFAULT_SOLVER_CONFIG = SolverConfig()
