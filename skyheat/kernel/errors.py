# skyheat/kernel/errors.py
"""Error taxonomy shared by the assembler, the skyline solver and the analyzers."""

from typing import Optional


class ThermalAnalysisError(RuntimeError):
    """Base class for every failure raised by the solver core."""
    pass


class ConfigurationError(ThermalAnalysisError):
    """Raised for invalid analysis parameters or misuse of an analyzer's lifecycle."""
    pass


class SingularMatrixError(ThermalAnalysisError):
    """Raised when a pivot falls below tolerance during factorization."""

    def __init__(self, message: str, column: Optional[int] = None):
        super().__init__(message)
        self.column = column


class DimensionMismatchError(ThermalAnalysisError):
    """Raised when matrix/vector sizes disagree with the DOF layout."""
    pass


class BoundaryConditionConflict(ThermalAnalysisError):
    """Raised when one DOF is constrained twice with different values."""

    def __init__(self, message: str, node_id: Optional[int] = None):
        super().__init__(message)
        self.node_id = node_id


class TimeStepError(ThermalAnalysisError):
    """Raised when a time step fails; the original error is chained as __cause__."""

    def __init__(self, message: str, step: int):
        super().__init__(message)
        self.step = step
