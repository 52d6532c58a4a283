# skyheat/kernel/solve.py
"""Linear step solver, the Analyzer capability, and the static (steady-state) analyzer."""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import numpy as np

from ..post import TemperatureResults
from .assemble import GlobalSystem, assemble_system
from .errors import ConfigurationError
from .skyline import SkylineMatrix, SkylineSolver, create_solver

logger = logging.getLogger(__name__)


@dataclass
class LinearSystem:
    """One instance of A·x = b handed to a child analyzer."""
    matrix: SkylineMatrix
    rhs: np.ndarray


class Analyzer(Protocol):
    """
    Anything that turns an effective linear system into a solved state.

    prepare(matrix) lets a parent request the factorization up front,
    before the first right-hand side exists.
    """

    def prepare(self, matrix: SkylineMatrix) -> None: ...

    def solve(self, system: LinearSystem) -> np.ndarray: ...


class LinearAnalyzer:
    """
    Child analyzer: factorize when needed, then solve.

    It remembers which matrix (identity and revision) its solver was last
    factorized for. Same matrix, same revision -> only triangular solves.
    Solver errors propagate unchanged; time stepping belongs to the parent.
    """

    def __init__(self, solver: Optional[SkylineSolver] = None):
        self.solver = create_solver() if solver is None else solver
        self._matrix_id: Optional[int] = None
        self._revision: Optional[int] = None
        self.factorizations = 0

    def _needs_factorization(self, matrix: SkylineMatrix) -> bool:
        return (
            not self.solver.is_factorized
            or self._matrix_id != id(matrix)
            or self._revision != matrix.revision
        )

    def prepare(self, matrix: SkylineMatrix) -> None:
        """Make sure the solver holds a valid factorization of `matrix`."""
        if not self._needs_factorization(matrix):
            return
        self._matrix_id = None
        self.solver.rebuild(matrix)
        self.solver.factorize()
        self._matrix_id = id(matrix)
        self._revision = matrix.revision
        self.factorizations += 1

    def solve(self, system: LinearSystem) -> np.ndarray:
        self.prepare(system.matrix)
        return self.solver.solve(system.rhs)


class ThermalStaticAnalyzer:
    """
    Steady-state analysis: K·T = F, capacity ignored.

    USAGE:
        analyzer = ThermalStaticAnalyzer(model, ThermalElementProvider(), LinearAnalyzer())
        T_free = analyzer.solve()
    """

    def __init__(self, model, provider, child: Optional[Analyzer] = None):
        self.model = model
        self.provider = provider
        self.child = LinearAnalyzer() if child is None else child
        self.system: Optional[GlobalSystem] = None
        self._temperatures: Optional[np.ndarray] = None

    def solve(self) -> np.ndarray:
        self.system = assemble_system(self.model, self.provider)
        if self.system.n_free == 0:
            raise ConfigurationError("Model has no free DOFs to solve for")

        T = self.child.solve(LinearSystem(self.system.K, self.system.F))
        T.setflags(write=False)
        self._temperatures = T
        logger.info("Static solve finished: %d free DOFs", self.system.n_free)
        return T

    @property
    def temperatures(self) -> np.ndarray:
        if self._temperatures is None:
            raise ConfigurationError("solve() has not been run")
        return self._temperatures

    def results(self) -> TemperatureResults:
        return TemperatureResults(self.model, self.system, self.temperatures)


def solve_static(model, provider, child: Optional[Analyzer] = None) -> np.ndarray:
    """
    Solve the steady-state conduction problem of `model`.

    Returns the free-DOF temperature vector (free-first numbering).
    """
    return ThermalStaticAnalyzer(model, provider, child).solve()
