# skyheat/kernel - Assembly, skyline solver and analyzers
"""
KERNEL: ASSEMBLY, SKYLINE SOLVER, ANALYZERS
===========================================

    dof.py        free-first DOF numbering
    skyline.py    profile storage and in-place LDLᵗ
    assemble.py   global K, C, F from element contributions
    solve.py      child (linear step) analyzer, static analyzer
    dynamic.py    parent time-integration analyzer
    errors.py     error taxonomy
"""

from .assemble import GlobalSystem, assemble_system, compute_skyline_heights
from .dof import DOFManager
from .dynamic import AnalysisState, ThermalDynamicAnalyzer
from .errors import (
    BoundaryConditionConflict,
    ConfigurationError,
    DimensionMismatchError,
    SingularMatrixError,
    ThermalAnalysisError,
    TimeStepError,
)
from .skyline import SkylineMatrix, SkylineSolver, create_solver
from .solve import Analyzer, LinearAnalyzer, LinearSystem, ThermalStaticAnalyzer, solve_static

__all__ = [
    'GlobalSystem', 'assemble_system', 'compute_skyline_heights',
    'DOFManager',
    'AnalysisState', 'ThermalDynamicAnalyzer',
    'BoundaryConditionConflict', 'ConfigurationError', 'DimensionMismatchError',
    'SingularMatrixError', 'ThermalAnalysisError', 'TimeStepError',
    'SkylineMatrix', 'SkylineSolver', 'create_solver',
    'Analyzer', 'LinearAnalyzer', 'LinearSystem', 'ThermalStaticAnalyzer', 'solve_static',
]
