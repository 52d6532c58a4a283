# skyheat - Transient finite-element heat diffusion on a skyline solver
"""
SKYHEAT: Finite-Element Heat Diffusion
======================================

Solves C·dT/dt + K·T = F on 2D meshes:

    model.py       Node, Element, Constraint, Load, Subdomain, Model
    elements.py    reference element provider (Quad4, Tri3)
    meshing.py     structured plate builder
    config.py      SolverConfig, DynamicConfig
    kernel/        DOF numbering, skyline LDLᵗ, assembly, analyzers
    post.py        TemperatureResults (indexed view, tables, heat flow)
    viz.py         matplotlib plots (import separately)
"""

from .config import DynamicConfig, SolverConfig
from .elements import ThermalElementProvider
from .kernel import (
    ConfigurationError,
    LinearAnalyzer,
    SingularMatrixError,
    ThermalDynamicAnalyzer,
    ThermalStaticAnalyzer,
    create_solver,
    solve_static,
)
from .model import Model, ThermalMaterial
from .post import TemperatureResults

__version__ = "0.1.0"
