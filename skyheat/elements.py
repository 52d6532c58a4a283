# skyheat/elements.py
"""
THERMAL ELEMENTS: Conductance and Capacity Matrices
===================================================

PURPOSE:
--------
Reference Element Matrix Provider. Given a cell type, its ordered nodes
and a material, it returns an element handle exposing:

    conductivity_matrix()   Kₑ = ∫ k·Bᵀ·B dΩ      (n_nodes × n_nodes)
    capacity_matrix()       Cₑ = ∫ ρ·c·Nᵀ·N dΩ    (n_nodes × n_nodes)

The assembler only talks to the ElementProvider / ElementHandle protocols,
so any other element library can be plugged in instead.

CELL TYPES:
-----------
    Quad4   bilinear quadrilateral, nodes counter-clockwise,
            2×2 Gauss quadrature, isoparametric mapping
    Tri3    linear triangle, nodes counter-clockwise,
            closed-form (B is constant over the element)

For a unit square Quad4 with k = 1 the conductance matrix is the
familiar

    Kₑ = 1/6 × [ 4  -1  -2  -1 ]
               [-1   4  -1  -2 ]
               [-2  -1   4  -1 ]
               [-1  -2  -1   4 ]

CAPACITY:
---------
"consistent" integrates NᵀN exactly; "lumped" puts each row sum on the
diagonal (total heat capacity is identical, the matrix is diagonal).
"""

from typing import List, Protocol, Sequence, Tuple

import numpy as np

from .model import DOFKind, Node, ThermalMaterial

_GAUSS_2 = (-1.0 / np.sqrt(3.0), 1.0 / np.sqrt(3.0))

CAPACITY_FORMULATIONS = ("consistent", "lumped")


class ElementHandle(Protocol):
    dofs_per_node: int

    def node_dofs(self) -> List[Tuple[DOFKind, ...]]: ...

    def conductivity_matrix(self) -> np.ndarray: ...

    def capacity_matrix(self) -> np.ndarray: ...


class ElementProvider(Protocol):
    def create_element(
        self, cell_type: str, nodes: Sequence[Node], material: ThermalMaterial
    ) -> ElementHandle: ...


class ThermalElement:
    """Common plumbing for the reference heat-conduction elements."""

    n_nodes = 0
    dofs_per_node = 1

    def __init__(self, nodes: Sequence[Node], material: ThermalMaterial, capacity: str = "consistent"):
        if len(nodes) != self.n_nodes:
            raise ValueError(
                f"{type(self).__name__} needs {self.n_nodes} nodes, got {len(nodes)}"
            )
        if capacity not in CAPACITY_FORMULATIONS:
            raise ValueError(f"Unknown capacity formulation '{capacity}'")
        self.nodes = list(nodes)
        self.material = material
        self.capacity = capacity
        self.coords = np.array([[n.x, n.y] for n in nodes], dtype=float)

    def node_dofs(self) -> List[Tuple[DOFKind, ...]]:
        return [(DOFKind.TEMPERATURE,) for _ in self.nodes]

    def conductivity_matrix(self) -> np.ndarray:
        raise NotImplementedError

    def consistent_capacity_matrix(self) -> np.ndarray:
        raise NotImplementedError

    def capacity_matrix(self) -> np.ndarray:
        c = self.consistent_capacity_matrix()
        if self.capacity == "lumped":
            return np.diag(c.sum(axis=1))
        return c


class Quad4Element(ThermalElement):
    """Bilinear 4-node quadrilateral."""

    n_nodes = 4

    @staticmethod
    def shape_functions(zeta: float, eta: float) -> np.ndarray:
        return 0.25 * np.array([
            (1 - zeta) * (1 - eta),
            (1 + zeta) * (1 - eta),
            (1 + zeta) * (1 + eta),
            (1 - zeta) * (1 + eta),
        ])

    @staticmethod
    def shape_gradients(zeta: float, eta: float) -> np.ndarray:
        """dN/d(zeta, eta), shape (2, 4)."""
        return 0.25 * np.array([
            [eta - 1, 1 - eta, 1 + eta, -eta - 1],
            [zeta - 1, -1 - zeta, 1 + zeta, 1 - zeta],
        ])

    def _jacobian(self, grad_local: np.ndarray) -> Tuple[float, np.ndarray]:
        jac = grad_local @ self.coords
        det = jac[0, 0] * jac[1, 1] - jac[1, 0] * jac[0, 1]
        if det <= 0.0:
            raise ValueError(
                f"Quad4 with nodes {[n.id for n in self.nodes]} has non-positive "
                f"Jacobian ({det:.3e}); check node ordering"
            )
        return det, jac

    def conductivity_matrix(self) -> np.ndarray:
        k = np.zeros((4, 4))
        scale = self.material.conductivity * self.material.thickness
        for zeta in _GAUSS_2:
            for eta in _GAUSS_2:
                grad_local = self.shape_gradients(zeta, eta)
                det, jac = self._jacobian(grad_local)
                B = np.linalg.solve(jac, grad_local)
                k += (B.T @ B) * det * scale
        return k

    def consistent_capacity_matrix(self) -> np.ndarray:
        c = np.zeros((4, 4))
        scale = self.material.density * self.material.specific_heat * self.material.thickness
        for zeta in _GAUSS_2:
            for eta in _GAUSS_2:
                det, _ = self._jacobian(self.shape_gradients(zeta, eta))
                N = self.shape_functions(zeta, eta)
                c += np.outer(N, N) * det * scale
        return c


class Tri3Element(ThermalElement):
    """Linear 3-node triangle."""

    n_nodes = 3

    def _area_and_B(self) -> Tuple[float, np.ndarray]:
        (x1, y1), (x2, y2), (x3, y3) = self.coords
        two_area = (x2 - x1) * (y3 - y1) - (x3 - x1) * (y2 - y1)
        if two_area <= 0.0:
            raise ValueError(
                f"Tri3 with nodes {[n.id for n in self.nodes]} has non-positive area; "
                f"check node ordering"
            )
        B = np.array([
            [y2 - y3, y3 - y1, y1 - y2],
            [x3 - x2, x1 - x3, x2 - x1],
        ]) / two_area
        return 0.5 * two_area, B

    def conductivity_matrix(self) -> np.ndarray:
        area, B = self._area_and_B()
        return self.material.conductivity * self.material.thickness * area * (B.T @ B)

    def consistent_capacity_matrix(self) -> np.ndarray:
        area, _ = self._area_and_B()
        m = self.material
        return m.density * m.specific_heat * m.thickness * area / 12.0 * (np.ones((3, 3)) + np.eye(3))


class ThermalElementProvider:
    """
    Creates reference element handles by cell type tag.

    Parameters:
    -----------
    capacity : str
        "consistent" (default) or "lumped"
    """

    cell_types = {
        "Quad4": Quad4Element,
        "Tri3": Tri3Element,
    }

    def __init__(self, capacity: str = "consistent"):
        if capacity not in CAPACITY_FORMULATIONS:
            raise ValueError(f"Unknown capacity formulation '{capacity}'")
        self.capacity = capacity

    def create_element(
        self, cell_type: str, nodes: Sequence[Node], material: ThermalMaterial
    ) -> ThermalElement:
        try:
            element_cls = self.cell_types[cell_type]
        except KeyError:
            raise ValueError(
                f"Unknown cell type '{cell_type}'. Available: {sorted(self.cell_types)}"
            ) from None
        return element_cls(nodes, material, capacity=self.capacity)
