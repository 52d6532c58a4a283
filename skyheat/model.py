# skyheat/model.py
"""
MODEL: Mesh and Boundary Registry
=================================

PURPOSE:
--------
Holds everything the assembler reads: nodes, elements, subdomains,
Dirichlet constraints, Neumann loads and initial temperatures.

Entities live in dense lists ("arenas"). The Model hands out ids
contiguously (0..n-1) as entities are added, so an id is also the index
into its arena. validate() checks every cross reference before assembly.

USAGE:
------
    model = Model()
    mat = ThermalMaterial(density=1.0, specific_heat=1.0, conductivity=1.0)
    n0 = model.add_node(0.0, 0.0)
    ...
    model.add_element("Quad4", [n0, n1, n4, n3], mat)
    model.add_constraint(n0, 100.0)   # T = 100 at node 0
    model.add_load(n2, 25.0)          # point heat input at node 2
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple


class DOFKind(Enum):
    """Kinds of nodal unknowns. Heat conduction has exactly one."""
    TEMPERATURE = 0


@dataclass(frozen=True)
class ThermalMaterial:
    """
    Isotropic, temperature-independent material.

    density * specific_heat scales the capacity matrix,
    conductivity scales the conductance matrix.
    thickness is the out-of-plane depth of 2D elements.
    """
    density: float
    specific_heat: float
    conductivity: float
    thickness: float = 1.0


@dataclass(frozen=True)
class Node:
    id: int
    x: float
    y: float
    z: float = 0.0
    dofs: Tuple[DOFKind, ...] = (DOFKind.TEMPERATURE,)


@dataclass(frozen=True)
class Element:
    """
    A finite element: a cell type tag plus its ordered node ids.

    The element does not compute its own matrices; the ElementProvider
    does that from (cell_type, nodes, material).
    """
    id: int
    cell_type: str
    node_ids: Tuple[int, ...]
    material: ThermalMaterial
    subdomain: int = 0


@dataclass(frozen=True)
class Constraint:
    """Dirichlet condition: the DOF is fixed at `value`."""
    node_id: int
    value: float
    dof: DOFKind = DOFKind.TEMPERATURE


@dataclass(frozen=True)
class Load:
    """Neumann / point-source condition: `magnitude` enters the load vector."""
    node_id: int
    magnitude: float
    dof: DOFKind = DOFKind.TEMPERATURE


@dataclass
class Subdomain:
    id: int
    element_ids: List[int] = field(default_factory=list)


class Model:
    """
    Owns all mesh and boundary-condition entities of one analysis.

    Assemblers and analyzers only read from it.
    """

    def __init__(self):
        self.nodes: List[Node] = []
        self.elements: List[Element] = []
        self.subdomains: List[Subdomain] = []
        self.constraints: List[Constraint] = []
        self.loads: List[Load] = []
        self.initial_temperatures: Dict[int, float] = {}

    def __repr__(self):
        return (f"Model(nodes={self.n_nodes}, elements={self.n_elements}, "
                f"subdomains={len(self.subdomains)}, constraints={len(self.constraints)}, "
                f"loads={len(self.loads)})")

    @property
    def n_nodes(self) -> int:
        return len(self.nodes)

    @property
    def n_elements(self) -> int:
        return len(self.elements)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_node(self, x: float, y: float, z: float = 0.0) -> int:
        node_id = len(self.nodes)
        self.nodes.append(Node(node_id, float(x), float(y), float(z)))
        return node_id

    def add_subdomain(self) -> int:
        subdomain_id = len(self.subdomains)
        self.subdomains.append(Subdomain(subdomain_id))
        return subdomain_id

    def add_element(
        self,
        cell_type: str,
        node_ids: Sequence[int],
        material: ThermalMaterial,
        subdomain: Optional[int] = None,
    ) -> int:
        """
        Add an element and register it with a subdomain.

        When `subdomain` is None the element goes to subdomain 0,
        which is created on first use.
        """
        if subdomain is None:
            if not self.subdomains:
                self.add_subdomain()
            subdomain = 0
        if not 0 <= subdomain < len(self.subdomains):
            raise ValueError(f"Subdomain {subdomain} does not exist")

        element_id = len(self.elements)
        self.elements.append(
            Element(element_id, cell_type, tuple(int(n) for n in node_ids), material, subdomain)
        )
        self.subdomains[subdomain].element_ids.append(element_id)
        return element_id

    def add_constraint(self, node_id: int, value: float, dof: DOFKind = DOFKind.TEMPERATURE) -> None:
        self.constraints.append(Constraint(node_id, float(value), dof))

    def add_load(self, node_id: int, magnitude: float, dof: DOFKind = DOFKind.TEMPERATURE) -> None:
        self.loads.append(Load(node_id, float(magnitude), dof))

    def set_initial_temperature(self, node_id: int, value: float) -> None:
        self.initial_temperatures[node_id] = float(value)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def node_constraints(self, node_id: int) -> List[Constraint]:
        return [c for c in self.constraints if c.node_id == node_id]

    def node_loads(self, node_id: int) -> List[Load]:
        return [l for l in self.loads if l.node_id == node_id]

    def element_nodes(self, element: Element) -> List[Node]:
        return [self.nodes[n] for n in element.node_ids]

    def elements_in_assembly_order(self) -> Iterator[Element]:
        """Elements grouped by subdomain, each group in element-id order."""
        for subdomain in self.subdomains:
            for element_id in sorted(subdomain.element_ids):
                yield self.elements[element_id]

    def validate(self) -> None:
        """
        Check arena invariants and cross references.

        Raises:
            ValueError: on any dangling or duplicated reference
        """
        for index, node in enumerate(self.nodes):
            if node.id != index:
                raise ValueError(f"Node at position {index} has id {node.id}")

        seen = set()
        for subdomain in self.subdomains:
            for element_id in subdomain.element_ids:
                if element_id in seen:
                    raise ValueError(f"Element {element_id} belongs to more than one subdomain")
                seen.add(element_id)

        for index, element in enumerate(self.elements):
            if element.id != index:
                raise ValueError(f"Element at position {index} has id {element.id}")
            if element.id not in seen:
                raise ValueError(f"Element {element.id} is not registered with a subdomain")
            if len(set(element.node_ids)) != len(element.node_ids):
                raise ValueError(f"Element {element.id} repeats a node: {element.node_ids}")
            for node_id in element.node_ids:
                if not 0 <= node_id < self.n_nodes:
                    raise ValueError(f"Element {element.id} references missing node {node_id}")

        for kind, entries in (("Constraint", self.constraints), ("Load", self.loads)):
            for entry in entries:
                if not 0 <= entry.node_id < self.n_nodes:
                    raise ValueError(f"{kind} references missing node {entry.node_id}")
                if entry.dof not in self.nodes[entry.node_id].dofs:
                    raise ValueError(f"{kind} on node {entry.node_id} targets unknown DOF {entry.dof}")

        for node_id in self.initial_temperatures:
            if not 0 <= node_id < self.n_nodes:
                raise ValueError(f"Initial temperature set for missing node {node_id}")
