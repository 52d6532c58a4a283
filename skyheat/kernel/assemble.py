# skyheat/kernel/assemble.py
"""
ASSEMBLY: Global Conductance, Capacity and Load
===============================================

PURPOSE:
--------
Turns a Model into the free-DOF system of the semi-discrete heat equation

    C·dT/dt + K·T = F

with K and C in skyline storage sharing one profile, and F already
carrying the Dirichlet elimination and the Neumann loads.

TWO PASSES:
-----------
1. Profile pass: for every element, its free DOFs span from the smallest
   index m up to each DOF j; column j must reach up to row m. The height
   of column j is the largest j - m over all elements touching j. This
   fixes the storage before any numeric work.

2. Numeric pass: for every element (subdomain order, then element id), ask
   the provider for Kₑ and Cₑ and scatter-add each local entry:

       row free, column free          -> K[i, j], C[i, j]  (upper triangle)
       row free, column constrained   -> F[i] -= Kₑ[a, b] · T̄_j
       row constrained                -> coupling blocks K_cf / K_cc

   Prescribed temperatures are constant in time, so the capacity terms
   coupling to constrained DOFs vanish (dT̄/dt = 0).

Neumann loads on free DOFs are added to F. Loads on constrained DOFs are
kept in F_c so that boundary_heat_flow() can balance them.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
from scipy import sparse

from .dof import DOFManager
from .errors import DimensionMismatchError
from .skyline import SkylineMatrix

logger = logging.getLogger(__name__)


@dataclass
class GlobalSystem:
    """
    Assembled free-DOF system plus what is needed to recover boundary fluxes.

    Attributes:
    -----------
    dofs : DOFManager
        Frozen free-first numbering used for this assembly
    K, C : SkylineMatrix
        Conductance and capacity of the free DOFs (same profile)
    F : np.ndarray
        Effective load vector, shape (n_free,)
    K_cf, K_cc : scipy.sparse.csr_matrix
        Conductance rows of the constrained DOFs, split by column block
    F_c : np.ndarray
        Neumann loads that landed on constrained DOFs, shape (n_constrained,)
    """
    dofs: DOFManager
    K: SkylineMatrix
    C: SkylineMatrix
    F: np.ndarray
    K_cf: sparse.csr_matrix
    K_cc: sparse.csr_matrix
    F_c: np.ndarray

    @property
    def n_free(self) -> int:
        return self.dofs.n_free

    def boundary_heat_flow(self, T_free: np.ndarray) -> np.ndarray:
        """
        Heat leaving the body through each Dirichlet DOF.

        Q_c = F_c - (K_cf·T_f + K_cc·T̄)

        At steady state the sum over all constrained DOFs equals the sum of
        all heat put in by loads.
        """
        T_free = np.asarray(T_free, dtype=float)
        if T_free.shape != (self.n_free,):
            raise DimensionMismatchError(
                f"Temperature vector of shape {T_free.shape} does not match {self.n_free} free DOFs"
            )
        return self.F_c - (self.K_cf @ T_free + self.K_cc @ self.dofs.prescribed)


def compute_skyline_heights(n_free: int, dof_maps: Sequence[Sequence[int]]) -> np.ndarray:
    """
    Column heights of the free-DOF skyline profile.

    Parameters:
    -----------
    n_free : int
        Number of free DOFs (indices >= n_free are constrained and ignored)
    dof_maps : sequence of element DOF maps

    Returns:
    --------
    np.ndarray
        heights[j] = max over elements touching j of (j - min free DOF of that element)
    """
    heights = np.zeros(n_free, dtype=int)
    for dof_map in dof_maps:
        free = [g for g in dof_map if g < n_free]
        if not free:
            continue
        lowest = min(free)
        for g in free:
            heights[g] = max(heights[g], g - lowest)
    return heights


def _check_element_matrix(element_id: int, name: str, matrix: np.ndarray, n_dofs: int) -> np.ndarray:
    matrix = np.asarray(matrix, dtype=float)
    if matrix.shape != (n_dofs, n_dofs):
        raise DimensionMismatchError(
            f"Element {element_id} has {n_dofs} DOFs but its {name} matrix has shape {matrix.shape}"
        )
    return matrix


def assemble_system(model, provider) -> GlobalSystem:
    """
    Assemble K, C and F for every free DOF of the model.

    Parameters:
    -----------
    model : Model
        Read-only mesh and boundary registry
    provider : ElementProvider
        Supplies element handles with conductivity/capacity matrices

    Returns:
    --------
    GlobalSystem

    Raises:
    -------
    ValueError
        If the model has dangling references
    BoundaryConditionConflict
        If a DOF carries conflicting Dirichlet values
    DimensionMismatchError
        If an element handle or matrix does not match the element's node or DOF count
    """
    model.validate()
    dofs = DOFManager.from_model(model)
    n_free = dofs.n_free
    n_constrained = dofs.n_constrained

    elements = list(model.elements_in_assembly_order())
    dof_maps: List[List[int]] = [dofs.element_dof_map(e.node_ids) for e in elements]

    # Pass 1: profile
    heights = compute_skyline_heights(n_free, dof_maps)
    K = SkylineMatrix(heights)
    C = SkylineMatrix(heights)
    F = np.zeros(n_free, dtype=float)
    F_c = np.zeros(n_constrained, dtype=float)
    logger.debug(
        "Skyline profile: n=%d, stored=%d, max height=%d",
        K.size, K.nnz, int(heights.max()) if heights.size else 0,
    )

    coupling_rows: List[int] = []
    coupling_cols: List[int] = []
    coupling_vals: List[float] = []

    # Pass 2: numeric
    for element, dof_map in zip(elements, dof_maps):
        handle = provider.create_element(element.cell_type, model.element_nodes(element), element.material)
        if len(handle.node_dofs()) != len(element.node_ids):
            raise DimensionMismatchError(
                f"Element {element.id} has {len(element.node_ids)} nodes but its handle "
                f"describes {len(handle.node_dofs())}"
            )
        if handle.dofs_per_node != dofs.dof_per_node:
            raise DimensionMismatchError(
                f"Element {element.id} has {handle.dofs_per_node} DOFs per node, "
                f"model numbering uses {dofs.dof_per_node}"
            )
        n_dofs = len(dof_map)
        ke = _check_element_matrix(element.id, "conductivity", handle.conductivity_matrix(), n_dofs)
        ce = _check_element_matrix(element.id, "capacity", handle.capacity_matrix(), n_dofs)

        for a in range(n_dofs):
            ga = dof_map[a]
            for b in range(n_dofs):
                gb = dof_map[b]
                if ga < n_free:
                    if gb < n_free:
                        # symmetric storage: take each pair once, from the upper triangle
                        if ga <= gb:
                            K.add(ga, gb, ke[a, b])
                            C.add(ga, gb, ce[a, b])
                    else:
                        value = dofs.prescribed_value(gb)
                        if value != 0.0:
                            F[ga] -= ke[a, b] * value
                else:
                    coupling_rows.append(ga - n_free)
                    coupling_cols.append(gb)
                    coupling_vals.append(ke[a, b])

    for load in model.loads:
        g = dofs.idx(load.node_id, load.dof.value)
        if g < n_free:
            F[g] += load.magnitude
        else:
            F_c[g - n_free] += load.magnitude
            logger.debug("Load on constrained node %d kept for boundary heat flow only", load.node_id)

    rows = np.array(coupling_rows, dtype=int)
    cols = np.array(coupling_cols, dtype=int)
    vals = np.array(coupling_vals, dtype=float)
    to_free = cols < n_free
    K_cf = sparse.coo_matrix(
        (vals[to_free], (rows[to_free], cols[to_free])), shape=(n_constrained, n_free)
    ).tocsr()
    K_cc = sparse.coo_matrix(
        (vals[~to_free], (rows[~to_free], cols[~to_free] - n_free)), shape=(n_constrained, n_constrained)
    ).tocsr()

    logger.info(
        "Assembled %d elements: %d free DOFs, %d constrained DOFs",
        len(elements), n_free, n_constrained,
    )
    return GlobalSystem(dofs=dofs, K=K, C=C, F=F, K_cf=K_cf, K_cc=K_cc, F_c=F_c)
