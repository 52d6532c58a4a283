# skyheat/kernel/dof.py
"""
DOF NUMBERING: Free-First Degree of Freedom Indexing
====================================================

PURPOSE:
--------
Maps (node_id, local_dof) to a global equation number, with every free
DOF numbered before every constrained DOF:

    global index:   0 ........ n_free-1 | n_free ........ total-1
                    free DOFs            | constrained DOFs

Within each block DOFs follow node-id order. The numbering is computed
once per analysis (from_model) and never changes afterwards, so the free
block [0, n_free) is exactly the unknown vector the solvers work with.

Heat conduction carries one DOF per node (temperature), but nothing here
depends on that.

USAGE:
------
    dofs = DOFManager.from_model(model)
    dofs.n_free, dofs.n_constrained
    g = dofs.idx(node_id=4, local_dof=0)
    if dofs.is_free(g): ...
    dofs.prescribed_value(g)          # only for constrained g
    dofs.element_dof_map([0, 1, 4, 3])
"""

import logging
from dataclasses import dataclass
from typing import Dict, List

import numpy as np

from .errors import BoundaryConditionConflict

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class DOFManager:
    """
    Frozen free-first DOF numbering for one model.

    Attributes:
    -----------
    dof_per_node : int
        Number of DOFs per node (1 for heat conduction)
    global_index : np.ndarray
        Shape (n_nodes, dof_per_node); global equation number of each DOF
    n_free : int
        Number of free DOFs; they occupy global indices [0, n_free)
    prescribed : np.ndarray
        Shape (n_constrained,); value of constrained DOF n_free + k at [k]
    """
    dof_per_node: int
    global_index: np.ndarray
    n_free: int
    prescribed: np.ndarray

    @classmethod
    def from_model(cls, model, dof_per_node: int = 1) -> "DOFManager":
        """
        Classify every DOF of the model as free or constrained and number it.

        Raises:
        -------
        BoundaryConditionConflict
            If a DOF is constrained twice with different values
        """
        n_nodes = model.n_nodes
        values: Dict[int, float] = {}
        for c in model.constraints:
            key = dof_per_node * c.node_id + c.dof.value
            if key in values and values[key] != c.value:
                raise BoundaryConditionConflict(
                    f"Node {c.node_id} {c.dof.name} constrained to both "
                    f"{values[key]} and {c.value}",
                    node_id=c.node_id,
                )
            values[key] = c.value

        total = dof_per_node * n_nodes
        flat = np.empty(total, dtype=int)
        constrained_keys = sorted(values)
        constrained_set = set(constrained_keys)

        next_free = 0
        for key in range(total):
            if key not in constrained_set:
                flat[key] = next_free
                next_free += 1
        for k, key in enumerate(constrained_keys):
            flat[key] = next_free + k

        prescribed = np.array([values[key] for key in constrained_keys], dtype=float)
        flat.setflags(write=False)
        prescribed.setflags(write=False)

        numbering = cls(
            dof_per_node=dof_per_node,
            global_index=flat.reshape(n_nodes, dof_per_node),
            n_free=next_free,
            prescribed=prescribed,
        )
        logger.debug("DOF numbering: %d free, %d constrained", numbering.n_free, numbering.n_constrained)
        return numbering

    @property
    def n_constrained(self) -> int:
        return len(self.prescribed)

    @property
    def ndof(self) -> int:
        """Total number of DOFs (free + constrained)."""
        return self.global_index.size

    def idx(self, node_id: int, local_dof: int = 0) -> int:
        """Global equation number of a node's local DOF."""
        return int(self.global_index[node_id, local_dof])

    def is_free(self, global_idx: int) -> bool:
        return global_idx < self.n_free

    def prescribed_value(self, global_idx: int) -> float:
        """Prescribed value of a constrained DOF (global index >= n_free)."""
        if global_idx < self.n_free:
            raise IndexError(f"DOF {global_idx} is free")
        return float(self.prescribed[global_idx - self.n_free])

    def node_dofs(self, node_id: int) -> List[int]:
        """All global DOF indices of one node."""
        return [int(g) for g in self.global_index[node_id]]

    def element_dof_map(self, node_ids: List[int]) -> List[int]:
        """
        Flattened global DOF indices of an element, in local node order.

        This is the local-to-global map used to scatter element matrices.

        >>> dofs.element_dof_map([0, 1, 4, 3])
        [6, 0, 2, 7]
        """
        result = []
        for node_id in node_ids:
            result.extend(self.node_dofs(node_id))
        return result

    def free_dof_nodes(self) -> np.ndarray:
        """Node id owning each free DOF, indexed by free equation number."""
        owners = np.empty(self.n_free, dtype=int)
        for node_id, row in enumerate(self.global_index):
            for g in row:
                if g < self.n_free:
                    owners[g] = node_id
        return owners

    def constrained_dof_nodes(self) -> np.ndarray:
        """Node id owning each constrained DOF, indexed by g - n_free."""
        owners = np.empty(self.n_constrained, dtype=int)
        for node_id, row in enumerate(self.global_index):
            for g in row:
                if g >= self.n_free:
                    owners[g - self.n_free] = node_id
        return owners
