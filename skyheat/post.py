# skyheat/post.py
# result views: free-DOF temperatures, full nodal field, boundary heat flow, history table

from typing import Dict, Iterator, Optional, Union

import numpy as np
import pandas as pd


class TemperatureResults:
    """
    Read-only, indexed view over a solved free-DOF temperature vector.

    results[i] is the temperature of free equation i (free-first numbering,
    node-id order), which is what external comparison code indexes.

    Parameters:
    -----------
    model : Model
        The model that was solved
    system : GlobalSystem
        The assembled system (DOF numbering, coupling blocks)
    temperatures : np.ndarray
        Free-DOF solution, shape (n_free,)
    history : np.ndarray, optional
        Free-DOF solutions per step, shape (n_steps + 1, n_free)
    times : np.ndarray, optional
        Time of each history row
    """

    def __init__(self, model, system, temperatures: np.ndarray,
                 history: Optional[np.ndarray] = None, times: Optional[np.ndarray] = None):
        temperatures = np.array(temperatures, dtype=float)
        if temperatures.shape != (system.n_free,):
            raise ValueError(
                f"Expected {system.n_free} free temperatures, got shape {temperatures.shape}"
            )
        if history is not None and (times is None or len(times) != len(history)):
            raise ValueError("history needs a matching times array")

        temperatures.setflags(write=False)
        self.model = model
        self.system = system
        self._T = temperatures
        self.history = history
        self.times = times

    def __len__(self) -> int:
        return len(self._T)

    def __getitem__(self, index: Union[int, slice]):
        return self._T[index]

    def __iter__(self) -> Iterator[float]:
        return iter(self._T.tolist())

    def __repr__(self):
        return f"TemperatureResults(n_free={len(self)}, steps={0 if self.history is None else len(self.history) - 1})"

    @property
    def free(self) -> np.ndarray:
        return self._T

    @property
    def free_node_ids(self) -> np.ndarray:
        return self.system.dofs.free_dof_nodes()

    def nodal_temperatures(self) -> np.ndarray:
        """Temperature at every node, prescribed values included. Shape (n_nodes,)."""
        dofs = self.system.dofs
        full = np.concatenate([self._T, dofs.prescribed])
        return full[dofs.global_index[:, 0]]

    def at_node(self, node_id: int) -> float:
        return float(self.nodal_temperatures()[node_id])

    def boundary_heat_flow(self) -> pd.Series:
        """Heat leaving through each Dirichlet node, indexed by node id."""
        flow = self.system.boundary_heat_flow(self._T)
        return pd.Series(flow, index=pd.Index(self.system.dofs.constrained_dof_nodes(), name="node"),
                         name="heat_flow")

    def to_frame(self) -> pd.DataFrame:
        """
        Temperature table with one column per free node.

        With a history: one row per stored time. Without: one row for the
        final state (time NaN).
        """
        columns = pd.Index(self.free_node_ids, name="node")
        if self.history is None:
            data = self._T[np.newaxis, :]
            index = pd.Index([np.nan], name="time")
        else:
            data = np.asarray(self.history)
            index = pd.Index(np.asarray(self.times, dtype=float), name="time")
        return pd.DataFrame(data, index=index, columns=columns)

    def summary(self) -> Dict[str, float]:
        field = self.nodal_temperatures()
        return {
            "T_min": float(field.min()),
            "T_max": float(field.max()),
            "T_mean": float(field.mean()),
            "n_free": int(len(self)),
            "n_constrained": int(self.system.dofs.n_constrained),
        }
