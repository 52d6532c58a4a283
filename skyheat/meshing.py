# skyheat/meshing.py
"""Structured grid builders for rectangular plates (Quad4 or split into Tri3)."""

from .model import Model, ThermalMaterial


def make_plate(
    nx: int,
    ny: int,
    material: ThermalMaterial,
    lx: float = None,
    ly: float = None,
    triangles: bool = False,
) -> Model:
    """
    Build a rectangular plate of nx × ny cells.

    Nodes are numbered row by row from the lower-left corner:
    node i sits at column i % (nx + 1), row i // (nx + 1).
    Cell spacing is 1 unless lx / ly give the total size.

    Parameters:
    -----------
    nx, ny : int
        Number of cells along x and y
    material : ThermalMaterial
        Material shared by all elements
    lx, ly : float, optional
        Plate dimensions (default nx and ny, i.e. unit cells)
    triangles : bool
        Split every cell into two Tri3 instead of one Quad4

    Returns:
    --------
    Model
        Mesh only; constraints and loads are left to the caller

    Example:
    --------
    >>> model = make_plate(2, 2, ThermalMaterial(1.0, 1.0, 1.0))
    >>> model.n_nodes, model.n_elements
    (9, 4)
    """
    if nx < 1 or ny < 1:
        raise ValueError(f"Need at least one cell in each direction, got {nx}×{ny}")
    lx = float(nx) if lx is None else lx
    ly = float(ny) if ly is None else ly
    dx, dy = lx / nx, ly / ny

    model = Model()
    for j in range(ny + 1):
        for i in range(nx + 1):
            model.add_node(i * dx, j * dy)

    row = nx + 1
    for j in range(ny):
        for i in range(nx):
            n0 = j * row + i
            n1, n2, n3 = n0 + 1, n0 + 1 + row, n0 + row
            if triangles:
                model.add_element("Tri3", [n0, n1, n2], material)
                model.add_element("Tri3", [n0, n2, n3], material)
            else:
                model.add_element("Quad4", [n0, n1, n2, n3], material)
    return model
