import matplotlib
import pytest

from skyheat.elements import ThermalElementProvider
from skyheat.meshing import make_plate
from skyheat.model import ThermalMaterial

matplotlib.use("Agg")

UNIT_MATERIAL = ThermalMaterial(density=1.0, specific_heat=1.0, conductivity=1.0)
STEADY_STATE = [150.0, 200.0, 150.0, 200.0, 150.0, 200.0]


def build_flux_plate(triangles: bool = False):
    """
    3×3 grid of nodes at unit spacing, four Quad4 (or eight Tri3) cells.

        6 --- 7 --- 8      nodes 0, 3, 6 fixed at 100
        |     |     |      flux q = 50 enters at x = 2:
        3 --- 4 --- 5          q/2 at node 2, q at node 5, q/2 at node 8
        |     |     |
        0 --- 1 --- 2
    """
    model = make_plate(2, 2, UNIT_MATERIAL, triangles=triangles)
    for node_id in (0, 3, 6):
        model.add_constraint(node_id, 100.0)
    q = 50.0
    model.add_load(2, q / 2)
    model.add_load(5, q)
    model.add_load(8, q / 2)
    return model


@pytest.fixture
def flux_plate():
    return build_flux_plate()


@pytest.fixture
def make_flux_plate():
    return build_flux_plate


@pytest.fixture
def steady_state():
    return list(STEADY_STATE)


@pytest.fixture
def provider():
    return ThermalElementProvider()
