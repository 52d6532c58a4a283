# File: demos/run_plate_transient.py
"""
Transient warm-up of a plate heated along one edge.

The left edge is held at a fixed temperature, the right edge receives a
uniform heat flux, top and bottom are insulated. Starting cold, the plate
warms up until it reaches the linear steady profile

    T(x) = T_left + q·x / k

The demo runs the same problem three ways (steady state, Crank-Nicolson,
backward Euler), prints how close each transient gets to the steady
answer, and writes two plots to demos/output/.
"""

import logging

import numpy as np

from skyheat import (
    DynamicConfig,
    LinearAnalyzer,
    ThermalDynamicAnalyzer,
    ThermalElementProvider,
    ThermalMaterial,
    ThermalStaticAnalyzer,
)
from skyheat.meshing import make_plate
from skyheat.viz import plot_nodal_field, plot_temperature_history


def build_plate(nx, ny, material, T_left, q):
    lx, ly = 2.0, 1.0
    model = make_plate(nx, ny, material, lx=lx, ly=ly)
    row = nx + 1
    dy = ly / ny

    for j in range(ny + 1):
        model.add_constraint(j * row, T_left)

    # consistent edge load for a uniform flux: q·dy/2 at the ends, q·dy inside
    for j in range(ny + 1):
        weight = 0.5 if j in (0, ny) else 1.0
        model.add_load(j * row + nx, weight * q * dy * material.thickness)
    return model


def main():
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    print("=" * 60)
    print("Plate Warm-Up Demo")
    print("=" * 60)

    material = ThermalMaterial(density=1.0, specific_heat=1.0, conductivity=1.0)
    T_left, q = 20.0, 10.0
    nx, ny = 8, 4
    provider = ThermalElementProvider()

    # Steady state
    static = ThermalStaticAnalyzer(build_plate(nx, ny, material, T_left, q), provider)
    static.solve()
    steady = static.results()
    x_right = 2.0
    print(f"\nSteady state:")
    print(f"  Right edge temperature: {steady.at_node(nx):.4f}")
    print(f"  Theoretical:            {T_left + q * x_right / material.conductivity:.4f}")
    print(f"  Heat out of left edge:  {steady.boundary_heat_flow().sum():.4f}")
    print(f"  Heat in at right edge:  {q * 1.0:.4f}")

    # Transients
    schemes = {
        "Crank-Nicolson": dict(alpha=0.5, beta=0.5),
        "Backward Euler": dict(alpha=1.0, beta=1.0),
    }
    final = {}
    for name, weights in schemes.items():
        config = DynamicConfig(time_step=0.05, n_steps=200, keep_history=True, **weights)
        analyzer = ThermalDynamicAnalyzer(
            build_plate(nx, ny, material, T_left, q), provider, LinearAnalyzer(), config,
        )
        analyzer.solve()
        final[name] = analyzer.results()

        gap = np.max(np.abs(analyzer.temperatures - steady.free))
        print(f"\n{name}:")
        print(f"  t_end = {analyzer.times[-1]:.2f}")
        print(f"  max |T - T_steady| = {gap:.3e}")

    results = final["Crank-Nicolson"]
    frame = results.to_frame()
    print(f"\nRight-edge midpoint history (every 40 steps):")
    print(frame[ny // 2 * (nx + 1) + nx].iloc[::40].to_string())

    mid = ny // 2 * (nx + 1)
    plot_temperature_history(
        results, "demos/output/plate_history.png",
        node_ids=[mid + 2, mid + 4, mid + 6, mid + nx],
        title="Plate Warm-Up (Crank-Nicolson)",
    )
    plot_nodal_field(steady, "demos/output/plate_steady.png", title="Steady-State Temperature")
    print("\n✓ Plots written to demos/output/")
    print("\n" + "=" * 60)


if __name__ == "__main__":
    main()
