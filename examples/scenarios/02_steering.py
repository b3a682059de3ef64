"""
Example 02: Steering input and custom configuration.

Stiffer lines loaded from a config dict, gusty wind and a sinusoidal
control delta. The history is saved with pandas instead of the live logger.
"""
import numpy as np

from kitesim import Scenario, SimulationConfig
from kitesim.utils.io import history_frame, save_simulation_history


def steer(t: float) -> float:
    """Pull left then right, 0.15 m amplitude, 4 s period."""
    return 0.15 * np.sin(2.0 * np.pi * t / 4.0)


def run_demo():
    print("\n--- Running steering scenario ---")

    # 1. Partial config: everything not listed keeps its default
    config = SimulationConfig.from_dict({
        "lines": {"stiffness": 3000.0, "damping": 15.0},
        "solver": {"max_iterations": 30},
    })

    # 2. Build and run
    scenario = (
        Scenario(name="02_steering", config=config)
        .with_wind(10.0, turbulence=0.2)
        .with_lines(match=True)
        .with_control(steer)
        .configure_timestep("fast")
    )
    snapshots = scenario.run(duration=8.0, log_interval=2.0)

    # 3. Post-process
    df = history_frame(snapshots)
    print(df[["t", "kite.p_x", "kite.p_y", "lines.left_tension", "lines.right_tension"]].describe())
    path = save_simulation_history(snapshots, "output/02_steering/history.csv")
    print(f"History saved to: {path}")


if __name__ == "__main__":
    run_demo()
