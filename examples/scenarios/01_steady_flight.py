"""
Example 01: Steady flight using the Scenario API.

A kite launched 6 m up and 9 m downwind, lines at rest length, 12 m/s wind.
Writes the CSV log and the standard plots to output/01_steady_flight_*.
"""
import sys
from pathlib import Path

# Setup path for local development (not needed if installed via pip)
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from kitesim.api.scenario import Scenario


def run_example():
    # 1. Build the scenario: wind, launch pose and lines
    scenario = (
        Scenario(name="01_steady_flight")
        .with_wind(12.0, direction=(0.0, 0.0, -1.0))
        .with_initial_pose(position=[0.0, 6.0, -9.0], heading=0.0, pitch=-15.0)
        .with_lines(match=True)
        .configure_timestep("default")
        .enable_logging(plots=True, show=True)
    )

    # 2. Run for 10 s of simulated time
    snapshots = scenario.run(duration=10.0, log_interval=1.0)

    final = snapshots[-1]
    print(f"Final altitude: {final.state.position[1]:.2f} m")
    print(f"Final tensions: L={final.lines.left_tension:.1f} N, R={final.lines.right_tension:.1f} N")
    print(f"Simulation complete. Results saved to {scenario.simulation.output_path}")


if __name__ == "__main__":
    run_example()
