import matplotlib
matplotlib.use("Agg")
import numpy as np
import pytest

from kitesim.api.scenario import TIMESTEP_PRESETS, Scenario
from kitesim.config import SimulationConfig


def test_builder_configures_simulation():
    sim = (
        Scenario("unit")
        .with_wind(10.0, direction=(0.0, 0.0, -1.0), turbulence=0.1)
        .with_initial_pose(position=[0.0, 6.0, -6.0], heading=0.0, pitch=-10.0)
        .with_lines(base_length=9.0, winches=([-1.0, 0.0, 0.0], [1.0, 0.0, 0.0]))
        .build()
    )
    assert sim.wind.speed == pytest.approx(10.0)
    assert sim.wind.turbulence == pytest.approx(0.1)
    assert np.allclose(sim.state.position, [0.0, 6.0, -6.0])
    assert sim.base_line_length == 9.0
    assert np.allclose(sim.lines.winches["right"], [1.0, 0.0, 0.0])


def test_match_line_length():
    scenario = Scenario("match").with_lines(match=True)
    sim = scenario.build()
    cp = sim.body.global_point("LEFT_CONTROL", sim.state)
    assert sim.base_line_length == pytest.approx(np.linalg.norm(cp - [-0.5, 0.0, 0.0]))


def test_with_lines_requires_length_or_match():
    with pytest.raises(ValueError):
        Scenario("bad").with_lines()


def test_timestep_presets():
    scenario = Scenario("dt")
    assert scenario.configure_timestep("display")._dt == TIMESTEP_PRESETS["display"]
    assert scenario.configure_timestep(dt=0.002)._dt == 0.002
    with pytest.raises(ValueError):
        scenario.configure_timestep("warp")


def test_run_returns_snapshots():
    snaps = (
        Scenario("short", config=SimulationConfig())
        .with_wind(12.0)
        .with_lines(match=True)
        .with_control(lambda t: 0.0)
        .configure_timestep("display")
        .run(duration=0.1, log_interval=0.0)
    )
    assert len(snaps) == 6
    assert all(s.valid for s in snaps)


def test_run_with_logging_and_plots(tmp_path):
    scenario = (
        Scenario("logged", output_dir=str(tmp_path))
        .with_wind(12.0)
        .with_lines(match=True)
        .configure_timestep("display")
        .enable_logging(plots=True, show=False)
    )
    scenario.run(duration=0.1, log_interval=0.0)

    out = scenario.simulation.output_path
    csv_path = out / "logs" / "simulation.csv"
    assert csv_path.exists()
    # Header, initial snapshot and one row per step
    assert len(csv_path.read_text().strip().splitlines()) == 1 + 1 + 6
    for name in ("trajectory_3d.png", "line_tensions.png", "forces.png"):
        assert (out / "plots" / name).exists()
    # Logger detached after the run
    assert scenario.simulation.logger is None
