from types import MappingProxyType

import numpy as np
import pytest

from kitesim.config import KiteConfig
from kitesim.dynamics.geometry import KiteGeometry, trilaterate


def test_frame_points_follow_dimensions():
    geom = KiteGeometry(KiteConfig(wingspan=2.0, height=1.0))
    assert np.allclose(geom.point("NOSE"), [0.0, 1.0, 0.0])
    assert np.allclose(geom.point("LEFT_WING_TIP"), [-1.0, 0.0, 0.0])
    assert np.allclose(geom.point("RIGHT_WHISKER"), [1.3, 0.0, 0.0])
    assert np.allclose(geom.point("LEFT_INTERMEDIATE"), [-0.6, 0.75, 0.0])


def test_points_are_read_only():
    geom = KiteGeometry()
    with pytest.raises(ValueError):
        geom.points["NOSE"][0] = 1.0
    with pytest.raises(TypeError):
        geom.points["NEW"] = np.zeros(3)
    # point() hands out copies
    p = geom.point("NOSE")
    p[0] = 5.0
    assert geom.point("NOSE")[0] == 0.0


def test_control_points_satisfy_bridle_lengths():
    geom = KiteGeometry()
    for side, attachments in (
        ("left", ("NOSE", "LEFT_INTERMEDIATE", "CENTER")),
        ("right", ("NOSE", "RIGHT_INTERMEDIATE", "CENTER")),
    ):
        cp = geom.nominal_control_point(side)
        for name in attachments:
            assert np.linalg.norm(cp - geom.point(name)) == pytest.approx(0.65, rel=1e-9)
        # Bridle side of the sail
        assert cp[2] > 0.0


def test_control_point_default_position():
    geom = KiteGeometry()
    assert np.allclose(geom.nominal_control_point("left"), [-0.1675, 0.325, 0.537], atol=1e-3)


def test_control_points_mirror_each_other():
    geom = KiteGeometry()
    left = geom.nominal_control_point("left")
    right = geom.nominal_control_point("right")
    assert np.allclose(right, left * np.array([-1.0, 1.0, 1.0]))


def test_panel_normals_point_to_bridle_side():
    geom = KiteGeometry()
    for i in range(geom.panel_count):
        assert np.allclose(geom.panel_normal(i), [0.0, 0.0, 1.0])


def test_panel_areas_and_centroids():
    cfg = KiteConfig()
    geom = KiteGeometry(cfg)
    assert geom.panel_count == 4
    assert all(geom.panel_area(i) > 0 for i in range(geom.panel_count))
    assert geom.total_area == pytest.approx(0.55 * cfg.wingspan * cfg.height)
    assert np.allclose(geom.panel_centroid(0), geom.panel_points(0).mean(axis=0))


def test_missing_point_mirrors_counterpart():
    geom = KiteGeometry()
    pts = dict(geom.points)
    right = pts["RIGHT_WHISKER"].copy()
    del pts["LEFT_WHISKER"]
    geom.points = MappingProxyType(pts)

    with pytest.warns(RuntimeWarning, match="mirroring"):
        p = geom.point("LEFT_WHISKER")
    assert np.allclose(p, right * np.array([-1.0, 1.0, 1.0]))


def test_unknown_point_falls_back_to_centroid():
    geom = KiteGeometry()
    with pytest.warns(RuntimeWarning, match="centroid"):
        p = geom.point("TAIL")
    assert np.allclose(p, geom.all_points().mean(axis=0))


def test_trilaterate_returns_both_solutions():
    centers = np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0], [0.0, 2.0, 0.0]])
    target = np.array([1.0, 1.0, 1.5])
    radii = np.linalg.norm(centers - target, axis=1)
    up, down = trilaterate(centers, radii)
    assert np.allclose(up, target)
    assert np.allclose(down, target * np.array([1.0, 1.0, -1.0]))


def test_trilaterate_rejects_collinear_centers():
    centers = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]])
    with pytest.raises(ValueError):
        trilaterate(centers, np.ones(3))
