import numpy as np
import pytest
from shapely.geometry import Polygon

from surveyoverlap.hull_overlap.hulls import ConcaveHull, HullMethod, MonotoneChainHull
from surveyoverlap.hull_overlap.tin_helpers import alpha_shape, alpha_shape_with_indices, triangle_circumradii


def _l_shape(step=1.0):
    # 10 x 10 grid with the upper-right 5 x 5 quadrant removed
    xs, ys = np.meshgrid(np.arange(0.0, 10.0 + step, step), np.arange(0.0, 10.0 + step, step))
    pts = np.column_stack((xs.ravel(), ys.ravel()))
    keep = ~((pts[:, 0] > 5.0) & (pts[:, 1] > 5.0))
    return pts[keep]


def test_alpha_shape_convex():
    xs, ys = np.meshgrid(np.linspace(0, 1, 5), np.linspace(0, 1, 5))
    pts = np.column_stack((xs.flatten(), ys.flatten()))
    poly = alpha_shape(pts, alpha=2.0)
    assert isinstance(poly, Polygon)
    assert poly.area == pytest.approx(1.0)


def test_circumradius_of_right_triangle():
    tri = np.array([[[0.0, 0.0], [2.0, 0.0], [0.0, 2.0]]])
    assert triangle_circumradii(tri)[0] == pytest.approx(np.sqrt(2.0))


def test_small_alpha_follows_the_notch():
    pts = _l_shape()
    concave = ConcaveHull().compute(pts, alpha=1.0)
    convex = MonotoneChainHull().compute(pts)
    # 75 for the L plus the half cell (5,5)-(6,5)-(5,6) at the inner corner
    assert concave.to_shapely().area == pytest.approx(75.5)
    assert convex.to_shapely().area > 85.0
    assert concave.to_shapely().exterior.is_ccw


def test_large_alpha_approaches_convex_hull():
    pts = _l_shape()
    concave = ConcaveHull().compute(pts, alpha=1e6)
    convex = MonotoneChainHull().compute(pts)
    assert concave.to_shapely().area == pytest.approx(convex.to_shapely().area)


def test_concave_vertices_trace_back_to_input_rows():
    pts = _l_shape(step=0.5)
    hull = ConcaveHull().compute(pts, alpha=0.6)
    assert np.array_equal(hull.vertices, pts[hull.indices])


def test_alpha_removing_every_triangle_gives_empty_hull():
    pts = _l_shape()
    vertices, indices = alpha_shape_with_indices(pts, alpha=0.1)
    assert vertices.shape == (0, 2)
    assert indices.shape == (0,)
    assert ConcaveHull().compute(pts, alpha=0.1).is_empty


def test_collinear_points_fall_back_to_monotone_chain():
    pts = np.column_stack((np.linspace(0.0, 10.0, 11), np.zeros(11)))
    hull = ConcaveHull().compute(pts, alpha=1.0)
    assert sorted(hull.indices.tolist()) == [0, 10]


def test_three_points_or_fewer_are_returned_unchanged():
    pts = np.array([[0.0, 0.0], [5.0, 0.0], [0.0, 5.0]])
    hull = ConcaveHull().compute(pts, alpha=0.01)
    assert np.array_equal(hull.vertices, pts)


@pytest.mark.parametrize('alpha', [None, 0.0, -1.0, np.inf])
def test_invalid_alpha_is_rejected(alpha):
    with pytest.raises(ValueError):
        ConcaveHull().compute(_l_shape(), alpha=alpha)


def test_injected_capability_is_used():
    calls = []

    def fake_capability(points, alpha):
        calls.append((points.shape, alpha))
        return points[:3], np.arange(3)

    pts = _l_shape()
    hull = ConcaveHull(capability=fake_capability).compute(pts, alpha=2.5)
    assert calls == [(pts.shape, 2.5)]
    assert hull.indices.tolist() == [0, 1, 2]
    assert ConcaveHull().method is HullMethod.CONCAVE


def test_split_alpha_shape_keeps_the_largest_patch(caplog):
    big = np.array([[x, y] for y in range(6) for x in range(6)], dtype=float)
    small = np.array([[50.0 + x, y] for y in range(3) for x in range(3)], dtype=float)
    with caplog.at_level('WARNING', logger='surveyoverlap.hull_overlap.tin_helpers'):
        poly = alpha_shape(np.vstack((big, small)), alpha=1.0)
    assert isinstance(poly, Polygon)
    assert poly.area == pytest.approx(25.0)
    assert 'split the hull into 2 parts' in caplog.text


def test_only_the_convex_strategy_contains_every_input_point():
    assert MonotoneChainHull.contains_input is True
    assert ConcaveHull.contains_input is False
