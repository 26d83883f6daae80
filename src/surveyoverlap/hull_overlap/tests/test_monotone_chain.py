import numpy as np
import pytest
from scipy.spatial import ConvexHull

from surveyoverlap.hull_overlap.hulls import HullMethod, MonotoneChainHull


def _signed_area(vertices):
    x, y = vertices[:, 0], vertices[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))


@pytest.mark.parametrize('n', [0, 1, 2, 3])
def test_three_points_or_fewer_are_returned_unchanged(n):
    pts = np.array([[2.0, 1.0], [0.0, 0.0], [1.0, 3.0]])[:n]
    hull = MonotoneChainHull().compute(pts)
    assert len(hull) == n
    assert np.array_equal(hull.vertices, pts)
    assert np.array_equal(hull.indices, np.arange(n))


def test_square_with_interior_and_collinear_points():
    pts = np.array([
        [0.0, 0.0], [0.5, 0.0], [1.0, 0.0],    # (0.5, 0) is collinear on the bottom edge
        [1.0, 1.0], [0.0, 1.0], [0.5, 0.5], [0.0, 0.5],
    ])
    hull = MonotoneChainHull().compute(pts)
    assert sorted(hull.indices.tolist()) == [0, 2, 3, 4]
    # counter-clockwise, starting from the lexicographically smallest point
    assert hull.indices.tolist() == [0, 2, 3, 4]
    assert _signed_area(hull.vertices) == pytest.approx(1.0)


def test_vertices_trace_back_to_input_rows():
    rng = np.random.default_rng(1)
    pts = rng.normal(size=(500, 2))
    hull = MonotoneChainHull().compute(pts)
    assert np.array_equal(hull.vertices, pts[hull.indices])
    assert len(set(hull.indices.tolist())) == len(hull)


def test_hull_is_strictly_convex():
    rng = np.random.default_rng(2)
    # integer grid produces many exactly collinear candidates
    pts = rng.integers(0, 20, size=(400, 2)).astype(float)
    v = MonotoneChainHull().compute(pts).vertices
    prev = np.roll(v, 1, axis=0)
    nxt = np.roll(v, -1, axis=0)
    cross = (v[:, 0] - prev[:, 0]) * (nxt[:, 1] - prev[:, 1]) - (v[:, 1] - prev[:, 1]) * (nxt[:, 0] - prev[:, 0])
    assert np.all(cross > 0.0)


def test_matches_scipy_convex_hull_vertex_set():
    rng = np.random.default_rng(4)
    pts = rng.uniform(-10.0, 10.0, size=(1000, 2))
    hull = MonotoneChainHull().compute(pts)
    expected = ConvexHull(pts).vertices
    assert set(hull.indices.tolist()) == set(expected.tolist())


def test_indices_can_be_skipped():
    pts = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    hull = MonotoneChainHull().compute(pts, keep_indices=False)
    assert hull.indices is None
    assert len(hull) == 4


def test_hull_arrays_are_read_only():
    pts = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    hull = MonotoneChainHull().compute(pts)
    with pytest.raises(ValueError):
        hull.vertices[0, 0] = 5.0


def test_strategy_reports_its_method():
    assert MonotoneChainHull().method is HullMethod.MONOTONE_CHAIN


def test_to_shapely_geometries():
    square = MonotoneChainHull().compute(np.array([[0.0, 0.0], [2.0, 0.0], [2.0, 2.0], [0.0, 2.0], [1.0, 1.0]]))
    assert square.to_shapely().area == pytest.approx(4.0)
    assert MonotoneChainHull().compute(np.array([[0.0, 0.0], [1.0, 1.0]])).to_shapely().geom_type == 'LineString'
    assert MonotoneChainHull().compute(np.array([[0.0, 0.0]])).to_shapely().geom_type == 'Point'
    assert MonotoneChainHull().compute(np.empty((0, 2))).to_shapely().is_empty
