import logging

import numpy as np
import shapely
from scipy.spatial import Delaunay, cKDTree
from shapely.geometry import MultiPolygon, Polygon

from surveyoverlap.hull_overlap.utils import as_point_array

logger = logging.getLogger(__name__)


def triangle_circumradii(tri_pts):
    """Circumradius of each triangle in a (T, 3, 2) array of vertices."""
    tri_pts = np.asarray(tri_pts, dtype=float)
    a = np.linalg.norm(tri_pts[:, 1] - tri_pts[:, 0], axis=1)
    b = np.linalg.norm(tri_pts[:, 2] - tri_pts[:, 1], axis=1)
    c = np.linalg.norm(tri_pts[:, 0] - tri_pts[:, 2], axis=1)
    s = 0.5 * (a + b + c)
    area = np.sqrt(np.maximum(0.0, s * (s - a) * (s - b) * (s - c)))
    area = np.maximum(area, 1e-300)
    return (a * b * c) / (4.0 * area)


def alpha_shape(points, alpha=1.0):
    """Compute a concave hull (alpha-shape) from a set of 2D points.

    Delaunay triangles whose circumradius exceeds ``alpha`` are dropped and
    the rest are unioned. Smaller ``alpha`` gives a tighter boundary; large
    values approach the convex hull. Returns a shapely Polygon (largest
    component when the kept triangles split apart) or None when no
    triangle survives.

    Raises ``scipy.spatial.QhullError`` when the points cannot be
    triangulated (fewer than 3 points, or all collinear).
    """
    pts = as_point_array(points, dim=2)
    if alpha <= 0:
        raise ValueError(f'alpha must be > 0, got {alpha!r}')

    tri = Delaunay(pts)
    triangles = pts[tri.simplices]
    radii = triangle_circumradii(triangles)
    keep = radii <= float(alpha)
    if not np.any(keep):
        return None

    kept = triangles[keep]
    # closed rings, one polygon per kept triangle
    rings = np.concatenate((kept, kept[:, :1]), axis=1)
    merged = shapely.union_all(shapely.polygons(rings))
    if isinstance(merged, MultiPolygon):
        logger.warning('alpha=%s split the hull into %d parts; keeping the largest',
                       alpha, len(merged.geoms))
        merged = max(merged.geoms, key=lambda g: g.area)
    if not isinstance(merged, Polygon) or merged.is_empty:
        return None
    return merged


def alpha_shape_with_indices(points, alpha=1.0):
    """Alpha-shape boundary as (vertices, indices) into ``points``.

    The exterior ring of `alpha_shape` (holes dropped, closing vertex
    removed, counter-clockwise) is traced back to the input rows with a
    nearest-neighbour lookup. Returns empty arrays when no triangle
    survives ``alpha``.
    """
    pts = as_point_array(points, dim=2)
    poly = alpha_shape(pts, alpha=alpha)
    if poly is None:
        logger.warning('alpha=%s removed every triangle; hull is empty', alpha)
        return np.empty((0, 2), dtype=np.float64), np.empty((0,), dtype=np.int64)

    if not poly.exterior.is_ccw:
        poly = Polygon(list(poly.exterior.coords)[::-1])
    ring = np.asarray(poly.exterior.coords, dtype=np.float64)[:-1]

    _, idx = cKDTree(pts).query(ring, k=1)
    idx = np.asarray(idx, dtype=np.int64)
    return np.ascontiguousarray(pts[idx]), idx
