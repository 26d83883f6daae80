"""Point-in-polygon classification of flattened points against a hull.

Rule: a point within ``tolerance`` of any hull edge is inside (boundary
inclusive); otherwise the even-odd ray-casting rule decides. Each point
is tested independently against a read-only polygon, so the kernel runs
in parallel across points.
"""
import numpy as np
from numba import njit, prange

from surveyoverlap.hull_overlap.utils import as_point_array

DEFAULT_BOUNDARY_TOLERANCE = 1e-9


@njit(parallel=True, cache=True)
def _points_in_polygon_kernel(px, py, vx, vy, tol):
    n = px.shape[0]
    m = vx.shape[0]
    out = np.zeros(n, dtype=np.bool_)
    if m == 0:
        return out
    tol2 = tol * tol
    for i in prange(n):
        x = px[i]
        y = py[i]
        inside = False
        on_edge = False
        j = m - 1
        for k in range(m):
            ax = vx[j]
            ay = vy[j]
            bx = vx[k]
            by = vy[k]
            dx = bx - ax
            dy = by - ay
            # distance from the point to segment j -> k
            l2 = dx * dx + dy * dy
            t = 0.0
            if l2 > 0.0:
                t = ((x - ax) * dx + (y - ay) * dy) / l2
                if t < 0.0:
                    t = 0.0
                elif t > 1.0:
                    t = 1.0
            ex = ax + t * dx - x
            ey = ay + t * dy - y
            if ex * ex + ey * ey <= tol2:
                on_edge = True
                break
            # even-odd crossing of the ray towards +x
            if (ay > y) != (by > y):
                xc = ax + (y - ay) * dx / dy
                if x < xc:
                    inside = not inside
            j = k
        out[i] = on_edge or inside
    return out


def points_in_polygon(points_2d, vertices, tolerance: float = DEFAULT_BOUNDARY_TOLERANCE) -> np.ndarray:
    """Boolean mask (N,) of ``points_2d`` lying inside or on ``vertices``.

    - points_2d: (N, 2) points to classify
    - vertices: (M, 2) open ring (closing edge implied) or a HullPolygon
    - tolerance: absolute distance to an edge still counted as inside

    One vertex contains only coincident points, two vertices only the
    segment between them, zero vertices nothing.
    """
    if tolerance < 0 or not np.isfinite(tolerance):
        raise ValueError(f'tolerance must be finite and >= 0, got {tolerance!r}')
    vertices = getattr(vertices, 'vertices', vertices)
    pts = as_point_array(points_2d, dim=2, name='points_2d')
    ring = as_point_array(vertices, dim=2, name='vertices')
    if pts.shape[0] == 0:
        return np.zeros(0, dtype=bool)
    return _points_in_polygon_kernel(
        np.ascontiguousarray(pts[:, 0]), np.ascontiguousarray(pts[:, 1]),
        np.ascontiguousarray(ring[:, 0]), np.ascontiguousarray(ring[:, 1]),
        float(tolerance))


def point_in_polygon(point, vertices, tolerance: float = DEFAULT_BOUNDARY_TOLERANCE) -> bool:
    """Scalar convenience wrapper around `points_in_polygon`."""
    pt = np.asarray(point, dtype=float).reshape(1, 2)
    return bool(points_in_polygon(pt, vertices, tolerance)[0])
