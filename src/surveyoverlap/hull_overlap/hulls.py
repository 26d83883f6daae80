"""
hulls.py

Boundary ("hull") computation for flattened survey lines.

Two interchangeable strategies share one operation,
``compute(points_2d, alpha, keep_indices) -> HullPolygon``:

- `MonotoneChainHull` : Andrew's monotone chain, strictly convex,
  O(N log N), no external dependency beyond numpy/numba.
- `ConcaveHull` : alpha-shape delegated to an injected capability
  (defaults to `tin_helpers.alpha_shape_with_indices`).

`HullMethod` is the tagged selector; `make_hull_strategy` turns it into a
strategy instance.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple
import logging

import numpy as np
from numba import njit
from scipy.spatial import QhullError
from shapely.geometry import LineString, Point, Polygon

from surveyoverlap.hull_overlap.errors import HullMethodError
from surveyoverlap.hull_overlap.tin_helpers import alpha_shape_with_indices
from surveyoverlap.hull_overlap.utils import as_point_array, freeze

logger = logging.getLogger(__name__)


class HullMethod(Enum):
    """Hull strategies the engine can be configured with."""
    MONOTONE_CHAIN = "monotone_chain"
    CONCAVE = "concave"

    @classmethod
    def parse(cls, value) -> "HullMethod":
        """Resolve an enum member or a string tag; anything else is rejected."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            member = _HULL_METHOD_TAGS.get(value.strip().lower())
            if member is not None:
                return member
        raise HullMethodError(
            f'"{value}" is not a valid method to find the hull; '
            f'expected one of {sorted(_HULL_METHOD_TAGS)}')


_HULL_METHOD_TAGS = {
    'monotone_chain': HullMethod.MONOTONE_CHAIN,
    'convex': HullMethod.MONOTONE_CHAIN,
    "andrew's": HullMethod.MONOTONE_CHAIN,
    'concave': HullMethod.CONCAVE,
    'alpha_shape': HullMethod.CONCAVE,
    'pcl concavehull': HullMethod.CONCAVE,
}


@dataclass(frozen=True, eq=False)
class HullPolygon:
    """Open ring of 2D vertices, implicitly closed back to the first vertex.

    ``indices[k]`` is the row of the input 2D sequence that became vertex
    ``k``; it is None when indices were not requested.
    """
    vertices: np.ndarray                    # (M, 2)
    indices: Optional[np.ndarray] = None    # (M,) int64

    def __len__(self):
        return int(self.vertices.shape[0])

    @property
    def is_empty(self) -> bool:
        return self.vertices.shape[0] == 0

    def to_shapely(self):
        """Boundary as a shapely geometry (Polygon, LineString or Point)."""
        n = len(self)
        if n == 0:
            return Polygon()
        if n == 1:
            return Point(self.vertices[0])
        if n == 2:
            return LineString(self.vertices)
        return Polygon(self.vertices)


def _make_hull(vertices, indices, keep_indices) -> HullPolygon:
    vertices = freeze(np.ascontiguousarray(vertices, dtype=np.float64))
    if not keep_indices:
        return HullPolygon(vertices=vertices)
    return HullPolygon(vertices=vertices, indices=freeze(np.asarray(indices, dtype=np.int64)))


def _trivial_hull(pts: np.ndarray, keep_indices: bool) -> HullPolygon:
    # N <= 3: every point is a vertex, in input order
    return _make_hull(pts.copy(), np.arange(pts.shape[0], dtype=np.int64), keep_indices)


@njit(cache=True)
def _cross(xs, ys, o, a, b):
    # z of (A - O) x (B - O); > 0 counter-clockwise, < 0 clockwise, 0 collinear
    return (xs[a] - xs[o]) * (ys[b] - ys[o]) - (ys[a] - ys[o]) * (xs[b] - xs[o])


@njit(cache=True)
def _monotone_chain_kernel(xs, ys):
    """Positions (into the sorted arrays) of the counter-clockwise hull."""
    n = xs.shape[0]
    hull = np.empty(2 * n, dtype=np.int64)
    k = 0
    # lower chain, left to right
    for i in range(n):
        while k >= 2 and _cross(xs, ys, hull[k - 2], hull[k - 1], i) <= 0.0:
            k -= 1
        hull[k] = i
        k += 1
    # upper chain, right to left
    t = k + 1
    for i in range(n - 1, 0, -1):
        while k >= t and _cross(xs, ys, hull[k - 2], hull[k - 1], i - 1) <= 0.0:
            k -= 1
        hull[k] = i - 1
        k += 1
    # last vertex repeats the first
    return hull[:k - 1].copy()


class HullStrategy(ABC):
    """One operation: (2D points, alpha) -> HullPolygon.

    ``contains_input`` is True when every input point is guaranteed to lie
    inside or on the returned hull.
    """

    method: HullMethod
    contains_input: bool = True

    @abstractmethod
    def compute(self, points_2d, alpha: Optional[float] = None, keep_indices: bool = True) -> HullPolygon:
        raise NotImplementedError


class MonotoneChainHull(HullStrategy):
    """Andrew's monotone chain convex hull.

    Points are sorted by (x, y) with a stable sort; a vertex is popped while
    it makes a right turn or is collinear with the candidate, so the result
    is strictly convex and counter-clockwise. Three points or fewer are
    returned unchanged. ``alpha`` is ignored.
    """
    method = HullMethod.MONOTONE_CHAIN

    def compute(self, points_2d, alpha: Optional[float] = None, keep_indices: bool = True) -> HullPolygon:
        pts = as_point_array(points_2d, dim=2, name='points_2d')
        n = pts.shape[0]
        if n <= 3:
            return _trivial_hull(pts, keep_indices)

        # lexsort sorts by the last key first and is stable
        order = np.lexsort((pts[:, 1], pts[:, 0]))
        xs = np.ascontiguousarray(pts[order, 0])
        ys = np.ascontiguousarray(pts[order, 1])
        positions = _monotone_chain_kernel(xs, ys)
        indices = order[positions]
        return _make_hull(pts[indices], indices, keep_indices)


class ConcaveHull(HullStrategy):
    """Alpha-shape hull delegated to ``capability(points_2d, alpha)``.

    The capability returns ``(vertices, indices)``. Three points or fewer
    are returned unchanged; input the capability cannot triangulate
    (collinear points) falls back to `MonotoneChainHull`.
    """
    method = HullMethod.CONCAVE
    # pieces cut off by alpha leave input points outside the hull
    contains_input = False

    def __init__(self, capability: Optional[Callable[..., Tuple[np.ndarray, np.ndarray]]] = None):
        self.capability = capability if capability is not None else alpha_shape_with_indices

    def compute(self, points_2d, alpha: Optional[float] = None, keep_indices: bool = True) -> HullPolygon:
        if alpha is None or not np.isfinite(alpha) or alpha <= 0:
            raise ValueError(f'concave hull needs a finite alpha > 0, got {alpha!r}')
        pts = as_point_array(points_2d, dim=2, name='points_2d')
        if pts.shape[0] <= 3:
            return _trivial_hull(pts, keep_indices)
        try:
            vertices, indices = self.capability(pts, float(alpha))
        except QhullError as exc:
            logger.warning('concave hull: triangulation failed (%s); falling back to monotone chain',
                           str(exc).splitlines()[0] if str(exc) else type(exc).__name__)
            return MonotoneChainHull().compute(pts, keep_indices=keep_indices)
        return _make_hull(vertices, indices, keep_indices)


def make_hull_strategy(method, concave_capability=None) -> HullStrategy:
    """Instantiate the strategy for ``method`` (enum member or string tag)."""
    method = HullMethod.parse(method)
    if method is HullMethod.MONOTONE_CHAIN:
        return MonotoneChainHull()
    return ConcaveHull(capability=concave_capability)
