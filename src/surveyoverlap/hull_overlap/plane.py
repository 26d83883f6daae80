"""
plane.py

Projection of survey-line point clouds onto a reference plane and the
shared 2D frame used to flatten them.

Public functions / types:
- `ProjectionPlane(a, b, c, d)` : plane ax + by + cz + d = 0
- `project_points_onto_plane(points, plane)` -> (N, 3) projected points
- `PlaneBasis` : reference point plus two orthonormal in-plane vectors
- `build_plane_basis(projected, plane)` -> PlaneBasis built from line 1
- `map_points_to_plane_2d(projected, basis)` -> (N, 2) frame coordinates

All functions are pure: outputs are new arrays, same length and order as
their inputs.
"""
from dataclasses import dataclass
import logging

import numpy as np

from surveyoverlap.hull_overlap.errors import DegenerateGeometryError
from surveyoverlap.hull_overlap.utils import as_point_array

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectionPlane:
    """Plane coefficients for ax + by + cz + d = 0.

    The normal (a, b, c) must be non-zero; a zero normal raises
    `DegenerateGeometryError` at construction.
    """
    a: float
    b: float
    c: float
    d: float

    def __post_init__(self):
        coeffs = np.array([self.a, self.b, self.c, self.d], dtype=float)
        if not np.all(np.isfinite(coeffs)):
            raise ValueError(f'plane coefficients must be finite, got {tuple(coeffs)}')
        if float(np.dot(coeffs[:3], coeffs[:3])) == 0.0:
            raise DegenerateGeometryError('plane normal (a, b, c) is zero')

    @property
    def normal(self) -> np.ndarray:
        return np.array([self.a, self.b, self.c], dtype=float)

    def signed_distance(self, points) -> np.ndarray:
        """Signed distance of each point to the plane, along the unit normal."""
        pts = as_point_array(points)
        n = self.normal
        return (pts @ n + self.d) / np.linalg.norm(n)


def project_points_onto_plane(points, plane: ProjectionPlane) -> np.ndarray:
    """Orthogonally project (N, 3) points onto ``plane``.

    p' = p - n * (n . p + d) / |n|^2, applied row-wise. Empty input returns
    an empty (0, 3) array.
    """
    pts = as_point_array(points)
    if pts.shape[0] == 0:
        return pts.copy()
    n = plane.normal
    scale = (pts @ n + plane.d) / float(np.dot(n, n))
    return pts - scale[:, None] * n[None, :]


@dataclass(frozen=True, eq=False)
class PlaneBasis:
    """Orthonormal 2D frame embedded in the projection plane.

    Built once from line 1 and reused unchanged for line 2, so both hulls
    live in the same coordinates.
    """
    ref_point: np.ndarray   # (3,) first projected point of line 1
    vector1: np.ndarray     # (3,) unit, along line 1 first -> last
    vector2: np.ndarray     # (3,) unit, normal x vector1

    def to_3d(self, points_2d) -> np.ndarray:
        """Convert frame coordinates back to 3D points on the plane."""
        xy = as_point_array(points_2d, dim=2, name='points_2d')
        return self.ref_point[None, :] + xy[:, :1] * self.vector1[None, :] + xy[:, 1:2] * self.vector2[None, :]


def _normalize(vec: np.ndarray, tol: float, what: str) -> np.ndarray:
    norm = float(np.linalg.norm(vec))
    if not np.isfinite(norm) or norm <= tol:
        raise DegenerateGeometryError(f'{what} has length {norm!r}; cannot build a 2D basis')
    return vec / norm


def build_plane_basis(projected_line1, plane: ProjectionPlane,
                      degenerate_tolerance: float = 1e-12,
                      orthogonality_tolerance: float = 1e-9) -> PlaneBasis:
    """Build the shared 2D frame from the projected points of line 1.

    1. ref_point = first projected point
    2. vector1 = normalize(last - first)
    3. vector2 = normalize(plane normal x vector1)

    Raises `DegenerateGeometryError` when line 1 has fewer than two points,
    when its first and last projected points are within
    ``degenerate_tolerance`` of each other, or when the resulting vectors
    fail the orthogonality check.
    """
    pts = as_point_array(projected_line1, name='projected_line1')
    if pts.shape[0] < 2:
        raise DegenerateGeometryError(
            f'line 1 needs at least 2 points to build a basis, got {pts.shape[0]}')

    ref_point = pts[0].copy()
    raw1 = pts[-1] - pts[0]
    logger.debug('vector1 before normalization: %s', raw1)
    vector1 = _normalize(raw1, degenerate_tolerance, 'first-to-last vector of line 1')
    logger.debug('vector1 after normalization: %s', vector1)

    raw2 = np.cross(plane.normal, vector1)
    logger.debug('vector2 before normalization: %s', raw2)
    vector2 = _normalize(raw2, degenerate_tolerance, 'normal x vector1')
    logger.debug('vector2 after normalization: %s', vector2)

    dot = float(np.dot(vector1, vector2))
    logger.debug('vector1 dot vector2: %.3e (should be 0)', dot)
    if abs(dot) > orthogonality_tolerance:
        raise DegenerateGeometryError(f'basis vectors are not orthogonal (dot={dot!r})')

    for v in (ref_point, vector1, vector2):
        v.flags.writeable = False
    return PlaneBasis(ref_point=ref_point, vector1=vector1, vector2=vector2)


def map_points_to_plane_2d(projected, basis: PlaneBasis) -> np.ndarray:
    """Express projected 3D points in the basis frame.

    x = (p - ref) . vector1, y = (p - ref) . vector2; z is dropped. Row i
    of the output is row i of the input.
    """
    pts = as_point_array(projected, name='projected')
    if pts.shape[0] == 0:
        return np.empty((0, 2), dtype=np.float64)
    rel = pts - basis.ref_point[None, :]
    frame = np.column_stack((basis.vector1, basis.vector2))
    return np.ascontiguousarray(rel @ frame)
