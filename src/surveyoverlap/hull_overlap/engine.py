"""Overlap detection between two survey lines.

`OverlapEngine` projects both lines onto a supplied plane, flattens them
into one shared 2D frame built from line 1, computes a hull per line and
classifies every point of each line against the hull of the other line.

A convex hull contains every point of its own line, so testing line 1
against hull 2 alone places it in the overlap (and the same for line 2
against hull 1). A concave hull may leave points of its own line outside
(alpha cuts off isolated pieces), so with that strategy each point must
also lie inside its own line's hull.

Intermediates live in an `IntermediateStore`. In full mode they are kept
for the engine's lifetime so the accessors and bounding boxes can read
them; in minimal-memory mode each one is dropped at the end of the stage
that last consumes it:

- projected 3D cloud of a line   -> after its 2D mapping
- 2D cloud of line i, hull of line j -> after line i is classified
- with a concave hull, hull 2 is also the own hull of line 2, so both
  hulls are dropped after line 2 is classified
"""
from contextlib import contextmanager
from dataclasses import dataclass, replace
from numbers import Integral
from typing import Any, Dict, Hashable, Optional, Tuple
import logging

import numpy as np

from surveyoverlap.hull_overlap.classify import points_in_polygon
from surveyoverlap.hull_overlap.config import OverlapConfig
from surveyoverlap.hull_overlap.errors import IntermediateReleasedError, LineSelectorError
from surveyoverlap.hull_overlap.hulls import HullPolygon, make_hull_strategy
from surveyoverlap.hull_overlap.plane import (
    PlaneBasis,
    ProjectionPlane,
    build_plane_basis,
    map_points_to_plane_2d,
    project_points_onto_plane,
)
from surveyoverlap.hull_overlap.utils import as_point_array, freeze, safe_log_exception

logger = logging.getLogger(__name__)

PROJECTED_3D = 'projected_3d'
PROJECTED_2D = 'projected_2d'
HULL = 'hull'


def check_line_selector(line) -> int:
    """Return ``line`` as an int if it is 0 or 1, else raise `LineSelectorError`."""
    if isinstance(line, bool) or not isinstance(line, Integral) or int(line) not in (0, 1):
        raise LineSelectorError(f'line selector must be 0 or 1, got {line!r}')
    return int(line)


class IntermediateStore:
    """Owns pipeline intermediates between their producer and last consumer.

    ``release`` is the declared end of an intermediate's lifetime. With
    ``retain=True`` (full mode) it is a no-op; otherwise the store drops
    its reference and remembers the key as released.
    """

    def __init__(self, retain: bool = True):
        self.retain = bool(retain)
        self._items: Dict[Hashable, Any] = {}
        self._released = set()

    def __contains__(self, key) -> bool:
        return key in self._items

    def put(self, key, value):
        self._items[key] = value
        self._released.discard(key)
        return value

    def get(self, key):
        try:
            return self._items[key]
        except KeyError:
            if key in self._released:
                raise IntermediateReleasedError(
                    f'{key} was released (minimal-memory mode)') from None
            raise IntermediateReleasedError(f'{key} has not been computed') from None

    def is_released(self, key) -> bool:
        return key in self._released

    def release(self, *keys) -> None:
        if self.retain:
            return
        for key in keys:
            if self._items.pop(key, None) is not None:
                logger.debug('released %s', key)
            self._released.add(key)

    @contextmanager
    def stage(self, *keys):
        """Run a pipeline stage, then release ``keys`` whether or not it failed."""
        try:
            yield self
        finally:
            self.release(*keys)


@dataclass(frozen=True, eq=False)
class BoundingBox:
    """Axis-aligned box; 2D boxes carry z = 0."""
    min: np.ndarray     # (3,)
    max: np.ndarray     # (3,)

    def as_tuple(self) -> Tuple[Tuple[float, float, float], Tuple[float, float, float]]:
        return tuple(float(v) for v in self.min), tuple(float(v) for v in self.max)


@dataclass(frozen=True, eq=False)
class LineOverlap:
    """Points of one line found inside the hull of the other line."""
    count: int
    indices: Optional[np.ndarray] = None   # (K,) rows of the source line
    points: Optional[np.ndarray] = None    # (K, 3) original 3D points


@dataclass(frozen=True, eq=False)
class OverlapResult:
    lines: Tuple[LineOverlap, LineOverlap]
    minimal_memory: bool = False

    @property
    def counts(self) -> Tuple[int, int]:
        return (self.lines[0].count, self.lines[1].count)

    def __getitem__(self, line) -> LineOverlap:
        return self.lines[check_line_selector(line)]


class OverlapEngine:
    """Overlap of two survey lines projected on a common plane.

    Parameters
    - line1, line2: (N, 3) array-likes, never modified
    - plane: `ProjectionPlane` or (a, b, c, d)
    - config: `OverlapConfig`; keyword overrides (``hull_method``,
      ``alpha_line1``, ``alpha_line2``, ``minimal_memory``) are applied on
      top of it. An invalid hull method is rejected here, before any work.
    - concave_capability: callable ``(points_2d, alpha) -> (vertices, indices)``
      used by the concave strategy instead of the built-in alpha shape.
    """

    def __init__(self, line1, line2, plane, config: Optional[OverlapConfig] = None,
                 concave_capability=None, **overrides):
        if config is None:
            config = OverlapConfig(**overrides)
        elif overrides:
            config = replace(config, **overrides)
        self.config = config
        self.plane = plane if isinstance(plane, ProjectionPlane) else ProjectionPlane(*plane)
        self.lines = (as_point_array(line1, name='line1'), as_point_array(line2, name='line2'))
        self.strategy = make_hull_strategy(config.hull_method, concave_capability)
        self.basis: Optional[PlaneBasis] = None
        self._store = IntermediateStore(retain=True)
        self._result: Optional[OverlapResult] = None
        self._overlap_indices = [None, None]

    # ------------------------------------------------------------------
    # pipeline
    # ------------------------------------------------------------------
    def compute(self, minimal_memory: Optional[bool] = None, collect_points: bool = True,
                collect_indices: bool = True) -> OverlapResult:
        """Run the whole pipeline and return the overlap of both lines.

        - minimal_memory: override ``config.minimal_memory`` for this run
        - collect_points: include the overlapping 3D points per line
        - collect_indices: include (and retain) their row indices

        Counts are always returned. Running again on the same engine gives
        the same result.
        """
        minimal = self.config.minimal_memory if minimal_memory is None else bool(minimal_memory)
        self._store = IntermediateStore(retain=not minimal)
        self._result = None
        self._overlap_indices = [None, None]
        self.basis = None

        sizes = (self.lines[0].shape[0], self.lines[1].shape[0])
        if 0 in sizes:
            logger.info('empty line (sizes %d, %d): no overlap', *sizes)
            empty = tuple(self._collect(line, np.empty(0, dtype=np.int64), collect_points, collect_indices)
                          for line in (0, 1))
            self._result = OverlapResult(lines=empty, minimal_memory=minimal)
            return self._result

        try:
            for line in (0, 1):
                self._flatten_line(line)
            for line in (0, 1):
                self._build_hull(line, keep_indices=not minimal)
            overlaps = tuple(self._classify_line(line, collect_points, collect_indices) for line in (0, 1))
        except Exception as exc:
            safe_log_exception('overlap computation failed', exc,
                               hull_method=self.config.hull_method.value, minimal_memory=minimal,
                               sizes=sizes)
            raise

        logger.info('points in overlap: line 1 = %d, line 2 = %d', overlaps[0].count, overlaps[1].count)
        self._result = OverlapResult(lines=overlaps, minimal_memory=minimal)
        return self._result

    def _flatten_line(self, line: int) -> None:
        store = self._store
        key3, key2 = (PROJECTED_3D, line), (PROJECTED_2D, line)
        with store.stage(key3):
            logger.info('projecting line %d in plane', line + 1)
            store.put(key3, freeze(project_points_onto_plane(self.lines[line], self.plane)))
            if line == 0:
                self.basis = build_plane_basis(
                    store.get(key3), self.plane,
                    degenerate_tolerance=self.config.degenerate_tolerance,
                    orthogonality_tolerance=self.config.orthogonality_tolerance)
            store.put(key2, freeze(map_points_to_plane_2d(store.get(key3), self.basis)))
            logger.info('line %d in plane 2D: %d points', line + 1, store.get(key2).shape[0])

    def _build_hull(self, line: int, keep_indices: bool) -> None:
        store = self._store
        hull = self.strategy.compute(store.get((PROJECTED_2D, line)), alpha=self.config.alpha_for(line),
                                     keep_indices=keep_indices)
        logger.info('hull %d (%s): %d vertices', line + 1, self.strategy.method.value, len(hull))
        store.put((HULL, line), hull)

    def _classify_line(self, line: int, collect_points: bool, collect_indices: bool) -> LineOverlap:
        store = self._store
        other = 1 - line
        key2, hull_key, own_key = (PROJECTED_2D, line), (HULL, other), (HULL, line)
        check_own = not self.strategy.contains_input
        # hull(j) is last read by line i's classification, unless line 1
        # still checks its own points against it afterwards
        releases = [key2]
        if not (check_own and line == 0):
            releases.append(hull_key)
        if check_own and line == 1:
            releases.append(own_key)

        logger.info('finding points of line %d inside hull %d', line + 1, other + 1)
        tol = self.config.boundary_tolerance
        with store.stage(*releases):
            flat = store.get(key2)
            mask = points_in_polygon(flat, store.get(hull_key), tol)
            if check_own:
                mask &= points_in_polygon(flat, store.get(own_key), tol)
                logger.debug('line %d: %d points also inside their own hull', line + 1, int(mask.sum()))
            del flat
        indices = np.flatnonzero(mask).astype(np.int64)
        del mask
        return self._collect(line, indices, collect_points, collect_indices)

    def _collect(self, line: int, indices: np.ndarray, collect_points: bool, collect_indices: bool) -> LineOverlap:
        points = freeze(self.lines[line][indices]) if collect_points else None
        kept = freeze(indices) if collect_indices else None
        self._overlap_indices[line] = kept
        return LineOverlap(count=int(indices.shape[0]), indices=kept, points=points)

    # ------------------------------------------------------------------
    # accessors
    # ------------------------------------------------------------------
    @property
    def result(self) -> OverlapResult:
        if self._result is None:
            raise IntermediateReleasedError('compute() has not been run')
        return self._result

    def overlap_count(self, line) -> int:
        return self.result[line].count

    def overlap_indices(self, line) -> np.ndarray:
        line = check_line_selector(line)
        if self._result is None:
            raise IntermediateReleasedError('compute() has not been run')
        if self._overlap_indices[line] is None:
            raise IntermediateReleasedError(f'overlap indices of line {line} were not collected')
        return self._overlap_indices[line]

    def projected_2d(self, line) -> np.ndarray:
        return self._store.get((PROJECTED_2D, check_line_selector(line)))

    def projected_3d(self, line) -> np.ndarray:
        return self._store.get((PROJECTED_3D, check_line_selector(line)))

    def hull(self, line) -> HullPolygon:
        return self._store.get((HULL, check_line_selector(line)))

    def hull_vertex_indices(self, line) -> np.ndarray:
        hull = self.hull(line)
        if hull.indices is None:
            raise IntermediateReleasedError(f'hull vertex indices of line {line} were not kept')
        return hull.indices

    # ------------------------------------------------------------------
    # bounding boxes over the overlap
    # ------------------------------------------------------------------
    def _overlap_subset(self, line: int, frame: str) -> np.ndarray:
        indices = self.overlap_indices(line)
        key = (frame, line)
        if not self._store.is_released(key):
            return self._store.get(key)[indices]
        # minimal-memory mode: re-derive only the overlapping rows
        projected = project_points_onto_plane(self.lines[line][indices], self.plane)
        if frame == PROJECTED_3D:
            return projected
        return map_points_to_plane_2d(projected, self.basis)

    def _overlap_bounds(self, frame: str) -> Optional[BoundingBox]:
        if 0 in self.result.counts:
            return None
        subset = np.vstack([self._overlap_subset(line, frame) for line in (0, 1)])
        lo = subset.min(axis=0)
        hi = subset.max(axis=0)
        if frame == PROJECTED_2D:
            lo = np.append(lo, 0.0)
            hi = np.append(hi, 0.0)
        return BoundingBox(min=freeze(lo), max=freeze(hi))

    def overlap_bounds_2d(self) -> Optional[BoundingBox]:
        """Min/max of both overlap subsets in the 2D frame, None if either is empty."""
        return self._overlap_bounds(PROJECTED_2D)

    def overlap_bounds_3d(self) -> Optional[BoundingBox]:
        """Min/max of both overlap subsets on the plane in 3D, None if either is empty."""
        return self._overlap_bounds(PROJECTED_3D)
