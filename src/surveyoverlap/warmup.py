"""Public warmup helpers for the surveyoverlap package.

Tools and runners can call `compile_kernels()` once at startup to pay the
Numba JIT cost before the first real survey line is processed.
"""
from __future__ import annotations

import logging
import time

import numpy as np

logger = logging.getLogger(__name__)


def compile_kernels() -> float:
    """Force Numba to compile the hull and classification kernels.

    Uses tiny deterministic inputs. Returns the elapsed time in seconds.
    """
    from surveyoverlap.hull_overlap.classify import points_in_polygon
    from surveyoverlap.hull_overlap.hulls import MonotoneChainHull

    t0 = time.perf_counter()
    square = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0], [0.5, 0.5]], dtype=np.float64)
    hull = MonotoneChainHull().compute(square)
    points_in_polygon(square, hull)
    elapsed = time.perf_counter() - t0
    logger.info('numba kernels ready in %.2f s', elapsed)
    return elapsed
