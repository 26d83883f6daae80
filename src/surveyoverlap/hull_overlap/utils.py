"""
utils.py

Small helpers shared by the hull_overlap modules: coercion of point
arrays, read-only marking and a robust exception logger.

The public helpers:
- `as_point_array(points, dim, name)` : validated float64 (N, dim) array
- `freeze(arr)` : mark an array read-only and return it
- `safe_log_exception(msg, exc, **ctx)` : logs exceptions robustly
"""

from typing import Any
import sys
import logging
import numpy as np

logger = logging.getLogger(__name__)


def as_point_array(points: Any, dim: int = 3, name: str = 'points') -> np.ndarray:
	"""Return ``points`` as a C-contiguous float64 array of shape (N, dim).

	Empty input (``None`` or zero points) yields an array of shape (0, dim).
	Raises ``ValueError`` for any other shape or for non-finite values.
	"""
	if points is None:
		return np.empty((0, dim), dtype=np.float64)
	arr = np.asarray(points, dtype=np.float64)
	if arr.size == 0:
		return np.empty((0, dim), dtype=np.float64)
	if arr.ndim != 2 or arr.shape[1] != dim:
		raise ValueError(f'{name} must be shape (N,{dim}), got {arr.shape}')
	if not np.all(np.isfinite(arr)):
		raise ValueError(f'{name} contains non-finite coordinates')
	return np.ascontiguousarray(arr)


def freeze(arr: np.ndarray) -> np.ndarray:
	"""Mark ``arr`` read-only and return it."""
	arr.flags.writeable = False
	return arr


def safe_log_exception(msg: str, exc: Exception, **ctx: Any) -> None:
	"""Log an exception robustly.

	Attempts to call `logger.exception`. If logging fails for any reason,
	falls back to writing a compact message to `sys.stderr`.
	"""
	try:
		if ctx:
			ctx_s = ' | '.join(f"{k}={v!r}" for k, v in ctx.items())
			logger.exception('%s | %s | %s', msg, exc, ctx_s)
		else:
			logger.exception('%s | %s', msg, exc)
	except Exception:
		try:
			sys.stderr.write(f'LOGGING FAILURE: {msg} {exc}\n')
		except Exception:
			# stderr itself is gone; nothing left to report to
			pass
