# -*- coding: utf-8 -*-

"""
hull_overlap/config.py

Central defaults for the overlap engine. Keeping tolerances and the hull
selection in one place keeps the engine, the tests and any calling tool
consistent.

Contents:
---------
1. HULL_DEFAULTS:
   - Hull strategy and per-line alpha radius for the concave strategy.
   - Smaller alpha gives a tighter, more concave boundary; larger values
     approach the convex hull. Alpha is in the units of the survey
     coordinates (usually metres).

2. BASIS_DEFAULTS:
   - Length below which the first-to-last vector of line 1 is considered
     degenerate, and the tolerance on vector1 . vector2.

3. CLASSIFIER_DEFAULTS:
   - Absolute distance to a hull edge that still counts as inside.

4. MEMORY_DEFAULTS:
   - Whether intermediates are released as soon as their last consumer ran.

Usage:
------
    from surveyoverlap.hull_overlap.config import OverlapConfig

    cfg = OverlapConfig(hull_method="concave", alpha_line1=5.0, alpha_line2=5.0)
    cfg = OverlapConfig.from_dict({"hull_method": "Andrew's", "minimal_memory": True})
"""
from dataclasses import dataclass, fields
from typing import Any, Mapping
import math

from surveyoverlap.hull_overlap.hulls import HullMethod

# ───────────────────────────────────────────────────────────────────────────────
# 1) HULL SELECTION
# ───────────────────────────────────────────────────────────────────────────────
HULL_DEFAULTS = {
    'method': HullMethod.MONOTONE_CHAIN,
    'alpha_line1': 1.0,         # concave hull radius for line 1
    'alpha_line2': 1.0,         # concave hull radius for line 2
}

# ───────────────────────────────────────────────────────────────────────────────
# 2) 2D BASIS
# ───────────────────────────────────────────────────────────────────────────────
BASIS_DEFAULTS = {
    'degenerate_tolerance': 1e-12,      # min |last - first| of projected line 1
    'orthogonality_tolerance': 1e-9,    # max |vector1 . vector2|
}

# ───────────────────────────────────────────────────────────────────────────────
# 3) POINT CLASSIFICATION
# ───────────────────────────────────────────────────────────────────────────────
CLASSIFIER_DEFAULTS = {
    'boundary_tolerance': 1e-9,         # points this close to an edge are inside
}

# ───────────────────────────────────────────────────────────────────────────────
# 4) MEMORY POLICY
# ───────────────────────────────────────────────────────────────────────────────
MEMORY_DEFAULTS = {
    'minimal_memory': False,
}


@dataclass
class OverlapConfig:
    """Configuration for `OverlapEngine`.

    ``hull_method`` accepts a `HullMethod` or any of its string tags and is
    normalised to the enum; an unknown tag raises `HullMethodError`.
    """
    hull_method: Any = HULL_DEFAULTS['method']
    alpha_line1: float = HULL_DEFAULTS['alpha_line1']
    alpha_line2: float = HULL_DEFAULTS['alpha_line2']
    minimal_memory: bool = MEMORY_DEFAULTS['minimal_memory']
    boundary_tolerance: float = CLASSIFIER_DEFAULTS['boundary_tolerance']
    degenerate_tolerance: float = BASIS_DEFAULTS['degenerate_tolerance']
    orthogonality_tolerance: float = BASIS_DEFAULTS['orthogonality_tolerance']

    # caller-specific settings the engine does not interpret
    extras: Any = None

    def __post_init__(self):
        if self.extras is None:
            self.extras = {}
        self.hull_method = HullMethod.parse(self.hull_method)
        for name in ('alpha_line1', 'alpha_line2'):
            value = float(getattr(self, name))
            if not math.isfinite(value) or value <= 0.0:
                raise ValueError(f'{name} must be finite and > 0, got {value!r}')
            setattr(self, name, value)
        for name in ('boundary_tolerance', 'degenerate_tolerance', 'orthogonality_tolerance'):
            value = float(getattr(self, name))
            if not math.isfinite(value) or value < 0.0:
                raise ValueError(f'{name} must be finite and >= 0, got {value!r}')
            setattr(self, name, value)
        self.minimal_memory = bool(self.minimal_memory)

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "OverlapConfig":
        """Build a config from a plain mapping; unknown keys go to ``extras``."""
        known = {f.name for f in fields(cls)} - {'extras'}
        kwargs = {k: v for k, v in values.items() if k in known}
        extras = {k: v for k, v in values.items() if k not in known}
        return cls(extras=extras, **kwargs)

    def alpha_for(self, line: int) -> float:
        return self.alpha_line1 if line == 0 else self.alpha_line2

    def get(self, name: str, default=None):
        return getattr(self, name, self.extras.get(name, default))
