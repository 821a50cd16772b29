# Constant formatting utilities for GLSL code generation

import math
from typing import Any, List, Optional

import numpy as np

from ..ir.types import DataType


def format_float(value) -> str:
    """Float literal that always reads as float in GLSL ('1.0', not '1')."""
    v = float(value)
    if not math.isfinite(v):
        return "0.0"
    if v.is_integer():
        return f"{int(v)}.0"
    return repr(v)


def format_param_literal(value, dtype: Optional[DataType] = None) -> str:
    """Format a numeric parameter value; ints stay ints, everything else is float."""
    if dtype == DataType.INT:
        return f"{int(round(float(value)))}"
    return format_float(value)


def format_array_value(value) -> str:
    """Array constants use fixed ten-digit precision."""
    return f"{float(value):.10f}"


def flatten_array(value: Any) -> List[float]:
    """Flatten a (possibly nested) numeric list for a float[] constant."""
    return [float(v) for v in np.asarray(value, dtype=float).ravel()]


def format_constant(value, dtype: DataType) -> str:
    """Format a Python value as GLSL literal."""
    if value is None:
        return "0.0"

    if dtype == DataType.INT:
        return f"{int(round(float(value)))}"
    elif dtype == DataType.BOOL:
        return "true" if value else "false"
    elif dtype.is_vector():
        n = dtype.component_count()
        if isinstance(value, (list, tuple)) and len(value) >= n:
            parts = ", ".join(format_float(v) for v in value[:n])
            return f"{dtype}({parts})"
        if isinstance(value, (int, float)):
            return f"{dtype}({format_float(value)})"
        return f"{dtype}(0.0)"
    if isinstance(value, (int, float)):
        return format_float(value)
    return "0.0"
