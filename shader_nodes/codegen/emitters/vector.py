# Vector Emitters
# Swizzle: component selection from a user-typed axis string

import logging
import re

from ..shader_context import ShaderContext

logger = logging.getLogger(__name__)

_COLOR_AXES = str.maketrans("rgba", "xyzw")
_VALID_PATTERN = re.compile(r"^[xyzw]{1,4}$")


def normalize_swizzle_pattern(pattern) -> str:
    """
    Lowercase and map color notation (rgba) to xyzw.
    Returns '' when the result is not a 1-4 character xyzw pattern.
    """
    if not isinstance(pattern, str):
        return ""
    normalized = pattern.strip().lower().translate(_COLOR_AXES)
    if not _VALID_PATTERN.match(normalized):
        return ""
    return normalized


def emit_swizzle(ctx: ShaderContext) -> str:
    """Emit swizzle; the result is always widened back to vec4."""
    out = ctx.output_vars.get("out")
    if out is None:
        return ""
    source = ctx.input_vars.get("in", "vec4(0.0)")
    raw = ctx.param_value("swizzle", "xyzw")
    pattern = normalize_swizzle_pattern(raw)

    if not pattern:
        logger.warning(f"Invalid swizzle pattern {raw!r} on node {ctx.node.id}; passing input through")
        return f"{out} = {source};"

    if len(pattern) == 1:
        # Single component broadcasts as grayscale
        return f"{out} = vec4(vec3({source}.{pattern}), 1.0);"
    if len(pattern) == 2:
        return f"{out} = vec4({source}.{pattern}, 0.0, 1.0);"
    if len(pattern) == 3:
        return f"{out} = vec4({source}.{pattern}, 1.0);"
    return f"{out} = {source}.{pattern};"
