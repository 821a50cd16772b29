# Raymarcher Emitters
# Generic raymarcher: binds $sdf_call and $displacement_at_p to the graph's SDF

from ..raymarcher import build_sdf_function, displacement_at, sdf_function_name
from ..shader_context import ShaderContext

# Loop variables in the raymarcher template
SAMPLE_POSITION = "pos"
DISPLACED_POSITION = "posDisplaced"


def emit_generic_raymarcher(ctx: ShaderContext) -> str:
    """Emit the node's SDF function and fill the two march placeholders."""
    ctx.emit_function(build_sdf_function(ctx.state, ctx.node))
    code = ctx.template.replace("$sdf_call", f"{sdf_function_name(ctx.node.id)}({DISPLACED_POSITION})")
    return code.replace("$displacement_at_p", displacement_at(ctx.state, ctx.node, SAMPLE_POSITION))
