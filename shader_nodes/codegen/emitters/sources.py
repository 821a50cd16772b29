# Source Emitters
# Virtual sources copy host-written uniforms; the terminal node emits nothing

from ..shader_context import ShaderContext


def emit_virtual_source(ctx: ShaderContext) -> str:
    """Assign every output from its per-frame uniform."""
    lines = []
    for port, var in ctx.output_vars.items():
        uniform = ctx.output_uniform(port)
        if uniform is not None:
            lines.append(f"{var} = {uniform};")
    return "\n".join(lines)


def emit_terminal(ctx: ShaderContext) -> str:
    # Final colour is read from the node's input at assembly time
    return ""
