"""
SDF inlining for the generic raymarcher.

The raymarcher evaluates a distance field many times per pixel at points
along a ray, so a connected SDF node cannot be read through its output
variable. Instead the SDF node's output expression is lifted out of its
main code, its position input is bound to a function argument and the
result is emitted as

    float generic_raymarcher_sdf_<id>(vec3 p) { return <expr>; }

The displacement input is lifted the same way, inline, at the loop's
current position.
"""

import logging
import re
from typing import List, Optional, Tuple

from ..ir.graph import NodeInstance
from ..ir.spec import NodeSpec
from ..ir.types import DataType, can_promote, promote, zero_literal
from .naming import sanitize
from .params import collect_parameter_inputs, parameter_expressions, parameter_literal
from .placeholders import rename_calls, replace_globals, replace_param, replace_ports, resolve_remaining_params
from .shader_context import CompileState

logger = logging.getLogger(__name__)

# Returned when there is no field to march: every step is a miss
FAR_DISTANCE = "1000.0"

_OUTPUT_ASSIGNMENT = re.compile(r"\$output\.(\w+)\s*=\s*([\s\S]+?);")
_LOCAL_DEFINITION = re.compile(
    r"(?:(?:mediump|highp|lowp)\s+)?(?:float|vec2|vec3|vec4|int|mat2|mat3|mat4)\s+(\w+)\s*=\s*([\s\S]+?);"
)
_SINGLE_IDENTIFIER = re.compile(r"^\w+$")


def sdf_function_name(node_id: str) -> str:
    return f"generic_raymarcher_sdf_{sanitize(node_id)}"


def local_definitions(main_code: str) -> List[Tuple[str, str]]:
    """(name, initializer) of each typed local in `main_code`, in order."""
    locals_: List[Tuple[str, str]] = []
    for m in _LOCAL_DEFINITION.finditer(main_code):
        if "$output" in m.group(0):
            continue
        locals_.append((m.group(1), m.group(2).strip()))
    return locals_


def inline_locals(expr: str, main_code: str) -> str:
    """
    Substitute local definitions into `expr` so it stands on its own.

    Later locals are inlined first; each is parenthesised.
    """
    locals_ = local_definitions(main_code)
    if not locals_:
        return expr
    by_name = dict(locals_)
    if _SINGLE_IDENTIFIER.match(expr) and expr in by_name:
        expr = by_name[expr]
    for name, initializer in reversed(locals_):
        expr = re.sub(r"\b" + re.escape(name) + r"\b", lambda _m, i=initializer: f"({i})", expr)
    return expr


def _other_input(state: CompileState, node: NodeInstance, port) -> str:
    conn = next((c for c in state.graph.incoming(node.id) if c.target_port == port.name), None)
    if conn is None:
        return zero_literal(port.type)
    if state.is_virtual_source(conn.source_node_id):
        source, source_type = state.uniform_names[conn.source_node_id], DataType.FLOAT
    else:
        source = state.variable_names.get(conn.source_node_id, {}).get(conn.source_port)
        source_type = state.output_type(conn.source_node_id, conn.source_port)
        if source is None or source_type is None:
            return zero_literal(port.type)
    if source_type != port.type and can_promote(source_type, port.type):
        return promote(source, source_type, port.type)
    return source


def output_expression_at(state: CompileState, node: NodeInstance, spec: NodeSpec,
                         position: str) -> str:
    """
    The first output expression of `node` with its vec3 input set to `position`.

    Other inputs read their connected sources (globals, so visible from
    any function) or zero. Parameters resolve as in the node's own block.
    $p becomes `p`, which inside the SDF function is the sample point.
    """
    match = _OUTPUT_ASSIGNMENT.search(spec.main_code)
    if match is None:
        logger.warning(f"Node {node.id} ({spec.id}) has no output assignment to inline; using far distance")
        return FAR_DISTANCE
    expr = inline_locals(match.group(2).strip(), spec.main_code)

    position_port = next((p for p in spec.inputs if p.type == DataType.VEC3), None)
    inputs = {}
    for port in spec.inputs:
        if port is position_port:
            inputs[port.name] = position
        else:
            inputs[port.name] = _other_input(state, node, port)
    expr = replace_ports(expr, "input", inputs)

    param_inputs = collect_parameter_inputs(state, node, spec, respect_order=True)
    for name, param_expr in parameter_expressions(state, node, spec, param_inputs).items():
        expr = replace_param(expr, name, param_expr)
    expr = replace_globals(expr)

    def fallback(name: str) -> str:
        param = spec.get_parameter(name)
        if param is not None and not param.type.is_compile_time():
            return parameter_literal(node, name, param)
        return "0" if param is not None and param.type == DataType.INT else "0.0"

    expr = resolve_remaining_params(expr, fallback)

    renames = state.function_name_map.get(node.id)
    if renames:
        expr = rename_calls(expr, renames)
    return expr


def _source_of(state: CompileState, node_id: str, port: str) -> Optional[Tuple[NodeInstance, NodeSpec]]:
    conn = next((c for c in state.graph.incoming(node_id) if c.target_port == port), None)
    if conn is None:
        return None
    source = state.nodes.get(conn.source_node_id)
    spec = state.spec_for(conn.source_node_id)
    if source is None or spec is None:
        return None
    return source, spec


def build_sdf_function(state: CompileState, node: NodeInstance) -> str:
    name = sdf_function_name(node.id)
    source = _source_of(state, node.id, "sdf")
    body = output_expression_at(state, source[0], source[1], "p") if source else FAR_DISTANCE
    return f"float {name}(vec3 p) {{\n  return {body};\n}}"


def displacement_at(state: CompileState, node: NodeInstance, position: str) -> str:
    source = _source_of(state, node.id, "displacement")
    if source is None:
        return "vec3(0.0)"
    return output_expression_at(state, source[0], source[1], position)
