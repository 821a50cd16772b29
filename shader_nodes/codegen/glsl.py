import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from ..ir.graph import NodeInstance
from ..ir.spec import NodeSpec, PortSpec
from ..ir.types import DataType, can_promote, promote, zero_literal
from .const import flatten_array, format_array_value
from .emitters import get_emitter
from .naming import sanitize
from .params import collect_parameter_inputs, parameter_expressions, parameter_literal
from .placeholders import (
    rename_calls,
    replace_array_param,
    replace_globals,
    replace_param,
    replace_ports,
    resolve_remaining_params,
)
from .shader_context import CompileState, ShaderContext
from .uniforms import GLOBAL_UNIFORMS, UniformMetadata

logger = logging.getLogger(__name__)

BLACK = "vec3(0.0)"

INPUT_TOKEN = re.compile(r"\$input\.(\w+)")

SHADER_TEMPLATE = """#version 300 es
precision highp float;

// Global uniforms
uniform vec2 uResolution;
uniform float uTime;
uniform float uTimelineTime;

{{UNIFORMS}}

// Global variable declarations (accessible in functions)
{{VARIABLE_DECLARATIONS}}

{{FUNCTIONS}}

out vec4 fragColor;

void main() {
  vec2 uv = gl_FragCoord.xy / uResolution.xy;
  vec2 p = (uv * 2.0 - 1.0) * vec2(uResolution.x / uResolution.y, 1.0);

  {{MAIN_CODE}}

  fragColor = vec4({{FINAL_COLOR}}, 1.0);
}
"""


def indent(code: str, prefix: str = "  ") -> str:
    return "\n".join(prefix + line if line.strip() else line for line in code.split("\n"))


def to_color(expr: str, dtype: Optional[DataType]) -> str:
    """Convert a value to the vec3 written to fragColor."""
    if dtype == DataType.VEC4:
        return f"{expr}.rgb"
    if dtype == DataType.VEC3:
        return expr
    if dtype == DataType.VEC2:
        return f"vec3({expr}, 0.0)"
    if dtype == DataType.FLOAT:
        return f"vec3({expr})"
    return BLACK


def uniform_declarations(uniforms: Iterable[UniformMetadata]) -> str:
    lines = []
    for uniform in sorted(uniforms, key=lambda u: u.name):
        if uniform.name in GLOBAL_UNIFORMS:
            continue
        lines.append(f"uniform {uniform.glsl_type} {uniform.name};")
    return "\n".join(lines)


def assemble_shader(functions: str, uniforms: Iterable[UniformMetadata], declarations: str,
                    main_code: str, final_color: str, automation_functions: str = "") -> str:
    """Fill the fragment shader template. Automation functions lead the function block."""
    if automation_functions:
        functions = automation_functions + "\n\n" + functions if functions else automation_functions
    main_body = indent(main_code).lstrip() if main_code else ""
    return (SHADER_TEMPLATE
            .replace("{{UNIFORMS}}", uniform_declarations(uniforms))
            .replace("{{VARIABLE_DECLARATIONS}}", declarations)
            .replace("{{FUNCTIONS}}", functions)
            .replace("{{MAIN_CODE}}", main_body)
            .replace("{{FINAL_COLOR}}", final_color or BLACK))


class MainCodeGenerator:
    """
    Generates the body of main() and the global output declarations.
    """
    def __init__(self, state: CompileState):
        self.state = state

    # -- declarations ---------------------------------------------------

    def build_variable_declarations(self) -> str:
        """
        One zero-initialised global per node output, in graph order, so
        every node block can read any earlier node's result.
        """
        state = self.state
        lines: List[str] = []
        declared = set()
        for node in state.graph.nodes:
            spec = state.registry.get(node.type)
            if spec is None:
                continue
            node_vars = state.variable_names.get(node.id, {})
            for output in spec.outputs_for(node, state.config.min_dynamic_outputs):
                var = node_vars.get(output.name)
                if var is None or var in declared:
                    continue
                declared.add(var)
                lines.append(self._declaration(output.type, var))

        for conn in state.graph.connections:
            if state.is_virtual_source(conn.source_node_id):
                continue
            if conn.source_node_id not in state.nodes:
                continue
            var = state.variable_names.get(conn.source_node_id, {}).get(conn.source_port)
            if var is not None and var in declared:
                continue
            var = self._force_declare(conn.source_node_id, conn.source_port)
            dtype = state.output_type(conn.source_node_id, conn.source_port) or DataType.FLOAT
            declared.add(var)
            lines.append(self._declaration(dtype, var))

        return "\n".join(lines)

    def _declaration(self, dtype: DataType, var: str) -> str:
        glsl_type = dtype if dtype.is_numeric() or dtype == DataType.BOOL else DataType.FLOAT
        return f"{glsl_type} {var} = {zero_literal(glsl_type)};"

    def _force_declare(self, node_id: str, port: str) -> str:
        var = f"node_{sanitize(node_id)}_{sanitize(port)}"
        logger.warning(f"Source variable {var} for {node_id}.{port} was never declared; declaring it")
        self.state.variable_names.setdefault(node_id, {})[port] = var
        return var

    # -- per-node code ----------------------------------------------------

    def resolve_inputs(self, node: NodeInstance, spec: NodeSpec,
                       parameter_exprs: Dict[str, str]) -> Dict[str, str]:
        """
        Input port -> expression (connected source, fallback expression,
        fallback parameter or zero).

        Fallback expressions are resolved last so they can read any other
        input of the node.
        """
        state = self.state
        input_vars: Dict[str, str] = {}
        if not spec.inputs:
            return input_vars

        deferred: List[PortSpec] = []
        for port in spec.inputs:
            conn = next((c for c in state.graph.connections
                         if c.target_node_id == node.id and c.target_port == port.name), None)
            if conn is not None:
                expr = self._connected_input(conn, port)
                if expr is not None:
                    input_vars[port.name] = expr
                    continue
            if port.fallback_expression:
                deferred.append(port)
                continue
            input_vars[port.name] = self._unconnected_input(node, spec, port, parameter_exprs)

        for port in deferred:
            expr = replace_ports(port.fallback_expression, "input", input_vars)
            input_vars[port.name] = INPUT_TOKEN.sub(lambda m: self._input_zero(spec, m.group(1)), expr)
        return input_vars

    def _input_zero(self, spec: NodeSpec, port_name: str) -> str:
        port = spec.get_input(port_name)
        return zero_literal(port.type) if port is not None else "0.0"

    def _connected_input(self, conn, port: PortSpec) -> Optional[str]:
        state = self.state
        if state.is_virtual_source(conn.source_node_id):
            return self._promote(state.uniform_names[conn.source_node_id], DataType.FLOAT, port.type)
        var = state.variable_names.get(conn.source_node_id, {}).get(conn.source_port)
        source_type = state.output_type(conn.source_node_id, conn.source_port)
        if var is None or source_type is None:
            return None
        return self._promote(var, source_type, port.type)

    def _promote(self, expr: str, source: DataType, target: DataType) -> str:
        if source != target and can_promote(source, target):
            return promote(expr, source, target)
        return expr

    def _unconnected_input(self, node: NodeInstance, spec: NodeSpec, port: PortSpec,
                           parameter_exprs: Dict[str, str]) -> str:
        names = port.fallback_parameters()
        if len(names) == 1:
            param = spec.get_parameter(names[0])
            expr = parameter_exprs.get(names[0]) or parameter_literal(node, names[0], param)
            if param is not None:
                return self._promote(expr, param.type, port.type)
            return expr
        if 2 <= len(names) <= 4 and port.type.is_vector() and port.type.component_count() == len(names):
            parts = [parameter_exprs.get(n) or parameter_literal(node, n, spec.get_parameter(n))
                     for n in names]
            return f"{port.type}({', '.join(parts)})"
        return zero_literal(port.type)

    def array_declarations(self, node: NodeInstance, spec: NodeSpec) -> List[str]:
        lines: List[str] = []
        for name, array_name in self.state.array_names.get(node.id, {}).items():
            if f"$param.{name}" not in spec.main_code:
                continue
            value = node.parameters.get(name)
            if not isinstance(value, (list, tuple)) or not value:
                param = spec.get_parameter(name)
                value = param.default if param is not None else None
            if not isinstance(value, (list, tuple)) or not value:
                continue
            try:
                values = flatten_array(value)
            except ValueError as e:
                logger.warning(f"Array parameter {node.id}.{name} is not rectangular: {e}")
                continue
            n = len(values)
            literal = ", ".join(format_array_value(v) for v in values)
            lines.append(f"const float {array_name}[{n}] = float[{n}]({literal});")
        return lines

    def substitute(self, node: NodeInstance, spec: NodeSpec, input_vars: Dict[str, str],
                   parameter_exprs: Dict[str, str]) -> str:
        """Run the node's main_code template through every substitution pass."""
        state = self.state
        code = spec.main_code
        code = replace_ports(code, "input", input_vars)
        code = replace_ports(code, "output", state.variable_names.get(node.id, {}))

        array_names = state.array_names.get(node.id, {})
        for name, param in spec.parameters.items():
            if param.type == DataType.ARRAY and name in array_names:
                code = replace_array_param(code, name, array_names[name])
            elif param.type == DataType.STRING and f"$param.{name}" in code:
                logger.warning(
                    f"String parameter {node.id}.{name} has no GLSL value; substituting 0.0"
                )

        for name, expr in parameter_exprs.items():
            code = replace_param(code, name, expr)

        for name, param in spec.parameters.items():
            if not param.type.is_compile_time():
                code = replace_param(code, name, parameter_literal(node, name, param))

        def fallback(name: str) -> str:
            param = spec.get_parameter(name)
            is_int = param is not None and param.type == DataType.INT
            value = node.parameters.get(name)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return parameter_literal(node, name, param)
            return "0" if is_int else "0.0"

        code = resolve_remaining_params(code, fallback)
        code = replace_globals(code)

        renames = state.function_name_map.get(node.id)
        if renames:
            code = rename_calls(code, renames)
        return code

    def generate_node_code(self, node_id: str) -> str:
        state = self.state
        node = state.nodes.get(node_id)
        spec = state.spec_for(node_id)
        if node is None or spec is None:
            return ""
        if spec.id == state.config.terminal_type:
            return ""

        param_inputs = collect_parameter_inputs(state, node, spec, respect_order=True)
        parameter_exprs = parameter_expressions(state, node, spec, param_inputs)
        input_vars = self.resolve_inputs(node, spec, parameter_exprs)
        code = self.substitute(node, spec, input_vars, parameter_exprs)

        emitter = get_emitter(spec.id, state.config)
        if emitter is not None:
            ctx = ShaderContext(state, node, spec, input_vars,
                                state.variable_names.get(node.id, {}), code)
            code = emitter(ctx)

        lines = self.array_declarations(node, spec)
        lines.extend(line for line in code.strip().split("\n") if line.strip())
        if not lines:
            return ""
        body = indent("\n".join(lines))
        return f"// Node: {spec.label} ({node.id})\n{{\n{body}\n}}"

    def generate_main_code(self) -> Tuple[str, str]:
        """
        Returns:
            (variable declarations, main body)
        """
        declarations = self.build_variable_declarations()
        blocks = []
        for node_id in self.state.execution_order:
            block = self.generate_node_code(node_id)
            if block:
                blocks.append(block)
        return declarations, "\n\n".join(blocks)

    # -- final colour -----------------------------------------------------

    def find_final_output_node(self) -> Optional[str]:
        state = self.state
        order = state.execution_order
        terminals = [nid for nid in order if state.nodes[nid].type == state.config.terminal_type]
        if len(terminals) == 1:
            return terminals[0]
        if terminals:
            # first sink in document order; the latest terminal when none is a sink
            candidates = set(terminals)
            for node in state.graph.nodes:
                if node.id in candidates and next(state.graph.outgoing(node.id), None) is None:
                    return node.id
            return terminals[-1]

        for node_id in reversed(order):
            if self._color_output(node_id) is not None:
                return node_id
        return None

    def _color_output(self, node_id: str) -> Optional[PortSpec]:
        node = self.state.nodes.get(node_id)
        spec = self.state.spec_for(node_id)
        if spec is None:
            return None
        for output in spec.outputs_for(node, self.state.config.min_dynamic_outputs):
            if output.type in (DataType.VEC3, DataType.VEC4):
                return output
        return None

    def generate_final_color_variable(self, final_node_id: Optional[str]) -> str:
        state = self.state
        if final_node_id is None:
            return BLACK
        spec = state.spec_for(final_node_id)
        if spec is None:
            return BLACK

        if spec.id == state.config.terminal_type:
            port = spec.inputs[0].name if spec.inputs else "in"
            conn = next((c for c in state.graph.incoming(final_node_id) if c.target_port == port), None)
            if conn is None:
                return BLACK
            if state.is_virtual_source(conn.source_node_id):
                return f"vec3({state.uniform_names[conn.source_node_id]})"
            var = state.variable_names.get(conn.source_node_id, {}).get(conn.source_port)
            if var is None:
                return BLACK
            return to_color(var, state.output_type(conn.source_node_id, conn.source_port))

        output = self._color_output(final_node_id)
        if output is None:
            return BLACK
        var = state.variable_names.get(final_node_id, {}).get(output.name)
        if var is None:
            return BLACK
        return to_color(var, output.type)
