"""
Parameter expressions.

A float parameter can be driven by a connection. Its effective input mode
(instance setting, then the NodeSpec's, then 'override') decides how the
connected value meets the configured one:

    override   the connected value replaces the parameter
    add        (config + input)
    subtract   (config - input)
    multiply   (config * input)

The configured operand is the parameter's timeline automation when a lane
drives it, else its uniform when one exists, else a literal of its value.
An unconnected automated parameter reads the automation directly.
"""

import logging
from typing import Dict, Optional

from ..ir.graph import NodeInstance
from ..ir.spec import NodeSpec, ParameterSpec
from ..ir.types import DataType, as_float_parameter, zero_literal
from .const import format_constant, format_param_literal

logger = logging.getLogger(__name__)

_OPERATORS = {"add": "+", "subtract": "-", "multiply": "*"}


def effective_input_mode(node: NodeInstance, param_name: str,
                         param: Optional[ParameterSpec]) -> str:
    mode = node.parameter_input_modes.get(param_name)
    if not mode and param is not None:
        mode = param.input_mode
    return mode or "override"


def combine_parameter(config_value: str, input_value: str, mode: str) -> str:
    """Expression for a connected parameter under `mode`."""
    operator = _OPERATORS.get(mode)
    if operator is None:
        return input_value
    return f"({config_value} {operator} {input_value})"


def parameter_literal(node: NodeInstance, param_name: str,
                      param: Optional[ParameterSpec]) -> str:
    """Literal for the configured value: instance, then spec default, then zero."""
    dtype = param.type if param is not None else None
    candidates = (node.parameters.get(param_name),
                  param.default if param is not None else None)
    if dtype is not None and (dtype.is_vector() or dtype == DataType.BOOL):
        for candidate in candidates:
            if isinstance(candidate, (list, tuple, int, float)):
                return format_constant(candidate, dtype)
        return zero_literal(dtype)
    for candidate in candidates:
        if isinstance(candidate, bool):
            return format_param_literal(int(candidate), dtype)
        if isinstance(candidate, (int, float)):
            return format_param_literal(candidate, dtype)
    return "0" if dtype == DataType.INT else "0.0"


def collect_parameter_inputs(state, node: NodeInstance, spec: NodeSpec,
                             respect_order: bool = False) -> Dict[str, str]:
    """
    Parameter name -> connected source expression, reduced to float.

    With `respect_order`, only sources scheduled before the node count and
    the latest such source wins.
    """
    declared = state.all_variable_names()
    inputs: Dict[str, str] = {}
    source_index: Dict[str, int] = {}
    target_index = state.index_of(node.id) if respect_order else -1
    if target_index < 0:
        target_index = len(state.execution_order)

    for conn in state.graph.connections:
        if conn.target_node_id != node.id or not conn.target_parameter:
            continue
        param = spec.get_parameter(conn.target_parameter)
        if param is None or param.type != DataType.FLOAT:
            continue

        if state.is_virtual_source(conn.source_node_id):
            inputs[conn.target_parameter] = state.uniform_names[conn.source_node_id]
            source_index[conn.target_parameter] = -1
            continue

        source_node = state.nodes.get(conn.source_node_id)
        if source_node is None:
            continue
        source_type = state.output_type(conn.source_node_id, conn.source_port)
        source_var = state.variable_names.get(conn.source_node_id, {}).get(conn.source_port)
        if source_type is None or source_var is None:
            continue

        if respect_order:
            idx = state.index_of(conn.source_node_id)
            if idx < 0 or idx >= target_index:
                continue
            if idx <= source_index.get(conn.target_parameter, -1):
                continue
            source_index[conn.target_parameter] = idx

        if source_var not in declared:
            logger.warning(
                f"Parameter {node.id}.{conn.target_parameter} references undeclared "
                f"variable {source_var}; ignoring the connection"
            )
            continue
        inputs[conn.target_parameter] = as_float_parameter(source_var, source_type)

    return inputs


def parameter_expressions(state, node: NodeInstance, spec: NodeSpec,
                          parameter_inputs: Dict[str, str]) -> Dict[str, str]:
    """
    Parameter name -> GLSL expression for every parameter that has a
    connection, an automation lane or a uniform. Others are left to the
    literal fallback.
    """
    expressions: Dict[str, str] = {}
    for param_name, param in spec.parameters.items():
        if param.type.is_compile_time():
            continue
        configured = state.automation_for(node.id, param_name) or state.uniform_for(node.id, param_name)
        connected = parameter_inputs.get(param_name)
        if connected is not None:
            mode = effective_input_mode(node, param_name, param)
            if mode == "override":
                expressions[param_name] = connected
            else:
                config_value = configured or parameter_literal(node, param_name, param)
                expressions[param_name] = combine_parameter(config_value, connected, mode)
        elif configured is not None:
            expressions[param_name] = configured
    return expressions

