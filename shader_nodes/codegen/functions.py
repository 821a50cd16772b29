"""
Helper-function collection and deduplication.

Each node kind may ship a ``functions`` template: GLSL helper definitions,
optionally preceded by a preamble (constants, defines). Per node the
template is specialised (parameter placeholders, globals, audit of
generated-variable references), then split into individual definitions
with an explicit paren/brace scanner. Definitions are keyed by

    returnType_name_paramType1_paramType2...

and only the first definition of each key is kept, so two node kinds
shipping the same helper do not produce a duplicate-symbol error.

When a node's helpers embed values specific to that node (a connected
parameter, one of its own uniforms or an automation lane), its definitions
are renamed ``<name>_<nodeId>`` so dedup cannot collapse them with another node's.
The renames are returned per node for the main-code generator to apply
to the node's call sites.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Tuple

from ..ir.types import DataType
from .naming import sanitize
from .params import collect_parameter_inputs, parameter_expressions, parameter_literal
from .placeholders import (
    rename_calls,
    repair_undeclared_variables,
    replace_globals,
    replace_param,
    resolve_remaining_params,
)
from .shader_context import CompileState

logger = logging.getLogger(__name__)

RETURN_TYPES = "float|vec2|vec3|vec4|int|bool|void|mat2|mat3|mat4"
FUNCTION_START = re.compile(r"\b(" + RETURN_TYPES + r")\s+(\w+)\s*\(")
_PARAM_TYPE = re.compile(r"^(?:(?:in|out|inout|const|highp|mediump|lowp)\s+)*(\w+)\s+\w+")


@dataclass
class FunctionDef:
    return_type: str
    name: str
    param_types: Tuple[str, ...]
    start: int
    end: int
    body: str

    @property
    def signature(self) -> str:
        return "_".join((self.return_type, self.name) + self.param_types)


def _skip_string(code: str, pos: int) -> int:
    """pos is at an opening quote; returns the index after the closing one."""
    n = len(code)
    pos += 1
    while pos < n and code[pos] != '"':
        if code[pos] == "\\":
            pos += 1
        pos += 1
    return min(pos + 1, n)


def _skip_comment(code: str, pos: int) -> int:
    """pos is at '/'; returns the index after a comment, or pos if none."""
    n = len(code)
    if pos + 1 >= n:
        return pos
    if code[pos + 1] == "/":
        end = code.find("\n", pos + 2)
        return n if end < 0 else end
    if code[pos + 1] == "*":
        end = code.find("*/", pos + 2)
        return n if end < 0 else end + 2
    return pos


def find_matching_close(code: str, pos: int, open_ch: str, close_ch: str) -> int:
    """
    Index after the delimiter closing the one just before `pos`, ignoring
    delimiters in comments and strings. Returns -1 when unbalanced.
    """
    depth = 1
    n = len(code)
    while pos < n:
        c = code[pos]
        if c == '"':
            pos = _skip_string(code, pos)
            continue
        if c == "/":
            skipped = _skip_comment(code, pos)
            if skipped != pos:
                pos = skipped
                continue
        if c == open_ch:
            depth += 1
        elif c == close_ch:
            depth -= 1
            if depth == 0:
                return pos + 1
        pos += 1
    return -1


def _param_types(params: str) -> Tuple[str, ...]:
    types: List[str] = []
    for param in params.split(","):
        m = _PARAM_TYPE.match(param.strip())
        if m:
            types.append(m.group(1))
    return tuple(types)


def extract_functions(code: str) -> List[FunctionDef]:
    """Split GLSL text into complete function definitions, in source order."""
    functions: List[FunctionDef] = []
    covered_until = 0
    for match in FUNCTION_START.finditer(code):
        start = match.start()
        if start < covered_until:
            continue
        open_paren = match.end()
        close_paren = find_matching_close(code, open_paren, "(", ")")
        if close_paren < 0:
            continue
        pos = close_paren
        while pos < len(code) and code[pos].isspace():
            pos += 1
        if pos >= len(code) or code[pos] != "{":
            # Prototype or expression, not a definition
            continue
        end = find_matching_close(code, pos + 1, "{", "}")
        if end < 0:
            continue
        functions.append(FunctionDef(
            return_type=match.group(1),
            name=match.group(2),
            param_types=_param_types(code[open_paren:close_paren - 1]),
            start=start,
            end=end,
            body=code[start:end],
        ))
        covered_until = end
    return functions


def split_preamble(code: str) -> str:
    """Text before the first function definition, trimmed."""
    functions = extract_functions(code)
    first = functions[0].start if functions else len(code)
    return code[:first].strip()


class FunctionGenerator:
    """
    Generates and deduplicates function code
    """
    def __init__(self, state: CompileState):
        self.state = state

    def specialize(self, node, spec) -> Tuple[str, bool]:
        """
        Node's helper text with placeholders resolved.

        Returns:
            (code, has_parameter_inputs)
        """
        state = self.state
        code = spec.functions
        inputs = collect_parameter_inputs(state, node, spec)
        for name, expr in parameter_expressions(state, node, spec, inputs).items():
            code = replace_param(code, name, expr)
        code = replace_globals(code)

        def fallback(name: str) -> str:
            param = spec.get_parameter(name)
            if param is not None and not param.type.is_compile_time():
                return parameter_literal(node, name, param)
            if param is not None and param.type == DataType.INT:
                return "0"
            return "0.0"

        code = resolve_remaining_params(code, fallback)

        def on_repair(name: str):
            logger.warning(
                f"Variable {name} used in function code of node {node.id} "
                f"but never declared; replacing with 0.0"
            )

        code = repair_undeclared_variables(code, state.all_variable_names(), on_repair)
        return code, bool(inputs)

    def _uses_own_values(self, node_id: str, code: str) -> bool:
        """True when the code reads one of the node's uniforms or automation lanes."""
        prefix = node_id + "."
        names = [name for key, name in self.state.uniform_names.items() if key.startswith(prefix)]
        names += [name for key, name in self.state.automation_names.items() if key.startswith(prefix)]
        return any(re.search(r"\b" + re.escape(name) + r"\b", code) for name in names)

    def _make_node_specific(self, node_id: str, code: str) -> Tuple[str, Dict[str, str]]:
        renames: Dict[str, str] = {}
        for func in extract_functions(code):
            renames.setdefault(func.name, f"{func.name}_{sanitize(node_id)}")
        for original, renamed in renames.items():
            code = re.sub(
                r"(\b(?:" + RETURN_TYPES + r")\s+)" + re.escape(original) + r"(\s*\()",
                lambda m, r=renamed: f"{m.group(1)}{r}{m.group(2)}",
                code,
            )
        code = rename_calls(code, renames)
        return code, renames

    def collect_and_deduplicate_functions(self) -> Tuple[str, Dict[str, Dict[str, str]]]:
        """
        Returns:
            (functions text, node id -> original name -> node-specific name)
        """
        state = self.state
        processed: List[Tuple[str, str]] = []
        function_name_map: Dict[str, Dict[str, str]] = {}

        for node in state.graph.nodes:
            spec = state.registry.get(node.type)
            if spec is None or not spec.functions.strip():
                continue
            code, has_inputs = self.specialize(node, spec)
            if has_inputs or self._uses_own_values(node.id, code):
                code, renames = self._make_node_specific(node.id, code)
                if renames:
                    function_name_map[node.id] = renames
            processed.append((node.id, code))

        kept: Dict[str, Tuple[str, str]] = {}
        preambles: Dict[str, str] = {}
        for node_id, code in processed:
            preamble = split_preamble(code)
            if preamble:
                preambles[node_id] = preamble
            for func in extract_functions(code):
                if func.signature not in kept:
                    kept[func.signature] = (func.body, node_id)
                else:
                    logger.debug(f"Dropping duplicate function {func.signature} from node {node_id}")

        preamble_blocks: List[str] = []
        for _body, node_id in kept.values():
            preamble = preambles.get(node_id)
            if preamble and preamble not in preamble_blocks:
                preamble_blocks.append(preamble)

        parts = preamble_blocks + [body for body, _node in kept.values()]
        state.function_name_map = function_name_map
        return "\n\n".join(parts), function_name_map
