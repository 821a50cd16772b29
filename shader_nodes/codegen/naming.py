"""
Deterministic identifier allocation.

Every generated GLSL identifier is derived from a (nodeId, name) key:

    node_<id>_<port>     output variables
    array_<id>_<param>   inline constant arrays
    u<Id><Param>         uniforms (see uniforms.py)

Sanitizing can map two distinct keys to the same text (``a-b`` and ``a_b``).
NameAllocator resolves that by suffixing later keys ``_2``, ``_3``, ... in
graph order, so names stay unique and stable for a given graph.
"""

import logging
import re
from typing import Dict, Iterable, Optional, Set

from ..config import CompilerConfig, DEFAULT_CONFIG
from ..ir.graph import NodeGraph
from ..ir.spec import NodeSpecRegistry
from ..ir.types import DataType

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def sanitize(name: str) -> str:
    """Replace every non-alphanumeric character with '_'."""
    return _NON_ALNUM.sub("_", str(name))


class NameAllocator:
    """
    Hands out unique identifiers for keys, first come first served.
    """
    def __init__(self, reserved: Iterable[str] = ()):
        self._taken: Set[str] = set(reserved)
        self._by_key: Dict[str, str] = {}

    def allocate(self, key: str, base: str) -> str:
        if key in self._by_key:
            return self._by_key[key]
        name = base
        n = 2
        while name in self._taken:
            name = f"{base}_{n}"
            n += 1
        if name != base:
            logger.debug(f"Identifier '{base}' already taken; '{key}' renamed to '{name}'")
        self._taken.add(name)
        self._by_key[key] = name
        return name

    def get(self, key: str) -> Optional[str]:
        return self._by_key.get(key)


class VariableNameGenerator:
    """
    Names every node output, including dynamic-arity outputs.
    """
    def __init__(self, registry: NodeSpecRegistry, config: CompilerConfig = DEFAULT_CONFIG):
        self.registry = registry
        self.config = config

    def generate_variable_name(self, node_id: str, port_name: str) -> str:
        return f"node_{sanitize(node_id)}_{sanitize(port_name)}"

    def generate_array_variable_name(self, node_id: str, param_name: str) -> str:
        return f"array_{sanitize(node_id)}_{sanitize(param_name)}"

    def generate_variable_names(self, graph: NodeGraph) -> Dict[str, Dict[str, str]]:
        """Node id -> (output port -> variable name)."""
        allocator = NameAllocator()
        variable_names: Dict[str, Dict[str, str]] = {}
        for node in graph.nodes:
            spec = self.registry.get(node.type)
            if spec is None:
                continue
            node_vars = variable_names.setdefault(node.id, {})
            for output in spec.outputs_for(node, self.config.min_dynamic_outputs):
                node_vars[output.name] = allocator.allocate(
                    f"{node.id}\0{output.name}",
                    self.generate_variable_name(node.id, output.name),
                )
        return variable_names

    def generate_array_names(self, graph: NodeGraph) -> Dict[str, Dict[str, str]]:
        """Node id -> (array parameter -> constant name)."""
        allocator = NameAllocator()
        array_names: Dict[str, Dict[str, str]] = {}
        for node in graph.nodes:
            spec = self.registry.get(node.type)
            if spec is None:
                continue
            for name, param in spec.parameters.items():
                if param.type != DataType.ARRAY:
                    continue
                array_names.setdefault(node.id, {})[name] = allocator.allocate(
                    f"{node.id}\0{name}",
                    self.generate_array_variable_name(node.id, name),
                )
        return array_names
