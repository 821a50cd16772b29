from typing import Any, Dict, List, Optional, Set

from ..config import CompilerConfig
from ..ir.graph import NodeGraph, NodeInstance
from ..ir.spec import NodeSpec, NodeSpecRegistry, ParameterSpec
from ..ir.types import DataType
from .automation import automation_call


class CompileState:
    """
    Builder state owned by one compile() call.

    Each pipeline stage fills in its part (names, uniforms, functions) and
    later stages read it. Nothing here outlives the call.
    """
    def __init__(self, graph: NodeGraph, registry: NodeSpecRegistry, config: CompilerConfig,
                 virtual_source_ids: Optional[List[str]] = None):
        self.graph = graph
        self.registry = registry
        self.config = config
        self.nodes: Dict[str, NodeInstance] = graph.node_map()
        self.virtual_source_ids: List[str] = list(virtual_source_ids or [])
        self.execution_order: List[str] = []

        # node id -> port -> variable name
        self.variable_names: Dict[str, Dict[str, str]] = {}
        # node id -> array param -> constant name
        self.array_names: Dict[str, Dict[str, str]] = {}
        # "node.param" / "node.output:<port>" / virtual id -> uniform name
        self.uniform_names: Dict[str, str] = {}
        # node id -> original function name -> node-specific name
        self.function_name_map: Dict[str, Dict[str, str]] = {}
        # "node.param" -> evalAutomation_* function for automated float params
        self.automation_names: Dict[str, str] = {}
        # Extra definitions emitters contribute to the function block
        self.generated_functions: List[str] = []

    def spec_for(self, node_id: str) -> Optional[NodeSpec]:
        node = self.nodes.get(node_id)
        if node is None:
            return None
        return self.registry.get(node.type)

    def is_virtual_source(self, node_id: str) -> bool:
        """True for allow-listed external sources that are not graph nodes."""
        return node_id not in self.nodes and node_id in self.uniform_names

    def output_type(self, node_id: str, port: str) -> Optional[DataType]:
        node = self.nodes.get(node_id)
        spec = self.spec_for(node_id)
        if spec is None:
            return None
        output = spec.get_output(port, node, self.config.min_dynamic_outputs)
        return output.type if output is not None else None

    def all_variable_names(self) -> Set[str]:
        names: Set[str] = set()
        for node_vars in self.variable_names.values():
            names.update(node_vars.values())
        return names

    def uniform_for(self, node_id: str, param_name: str) -> Optional[str]:
        return self.uniform_names.get(f"{node_id}.{param_name}")

    def automation_for(self, node_id: str, param_name: str) -> Optional[str]:
        """Timeline expression for an automated parameter, else None."""
        name = self.automation_names.get(f"{node_id}.{param_name}")
        return automation_call(name) if name is not None else None

    def index_of(self, node_id: str) -> int:
        try:
            return self.execution_order.index(node_id)
        except ValueError:
            return -1


class ShaderContext:
    """
    Context object passed to node-kind emitters.
    Wraps the state required to generate the body of one node.
    """
    def __init__(self,
                 state: CompileState,
                 node: NodeInstance,
                 spec: NodeSpec,
                 input_vars: Dict[str, str],
                 output_vars: Dict[str, str],
                 template: str):
        self._state = state
        self.node = node
        self.spec = spec
        self.input_vars = input_vars
        self.output_vars = output_vars
        # main_code after placeholder substitution
        self.template = template

    def param_value(self, name: str, default: Any = None) -> Any:
        """Instance value, then spec default, then `default`."""
        if name in self.node.parameters:
            return self.node.parameters[name]
        param: Optional[ParameterSpec] = self.spec.get_parameter(name)
        if param is not None and param.default is not None:
            return param.default
        return default

    def uniform(self, key: str) -> Optional[str]:
        return self._state.uniform_names.get(key)

    def output_uniform(self, port: str) -> Optional[str]:
        return self.uniform(f"{self.node.id}.output:{port}")

    def emit_function(self, code: str) -> None:
        """Add a definition to the shader's function block."""
        self._state.generated_functions.append(code)

    @property
    def config(self) -> CompilerConfig:
        return self._state.config

    @property
    def graph(self) -> NodeGraph:
        return self._state.graph

    @property
    def state(self) -> CompileState:
        return self._state
