"""
Node catalog descriptors.

A NodeSpec is immutable data describing one node kind: its ports, its
parameters and the raw GLSL templates the code generator fills in. The
compiler never branches on a concrete node kind beyond the few reserved
kinds named in CompilerConfig; everything else is read from these
descriptors through a NodeSpecRegistry.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple

from .types import DataType
from .graph import NodeInstance
from ..errors import UnknownNodeTypeError


@dataclass(frozen=True)
class PortSpec:
    name: str
    type: DataType
    label: Optional[str] = None
    # Comma-separated parameter names that build the value of an unconnected input
    fallback_parameter: Optional[str] = None
    # GLSL for an unconnected input; may read the node's other inputs via $input.<port>
    fallback_expression: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PortSpec":
        return cls(
            name=data["name"],
            type=DataType.from_string(data["type"]),
            label=data.get("label"),
            fallback_parameter=data.get("fallbackParameter", data.get("fallback_parameter")),
            fallback_expression=data.get("fallbackExpression", data.get("fallback_expression")),
        )

    def fallback_parameters(self) -> List[str]:
        if not self.fallback_parameter:
            return []
        return [p.strip() for p in self.fallback_parameter.split(",") if p.strip()]


@dataclass(frozen=True)
class ParameterSpec:
    type: DataType
    default: Any = None
    min: Optional[float] = None
    max: Optional[float] = None
    input_mode: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ParameterSpec":
        return cls(
            type=DataType.from_string(data["type"]),
            default=data.get("default"),
            min=data.get("min"),
            max=data.get("max"),
            input_mode=data.get("inputMode", data.get("input_mode")),
        )


@dataclass(frozen=True)
class DynamicOutputs:
    """
    Output set whose size is read from one of the node's own parameters.

    The parameter may hold an int count or a list whose length is the count.
    Outputs are named ``<prefix><index>`` starting at 0.
    """
    parameter: str
    prefix: str
    type: DataType = DataType.FLOAT
    # Spec-level fallback when the parameter has no usable value
    minimum: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DynamicOutputs":
        return cls(
            parameter=data["parameter"],
            prefix=data.get("prefix", "out"),
            type=DataType.from_string(data.get("type", "float")),
            minimum=data.get("minimum"),
        )


def _count_of(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float) and value.is_integer():
        return int(value) if value > 0 else None
    if isinstance(value, (list, tuple)):
        return len(value) if value else None
    return None


@dataclass(frozen=True)
class NodeSpec:
    id: str
    category: str = ""
    display_name: str = ""
    inputs: Tuple[PortSpec, ...] = ()
    outputs: Tuple[PortSpec, ...] = ()
    parameters: Mapping[str, ParameterSpec] = field(default_factory=dict)
    functions: str = ""
    main_code: str = ""
    dynamic_outputs: Optional[DynamicOutputs] = None
    # Parameters the host consumes itself; they never become uniforms
    runtime_only: FrozenSet[str] = frozenset()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NodeSpec":
        dynamic = data.get("dynamicOutputs", data.get("dynamic_outputs"))
        return cls(
            id=data["id"],
            category=data.get("category", ""),
            display_name=data.get("displayName", data.get("display_name", data["id"])),
            inputs=tuple(PortSpec.from_dict(p) for p in data.get("inputs", [])),
            outputs=tuple(PortSpec.from_dict(p) for p in data.get("outputs", [])),
            parameters={
                name: ParameterSpec.from_dict(p)
                for name, p in data.get("parameters", {}).items()
            },
            functions=data.get("functions", "") or "",
            main_code=data.get("mainCode", data.get("main_code", "")) or "",
            dynamic_outputs=DynamicOutputs.from_dict(dynamic) if dynamic else None,
            runtime_only=frozenset(data.get("runtimeOnly", data.get("runtime_only", ()))),
        )

    @property
    def label(self) -> str:
        return self.display_name or self.id

    def get_input(self, name: str) -> Optional[PortSpec]:
        for port in self.inputs:
            if port.name == name:
                return port
        return None

    def get_parameter(self, name: str) -> Optional[ParameterSpec]:
        return self.parameters.get(name)

    def dynamic_output_count(self, node: Optional[NodeInstance], minimal_default: int = 1) -> int:
        """Instance value, then spec default, then the minimal default."""
        dyn = self.dynamic_outputs
        if dyn is None:
            return 0
        if node is not None:
            count = _count_of(node.parameters.get(dyn.parameter))
            if count is not None:
                return count
        param = self.parameters.get(dyn.parameter)
        if param is not None:
            count = _count_of(param.default)
            if count is not None:
                return count
        if dyn.minimum is not None and dyn.minimum > 0:
            return dyn.minimum
        return minimal_default

    def outputs_for(self, node: Optional[NodeInstance], minimal_default: int = 1) -> List[PortSpec]:
        """Static outputs followed by the instance's dynamic outputs."""
        ports = list(self.outputs)
        dyn = self.dynamic_outputs
        if dyn is not None:
            count = self.dynamic_output_count(node, minimal_default)
            ports.extend(PortSpec(f"{dyn.prefix}{i}", dyn.type) for i in range(count))
        return ports

    def get_output(self, name: str, node: Optional[NodeInstance] = None,
                   minimal_default: int = 1) -> Optional[PortSpec]:
        for port in self.outputs_for(node, minimal_default):
            if port.name == name:
                return port
        return None

    def is_runtime_only(self, param_name: str) -> bool:
        return param_name in self.runtime_only


class NodeSpecRegistry:
    """
    Read-only lookup from node type id to NodeSpec.

    Example:
        registry = NodeSpecRegistry([spec_a, spec_b])
        spec = registry.get("noise")
    """

    def __init__(self, specs: Iterable[NodeSpec] = ()):
        self._specs: Dict[str, NodeSpec] = {}
        for spec in specs:
            self._specs[spec.id] = spec

    @classmethod
    def from_dicts(cls, items: Iterable[Mapping[str, Any]]) -> "NodeSpecRegistry":
        return cls(NodeSpec.from_dict(item) for item in items)

    def extended(self, specs: Iterable[NodeSpec]) -> "NodeSpecRegistry":
        """New registry with `specs` added (later ids replace earlier ones)."""
        return NodeSpecRegistry(list(self._specs.values()) + list(specs))

    def get(self, type_id: str) -> Optional[NodeSpec]:
        return self._specs.get(type_id)

    def __getitem__(self, type_id: str) -> NodeSpec:
        spec = self._specs.get(type_id)
        if spec is None:
            raise UnknownNodeTypeError(type_id)
        return spec

    def __contains__(self, type_id: str) -> bool:
        return type_id in self._specs

    def __iter__(self) -> Iterator[str]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def is_runtime_only(self, type_id: str, param_name: str) -> bool:
        spec = self._specs.get(type_id)
        return spec is not None and spec.is_runtime_only(param_name)
