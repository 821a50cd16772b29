"""
Uniform naming, liveness and metadata.

A uniform is generated for every scalar or vector parameter of every node,
except:

- array and string parameters (inlined at compile time),
- runtime-only parameters of a node kind,
- parameters whose incoming connection fully overrides them,
- float parameters driven by a timeline automation lane.

Virtual-source node kinds additionally get one float uniform per output,
and each allow-listed external source id gets one uniform of its own.
Those are written by the host every frame and are always kept; the rest
are kept only when the emitted code references them.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

import numpy as np

from ..config import CompilerConfig, DEFAULT_CONFIG
from ..ir.graph import NodeGraph, NodeInstance
from ..ir.spec import NodeSpecRegistry, ParameterSpec
from ..ir.types import DataType
from .automation import AUTOMATION_UNIFORM, automation_function_names
from .naming import NameAllocator, sanitize
from .params import effective_input_mode

logger = logging.getLogger(__name__)

GLOBAL_UNIFORMS = ("uTime", "uResolution", AUTOMATION_UNIFORM)

UniformDefault = Union[float, int, Tuple[float, ...]]


@dataclass
class UniformMetadata:
    name: str
    node_id: str
    param_name: str
    glsl_type: str
    default_value: UniformDefault
    category: str = ""

    def to_dict(self) -> Dict[str, Any]:
        value = list(self.default_value) if isinstance(self.default_value, tuple) else self.default_value
        return {
            "name": self.name,
            "nodeId": self.node_id,
            "paramName": self.param_name,
            "type": self.glsl_type,
            "defaultValue": value,
            "category": self.category,
        }


def sanitize_uniform_name(node_id: str, param_name: str) -> str:
    sanitized_id = sanitize(node_id)
    if sanitized_id[:1].isdigit():
        sanitized_id = "n" + sanitized_id
    sanitized_param = sanitize(param_name)
    sanitized_param = sanitized_param[:1].upper() + sanitized_param[1:]
    return f"u{sanitized_id}{sanitized_param}"


def uniform_glsl_type(param_type: DataType) -> DataType:
    if param_type in (DataType.INT, DataType.VEC2, DataType.VEC3, DataType.VEC4):
        return param_type
    return DataType.FLOAT


def zero_default(glsl_type: DataType) -> UniformDefault:
    if glsl_type == DataType.INT:
        return 0
    if glsl_type.is_vector():
        return (0.0,) * glsl_type.component_count()
    return 0.0


def shape_default(value: Any, glsl_type: DataType) -> Optional[UniformDefault]:
    """
    Shape a configured value for a uniform of `glsl_type`.

    Scalars broadcast into vectors; short vectors are zero-padded and long
    ones truncated. Returns None when the value is not numeric.
    """
    if value is None or isinstance(value, str):
        return None
    try:
        arr = np.asarray(value, dtype=float).ravel()
    except (TypeError, ValueError):
        return None
    if arr.size == 0 or not np.all(np.isfinite(arr)):
        return None
    if glsl_type == DataType.INT:
        return int(round(float(arr[0])))
    if glsl_type.is_vector():
        n = glsl_type.component_count()
        if arr.size == 1:
            arr = np.full(n, arr[0])
        out = np.zeros(n)
        k = min(n, arr.size)
        out[:k] = arr[:k]
        return tuple(float(x) for x in out)
    return float(arr[0])


def parameter_default(node: NodeInstance, param_name: str, param: ParameterSpec) -> UniformDefault:
    """Instance value, then spec default, then a type-appropriate zero."""
    glsl_type = uniform_glsl_type(param.type)
    for candidate in (node.parameters.get(param_name), param.default):
        shaped = shape_default(candidate, glsl_type)
        if shaped is not None:
            return shaped
    return zero_default(glsl_type)


class UniformGenerator:
    """
    Generates uniform names and metadata
    """
    def __init__(self, registry: NodeSpecRegistry, config: CompilerConfig = DEFAULT_CONFIG):
        self.registry = registry
        self.config = config

    def sanitize_uniform_name(self, node_id: str, param_name: str) -> str:
        return sanitize_uniform_name(node_id, param_name)

    def virtual_source_uniform_name(self, virtual_id: str) -> str:
        signal = self.config.signal_id(virtual_id) or virtual_id
        return sanitize_uniform_name(signal, "out")

    def generate_uniform_name_mapping(self, graph: NodeGraph,
                                      virtual_source_ids: Optional[Iterable[str]] = None) -> Dict[str, str]:
        """
        Key -> uniform name.

        Keys are "node.param" for parameters, "node.output:<port>" for
        virtual-source node outputs, and the bare id for allow-listed
        external sources.
        """
        allocator = NameAllocator(reserved=GLOBAL_UNIFORMS)
        uniform_names: Dict[str, str] = {}

        for virtual_id in self.external_source_ids(graph, virtual_source_ids):
            uniform_names[virtual_id] = allocator.allocate(
                virtual_id, self.virtual_source_uniform_name(virtual_id)
            )

        connected_params: Set[str] = {
            f"{c.target_node_id}.{c.target_parameter}"
            for c in graph.connections if c.target_parameter
        }
        automated = set(automation_function_names(graph, self.registry))

        for node in graph.nodes:
            spec = self.registry.get(node.type)
            if spec is None:
                continue

            if self.config.is_virtual_source_type(spec.id):
                for output in spec.outputs_for(node, self.config.min_dynamic_outputs):
                    key = f"{node.id}.output:{output.name}"
                    uniform_names[key] = allocator.allocate(
                        key, sanitize_uniform_name(node.id, output.name)
                    )

            for param_name, param in spec.parameters.items():
                if param.type.is_compile_time():
                    continue
                if spec.is_runtime_only(param_name):
                    continue
                key = f"{node.id}.{param_name}"
                if key in connected_params and effective_input_mode(node, param_name, param) == "override":
                    continue
                if key in automated:
                    continue
                uniform_names[key] = allocator.allocate(key, sanitize_uniform_name(node.id, param_name))

        return uniform_names

    def external_source_ids(self, graph: NodeGraph,
                            virtual_source_ids: Optional[Iterable[str]]) -> List[str]:
        node_ids = {node.id for node in graph.nodes}
        return [v for v in sorted(set(virtual_source_ids or ())) if v not in node_ids]

    def always_live(self, graph: NodeGraph, uniform_names: Dict[str, str],
                    virtual_source_ids: Optional[Iterable[str]] = None) -> Set[str]:
        """Uniforms the host writes every frame regardless of textual use."""
        live = set(GLOBAL_UNIFORMS)
        for virtual_id in self.external_source_ids(graph, virtual_source_ids):
            if virtual_id in uniform_names:
                live.add(uniform_names[virtual_id])
        for key, name in uniform_names.items():
            if ".output:" in key:
                live.add(name)
        return live

    def find_used_uniforms(self, main_code: str, functions: str,
                           uniform_names: Dict[str, str],
                           always_live: Iterable[str] = GLOBAL_UNIFORMS) -> Set[str]:
        """
        Uniforms whose identifier occurs in the emitted code, plus the
        always-live set.
        """
        used: Set[str] = set(always_live)
        code = main_code + "\n" + functions
        for name in uniform_names.values():
            if name in used:
                continue
            if re.search(r"\b" + re.escape(name) + r"\b", code):
                used.add(name)
        return used

    def generate_uniform_metadata(self, graph: NodeGraph, uniform_names: Dict[str, str],
                                  used_uniforms: Set[str],
                                  virtual_source_ids: Optional[Iterable[str]] = None) -> List[UniformMetadata]:
        uniforms: List[UniformMetadata] = []

        # External sources first
        for virtual_id in self.external_source_ids(graph, virtual_source_ids):
            name = uniform_names.get(virtual_id)
            if name is None or name not in used_uniforms:
                continue
            uniforms.append(UniformMetadata(
                name=name, node_id=virtual_id, param_name="out",
                glsl_type=str(DataType.FLOAT), default_value=0.0, category="Audio",
            ))

        for node in graph.nodes:
            spec = self.registry.get(node.type)
            if spec is None:
                continue

            if self.config.is_virtual_source_type(spec.id):
                for output in spec.outputs_for(node, self.config.min_dynamic_outputs):
                    name = uniform_names.get(f"{node.id}.output:{output.name}")
                    if name is None or name not in used_uniforms:
                        continue
                    glsl_type = uniform_glsl_type(output.type)
                    uniforms.append(UniformMetadata(
                        name=name, node_id=node.id, param_name=output.name,
                        glsl_type=str(glsl_type), default_value=zero_default(glsl_type),
                        category=spec.category,
                    ))

            for param_name, param in spec.parameters.items():
                name = uniform_names.get(f"{node.id}.{param_name}")
                if name is None or name not in used_uniforms:
                    continue
                uniforms.append(UniformMetadata(
                    name=name,
                    node_id=node.id,
                    param_name=param_name,
                    glsl_type=str(uniform_glsl_type(param.type)),
                    default_value=parameter_default(node, param_name, param),
                    category=spec.category,
                ))

        return uniforms
