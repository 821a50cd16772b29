"""
Shader Nodes: compiles node graphs into GLSL ES 3.00 fragment shaders.

Typical use:

    from shader_nodes import NodeGraph, NodeShaderCompiler

    graph = NodeGraph.from_dict(document)
    result = NodeShaderCompiler(registry).compile(graph)
    if result.ok:
        upload(result.shader_code, result.uniforms)
"""

__version__ = "0.1.0"

from .config import CompilerConfig, DEFAULT_CONFIG
from .errors import (
    ShaderNodesError,
    CompilationError,
    StructuralError,
    CycleError,
    PortTypeError,
    RegistryError,
    UnknownNodeTypeError,
)
from .ir import DataType, NodeGraph, NodeInstance, Connection, NodeSpec, NodeSpecRegistry
from .nodes import create_registry
from .planner import (
    CompilationResult,
    CompilationMetadata,
    NodeShaderCompiler,
    GraphCompiler,
    compile_graph,
    get_compiler,
)
from .logger import get_logger, setup_logger
