"""
Compiler configuration.

A CompilerConfig holds the handful of names and thresholds the pipeline
needs to know about: the accepted graph version, which node kinds are fed
by an external driver, which node kind is the terminal output, and the
incremental-compile threshold. Pass one to NodeShaderCompiler or
GraphCompiler; DEFAULT_CONFIG is used otherwise.
"""

from dataclasses import dataclass, field
from typing import FrozenSet

GRAPH_VERSION = "2.0"

# Node kinds whose outputs are written from uniforms every frame
VIRTUAL_SOURCE_TYPES = frozenset({"audio-file-input", "audio-analyzer"})

TERMINAL_TYPE = "final-output"

# Externally-injected sources (audio panel signals) use ids with this prefix
VIRTUAL_NODE_PREFIX = "audio-signal:"


@dataclass(frozen=True)
class CompilerConfig:
    expected_version: str = GRAPH_VERSION
    virtual_source_types: FrozenSet[str] = field(default_factory=lambda: VIRTUAL_SOURCE_TYPES)
    terminal_type: str = TERMINAL_TYPE
    virtual_node_prefix: str = VIRTUAL_NODE_PREFIX
    # Fraction of nodes that may be affected before incremental compile declines
    incremental_threshold: float = 0.5
    cache_capacity: int = 16
    # Output count for dynamic-arity nodes when neither instance nor spec say
    min_dynamic_outputs: int = 1

    def is_virtual_source_type(self, node_type: str) -> bool:
        return node_type in self.virtual_source_types

    def is_virtual_node_id(self, node_id: str) -> bool:
        prefix = self.virtual_node_prefix
        return node_id.startswith(prefix) and len(node_id) > len(prefix)

    def virtual_node_id(self, signal_id: str) -> str:
        return f"{self.virtual_node_prefix}{signal_id}"

    def signal_id(self, virtual_node_id: str) -> str:
        """Strip the virtual prefix; returns '' for non-virtual ids."""
        if not self.is_virtual_node_id(virtual_node_id):
            return ""
        return virtual_node_id[len(self.virtual_node_prefix):]


DEFAULT_CONFIG = CompilerConfig()
