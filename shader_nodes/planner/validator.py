"""
Structural validation of a node graph.

Checks everything that does not need types: graph identity and version,
node id uniqueness, known node kinds, connection id uniqueness, dangling
connection endpoints and fan-in (two connections into one port or
parameter). Findings are appended to the caller's lists so the
orchestrator can decide when to abort.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set

from ..config import CompilerConfig, DEFAULT_CONFIG
from ..errors import StructuralError
from ..ir.graph import NodeGraph
from ..ir.spec import NodeSpecRegistry

logger = logging.getLogger(__name__)


class GraphValidator:
    def __init__(self, registry: NodeSpecRegistry, config: CompilerConfig = DEFAULT_CONFIG):
        self.registry = registry
        self.config = config

    def validate_graph(self, graph: NodeGraph, errors: List[str], warnings: List[str],
                       valid_source_node_ids: Optional[Iterable[str]] = None,
                       issues: Optional[List[StructuralError]] = None) -> None:
        """
        Validate graph structure.

        Args:
            graph: Graph snapshot to check
            errors: Receives "[ERROR] ..." strings
            warnings: Receives "[WARNING] ..." strings
            valid_source_node_ids: Externally-injected source ids that may
                appear as connection endpoints without being graph nodes
            issues: Optional list receiving the typed StructuralError objects
        """
        allowed: Set[str] = set(valid_source_node_ids or ())

        def fail(err: StructuralError):
            errors.append(err.tagged())
            if issues is not None:
                issues.append(err)

        if not graph.id:
            fail(StructuralError("Graph missing id"))
        if not graph.name:
            fail(StructuralError("Graph missing name"))
        if graph.version != self.config.expected_version:
            fail(StructuralError(
                f"Invalid version: {graph.version} (expected {self.config.expected_version})"
            ))

        node_ids: Set[str] = set()
        for node in graph.nodes:
            if node.id in node_ids:
                fail(StructuralError(f"Duplicate node ID: {node.id}", node_id=node.id))
            node_ids.add(node.id)

            if node.type not in self.registry:
                fail(StructuralError(
                    f"Unknown node type: {node.type} (node {node.id})", node_id=node.id
                ))

        conn_ids: Set[str] = set()
        target_keys: Dict[str, str] = {}
        for conn in graph.connections:
            if conn.id in conn_ids:
                fail(StructuralError(f"Duplicate connection ID: {conn.id}", connection_id=conn.id))
            conn_ids.add(conn.id)

            if conn.source_node_id not in node_ids and conn.source_node_id not in allowed:
                fail(StructuralError(
                    f"Connection references non-existent source node: {conn.source_node_id}",
                    node_id=conn.source_node_id, connection_id=conn.id,
                ))
            if conn.target_node_id not in node_ids and conn.target_node_id not in allowed:
                fail(StructuralError(
                    f"Connection references non-existent target node: {conn.target_node_id}",
                    node_id=conn.target_node_id, connection_id=conn.id,
                ))

            if bool(conn.target_port) == bool(conn.target_parameter):
                fail(StructuralError(
                    f"Connection {conn.id} must target exactly one of a port or a parameter",
                    connection_id=conn.id,
                ))
                continue

            key = conn.target_key
            if key in target_keys:
                existing = target_keys[key]
                kind = "Parameter" if conn.target_parameter else "Input port"
                fail(StructuralError(
                    f"Duplicate Connection: {kind} '{conn.target_name}' on node "
                    f"'{conn.target_node_id}' already has a connection ({existing}). "
                    f"Connection {conn.id} conflicts.",
                    node_id=conn.target_node_id, connection_id=conn.id,
                    conflicting_ids=[existing, conn.id],
                ))
            else:
                target_keys[key] = conn.id

        if errors:
            logger.debug(f"Graph '{graph.id}' failed structural validation with {len(errors)} error(s)")
