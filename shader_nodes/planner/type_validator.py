"""
Per-connection type checking.

Port connections must match exactly or widen along the promotion table
in ir.types. Parameter connections may only target float parameters and
accept any numeric source (reduced to its first component downstream).
"""

import logging
from typing import Iterable, List, Optional, Set

from ..config import CompilerConfig, DEFAULT_CONFIG
from ..errors import PortTypeError
from ..ir.graph import NodeGraph
from ..ir.spec import NodeSpecRegistry, PortSpec
from ..ir.types import DataType, PARAMETER_SOURCE_TYPES, can_promote

logger = logging.getLogger(__name__)

# Externally-injected sources expose a single float output
VIRTUAL_SOURCE_PORT = PortSpec("out", DataType.FLOAT)


class TypeValidator:
    def __init__(self, registry: NodeSpecRegistry, config: CompilerConfig = DEFAULT_CONFIG):
        self.registry = registry
        self.config = config

    def are_types_compatible(self, source: DataType, target: DataType) -> bool:
        return can_promote(source, target)

    def validate_types(self, graph: NodeGraph,
                       valid_source_node_ids: Optional[Iterable[str]] = None,
                       issues: Optional[List[PortTypeError]] = None) -> List[str]:
        """
        Check every connection whose endpoints resolve.

        Returns:
            "[ERROR] ..." strings, one per bad connection
        """
        errors: List[str] = []
        allowed: Set[str] = set(valid_source_node_ids or ())
        nodes = graph.node_map()

        def fail(err: PortTypeError):
            errors.append(err.tagged())
            if issues is not None:
                issues.append(err)

        for conn in graph.connections:
            target_node = nodes.get(conn.target_node_id)
            if target_node is None:
                continue
            target_spec = self.registry.get(target_node.type)
            if target_spec is None:
                continue

            source_node = nodes.get(conn.source_node_id)
            if source_node is None:
                if conn.source_node_id not in allowed:
                    continue
                source_type_name = "virtual"
                source_output = VIRTUAL_SOURCE_PORT if conn.source_port == "out" else None
            else:
                source_spec = self.registry.get(source_node.type)
                if source_spec is None:
                    continue
                source_type_name = source_node.type
                source_output = source_spec.get_output(
                    conn.source_port, source_node, self.config.min_dynamic_outputs
                )

            if source_output is None:
                fail(PortTypeError(
                    f"Invalid source port: {conn.source_port} on node {source_type_name} "
                    f"({conn.source_node_id})",
                    source=f"{source_type_name}.{conn.source_port}", connection_id=conn.id,
                ))
                continue

            source_label = f"{source_type_name}.{conn.source_port}"

            if conn.target_parameter:
                target_label = f"{target_node.type}.{conn.target_parameter}"
                param = target_spec.get_parameter(conn.target_parameter)
                if param is None:
                    fail(PortTypeError(
                        f"Invalid target parameter: {conn.target_parameter} on node "
                        f"{target_node.type} ({target_node.id})",
                        source=source_label, target=target_label, connection_id=conn.id,
                    ))
                    continue
                if param.type != DataType.FLOAT:
                    fail(PortTypeError(
                        f"Parameter connection type mismatch: Parameter '{conn.target_parameter}' "
                        f"on node {target_node.type} is of type '{param.type}', but only float "
                        f"parameters can have input connections. "
                        f"({source_label} → {target_label})",
                        source=source_label, target=target_label, connection_id=conn.id,
                    ))
                    continue
                if source_output.type not in PARAMETER_SOURCE_TYPES:
                    fail(PortTypeError(
                        f"Type Mismatch: Cannot connect {source_output.type} to parameter "
                        f"'{conn.target_parameter}' ({source_label} → {target_label})",
                        source=source_label, target=target_label, connection_id=conn.id,
                    ))
            else:
                target_label = f"{target_node.type}.{conn.target_port}"
                target_input = target_spec.get_input(conn.target_port)
                if target_input is None:
                    fail(PortTypeError(
                        f"Invalid target port: {conn.target_port} on node "
                        f"{target_node.type} ({target_node.id})",
                        source=source_label, target=target_label, connection_id=conn.id,
                    ))
                    continue
                if not self.are_types_compatible(source_output.type, target_input.type):
                    fail(PortTypeError(
                        f"Type Mismatch: Cannot connect {source_output.type} to "
                        f"{target_input.type} ({source_label} → {target_label})",
                        source=source_label, target=target_label, connection_id=conn.id,
                    ))

        if errors:
            logger.debug(f"Type validation found {len(errors)} error(s)")
        return errors
