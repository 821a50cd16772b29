"""
Change detection between two snapshots of the same graph.

Used by the cached compile front to decide which nodes an edit touched,
so it can try an incremental compile before a full one.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from ..ir.graph import Connection, NodeGraph, NodeInstance
from .analysis import GraphAnalyzer


@dataclass
class ChangeSet:
    added: Set[str] = field(default_factory=set)
    removed: Set[str] = field(default_factory=set)
    changed: Set[str] = field(default_factory=set)
    # Target nodes whose incoming connections differ
    rewired: Set[str] = field(default_factory=set)
    # Changed, added and rewired nodes plus their downstream dependents
    affected: Set[str] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed or self.rewired)

    @property
    def is_structural(self) -> bool:
        """Nodes came or went; incremental compile cannot apply."""
        return bool(self.added or self.removed)


def _node_fingerprint(node: NodeInstance) -> Tuple:
    return (
        node.type,
        repr(sorted(node.parameters.items())),
        repr(sorted(node.parameter_input_modes.items())),
    )


def _automation_fingerprints(graph: NodeGraph) -> Dict[str, Tuple]:
    """Node id -> its lanes, so editing a curve marks the driven node changed."""
    fingerprints: Dict[str, List] = {}
    if graph.automation is not None:
        for lane in graph.automation.lanes:
            fingerprints.setdefault(lane.node_id, []).append(repr(lane.to_dict()))
    return {node_id: tuple(lanes) for node_id, lanes in fingerprints.items()}


def _connection_fingerprint(conn: Connection) -> Tuple:
    return (conn.source_node_id, conn.source_port, conn.target_node_id,
            conn.target_port, conn.target_parameter)


def detect_changes(old: Optional[NodeGraph], new: NodeGraph,
                   analyzer: Optional[GraphAnalyzer] = None) -> ChangeSet:
    """
    Compare two graph snapshots.

    With no previous snapshot every node counts as added.
    """
    changes = ChangeSet()
    new_nodes = new.node_map()
    if old is None:
        changes.added = set(new_nodes)
        changes.affected = set(new_nodes)
        return changes

    old_nodes = old.node_map()
    changes.added = set(new_nodes) - set(old_nodes)
    changes.removed = set(old_nodes) - set(new_nodes)
    old_lanes = _automation_fingerprints(old)
    new_lanes = _automation_fingerprints(new)
    for node_id in set(new_nodes) & set(old_nodes):
        if _node_fingerprint(new_nodes[node_id]) != _node_fingerprint(old_nodes[node_id]):
            changes.changed.add(node_id)
        elif old_lanes.get(node_id) != new_lanes.get(node_id):
            changes.changed.add(node_id)

    old_conns: Dict[str, Tuple] = {c.id: _connection_fingerprint(c) for c in old.connections}
    new_conns: Dict[str, Tuple] = {c.id: _connection_fingerprint(c) for c in new.connections}
    for conn_id in set(old_conns) | set(new_conns):
        before = old_conns.get(conn_id)
        after = new_conns.get(conn_id)
        if before == after:
            continue
        for fp in (before, after):
            if fp is not None and fp[2] in new_nodes:
                changes.rewired.add(fp[2])

    analyzer = analyzer or GraphAnalyzer()
    seeds = changes.added | changes.changed | changes.rewired
    changes.affected = analyzer.find_affected_nodes(new, seeds)
    return changes
