from collections import deque
from typing import Dict, Iterable, List, Set

from ..config import CompilerConfig, DEFAULT_CONFIG
from ..errors import CycleError
from ..ir.graph import NodeGraph


class GraphAnalyzer:
    """
    Dependency queries and execution ordering over a node graph.
    """
    def __init__(self, config: CompilerConfig = DEFAULT_CONFIG):
        self.config = config

    def build_dependency_graph(self, graph: NodeGraph) -> Dict[str, List[str]]:
        """
        Node id -> distinct source ids feeding any of its ports or parameters,
        in connection order. Virtual source ids are included.
        """
        deps: Dict[str, List[str]] = {node.id: [] for node in graph.nodes}
        for conn in graph.connections:
            sources = deps.setdefault(conn.target_node_id, [])
            if conn.source_node_id not in sources:
                sources.append(conn.source_node_id)
        return deps

    def build_dependents_graph(self, graph: NodeGraph) -> Dict[str, Set[str]]:
        """Node id -> ids of nodes that read one of its outputs directly."""
        dependents: Dict[str, Set[str]] = {node.id: set() for node in graph.nodes}
        for conn in graph.connections:
            dependents.setdefault(conn.source_node_id, set()).add(conn.target_node_id)
        return dependents

    def find_affected_nodes(self, graph: NodeGraph, changed_ids: Iterable[str]) -> Set[str]:
        """Changed nodes plus everything downstream of them."""
        dependents = self.build_dependents_graph(graph)
        affected: Set[str] = set()
        queue = deque(changed_ids)
        while queue:
            node_id = queue.popleft()
            if node_id in affected:
                continue
            affected.add(node_id)
            for dep in dependents.get(node_id, ()):
                if dep not in affected:
                    queue.append(dep)
        return affected

    def topological_sort(self, graph: NodeGraph) -> List[str]:
        """
        Kahn's algorithm.

        Dependencies on ids that are not graph nodes (virtual sources) do not
        count towards in-degree. Nodes with no connections at all are queued
        behind connected ones so adding an unconnected node does not shift
        the rest of the order.

        Raises:
            CycleError: if some nodes can never reach in-degree zero
        """
        dependencies = self.build_dependency_graph(graph)
        node_ids = [node.id for node in graph.nodes]
        node_set = set(node_ids)

        connected: Set[str] = set()
        for conn in graph.connections:
            if conn.source_node_id in node_set:
                connected.add(conn.source_node_id)
            if conn.target_node_id in node_set:
                connected.add(conn.target_node_id)

        in_degree: Dict[str, int] = {}
        connected_queue: deque = deque()
        isolated_queue: deque = deque()

        def enqueue(node_id: str):
            if node_id in connected:
                connected_queue.append(node_id)
            else:
                isolated_queue.append(node_id)

        for node_id in node_ids:
            if node_id in in_degree:
                continue
            degree = len([d for d in dependencies.get(node_id, []) if d in node_set])
            in_degree[node_id] = degree
            if degree == 0:
                enqueue(node_id)

        successors: Dict[str, List[str]] = {}
        for node_id, deps in dependencies.items():
            for dep in deps:
                if dep in node_set:
                    successors.setdefault(dep, []).append(node_id)

        result: List[str] = []
        while connected_queue or isolated_queue:
            node_id = connected_queue.popleft() if connected_queue else isolated_queue.popleft()
            result.append(node_id)
            for succ in successors.get(node_id, ()):
                in_degree[succ] -= 1
                if in_degree[succ] == 0:
                    enqueue(succ)

        if len(result) != len(in_degree):
            unresolved = [n for n in in_degree if n not in set(result)]
            raise CycleError(
                f"Graph contains cycles (unresolved nodes: {', '.join(unresolved)})",
                unresolved=unresolved,
            )
        return result

    def virtual_sources_first(self, order: List[str], graph: NodeGraph) -> List[str]:
        """
        Stable partition: virtual-source node kinds first, everything else
        after, relative order kept within each part.
        """
        types = {node.id: node.type for node in graph.nodes}
        first = [n for n in order if self.config.is_virtual_source_type(types.get(n, ""))]
        rest = [n for n in order if not self.config.is_virtual_source_type(types.get(n, ""))]
        return first + rest

    # Name used by the editor-side pipeline
    audio_nodes_first = virtual_sources_first
