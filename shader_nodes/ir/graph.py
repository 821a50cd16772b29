"""
Node graph snapshot consumed by the compiler.

The editor owns the graph; the compiler only reads it. ``from_dict``
accepts the editor's camelCase document shape as well as snake_case keys.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from ..config import GRAPH_VERSION
from .automation import AutomationState

INPUT_MODES = ("override", "add", "subtract", "multiply")


def _pick(data: Dict[str, Any], *keys, default=None):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass
class NodeInstance:
    """One box in the editor: a node kind plus its configured values."""
    id: str
    type: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    parameter_input_modes: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeInstance":
        return cls(
            id=data["id"],
            type=data["type"],
            parameters=dict(_pick(data, "parameters", default={})),
            parameter_input_modes=dict(
                _pick(data, "parameterInputModes", "parameter_input_modes", default={})
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "parameters": dict(self.parameters),
            "parameterInputModes": dict(self.parameter_input_modes),
        }


@dataclass
class Connection:
    """A wire from an output port to an input port or a parameter."""
    id: str
    source_node_id: str
    source_port: str
    target_node_id: str
    target_port: Optional[str] = None
    target_parameter: Optional[str] = None

    @property
    def targets_parameter(self) -> bool:
        return bool(self.target_parameter)

    @property
    def target_name(self) -> Optional[str]:
        return self.target_parameter or self.target_port

    @property
    def target_key(self) -> str:
        """Fan-in key: at most one connection may share it."""
        if self.target_parameter:
            return f"{self.target_node_id}.param:{self.target_parameter}"
        return f"{self.target_node_id}.{self.target_port}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Connection":
        return cls(
            id=data["id"],
            source_node_id=_pick(data, "sourceNodeId", "source_node_id"),
            source_port=_pick(data, "sourcePort", "source_port"),
            target_node_id=_pick(data, "targetNodeId", "target_node_id"),
            target_port=_pick(data, "targetPort", "target_port"),
            target_parameter=_pick(data, "targetParameter", "target_parameter"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "sourceNodeId": self.source_node_id,
            "sourcePort": self.source_port,
            "targetNodeId": self.target_node_id,
        }
        if self.target_parameter:
            data["targetParameter"] = self.target_parameter
        else:
            data["targetPort"] = self.target_port
        return data


@dataclass
class NodeGraph:
    id: str = "graph"
    name: str = "Untitled"
    version: str = GRAPH_VERSION
    nodes: List[NodeInstance] = field(default_factory=list)
    connections: List[Connection] = field(default_factory=list)
    # Optional timeline lanes driving float parameters
    automation: Optional[AutomationState] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeGraph":
        automation = data.get("automation")
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            version=str(data.get("version", "")),
            nodes=[NodeInstance.from_dict(n) for n in data.get("nodes", [])],
            connections=[Connection.from_dict(c) for c in data.get("connections", [])],
            automation=AutomationState.from_dict(automation) if automation else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "nodes": [n.to_dict() for n in self.nodes],
            "connections": [c.to_dict() for c in self.connections],
        }
        if self.automation is not None:
            data["automation"] = self.automation.to_dict()
        return data

    def node_map(self) -> Dict[str, NodeInstance]:
        """Id -> node. The first node wins when ids repeat."""
        nodes: Dict[str, NodeInstance] = {}
        for node in self.nodes:
            nodes.setdefault(node.id, node)
        return nodes

    def get_node(self, node_id: str) -> Optional[NodeInstance]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def incoming(self, node_id: str) -> Iterator[Connection]:
        return (c for c in self.connections if c.target_node_id == node_id)

    def outgoing(self, node_id: str) -> Iterator[Connection]:
        return (c for c in self.connections if c.source_node_id == node_id)
