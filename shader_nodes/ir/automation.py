"""
Timeline automation attached to a graph.

A lane drives one float parameter of one node. Its regions sit on the
timeline in seconds; each region plays a curve whose keyframe times are
normalised to the region (0 at its start, 1 at its end).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

INTERPOLATIONS = ("linear", "stepped", "bezier")


@dataclass
class AutomationKeyframe:
    time: float
    value: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AutomationKeyframe":
        return cls(time=float(data.get("time", 0.0)), value=float(data.get("value", 0.0)))

    def to_dict(self) -> Dict[str, Any]:
        return {"time": self.time, "value": self.value}


@dataclass
class AutomationCurve:
    keyframes: List[AutomationKeyframe] = field(default_factory=list)
    interpolation: str = "linear"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AutomationCurve":
        data = data or {}
        interpolation = data.get("interpolation") or "linear"
        if interpolation not in INTERPOLATIONS:
            interpolation = "linear"
        return cls(
            keyframes=[AutomationKeyframe.from_dict(k) for k in data.get("keyframes") or []],
            interpolation=interpolation,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyframes": [k.to_dict() for k in self.keyframes],
            "interpolation": self.interpolation,
        }

    def sorted_keyframes(self) -> List[AutomationKeyframe]:
        return sorted(self.keyframes, key=lambda k: k.time)


@dataclass
class AutomationRegion:
    id: str
    start_time: float = 0.0
    duration: float = 0.0
    loop: bool = False
    curve: AutomationCurve = field(default_factory=AutomationCurve)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AutomationRegion":
        return cls(
            id=str(data.get("id", "")),
            start_time=float(data.get("startTime", data.get("start_time", 0.0))),
            duration=float(data.get("duration", 0.0)),
            loop=bool(data.get("loop", False)),
            curve=AutomationCurve.from_dict(data.get("curve")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "startTime": self.start_time,
            "duration": self.duration,
            "loop": self.loop,
            "curve": self.curve.to_dict(),
        }


@dataclass
class AutomationLane:
    id: str
    node_id: str
    param_name: str
    regions: List[AutomationRegion] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AutomationLane":
        return cls(
            id=str(data.get("id", "")),
            node_id=data.get("nodeId", data.get("node_id")),
            param_name=data.get("paramName", data.get("param_name")),
            regions=[AutomationRegion.from_dict(r) for r in data.get("regions") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "nodeId": self.node_id,
            "paramName": self.param_name,
            "regions": [r.to_dict() for r in self.regions],
        }


@dataclass
class AutomationState:
    bpm: float = 120.0
    duration_seconds: float = 0.0
    lanes: List[AutomationLane] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AutomationState":
        return cls(
            bpm=float(data.get("bpm", 120.0)),
            duration_seconds=float(data.get("durationSeconds", data.get("duration_seconds", 0.0))),
            lanes=[AutomationLane.from_dict(lane) for lane in data.get("lanes") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bpm": self.bpm,
            "durationSeconds": self.duration_seconds,
            "lanes": [lane.to_dict() for lane in self.lanes],
        }

    def lane_for(self, node_id: str, param_name: str) -> Optional[AutomationLane]:
        """The first lane driving `node_id.param_name`; later duplicates are ignored."""
        for lane in self.lanes:
            if lane.node_id == node_id and lane.param_name == param_name:
                return lane
        return None

    def lanes_for_node(self, node_id: str) -> List[AutomationLane]:
        return [lane for lane in self.lanes if lane.node_id == node_id]
