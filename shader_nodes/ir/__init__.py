from .types import DataType, can_promote, promote, zero_literal
from .graph import NodeGraph, NodeInstance, Connection
from .spec import PortSpec, ParameterSpec, DynamicOutputs, NodeSpec, NodeSpecRegistry
from .automation import AutomationState, AutomationLane, AutomationRegion, AutomationCurve, AutomationKeyframe
