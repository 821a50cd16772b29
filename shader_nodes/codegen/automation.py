"""
Timeline automation functions.

Every lane that drives a float parameter becomes one GLSL function

    float evalAutomation_<lane>(float t)

evaluated at ``uTimelineTime``. Inside, each region (by start time) tests
whether ``t`` falls in it, maps ``t`` to the region's normalised time
``s``, evaluates the curve and scales the raw value into the parameter's
[min, max] range (0 and 1 when the ParameterSpec gives none). Outside every region
the function returns min.

The automated parameter's expression becomes the function call; see
params.parameter_expressions for how it meets a connected input.
"""

import logging
import re
from typing import Dict, List, Optional

from ..ir.automation import AutomationCurve, AutomationLane
from ..ir.graph import NodeGraph
from ..ir.spec import NodeSpecRegistry, ParameterSpec
from ..ir.types import DataType
from .const import format_array_value
from .naming import NameAllocator

logger = logging.getLogger(__name__)

AUTOMATION_UNIFORM = "uTimelineTime"

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def sanitize_lane_id(lane_id: str) -> str:
    lane = _NON_ALNUM.sub("_", str(lane_id))
    if not lane:
        lane = "lane"
    if lane[0].isdigit():
        lane = "a" + lane
    return lane


def automation_call(function_name: str) -> str:
    return f"{function_name}({AUTOMATION_UNIFORM})"


def _automatable(graph: NodeGraph, registry: NodeSpecRegistry,
                 lane: AutomationLane) -> Optional[ParameterSpec]:
    node = graph.get_node(lane.node_id)
    if node is None:
        return None
    spec = registry.get(node.type)
    if spec is None:
        return None
    param = spec.get_parameter(lane.param_name)
    if param is None or param.type != DataType.FLOAT:
        return None
    return param


def automation_function_names(graph: NodeGraph, registry: NodeSpecRegistry) -> Dict[str, str]:
    """
    "node.param" -> evalAutomation_<lane> for every automated float parameter.

    Lanes on missing nodes or on non-float parameters are ignored. When two
    lanes drive the same parameter the first one wins.
    """
    if graph.automation is None:
        return {}
    allocator = NameAllocator()
    names: Dict[str, str] = {}
    for lane in graph.automation.lanes:
        if _automatable(graph, registry, lane) is None:
            logger.debug(f"Automation lane '{lane.id}' targets no float parameter; ignored")
            continue
        key = f"{lane.node_id}.{lane.param_name}"
        if key in names:
            logger.warning(f"Parameter {key} has more than one automation lane; using the first")
            continue
        names[key] = allocator.allocate(key, f"evalAutomation_{sanitize_lane_id(lane.id)}")
    return names


def emit_curve_eval(curve: AutomationCurve, s_var: str, prefix: str) -> str:
    """
    Statements that leave the curve's raw value at `s_var` in `<prefix>_raw`.

    Before the first keyframe the value stays 0.0; from the last one on it
    holds the last keyframe's value.
    """
    keyframes = curve.sorted_keyframes()
    raw = f"{prefix}_raw"
    if not keyframes:
        return f"float {raw} = 0.0;"
    if len(keyframes) == 1:
        return f"float {raw} = {format_array_value(keyframes[0].value)};"

    n = len(keyframes)
    t = f"{prefix}_t"
    v = f"{prefix}_v"
    times = ", ".join(format_array_value(k.time) for k in keyframes)
    values = ", ".join(format_array_value(k.value) for k in keyframes)
    seg_t = f"({s_var} - {t}[i]) / ({t}[i+1] - {t}[i])"

    lines = [
        f"const float {t}[{n}] = float[{n}]({times});",
        f"const float {v}[{n}] = float[{n}]({values});",
        f"float {raw} = 0.0;",
        f"for (int i = 0; i < {n - 1}; i++) {{",
        f"  if ({s_var} >= {t}[i] && {s_var} < {t}[i+1]) {{",
    ]
    if curve.interpolation == "stepped":
        lines.append(f"    {raw} = {v}[i];")
    elif curve.interpolation == "bezier":
        # Cubic Hermite with finite-difference tangents
        lines.extend([
            f"    float segT = {seg_t};",
            f"    float segDur = ({t}[i+1] - {t}[i]);",
            f"    float m0 = (i > 0) ? ({v}[i+1] - {v}[i-1]) / ({t}[i+1] - {t}[i-1] + 1e-9)"
            f" : ({v}[i+1] - {v}[i]) / ({t}[i+1] - {t}[i] + 1e-9);",
            f"    float m1 = (i+2 < {n}) ? ({v}[i+2] - {v}[i]) / ({t}[i+2] - {t}[i] + 1e-9)"
            f" : ({v}[i+1] - {v}[i]) / ({t}[i+1] - {t}[i] + 1e-9);",
            "    float dm0 = m0 * segDur; float dm1 = m1 * segDur;",
            "    float t2 = segT*segT, t3 = t2*segT;",
            "    float h00 = 2.0*t3 - 3.0*t2 + 1.0, h10 = t3 - 2.0*t2 + segT;",
            "    float h01 = -2.0*t3 + 3.0*t2, h11 = t3 - t2;",
            f"    {raw} = h00*{v}[i] + h10*dm0 + h01*{v}[i+1] + h11*dm1;",
        ])
    else:
        lines.append(f"    {raw} = mix({v}[i], {v}[i+1], {seg_t});")
    lines.extend([
        "    break;",
        "  }",
        "}",
        f"if ({s_var} >= {t}[{n - 1}]) {raw} = {v}[{n - 1}];",
    ])
    return "\n".join(lines)


class AutomationGenerator:
    """
    Generates the evalAutomation_* functions for one compile.
    """
    def __init__(self, state):
        self.state = state

    def lane_function(self, lane: AutomationLane, function_name: str, param: ParameterSpec) -> str:
        lo = format_array_value(param.min if param.min is not None else 0.0)
        hi = format_array_value(param.max if param.max is not None else 1.0)
        lane_id = function_name[len("evalAutomation_"):]

        lines = [f"float {function_name}(float t) {{"]
        regions = sorted(lane.regions, key=lambda r: r.start_time)
        for i, region in enumerate(regions):
            if not region.curve.keyframes:
                continue
            if region.duration <= 0:
                logger.warning(f"Automation region '{region.id}' on lane '{lane.id}' has no duration; skipped")
                continue
            start = format_array_value(region.start_time)
            duration = format_array_value(region.duration)
            prefix = f"lane_{lane_id}_r{i}"
            if region.loop:
                condition = f"t >= {start}"
                local_t = f"mod(t - {start}, {duration})"
            else:
                condition = f"t >= {start} && t < {start} + {duration}"
                local_t = f"t - {start}"
            curve = emit_curve_eval(region.curve, "s", prefix)
            lines.extend([
                f"  if ({condition}) {{",
                f"    float localT = {local_t};",
                f"    float s = localT / {duration};",
                "\n".join("    " + line for line in curve.split("\n")),
                f"    return clamp({lo} + {prefix}_raw * ({hi} - {lo}), {lo}, {hi});",
                "  }",
            ])
        lines.extend([f"  return {lo};", "}"])
        return "\n".join(lines)

    def generate_automation_functions(self) -> str:
        state = self.state
        automation = state.graph.automation
        if automation is None or not state.automation_names:
            return ""
        functions: List[str] = []
        for lane in automation.lanes:
            key = f"{lane.node_id}.{lane.param_name}"
            name = state.automation_names.get(key)
            if name is None or automation.lane_for(lane.node_id, lane.param_name) is not lane:
                continue
            param = _automatable(state.graph, state.registry, lane)
            functions.append(self.lane_function(lane, name, param))
        return "\n\n".join(functions)
