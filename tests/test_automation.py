import sys
import os
import unittest

# Add parent directory to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

import pytest

from shader_nodes.codegen.automation import (
    automation_function_names,
    emit_curve_eval,
    sanitize_lane_id,
)
from shader_nodes.ir.automation import AutomationCurve, AutomationState
from shader_nodes.ir.graph import NodeGraph
from shader_nodes.planner.changes import detect_changes
from shader_nodes.planner.graph_compiler import NodeShaderCompiler

from graph_builders import (
    assert_compiled,
    automated,
    circle_glow_graph,
    curve,
    lane,
    make_graph,
    node,
    param_link,
    region,
    sample_registry,
    uniform_names,
)

LINEAR_LANE_FUNCTION = """float evalAutomation_lane_1(float t) {
  if (t >= 0.0000000000 && t < 0.0000000000 + 4.0000000000) {
    float localT = t - 0.0000000000;
    float s = localT / 4.0000000000;
    const float lane_lane_1_r0_t[2] = float[2](0.0000000000, 1.0000000000);
    const float lane_lane_1_r0_v[2] = float[2](0.0000000000, 1.0000000000);
    float lane_lane_1_r0_raw = 0.0;
    for (int i = 0; i < 1; i++) {
      if (s >= lane_lane_1_r0_t[i] && s < lane_lane_1_r0_t[i+1]) {
        lane_lane_1_r0_raw = mix(lane_lane_1_r0_v[i], lane_lane_1_r0_v[i+1], (s - lane_lane_1_r0_t[i]) / (lane_lane_1_r0_t[i+1] - lane_lane_1_r0_t[i]));
        break;
      }
    }
    if (s >= lane_lane_1_r0_t[1]) lane_lane_1_r0_raw = lane_lane_1_r0_v[1];
    return clamp(0.0000000000 + lane_lane_1_r0_raw * (1.0000000000 - 0.0000000000), 0.0000000000, 1.0000000000);
  }
  return 0.0000000000;
}"""


def glow_lane(*regions):
    return lane("lane-1", "glow1", "intensity", *(regions or (region("r1", [(0.0, 0.0), (1.0, 1.0)]),)))


class TestAutomationDocument(unittest.TestCase):
    def test_lanes_read_from_graph_document(self):
        """
        Given: a graph document with an automation block in camelCase
        When: it is loaded
        Then: lanes, regions and keyframes are available on the graph
        """
        graph = NodeGraph.from_dict({
            "id": "g",
            "nodes": [{"id": "glow1", "type": "glow"}],
            "connections": [],
            "automation": {
                "bpm": 90,
                "durationSeconds": 12,
                "lanes": [{
                    "id": "lane-1",
                    "nodeId": "glow1",
                    "paramName": "intensity",
                    "regions": [{
                        "id": "r1",
                        "startTime": 2,
                        "duration": 3,
                        "loop": True,
                        "curve": {
                            "keyframes": [{"time": 0, "value": 0.25}, {"time": 1, "value": 0.75}],
                            "interpolation": "stepped",
                        },
                    }],
                }],
            },
        })
        automation = graph.automation
        self.assertEqual(automation.bpm, 90.0)
        self.assertEqual(automation.duration_seconds, 12.0)
        region_ = automation.lane_for("glow1", "intensity").regions[0]
        self.assertEqual(region_.start_time, 2.0)
        self.assertTrue(region_.loop)
        self.assertEqual(region_.curve.interpolation, "stepped")
        self.assertEqual([k.value for k in region_.curve.keyframes], [0.25, 0.75])

        data = graph.to_dict()["automation"]
        self.assertEqual(data["lanes"][0]["regions"][0]["startTime"], 2.0)
        self.assertEqual(data["lanes"][0]["paramName"], "intensity")

    def test_graph_without_automation(self):
        graph = circle_glow_graph()
        self.assertIsNone(graph.automation)
        self.assertNotIn("automation", graph.to_dict())

    def test_unknown_interpolation_is_linear(self):
        self.assertEqual(AutomationCurve.from_dict({"interpolation": "cubic"}).interpolation, "linear")

    def test_lane_lookup_keeps_first(self):
        state = AutomationState(lanes=[lane("a", "n", "x"), lane("b", "n", "x"), lane("c", "m", "y")])
        self.assertEqual(state.lane_for("n", "x").id, "a")
        self.assertIsNone(state.lane_for("n", "y"))
        self.assertEqual([l.id for l in state.lanes_for_node("n")], ["a", "b"])


@pytest.mark.parametrize("lane_id,expected", [
    ("lane-1", "lane_1"),
    ("", "lane"),
    ("3x", "a3x"),
    ("ok_id", "ok_id"),
])
def test_sanitize_lane_id(lane_id, expected):
    assert sanitize_lane_id(lane_id) == expected


class TestCurveEvaluation(unittest.TestCase):
    def test_no_keyframes_is_zero(self):
        self.assertEqual(emit_curve_eval(curve([]), "s", "c"), "float c_raw = 0.0;")

    def test_single_keyframe_is_constant(self):
        self.assertEqual(emit_curve_eval(curve([(0.3, 0.5)]), "s", "c"), "float c_raw = 0.5000000000;")

    def test_keyframes_sorted_by_time(self):
        code = emit_curve_eval(curve([(1.0, 0.0), (0.0, 1.0), (0.5, 0.2)]), "s", "c")
        self.assertIn("const float c_t[3] = float[3](0.0000000000, 0.5000000000, 1.0000000000);", code)
        self.assertIn("const float c_v[3] = float[3](1.0000000000, 0.2000000000, 0.0000000000);", code)

    def test_stepped_holds_left_value(self):
        code = emit_curve_eval(curve([(0.0, 0.0), (0.5, 1.0), (1.0, 0.5)], "stepped"), "s", "c")
        self.assertIn("for (int i = 0; i < 2; i++) {", code)
        self.assertIn("    c_raw = c_v[i];", code)
        self.assertIn("if (s >= c_t[2]) c_raw = c_v[2];", code)
        self.assertNotIn("mix(", code)

    def test_bezier_uses_hermite_basis(self):
        code = emit_curve_eval(curve([(0.0, 0.0), (0.5, 1.0), (1.0, 0.5)], "bezier"), "s", "c")
        self.assertIn("float h01 = -2.0*t3 + 3.0*t2, h11 = t3 - t2;", code)
        self.assertIn("float m1 = (i+2 < 3) ? (c_v[i+2] - c_v[i]) / (c_t[i+2] - c_t[i] + 1e-9)", code)
        self.assertIn("c_raw = h00*c_v[i] + h10*dm0 + h01*c_v[i+1] + h11*dm1;", code)


class TestAutomationNames(unittest.TestCase):
    def setUp(self):
        self.registry = sample_registry()

    def test_only_float_parameters_of_existing_nodes(self):
        graph = automated(
            make_graph([node("glow1", "glow"), node("ray", "generic-raymarcher")]),
            lane("a", "glow1", "intensity"),
            lane("b", "ray", "raymarchSteps"),
            lane("c", "missing", "intensity"),
            lane("d", "glow1", "nope"),
        )
        self.assertEqual(automation_function_names(graph, self.registry),
                         {"glow1.intensity": "evalAutomation_a"})

    def test_first_lane_per_parameter_wins(self):
        graph = automated(make_graph([node("glow1", "glow")]),
                          lane("a", "glow1", "intensity"), lane("b", "glow1", "intensity"))
        with self.assertLogs("shader_nodes.codegen.automation", level="WARNING") as logs:
            names = automation_function_names(graph, self.registry)
        self.assertEqual(names, {"glow1.intensity": "evalAutomation_a"})
        self.assertIn("glow1.intensity", logs.output[0])

    def test_colliding_lane_ids_get_distinct_names(self):
        graph = automated(make_graph([node("g1", "glow"), node("g2", "glow")]),
                          lane("a-b", "g1", "intensity"), lane("a_b", "g2", "intensity"))
        names = automation_function_names(graph, self.registry)
        self.assertEqual(names["g1.intensity"], "evalAutomation_a_b")
        self.assertNotEqual(names["g2.intensity"], "evalAutomation_a_b")
        self.assertTrue(names["g2.intensity"].startswith("evalAutomation_a_b"))


class TestAutomationCodegen(unittest.TestCase):
    def setUp(self):
        self.compiler = NodeShaderCompiler(sample_registry())

    def compile(self, graph):
        result = self.compiler.compile(graph)
        assert_compiled(result)
        return result

    def test_automated_parameter_reads_timeline(self):
        """
        Given: circle -> glow -> output with a lane on glow1.intensity
        When: the graph is compiled
        Then: the parameter reads the lane function at uTimelineTime instead of a uniform
        """
        result = self.compile(automated(circle_glow_graph(), glow_lane()))
        code = result.shader_code

        self.assertIn(LINEAR_LANE_FUNCTION, code)
        self.assertIn(
            "node_glow1_out = vec3(glowCurve(node_circle1_out) * evalAutomation_lane_1(uTimelineTime));",
            code,
        )
        self.assertEqual(code.count("uniform float uTimelineTime;"), 1)
        self.assertNotIn("uglow1Intensity", code)
        self.assertNotIn("uglow1Intensity", uniform_names(result))
        self.assertNotIn("uTimelineTime", uniform_names(result))
        self.assertLess(code.index("float evalAutomation_lane_1("), code.index("float glowCurve("))

    def test_timeline_uniform_declared_without_automation(self):
        code = self.compile(circle_glow_graph()).shader_code
        self.assertIn("uniform float uTimelineTime;", code)
        self.assertNotIn("evalAutomation_", code)

    def test_range_follows_parameter_bounds(self):
        graph = automated(make_graph([node("ball", "sphere-sdf")]),
                          lane("rad", "ball", "radius", region("r1", [(0.0, 0.5)])))
        code = self.compile(graph).shader_code
        self.assertIn(
            "return clamp(0.0000000000 + lane_rad_r0_raw * (2.0000000000 - 0.0000000000), 0.0000000000, 2.0000000000);",
            code,
        )
        self.assertIn("float r = evalAutomation_rad(uTimelineTime) + 0.0;", code)

    def test_regions_in_start_order(self):
        graph = automated(circle_glow_graph(), glow_lane(
            region("late", [(0.0, 1.0)], start=8.0, duration=2.0, loop=True),
            region("early", [(0.0, 0.0), (1.0, 1.0)], start=1.0, duration=2.0),
        ))
        code = self.compile(graph).shader_code
        early = code.index("if (t >= 1.0000000000 && t < 1.0000000000 + 2.0000000000) {")
        late = code.index("if (t >= 8.0000000000) {")
        self.assertLess(early, late)
        self.assertIn("float localT = mod(t - 8.0000000000, 2.0000000000);", code)
        self.assertIn("float lane_lane_1_r1_raw = 1.0000000000;", code)

    def test_empty_and_zero_length_regions_skipped(self):
        graph = automated(circle_glow_graph(), glow_lane(
            region("empty", [], start=0.0),
            region("flat", [(0.0, 1.0)], start=1.0, duration=0.0),
        ))
        with self.assertLogs("shader_nodes.codegen.automation", level="WARNING") as logs:
            code = self.compile(graph).shader_code
        self.assertIn("float evalAutomation_lane_1(float t) {\n  return 0.0000000000;\n}", code)
        self.assertTrue(any("'flat'" in line for line in logs.output))

    def test_connection_combines_with_automation(self):
        graph = automated(
            make_graph(
                [node("c", "constant"), node("glow1", "glow", modes={"intensity": "multiply"})],
                [param_link("p", "c", "out", "glow1", "intensity")],
            ),
            glow_lane(),
        )
        code = self.compile(graph).shader_code
        self.assertIn("(evalAutomation_lane_1(uTimelineTime) * node_c_out)", code)

    def test_override_connection_beats_automation(self):
        graph = automated(
            make_graph(
                [node("c", "constant"), node("glow1", "glow", modes={"intensity": "override"})],
                [param_link("p", "c", "out", "glow1", "intensity")],
            ),
            glow_lane(),
        )
        code = self.compile(graph).shader_code
        self.assertIn("node_glow1_out = vec3(glowCurve(0.0) * node_c_out);", code)

    def test_helper_reading_automated_parameter_is_node_specific(self):
        graph = automated(make_graph([node("p1", "pulse")]),
                          lane("spd", "p1", "speed"))
        code = self.compile(graph).shader_code
        self.assertIn("float pulse_p1(float t) {", code)
        self.assertIn("sin(t * evalAutomation_spd(uTimelineTime))", code)
        self.assertIn("node_p1_out = pulse_p1(uTime);", code)

    def test_lane_on_integer_parameter_ignored(self):
        graph = automated(make_graph([node("ray", "generic-raymarcher")]),
                          lane("steps", "ray", "raymarchSteps"))
        result = self.compile(graph)
        self.assertNotIn("evalAutomation_", result.shader_code)
        self.assertIn("urayRaymarchSteps", uniform_names(result))


class TestAutomationChanges(unittest.TestCase):
    def test_curve_edit_marks_driven_node(self):
        old = automated(circle_glow_graph(), glow_lane())
        new = automated(circle_glow_graph(), glow_lane(region("r1", [(0.0, 0.0), (1.0, 0.5)])))
        changes = detect_changes(old, new)
        self.assertEqual(changes.changed, {"glow1"})
        self.assertEqual(changes.affected, {"glow1", "out"})

    def test_adding_first_lane_marks_node(self):
        changes = detect_changes(circle_glow_graph(), automated(circle_glow_graph(), glow_lane()))
        self.assertEqual(changes.changed, {"glow1"})

    def test_recompile_after_curve_edit(self):
        compiler = NodeShaderCompiler(sample_registry())
        first = compiler.compile(automated(circle_glow_graph(), glow_lane()))
        second = compiler.compile(automated(
            circle_glow_graph(), glow_lane(region("r1", [(0.0, 0.0), (1.0, 0.5)]))))
        assert_compiled(second)
        self.assertNotEqual(first.shader_code, second.shader_code)
        self.assertIn("float[2](0.0000000000, 0.5000000000)", second.shader_code)


if __name__ == '__main__':
    unittest.main()
