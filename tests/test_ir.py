import sys
import os
import unittest

# Add parent directory to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest

from shader_nodes.errors import UnknownNodeTypeError
from shader_nodes.ir.graph import Connection, NodeGraph, NodeInstance
from shader_nodes.ir.spec import NodeSpec, NodeSpecRegistry
from shader_nodes.ir.types import DataType, as_float_parameter, can_promote, promote, zero_literal
from shader_nodes.nodes import create_registry


class TestDataTypes(unittest.TestCase):
    def test_from_string(self):
        self.assertEqual(DataType.from_string("vec3"), DataType.VEC3)
        self.assertEqual(DataType.from_string("FLOAT"), DataType.FLOAT)
        with self.assertRaises(ValueError):
            DataType.from_string("mat5")

    def test_str_is_glsl_name(self):
        self.assertEqual(str(DataType.VEC4), "vec4")
        self.assertEqual(str(DataType.INT), "int")

    def test_promotion_closure(self):
        """Widening only: scalar -> vector, shorter -> longer vector."""
        self.assertTrue(can_promote(DataType.FLOAT, DataType.VEC4))
        self.assertTrue(can_promote(DataType.VEC2, DataType.VEC3))
        self.assertTrue(can_promote(DataType.VEC3, DataType.VEC3))
        self.assertFalse(can_promote(DataType.VEC4, DataType.FLOAT))
        self.assertFalse(can_promote(DataType.INT, DataType.VEC3))
        self.assertFalse(can_promote(DataType.INT, DataType.FLOAT))

    def test_promote_expressions(self):
        self.assertEqual(promote("x", DataType.FLOAT, DataType.VEC4), "vec4(x, x, x, x)")
        self.assertEqual(promote("v", DataType.VEC2, DataType.VEC3), "vec3(v.x, v.y, 0.0)")
        self.assertEqual(promote("v", DataType.VEC3, DataType.VEC4), "vec4(v.x, v.y, v.z, 1.0)")
        self.assertEqual(promote("v", DataType.VEC3, DataType.VEC3), "v")
        with self.assertRaises(TypeError):
            promote("v", DataType.VEC4, DataType.FLOAT)

    def test_parameter_reduction(self):
        self.assertEqual(as_float_parameter("i", DataType.INT), "float(i)")
        self.assertEqual(as_float_parameter("v", DataType.VEC3), "v.x")
        self.assertEqual(as_float_parameter("f", DataType.FLOAT), "f")

    def test_zero_literals(self):
        self.assertEqual(zero_literal(DataType.INT), "0")
        self.assertEqual(zero_literal(DataType.BOOL), "false")
        self.assertEqual(zero_literal(DataType.VEC2), "vec2(0.0)")
        self.assertEqual(zero_literal(DataType.FLOAT), "0.0")


class TestGraphModel(unittest.TestCase):
    def test_from_dict_camel_case(self):
        graph = NodeGraph.from_dict({
            "id": "g",
            "name": "Graph",
            "version": "2.0",
            "nodes": [{"id": "a", "type": "constant", "parameters": {"value": 2.0},
                       "parameterInputModes": {"value": "add"}}],
            "connections": [{"id": "c", "sourceNodeId": "a", "sourcePort": "out",
                             "targetNodeId": "b", "targetParameter": "radius"}],
        })
        self.assertEqual(graph.nodes[0].parameters, {"value": 2.0})
        self.assertEqual(graph.nodes[0].parameter_input_modes, {"value": "add"})
        conn = graph.connections[0]
        self.assertTrue(conn.targets_parameter)
        self.assertEqual(conn.target_key, "b.param:radius")

    def test_missing_identity_reads_as_empty(self):
        graph = NodeGraph.from_dict({"nodes": [], "connections": []})
        self.assertEqual(graph.id, "")
        self.assertEqual(graph.name, "")

    def test_round_trip_through_dict(self):
        graph = NodeGraph(
            nodes=[NodeInstance("a", "constant", {"value": 1.0})],
            connections=[Connection("c", "a", "out", "b", target_port="in")],
        )
        again = NodeGraph.from_dict(graph.to_dict())
        self.assertEqual(again, graph)

    def test_node_map_first_wins(self):
        graph = NodeGraph(nodes=[NodeInstance("a", "constant"), NodeInstance("a", "uv")])
        self.assertEqual(graph.node_map()["a"].type, "constant")


class TestNodeSpecs(unittest.TestCase):
    def setUp(self):
        self.registry = create_registry()

    def test_builtin_kinds_registered(self):
        for type_id in ("final-output", "swizzle", "audio-file-input", "audio-analyzer",
                        "generic-raymarcher"):
            self.assertIn(type_id, self.registry)

    def test_unknown_kind_raises(self):
        with self.assertRaises(UnknownNodeTypeError):
            self.registry["no-such-node"]
        # Also a KeyError for mapping-style callers
        with self.assertRaises(KeyError):
            self.registry["no-such-node"]

    def test_dynamic_outputs_follow_instance(self):
        spec = self.registry["audio-analyzer"]
        analyzer = NodeInstance("an", "audio-analyzer", {"frequencyBands": [[20, 200], [200, 2000], [2000, 8000]]})
        names = [p.name for p in spec.outputs_for(analyzer)]
        self.assertEqual(names, ["remap", "band0", "band1", "band2"])

    def test_dynamic_outputs_default_from_spec(self):
        spec = self.registry["audio-analyzer"]
        names = [p.name for p in spec.outputs_for(NodeInstance("an", "audio-analyzer"))]
        self.assertEqual(names, ["remap", "band0"])

    def test_runtime_only(self):
        self.assertTrue(self.registry.is_runtime_only("audio-analyzer", "smoothing"))
        self.assertFalse(self.registry.is_runtime_only("swizzle", "swizzle"))

    def test_from_dict_fallback_parameters(self):
        spec = NodeSpec.from_dict({
            "id": "shape",
            "inputs": [{"name": "center", "type": "vec2", "fallbackParameter": "cx, cy"}],
            "outputs": [{"name": "out", "type": "float"}],
            "parameters": {"cx": {"type": "float"}, "cy": {"type": "float"}},
        })
        self.assertEqual(spec.get_input("center").fallback_parameters(), ["cx", "cy"])
        self.assertEqual(spec.label, "shape")

    def test_from_dict_fallback_expression(self):
        spec = NodeSpec.from_dict({
            "id": "march",
            "inputs": [
                {"name": "in", "type": "vec2"},
                {"name": "rd", "type": "vec3", "fallbackExpression": "normalize(vec3($input.in, -1.0))"},
            ],
        })
        self.assertEqual(spec.get_input("rd").fallback_expression, "normalize(vec3($input.in, -1.0))")
        self.assertIsNone(spec.get_input("in").fallback_expression)

    def test_extended_replaces_by_id(self):
        replacement = NodeSpec(id="swizzle", display_name="Custom Swizzle")
        registry = self.registry.extended([replacement])
        self.assertEqual(registry["swizzle"].display_name, "Custom Swizzle")
        self.assertEqual(len(registry), len(self.registry))


def test_registry_from_dicts():
    registry = NodeSpecRegistry.from_dicts([{"id": "a"}, {"id": "b"}])
    assert sorted(registry) == ["a", "b"]


@pytest.mark.parametrize("name", ["vec2", "vec3", "vec4"])
def test_vector_component_counts(name):
    dtype = DataType.from_string(name)
    assert dtype.is_vector()
    assert dtype.component_count() == int(name[-1])
