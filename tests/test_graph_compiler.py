"""
Tests for incremental recompilation, the GraphCompiler cache and logging.
"""

import sys
import os
import io
import logging
import unittest

# Add parent directory to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

from shader_nodes.logger import LOGGER_NAME, log_warning, setup_logger
from shader_nodes.planner.graph_compiler import (
    CompilationMetadata,
    CompilationResult,
    GraphCompiler,
    NodeShaderCompiler,
    ResultCache,
)

from graph_builders import assert_compiled, circle_glow_graph, link, make_graph, node, sample_registry


def five_node_graph(speed=1.0):
    """circle1 -> glow1 -> out, plus an isolated time node and constant."""
    graph = circle_glow_graph()
    graph.nodes.append(node("time1", "time", speed=speed))
    graph.nodes.append(node("k1", "constant"))
    return graph


def isolated_constants():
    return make_graph([node(i, "constant") for i in ("a", "b", "c", "d")])


class TestIncrementalCompile(unittest.TestCase):
    def setUp(self):
        self.compiler = NodeShaderCompiler(sample_registry())

    def test_requires_previous_result(self):
        self.assertIsNone(self.compiler.compile_incremental(circle_glow_graph(), None, {"glow1"}))

    def test_failed_previous_result_declines(self):
        previous = CompilationResult(metadata=CompilationMetadata(errors=["[ERROR] boom"]))
        self.assertIsNone(self.compiler.compile_incremental(circle_glow_graph(), previous, {"glow1"}))

    def test_too_many_affected_nodes(self):
        graph = circle_glow_graph()
        previous = self.compiler.compile(graph)
        self.assertIsNone(self.compiler.compile_incremental(graph, previous, {"glow1", "out"}))

    def test_node_count_changed(self):
        previous = self.compiler.compile(circle_glow_graph())
        graph = circle_glow_graph()
        graph.nodes.append(node("k1", "constant"))
        self.assertIsNone(self.compiler.compile_incremental(graph, previous, {"k1"}))

    def test_affected_nodes_reordered(self):
        """
        Given a previous order in which b ran before a
        When a and b are recompiled and now sort as a, b
        Then the incremental compile declines
        """
        previous = CompilationResult(
            metadata=CompilationMetadata(execution_order=["b", "a", "c", "d"])
        )
        graph = isolated_constants()
        self.assertIsNone(self.compiler.compile_incremental(graph, previous, {"a", "b"}))

    def test_accepted_matches_full_compile(self):
        graph = isolated_constants()
        previous = CompilationResult(
            metadata=CompilationMetadata(execution_order=["b", "a", "c", "d"])
        )
        result = self.compiler.compile_incremental(graph, previous, {"c"})
        self.assertIsNotNone(result)
        assert_compiled(result)
        full = self.compiler.compile(graph)
        self.assertEqual(result.shader_code, full.shader_code)
        self.assertEqual(result.metadata.execution_order, full.metadata.execution_order)

    def test_cycle_declines(self):
        previous = self.compiler.compile(isolated_constants())
        graph = make_graph(
            [node("a", "tint"), node("b", "tint"), node("c", "constant"), node("d", "constant")],
            [link("ab", "a", "out", "b", "color"), link("ba", "b", "out", "a", "color")],
        )
        self.assertIsNone(self.compiler.compile_incremental(graph, previous, {"a"}))


class TestGraphCompiler(unittest.TestCase):
    def setUp(self):
        self.compiler = GraphCompiler(NodeShaderCompiler(sample_registry()))

    def test_cache_hit_returns_same_result(self):
        graph = circle_glow_graph()
        first = self.compiler.compile(graph)
        second = self.compiler.compile(circle_glow_graph())
        self.assertIs(first, second)
        stats = self.compiler.stats()
        self.assertEqual(stats['hits'], 1)
        self.assertEqual(stats['misses'], 1)
        self.assertEqual(stats['full_compiles'], 1)

    def test_virtual_sources_are_part_of_the_key(self):
        graph = circle_glow_graph()
        first = self.compiler.compile(graph)
        second = self.compiler.compile(graph, ["audio-signal:kick"])
        self.assertIsNot(first, second)
        self.assertEqual(self.compiler.stats()['misses'], 2)

    def test_parameter_edit_compiles_incrementally(self):
        """
        Given a compiled five-node graph
        When an isolated node's parameter changes
        Then the recompile takes the incremental path and matches a full compile
        """
        self.compiler.compile(five_node_graph())
        result = self.compiler.compile(five_node_graph(speed=3.0))

        assert_compiled(result)
        stats = self.compiler.stats()
        self.assertEqual(stats['incremental_compiles'], 1)
        self.assertEqual(stats['full_compiles'], 1)
        full = NodeShaderCompiler(sample_registry()).compile(five_node_graph(speed=3.0))
        self.assertEqual(result.shader_code, full.shader_code)

    def test_structural_edit_compiles_fully(self):
        self.compiler.compile(five_node_graph())
        graph = five_node_graph()
        graph.nodes.pop()
        self.compiler.compile(graph)
        self.assertEqual(self.compiler.stats()['full_compiles'], 2)
        self.assertEqual(self.compiler.stats()['incremental_compiles'], 0)

    def test_in_place_edits_are_seen(self):
        graph = five_node_graph()
        first = self.compiler.compile(graph)
        graph.nodes[3].parameters["speed"] = 5.0
        second = self.compiler.compile(graph)
        self.assertIsNot(first, second)

    def test_invalidate(self):
        graph = circle_glow_graph()
        self.compiler.compile(graph)
        self.assertTrue(self.compiler.invalidate(graph))
        self.assertFalse(self.compiler.invalidate(graph))
        self.assertEqual(self.compiler.stats()['size'], 0)

    def test_clear_cache(self):
        self.compiler.compile(circle_glow_graph())
        self.compiler.clear_cache()
        stats = self.compiler.stats()
        self.assertEqual(stats['size'], 0)
        self.assertEqual(stats['hits'], 0)
        self.compiler.compile(five_node_graph())
        self.assertEqual(self.compiler.stats()['incremental_compiles'], 0)

    def test_failed_compiles_are_not_a_baseline(self):
        bad = make_graph([node("x", "warp-drive")])
        result = self.compiler.compile(bad)
        self.assertFalse(result.ok)
        self.compiler.compile(circle_glow_graph())
        self.assertEqual(self.compiler.stats()['full_compiles'], 2)


class TestResultCache(unittest.TestCase):
    def test_least_recently_used_is_evicted(self):
        """
        Given a two-slot cache holding a and b, with a looked up last
        When c is stored
        Then b is dropped and the eviction is counted
        """
        first, second, third = (CompilationResult(shader_code=s) for s in ("a", "b", "c"))
        cache = ResultCache(capacity=2)
        cache.store("a" * 64, first)
        cache.store("b" * 64, second)
        cache.lookup("a" * 64)
        cache.store("c" * 64, third)
        self.assertIsNone(cache.lookup("b" * 64))
        self.assertIs(cache.lookup("a" * 64), first)
        self.assertEqual(len(cache), 2)
        self.assertEqual(cache.stats()['evictions'], 1)

    def test_stats(self):
        cache = ResultCache(capacity=4)
        cache.store("a" * 64, CompilationResult())
        cache.lookup("a" * 64)
        cache.lookup("f" * 64)
        stats = cache.stats()
        self.assertEqual((stats['hits'], stats['misses']), (1, 1))
        self.assertEqual(stats['hit_rate'], 50.0)

    def test_hits_and_misses_are_logged(self):
        cache = ResultCache(capacity=4)
        cache.store("0123456789abcdef", CompilationResult())
        with self.assertLogs("shader_nodes", level="DEBUG") as logs:
            cache.lookup("0123456789abcdef")
            cache.lookup("fedcba9876543210")
        self.assertIn("CACHE HIT (hash=01234567...)", logs.output[0])
        self.assertIn("CACHE MISS (hash=fedcba98...)", logs.output[1])

    def test_discard(self):
        cache = ResultCache()
        cache.store("a" * 64, CompilationResult())
        self.assertTrue(cache.discard("a" * 64))
        self.assertFalse(cache.discard("a" * 64))


class TestLogger(unittest.TestCase):
    def tearDown(self):
        logger = logging.getLogger(LOGGER_NAME)
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)

    def test_format(self):
        stream = io.StringIO()
        setup_logger(logging.WARNING, stream=stream)
        log_warning("shader fell back to black")
        self.assertEqual(stream.getvalue(), "[ShaderNodes] [WARNING] shader fell back to black\n")

    def test_module_loggers_share_handler(self):
        stream = io.StringIO()
        setup_logger(logging.DEBUG, stream=stream)
        logging.getLogger("shader_nodes.codegen.glsl").warning("child message")
        self.assertIn("[ShaderNodes] [WARNING] child message", stream.getvalue())

    def test_setup_is_idempotent(self):
        setup_logger(logging.INFO, stream=io.StringIO())
        logger = setup_logger(logging.INFO, stream=io.StringIO())
        self.assertEqual(len(logger.handlers), 1)


if __name__ == '__main__':
    unittest.main()
