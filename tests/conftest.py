"""
Pytest configuration and shared fixtures for Shader Nodes tests.

Shared fixtures for the sample registry, compilers and graphs.

Usage:
    pytest tests/ -v
"""

import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

from graph_builders import circle_glow_graph, make_graph, sample_registry


# =============================================================================
# PYTEST FIXTURES
# =============================================================================

@pytest.fixture
def registry():
    """Built-in node kinds plus the sample effect catalog."""
    return sample_registry()


@pytest.fixture
def compiler(registry):
    """
    A NodeShaderCompiler over the sample registry.

    Example:
        def test_something(compiler, simple_graph):
            result = compiler.compile(simple_graph)
    """
    from shader_nodes.planner.graph_compiler import NodeShaderCompiler
    return NodeShaderCompiler(registry)


@pytest.fixture
def graph_compiler(compiler):
    """A cached GraphCompiler wrapping the sample compiler."""
    from shader_nodes.planner.graph_compiler import GraphCompiler
    return GraphCompiler(compiler)


@pytest.fixture
def empty_graph():
    """A graph with no nodes and no connections."""
    return make_graph([])


@pytest.fixture
def simple_graph():
    """
    Creates circle -> glow -> final output.

    Nodes:
        circle1: circle (center from centerX/centerY parameters)
        glow1:   glow, fed by circle1.out
        out:     final-output, fed by glow1.out (vec3)
    """
    return circle_glow_graph()

