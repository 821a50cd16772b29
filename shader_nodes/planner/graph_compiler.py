"""
Graph compilation: node graph -> GLSL ES 3.00 fragment shader.

NodeShaderCompiler runs the pipeline

    validate -> sort -> type-check -> name variables -> name uniforms
    -> collect/dedup functions -> automation functions -> main code
    -> final colour -> uniform liveness -> uniform metadata -> warnings
    -> assemble

and aborts with an empty shader at the first stage that reports errors.

GraphCompiler sits in front of it with a result cache, so re-submitting an
unchanged graph (the editor does this on every UI refresh) costs one hash.

Caching Strategy:
- Cache key is a sha256 of the graph's full content and the allowed
  external source ids
- On a miss, the graph is diffed against the previously compiled one and
  an incremental compile is attempted before falling back to a full one
"""

import copy
import hashlib
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..codegen.automation import AutomationGenerator, automation_function_names
from ..codegen.functions import FunctionGenerator
from ..codegen.glsl import BLACK, MainCodeGenerator, assemble_shader
from ..codegen.naming import VariableNameGenerator
from ..codegen.shader_context import CompileState
from ..codegen.uniforms import UniformGenerator, UniformMetadata
from ..config import CompilerConfig, DEFAULT_CONFIG
from ..errors import CompilationError, CycleError
from ..ir.graph import NodeGraph
from ..ir.spec import NodeSpecRegistry
from ..nodes import create_registry
from .analysis import GraphAnalyzer
from .changes import detect_changes
from .type_validator import TypeValidator
from .validator import GraphValidator

logger = logging.getLogger(__name__)

EMPTY_GRAPH_WARNING = "[WARNING] Empty graph - outputting black"


@dataclass
class CompilationMetadata:
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    execution_order: List[str] = field(default_factory=list)
    final_output_node_id: Optional[str] = None
    # Typed error objects behind `errors`, for callers that want node ids
    issues: List[CompilationError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "executionOrder": list(self.execution_order),
            "finalOutputNodeId": self.final_output_node_id,
        }


@dataclass
class CompilationResult:
    shader_code: str = ""
    uniforms: List[UniformMetadata] = field(default_factory=list)
    metadata: CompilationMetadata = field(default_factory=CompilationMetadata)

    @property
    def ok(self) -> bool:
        return not self.metadata.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shaderCode": self.shader_code,
            "uniforms": [u.to_dict() for u in self.uniforms],
            "metadata": self.metadata.to_dict(),
        }


class NodeShaderCompiler:
    """
    Compiles one node graph into a fragment shader plus its uniform list.

    Stateless between calls; every compile builds a fresh CompileState.
    """
    def __init__(self, registry: Optional[NodeSpecRegistry] = None,
                 config: CompilerConfig = DEFAULT_CONFIG):
        if registry is None:
            registry = create_registry()
        self.registry = registry
        self.config = config
        self.validator = GraphValidator(registry, config)
        self.analyzer = GraphAnalyzer(config)
        self.type_validator = TypeValidator(registry, config)
        self.variable_names = VariableNameGenerator(registry, config)
        self.uniform_generator = UniformGenerator(registry, config)

    def compile(self, graph: NodeGraph,
                virtual_source_ids: Optional[Iterable[str]] = None) -> CompilationResult:
        """
        Compile a graph.

        Args:
            graph: Graph snapshot; never mutated
            virtual_source_ids: Externally-driven source ids (audio signals)
                that connections may use as sources

        Returns:
            CompilationResult; on error shader_code is '' and uniforms empty
        """
        start = time.perf_counter()
        virtual_ids = list(virtual_source_ids or ())
        metadata = CompilationMetadata()

        if not graph.nodes:
            metadata.warnings.append(EMPTY_GRAPH_WARNING)
            return CompilationResult(assemble_shader("", [], "", "", BLACK), [], metadata)

        self.validator.validate_graph(graph, metadata.errors, metadata.warnings,
                                      virtual_ids, metadata.issues)
        if metadata.errors:
            return self._abort(metadata)

        try:
            order = self.analyzer.topological_sort(graph)
        except CycleError as e:
            metadata.errors.append(e.tagged())
            metadata.issues.append(e)
            return self._abort(metadata)
        metadata.execution_order = self.analyzer.virtual_sources_first(order, graph)

        metadata.errors.extend(
            self.type_validator.validate_types(graph, virtual_ids, metadata.issues)
        )
        if metadata.errors:
            return self._abort(metadata)

        result = self._generate(graph, metadata, virtual_ids)
        logger.debug(
            f"Compiled graph '{graph.id}': {len(graph.nodes)} nodes, "
            f"{len(result.uniforms)} uniforms in {(time.perf_counter() - start) * 1000:.2f}ms"
        )
        return result

    def compile_incremental(self, graph: NodeGraph, previous_result: Optional[CompilationResult],
                            affected_node_ids: Iterable[str],
                            virtual_source_ids: Optional[Iterable[str]] = None) -> Optional[CompilationResult]:
        """
        Recompile after an edit that touched `affected_node_ids`.

        Returns None to ask for a full compile: no usable previous result,
        too many affected nodes, invalid or cyclic graph, a changed node
        count, or affected nodes that changed relative order.
        """
        if previous_result is None or previous_result.metadata.errors:
            return None
        if not graph.nodes:
            return None

        affected = set(affected_node_ids)
        if len(affected) > self.config.incremental_threshold * len(graph.nodes):
            logger.debug(f"Incremental compile declined: {len(affected)}/{len(graph.nodes)} nodes affected")
            return None

        virtual_ids = list(virtual_source_ids or ())
        metadata = CompilationMetadata()
        self.validator.validate_graph(graph, metadata.errors, metadata.warnings,
                                      virtual_ids, metadata.issues)
        if metadata.errors:
            return None

        try:
            order = self.analyzer.topological_sort(graph)
        except CycleError:
            return None
        order = self.analyzer.virtual_sources_first(order, graph)

        previous_order = previous_result.metadata.execution_order
        if len(order) != len(previous_order):
            return None
        if [n for n in order if n in affected] != [n for n in previous_order if n in affected]:
            logger.debug("Incremental compile declined: affected nodes reordered")
            return None

        if self.type_validator.validate_types(graph, virtual_ids):
            return None

        metadata.execution_order = order
        try:
            return self._generate(graph, metadata, virtual_ids)
        except (CompilationError, TypeError) as e:
            logger.warning(f"Incremental compile failed, falling back to full compile: {e}")
            return None

    def _abort(self, metadata: CompilationMetadata) -> CompilationResult:
        for error in metadata.errors:
            logger.debug(error)
        return CompilationResult("", [], metadata)

    def _generate(self, graph: NodeGraph, metadata: CompilationMetadata,
                  virtual_ids: List[str]) -> CompilationResult:
        state = CompileState(graph, self.registry, self.config, virtual_ids)
        state.execution_order = list(metadata.execution_order)

        state.variable_names = self.variable_names.generate_variable_names(graph)
        state.array_names = self.variable_names.generate_array_names(graph)
        state.uniform_names = self.uniform_generator.generate_uniform_name_mapping(graph, virtual_ids)
        state.automation_names = automation_function_names(graph, self.registry)

        functions, _ = FunctionGenerator(state).collect_and_deduplicate_functions()
        automation_functions = AutomationGenerator(state).generate_automation_functions()

        main_generator = MainCodeGenerator(state)
        declarations, main_code = main_generator.generate_main_code()
        # Emitter-generated definitions may call helpers and must follow them
        functions = "\n\n".join(part for part in [functions] + state.generated_functions if part)
        final_node_id = main_generator.find_final_output_node()
        final_color = main_generator.generate_final_color_variable(final_node_id)
        metadata.final_output_node_id = final_node_id

        always_live = self.uniform_generator.always_live(graph, state.uniform_names, virtual_ids)
        used = self.uniform_generator.find_used_uniforms(
            main_code, functions, state.uniform_names, always_live
        )
        uniforms = self.uniform_generator.generate_uniform_metadata(
            graph, state.uniform_names, used, virtual_ids
        )

        metadata.warnings.extend(self.disconnected_node_warnings(graph))

        shader_code = assemble_shader(functions, uniforms, declarations, main_code, final_color,
                                      automation_functions)
        return CompilationResult(shader_code, uniforms, metadata)

    def disconnected_node_warnings(self, graph: NodeGraph) -> List[str]:
        connected = set()
        for conn in graph.connections:
            connected.add(conn.source_node_id)
            connected.add(conn.target_node_id)
        return [
            f"[WARNING] Node '{node.id}' ({node.type}) has no connections"
            for node in graph.nodes if node.id not in connected
        ]


class ResultCache:
    """
    Compiled results keyed by graph hash, oldest-used dropped first.

    Keys are the sha256 hex digests from GraphCompiler; only their first
    eight characters are logged.
    """

    def __init__(self, capacity: int = 16):
        self.capacity = max(1, capacity)
        self._results: "OrderedDict[str, CompilationResult]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def lookup(self, graph_hash: str) -> Optional[CompilationResult]:
        result = self._results.get(graph_hash)
        if result is None:
            self._misses += 1
            logger.debug(f"Shader compile CACHE MISS (hash={graph_hash[:8]}...)")
            return None
        self._results.move_to_end(graph_hash)
        self._hits += 1
        logger.debug(f"Shader compile CACHE HIT (hash={graph_hash[:8]}...)")
        return result

    def store(self, graph_hash: str, result: CompilationResult) -> None:
        self._results[graph_hash] = result
        self._results.move_to_end(graph_hash)
        while len(self._results) > self.capacity:
            evicted, _ = self._results.popitem(last=False)
            self._evictions += 1
            logger.debug(f"Evicted compiled shader (hash={evicted[:8]}...)")

    def discard(self, graph_hash: str) -> bool:
        return self._results.pop(graph_hash, None) is not None

    def clear(self) -> None:
        self._results.clear()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        return len(self._results)

    def stats(self) -> Dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            'size': len(self._results),
            'capacity': self.capacity,
            'hits': self._hits,
            'misses': self._misses,
            'evictions': self._evictions,
            'hit_rate': (self._hits / lookups * 100) if lookups else 0,
        }


class GraphCompiler:
    """
    Compiles node graphs to shaders with caching.

    Example:
        compiler = GraphCompiler()
        result = compiler.compile(graph)
        # Second call with same graph is cached
        result = compiler.compile(graph)
    """

    def __init__(self, compiler: Optional[NodeShaderCompiler] = None,
                 registry: Optional[NodeSpecRegistry] = None,
                 config: CompilerConfig = DEFAULT_CONFIG):
        self.compiler = compiler or NodeShaderCompiler(registry, config)
        self.config = self.compiler.config
        self._cache = ResultCache(capacity=self.config.cache_capacity)
        self._last_graph: Optional[NodeGraph] = None
        self._last_result: Optional[CompilationResult] = None
        self._last_virtual_ids: List[str] = []
        self._incremental = 0
        self._full = 0

    def compile(self, graph: NodeGraph,
                virtual_source_ids: Optional[Iterable[str]] = None) -> CompilationResult:
        virtual_ids = sorted(set(virtual_source_ids or ()))
        graph_hash = self._compute_graph_hash(graph, virtual_ids)

        cached = self._cache.lookup(graph_hash)
        if cached is not None:
            return cached

        result = None
        if self._last_result is not None and virtual_ids == self._last_virtual_ids:
            changes = detect_changes(self._last_graph, graph, self.compiler.analyzer)
            if not changes.is_structural:
                result = self.compiler.compile_incremental(
                    graph, self._last_result, changes.affected, virtual_ids
                )
        if result is not None:
            self._incremental += 1
        else:
            result = self.compiler.compile(graph, virtual_ids)
            self._full += 1

        self._cache.store(graph_hash, result)
        if result.ok:
            # Snapshot: callers may keep editing the graph object in place
            self._last_graph = copy.deepcopy(graph)
            self._last_result = result
            self._last_virtual_ids = virtual_ids
        return result

    def _compute_graph_hash(self, graph: NodeGraph, virtual_ids: List[str]) -> str:
        payload = json.dumps(
            {"graph": graph.to_dict(), "virtualSources": virtual_ids},
            sort_keys=True, default=str,
        )
        return hashlib.sha256(payload.encode()).hexdigest()

    def invalidate(self, graph: NodeGraph,
                   virtual_source_ids: Optional[Iterable[str]] = None) -> bool:
        """
        Invalidate cache for a specific graph.

        Returns:
            True if cache entry was removed, False if not found
        """
        virtual_ids = sorted(set(virtual_source_ids or ()))
        return self._cache.discard(self._compute_graph_hash(graph, virtual_ids))

    def clear_cache(self) -> None:
        """Clear the cache and forget the last compiled graph."""
        self._cache.clear()
        self._last_graph = None
        self._last_result = None
        self._last_virtual_ids = []
        logger.debug("GraphCompiler cache cleared")

    def stats(self) -> Dict[str, Any]:
        stats = self._cache.stats()
        stats['incremental_compiles'] = self._incremental
        stats['full_compiles'] = self._full
        return stats


# Singleton instance for convenience
_global_compiler: Optional[GraphCompiler] = None


def get_compiler() -> GraphCompiler:
    """Get the global GraphCompiler instance."""
    global _global_compiler
    if _global_compiler is None:
        _global_compiler = GraphCompiler()
    return _global_compiler


def compile_graph(graph: NodeGraph,
                  virtual_source_ids: Optional[Iterable[str]] = None) -> CompilationResult:
    """Compile a graph using the global compiler."""
    return get_compiler().compile(graph, virtual_source_ids)
