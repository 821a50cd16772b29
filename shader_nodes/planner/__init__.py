from .validator import GraphValidator
from .type_validator import TypeValidator
from .analysis import GraphAnalyzer
from .changes import ChangeSet, detect_changes
from .graph_compiler import (
    CompilationMetadata,
    CompilationResult,
    GraphCompiler,
    NodeShaderCompiler,
    compile_graph,
    get_compiler,
)
