from typing import Iterable

from ..ir.spec import NodeSpec, NodeSpecRegistry
from .output import FINAL_OUTPUT_SPEC
from .vector import SWIZZLE_SPEC
from .audio import AUDIO_FILE_INPUT_SPEC, AUDIO_ANALYZER_SPEC
from .raymarcher import GENERIC_RAYMARCHER_SPEC

# Node kinds the compiler refers to by name
BUILTIN_SPECS = [
    FINAL_OUTPUT_SPEC,
    SWIZZLE_SPEC,
    AUDIO_FILE_INPUT_SPEC,
    AUDIO_ANALYZER_SPEC,
    GENERIC_RAYMARCHER_SPEC,
]


def create_registry(specs: Iterable[NodeSpec] = ()) -> NodeSpecRegistry:
    """Registry of the built-in kinds plus `specs` (which may replace them)."""
    return NodeSpecRegistry(BUILTIN_SPECS).extended(specs)
