# Emitter Registry
# Maps node type -> emitter function

from typing import Callable, Dict, Optional

from ...config import CompilerConfig, DEFAULT_CONFIG
from ..shader_context import ShaderContext

# Emitter signature: (ctx: ShaderContext) -> str
EmitterType = Callable[[ShaderContext], str]

from .vector import emit_swizzle
from .raymarcher import emit_generic_raymarcher
from .sources import emit_virtual_source, emit_terminal


# Registry mapping node type to emitter function
EMITTER_REGISTRY: Dict[str, EmitterType] = {
    # Vector
    'swizzle': emit_swizzle,
    # SDF
    'generic-raymarcher': emit_generic_raymarcher,
}


def get_emitter(node_type: str, config: CompilerConfig = DEFAULT_CONFIG) -> Optional[EmitterType]:
    """
    Get emitter function for a node type, or None if its main_code template
    is used as is. Virtual-source and terminal kinds come from the config.
    """
    if config.is_virtual_source_type(node_type):
        return emit_virtual_source
    if node_type == config.terminal_type:
        return emit_terminal
    return EMITTER_REGISTRY.get(node_type)


__all__ = ['EMITTER_REGISTRY', 'get_emitter']
