# Node-kind Emitters Package
# Generators for node kinds whose body is not a plain template substitution

from .registry import get_emitter

__all__ = ['get_emitter']
