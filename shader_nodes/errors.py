"""
Custom exceptions for the Shader Nodes compiler.

Compilation stages collect findings as tagged message strings ("[ERROR] ...")
in the result metadata. The exception classes below are the typed form of
those findings: the analyzer raises CycleError directly, and every error
string in a CompilationResult is mirrored by an instance in
``metadata.issues`` so callers can dispatch on the kind of failure.

Exception Hierarchy:
    ShaderNodesError (base)
    ├── CompilationError
    │   ├── StructuralError
    │   ├── CycleError
    │   └── PortTypeError (also a TypeError)
    └── RegistryError
        └── UnknownNodeTypeError
"""

from typing import List, Optional


class ShaderNodesError(Exception):
    """Base exception for all Shader Nodes errors."""
    pass


# =============================================================================
# Compilation Errors
# =============================================================================

class CompilationError(ShaderNodesError):
    """
    Base exception for graph compilation errors.

    Attributes:
        node_id: Node the finding is about, if any
        connection_id: Connection the finding is about, if any
    """

    def __init__(self, message: str, node_id: Optional[str] = None,
                 connection_id: Optional[str] = None):
        super().__init__(message)
        self.node_id = node_id
        self.connection_id = connection_id

    @property
    def message(self) -> str:
        return self.args[0] if self.args else ""

    def tagged(self) -> str:
        """Format as the tagged string stored in result metadata."""
        return f"[ERROR] {self.message}"


class StructuralError(CompilationError):
    """
    Raised for malformed graphs: missing id or name, wrong version,
    duplicate ids, unknown node types, dangling or duplicate connections.
    """

    def __init__(self, message: str, node_id: Optional[str] = None,
                 connection_id: Optional[str] = None,
                 conflicting_ids: Optional[List[str]] = None):
        super().__init__(message, node_id=node_id, connection_id=connection_id)
        self.conflicting_ids = conflicting_ids or []


class CycleError(CompilationError):
    """
    Raised when the connection graph is not a DAG.

    Attributes:
        unresolved: Node ids that could not be scheduled
    """

    def __init__(self, message: str, unresolved: Optional[List[str]] = None):
        super().__init__(message)
        self.unresolved = unresolved or []

    def tagged(self) -> str:
        return f"[ERROR] Circular Dependency: {self.message}"


class PortTypeError(CompilationError, TypeError):
    """
    Raised when a connection joins incompatible types or references a
    port or parameter the node kind does not have.
    """

    def __init__(self, message: str, source: Optional[str] = None,
                 target: Optional[str] = None, connection_id: Optional[str] = None):
        super().__init__(message, connection_id=connection_id)
        self.source = source
        self.target = target


# =============================================================================
# Registry Errors
# =============================================================================

class RegistryError(ShaderNodesError):
    """Base exception for node catalog errors."""
    pass


class UnknownNodeTypeError(RegistryError, KeyError):
    """Raised when a node type id is not registered."""

    def __init__(self, type_id: str):
        super().__init__(f"Unknown node type: {type_id}")
        self.type_id = type_id

    def __str__(self):
        return self.args[0]
