from enum import Enum, auto
from typing import Dict, FrozenSet

class DataType(Enum):
    # Scalars
    FLOAT = auto()
    INT = auto()
    BOOL = auto()

    # Vectors
    VEC2 = auto()
    VEC3 = auto()
    VEC4 = auto()

    # Parameter-only types, resolved at compile time and never uniforms
    STRING = auto()
    ARRAY = auto()

    @classmethod
    def from_string(cls, name: str) -> "DataType":
        """Parse a catalog type string ('float', 'vec3', ...)."""
        if isinstance(name, DataType):
            return name
        try:
            return cls[str(name).upper()]
        except KeyError:
            raise ValueError(f"Unknown data type: {name}")

    def is_vector(self):
        return self in {DataType.VEC2, DataType.VEC3, DataType.VEC4}

    def is_numeric(self):
        """True for types a value connection can carry."""
        return self in {DataType.FLOAT, DataType.INT,
                        DataType.VEC2, DataType.VEC3, DataType.VEC4}

    def is_compile_time(self):
        """String and array parameters are inlined, never bound as uniforms."""
        return self in {DataType.STRING, DataType.ARRAY}

    def component_count(self):
        if self == DataType.VEC2: return 2
        if self == DataType.VEC3: return 3
        if self == DataType.VEC4: return 4
        return 1

    def __str__(self):
        return self.name.lower()


# Implicit widening allowed across a connection (exact match is always allowed)
PROMOTIONS: Dict[DataType, FrozenSet[DataType]] = {
    DataType.FLOAT: frozenset({DataType.VEC2, DataType.VEC3, DataType.VEC4}),
    DataType.VEC2: frozenset({DataType.VEC3, DataType.VEC4}),
    DataType.VEC3: frozenset({DataType.VEC4}),
}

# Source types a float parameter input accepts
PARAMETER_SOURCE_TYPES = frozenset({
    DataType.FLOAT, DataType.INT, DataType.VEC2, DataType.VEC3, DataType.VEC4,
})


def can_promote(source: DataType, target: DataType) -> bool:
    if source == target:
        return True
    return target in PROMOTIONS.get(source, frozenset())


def promote(expr: str, source: DataType, target: DataType) -> str:
    """
    Wrap a GLSL expression so a value of `source` type reads as `target`.

    Raises:
        TypeError: if the pair is not in the promotion closure
    """
    if source == target:
        return expr
    v = expr
    if source == DataType.FLOAT:
        if target == DataType.VEC2: return f"vec2({v}, {v})"
        if target == DataType.VEC3: return f"vec3({v}, {v}, {v})"
        if target == DataType.VEC4: return f"vec4({v}, {v}, {v}, {v})"
    elif source == DataType.VEC2:
        if target == DataType.VEC3: return f"vec3({v}.x, {v}.y, 0.0)"
        if target == DataType.VEC4: return f"vec4({v}.x, {v}.y, 0.0, 1.0)"
    elif source == DataType.VEC3:
        if target == DataType.VEC4: return f"vec4({v}.x, {v}.y, {v}.z, 1.0)"
    raise TypeError(f"Cannot promote {source} to {target}")


def as_float_parameter(expr: str, source: DataType) -> str:
    """Reduce a connected source to the float a parameter input expects."""
    if source == DataType.FLOAT:
        return expr
    if source == DataType.INT:
        return f"float({expr})"
    return f"{expr}.x"


def zero_literal(dtype: DataType) -> str:
    """Type-appropriate zero used for unconnected inputs and declarations."""
    if dtype == DataType.INT: return "0"
    if dtype == DataType.BOOL: return "false"
    if dtype == DataType.VEC2: return "vec2(0.0)"
    if dtype == DataType.VEC3: return "vec3(0.0)"
    if dtype == DataType.VEC4: return "vec4(0.0)"
    return "0.0"
