# Vector utility nodes
#
# Swizzle's body is produced by the swizzle emitter from the 'swizzle'
# string parameter; main_code here is only the pass-through template.

from ..ir.spec import NodeSpec, PortSpec, ParameterSpec
from ..ir.types import DataType

SWIZZLE_SPEC = NodeSpec(
    id="swizzle",
    category="Utilities",
    display_name="Swizzle",
    inputs=(PortSpec("in", DataType.VEC4),),
    outputs=(PortSpec("out", DataType.VEC4),),
    parameters={
        "swizzle": ParameterSpec(DataType.STRING, default="xyzw"),
    },
    main_code="$output.out = $input.in;",
)
