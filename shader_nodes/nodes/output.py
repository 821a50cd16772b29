# Terminal output node
#
# The compiler reads the source connected to 'in' as the fragment colour.
# It emits no body of its own.

from ..ir.spec import NodeSpec, PortSpec
from ..ir.types import DataType
from ..config import TERMINAL_TYPE

FINAL_OUTPUT_SPEC = NodeSpec(
    id=TERMINAL_TYPE,
    category="Output",
    display_name="Final Output",
    inputs=(PortSpec("in", DataType.VEC3, label="Color"),),
    outputs=(),
    main_code="",
)
