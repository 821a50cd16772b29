"""
Audio source nodes.

These are virtual-source node kinds: the host's audio driver writes their
output values into uniforms every frame, and the compiler only copies
those uniforms into the nodes' output variables. The analyzer's band
outputs are dynamic: one ``band<i>`` output per entry of its
``frequencyBands`` parameter.
"""

from ..ir.spec import NodeSpec, PortSpec, ParameterSpec, DynamicOutputs
from ..ir.types import DataType

AUDIO_FILE_INPUT_SPEC = NodeSpec(
    id="audio-file-input",
    category="Audio",
    display_name="Audio File",
    inputs=(),
    outputs=(
        PortSpec("currentTime", DataType.FLOAT, label="Current Time"),
        PortSpec("duration", DataType.FLOAT, label="Duration"),
        PortSpec("isPlaying", DataType.FLOAT, label="Is Playing"),
    ),
    parameters={
        "filePath": ParameterSpec(DataType.STRING, default=""),
        "autoPlay": ParameterSpec(DataType.INT, default=0, min=0, max=1),
    },
    runtime_only=frozenset({"autoPlay"}),
)

AUDIO_ANALYZER_SPEC = NodeSpec(
    id="audio-analyzer",
    category="Audio",
    display_name="Audio Analyzer",
    inputs=(PortSpec("audioFile", DataType.FLOAT, label="Audio File"),),
    outputs=(PortSpec("remap", DataType.FLOAT, label="Remap"),),
    dynamic_outputs=DynamicOutputs(parameter="frequencyBands", prefix="band"),
    parameters={
        "frequencyBands": ParameterSpec(DataType.ARRAY, default=[[20, 20000]]),
        "smoothing": ParameterSpec(DataType.FLOAT, default=0.8, min=0.0, max=1.0),
        "fftSize": ParameterSpec(DataType.INT, default=4096, min=256, max=8192),
        "inMin": ParameterSpec(DataType.FLOAT, default=0.0),
        "inMax": ParameterSpec(DataType.FLOAT, default=1.0),
        "outMin": ParameterSpec(DataType.FLOAT, default=0.0),
        "outMax": ParameterSpec(DataType.FLOAT, default=1.0),
    },
    runtime_only=frozenset({"smoothing", "fftSize", "inMin", "inMax", "outMin", "outMax"}),
)
