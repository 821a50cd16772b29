from .functions import FunctionGenerator, extract_functions
from .glsl import MainCodeGenerator, assemble_shader
from .naming import VariableNameGenerator
from .uniforms import UniformGenerator, UniformMetadata
