# Generic SDF raymarcher
#
# Marches a ray through whatever distance field is wired into 'sdf'. The
# compiler replaces $sdf_call with a call to a function evaluating that
# field at a vec3 point, and $displacement_at_p with the displacement
# source evaluated at the current sample position (vec3(0.0) when none).
# 'out' is an accumulated glow; 'color' is the hit colour with step fog.

from ..ir.spec import NodeSpec, PortSpec, ParameterSpec
from ..ir.types import DataType

RAYMARCH_MAIN_CODE = """vec3 ro = $input.ro;
vec3 rd = normalize($input.rd);

float steps = float($param.raymarchSteps);
steps = clamp(steps, 16.0, 200.0);
float glowMult = $param.glowIntensity * $param.brightness;

mediump float t = 0.0;
mediump vec4 acc = vec4(0.0);

for (int i = 0; i < 200; i++) {
  if (float(i) >= steps) break;
  mediump vec3 pos = ro + rd * t;
  mediump vec3 posDisplaced = pos + $displacement_at_p;
  mediump float d = $sdf_call;
  if (d < 0.001) {
    mediump vec3 ip = ro + rd * t;
    mediump vec3 hitColor = vec3(
      0.7 + 0.3 * sin(ip.z/8.0 + ip.x/2.0),
      0.6 + 0.3 * cos(ip.z/8.0 + ip.y/2.0),
      0.5 + 0.4 * sin(ip.z/8.0 + ip.x)
    );
    float fog = float(i) / steps;
    $output.color = hitColor - vec3(fog, fog, fog);
    acc += (cos(d / 0.1 + vec4(0.0, 2.0, 4.0, 0.0)) + 1.0) / 0.001 * max(t, 0.01) * glowMult;
    t += 0.001;
    break;
  }
  acc += (cos(d / 0.1 + vec4(0.0, 2.0, 4.0, 0.0)) + 1.0) / d * max(t, 0.01) * glowMult;
  t += d;
  if (t > 100.0) break;
}

float norm = length(acc.rgb);
float div = 200.0 / max(glowMult, 0.1);
$output.out += clamp(norm / div, 0.0, 1.0);"""

GENERIC_RAYMARCHER_SPEC = NodeSpec(
    id="generic-raymarcher",
    category="SDF",
    display_name="Raymarch",
    inputs=(
        PortSpec("in", DataType.VEC2, label="UV"),
        PortSpec("sdf", DataType.FLOAT, label="SDF"),
        PortSpec("displacement", DataType.VEC3, label="Displacement"),
        PortSpec("ro", DataType.VEC3, label="Ray origin",
                 fallback_parameter="cameraRoX,cameraRoY,cameraRoZ"),
        PortSpec("rd", DataType.VEC3, label="Ray direction",
                 fallback_expression="normalize(vec3($input.in, -1.0))"),
    ),
    outputs=(
        PortSpec("out", DataType.FLOAT, label="Glow"),
        PortSpec("color", DataType.VEC3, label="Color"),
    ),
    parameters={
        "raymarchSteps": ParameterSpec(DataType.INT, default=64, min=16, max=200),
        "glowIntensity": ParameterSpec(DataType.FLOAT, default=0.3, min=0.0, max=2.0),
        "brightness": ParameterSpec(DataType.FLOAT, default=1.0, min=0.0, max=3.0),
        "cameraRoX": ParameterSpec(DataType.FLOAT, default=0.0, min=-10.0, max=10.0, input_mode="override"),
        "cameraRoY": ParameterSpec(DataType.FLOAT, default=0.0, min=-10.0, max=10.0, input_mode="override"),
        "cameraRoZ": ParameterSpec(DataType.FLOAT, default=3.0, min=-10.0, max=10.0, input_mode="override"),
    },
    main_code=RAYMARCH_MAIN_CODE,
)
