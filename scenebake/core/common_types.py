import enum
import typing
import numpy as np

vec2i32: typing.TypeAlias = tuple[
    int,
    int,
]

vec3i32: typing.TypeAlias = tuple[
    int,
    int,
    int,
]

vec2f32: typing.TypeAlias = tuple[
    float,
    float,
]

vec3f32: typing.TypeAlias = tuple[
    float,
    float,
    float,
]

vec4f32: typing.TypeAlias = tuple[
    float,
    float,
    float,
    float,
]

# Quaternions are stored (x, y, z, w), the pyrr convention.
quatf32: typing.TypeAlias = vec4f32

IDENTITY_QUATERNION: quatf32 = (0.0, 0.0, 0.0, 1.0)
ZERO_VECTOR: vec3f32 = (0.0, 0.0, 0.0)
UNIT_SCALE: vec3f32 = (1.0, 1.0, 1.0)
OPAQUE_WHITE: vec4f32 = (1.0, 1.0, 1.0, 1.0)

class VertexLayout(enum.Enum):
    # BASIC matches the plain FBX viewer vertex, PBR adds the tangent frame used for normal mapping.
    BASIC = "basic"
    PBR = "pbr"

class VertexAttributeSpec(typing.NamedTuple):
    name: str
    components: int
    shader_input: str

# IMPORTANT: Field order here is the byte layout shared with the GPU vertex input.
# Changing it requires changing the viewer shader inputs as well.
_VERTEX_ATTRIBUTES: dict[VertexLayout, tuple[VertexAttributeSpec, ...]] = {
    VertexLayout.BASIC: (
        VertexAttributeSpec(name="position", components=3, shader_input="inPosition"),
        VertexAttributeSpec(name="color", components=4, shader_input="inColor"),
        VertexAttributeSpec(name="normal", components=3, shader_input="inNormal"),
        VertexAttributeSpec(name="uv", components=2, shader_input="inUV"),
    ),
    VertexLayout.PBR: (
        VertexAttributeSpec(name="position", components=3, shader_input="inPosition"),
        VertexAttributeSpec(name="color", components=4, shader_input="inColor"),
        VertexAttributeSpec(name="normal", components=3, shader_input="inNormal"),
        VertexAttributeSpec(name="tangent", components=3, shader_input="inTangent"),
        VertexAttributeSpec(name="bitangent", components=3, shader_input="inBitangent"),
        VertexAttributeSpec(name="uv", components=2, shader_input="inUV"),
    ),
}

def vertex_attributes(layout: VertexLayout) -> tuple[VertexAttributeSpec, ...]:
    return _VERTEX_ATTRIBUTES[layout]

def vertex_dtype(layout: VertexLayout) -> np.dtype:
    """
    Packed structured dtype for one vertex record.
    All components are little-endian float32 with no padding between fields,
    so `array.tobytes()` is exactly what the vertex buffer expects.
    """
    return np.dtype([(spec.name, "<f4", (spec.components,)) for spec in _VERTEX_ATTRIBUTES[layout]])

def vertex_format(layout: VertexLayout) -> str:
    # moderngl buffer format, e.g. "3f 4f 3f 2f"
    return " ".join(f"{spec.components}f" for spec in _VERTEX_ATTRIBUTES[layout])

class TextureFormat(enum.Enum):
    # Only 1, 2 and 4 channel 8-bit layouts exist on the device side; 3-channel images get expanded.
    R8_UNORM = 1
    R8G8_UNORM = 2
    R8G8B8A8_UNORM = 4

    @property
    def components(self) -> int:
        return self.value
