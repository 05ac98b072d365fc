import typing
import numpy as np
import pytest
from scenebake.scene.source import SourceScene, SourceNode, SourceMesh, SourceMaterial, SourceTexture, MaterialPartition, VertexAttribute

def build_mesh(positions: typing.Sequence[typing.Sequence[float]], polygons: typing.Sequence[typing.Sequence[int]], **kwargs: typing.Any) -> SourceMesh:
    # Positions are a shared pool indexed per corner, like a parser would hand them over.
    # Any other stream can be passed per corner (normal=[...], color=[...], uv=[...]).
    corners: list[int] = [index for polygon in polygons for index in polygon]
    faces: list[tuple[int, int]] = []
    begin: int = 0
    for polygon in polygons:
        faces.append((begin, len(polygon)))
        begin += len(polygon)

    streams: dict[str, VertexAttribute] = {}
    for name in ("color", "normal", "tangent", "bitangent", "uv"):
        if name in kwargs:
            streams[f"vertex_{name}"] = VertexAttribute.per_corner(kwargs.pop(name))

    return SourceMesh(
        faces=faces,
        vertex_position=VertexAttribute(values=np.asarray(positions, dtype=np.float64), indices=np.asarray(corners, dtype=np.int64)),
        **streams,
        **kwargs,
    )

@pytest.fixture
def make_mesh() -> typing.Callable[..., SourceMesh]:
    return build_mesh

@pytest.fixture
def quad_mesh() -> SourceMesh:
    # Unit square in the XY plane, one face, uniform normal.
    return build_mesh(
        positions=[(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 1.0, 0.0)],
        polygons=[(0, 1, 2, 3)],
        normal=[(0.0, 0.0, 1.0)] * 4,
    )

@pytest.fixture
def brick_material() -> SourceMaterial:
    return SourceMaterial(name="brick", base_color_texture=SourceTexture(filename="brick.png", relative_filename="textures/brick.png"))

@pytest.fixture
def two_material_mesh(brick_material: SourceMaterial) -> SourceMesh:
    # Two triangles, one per material.
    return build_mesh(
        positions=[(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (1.0, 1.0, 0.0)],
        polygons=[(0, 1, 2), (1, 3, 2)],
        materials=[brick_material, SourceMaterial(name="plain")],
        material_parts=[
            MaterialPartition(material_index=0, face_indices=[0]),
            MaterialPartition(material_index=1, face_indices=[1]),
        ],
    )

# ---------------------------------------------------------------------------------------------
# Recording stand-ins for the moderngl objects the upload and draw steps touch.
# ---------------------------------------------------------------------------------------------

class FakeBuffer:
    def __init__(self, data: bytes) -> None:
        self.data: bytes = data
        self.released: bool = False

    def release(self) -> None:
        self.released = True

class FakeTexture:
    def __init__(self, size: tuple[int, int], components: int, data: bytes) -> None:
        self.size: tuple[int, int] = size
        self.components: int = components
        self.data: bytes = data
        self.mipmaps: bool = False
        self.locations: list[int] = []
        self.released: bool = False

    def build_mipmaps(self) -> None:
        self.mipmaps = True

    def use(self, location: int = 0) -> None:
        self.locations.append(location)

    def release(self) -> None:
        self.released = True

class FakeUniform:
    def __init__(self) -> None:
        self.data: bytes | None = None

    def write(self, data: bytes) -> None:
        self.data = data

class FakeProgram:
    # Supports `name in program`, `program[name].write(...)` and `program[name] = value`.
    def __init__(self, names: typing.Iterable[str]) -> None:
        self.names: set[str] = set(names)
        self.uniforms: dict[str, FakeUniform] = {}
        self.values: dict[str, typing.Any] = {}

    def __contains__(self, name: str) -> bool:
        return name in self.names

    def __getitem__(self, name: str) -> FakeUniform:
        return self.uniforms.setdefault(name, FakeUniform())

    def __setitem__(self, name: str, value: typing.Any) -> None:
        self.values[name] = value

class FakeVertexArray:
    def __init__(self, ctx: "FakeContext", program: FakeProgram, content: list[tuple[typing.Any, ...]], index_buffer: typing.Any, index_element_size: int) -> None:
        self.ctx: FakeContext = ctx
        self.program: FakeProgram = program
        self.content: list[tuple[typing.Any, ...]] = content
        self.index_buffer: typing.Any = index_buffer
        self.index_element_size: int = index_element_size
        self.released: bool = False

    def render(self, mode: int) -> None:
        model = self.program.uniforms.get("uTransformModel")
        self.ctx.renders.append({
            "vertex_array": self,
            "mode": mode,
            "model": model.data if model is not None else None,
            "has_color_texture": self.program.values.get("uHasColorTexture"),
        })

    def release(self) -> None:
        self.released = True

class FakeContext:
    def __init__(self) -> None:
        self.buffers: list[FakeBuffer] = []
        self.textures: list[FakeTexture] = []
        self.vertex_arrays: list[FakeVertexArray] = []
        self.renders: list[dict[str, typing.Any]] = []

    def buffer(self, data: bytes) -> FakeBuffer:
        self.buffers.append(FakeBuffer(data))
        return self.buffers[-1]

    def texture(self, size: tuple[int, int], components: int, data: bytes) -> FakeTexture:
        self.textures.append(FakeTexture(size, components, data))
        return self.textures[-1]

    def vertex_array(self, program: FakeProgram, content: list[tuple[typing.Any, ...]], index_buffer: typing.Any = None, index_element_size: int = 4) -> FakeVertexArray:
        self.vertex_arrays.append(FakeVertexArray(self, program, content, index_buffer, index_element_size))
        return self.vertex_arrays[-1]

@pytest.fixture
def fake_ctx() -> FakeContext:
    return FakeContext()

@pytest.fixture
def viewer_program() -> FakeProgram:
    # The inputs and uniforms of the bundled viewer shaders; the tangent frame is not read.
    return FakeProgram([
        "inPosition", "inColor", "inNormal", "inUV",
        "uTransformModel", "uTransformView", "uTransformProjection", "uColorTexture", "uHasColorTexture",
    ])

@pytest.fixture
def textured_scene(two_material_mesh: SourceMesh, quad_mesh: SourceMesh) -> SourceScene:
    # RootNode
    #   holder (1, 0, 0)
    #     wall (0, 2, 0), geometry scale 2, parts: brick, plain
    #   floor, one untextured part
    wall = SourceNode(name="wall", translation=(0.0, 2.0, 0.0), geometry_scale=(2.0, 2.0, 2.0), mesh=two_material_mesh)
    holder = SourceNode(name="holder", translation=(1.0, 0.0, 0.0), children=[wall])
    floor = SourceNode(name="floor", mesh=quad_mesh)
    return SourceScene(
        root_node=SourceNode(name="RootNode", children=[holder, floor]),
        materials=[material for material in two_material_mesh.materials if material is not None],
        path="/assets/scene.fbx",
    )

@pytest.fixture
def make_program() -> type[FakeProgram]:
    return FakeProgram
