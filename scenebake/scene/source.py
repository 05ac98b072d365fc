import dataclasses
import enum
import numpy as np
import numpy.typing as npt
from scenebake.core.common_types import vec3f32, quatf32, IDENTITY_QUATERNION, ZERO_VECTOR, UNIT_SCALE
from scenebake.scene.triangulate import triangulate_face

@dataclasses.dataclass
class VertexAttribute:
    # One per-corner attribute stream.
    # values:  (N, k) pool of distinct values
    # indices: (C,) index into `values` for every face corner of the mesh
    # An attribute with no values does not exist (e.g. a mesh without vertex colors).
    values: npt.NDArray[np.float64] = dataclasses.field(default_factory=lambda: np.zeros((0, 0), dtype=np.float64))
    indices: npt.NDArray[np.int64] = dataclasses.field(default_factory=lambda: np.zeros(0, dtype=np.int64))

    @property
    def exists(self) -> bool:
        return len(self.values) > 0 and len(self.indices) > 0

    def get(self, corner: int) -> npt.NDArray[np.float64]:
        return self.values[self.indices[corner]]

    def gather(self, corners: npt.NDArray[np.int64]) -> npt.NDArray[np.float64]:
        return self.values[self.indices[corners]]

    @classmethod
    def per_corner(cls, values: npt.ArrayLike) -> "VertexAttribute":
        # Convenience for streams already stored one value per corner.
        array: npt.NDArray[np.float64] = np.asarray(values, dtype=np.float64)
        return cls(values=array, indices=np.arange(len(array), dtype=np.int64))

@dataclasses.dataclass
class SourceTexture:
    # filename: file name as written in the source material
    # relative_filename: path relative to the scene file, used to locate the image on disk
    filename: str
    relative_filename: str

@dataclasses.dataclass
class SourceMaterial:
    name: str
    base_color_texture: SourceTexture | None = None

@dataclasses.dataclass
class MaterialPartition:
    # Faces of one mesh that share a material. Becomes exactly one MeshPart.
    material_index: int
    face_indices: list[int]
    num_triangles: int = 0

@dataclasses.dataclass
class SourceMesh:
    # faces: (index_begin, num_indices) into the corner streams, one pair per polygon.
    faces: list[tuple[int, int]]
    vertex_position: VertexAttribute
    vertex_color: VertexAttribute = dataclasses.field(default_factory=VertexAttribute)
    vertex_normal: VertexAttribute = dataclasses.field(default_factory=VertexAttribute)
    vertex_tangent: VertexAttribute = dataclasses.field(default_factory=VertexAttribute)
    vertex_bitangent: VertexAttribute = dataclasses.field(default_factory=VertexAttribute)
    vertex_uv: VertexAttribute = dataclasses.field(default_factory=VertexAttribute)
    materials: list[SourceMaterial | None] = dataclasses.field(default_factory=list)
    material_parts: list[MaterialPartition] = dataclasses.field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.material_parts:
            # A mesh without material assignment is a single partition of every face.
            self.material_parts = [MaterialPartition(material_index=0, face_indices=list(range(len(self.faces))))]
        for part in self.material_parts:
            if part.num_triangles == 0:
                part.num_triangles = sum(max(self.faces[face_ix][1] - 2, 0) for face_ix in part.face_indices)

    @property
    def max_face_triangles(self) -> int:
        return max((max(num_indices - 2, 0) for _, num_indices in self.faces), default=0)

    def material(self, part: MaterialPartition) -> SourceMaterial | None:
        if 0 <= part.material_index < len(self.materials):
            return self.materials[part.material_index]
        return None

    def triangulate_face(self, face: tuple[int, int]) -> list[int]:
        """
        Returns the corner indices of the triangles covering one face,
        three per triangle, always (num_indices - 2) triangles.
        """
        index_begin, num_indices = face
        corners: list[int] = list(range(index_begin, index_begin + num_indices))
        # Parsed files arrive triangulated by assimp; only hand-built meshes still carry polygons here.
        if num_indices <= 3:
            return corners if num_indices == 3 else []
        positions: npt.NDArray[np.float64] = self.vertex_position.gather(np.asarray(corners, dtype=np.int64))
        return triangulate_face(positions=positions, corners=corners)

class LightKind(enum.Enum):
    POINT = "point"
    SPOT = "spot"
    DIRECTIONAL = "directional"
    AREA = "area"
    VOLUME = "volume"

@dataclasses.dataclass
class SourceLight:
    kind: LightKind
    color: vec3f32 = (1.0, 1.0, 1.0)
    intensity: float = 1.0
    range: float = 0.0
    # Outer cone angle in degrees, spot lights only.
    angle: float = 0.0

@dataclasses.dataclass
class SourceCamera:
    # Vertical field of view in degrees.
    fov: float = 60.0
    near: float = 0.1
    far: float = 100.0
    aspect: float = 16.0 / 9.0

@dataclasses.dataclass
class SourceNode:
    name: str
    translation: vec3f32 = ZERO_VECTOR
    rotation: quatf32 = IDENTITY_QUATERNION
    scale: vec3f32 = UNIT_SCALE
    geometry_translation: vec3f32 = ZERO_VECTOR
    geometry_rotation: quatf32 = IDENTITY_QUATERNION
    geometry_scale: vec3f32 = UNIT_SCALE
    mesh: SourceMesh | None = None
    light: SourceLight | None = None
    camera: SourceCamera | None = None
    children: list["SourceNode"] = dataclasses.field(default_factory=list)
    is_root: bool = False

@dataclasses.dataclass
class SourceScene:
    root_node: SourceNode
    textures: list[SourceTexture] = dataclasses.field(default_factory=list)
    materials: list[SourceMaterial] = dataclasses.field(default_factory=list)
    path: str = ""

    def __post_init__(self) -> None:
        self.root_node.is_root = True
