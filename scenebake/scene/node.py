import dataclasses
import enum
import typing
import weakref
import numpy as np
import numpy.typing as npt
import pyrr as rr # type: ignore[import-untyped]
from scenebake.core.common_types import vec3f32, quatf32, VertexLayout, TextureFormat, vertex_dtype, IDENTITY_QUATERNION, ZERO_VECTOR, UNIT_SCALE
from scenebake.scene import transform

class NodeType(enum.Enum):
    EMPTY = "empty"
    MESH = "mesh"
    POINT_LIGHT = "point_light"
    SPOT_LIGHT = "spot_light"
    DIRECTIONAL_LIGHT = "directional_light"
    CAMERA = "camera"

# ---------------------------------------------------------------------------------------------
# Texture table
# ---------------------------------------------------------------------------------------------

@dataclasses.dataclass(eq=False)
class TextureEntry:
    # One distinct texture file referenced by the scene.
    # path/filename never change after import; handle, width, height and format are
    # written once by the upload step.
    path: str
    filename: str
    handle: typing.Any = None
    width: int = 0
    height: int = 0
    format: TextureFormat | None = None

class TextureTable:
    # Scene-wide, ordered, deduplicated list of texture entries. Owned by the root node,
    # every other node and every MeshPart only holds references into it.
    def __init__(self, entries: typing.Iterable[TextureEntry] = ()) -> None:
        self._entries: list[TextureEntry] = list(entries)
        pass

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> typing.Iterator[TextureEntry]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> TextureEntry:
        return self._entries[index]

    def append(self, entry: TextureEntry) -> None:
        self._entries.append(entry)

    def find_by_path(self, path: str) -> TextureEntry | None:
        # Paths are normalized when the table is built, so plain string equality is enough.
        for entry in self._entries:
            if entry.path == path:
                return entry
        return None

    def find_by_filename(self, filename: str) -> TextureEntry | None:
        # Exact string comparison, first match wins.
        for entry in self._entries:
            if entry.filename == filename:
                return entry
        return None

    def paths(self) -> list[str]:
        # Entry order is the order of first reference in the source scene.
        return [entry.path for entry in self._entries]

# ---------------------------------------------------------------------------------------------
# Mesh parts
# ---------------------------------------------------------------------------------------------

@dataclasses.dataclass(eq=False)
class MeshPart:
    """
    One material-homogeneous triangle batch.
    vertices: packed structured array (see core.common_types.vertex_dtype), no two records bit-identical
    indices:  uint32 offsets into `vertices`, three per triangle
    """
    vertices: npt.NDArray[np.void]
    indices: npt.NDArray[np.uint32]
    layout: VertexLayout = VertexLayout.PBR
    color_texture: TextureEntry | None = None
    material_name: str = ""
    # Written by the upload step.
    vertex_buffer: typing.Any = None
    index_buffer: typing.Any = None

    @classmethod
    def empty(cls, layout: VertexLayout, material_name: str = "") -> "MeshPart":
        return cls(
            vertices=np.zeros(0, dtype=vertex_dtype(layout)),
            indices=np.zeros(0, dtype=np.uint32),
            layout=layout,
            material_name=material_name,
        )

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def index_count(self) -> int:
        return len(self.indices)

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    @property
    def is_empty(self) -> bool:
        # Empty parts come from materials without faces; upload and draw skip them.
        return self.vertex_count == 0 or self.index_count == 0

    def vertex_bytes(self) -> bytes:
        # The structured dtype is packed, so the raw bytes are exactly the GPU vertex buffer.
        return np.ascontiguousarray(self.vertices).tobytes()

    def index_bytes(self) -> bytes:
        # Little-endian uint32, three indices per triangle.
        return np.ascontiguousarray(self.indices, dtype="<u4").tobytes()

# ---------------------------------------------------------------------------------------------
# Node payloads. The payload class decides the node type, so the two can never disagree.
# ---------------------------------------------------------------------------------------------

@dataclasses.dataclass
class EmptyPayload:
    pass

@dataclasses.dataclass
class MeshPayload:
    mesh_parts: list[MeshPart] = dataclasses.field(default_factory=list)

@dataclasses.dataclass
class PointLightPayload:
    color: vec3f32 = (1.0, 1.0, 1.0)
    range: float = 0.0

@dataclasses.dataclass
class SpotLightPayload:
    color: vec3f32 = (1.0, 1.0, 1.0)
    range: float = 0.0
    angle: float = 0.0

@dataclasses.dataclass
class DirectionalLightPayload:
    color: vec3f32 = (1.0, 1.0, 1.0)

@dataclasses.dataclass
class CameraPayload:
    fov: float = 60.0
    near: float = 0.1
    far: float = 100.0
    aspect: float = 16.0 / 9.0

NodePayload: typing.TypeAlias = EmptyPayload | MeshPayload | PointLightPayload | SpotLightPayload | DirectionalLightPayload | CameraPayload

def payload_type(payload: NodePayload) -> NodeType:
    match payload:
        case MeshPayload():
            return NodeType.MESH
        case PointLightPayload():
            return NodeType.POINT_LIGHT
        case SpotLightPayload():
            return NodeType.SPOT_LIGHT
        case DirectionalLightPayload():
            return NodeType.DIRECTIONAL_LIGHT
        case CameraPayload():
            return NodeType.CAMERA
        case EmptyPayload():
            return NodeType.EMPTY
    raise TypeError(f"Unknown node payload: {payload!r}")

# ---------------------------------------------------------------------------------------------
# Node
# ---------------------------------------------------------------------------------------------

class Node:
    # A scene graph entity. Children are owned and ordered as in the source scene;
    # the parent link is a weak reference used only to walk up for transforms.
    def __init__(
        self,
        name: str = "",
        payload: NodePayload | None = None,
        local_position: vec3f32 = ZERO_VECTOR,
        local_rotation: quatf32 = IDENTITY_QUATERNION,
        local_scale: vec3f32 = UNIT_SCALE,
        geometry_position: vec3f32 = ZERO_VECTOR,
        geometry_rotation: quatf32 = IDENTITY_QUATERNION,
        geometry_scale: vec3f32 = UNIT_SCALE,
    ) -> None:
        # Identity and payload. The payload alone decides the node type.
        self.name: str = name
        self.payload: NodePayload = payload if payload is not None else EmptyPayload()
        # Local TRS relative to the parent, rotation stored as (x, y, z, w).
        self.local_position: vec3f32 = local_position
        self.local_rotation: quatf32 = local_rotation
        self.local_scale: vec3f32 = local_scale
        # Geometry TRS applies to this node's own mesh only and is never inherited by children.
        self.geometry_position: vec3f32 = geometry_position
        self.geometry_rotation: quatf32 = geometry_rotation
        self.geometry_scale: vec3f32 = geometry_scale
        # Hierarchy links. The texture table is replaced by the root's table on add_child.
        self.children: list[Node] = []
        self.texture_table: TextureTable = TextureTable()
        self._parent: weakref.ReferenceType[Node] | None = None
        pass

    def __repr__(self) -> str:
        return f"Node(name={self.name!r}, type={self.type.name}, children={len(self.children)})"

    @property
    def type(self) -> NodeType:
        return payload_type(self.payload)

    @property
    def parent(self) -> "Node | None":
        return self._parent() if self._parent is not None else None

    @property
    def is_root(self) -> bool:
        return self._parent is None

    @property
    def mesh_parts(self) -> list[MeshPart]:
        if isinstance(self.payload, MeshPayload):
            return self.payload.mesh_parts
        return []

    @property
    def has_geometry_transform(self) -> bool:
        return (self.geometry_position != ZERO_VECTOR or
                self.geometry_rotation != IDENTITY_QUATERNION or
                self.geometry_scale != UNIT_SCALE)

    def add_child(self, child: "Node") -> "Node":
        # A node is attached to one parent at most.
        if child._parent is not None:
            raise ValueError(f"Node {child.name!r} already has a parent")
        child._parent = weakref.ref(self)
        # Children share the scene-wide table by reference, never by copy.
        child.texture_table = self.texture_table
        self.children.append(child)
        return child

    def walk(self) -> typing.Iterator["Node"]:
        # Depth-first, parent before children, children in order.
        stack: list[Node] = [self]
        # Children are pushed reversed so that the first child is popped first.
        while stack:
            node: Node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find(self, name: str) -> "Node | None":
        for node in self.walk():
            if node.name == name:
                return node
        return None

    def root(self) -> "Node":
        # Follow the weak parent links up to the node that has none.
        node: Node = self
        while node.parent is not None:
            node = node.parent
        return node

    def local_transform(self) -> rr.Matrix44:
        return transform.local_transform(self)

    def geometry_transform(self) -> rr.Matrix44:
        return transform.geometry_transform(self)

    def global_transform(self) -> rr.Matrix44:
        return transform.global_transform(self)

    def global_geometry_transform(self) -> rr.Matrix44:
        return transform.global_geometry_transform(self)

def describe(root: Node) -> list[str]:
    # Indented one-line summary per node, used by the inspection script.
    lines: list[str] = []

    def visit(node: Node, depth: int) -> None:
        line: str = f"{'  ' * depth}[{node.type.name}] {node.name}"
        if node.mesh_parts:
            vertices: int = sum(part.vertex_count for part in node.mesh_parts)
            indices: int = sum(part.index_count for part in node.mesh_parts)
            line += f" | parts: {len(node.mesh_parts)} | vertices: {vertices} | indices: {indices}"
        lines.append(line)
        for child in node.children:
            visit(child, depth + 1)

    visit(root, 0)
    return lines
