import logging
import math
import os
import pathlib as pl
import typing
import numpy as np
import numpy.typing as npt
import pyrr as rr # type: ignore[import-untyped]
from scenebake.core.common_types import vec3f32, quatf32, OPAQUE_WHITE
from scenebake.core.config import AI_PROCESS_DEFAULT
from scenebake.core.errors import SourceParseError
from scenebake.scene.source import (
    SourceScene, SourceNode, SourceMesh, SourceMaterial, SourceTexture, SourceLight, SourceCamera,
    VertexAttribute, MaterialPartition, LightKind,
)

logger = logging.getLogger(__name__)

# Texture semantics in assimp material properties.
AI_TEXTURE_TYPE_DIFFUSE = 1
AI_TEXTURE_TYPE_BASE_COLOR = 12

# aiLightSourceType
AI_LIGHT_SOURCE_DIRECTIONAL = 1
AI_LIGHT_SOURCE_POINT = 2
AI_LIGHT_SOURCE_SPOT = 3
AI_LIGHT_SOURCE_AREA = 5

_LIGHT_KINDS: dict[int, LightKind] = {
    AI_LIGHT_SOURCE_DIRECTIONAL: LightKind.DIRECTIONAL,
    AI_LIGHT_SOURCE_POINT: LightKind.POINT,
    AI_LIGHT_SOURCE_SPOT: LightKind.SPOT,
    AI_LIGHT_SOURCE_AREA: LightKind.AREA,
}

# The FBX importer splits pivots and offsets into helper nodes named "<node>_$AssimpFbx$_<Kind>".
FBX_HELPER_MARKER = "_$AssimpFbx$_"

# ---------------------------------------------------------------------------------------------
# Small conversions
# ---------------------------------------------------------------------------------------------

def _array(value: typing.Any, columns: int) -> npt.NDArray[np.float64]:
    # pyassimp hands out numpy arrays, empty lists or None for missing streams.
    if value is None:
        return np.zeros((0, columns), dtype=np.float64)
    array: npt.NDArray[np.float64] = np.asarray(value, dtype=np.float64)
    if array.size == 0:
        return np.zeros((0, columns), dtype=np.float64)
    return array.reshape((-1, array.shape[-1]))

def _color3(value: typing.Any) -> vec3f32:
    if value is None:
        return (1.0, 1.0, 1.0)
    if hasattr(value, "r"):
        return (float(value.r), float(value.g), float(value.b))
    array: npt.NDArray[np.float64] = np.asarray(value, dtype=np.float64).reshape(-1)
    return (float(array[0]), float(array[1]), float(array[2]))

def node_matrix(assimp_node: typing.Any) -> npt.NDArray[np.float64]:
    # assimp matrices act on column vectors: translation in the last column, A @ B applies B first.
    return np.asarray(assimp_node.transformation, dtype=np.float64).reshape((4, 4))

def decompose(matrix: npt.NDArray[np.float64]) -> tuple[vec3f32, quatf32, vec3f32]:
    """
    Splits an affine assimp matrix into (translation, rotation, scale), rotation as (x, y, z, w).
    Shear is dropped. A mirroring matrix keeps its reflection in a negative x scale.
    """
    translation: npt.NDArray[np.float64] = matrix[:3, 3]
    linear: npt.NDArray[np.float64] = matrix[:3, :3]
    scale: npt.NDArray[np.float64] = np.maximum(np.linalg.norm(linear, axis=0), 1e-12)
    if np.linalg.det(linear) < 0.0:
        scale[0] = -scale[0]
    rotation_matrix: npt.NDArray[np.float64] = linear / scale

    # Shepperd's method, branch on the largest diagonal term for stability.
    trace: float = float(rotation_matrix[0, 0] + rotation_matrix[1, 1] + rotation_matrix[2, 2])
    if trace > 0.0:
        s: float = 0.5 / math.sqrt(trace + 1.0)
        w = 0.25 / s
        x = (rotation_matrix[2, 1] - rotation_matrix[1, 2]) * s
        y = (rotation_matrix[0, 2] - rotation_matrix[2, 0]) * s
        z = (rotation_matrix[1, 0] - rotation_matrix[0, 1]) * s
    elif rotation_matrix[0, 0] > rotation_matrix[1, 1] and rotation_matrix[0, 0] > rotation_matrix[2, 2]:
        s = 2.0 * math.sqrt(max(1.0 + rotation_matrix[0, 0] - rotation_matrix[1, 1] - rotation_matrix[2, 2], 1e-12))
        w = (rotation_matrix[2, 1] - rotation_matrix[1, 2]) / s
        x = 0.25 * s
        y = (rotation_matrix[0, 1] + rotation_matrix[1, 0]) / s
        z = (rotation_matrix[0, 2] + rotation_matrix[2, 0]) / s
    elif rotation_matrix[1, 1] > rotation_matrix[2, 2]:
        s = 2.0 * math.sqrt(max(1.0 + rotation_matrix[1, 1] - rotation_matrix[0, 0] - rotation_matrix[2, 2], 1e-12))
        w = (rotation_matrix[0, 2] - rotation_matrix[2, 0]) / s
        x = (rotation_matrix[0, 1] + rotation_matrix[1, 0]) / s
        y = 0.25 * s
        z = (rotation_matrix[1, 2] + rotation_matrix[2, 1]) / s
    else:
        s = 2.0 * math.sqrt(max(1.0 + rotation_matrix[2, 2] - rotation_matrix[0, 0] - rotation_matrix[1, 1], 1e-12))
        w = (rotation_matrix[1, 0] - rotation_matrix[0, 1]) / s
        x = (rotation_matrix[0, 2] + rotation_matrix[2, 0]) / s
        y = (rotation_matrix[1, 2] + rotation_matrix[2, 1]) / s
        z = 0.25 * s

    quaternion: npt.NDArray[np.float64] = rr.quaternion.normalize(np.array([x, y, z, w], dtype=np.float64))
    return (
        (float(translation[0]), float(translation[1]), float(translation[2])),
        (float(quaternion[0]), float(quaternion[1]), float(quaternion[2]), float(quaternion[3])),
        (float(scale[0]), float(scale[1]), float(scale[2])),
    )


def fbx_helper_kind(name: str) -> str | None:
    if FBX_HELPER_MARKER not in name:
        return None
    return name.split(FBX_HELPER_MARKER, 1)[1]

# ---------------------------------------------------------------------------------------------
# Materials and textures
# ---------------------------------------------------------------------------------------------

def _property(material: typing.Any, key: str, semantic: int) -> typing.Any:
    properties = getattr(material, "properties", None) or {}
    try:
        return properties[(key, semantic)]
    except (KeyError, TypeError):
        return None

def convert_material(material: typing.Any, index: int) -> SourceMaterial:
    name = _property(material, "name", 0)
    source_material: SourceMaterial = SourceMaterial(name=str(name) if name else f"material_{index}")
    for semantic in (AI_TEXTURE_TYPE_BASE_COLOR, AI_TEXTURE_TYPE_DIFFUSE):
        reference = _property(material, "file", semantic)
        if reference:
            reference = str(reference)
            # Embedded textures are referenced as "*<index>" and have no file on disk.
            if reference.startswith("*"):
                logger.debug("Skipping embedded texture %s of material %s", reference, source_material.name)
                break
            filename: str = os.path.basename(reference.replace("\\", "/"))
            source_material.base_color_texture = SourceTexture(filename=filename, relative_filename=reference)
            break
    return source_material

def collect_textures(materials: list[SourceMaterial]) -> list[SourceTexture]:
    textures: list[SourceTexture] = []
    seen: set[str] = set()
    for material in materials:
        texture: SourceTexture | None = material.base_color_texture
        if texture is not None and texture.relative_filename not in seen:
            seen.add(texture.relative_filename)
            textures.append(texture)
    return textures

# ---------------------------------------------------------------------------------------------
# Meshes
# ---------------------------------------------------------------------------------------------

class _MeshMerger:
    # Concatenates several assimp meshes into one corner-indexed SourceMesh.
    # Streams missing from only some of the meshes are filled with defaults so the
    # pools stay aligned; streams missing from all of them stay absent.
    STREAMS: typing.ClassVar[dict[str, tuple[int, tuple[float, ...]]]] = {
        "position": (3, (0.0, 0.0, 0.0)),
        "color": (4, OPAQUE_WHITE),
        "normal": (3, (0.0, 0.0, 0.0)),
        "tangent": (3, (0.0, 0.0, 0.0)),
        "bitangent": (3, (0.0, 0.0, 0.0)),
        "uv": (2, (0.0, 0.0)),
    }

    def __init__(self) -> None:
        self.pools: dict[str, list[npt.NDArray[np.float64] | None]] = {stream: [] for stream in self.STREAMS}
        self.counts: list[int] = []
        self.corners: list[int] = []
        self.faces: list[tuple[int, int]] = []
        self.materials: list[SourceMaterial | None] = []
        self.material_parts: list[MaterialPartition] = []
        # assimp material index -> position in material_parts, in first-appearance order.
        self.partition_of: dict[int, int] = {}
        pass

    @staticmethod
    def streams_of(mesh: typing.Any) -> dict[str, npt.NDArray[np.float64]]:
        colors = getattr(mesh, "colors", None)
        texturecoords = getattr(mesh, "texturecoords", None)
        color: npt.NDArray[np.float64] = _array(colors[0], 4) if colors is not None and len(colors) > 0 else np.zeros((0, 4))
        uv: npt.NDArray[np.float64] = _array(texturecoords[0], 3) if texturecoords is not None and len(texturecoords) > 0 else np.zeros((0, 2))
        return {
            "position": _array(getattr(mesh, "vertices", None), 3),
            "color": color,
            "normal": _array(getattr(mesh, "normals", None), 3),
            "tangent": _array(getattr(mesh, "tangents", None), 3),
            "bitangent": _array(getattr(mesh, "bitangents", None), 3),
            "uv": uv[:, :2],
        }

    def partition(self, material_index: int, material: SourceMaterial | None) -> MaterialPartition:
        # Sort-by-primitive-type splits one material's faces over several assimp meshes;
        # they all land in the same partition.
        position: int | None = self.partition_of.get(material_index)
        if position is None:
            position = len(self.material_parts)
            self.partition_of[material_index] = position
            self.material_parts.append(MaterialPartition(material_index=len(self.materials), face_indices=[]))
            self.materials.append(material)
        return self.material_parts[position]

    def add(self, mesh: typing.Any, material_index: int, material: SourceMaterial | None) -> None:
        streams: dict[str, npt.NDArray[np.float64]] = self.streams_of(mesh)
        vertex_offset: int = sum(self.counts)
        vertex_count: int = len(streams["position"])
        for stream, values in streams.items():
            self.pools[stream].append(values if len(values) == vertex_count and vertex_count > 0 else None)
        self.counts.append(vertex_count)

        partition: MaterialPartition = self.partition(material_index, material)
        for face in getattr(mesh, "faces", []):
            # Corner indices are shifted past the vertices of the meshes merged before this one.
            indices: list[int] = [int(index) + vertex_offset for index in np.asarray(face).reshape(-1)]
            partition.face_indices.append(len(self.faces))
            self.faces.append((len(self.corners), len(indices)))
            self.corners.extend(indices)

    def attribute(self, stream: str) -> VertexAttribute:
        pools: list[npt.NDArray[np.float64] | None] = self.pools[stream]
        if all(pool is None for pool in pools):
            return VertexAttribute()
        components, default = self.STREAMS[stream]
        filled: list[npt.NDArray[np.float64]] = []
        for pool, count in zip(pools, self.counts):
            if pool is None:
                filled.append(np.tile(np.asarray(default, dtype=np.float64), (count, 1)))
            else:
                # RGB color pools are widened to RGBA here so all pools share a width.
                widened: npt.NDArray[np.float64] = np.ones((count, components), dtype=np.float64) if stream == "color" else np.zeros((count, components), dtype=np.float64)
                width: int = min(components, pool.shape[1])
                widened[:, :width] = pool[:, :width]
                filled.append(widened)
        values: npt.NDArray[np.float64] = np.concatenate(filled, axis=0) if filled else np.zeros((0, components))
        return VertexAttribute(values=values, indices=np.asarray(self.corners, dtype=np.int64))

    def build(self) -> SourceMesh:
        return SourceMesh(
            faces=self.faces,
            vertex_position=self.attribute("position"),
            vertex_color=self.attribute("color"),
            vertex_normal=self.attribute("normal"),
            vertex_tangent=self.attribute("tangent"),
            vertex_bitangent=self.attribute("bitangent"),
            vertex_uv=self.attribute("uv"),
            materials=self.materials,
            material_parts=self.material_parts,
        )

def convert_meshes(meshes: typing.Sequence[typing.Any], materials: list[SourceMaterial]) -> SourceMesh:
    merger: _MeshMerger = _MeshMerger()
    for mesh in meshes:
        material_index: int = int(getattr(mesh, "materialindex", -1))
        # Out-of-range indices map to a partition with no material.
        material: SourceMaterial | None = materials[material_index] if 0 <= material_index < len(materials) else None
        merger.add(mesh, material_index if material is not None else -1, material)
    return merger.build()

# ---------------------------------------------------------------------------------------------
# Lights and cameras
# ---------------------------------------------------------------------------------------------

def convert_light(light: typing.Any) -> SourceLight | None:
    kind: LightKind | None = _LIGHT_KINDS.get(int(getattr(light, "type", 0)))
    if kind is None:
        logger.debug("Skipping light %s of unsupported type %s", getattr(light, "name", ""), getattr(light, "type", None))
        return None
    return SourceLight(
        kind=kind,
        color=_color3(getattr(light, "colordiffuse", None)),
        angle=math.degrees(float(getattr(light, "angleoutercone", 0.0) or 0.0)),
    )

def convert_camera(camera: typing.Any) -> SourceCamera:
    defaults: SourceCamera = SourceCamera()
    aspect: float = float(getattr(camera, "aspect", 0.0) or 0.0) or defaults.aspect
    # assimp stores half of the horizontal field of view, in radians.
    half_horizontal: float = float(getattr(camera, "horizontalfov", 0.0) or 0.0)
    fov: float = math.degrees(2.0 * math.atan(math.tan(half_horizontal) / aspect)) if half_horizontal > 0.0 else defaults.fov
    return SourceCamera(
        fov=fov,
        near=float(getattr(camera, "clipplanenear", 0.0) or 0.0) or defaults.near,
        far=float(getattr(camera, "clipplanefar", 0.0) or 0.0) or defaults.far,
        aspect=aspect,
    )

# ---------------------------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------------------------

class SceneConverter:
    # Converts one loaded pyassimp scene. Holds the per-scene lookups (materials, lights by
    # node name, cameras by node name) while the node tree is walked.
    def __init__(self, assimp_scene: typing.Any, path: str = "") -> None:
        self.assimp_scene: typing.Any = assimp_scene
        self.path: str = path
        self.materials: list[SourceMaterial] = [convert_material(material, index) for index, material in enumerate(getattr(assimp_scene, "materials", None) or [])]
        self.lights: dict[str, SourceLight] = {}
        for light in getattr(assimp_scene, "lights", None) or []:
            source_light: SourceLight | None = convert_light(light)
            if source_light is not None:
                self.lights[str(light.name)] = source_light
        self.cameras: dict[str, SourceCamera] = {str(camera.name): convert_camera(camera) for camera in getattr(assimp_scene, "cameras", None) or []}
        pass

    def convert_node(self, assimp_node: typing.Any, pending: npt.NDArray[np.float64] | None = None, pending_geometry: npt.NDArray[np.float64] | None = None) -> list[SourceNode]:
        """
        Returns the source nodes that replace `assimp_node` under its parent: one node,
        or, for an FBX helper, whatever its children become once the helper's transform
        is folded into them.
        """
        name: str = str(assimp_node.name)
        matrix: npt.NDArray[np.float64] = node_matrix(assimp_node)
        kind: str | None = fbx_helper_kind(name)

        if kind is not None:
            if kind.startswith("Geometric"):
                # Geometric inverses only undo the geometric transform for children, which never inherit it here.
                if not kind.endswith("Inverse"):
                    pending_geometry = matrix if pending_geometry is None else pending_geometry @ matrix
            else:
                pending = matrix if pending is None else pending @ matrix
            folded: list[SourceNode] = []
            for child in assimp_node.children:
                folded.extend(self.convert_node(child, pending, pending_geometry))
            if not folded:
                logger.debug("Dropping FBX helper chain ending at %s", name)
            return folded

        local: npt.NDArray[np.float64] = matrix if pending is None else pending @ matrix
        translation, rotation, scale = decompose(np.asarray(local))
        node: SourceNode = SourceNode(name=name, translation=translation, rotation=rotation, scale=scale)
        if pending_geometry is not None:
            node.geometry_translation, node.geometry_rotation, node.geometry_scale = decompose(np.asarray(pending_geometry))

        meshes: list[typing.Any] = list(getattr(assimp_node, "meshes", None) or [])
        if meshes:
            node.mesh = convert_meshes(meshes, self.materials)
        elif name in self.lights:
            node.light = self.lights[name]
        elif name in self.cameras:
            node.camera = self.cameras[name]

        for child in assimp_node.children:
            node.children.extend(self.convert_node(child))
        return [node]

    def convert(self) -> SourceScene:
        roots: list[SourceNode] = self.convert_node(self.assimp_scene.rootnode)
        if len(roots) == 1:
            root_node: SourceNode = roots[0]
        else:
            # The root itself was a helper; keep a single root above what it unfolded into.
            root_node = SourceNode(name="RootNode", children=roots)
        return SourceScene(
            root_node=root_node,
            textures=collect_textures(self.materials),
            materials=self.materials,
            path=self.path,
        )

def convert_scene(assimp_scene: typing.Any, path: str = "") -> SourceScene:
    return SceneConverter(assimp_scene, path).convert()

def read_source_scene(path: str | pl.Path, processing: int = AI_PROCESS_DEFAULT) -> SourceScene:
    """
    Loads `path` with pyassimp and converts it while the assimp scene is still alive.
    Any failure to open or parse the file is reported as SourceParseError.
    """
    path = pl.Path(path)
    if not path.is_file():
        raise SourceParseError(path=str(path), description="file not found")

    logger.info("Loading %s", path)
    try:
        import pyassimp # type: ignore[import-untyped]
        from pyassimp.errors import AssimpError # type: ignore[import-untyped]
    except Exception as e:
        raise SourceParseError(path=str(path), description=f"assimp is not available ({e})") from e

    try:
        with pyassimp.load(filename=str(path), processing=processing) as assimp_scene:
            return convert_scene(assimp_scene, str(path))
    except AssimpError as e:
        raise SourceParseError(path=str(path), description=str(e)) from e
