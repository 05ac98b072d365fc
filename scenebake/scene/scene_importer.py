import logging
import pathlib as pl
import typing
from scenebake.core.common_types import vec3f32, quatf32
from scenebake.core.config import ImportOptions, resolve_import_options
from scenebake.scene.mesh_part_builder import build_mesh_part
from scenebake.scene.node import (
    Node, NodeType, NodePayload, TextureTable,
    EmptyPayload, MeshPayload, PointLightPayload, SpotLightPayload, DirectionalLightPayload, CameraPayload,
)
from scenebake.scene.source import SourceScene, SourceNode, LightKind
from scenebake.scene.texture_table import build_texture_table

logger = logging.getLogger(__name__)

def _vec3(values: typing.Sequence[float]) -> vec3f32:
    return (float(values[0]), float(values[1]), float(values[2]))

def _quat(values: typing.Sequence[float]) -> quatf32:
    return (float(values[0]), float(values[1]), float(values[2]), float(values[3]))

class SceneImporter:
    # Turns a parsed SourceScene into a Node tree with welded, indexed mesh parts.
    # The importer holds no per-scene state, one instance can import any number of scenes.
    def __init__(self, options: typing.Mapping[str, typing.Any] | None = None) -> None:
        self.options: ImportOptions = resolve_import_options(options)
        pass

    def classify(self, source_node: SourceNode) -> NodeType:
        if source_node.mesh is not None:
            return NodeType.MESH
        if source_node.light is not None:
            match source_node.light.kind:
                case LightKind.POINT:
                    return NodeType.POINT_LIGHT
                case LightKind.SPOT:
                    return NodeType.SPOT_LIGHT
                case LightKind.DIRECTIONAL:
                    return NodeType.DIRECTIONAL_LIGHT
        if source_node.camera is not None:
            return NodeType.CAMERA
        return NodeType.EMPTY

    def asset_dir(self, source_scene: SourceScene) -> pl.Path | None:
        if self.options["asset_dir"] is not None:
            return self.options["asset_dir"]
        if source_scene.path:
            return pl.Path(source_scene.path).parent
        return None

    def build_payload(self, source_node: SourceNode, texture_table: TextureTable, asset_dir: pl.Path | None = None) -> NodePayload:
        # The payload is chosen from the source node's content; each case copies only what that type carries.
        node_type: NodeType = self.classify(source_node)
        match node_type:
            case NodeType.MESH:
                # One part per material partition, in partition order, empty partitions included.
                mesh = typing.cast(typing.Any, source_node.mesh)
                logger.debug("-> mesh with %d faces", len(mesh.faces))
                return MeshPayload(mesh_parts=[
                    build_mesh_part(mesh, partition, texture_table, self.options["vertex_layout"], asset_dir)
                    for partition in mesh.material_parts
                ])
            case NodeType.POINT_LIGHT:
                light = typing.cast(typing.Any, source_node.light)
                return PointLightPayload(color=_vec3(light.color), range=float(light.range))
            case NodeType.SPOT_LIGHT:
                light = typing.cast(typing.Any, source_node.light)
                return SpotLightPayload(color=_vec3(light.color), range=float(light.range), angle=float(light.angle))
            case NodeType.DIRECTIONAL_LIGHT:
                light = typing.cast(typing.Any, source_node.light)
                return DirectionalLightPayload(color=_vec3(light.color))
            case NodeType.CAMERA:
                camera = typing.cast(typing.Any, source_node.camera)
                return CameraPayload(fov=float(camera.fov), near=float(camera.near), far=float(camera.far), aspect=float(camera.aspect))
            case NodeType.EMPTY:
                return EmptyPayload()

    def create_node(self, source_node: SourceNode, texture_table: TextureTable, asset_dir: pl.Path | None = None) -> Node:
        logger.debug("Object: %s", source_node.name)
        node: Node = Node(
            name=source_node.name,
            local_position=_vec3(source_node.translation),
            local_rotation=_quat(source_node.rotation),
            local_scale=_vec3(source_node.scale),
            geometry_position=_vec3(source_node.geometry_translation),
            geometry_rotation=_quat(source_node.geometry_rotation),
            geometry_scale=_vec3(source_node.geometry_scale),
        )
        node.texture_table = texture_table
        node.payload = self.build_payload(source_node, texture_table, asset_dir)
        return node

    def import_scene(self, source_scene: SourceScene) -> Node:
        """
        Depth-first, single pass over the source node tree.
        The texture table is built before the root payload so that mesh parts anywhere
        (root included) resolve against the same table; a node's payload is complete
        before any of its children is created.
        """
        # Texture references resolve against one directory for the table and for every part.
        asset_dir: pl.Path | None = self.asset_dir(source_scene)
        texture_table: TextureTable = build_texture_table(source_scene, asset_dir)
        logger.info("Scene: %s (%d textures)", source_scene.path or "<memory>", len(texture_table))

        root: Node = self.create_node(source_scene.root_node, texture_table, asset_dir)
        # Explicit stack instead of recursion, children are pushed reversed to keep source order.
        stack: list[tuple[SourceNode, Node]] = [(child, root) for child in reversed(source_scene.root_node.children)]
        while stack:
            source_node, parent = stack.pop()
            node: Node = parent.add_child(self.create_node(source_node, texture_table, asset_dir))
            stack.extend((child, node) for child in reversed(source_node.children))

        if self.options["root_scale"] is not None:
            scale: float = self.options["root_scale"]
            root.local_scale = (scale, scale, scale)
        return root

def load_scene(path: str | pl.Path, options: typing.Mapping[str, typing.Any] | None = None) -> Node:
    """
    Reads a scene file with pyassimp and imports it.
    Raises SourceParseError if the file cannot be opened or parsed; nothing is returned in that case.
    """
    # Imported here so that in-memory imports never load the native assimp library.
    from scenebake.scene.assimp_reader import read_source_scene

    importer: SceneImporter = SceneImporter(options)
    source_scene: SourceScene = read_source_scene(path, processing=importer.options["assimp_processing"])
    return importer.import_scene(source_scene)
