import logging
import pathlib as pl
import numpy as np
import numpy.typing as npt
from scenebake.core.common_types import VertexLayout, vertex_dtype, OPAQUE_WHITE
from scenebake.scene.node import MeshPart, TextureTable
from scenebake.scene.source import SourceMesh, MaterialPartition, VertexAttribute
from scenebake.scene.texture_table import resolve_color_texture

logger = logging.getLogger(__name__)

def triangle_corners(mesh: SourceMesh, partition: MaterialPartition) -> npt.NDArray[np.int64]:
    # Triangulate every face of the partition and flatten the triangle corner indices.
    corners: list[int] = []
    for face_ix in partition.face_indices:
        corners.extend(mesh.triangulate_face(mesh.faces[face_ix]))
    return np.asarray(corners, dtype=np.int64)

def _fetch(attribute: VertexAttribute, corners: npt.NDArray[np.int64], components: int) -> npt.NDArray[np.float32] | None:
    # Values come in as float64 (or whatever the parser gives); the vertex stores float32.
    if not attribute.exists:
        return None
    values: npt.NDArray[np.float64] = attribute.gather(corners)
    if values.ndim == 1:
        values = values.reshape((-1, 1))
    # Narrow or pad to the record width; missing components stay zero.
    result: npt.NDArray[np.float32] = np.zeros((len(corners), components), dtype=np.float32)
    width: int = min(components, values.shape[1])
    result[:, :width] = values[:, :width]
    return result

def unweld_partition(mesh: SourceMesh, partition: MaterialPartition, layout: VertexLayout) -> npt.NDArray[np.void]:
    """
    One packed vertex record per triangle corner, nothing shared yet.
    Missing streams fall back to opaque white (color) or zero vectors (everything else).
    """
    corners: npt.NDArray[np.int64] = triangle_corners(mesh, partition)
    vertices: npt.NDArray[np.void] = np.zeros(len(corners), dtype=vertex_dtype(layout))
    if len(corners) == 0:
        return vertices

    # Positions, then color, normal, tangent frame and UV, each written only when the source has it.
    position = _fetch(mesh.vertex_position, corners, 3)
    if position is not None:
        vertices["position"] = position

    color = _fetch(mesh.vertex_color, corners, 4)
    if color is not None:
        # RGB color streams carry no alpha.
        if mesh.vertex_color.values.ndim == 2 and mesh.vertex_color.values.shape[1] == 3:
            color[:, 3] = 1.0
        vertices["color"] = color
    else:
        vertices["color"] = OPAQUE_WHITE

    normal = _fetch(mesh.vertex_normal, corners, 3)
    if normal is not None:
        vertices["normal"] = normal

    # Tangent and bitangent only exist in the PBR record.
    if layout is VertexLayout.PBR:
        tangent = _fetch(mesh.vertex_tangent, corners, 3)
        if tangent is not None:
            vertices["tangent"] = tangent
        bitangent = _fetch(mesh.vertex_bitangent, corners, 3)
        if bitangent is not None:
            vertices["bitangent"] = bitangent

    uv = _fetch(mesh.vertex_uv, corners, 2)
    if uv is not None:
        vertices["uv"] = uv

    return vertices

def weld_vertices(vertices: npt.NDArray[np.void]) -> tuple[npt.NDArray[np.void], npt.NDArray[np.uint32]]:
    """
    Collapse bit-identical vertex records.
    Returns (unique_vertices, indices): unique records in order of first appearance and,
    for every input record, the position of its copy in unique_vertices.
    Comparison is on the raw bytes, so 0.0 and -0.0 stay distinct and no tolerance is applied.
    """
    if len(vertices) == 0:
        return vertices.copy(), np.zeros(0, dtype=np.uint32)

    # View every record as one opaque byte string so np.unique compares whole vertices.
    packed: npt.NDArray[np.void] = np.ascontiguousarray(vertices)
    keys: npt.NDArray[np.void] = packed.view(np.dtype((np.void, packed.dtype.itemsize))).reshape(-1)
    _, first_index, inverse = np.unique(keys, return_index=True, return_inverse=True)
    inverse = np.asarray(inverse).reshape(-1)

    # np.unique sorts by bytes; renumber so that the output follows input order.
    order: npt.NDArray[np.intp] = np.argsort(first_index, kind="stable")
    rank: npt.NDArray[np.intp] = np.empty_like(order)
    rank[order] = np.arange(len(order))

    # Keep the first copy of every record and point each corner at its rank.
    unique_vertices: npt.NDArray[np.void] = packed[first_index[order]]
    indices: npt.NDArray[np.uint32] = rank[inverse].astype(np.uint32)
    return unique_vertices, indices

def build_mesh_part(mesh: SourceMesh, partition: MaterialPartition, texture_table: TextureTable, layout: VertexLayout = VertexLayout.PBR, asset_dir: pl.Path | None = None) -> MeshPart:
    # Look up the material this partition was cut for; a partition without one still becomes a part.
    material = mesh.material(partition)
    material_name: str = material.name if material is not None else ""

    # Step 1: triangulate and gather one packed record per triangle corner.
    unwelded: npt.NDArray[np.void] = unweld_partition(mesh, partition, layout)
    if len(unwelded) == 0:
        logger.debug("Material partition %d (%s) has no triangles", partition.material_index, material_name)
        return MeshPart.empty(layout, material_name=material_name)

    # Step 2: weld bit-identical records and index the survivors.
    vertices, indices = weld_vertices(unwelded)
    logger.debug("-> part %d: %d corners welded to %d vertices", partition.material_index, len(unwelded), len(vertices))

    # Step 3: bind the base-color texture through the scene-wide table.
    return MeshPart(
        vertices=vertices,
        indices=indices,
        layout=layout,
        color_texture=resolve_color_texture(material, texture_table, asset_dir),
        material_name=material_name,
    )
