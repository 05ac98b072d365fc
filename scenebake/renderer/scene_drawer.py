import dataclasses
import logging
import typing
import numpy as np
import moderngl as mgl
import pyrr as rr # type: ignore[import-untyped]
from scenebake.core.common_types import VertexLayout, vertex_attributes
from scenebake.scene.node import Node, MeshPart

logger = logging.getLogger(__name__)

COLOR_TEXTURE_LOCATION: int = 0

@dataclasses.dataclass
class DrawItem:
    node: Node
    part: MeshPart
    model_matrix: rr.Matrix44

def collect_draw_items(root: Node) -> list[DrawItem]:
    # Depth-first, parent before children. Empty parts and parts that were never
    # uploaded are skipped.
    items: list[DrawItem] = []
    for node in root.walk():
        parts: list[MeshPart] = [part for part in node.mesh_parts if not part.is_empty and part.vertex_buffer is not None and part.index_buffer is not None]
        if not parts:
            continue
        model_matrix: rr.Matrix44 = node.global_geometry_transform()
        items.extend(DrawItem(node=node, part=part, model_matrix=model_matrix) for part in parts)
    return items

def buffer_layout(program: typing.Any, layout: VertexLayout) -> tuple[str, list[str]]:
    """
    moderngl buffer format and attribute names for one packed vertex record.
    Attributes the program does not declare (or the driver optimized away) become padding,
    e.g. "3f 4f 3f 12x 12x 2f" for a shader that ignores the tangent frame.
    """
    formats: list[str] = []
    names: list[str] = []
    for spec in vertex_attributes(layout):
        if spec.shader_input in program:
            formats.append(f"{spec.components}f")
            names.append(spec.shader_input)
        else:
            formats.append(f"{spec.components * 4}x")
    return " ".join(formats), names

class SceneDrawer:
    # Draws every uploaded mesh part of a node tree with one program.
    # Vertex arrays are created on first use and cached per part.
    def __init__(self, ctx: mgl.Context, program: mgl.Program, layout: VertexLayout = VertexLayout.PBR) -> None:
        self.ctx: mgl.Context = ctx
        self.program: mgl.Program = program
        self.layout: VertexLayout = layout
        self.buffer_format, self.attribute_names = buffer_layout(program, layout)
        self.vertex_arrays: dict[int, mgl.VertexArray] = {}
        pass

    def vertex_array(self, part: MeshPart) -> mgl.VertexArray:
        key: int = id(part)
        if key not in self.vertex_arrays:
            self.vertex_arrays[key] = self.ctx.vertex_array(
                self.program,
                [
                    (part.vertex_buffer, self.buffer_format, *self.attribute_names),
                ],
                index_buffer=part.index_buffer,
                index_element_size=4,
            )
        return self.vertex_arrays[key]

    def write_matrix(self, name: str, matrix: rr.Matrix44) -> None:
        if name in self.program:
            typing.cast(mgl.Uniform, self.program[name]).write(np.asarray(matrix).astype(dtype=np.float32).tobytes())

    def draw(self, root: Node, view: rr.Matrix44, projection: rr.Matrix44) -> int:
        self.write_matrix("uTransformView", view)
        self.write_matrix("uTransformProjection", projection)

        items: list[DrawItem] = collect_draw_items(root)
        for item in items:
            self.write_matrix("uTransformModel", item.model_matrix)
            texture = item.part.color_texture
            has_color_texture: bool = texture is not None and texture.handle is not None
            if has_color_texture:
                texture.handle.use(location=COLOR_TEXTURE_LOCATION)
                if "uColorTexture" in self.program:
                    self.program["uColorTexture"] = COLOR_TEXTURE_LOCATION
            if "uHasColorTexture" in self.program:
                self.program["uHasColorTexture"] = has_color_texture
            self.vertex_array(item.part).render(mode=mgl.TRIANGLES)
        return len(items)

    def release(self) -> None:
        for vertex_array in self.vertex_arrays.values():
            vertex_array.release()
        self.vertex_arrays.clear()
