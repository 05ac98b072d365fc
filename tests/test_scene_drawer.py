import numpy as np
import pyrr as rr # type: ignore[import-untyped]
import moderngl as mgl
from scenebake.core.common_types import VertexLayout
from scenebake.renderer.gpu_upload import SceneUploader
from scenebake.renderer.image_decoder import DecodedImage
from scenebake.renderer.scene_drawer import SceneDrawer, buffer_layout, collect_draw_items
from scenebake.scene.scene_importer import SceneImporter
from scenebake.scene.transform import transform_point

def solid_image(path, flip_vertically=True):
    return DecodedImage(pixels=np.full((1, 1, 4), 255, dtype=np.uint8), width=1, height=1, channels=4)

def uploaded_scene(ctx, source_scene):
    root = SceneImporter().import_scene(source_scene)
    SceneUploader(ctx, decode=solid_image).upload(root)
    return root

def as_matrix(data):
    return np.frombuffer(data, dtype=np.float32).reshape((4, 4))

def test_buffer_layout_pads_unused_inputs(make_program):
    program = make_program(["inPosition", "inColor", "inNormal", "inUV"])
    assert buffer_layout(program, VertexLayout.PBR) == ("3f 4f 3f 12x 12x 2f", ["inPosition", "inColor", "inNormal", "inUV"])
    assert buffer_layout(program, VertexLayout.BASIC) == ("3f 4f 3f 2f", ["inPosition", "inColor", "inNormal", "inUV"])

def test_buffer_layout_covers_a_whole_record(make_program):
    # Padding keeps the stride equal to the packed record size.
    fmt, names = buffer_layout(make_program(["inPosition"]), VertexLayout.PBR)
    assert fmt == "3f 16x 12x 12x 12x 8x"
    assert names == ["inPosition"]

def test_draw_items_follow_walk_order(fake_ctx, textured_scene):
    root = uploaded_scene(fake_ctx, textured_scene)
    items = collect_draw_items(root)
    assert [(item.node.name, item.part.material_name) for item in items] == [("wall", "brick"), ("wall", "plain"), ("floor", "")]
    # holder (1, 0, 0) * wall (0, 2, 0) * geometry scale 2
    assert np.allclose(transform_point(items[0].model_matrix, (1.0, 0.0, 0.0)), (3.0, 2.0, 0.0))

def test_parts_without_buffers_are_not_drawn(textured_scene):
    root = SceneImporter().import_scene(textured_scene)
    assert collect_draw_items(root) == []

def test_draw(fake_ctx, viewer_program, textured_scene):
    root = uploaded_scene(fake_ctx, textured_scene)
    drawer = SceneDrawer(fake_ctx, viewer_program)
    view = rr.Matrix44.look_at(eye=(0.0, 0.0, 5.0), target=(0.0, 0.0, 0.0), up=(0.0, 1.0, 0.0))
    projection = rr.Matrix44.perspective_projection(fovy=60.0, aspect=1.0, near=0.1, far=100.0)

    assert drawer.draw(root, view, projection) == 3
    assert np.allclose(as_matrix(viewer_program.uniforms["uTransformView"].data), np.asarray(view))
    assert np.allclose(as_matrix(viewer_program.uniforms["uTransformProjection"].data), np.asarray(projection))

    renders = fake_ctx.renders
    assert [render["mode"] for render in renders] == [mgl.TRIANGLES] * 3
    assert [render["has_color_texture"] for render in renders] == [True, False, False]
    assert np.allclose(as_matrix(renders[0]["model"]), np.asarray(root.find("wall").global_geometry_transform()))
    assert np.allclose(as_matrix(renders[2]["model"]), np.eye(4))
    assert root.texture_table[0].handle.locations == [0]
    assert viewer_program.values["uColorTexture"] == 0

def test_vertex_arrays_are_cached(fake_ctx, viewer_program, textured_scene):
    root = uploaded_scene(fake_ctx, textured_scene)
    drawer = SceneDrawer(fake_ctx, viewer_program, VertexLayout.PBR)
    identity = rr.Matrix44.identity()
    drawer.draw(root, identity, identity)
    drawer.draw(root, identity, identity)
    assert len(fake_ctx.vertex_arrays) == 3
    assert len(fake_ctx.renders) == 6

    part = root.find("floor").mesh_parts[0]
    vertex_array = drawer.vertex_array(part)
    assert vertex_array.content == [(part.vertex_buffer, "3f 4f 3f 12x 12x 2f", "inPosition", "inColor", "inNormal", "inUV")]
    assert vertex_array.index_buffer is part.index_buffer
    assert vertex_array.index_element_size == 4

    drawer.release()
    assert all(vertex_array.released for vertex_array in fake_ctx.vertex_arrays)
