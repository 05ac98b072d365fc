import argparse
import logging
import moderngl as mgl
import moderngl_window as mglw
from moderngl_window.context.base import BaseKeys, KeyModifiers
import pathlib as pl
import typing
from scenebake.core.common_types import vec2i32, VertexLayout
from scenebake.core.config import ImportOptions
from scenebake.core.errors import SourceParseError
from scenebake.renderer.gpu_upload import SceneUploader
from scenebake.renderer.scene_drawer import SceneDrawer
from scenebake.renderer.shader_compiler import load_shader
from scenebake.scene.camera import FlyCamera, CAMERA_KEYS
from scenebake.scene.node import Node, NodeType
from scenebake.scene.scene_importer import load_scene

logger = logging.getLogger(__name__)

class SceneViewer(mglw.WindowConfig): # type: ignore[name-defined, misc]
    # Interactive viewer for an imported scene.
    # __init__ imports the scene and uploads it, on_render draws one frame, on_close releases
    # every GPU handle. Input state lives on the instance (key_state), never in module globals.
    gl_version: vec2i32 = (3, 3)
    title: str = "scenebake"
    window_size: vec2i32 = (1280, 720)
    aspect_ratio: float = window_size[0] / window_size[1]
    resizable: bool = True
    resource_dir: pl.Path = pl.Path(__file__).parent.resolve(strict=False)
    shader_dir: pl.Path = resource_dir / "../shaders"
    vertex_layout: VertexLayout = VertexLayout.PBR

    @classmethod
    def add_arguments(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("scene", type=pl.Path, help="Scene file to import (FBX, OBJ, glTF, ...)")
        parser.add_argument("--scale", type=float, default=None, help="Uniform scale applied to the scene root, e.g. 0.01 for Sponza")
        parser.add_argument("--asset-dir", type=pl.Path, default=None, help="Directory textures are resolved against")
        parser.add_argument("--speed", type=float, default=5.0, help="Camera speed in units per second")

    def __init__(self, **kwargs: dict[str, typing.Any]) -> None:
        super().__init__(**kwargs)
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

        options: ImportOptions = {
            "vertex_layout": self.vertex_layout,
            "root_scale": self.argv.scale,
            "asset_dir": self.argv.asset_dir,
        }
        try:
            self.root: Node = load_scene(self.argv.scene, options)
        except SourceParseError as e:
            logger.error("%s", e)
            raise SystemExit(1) from e

        self.program_scene: mgl.Program = self.ctx.program(
              vertex_shader=load_shader(self.shader_dir / "scene_vs.glsl"),
            fragment_shader=load_shader(self.shader_dir / "scene_fs.glsl"),
        )

        self.uploader: SceneUploader = SceneUploader(ctx=self.ctx)
        self.uploader.upload(self.root)
        self.drawer: SceneDrawer = SceneDrawer(ctx=self.ctx, program=self.program_scene, layout=self.vertex_layout)

        self.camera: FlyCamera = self.create_camera()
        self.key_state: dict[str, bool] = {key: False for key in CAMERA_KEYS}

        self.ctx.enable(flags=mgl.DEPTH_TEST | mgl.CULL_FACE)
        pass

    def create_camera(self) -> FlyCamera:
        # First camera in the scene if there is one, otherwise a fixed start pose.
        for node in self.root.walk():
            if node.type is NodeType.CAMERA:
                logger.info("Using scene camera %s", node.name)
                return FlyCamera.from_node(node, aspect_ratio=self.aspect_ratio, speed=self.argv.speed)
        return FlyCamera(
            position=(0.0, 1.0, 5.0),
            look_at=(0.0, 1.0, 0.0),
            aspect_ratio=self.aspect_ratio,
            speed=self.argv.speed,
        )

    def on_key_event(self, key: typing.Any, action: typing.Any, modifiers: KeyModifiers) -> None:
        keys: BaseKeys = self.wnd.keys
        pressed: bool
        if action == keys.ACTION_PRESS:
            pressed = True
        elif action == keys.ACTION_RELEASE:
            pressed = False
        else:
            return
        for name in CAMERA_KEYS:
            if key == getattr(keys, name):
                self.key_state[name] = pressed

    def on_resize(self, width: int, height: int) -> None:
        if height > 0:
            self.camera.aspect_ratio = width / height

    def on_render(self, time: float, frame_time: float) -> None:
        self.camera.update(frame_time=frame_time, key_state=self.key_state)

        self.ctx.screen.use()
        self.ctx.clear(0.1, 0.1, 0.12, 1.0)
        self.drawer.draw(root=self.root, view=self.camera.get_view_matrix(), projection=self.camera.get_projection_matrix())
        pass

    def on_close(self) -> None:
        logger.info("Releasing GPU resources")
        self.drawer.release()
        self.uploader.release(self.root)
        self.program_scene.release()
        pass
