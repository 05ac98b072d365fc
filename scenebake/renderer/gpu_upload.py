import logging
import pathlib as pl
import typing
import moderngl as mgl
from scenebake.core.errors import ImageDecodeError
from scenebake.renderer.image_decoder import DecodedImage, decode_image
from scenebake.scene.node import Node, MeshPart, TextureEntry

logger = logging.getLogger(__name__)

class SceneUploader:
    # Moves an imported node tree onto the device.
    # Only GPU handle fields are written (MeshPart.vertex_buffer/index_buffer and
    # TextureEntry.handle/width/height/format); topology, transforms and vertex data stay untouched.
    def __init__(self, ctx: mgl.Context, decode: typing.Callable[..., DecodedImage] = decode_image, flip_vertically: bool = True) -> None:
        self.ctx: mgl.Context = ctx
        self.decode: typing.Callable[..., DecodedImage] = decode
        self.flip_vertically: bool = flip_vertically
        pass

    def upload_part(self, part: MeshPart) -> bool:
        if part.is_empty or part.vertex_buffer is not None:
            return False
        part.vertex_buffer = self.ctx.buffer(data=part.vertex_bytes())
        part.index_buffer = self.ctx.buffer(data=part.index_bytes())
        return True

    def upload_texture(self, entry: TextureEntry) -> bool:
        if entry.handle is not None:
            return False
        try:
            image: DecodedImage = self.decode(pl.Path(entry.path), flip_vertically=self.flip_vertically)
        except ImageDecodeError as e:
            # The texture stays without a handle; parts referencing it draw untextured.
            logger.warning("%s", e)
            return False

        texture: mgl.Texture = self.ctx.texture(size=(image.width, image.height), components=image.channels, data=image.pixels.tobytes())
        texture.build_mipmaps()
        entry.handle = texture
        entry.width = image.width
        entry.height = image.height
        entry.format = image.format
        return True

    def upload(self, root: Node) -> tuple[int, int]:
        """
        Uploads every non-empty mesh part, then every texture table entry once.
        Returns (parts uploaded, textures uploaded). Calling it again skips whatever
        already has a handle.
        """
        uploaded_parts: int = 0
        for node in root.walk():
            for part in node.mesh_parts:
                if self.upload_part(part):
                    uploaded_parts += 1

        uploaded_textures: int = 0
        for entry in root.texture_table:
            if self.upload_texture(entry):
                uploaded_textures += 1

        logger.info("Uploaded %d mesh parts and %d/%d textures", uploaded_parts, uploaded_textures, len(root.texture_table))
        return uploaded_parts, uploaded_textures

    def release(self, root: Node) -> None:
        for node in root.walk():
            for part in node.mesh_parts:
                if part.vertex_buffer is not None:
                    part.vertex_buffer.release()
                    part.vertex_buffer = None
                if part.index_buffer is not None:
                    part.index_buffer.release()
                    part.index_buffer = None
        for entry in root.texture_table:
            if entry.handle is not None:
                entry.handle.release()
                entry.handle = None
