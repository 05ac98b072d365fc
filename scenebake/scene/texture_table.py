import logging
import os
import pathlib as pl
import typing
from scenebake.scene.node import TextureEntry, TextureTable
from scenebake.scene.source import SourceScene, SourceMaterial, SourceTexture

logger = logging.getLogger(__name__)

def resolve_asset_path(relative_filename: str, asset_dir: pl.Path | None) -> str:
    """
    Turns a texture reference from the source material into a path string.
    Authoring tools on Windows write backslashes; absolute paths are kept as they are.
    """
    # Normalize separators before pathlib sees the string.
    normalized: str = relative_filename.replace("\\", "/")
    path: pl.Path = pl.Path(normalized)
    if path.is_absolute() or asset_dir is None:
        return os.path.normpath(str(path))
    return os.path.normpath(str(asset_dir / path))

def referenced_textures(source_scene: SourceScene) -> typing.Iterator[SourceTexture]:
    # Scene texture list first, then any base-color texture a material carries that the list missed.
    yield from source_scene.textures
    for material in source_scene.materials:
        if material.base_color_texture is not None:
            yield material.base_color_texture

def build_texture_table(source_scene: SourceScene, asset_dir: pl.Path | None) -> TextureTable:
    """
    One entry per distinct resolved path, in order of first reference.
    Built once for the root; entries are shared by reference with every node and mesh part.
    """
    table: TextureTable = TextureTable()
    for texture in referenced_textures(source_scene):
        # Prefer the reference as the file wrote it; the bare filename is the fallback.
        reference: str = texture.relative_filename or texture.filename
        if not reference:
            continue
        path: str = resolve_asset_path(reference, asset_dir)
        if table.find_by_path(path) is not None:
            continue
        # New path: append, so entry order follows first reference.
        table.append(TextureEntry(path=path, filename=texture.filename))
        logger.debug("Texture Path: %s", path)
    return table

def resolve_color_texture(material: SourceMaterial | None, texture_table: TextureTable, asset_dir: pl.Path | None = None) -> TextureEntry | None:
    """
    Finds the table entry for a material's base-color texture.
    The reference is resolved the same way the table was built and looked up by path;
    only when that misses is the leaf filename tried, first match winning.
    No match means the part is drawn untextured.
    """
    if material is None or material.base_color_texture is None:
        return None
    texture: SourceTexture = material.base_color_texture
    reference: str = texture.relative_filename or texture.filename
    # Same leaf name in different folders (chair/diffuse.png, table/diffuse.png) only resolves by path.
    entry: TextureEntry | None = texture_table.find_by_path(resolve_asset_path(reference, asset_dir)) if reference else None
    if entry is None:
        entry = texture_table.find_by_filename(texture.filename)
    if entry is None:
        logger.debug("Unresolved base color texture %r for material %r", reference, material.name)
    return entry
