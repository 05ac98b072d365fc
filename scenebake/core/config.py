import pathlib as pl
import typing
from scenebake.core.common_types import VertexLayout
from scenebake.core.errors import ConfigurationError

# pyassimp.postprocess.aiProcess_Triangulate and aiProcess_SortByPType. Kept as plain values so that
# this module does not pull in the native assimp library just to describe defaults.
AI_PROCESS_TRIANGULATE: int = 0x8
AI_PROCESS_SORT_BY_PTYPE: int = 0x8000
AI_PROCESS_DEFAULT: int = AI_PROCESS_TRIANGULATE | AI_PROCESS_SORT_BY_PTYPE

class ImportOptions(typing.TypedDict, total=False):
    # Settings for one scene import.
    # asset_dir: directory texture filenames are resolved against (defaults to the scene file's directory).
    # vertex_layout: packed vertex record written into every mesh part.
    # root_scale: uniform scale written into the root node's local scale, None keeps the source value.
    # assimp_processing: pyassimp post-process flags. The default has assimp triangulate every polygon.
    # flip_textures_vertically: flip decoded images so that row 0 is the bottom of the texture.
    asset_dir: pl.Path | None
    vertex_layout: VertexLayout
    root_scale: float | None
    assimp_processing: int
    flip_textures_vertically: bool

DEFAULT_IMPORT_OPTIONS: ImportOptions = {
    "asset_dir": None,
    "vertex_layout": VertexLayout.PBR,
    "root_scale": None,
    "assimp_processing": AI_PROCESS_DEFAULT,
    "flip_textures_vertically": True,
}

def resolve_import_options(options: typing.Mapping[str, typing.Any] | None = None) -> ImportOptions:
    """
    Merge user supplied options over DEFAULT_IMPORT_OPTIONS.
    Unknown keys and values of the wrong kind raise ConfigurationError.
    """
    resolved: ImportOptions = typing.cast(ImportOptions, dict(DEFAULT_IMPORT_OPTIONS))
    if not options:
        return resolved

    unknown: set[str] = set(options) - set(DEFAULT_IMPORT_OPTIONS)
    if unknown:
        raise ConfigurationError(f"Unknown import options: {', '.join(sorted(unknown))}")

    for key, value in options.items():
        resolved[key] = value  # type: ignore[literal-required]

    layout: typing.Any = resolved["vertex_layout"]
    if isinstance(layout, str):
        try:
            layout = VertexLayout(layout)
        except ValueError:
            raise ConfigurationError(f"Unknown vertex layout: {layout!r}") from None
    if not isinstance(layout, VertexLayout):
        raise ConfigurationError(f"vertex_layout must be a VertexLayout, got {layout!r}")
    resolved["vertex_layout"] = layout

    asset_dir: typing.Any = resolved["asset_dir"]
    if asset_dir is not None:
        resolved["asset_dir"] = pl.Path(asset_dir)

    root_scale: typing.Any = resolved["root_scale"]
    if root_scale is not None:
        if not isinstance(root_scale, (int, float)) or root_scale <= 0.0:
            raise ConfigurationError(f"root_scale must be a positive number, got {root_scale!r}")
        resolved["root_scale"] = float(root_scale)

    if not isinstance(resolved["assimp_processing"], int):
        raise ConfigurationError("assimp_processing must be an integer flag set")

    resolved["flip_textures_vertically"] = bool(resolved["flip_textures_vertically"])
    return resolved
