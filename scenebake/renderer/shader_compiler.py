import logging
import pathlib as pl
import re
import typing

logger = logging.getLogger(__name__)

INCLUDE_PATTERN: re.Pattern[str] = re.compile(pattern=r'^\s*#include\s+"([^"]+)"', flags=re.MULTILINE)

def resolve_includes(source: str, base_path: pl.Path, _active: tuple[pl.Path, ...] = ()) -> str:
    """
    Recursively resolves #include "filename" directives in GLSL source code.
    Paths are relative to base_path. A missing file is replaced by an error comment so that
    the driver reports it at compile time; an include cycle raises ValueError.
    """
    def replace(match: re.Match[str]) -> str:
        filename: str | typing.Any = match.group(1)
        included_path: pl.Path = (base_path / filename).resolve(strict=False)

        if not included_path.exists():
            logger.warning("Included file not found: %s", included_path)
            return f"// ERROR: Include not found {filename}"
        if included_path in _active:
            raise ValueError(f"Circular #include of {included_path}")

        included_content: str = included_path.read_text(encoding="utf-8")
        return resolve_includes(source=included_content, base_path=base_path, _active=(*_active, included_path))

    return INCLUDE_PATTERN.sub(replace, source)

def load_shader(path: pl.Path) -> str:
    # Reads one shader stage and inlines its includes from the same directory.
    return resolve_includes(source=path.read_text(encoding="utf-8"), base_path=path.parent)
