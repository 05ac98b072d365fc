import logging
import pathlib as pl
import pytest
from scenebake.renderer.shader_compiler import load_shader, resolve_includes

SHADER_DIR = pl.Path(__file__).resolve().parent.parent / "scenebake" / "shaders"

def test_includes_are_inlined(tmp_path):
    (tmp_path / "common.glsl").write_text("float half(float x) { return x * 0.5; }\n", encoding="utf-8")
    (tmp_path / "lighting.glsl").write_text('#include "common.glsl"\nfloat lit() { return half(1.0); }\n', encoding="utf-8")
    source = resolve_includes('#version 330 core\n#include "lighting.glsl"\nvoid main() {}\n', tmp_path)
    assert "#include" not in source
    assert source.index("float half") < source.index("float lit") < source.index("void main")

def test_missing_include_becomes_an_error_comment(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="scenebake.renderer.shader_compiler"):
        source = resolve_includes('#include "nowhere.glsl"\n', tmp_path)
    assert "// ERROR: Include not found nowhere.glsl" in source
    assert "nowhere.glsl" in caplog.text

def test_include_cycle_is_rejected(tmp_path):
    (tmp_path / "a.glsl").write_text('#include "b.glsl"\n', encoding="utf-8")
    (tmp_path / "b.glsl").write_text('#include "a.glsl"\n', encoding="utf-8")
    with pytest.raises(ValueError):
        resolve_includes('#include "a.glsl"\n', tmp_path)

def test_bundled_viewer_shaders():
    vertex = load_shader(SHADER_DIR / "scene_vs.glsl")
    fragment = load_shader(SHADER_DIR / "scene_fs.glsl")
    for name in ("inPosition", "inColor", "inNormal", "inUV", "uTransformModel"):
        assert name in vertex
    assert "#include" not in fragment
    assert "uHasColorTexture" in fragment
    assert "lambert" in fragment
