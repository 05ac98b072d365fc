import moderngl_window as mglw
from scenebake.renderer.scene_viewer import SceneViewer

if __name__ == "__main__":
    # python main.py <scene-file> [--scale 0.01] [--asset-dir DIR]
    mglw.run_window_config(SceneViewer)
    pass
