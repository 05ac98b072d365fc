import logging
import sys
from scenebake.core.errors import SceneBakeError
from scenebake.scene.node import Node, describe
from scenebake.scene.scene_importer import load_scene

def inspect(path: str, verbose: bool = False) -> int:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    try:
        root: Node = load_scene(path)
    except SceneBakeError as e:
        print(e, file=sys.stderr)
        return 1

    print("Nodes:")
    for line in describe(root):
        print(f"  {line}")

    print(f"Textures ({len(root.texture_table)}):")
    for i, entry in enumerate(root.texture_table):
        print(f"  [{i}] {entry.filename} -> {entry.path}")
    return 0

if __name__ == "__main__":
    arguments: list[str] = [argument for argument in sys.argv[1:] if argument != "-v"]
    if len(arguments) != 1:
        print("Usage: python inspect_scene.py [-v] <path_to_scene>")
        sys.exit(2)
    sys.exit(inspect(arguments[0], verbose="-v" in sys.argv[1:]))
