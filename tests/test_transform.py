import math
import numpy as np
from scenebake.scene.node import Node
from scenebake.scene.transform import trs_matrix, transform_point

def test_root_global_is_local():
    root = Node(name="root", local_position=(1.0, 2.0, 3.0), local_scale=(2.0, 2.0, 2.0))
    assert np.allclose(np.asarray(root.global_transform()), np.asarray(root.local_transform()))

def test_scale_then_rotate_then_translate():
    # 180 degrees about Z, sign-independent of the rotation direction.
    matrix = trs_matrix(translation=(0.0, 5.0, 0.0), rotation=(0.0, 0.0, 1.0, 0.0), scale=(2.0, 2.0, 2.0))
    assert np.allclose(transform_point(matrix, (1.0, 0.0, 0.0)), (-2.0, 5.0, 0.0))

def test_quarter_turn_about_z_maps_x_to_y():
    half = math.sqrt(0.5)
    matrix = trs_matrix(translation=(0.0, 0.0, 0.0), rotation=(0.0, 0.0, half, half), scale=(1.0, 1.0, 1.0))
    assert np.allclose(transform_point(matrix, (1.0, 0.0, 0.0)), (0.0, 1.0, 0.0))
    assert np.allclose(transform_point(matrix, (0.0, 1.0, 0.0)), (-1.0, 0.0, 0.0))

def test_node_rotation_follows_the_right_hand_rule():
    half = math.sqrt(0.5)
    node = Node(name="spun", local_rotation=(0.0, 0.0, half, half))
    assert np.allclose(transform_point(node.global_transform(), (1.0, 0.0, 0.0)), (0.0, 1.0, 0.0))
    # A quarter turn about +Y carries +Z onto +X, and about +X carries +Y onto +Z.
    about_y = trs_matrix(translation=(0.0, 0.0, 0.0), rotation=(0.0, half, 0.0, half), scale=(1.0, 1.0, 1.0))
    about_x = trs_matrix(translation=(0.0, 0.0, 0.0), rotation=(half, 0.0, 0.0, half), scale=(1.0, 1.0, 1.0))
    assert np.allclose(transform_point(about_x, (0.0, 1.0, 0.0)), (0.0, 0.0, 1.0))
    assert np.allclose(transform_point(about_y, (0.0, 0.0, 1.0)), (1.0, 0.0, 0.0))

def test_geometry_transform_applies_to_vertices_only():
    parent = Node(name="parent", local_position=(0.0, 0.0, 10.0))
    child = parent.add_child(Node(name="child", geometry_scale=(0.5, 0.5, 0.5)))

    world = transform_point(child.global_geometry_transform(), (2.0, 0.0, 0.0))
    assert np.allclose(world, (1.0, 0.0, 10.0))

    # The geometry transform does not leak into the node's own global transform.
    assert np.allclose(transform_point(child.global_transform(), (2.0, 0.0, 0.0)), (2.0, 0.0, 10.0))

def test_global_is_parent_global_times_local():
    parent = Node(name="parent", local_position=(1.0, 0.0, 0.0), local_rotation=(0.0, 0.0, math.sin(math.pi / 8), math.cos(math.pi / 8)), local_scale=(2.0, 1.0, 1.0))
    child = parent.add_child(Node(name="child", local_position=(0.0, 3.0, 0.0), local_scale=(1.0, 0.5, 1.0)))
    grandchild = child.add_child(Node(name="grandchild", local_position=(0.0, 0.0, -1.0)))

    assert np.allclose(np.asarray(child.global_transform()), np.asarray(parent.global_transform() * child.local_transform()))
    assert np.allclose(np.asarray(grandchild.global_transform()), np.asarray(child.global_transform() * grandchild.local_transform()))

def test_deep_hierarchy_does_not_recurse():
    root = Node(name="root")
    node = root
    for i in range(3000):
        node = node.add_child(Node(name=f"n{i}", local_position=(0.0, 0.0, 1.0)))

    assert np.allclose(transform_point(node.global_transform(), (0.0, 0.0, 0.0)), (0.0, 0.0, 3000.0))
    assert sum(1 for _ in root.walk()) == 3001
