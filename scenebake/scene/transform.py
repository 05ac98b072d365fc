import typing
import numpy as np
import numpy.typing as npt
import pyrr as rr # type: ignore[import-untyped]
from scenebake.core.common_types import vec3f32, quatf32

# Matrices follow the pyrr layout: row vectors, translation in the last row, so that
# the flattened array is what a column-major GPU uniform expects.
# pyrr's operator keeps the math notation: A * B applies B first.

class Transformable(typing.Protocol):
    local_position: vec3f32
    local_rotation: quatf32
    local_scale: vec3f32
    geometry_position: vec3f32
    geometry_rotation: quatf32
    geometry_scale: vec3f32

    @property
    def parent(self) -> "Transformable | None": ...

def trs_matrix(translation: vec3f32, rotation: quatf32, scale: vec3f32) -> rr.Matrix44:
    """
    Translate(t) * Rotate(r) * Scale(s): scale first, then rotate, then translate.
    `rotation` is a unit quaternion (x, y, z, w).
    """
    matrix_translation: rr.Matrix44 = rr.Matrix44.from_translation(translation)
    # pyrr builds quaternion matrices for column vectors; the inverse is the same rotation
    # laid out for the row vectors used here.
    matrix_rotation: rr.Matrix44 = rr.Matrix44.from_inverse_of_quaternion(rr.quaternion.normalize(np.asarray(rotation, dtype=np.float64)))
    matrix_scale: rr.Matrix44 = rr.Matrix44.from_scale(scale)
    return matrix_translation * matrix_rotation * matrix_scale

def local_transform(node: Transformable) -> rr.Matrix44:
    return trs_matrix(node.local_position, node.local_rotation, node.local_scale)

def geometry_transform(node: Transformable) -> rr.Matrix44:
    # Identity for nodes without a geometry transform (their fields keep the defaults).
    return trs_matrix(node.geometry_position, node.geometry_rotation, node.geometry_scale)

def global_transform(node: Transformable) -> rr.Matrix44:
    """
    GlobalTransform(node) = GlobalTransform(parent) * LocalTransform(node),
    with the root's global transform being its local transform.
    Walks up iteratively so deep hierarchies do not hit the recursion limit.
    """
    matrix: rr.Matrix44 = local_transform(node)
    ancestor: Transformable | None = node.parent
    while ancestor is not None:
        matrix = local_transform(ancestor) * matrix
        ancestor = ancestor.parent
    return matrix

def global_geometry_transform(node: Transformable) -> rr.Matrix44:
    # The matrix that places mesh vertices in world space.
    return global_transform(node) * geometry_transform(node)

def transform_point(matrix: npt.NDArray[np.float32], point: vec3f32) -> npt.NDArray[np.float64]:
    homogeneous: npt.NDArray[np.float64] = np.append(np.asarray(point, dtype=np.float64), 1.0) @ np.asarray(matrix, dtype=np.float64)
    return homogeneous[:3] / homogeneous[3]
