import numpy as np
import numpy.typing as npt

_EPSILON: float = 1.0e-12

def newell_normal(positions: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Polygon normal by Newell's method. Robust for non-planar and concave polygons,
    its length is twice the projected area (zero for degenerate polygons).
    """
    current: npt.NDArray[np.float64] = positions
    following: npt.NDArray[np.float64] = np.roll(positions, -1, axis=0)
    return np.array([
        np.sum((current[:, 1] - following[:, 1]) * (current[:, 2] + following[:, 2])),
        np.sum((current[:, 2] - following[:, 2]) * (current[:, 0] + following[:, 0])),
        np.sum((current[:, 0] - following[:, 0]) * (current[:, 1] + following[:, 1])),
    ], dtype=np.float64)

def project_to_plane(positions: npt.NDArray[np.float64], normal: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    # Drop the dominant axis of the normal. Keeps winding when the dropped axis is positive.
    axis: int = int(np.argmax(np.abs(normal)))
    kept: list[int] = [(axis + 1) % 3, (axis + 2) % 3]
    projected: npt.NDArray[np.float64] = positions[:, kept]
    if normal[axis] < 0.0:
        projected = projected[:, ::-1]
    return projected

def _cross_2d(o: npt.NDArray[np.float64], a: npt.NDArray[np.float64], b: npt.NDArray[np.float64]) -> float:
    return float((a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0]))

def _point_in_triangle(p: npt.NDArray[np.float64], a: npt.NDArray[np.float64], b: npt.NDArray[np.float64], c: npt.NDArray[np.float64]) -> bool:
    # Counter-clockwise triangle, points on the boundary count as inside.
    return _cross_2d(a, b, p) >= -_EPSILON and _cross_2d(b, c, p) >= -_EPSILON and _cross_2d(c, a, p) >= -_EPSILON

def _fan(corners: list[int]) -> list[int]:
    triangles: list[int] = []
    for i in range(1, len(corners) - 1):
        triangles.extend((corners[0], corners[i], corners[i + 1]))
    return triangles

def _triangulate_quad(points: npt.NDArray[np.float64], corners: list[int]) -> list[int]:
    # Split along the shorter diagonal unless that diagonal lies outside a concave quad.
    split_02: list[int] = [0, 1, 2, 0, 2, 3]
    split_13: list[int] = [1, 2, 3, 1, 3, 0]

    def is_valid(split: list[int]) -> bool:
        return (_cross_2d(points[split[0]], points[split[1]], points[split[2]]) > _EPSILON and
                _cross_2d(points[split[3]], points[split[4]], points[split[5]]) > _EPSILON)

    length_02: float = float(np.sum((points[0] - points[2]) ** 2))
    length_13: float = float(np.sum((points[1] - points[3]) ** 2))
    preferred, other = (split_02, split_13) if length_02 <= length_13 else (split_13, split_02)
    if not is_valid(preferred) and is_valid(other):
        preferred = other
    return [corners[i] for i in preferred]

def _ear_clip(points: npt.NDArray[np.float64], corners: list[int]) -> list[int]:
    remaining: list[int] = list(range(len(corners)))
    triangles: list[int] = []

    while len(remaining) > 3:
        count: int = len(remaining)
        ear_found: bool = False
        for i in range(count):
            prev_ix: int = remaining[(i - 1) % count]
            curr_ix: int = remaining[i]
            next_ix: int = remaining[(i + 1) % count]
            a, b, c = points[prev_ix], points[curr_ix], points[next_ix]
            # Reflex or collinear corner, cannot be an ear.
            if _cross_2d(a, b, c) <= _EPSILON:
                continue
            blocked: bool = False
            for other_ix in remaining:
                if other_ix in (prev_ix, curr_ix, next_ix):
                    continue
                if _point_in_triangle(points[other_ix], a, b, c):
                    blocked = True
                    break
            if blocked:
                continue
            triangles.extend((corners[prev_ix], corners[curr_ix], corners[next_ix]))
            remaining.pop(i)
            ear_found = True
            break

        if not ear_found:
            # Self-intersecting or degenerate remainder: finish with a fan so the triangle count holds.
            triangles.extend(_fan([corners[ix] for ix in remaining]))
            return triangles

    triangles.extend(corners[ix] for ix in remaining)
    return triangles

def triangulate_face(positions: npt.NDArray[np.float64], corners: list[int]) -> list[int]:
    """
    Triangulates one polygon given the positions of its corners (in order).
    Returns `corners` entries, three per triangle, exactly len(corners) - 2 triangles.
    Triangles keep the winding of the source polygon.
    """
    count: int = len(corners)
    if count < 3:
        return []
    if count == 3:
        return list(corners)

    points3d: npt.NDArray[np.float64] = np.asarray(positions, dtype=np.float64).reshape((count, 3))
    normal: npt.NDArray[np.float64] = newell_normal(points3d)
    if float(np.linalg.norm(normal)) <= _EPSILON:
        return _fan(list(corners))

    points: npt.NDArray[np.float64] = project_to_plane(points3d, normal)
    if count == 4:
        return _triangulate_quad(points, list(corners))
    return _ear_clip(points, list(corners))
