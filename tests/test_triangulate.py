import numpy as np
from scenebake.scene.triangulate import triangulate_face, newell_normal

def signed_area(points, triangles, corners):
    # Sum of signed XY areas of the triangles, corners mapped back to positions.
    lookup = {corner: np.asarray(points[i], dtype=np.float64) for i, corner in enumerate(corners)}
    total = 0.0
    for i in range(0, len(triangles), 3):
        a, b, c = (lookup[corner] for corner in triangles[i:i + 3])
        total += 0.5 * ((b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0]))
    return total

def test_triangle_passes_through():
    positions = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)]
    assert triangulate_face(positions, [7, 8, 9]) == [7, 8, 9]

def test_degenerate_faces_produce_nothing():
    assert triangulate_face(np.zeros((2, 3)), [0, 1]) == []
    assert triangulate_face(np.zeros((0, 3)), []) == []

def test_square_splits_into_two_triangles():
    positions = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 1.0, 0.0)]
    assert triangulate_face(positions, [0, 1, 2, 3]) == [0, 1, 2, 0, 2, 3]

def test_quad_uses_shorter_diagonal():
    # Diagonal 1-3 (length 2) is shorter than 0-2 (length 4).
    positions = [(-2.0, 0.0, 0.0), (0.0, -1.0, 0.0), (2.0, 0.0, 0.0), (0.0, 1.0, 0.0)]
    assert triangulate_face(positions, [0, 1, 2, 3]) == [1, 2, 3, 1, 3, 0]

def test_concave_quad_avoids_outside_diagonal():
    # Arrowhead with a reflex corner at 2: the short diagonal 1-3 lies outside the polygon.
    positions = [(0.0, 0.0, 0.0), (10.0, -1.0, 0.0), (9.0, 0.0, 0.0), (10.0, 1.0, 0.0)]
    assert triangulate_face(positions, [0, 1, 2, 3]) == [0, 1, 2, 0, 2, 3]

def test_hexagon_gives_four_triangles_covering_the_polygon():
    angles = np.linspace(0.0, 2.0 * np.pi, 6, endpoint=False)
    positions = [(np.cos(a), np.sin(a), 0.0) for a in angles]
    corners = [10, 11, 12, 13, 14, 15]
    triangles = triangulate_face(positions, corners)
    assert len(triangles) == 3 * 4
    assert set(triangles) == set(corners)
    assert np.isclose(signed_area(positions, triangles, corners), 1.5 * np.sqrt(3.0))

def test_concave_polygon_is_ear_clipped():
    # L shape, area 3.
    positions = [(0.0, 0.0, 0.0), (2.0, 0.0, 0.0), (2.0, 1.0, 0.0), (1.0, 1.0, 0.0), (1.0, 2.0, 0.0), (0.0, 2.0, 0.0)]
    corners = list(range(6))
    triangles = triangulate_face(positions, corners)
    assert len(triangles) == 3 * 4
    # Every triangle keeps the polygon's winding, so none overlaps outside the L.
    for i in range(0, len(triangles), 3):
        assert signed_area(positions, triangles[i:i + 3], corners) > 0.0
    assert np.isclose(signed_area(positions, triangles, corners), 3.0)

def test_clockwise_polygon_keeps_its_winding():
    positions = [(0.0, 2.0, 0.0), (1.0, 2.0, 0.0), (1.0, 1.0, 0.0), (2.0, 1.0, 0.0), (2.0, 0.0, 0.0), (0.0, 0.0, 0.0)]
    corners = list(range(6))
    triangles = triangulate_face(positions, corners)
    assert newell_normal(np.asarray(positions))[2] < 0.0
    for i in range(0, len(triangles), 3):
        assert signed_area(positions, triangles[i:i + 3], corners) < 0.0

def test_polygon_in_vertical_plane():
    positions = [(0.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 1.5, 1.0), (0.0, 1.0, 2.0), (0.0, 0.0, 2.0)]
    triangles = triangulate_face(positions, [0, 1, 2, 3, 4])
    assert len(triangles) == 9

def test_collinear_polygon_still_yields_n_minus_2_triangles():
    positions = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (2.0, 0.0, 0.0), (3.0, 0.0, 0.0), (4.0, 0.0, 0.0)]
    assert len(triangulate_face(positions, [0, 1, 2, 3, 4])) == 9
