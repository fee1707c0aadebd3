import math

import pytest

from core.exceptions import DegenerateGeometryError, InvalidCornerCountError, InvalidInputError
from core.geometry import (
    Point2D,
    Quadrilateral,
    estimate_output_dimensions,
    normalize_corners,
    round_half_up,
    validate_quadrilateral,
)

SCENARIO_CORNERS = [(50, 60), (350, 40), (360, 280), (40, 260)]


@pytest.mark.parametrize('count', [0, 3, 5])
def test_normalize_rejects_wrong_corner_count(count):
    with pytest.raises(InvalidCornerCountError):
        normalize_corners([(0, 0)] * count)


def test_invalid_corner_count_is_invalid_input():
    with pytest.raises(InvalidInputError) as exc_info:
        normalize_corners([(0, 0), (1, 0), (1, 1)])
    assert exc_info.value.status_code == 400


def test_normalize_keeps_caller_order():
    # deliberately "wrong" order is not repaired
    quad = normalize_corners([(10, 10), (0, 0), (0, 10), (10, 0)])
    assert quad.top_left == Point2D(10.0, 10.0)
    assert quad.top_right == Point2D(0.0, 0.0)
    assert quad.bottom_right == Point2D(0.0, 10.0)
    assert quad.bottom_left == Point2D(10.0, 0.0)


def test_normalize_accepts_json_mappings():
    quad = normalize_corners([{'x': 1, 'y': 2}, {'x': 3.5, 'y': 2}, {'x': 3.5, 'y': 9}, {'x': 1, 'y': 9}])
    assert quad.as_array().tolist() == [[1.0, 2.0], [3.5, 2.0], [3.5, 9.0], [1.0, 9.0]]


@pytest.mark.parametrize(
    'bad_point',
    [{'x': 1}, {'x': 'a', 'y': 2}, (1, 2, 3), (True, 2), (float('nan'), 1.0), 7],
)
def test_normalize_rejects_malformed_points(bad_point):
    with pytest.raises(InvalidInputError):
        normalize_corners([(0, 0), (10, 0), (10, 10), bad_point])


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2
    assert round_half_up(0.0) == 0


def test_estimate_concrete_scenario():
    quad = normalize_corners(SCENARIO_CORNERS)
    top, bottom, left, right = quad.edge_lengths()
    assert top == pytest.approx(math.hypot(300, 20))
    assert bottom == pytest.approx(math.hypot(320, 20))
    assert left == pytest.approx(math.hypot(10, 200))
    assert right == pytest.approx(math.hypot(10, 240))

    dims = estimate_output_dimensions(quad)
    assert (dims.width, dims.height) == (321, 240)
    assert dims.pixel_count == 321 * 240


@pytest.mark.parametrize(
    'corners',
    [
        [(0, 0), (100, 0), (100, 50), (0, 50)],
        [(12.3, 7.9), (210.4, 30.2), (190.0, 160.7), (3.1, 140.2)],
        [(100, 100), (400, 80), (420, 500), (90, 470)],
        [(0, 0), (10.5, 0), (10.5, 20.5), (0, 20.5)],
    ],
)
def test_estimate_uses_longer_parallel_edge(corners):
    quad = normalize_corners(corners)
    top, bottom, left, right = quad.edge_lengths()
    dims = estimate_output_dimensions(quad)
    assert dims.width == math.floor(max(top, bottom) + 0.5)
    assert dims.height == math.floor(max(left, right) + 0.5)


def test_estimate_zero_edges_gives_zero_dimensions():
    dims = estimate_output_dimensions(normalize_corners([(5, 5)] * 4))
    assert (dims.width, dims.height) == (0, 0)


def test_validate_accepts_convex_quad():
    validate_quadrilateral(normalize_corners(SCENARIO_CORNERS))


def test_validate_rejects_collinear_triple():
    quad = normalize_corners([(0, 0), (100, 0), (200, 0), (0, 100)])
    with pytest.raises(DegenerateGeometryError, match='collinear'):
        validate_quadrilateral(quad)


def test_validate_rejects_coincident_corners():
    quad = normalize_corners([(0, 0), (0, 0), (50, 50), (0, 50)])
    with pytest.raises(DegenerateGeometryError):
        validate_quadrilateral(quad)


def test_scaled_quadrilateral():
    quad = Quadrilateral(Point2D(10, 20), Point2D(30, 20), Point2D(30, 40), Point2D(10, 40))
    scaled = quad.scaled(0.5, 2.0)
    assert scaled.top_left == Point2D(5.0, 40.0)
    assert scaled.bottom_right == Point2D(15.0, 80.0)
    assert scaled.signed_area() == pytest.approx(quad.signed_area())
