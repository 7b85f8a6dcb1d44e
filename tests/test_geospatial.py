import pytest

from src.gatesolve.services.geospatial import (
    distance_m,
    format_route_path,
    google_maps_directions_url,
    nearest_point_on_lines,
    parse_lat_lng,
)


def test_distance_m_short_hop():
    # 0.001 degrees of latitude is about 111 meters
    assert distance_m((60.170, 24.940), (60.171, 24.940)) == pytest.approx(111.2, abs=0.5)


def test_distance_m_is_symmetric_and_zero_on_same_point():
    a, b = (60.10, 24.90), (60.20, 25.10)
    assert distance_m(a, b) == pytest.approx(distance_m(b, a))
    assert distance_m(a, a) == 0


def test_nearest_point_on_lines_projects_onto_segment():
    street = [[(60.0, 24.0), (60.0, 24.01)]]
    lat, lon = nearest_point_on_lines(street, (60.001, 24.005))

    assert lat == pytest.approx(60.0)
    assert lon == pytest.approx(24.005)


def test_nearest_point_on_lines_picks_closest_line_and_skips_degenerate_ones():
    lines = [[(60.0, 24.0)], [(60.01, 24.0), (60.01, 24.01)], [(60.002, 24.0), (60.002, 24.01)]]
    lat, _ = nearest_point_on_lines(lines, (60.001, 24.005))

    assert lat == pytest.approx(60.002)


def test_nearest_point_on_lines_empty_geometry():
    assert nearest_point_on_lines([], (60.0, 24.0)) is None


@pytest.mark.parametrize(
    "text, expected",
    [
        ("60.17,24.94", (60.17, 24.94)),
        ("60.17,", None),
        ("60.17", None),
        ("abc,24.94", None),
        ("60.17,124.94", None),
        ("undefined", None),
        (None, None),
    ],
)
def test_parse_lat_lng(text, expected):
    assert parse_lat_lng(text) == expected


def test_format_route_path_keeps_only_utm_source():
    path = format_route_path((60.1, 24.9), None, "?utm_source=qr&foo=bar")

    assert path == "/route/60.1,24.9/undefined/?utm_source=qr"


def test_format_route_path_without_query():
    assert format_route_path((60.1, 24.9), (60.2, 25.0)) == "/route/60.1,24.9/60.2,25.0/"


def test_google_maps_directions_url():
    url = google_maps_directions_url((60.1, 24.9), (60.2, 25.0))

    assert url.startswith("https://www.google.com/maps/dir/?api=1")
    assert "origin=60.1,24.9" in url
    assert "destination=60.2,25.0" in url
    assert "travelmode=driving" in url
