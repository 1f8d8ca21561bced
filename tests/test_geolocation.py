"""Distance helpers: haversine, ZIP-delta proxy, service area coverage"""

import pytest

from scoopdash.services.geolocation import (
    ZIP_DELTA_CAP,
    area_covers,
    haversine_miles,
    job_distance,
    zip_centroid,
    zip_delta,
)

DENVER = (39.7392, -104.9903)
BOULDER = (40.0150, -105.2705)


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_miles(*DENVER, *DENVER) == 0

    def test_symmetric(self):
        assert haversine_miles(*DENVER, *BOULDER) == pytest.approx(haversine_miles(*BOULDER, *DENVER))

    def test_denver_to_boulder(self):
        assert 20 < haversine_miles(*DENVER, *BOULDER) < 30

    def test_never_negative(self):
        assert haversine_miles(0, 0, -10, -10) > 0


class TestZipDelta:
    def test_nearby_zips(self):
        assert zip_delta("80202", "80210") == 8.0

    def test_capped(self):
        assert zip_delta("80202", "10001") == ZIP_DELTA_CAP

    def test_missing_zip(self):
        assert zip_delta(None, "80202") is None
        assert zip_delta("80202", "") is None

    def test_non_numeric(self):
        assert zip_delta("ABCDE", "80202") is None


class TestJobDistance:
    def test_uses_coordinates_when_available(self):
        distance = job_distance(*DENVER, *BOULDER, origin_zip="80202", job_zip="80302")
        assert distance == round(haversine_miles(*DENVER, *BOULDER), 2)

    def test_falls_back_to_zip_delta(self):
        assert job_distance(None, None, *BOULDER, origin_zip="80202", job_zip="80205") == 3.0

    def test_unknown_when_nothing_usable(self):
        assert job_distance(None, None, None, None) is None


class TestAreaCovers:
    def test_same_zip(self):
        assert area_covers("80202", 1, "80202")

    def test_within_radius_of_centroid(self):
        # Capitol Hill, a couple of miles from downtown
        assert area_covers("80202", 10, "80203", 39.7310, -104.9800)

    def test_outside_radius(self):
        assert not area_covers("80202", 5, "80302", *BOULDER)

    def test_different_zip_without_coordinates(self):
        assert not area_covers("80202", 50, "80203")

    def test_zip_centroid_lookup(self):
        centroid = zip_centroid("80202")
        assert centroid is not None
        assert haversine_miles(*centroid, *DENVER) < 5

    def test_zip_centroid_unknown(self):
        assert zip_centroid("not-a-zip") is None
