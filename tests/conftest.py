import pytest

from data_sources.telemetry import reset_telemetry


@pytest.fixture(autouse=True)
def clean_telemetry():
    reset_telemetry()
    yield
    reset_telemetry()


@pytest.fixture
def sf_bbox():
    from amenities.models import BoundingBox
    return BoundingBox(south=37.70, west=-122.52, north=37.82, east=-122.35)


@pytest.fixture
def overpass_elements():
    """A small mixed Overpass response: node, way with center, and an uncoordinated relation."""
    return [
        {"type": "node", "id": 101, "lat": 37.7793, "lon": -122.4193,
         "tags": {"amenity": "toilets", "wheelchair": "yes", "changing_table": "no",
                  "name": "City Hall Restroom", "fee": "no"}},
        {"type": "way", "id": 202, "center": {"lat": 37.7694, "lon": -122.4862},
         "tags": {"amenity": "toilets", "wheelchair": "limited", "unisex": "yes"}},
        {"type": "relation", "id": 303, "tags": {"amenity": "toilets"}},
    ]
