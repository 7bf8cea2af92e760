"""
Amenity Engine Data Model
Typed records shared by the normalizer, cache, filters, search and review modules
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from data_sources.utils import LatLng, validate_coordinates


# Route slugs used by the map clients
_VERTICAL_ALIASES = {
    "bathroom": "restroom",
    "bathrooms": "restroom",
    "toilets": "restroom",
    "bmx_track": "bmx",
    "bmx_tracks": "bmx",
}


class Vertical(str, Enum):
    """One amenity category, each with its own attribute schema."""
    RESTROOM = "restroom"
    DOG_PARK = "dog_park"
    SHOWER = "shower"
    FITNESS_STATION = "fitness_station"
    OUTDOOR_GYM = "outdoor_gym"
    SWIMMING_POOL = "swimming_pool"
    GYM = "gym"
    PLAYGROUND = "playground"
    PRAYER_ROOM = "prayer_room"
    SKATE_PARK = "skate_park"
    BMX = "bmx"
    ROLLER_SPORTS = "roller_sports"

    @classmethod
    def parse(cls, value: Any) -> "Vertical":
        """Accept a Vertical, its value, or the hyphenated URL slug ("dog-parks" style)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower().replace("-", "_")
        text = _VERTICAL_ALIASES.get(text, text)
        if text in cls._value2member_map_:
            return cls(text)
        if text.endswith("s") and text[:-1] in cls._value2member_map_:
            return cls(text[:-1])
        raise ValueError(f"Unknown vertical: {value!r}")


class TriState(Enum):
    """A yes/no answer that keeps 'not recorded' distinct from 'no'."""
    TRUE = "yes"
    FALSE = "no"
    UNKNOWN = "unknown"

    def as_bool(self) -> Optional[bool]:
        if self is TriState.TRUE:
            return True
        if self is TriState.FALSE:
            return False
        return None

    @property
    def is_known(self) -> bool:
        return self is not TriState.UNKNOWN


class HandDryerType(str, Enum):
    ELECTRIC = "electric"
    PAPER = "paper"
    NONE = "none"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class BoundingBox:
    """Rectangular viewport in degrees. No antimeridian wraparound."""
    south: float
    west: float
    north: float
    east: float

    def __post_init__(self):
        for name in ("south", "west", "north", "east"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or math.isnan(value):
                raise ValueError(f"BoundingBox.{name} must be a number, got {value!r}")
        if not (-90 <= self.south <= 90 and -90 <= self.north <= 90):
            raise ValueError(f"Latitude out of range in {self}")
        if not (-180 <= self.west <= 180 and -180 <= self.east <= 180):
            raise ValueError(f"Longitude out of range in {self}")
        if not self.south < self.north:
            raise ValueError(f"south must be < north in {self}")
        if not self.west < self.east:
            raise ValueError(f"west must be < east in {self}")

    @classmethod
    def from_corners(cls, sw_lat: float, sw_lng: float, ne_lat: float, ne_lng: float) -> "BoundingBox":
        """Build from the swLat/swLng/neLat/neLng viewport corners a map widget reports."""
        return cls(south=float(sw_lat), west=float(sw_lng), north=float(ne_lat), east=float(ne_lng))

    def quantize(self, precision: int = 3) -> "BoundingBox":
        """Round every corner to `precision` decimals.

        A box whose edges collapse after rounding is widened by one step so the
        result still satisfies south < north and west < east.
        """
        step = 10 ** -precision
        south = round(self.south, precision)
        west = round(self.west, precision)
        north = round(self.north, precision)
        east = round(self.east, precision)
        if north <= south:
            if south + step <= 90:
                north = round(south + step, precision)
            else:
                south = round(north - step, precision)
        if east <= west:
            if west + step <= 180:
                east = round(west + step, precision)
            else:
                west = round(east - step, precision)
        return BoundingBox(south=south, west=west, north=north, east=east)

    def to_overpass(self) -> str:
        """Overpass bbox filter order: south,west,north,east."""
        return f"{self.south},{self.west},{self.north},{self.east}"

    @property
    def center(self) -> LatLng:
        return LatLng((self.south + self.north) / 2, (self.west + self.east) / 2)


@dataclass(frozen=True)
class RawElement:
    """One Overpass element. Read-only input to the normalizer."""
    id: int
    type: str
    tags: Mapping[str, str] = field(default_factory=dict)
    lat: Optional[float] = None
    lon: Optional[float] = None
    center: Optional[LatLng] = None

    @property
    def source_id(self) -> str:
        return f"{self.type}_{self.id}"

    def coordinates(self) -> Optional[LatLng]:
        """Usable coordinates: node position, else the supplied centroid."""
        if self.lat is not None and self.lon is not None:
            point = LatLng(self.lat, self.lon)
        elif self.center is not None:
            point = self.center
        else:
            return None
        if not validate_coordinates(point.lat, point.lng):
            return None
        return LatLng(float(point.lat), float(point.lng))

    @classmethod
    def from_overpass(cls, element: Dict[str, Any]) -> "RawElement":
        """
        Parse an element from an Overpass JSON response.

        Ways and relations get a centroid from `center` (out center), the
        midpoint of `bounds`, or the first point of `geometry` (out geom),
        in that order.

        Raises:
            ValueError: the element is not an object, or its tags are not one
        """
        if not isinstance(element, dict):
            raise ValueError(f"Expected an element object, got {type(element).__name__}")
        tags = element.get("tags") or {}
        if not isinstance(tags, Mapping):
            raise ValueError(f"Element {element.get('id')} has malformed tags")

        center = None
        raw_center = element.get("center")
        if isinstance(raw_center, dict) and "lat" in raw_center and "lon" in raw_center:
            center = LatLng(raw_center["lat"], raw_center["lon"])
        elif isinstance(element.get("bounds"), dict):
            b = element["bounds"]
            try:
                center = LatLng((b["minlat"] + b["maxlat"]) / 2, (b["minlon"] + b["maxlon"]) / 2)
            except (KeyError, TypeError):
                center = None
        elif isinstance(element.get("geometry"), list) and element["geometry"]:
            first = element["geometry"][0]
            if isinstance(first, dict) and "lat" in first and "lon" in first:
                center = LatLng(first["lat"], first["lon"])

        return cls(
            id=element.get("id"),
            type=element.get("type", "node"),
            tags={str(k): str(v) for k, v in tags.items()},
            lat=element.get("lat"),
            lon=element.get("lon"),
            center=center,
        )


@dataclass(frozen=True)
class Amenity:
    """A normalized amenity for one vertical.

    `attributes` only ever comes from tags; `extra_tags` holds the tags no
    field table consumed so detail panels can still show them.
    """
    id: str
    source_id: str
    vertical: Vertical
    name: str
    latitude: float
    longitude: float
    attributes: Mapping[str, Any] = field(default_factory=dict)
    extra_tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not validate_coordinates(self.latitude, self.longitude):
            raise ValueError(f"Amenity {self.id} has invalid coordinates "
                             f"({self.latitude}, {self.longitude})")
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))
        object.__setattr__(self, "extra_tags", MappingProxyType(dict(self.extra_tags)))

    def __hash__(self):
        return hash(self.id)

    @property
    def position(self) -> LatLng:
        return LatLng(self.latitude, self.longitude)

    def get(self, attribute: str, default: Any = None) -> Any:
        return self.attributes.get(attribute, default)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly form: tri-states become true/false/null."""
        attrs = {}
        for key, value in self.attributes.items():
            attrs[key] = value.as_bool() if isinstance(value, TriState) else value
        return {
            "id": self.id,
            "osmId": self.source_id,
            "type": self.vertical.value,
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            **attrs,
            "tags": dict(self.extra_tags),
        }


@dataclass(frozen=True)
class Review:
    """A user review of a restroom. Owned by the external review store."""
    id: int
    amenity_id: Any
    user_nickname: str
    cleanliness_rating: int
    has_toilet_paper: TriState = TriState.UNKNOWN
    has_mirror: TriState = TriState.UNKNOWN
    has_hot_water_soap: TriState = TriState.UNKNOWN
    has_soap: TriState = TriState.UNKNOWN
    has_sanitary_disposal: TriState = TriState.UNKNOWN
    hand_dryer_type: HandDryerType = HandDryerType.UNKNOWN
    photo_url: Optional[str] = None
    comments: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not 1 <= int(self.cleanliness_rating) <= 5:
            raise ValueError(f"cleanliness_rating must be 1..5, got {self.cleanliness_rating}")


@dataclass(frozen=True)
class SearchResult:
    """One geocoder hit. Ephemeral."""
    display_name: str
    lat: float
    lng: float

    @property
    def position(self) -> LatLng:
        return LatLng(self.lat, self.lng)
