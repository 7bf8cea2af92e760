"""
Tag Normalizer
Maps raw OSM tag dictionaries onto typed per-vertical Amenity records

An element is normalized once per vertical query. The same OSM object
normalized for two verticals (e.g. a shower that is also tagged as a fitness
station) yields two independent Amenity records with different ids.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from logging_config import get_logger
from data_sources import telemetry
from .field_tables import (
    ANY_OTHER,
    DEFAULT_NAMES,
    NO_TOKENS,
    YES_TOKENS,
    Coercion,
    FieldRule,
    consumed_keys,
    field_table,
)
from .models import Amenity, RawElement, TriState, Vertical

logger = get_logger(__name__)


@dataclass
class NormalizationResult:
    """Amenities produced from one upstream response, plus what was dropped."""
    amenities: List[Amenity] = field(default_factory=list)
    skipped: int = 0
    duplicates: int = 0


def _token(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip().lower()


def _first_present(tags: Mapping[str, str], keys) -> Optional[str]:
    for key in keys:
        value = tags.get(key)
        if value is not None and str(value).strip() != "":
            return str(value).strip()
    return None


def _parse_number(value: Optional[str]) -> Optional[Union[int, float]]:
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    if number != number:  # NaN
        return None
    return int(number) if number.is_integer() else number


def coerce(rule: FieldRule, tags: Mapping[str, str]) -> Any:
    """Apply one field rule to a tag dictionary."""
    if rule.coercion is Coercion.STRING:
        return _first_present(tags, rule.tag_keys)

    if rule.coercion is Coercion.NUMBER:
        return _parse_number(_first_present(tags, rule.tag_keys))

    if rule.coercion is Coercion.BOOLEAN:
        value = _token(_first_present(tags, rule.tag_keys))
        return value is not None and value not in NO_TOKENS

    if rule.coercion is Coercion.TRISTATE:
        value = _token(_first_present(tags, rule.tag_keys))
        if value in YES_TOKENS:
            return TriState.TRUE
        if value in NO_TOKENS:
            return TriState.FALSE
        # Absent, or something like "limited"/"maybe": never assert "no"
        return TriState.UNKNOWN

    if rule.coercion is Coercion.ANY_YES:
        accepted = YES_TOKENS | rule.values
        for key in rule.tag_keys:
            if _token(tags.get(key)) in accepted:
                return TriState.TRUE
        if _token(tags.get(rule.tag_keys[0])) in NO_TOKENS:
            return TriState.FALSE
        return TriState.UNKNOWN

    if rule.coercion is Coercion.MATCHES:
        raw = _token(_first_present(tags, rule.tag_keys))
        if raw is None:
            return TriState.UNKNOWN
        # Multi-valued OSM tags are ';' separated
        parts = {p.strip() for p in raw.split(";") if p.strip()}
        if parts & rule.values:
            return TriState.TRUE
        if rule.false_values == ANY_OTHER or parts & rule.false_values:
            return TriState.FALSE
        return TriState.UNKNOWN

    if rule.coercion is Coercion.FLAG_NAME:
        for key in rule.tag_keys:
            if _token(tags.get(key)) in YES_TOKENS:
                return key
        return None

    raise ValueError(f"Unsupported coercion {rule.coercion}")


def normalize_tags(tags: Mapping[str, str], vertical: Vertical) -> Dict[str, Any]:
    """Attributes for a vertical derived purely from tags."""
    return {rule.attribute: coerce(rule, tags) for rule in field_table(vertical)}


def amenity_id(source_id: str, vertical: Vertical) -> str:
    return f"{Vertical.parse(vertical).value}:{source_id}"


def normalize_element(element: Union[RawElement, Dict[str, Any]],
                      vertical: Vertical) -> Optional[Amenity]:
    """
    Normalize one raw element for a vertical.

    Returns None (a normalization skip, not an error) when the element has no
    usable coordinates or no id.
    """
    vertical = Vertical.parse(vertical)
    if not isinstance(element, RawElement):
        element = RawElement.from_overpass(element)

    if element.id is None:
        return None
    point = element.coordinates()
    if point is None:
        return None

    tags = element.tags or {}
    name = _first_present(tags, ("name",)) or DEFAULT_NAMES[vertical]
    known = consumed_keys(vertical)

    return Amenity(
        id=amenity_id(element.source_id, vertical),
        source_id=element.source_id,
        vertical=vertical,
        name=name,
        latitude=point.lat,
        longitude=point.lng,
        attributes=normalize_tags(tags, vertical),
        extra_tags={k: v for k, v in tags.items() if k not in known},
    )


def normalize_elements(elements: Iterable[Union[RawElement, Dict[str, Any]]],
                       vertical: Vertical) -> NormalizationResult:
    """
    Normalize a whole upstream response for one vertical.

    Uncoordinated or malformed elements are dropped and counted. The same
    source object appearing twice in one response (Overpass unions can repeat
    an element matched by several selectors) is kept once.
    """
    vertical = Vertical.parse(vertical)
    result = NormalizationResult()
    seen = set()

    for element in elements:
        try:
            amenity = normalize_element(element, vertical)
        except (AttributeError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed {vertical.value} element: {e}")
            amenity = None

        if amenity is None:
            result.skipped += 1
            continue
        if amenity.id in seen:
            result.duplicates += 1
            continue
        seen.add(amenity.id)
        result.amenities.append(amenity)

    if result.skipped:
        telemetry.record_normalization_skips(vertical.value, result.skipped)
        logger.debug(f"Dropped {result.skipped} unusable {vertical.value} elements",
                     extra={"vertical": vertical.value, "skipped": result.skipped})

    return result
