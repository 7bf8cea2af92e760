"""
Per-Vertical Field Tables
Declarative tag -> attribute mapping for every amenity vertical

Each vertical gets one tuple of FieldRule entries. The normalizer walks the
table; nothing else in the engine knows which OSM tags feed which attribute.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Tuple

from .models import Vertical

YES_TOKENS = frozenset({"yes", "true", "1"})
NO_TOKENS = frozenset({"no", "false", "0"})

# Sentinel for MATCHES rules: any present value outside `values` counts as false
ANY_OTHER = frozenset({"*"})


class Coercion(Enum):
    BOOLEAN = "boolean"      # present and not "no" -> True, otherwise False
    TRISTATE = "tristate"    # yes/no -> TRUE/FALSE, absent or malformed -> UNKNOWN
    ANY_YES = "any_yes"      # any key yes (or in `values`) -> TRUE, first key "no" -> FALSE
    MATCHES = "matches"      # value in `values` -> TRUE, in `false_values` -> FALSE
    FLAG_NAME = "flag_name"  # name of the first key tagged yes (male/female/unisex)
    STRING = "string"        # first present value, passthrough
    NUMBER = "number"        # first present value parsed as a number


@dataclass(frozen=True)
class FieldRule:
    attribute: str
    coercion: Coercion
    tag_keys: Tuple[str, ...]
    values: FrozenSet[str] = frozenset()
    false_values: FrozenSet[str] = frozenset()


def tag(key: str, attribute: str, coercion: Coercion = Coercion.TRISTATE) -> FieldRule:
    """Single-key rule, the common case."""
    return FieldRule(attribute=attribute, coercion=coercion, tag_keys=(key,))


def any_yes(attribute: str, *keys: str, values: Tuple[str, ...] = ()) -> FieldRule:
    return FieldRule(attribute=attribute, coercion=Coercion.ANY_YES, tag_keys=tuple(keys),
                     values=frozenset(values))


def matches(attribute: str, key: str, values: Tuple[str, ...],
            false_values: FrozenSet[str] = ANY_OTHER) -> FieldRule:
    return FieldRule(attribute=attribute, coercion=Coercion.MATCHES, tag_keys=(key,),
                     values=frozenset(values), false_values=frozenset(false_values))


def first_of(attribute: str, *keys: str, coercion: Coercion = Coercion.STRING) -> FieldRule:
    return FieldRule(attribute=attribute, coercion=coercion, tag_keys=tuple(keys))


COMMON_FIELDS = (
    tag("fee", "fee"),
    tag("wheelchair", "wheelchair"),
    tag("opening_hours", "openingHours", Coercion.STRING),
    tag("operator", "operator", Coercion.STRING),
    tag("access", "accessType", Coercion.STRING),
)

GENDER = first_of("gender", "male", "female", "unisex", coercion=Coercion.FLAG_NAME)

_EASY = ("beginner", "easy", "novice")
_HARD = ("advanced", "expert", "hard", "difficult")

FITNESS_FIELDS = (
    first_of("equipmentType", "fitness_station", "exercise", "sport"),
    tag("material", "material", Coercion.STRING),
    tag("lit", "lighting"),
    tag("surface", "surface", Coercion.STRING),
    tag("difficulty", "difficulty", Coercion.STRING),
    first_of("multipleStations", "multiple", "count", coercion=Coercion.BOOLEAN),
    tag("parking", "parkingNearby"),
    tag("drinking_water", "drinkingWater"),
    tag("toilets", "restrooms"),
    tag("manufacturer", "manufacturer", Coercion.STRING),
    tag("covered", "covered"),
)

ROLL_FIELDS = (
    first_of("skateParkType", "skatepark:type", "skate:type"),
    tag("surface", "surface", Coercion.STRING),
    tag("difficulty", "difficulty", Coercion.STRING),
    matches("beginner", "difficulty", _EASY + ("all", "mixed"), frozenset(_HARD)),
    matches("advanced", "difficulty", _HARD + ("all", "mixed"), frozenset(_EASY + ("intermediate",))),
    tag("lit", "lighting"),
    tag("covered", "covered"),
    tag("toilets", "restrooms"),
    tag("parking", "parking"),
    tag("drinking_water", "waterFountain"),
    first_of("website", "website", "contact:website"),
    first_of("phone", "phone", "contact:phone"),
)


FIELD_TABLES: Dict[Vertical, Tuple[FieldRule, ...]] = {
    Vertical.RESTROOM: COMMON_FIELDS + (
        tag("changing_table", "changingTable"),
        tag("bidet", "bidet"),
        any_yes("toiletPaper", "toilet_paper", "toiletries"),
        any_yes("handDryer", "hand_dryer", "dryer"),
        any_yes("sanitaryDisposal", "sanitary_disposal", "bin"),
        tag("self_cleaning", "selfCleaning"),
        tag("drinking_water", "drinkingWater"),
        GENDER,
    ),
    Vertical.DOG_PARK: COMMON_FIELDS + (
        matches("offLeash", "dog", ("unleashed", "off-leash", "off_leash"), frozenset({"leashed"})),
        any_yes("fenced", "fenced", "barrier", values=("fence",)),
        tag("barrier", "barrier", Coercion.STRING),
        tag("drinking_water", "drinkingWater"),
        any_yes("dogWasteBins", "waste_basket", "dog_waste_bin", values=("dog_yes",)),
        tag("lit", "lighting"),
        tag("surface", "surface", Coercion.STRING),
    ),
    Vertical.SHOWER: COMMON_FIELDS + (
        tag("hot_water", "hotWater"),
        GENDER,
        tag("building", "building"),
        tag("covered", "covered"),
        tag("supervised", "supervised"),
        tag("drinking_water", "drinkingWater"),
    ),
    Vertical.FITNESS_STATION: COMMON_FIELDS + FITNESS_FIELDS,
    Vertical.OUTDOOR_GYM: COMMON_FIELDS + FITNESS_FIELDS,
    Vertical.SWIMMING_POOL: COMMON_FIELDS + FITNESS_FIELDS + (
        tag("supervised", "supervised"),
        tag("hot_water", "hotWater"),
    ),
    Vertical.GYM: COMMON_FIELDS + FITNESS_FIELDS,
    Vertical.PLAYGROUND: COMMON_FIELDS + (
        first_of("ageGroup", "age_group", "min_age", "max_age"),
        tag("min_age", "minAge", Coercion.NUMBER),
        tag("max_age", "maxAge", Coercion.NUMBER),
        first_of("equipment", "playground", "equipment"),
        tag("surface", "surfacing", Coercion.STRING),
        any_yes("fenced", "fenced", "barrier", values=("fence",)),
        any_yes("shaded", "shade", "natural", values=("tree",)),
        any_yes("waterPlay", "water_play", "water"),
        any_yes("babyChange", "changing_table", "baby_changing"),
    ),
    Vertical.PRAYER_ROOM: COMMON_FIELDS + (
        tag("religion", "religion", Coercion.STRING),
        tag("denomination", "denomination", Coercion.STRING),
        matches("islamic", "religion", ("muslim", "islam")),
        matches("multiFaith", "religion", ("multifaith", "multi_faith", "multi-faith", "interfaith")),
        GENDER,
        any_yes("ablutionFacilities", "ablution", "wudu"),
        tag("prayer_mats", "prayerMats"),
        tag("building", "building"),
        tag("capacity", "capacity", Coercion.NUMBER),
    ),
    Vertical.SKATE_PARK: COMMON_FIELDS + ROLL_FIELDS,
    Vertical.BMX: COMMON_FIELDS + ROLL_FIELDS,
    Vertical.ROLLER_SPORTS: COMMON_FIELDS + ROLL_FIELDS,
}


DEFAULT_NAMES: Dict[Vertical, str] = {
    Vertical.RESTROOM: "Public Bathroom",
    Vertical.DOG_PARK: "Dog Park",
    Vertical.SHOWER: "Public Shower",
    Vertical.FITNESS_STATION: "Fitness Equipment",
    Vertical.OUTDOOR_GYM: "Outdoor Gym",
    Vertical.SWIMMING_POOL: "Swimming Pool",
    Vertical.GYM: "Gym",
    Vertical.PLAYGROUND: "Playground",
    Vertical.PRAYER_ROOM: "Prayer Room",
    Vertical.SKATE_PARK: "Skate Park",
    Vertical.BMX: "BMX Track",
    Vertical.ROLLER_SPORTS: "Roller Sports Area",
}


def field_table(vertical: Vertical) -> Tuple[FieldRule, ...]:
    return FIELD_TABLES[Vertical.parse(vertical)]


def consumed_keys(vertical: Vertical) -> FrozenSet[str]:
    """Tag keys read by the vertical's table (plus `name`)."""
    keys = {"name"}
    for rule in field_table(vertical):
        keys.update(rule.tag_keys)
    return frozenset(keys)
