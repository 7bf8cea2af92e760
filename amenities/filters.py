"""
Filter Evaluator
Per-vertical filter flags and the visibility predicate applied to normalized amenities

Category flags gate a whole vertical. Attribute flags, while active, require
the named attribute to be exactly TriState.TRUE; an unknown value does not
satisfy an active attribute flag.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional

from data_sources.error_handling import InvalidFilterFlag
from .models import Amenity, TriState, Vertical


class FlagKind(Enum):
    CATEGORY = "category"
    ATTRIBUTE = "attribute"


@dataclass(frozen=True)
class FlagDefinition:
    name: str
    kind: FlagKind
    verticals: FrozenSet[Vertical]
    attribute: Optional[str] = None

    def applies_to(self, vertical: Vertical) -> bool:
        return vertical in self.verticals


def _category(name: str, *verticals: Vertical) -> FlagDefinition:
    return FlagDefinition(name, FlagKind.CATEGORY, frozenset(verticals))


def _attribute(name: str, attribute: str, *verticals: Vertical) -> FlagDefinition:
    return FlagDefinition(name, FlagKind.ATTRIBUTE, frozenset(verticals), attribute)


_ROLL = (Vertical.SKATE_PARK, Vertical.BMX, Vertical.ROLLER_SPORTS)

FLAG_DEFINITIONS: Dict[str, FlagDefinition] = {flag.name: flag for flag in (
    _category("showBathrooms", Vertical.RESTROOM),
    _attribute("showBabyChanging", "changingTable", Vertical.RESTROOM),
    _attribute("showWheelchairAccessible", "wheelchair", Vertical.RESTROOM),
    _attribute("showBidet", "bidet", Vertical.RESTROOM),
    _attribute("showToiletPaper", "toiletPaper", Vertical.RESTROOM),
    _attribute("showHandDryer", "handDryer", Vertical.RESTROOM),
    _attribute("showSanitaryDisposal", "sanitaryDisposal", Vertical.RESTROOM),

    _category("showDogParks", Vertical.DOG_PARK),
    _attribute("showOffLeash", "offLeash", Vertical.DOG_PARK),
    _attribute("showFenced", "fenced", Vertical.DOG_PARK),
    _attribute("showWaterAccess", "drinkingWater", Vertical.DOG_PARK),

    _category("showShowers", Vertical.SHOWER),
    _category("showFitnessStations", Vertical.FITNESS_STATION),
    _category("showOutdoorGyms", Vertical.OUTDOOR_GYM),
    _category("showSwimmingPools", Vertical.SWIMMING_POOL),
    _category("showGyms", Vertical.GYM),

    _category("showPlaygrounds", Vertical.PLAYGROUND),
    _attribute("showAccessible", "wheelchair", Vertical.PLAYGROUND, Vertical.PRAYER_ROOM),
    _attribute("showWaterPlay", "waterPlay", Vertical.PLAYGROUND),
    _attribute("showBabyChange", "babyChange", Vertical.PLAYGROUND),

    _category("showPrayerRooms", Vertical.PRAYER_ROOM),
    _attribute("showIslamic", "islamic", Vertical.PRAYER_ROOM),
    _attribute("showMultiFaith", "multiFaith", Vertical.PRAYER_ROOM),

    _category("showSkatePark", Vertical.SKATE_PARK, Vertical.ROLLER_SPORTS),
    _category("showBMX", Vertical.BMX),
    _attribute("showBeginner", "beginner", *_ROLL),
    _attribute("showAdvanced", "advanced", *_ROLL),
)}


def flags_for(verticals: Iterable[Vertical]) -> Dict[str, FlagDefinition]:
    """Flag definitions that apply to at least one of the given verticals."""
    scope = {Vertical.parse(v) for v in verticals}
    return {name: flag for name, flag in FLAG_DEFINITIONS.items() if flag.verticals & scope}


class FilterState(Mapping):
    """
    Immutable flag name -> bool mapping for a fixed set of verticals.

    Flags not set read as False. Changing a flag returns a new FilterState.
    """

    def __init__(self, verticals: Iterable[Vertical], flags: Optional[Dict[str, bool]] = None):
        self.verticals = frozenset(Vertical.parse(v) for v in verticals)
        if not self.verticals:
            raise ValueError("FilterState needs at least one vertical")
        self.definitions = flags_for(self.verticals)

        values = {}
        for name, value in (flags or {}).items():
            self._check(name)
            values[name] = bool(value)
        self._flags = MappingProxyType(values)

    @classmethod
    def defaults(cls, verticals: Iterable[Vertical]) -> "FilterState":
        """Every category flag on, every attribute flag off."""
        verticals = frozenset(Vertical.parse(v) for v in verticals)
        return cls(verticals, {
            name: flag.kind is FlagKind.CATEGORY for name, flag in flags_for(verticals).items()
        })

    def _check(self, flag: str) -> FlagDefinition:
        definition = self.definitions.get(flag)
        if definition is None:
            raise InvalidFilterFlag(flag, ",".join(sorted(v.value for v in self.verticals)))
        return definition

    def __getitem__(self, flag: str) -> bool:
        self._check(flag)
        return self._flags.get(flag, False)

    def __iter__(self) -> Iterator[str]:
        return iter(self._flags)

    def __len__(self) -> int:
        return len(self._flags)

    def __contains__(self, flag) -> bool:
        return flag in self._flags

    def get(self, flag: str, default: bool = False) -> bool:
        if flag not in self.definitions:
            return default
        return self._flags.get(flag, default)

    def set(self, flag: str, value: bool) -> "FilterState":
        self._check(flag)
        return FilterState(self.verticals, {**self._flags, flag: bool(value)})

    def toggle(self, flag: str) -> "FilterState":
        """New state with one flag flipped. A flag never set flips to True."""
        self._check(flag)
        return self.set(flag, not self._flags.get(flag, False))

    def active_attribute_flags(self) -> List[FlagDefinition]:
        return [self.definitions[name] for name, on in self._flags.items()
                if on and self.definitions[name].kind is FlagKind.ATTRIBUTE]

    def __eq__(self, other):
        if not isinstance(other, FilterState):
            return NotImplemented
        return self.verticals == other.verticals and dict(self._flags) == dict(other._flags)

    def __hash__(self):
        return hash((self.verticals, frozenset(self._flags.items())))

    def __repr__(self):
        return f"FilterState({sorted(v.value for v in self.verticals)}, {dict(self._flags)})"


class AppFlavor(str, Enum):
    """The map applications sharing this engine."""
    RESTROOM = "wannawee"
    WORKOUT = "wannaworkout"
    PLAYGROUND = "wannaplay"
    PRAYER = "wannapray"
    ROLL = "wannaroll"
    DOG = "wannawalkthedog"
    UNIFIED = "unified"


APP_VERTICALS: Dict[AppFlavor, FrozenSet[Vertical]] = {
    AppFlavor.RESTROOM: frozenset({Vertical.RESTROOM}),
    AppFlavor.WORKOUT: frozenset({Vertical.FITNESS_STATION, Vertical.OUTDOOR_GYM,
                                  Vertical.SWIMMING_POOL, Vertical.GYM, Vertical.SHOWER}),
    AppFlavor.PLAYGROUND: frozenset({Vertical.PLAYGROUND}),
    AppFlavor.PRAYER: frozenset({Vertical.PRAYER_ROOM}),
    AppFlavor.ROLL: frozenset(_ROLL),
    AppFlavor.DOG: frozenset({Vertical.DOG_PARK}),
    AppFlavor.UNIFIED: frozenset({Vertical.RESTROOM, Vertical.DOG_PARK, Vertical.SHOWER}),
}


def default_filters(app) -> FilterState:
    """Initial filter state for an app: its category flags on, attribute flags off."""
    flavor = app if isinstance(app, AppFlavor) else AppFlavor(str(app).lower())
    return FilterState.defaults(APP_VERTICALS[flavor])


def is_visible(amenity: Amenity, filters: FilterState) -> bool:
    """
    Whether an amenity passes the filter state.

    Conjunctive: the amenity's category flag must be on, and every active
    attribute flag that applies to its vertical must see TriState.TRUE.
    """
    category_on = any(
        filters.get(name)
        for name, flag in filters.definitions.items()
        if flag.kind is FlagKind.CATEGORY and flag.applies_to(amenity.vertical)
    )
    if not category_on:
        return False

    for flag in filters.active_attribute_flags():
        if flag.applies_to(amenity.vertical) and amenity.get(flag.attribute) is not TriState.TRUE:
            return False
    return True


def visible_amenities(amenities: Iterable[Amenity], filters: FilterState) -> List[Amenity]:
    return [amenity for amenity in amenities if is_visible(amenity, filters)]
