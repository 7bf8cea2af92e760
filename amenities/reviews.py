"""
Review Aggregator
Average rating and facility presence summaries over restroom reviews
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from logging_config import get_logger
from .models import HandDryerType, Review, TriState

logger = get_logger(__name__)

# Review attribute -> review store JSON key
FACILITY_FIELDS = {
    "has_toilet_paper": "hasToiletPaper",
    "has_mirror": "hasMirror",
    "has_hot_water_soap": "hasHotWaterSoap",
    "has_soap": "hasSoap",
    "has_sanitary_disposal": "hasSanitaryDisposal",
}

FACILITY_ICONS = {
    TriState.TRUE: "check",
    TriState.FALSE: "cross",
    TriState.UNKNOWN: "unknown",
}


class ReviewSummary(NamedTuple):
    average_rating: Optional[float]
    total_reviews: int


def summarize(reviews: Iterable[Review]) -> ReviewSummary:
    """
    Average cleanliness rating and review count.

    The average is rounded to one decimal and is None when there are no reviews.
    """
    ratings = [r.cleanliness_rating for r in reviews]
    if not ratings:
        return ReviewSummary(None, 0)
    return ReviewSummary(round(sum(ratings) / len(ratings), 1), len(ratings))


def facility_summary(reviews: Iterable[Review]) -> Dict[str, Dict[str, int]]:
    """
    Count present/absent/unknown answers per facility field.

    Unknown answers are counted on their own and never folded into "absent".
    Also includes the hand dryer type distribution under "hand_dryer_type".
    """
    summary: Dict[str, Dict[str, int]] = {
        name: {"present": 0, "absent": 0, "unknown": 0} for name in FACILITY_FIELDS
    }
    dryers = {dryer.value: 0 for dryer in HandDryerType}

    for review in reviews:
        for name in FACILITY_FIELDS:
            value = getattr(review, name)
            if value is TriState.TRUE:
                summary[name]["present"] += 1
            elif value is TriState.FALSE:
                summary[name]["absent"] += 1
            else:
                summary[name]["unknown"] += 1
        dryers[review.hand_dryer_type.value] += 1

    summary["hand_dryer_type"] = dryers
    return summary


def facility_icon(value: TriState) -> str:
    return FACILITY_ICONS[value]


def parse_tristate(value: Any) -> TriState:
    """true/'true' -> TRUE, false/'false' -> FALSE, anything else -> UNKNOWN."""
    if value is True or value == "true":
        return TriState.TRUE
    if value is False or value == "false":
        return TriState.FALSE
    return TriState.UNKNOWN


def _parse_hand_dryer(value: Any) -> HandDryerType:
    try:
        return HandDryerType(value)
    except ValueError:
        return HandDryerType.UNKNOWN


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable review timestamp: {value!r}")
        return None


def parse_review(payload: Dict[str, Any]) -> Review:
    """
    Build a Review from the review store's JSON.

    Raises:
        ValueError: missing id/rating or a rating outside 1..5
    """
    try:
        review_id = int(payload["id"])
        rating = int(payload["cleanlinessRating"])
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Malformed review payload: {e}") from e

    facilities = {name: parse_tristate(payload.get(key)) for name, key in FACILITY_FIELDS.items()}
    return Review(
        id=review_id,
        amenity_id=payload.get("amenityId"),
        user_nickname=payload.get("userNickname") or "Anonymous",
        cleanliness_rating=rating,
        hand_dryer_type=_parse_hand_dryer(payload.get("handDryerType")),
        photo_url=payload.get("photoUrl"),
        comments=payload.get("comments"),
        created_at=_parse_timestamp(payload.get("createdAt")),
        **facilities,
    )


def parse_reviews(payloads: Iterable[Dict[str, Any]]) -> List[Review]:
    """Parse a list of review payloads, dropping malformed entries."""
    reviews = []
    for payload in payloads:
        try:
            reviews.append(parse_review(payload))
        except ValueError as e:
            logger.warning(f"Dropping malformed review: {e}")
    return reviews


def review_form(amenity_id: Any, cleanliness_rating: int, user_nickname: str = "Anonymous",
                comments: Optional[str] = None, hand_dryer_type: HandDryerType = HandDryerType.UNKNOWN,
                **facilities: TriState) -> Dict[str, str]:
    """
    Encode a new review as the review store's form fields.

    Tri-state facilities are sent as 'true'/'false' and omitted when unknown.
    """
    if not 1 <= int(cleanliness_rating) <= 5:
        raise ValueError(f"cleanliness_rating must be 1..5, got {cleanliness_rating}")

    form = {
        "amenityId": str(amenity_id),
        "userNickname": user_nickname or "Anonymous",
        "cleanlinessRating": str(int(cleanliness_rating)),
    }
    for name, value in facilities.items():
        if name not in FACILITY_FIELDS:
            raise ValueError(f"Unknown facility field {name!r}")
        if value.is_known:
            form[FACILITY_FIELDS[name]] = "true" if value is TriState.TRUE else "false"
    if hand_dryer_type is not HandDryerType.UNKNOWN:
        form["handDryerType"] = hand_dryer_type.value
    if comments:
        form["comments"] = comments
    return form
