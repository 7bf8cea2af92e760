"""
Amenities Package
Typed amenity model, tag normalization, filtering, search and review aggregation
"""

from .models import (
    Amenity,
    BoundingBox,
    HandDryerType,
    RawElement,
    Review,
    SearchResult,
    TriState,
    Vertical,
)
from .normalizer import NormalizationResult, normalize_element, normalize_elements
from .filters import FilterState, default_filters, is_visible, visible_amenities
from .labels import labels_for
from .reviews import facility_icon, facility_summary, parse_review, summarize

__all__ = [
    'Amenity', 'BoundingBox', 'HandDryerType', 'RawElement', 'Review', 'SearchResult',
    'TriState', 'Vertical', 'NormalizationResult', 'normalize_element', 'normalize_elements',
    'FilterState', 'default_filters', 'is_visible', 'visible_amenities', 'labels_for',
    'facility_icon', 'facility_summary', 'parse_review', 'summarize',
]
