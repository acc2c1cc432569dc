"""
Duplicate Detection Module

Finds listings that describe the same business:
- Strict matching (shared phone, website domain, or name within a suburb)
- Loose matching (similar names within a suburb, via rapidfuzz)
- Anchor-based grouping, primary suggestion and merging
"""

from directory.duplicates.detector import (
    BusinessMerger,
    DuplicateDetector,
    DuplicateGroup,
    DuplicateMatch,
    MergeRecommendation,
)
from directory.duplicates.matchers import (
    DetectionMode,
    MatchResult,
    MatchType,
    classify_pair,
    is_loose_duplicate,
    is_strict_duplicate,
    levenshtein_distance,
    similarity,
)

__all__ = [
    "BusinessMerger",
    "DuplicateDetector",
    "DuplicateGroup",
    "DuplicateMatch",
    "MergeRecommendation",
    "DetectionMode",
    "MatchResult",
    "MatchType",
    "classify_pair",
    "is_loose_duplicate",
    "is_strict_duplicate",
    "levenshtein_distance",
    "similarity",
]
