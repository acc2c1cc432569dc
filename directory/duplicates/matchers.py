"""
Pairwise duplicate matching for business listings.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from rapidfuzz.distance import Levenshtein

from config.settings import settings
from directory.normalize import (
    extract_hostname,
    normalize_email,
    normalize_phone,
    normalize_text,
)


class MatchType(Enum):
    """Type of duplicate match found."""
    STRICT = "strict"      # Shared phone, domain, or name + suburb
    LOOSE = "loose"        # Similar names in the same suburb
    NO_MATCH = "no_match"


class DetectionMode(Enum):
    """How aggressive a duplicate scan should be."""
    STRICT = "strict"
    LOOSE = "loose"


# Signal weights for pair confidence (0-100)
SIGNAL_WEIGHTS = {
    "phone": 30,
    "website": 25,
    "email": 20,
    "abn": 35,
    "exact_name": 20,
    "suburb": 10,
}
FUZZY_NAME_WEIGHT = 20

MERGE_CONFIDENCE = 80
REVIEW_CONFIDENCE = 50


@dataclass
class BusinessFields:
    """The subset of a listing used for duplicate comparison."""
    name: Optional[str] = None
    suburb: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    abn: Optional[str] = None

    @classmethod
    def from_record(cls, record: Any) -> "BusinessFields":
        """Build from an ORM Business, a dict, or anything with the same attributes."""
        if isinstance(record, cls):
            return record
        if isinstance(record, dict):
            return cls(**{k: record.get(k) for k in cls.__dataclass_fields__})
        return cls(**{k: getattr(record, k, None) for k in cls.__dataclass_fields__})


@dataclass
class MatchResult:
    """Result of comparing two listings."""
    match_type: MatchType = MatchType.NO_MATCH
    confidence: int = 0
    matched_on: list[str] = field(default_factory=list)
    similarity: float = 0.0

    @property
    def is_match(self) -> bool:
        return self.match_type != MatchType.NO_MATCH

    @property
    def recommendation(self) -> str:
        if self.confidence >= MERGE_CONFIDENCE:
            return "merge"
        if self.confidence >= REVIEW_CONFIDENCE:
            return "review"
        return "ignore"

    def to_dict(self) -> dict:
        return {
            "match_type": self.match_type.value,
            "confidence": self.confidence,
            "matched_on": list(self.matched_on),
            "similarity": round(self.similarity, 3),
            "recommendation": self.recommendation,
        }

    def __repr__(self) -> str:
        return f"<MatchResult({self.match_type.value}, conf={self.confidence}, on={self.matched_on})>"


# Trailing legal suffixes ignored by the fuzzy comparison
LEGAL_SUFFIXES = [
    r"\s+pty\s+ltd$", r"\s+pty\s+limited$", r"\s+pty$", r"\s+ltd$",
    r"\s+limited$", r"\s+co$", r"\s+company$", r"\s+inc$",
    r"\s+incorporated$",
]


def comparison_name(name: Optional[str]) -> str:
    """Normalized name with trailing legal suffixes removed."""
    normalized = normalize_text(name)
    # Suffixes can stack ("Pty Ltd Co"), so strip until stable
    previous = None
    while previous != normalized:
        previous = normalized
        for pattern in LEGAL_SUFFIXES:
            normalized = re.sub(pattern, "", normalized)
    return normalized.strip() or normalize_text(name)


def levenshtein_distance(s1: str, s2: str) -> int:
    """Edit distance between two strings."""
    return Levenshtein.distance(s1, s2)


def similarity(s1: str, s2: str) -> float:
    """1 - distance / max(len). 0.0 when either side is empty."""
    if not s1 or not s2:
        return 0.0
    return 1 - levenshtein_distance(s1, s2) / max(len(s1), len(s2))


def name_similarity(name1: Optional[str], name2: Optional[str]) -> float:
    """Fuzzy similarity of two business names, ignoring legal suffixes."""
    return similarity(comparison_name(name1), comparison_name(name2))


def _same_phone(a: BusinessFields, b: BusinessFields) -> bool:
    phone1 = normalize_phone(a.phone)
    phone2 = normalize_phone(b.phone)
    return bool(phone1 and phone2 and phone1 == phone2)


def _same_website(a: BusinessFields, b: BusinessFields) -> bool:
    domain1 = extract_hostname(a.website)
    domain2 = extract_hostname(b.website)
    return bool(domain1 and domain2 and domain1 == domain2)


def _same_suburb(a: BusinessFields, b: BusinessFields) -> bool:
    suburb1 = normalize_text(a.suburb)
    suburb2 = normalize_text(b.suburb)
    return bool(suburb1 and suburb2 and suburb1 == suburb2)


def _same_name(a: BusinessFields, b: BusinessFields) -> bool:
    name1 = normalize_text(a.name)
    name2 = normalize_text(b.name)
    return bool(name1 and name2 and name1 == name2)


def is_strict_duplicate(business1: Any, business2: Any) -> bool:
    """
    Strict duplicate: same normalized phone OR same website domain
    OR same name within the same suburb.
    """
    a = BusinessFields.from_record(business1)
    b = BusinessFields.from_record(business2)

    if _same_phone(a, b):
        return True
    if _same_website(a, b):
        return True
    return _same_name(a, b) and _same_suburb(a, b)


def is_loose_duplicate(
    business1: Any,
    business2: Any,
    threshold: Optional[float] = None,
) -> bool:
    """
    Loose duplicate: same suburb and name similarity above the threshold.
    """
    if threshold is None:
        threshold = settings.LOOSE_NAME_SIMILARITY_THRESHOLD

    a = BusinessFields.from_record(business1)
    b = BusinessFields.from_record(business2)

    if not _same_suburb(a, b):
        return False

    return name_similarity(a.name, b.name) > threshold


def score_pair(business1: Any, business2: Any) -> tuple[int, list[str], float]:
    """
    Confidence (0-100) that two listings are the same business.

    Returns (confidence, matched signals, name similarity).
    """
    a = BusinessFields.from_record(business1)
    b = BusinessFields.from_record(business2)

    matched_on = []
    if _same_phone(a, b):
        matched_on.append("phone")
    if _same_website(a, b):
        matched_on.append("website")

    email1 = normalize_email(a.email)
    if email1 and email1 == normalize_email(b.email):
        matched_on.append("email")

    abn1 = re.sub(r"\D", "", a.abn or "")
    if abn1 and abn1 == re.sub(r"\D", "", b.abn or ""):
        matched_on.append("abn")

    if _same_name(a, b):
        matched_on.append("exact_name")
    if _same_suburb(a, b):
        matched_on.append("suburb")

    confidence = sum(SIGNAL_WEIGHTS[signal] for signal in matched_on)

    name_sim = name_similarity(a.name, b.name)
    if "exact_name" not in matched_on and name_sim > settings.LOOSE_NAME_SIMILARITY_THRESHOLD:
        matched_on.append("similar_name")
        confidence += round(name_sim * FUZZY_NAME_WEIGHT)

    return min(confidence, 100), matched_on, name_sim


def classify_pair(
    business1: Any,
    business2: Any,
    mode: DetectionMode = DetectionMode.STRICT,
) -> MatchResult:
    """
    Classify a pair of listings.

    Strict mode only reports strict matches; loose mode reports strict
    matches first and falls back to the fuzzy name rule.
    """
    if is_strict_duplicate(business1, business2):
        match_type = MatchType.STRICT
    elif mode == DetectionMode.LOOSE and is_loose_duplicate(business1, business2):
        match_type = MatchType.LOOSE
    else:
        return MatchResult()

    confidence, matched_on, name_sim = score_pair(business1, business2)
    return MatchResult(
        match_type=match_type,
        confidence=confidence,
        matched_on=matched_on,
        similarity=name_sim,
    )
