"""
Roommate compatibility matching.

Ranks candidate roommate profiles for a seeker by a weighted sum of four
independently normalized sub-scores (each 0-1):

- Budget: overlap of the two budget ranges (intersection / union)
- Location: shared preferred locations, averaged over both directions
- Lifestyle: Jaccard similarity of lifestyle tags
- Preferences: agreement over preference keys both profiles have set

Everything here is a pure function of its inputs: no database access, no
clock, no randomness. The same seeker and pool always rank the same way,
ties broken by candidate id.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from bachelorbuddy.errors import InvalidPreference, InvalidRange


@dataclass(frozen=True)
class MatchWeights:
    """Configurable weights for the compatibility score."""
    budget: float = 0.3
    location: float = 0.25
    lifestyle: float = 0.25
    preferences: float = 0.2

    @classmethod
    def from_config(cls, config) -> "MatchWeights":
        return cls(
            budget=config.get('MATCH_WEIGHT_BUDGET', cls.budget),
            location=config.get('MATCH_WEIGHT_LOCATION', cls.location),
            lifestyle=config.get('MATCH_WEIGHT_LIFESTYLE', cls.lifestyle),
            preferences=config.get('MATCH_WEIGHT_PREFERENCES', cls.preferences),
        )


# ============== PREFERENCE VALUES ==============

KIND_BOOL = 'bool'
KIND_STR = 'str'
KIND_NUMBER = 'number'
KIND_UNSET = 'unset'


@dataclass(frozen=True)
class PreferenceValue:
    """Tagged preference value. ``unset`` means the key exists with no value."""
    kind: str
    value: Any = None

    @property
    def is_set(self) -> bool:
        return self.kind != KIND_UNSET

    @classmethod
    def parse(cls, key: str, raw: Any) -> "PreferenceValue":
        if raw is None:
            return cls(KIND_UNSET)
        # bool first: bool is an int subclass
        if isinstance(raw, bool):
            return cls(KIND_BOOL, raw)
        if isinstance(raw, str):
            return cls(KIND_STR, raw)
        if isinstance(raw, (int, float)):
            return cls(KIND_NUMBER, raw)
        raise InvalidPreference(
            f"Preference '{key}' must be a boolean, string, number or null, got {type(raw).__name__}"
        )


UNSET = PreferenceValue(KIND_UNSET)


def parse_preferences(raw: Optional[Dict[str, Any]]) -> Dict[str, PreferenceValue]:
    """Turn a raw preference mapping into tagged values. Absent keys stay absent."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise InvalidPreference("Preferences must be a mapping")
    return {str(key): PreferenceValue.parse(key, value) for key, value in raw.items()}


# ============== CANDIDATES ==============

def _normalize_labels(values: Optional[Iterable[str]]) -> FrozenSet[str]:
    return frozenset(v.strip().casefold() for v in (values or []) if v and v.strip())


@dataclass(frozen=True)
class CandidateProfile:
    """Read-only snapshot of a roommate profile for scoring."""
    id: str
    user_id: str
    budget_min: int
    budget_max: int
    locations: FrozenSet[str] = frozenset()
    lifestyle_tags: FrozenSet[str] = frozenset()
    preferences: Dict[str, PreferenceValue] = field(default_factory=dict, hash=False)
    is_active: bool = True

    def __post_init__(self):
        if self.budget_min < 0 or self.budget_max < 0:
            raise InvalidRange(f"Budget must be non-negative, got [{self.budget_min}, {self.budget_max}]")
        if self.budget_min > self.budget_max:
            raise InvalidRange(f"Budget min {self.budget_min} exceeds max {self.budget_max}")

    @classmethod
    def build(cls, id, user_id, budget_min, budget_max, locations=None, lifestyle_tags=None,
              preferences=None, is_active=True) -> "CandidateProfile":
        return cls(
            id=id,
            user_id=user_id,
            budget_min=budget_min,
            budget_max=budget_max,
            locations=_normalize_labels(locations),
            lifestyle_tags=_normalize_labels(lifestyle_tags),
            preferences=parse_preferences(preferences),
            is_active=is_active,
        )

    @classmethod
    def from_row(cls, row) -> "CandidateProfile":
        return cls.build(
            id=row.id,
            user_id=row.user_id,
            budget_min=row.budget_min,
            budget_max=row.budget_max,
            locations=row.preferred_locations,
            lifestyle_tags=row.lifestyle_tags,
            preferences=row.preferences,
            is_active=bool(row.is_active),
        )


@dataclass(frozen=True)
class Match:
    """One ranked candidate with its score breakdown."""
    candidate_id: str
    score: float
    breakdown: Dict[str, float] = field(default_factory=dict, hash=False)

    def to_dict(self) -> dict:
        return {
            'candidate_id': self.candidate_id,
            'score': self.score,
            'breakdown': dict(self.breakdown),
        }


# ============== SUB-SCORES ==============

def budget_overlap(a_min: float, a_max: float, b_min: float, b_max: float) -> float:
    """Intersection length over union length of two closed ranges."""
    lo, hi = max(a_min, b_min), min(a_max, b_max)
    if lo > hi:
        return 0.0
    union = max(a_max, b_max) - min(a_min, b_min)
    if union == 0:
        # Both ranges are the same single point
        return 1.0
    return (hi - lo) / union


def location_overlap(seeker: FrozenSet[str], candidate: FrozenSet[str]) -> float:
    """Shared locations as a fraction of each side, averaged."""
    if not seeker or not candidate:
        return 0.0
    shared = len(seeker & candidate)
    return (shared / len(seeker) + shared / len(candidate)) / 2


def jaccard(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def preference_agreement(a: Dict[str, PreferenceValue], b: Dict[str, PreferenceValue]) -> float:
    """
    Average agreement over keys both profiles have set.

    Keys missing or unset on either side are skipped rather than counted
    as disagreement.
    """
    shared = [key for key in a if key in b and a[key].is_set and b[key].is_set]
    if not shared:
        return 0.0
    agree = sum(1 for key in shared if a[key] == b[key])
    return agree / len(shared)


def score_pair(seeker: CandidateProfile, candidate: CandidateProfile,
               weights: MatchWeights = None) -> Match:
    """Compatibility of one candidate for the seeker."""
    weights = weights or MatchWeights()
    breakdown = {
        'budget': budget_overlap(seeker.budget_min, seeker.budget_max,
                                 candidate.budget_min, candidate.budget_max),
        'location': location_overlap(seeker.locations, candidate.locations),
        'lifestyle': jaccard(seeker.lifestyle_tags, candidate.lifestyle_tags),
        'preferences': preference_agreement(seeker.preferences, candidate.preferences),
    }
    total = (
        weights.budget * breakdown['budget']
        + weights.location * breakdown['location']
        + weights.lifestyle * breakdown['lifestyle']
        + weights.preferences * breakdown['preferences']
    )
    return Match(
        candidate_id=candidate.id,
        score=round(total, 4),
        breakdown={k: round(v, 4) for k, v in breakdown.items()},
    )


def rank_candidates(seeker: CandidateProfile, candidate_pool: Iterable[CandidateProfile],
                    limit: Optional[int] = None, weights: MatchWeights = None,
                    min_score: float = 0.0) -> List[Match]:
    """
    Rank candidates for a seeker.

    Args:
        seeker: Profile looking for roommates
        candidate_pool: Profiles to consider; inactive ones and the seeker
            itself are skipped
        limit: Max matches to return (None for all)
        weights: Sub-score weights (defaults: 0.3/0.25/0.25/0.2)
        min_score: Drop matches scoring below this

    Returns:
        Matches sorted by score descending, then candidate id ascending
    """
    if limit is not None and limit <= 0:
        return []

    matches = []
    for candidate in candidate_pool:
        if not candidate.is_active:
            continue
        if candidate.id == seeker.id or candidate.user_id == seeker.user_id:
            continue
        match = score_pair(seeker, candidate, weights)
        if match.score >= min_score:
            matches.append(match)

    matches.sort(key=lambda m: (-m.score, m.candidate_id))
    return matches if limit is None else matches[:limit]
