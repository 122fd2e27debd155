import math
from typing import NamedTuple, Sequence

from .models import Place, PlaceCategory, Preferences


# --- Module-level constants ---
FAIRNESS_WEIGHT = 0.45
TOTAL_TIME_WEIGHT = 0.35
PROFILE_MATCH_WEIGHT = 0.20
RATING_WEIGHT = 0.0  # reserved, ratings are not collected yet

MAX_FAIRNESS_S = 3600.0     # 1 hour spread
MAX_TOTAL_TIME_S = 14400.0  # 4 hours combined
MAX_RATING = 5.0

BASE_PROFILE_SCORE = 50.0
KEYWORD_PROFILE_SCORE = 50.0
MAX_PROFILE_SCORE = 100.0

DINING_CATEGORIES = (PlaceCategory.RESTAURANT, PlaceCategory.CAFE)


class ScoreBreakdown(NamedTuple):
    fairness: float
    total: float
    combined: float


def _clamp01(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def calculate_score(durations: Sequence[float], profile_match: float, rating: float = 0.0) -> ScoreBreakdown:
    """
    Combine travel durations and profile match into a single ranking score.
    Lower is better for every component and for the result.

    fairness is the spread between the slowest and fastest participant and
    total is the sum of all durations. An empty duration list yields an
    infinite score; callers are expected to pass at least one duration.
    """
    if not durations:
        return ScoreBreakdown(fairness=math.inf, total=0.0, combined=math.inf)

    fairness = max(durations) - min(durations)
    total = sum(durations)

    norm_fairness = _clamp01(fairness / MAX_FAIRNESS_S)
    norm_total = _clamp01(total / MAX_TOTAL_TIME_S)
    norm_profile = _clamp01(1.0 - profile_match / MAX_PROFILE_SCORE)
    norm_rating = _clamp01(1.0 - rating / MAX_RATING)

    combined = (FAIRNESS_WEIGHT * norm_fairness
                + TOTAL_TIME_WEIGHT * norm_total
                + PROFILE_MATCH_WEIGHT * norm_profile
                + RATING_WEIGHT * norm_rating)
    return ScoreBreakdown(fairness=fairness, total=total, combined=combined)


def _keywords_for(category: PlaceCategory, preferences: Preferences) -> Sequence[str]:
    if category in DINING_CATEGORIES:
        return preferences.food_types
    if category == PlaceCategory.ACTIVITY:
        return preferences.activity_types
    return ()


def calculate_profile_match(place: Place, category: PlaceCategory, preferences: Preferences) -> float:
    """Score in [0, 100] of how well a place's name and address match the stored preferences"""
    score = BASE_PROFILE_SCORE

    keywords = _keywords_for(category, preferences)
    if keywords:
        text = f"{place.name} {place.address or ''}".lower()
        share = KEYWORD_PROFILE_SCORE / max(len(keywords), 1)
        for keyword in keywords:
            if keyword.lower() in text:
                score += share

    return min(score, MAX_PROFILE_SCORE)
