"""Satisfaction semantics for session ratings"""
from enum import Enum


class SatisfactionLevel(str, Enum):
    """Satisfaction levels based on star ratings"""
    VERY_DISSATISFIED = "VERY_DISSATISFIED"
    DISSATISFIED = "DISSATISFIED"
    NEUTRAL = "NEUTRAL"
    SATISFIED = "SATISFIED"
    VERY_SATISFIED = "VERY_SATISFIED"


# Rating to satisfaction level mapping
RATING_TO_SATISFACTION = {
    1: SatisfactionLevel.VERY_DISSATISFIED,
    2: SatisfactionLevel.DISSATISFIED,
    3: SatisfactionLevel.NEUTRAL,
    4: SatisfactionLevel.SATISFIED,
    5: SatisfactionLevel.VERY_SATISFIED,
}


def get_satisfaction_level(rating: int) -> SatisfactionLevel:
    """
    Convert star rating to satisfaction level.

    Args:
        rating: Star rating (1-5)

    Returns:
        SatisfactionLevel enum
    """
    return RATING_TO_SATISFACTION.get(rating, SatisfactionLevel.NEUTRAL)
