"""Mapping of the continuous reserve score onto the 0-5 scale."""

import math
from enum import Enum

# Six fixed-width bands over [0, 1]; band i covers [i/6, (i+1)/6).
BAND_COUNT = 6
MAX_LEVEL = BAND_COUNT - 1


def score_to_level(score: float) -> int:
    """Map a reserve score in [0, 1] to an integer level 0-5."""
    if math.isnan(score):
        return 0
    clamped = max(0.0, min(1.0, score))
    return min(MAX_LEVEL, int(math.floor(clamped * BAND_COUNT)))


class ReserveLevel(Enum):
    """Labelled reserve tiers. Levels 0 and 1 share the Critical label."""

    CRITICAL = (1, "Critical", "System under heavy load", "System load is critical - immediate action required")
    LOW = (2, "Low", "Resource constrained", "System resources are limited - optimization recommended")
    MODERATE = (3, "Moderate", "Adequate performance", "System resources are moderate - monitor for issues")
    GOOD = (4, "Good", "Ample resources", "System resources are sufficient - good performance")
    EXCELLENT = (5, "Excellent", "Abundant resources", "System resources are abundant - excellent performance")

    def __init__(self, top: int, label: str, summary: str, advice: str) -> None:
        self.top = top
        self.label = label
        self.summary = summary
        self.advice = advice

    @property
    def description(self) -> str:
        return f"{self.label} - {self.summary}"

    @classmethod
    def from_score(cls, level: int) -> "ReserveLevel":
        """Label for an integer level; anything above 5 is Excellent."""
        if level <= 1:
            return cls.CRITICAL
        for tier in cls:
            if tier.top == level:
                return tier
        return cls.EXCELLENT

    def __str__(self) -> str:
        return self.description


def map_level(score: float) -> tuple[int, ReserveLevel]:
    """Return the integer level and its tier for a reserve score."""
    level = score_to_level(score)
    return level, ReserveLevel.from_score(level)
