"""
Traffic-light scoring.

Maps a check-in's percentage score to red / orange / green using
per-client thresholds. Thresholds are validated when they are written;
classification itself is total and never raises.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

RED = "red"
ORANGE = "orange"
GREEN = "green"

TRAFFIC_LIGHT_LABELS = {
    RED: "Needs Attention",
    ORANGE: "On Track",
    GREEN: "Excellent",
}

TRAFFIC_LIGHT_MESSAGES = {
    RED: "Keep going! Every step forward is progress.",
    ORANGE: "Good progress! You're on the right track.",
    GREEN: "Excellent! You're doing amazing!",
}


@dataclass(frozen=True)
class ScoringThresholds:
    """Upper bounds (inclusive) of the red and orange zones."""

    red_max: float
    orange_max: float

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "ScoringThresholds":
        return cls(red_max=data["redMax"], orange_max=data["orangeMax"])

    def to_document(self) -> Dict[str, Any]:
        return {"redMax": self.red_max, "orangeMax": self.orange_max}


SCORING_PROFILES: Dict[str, Dict[str, Any]] = {
    "lifestyle": {
        "name": "Lifestyle",
        "description": "General wellness, flexible approach - More lenient standards",
        "thresholds": ScoringThresholds(red_max=33, orange_max=80),
    },
    "moderate": {
        "name": "Moderate",
        "description": "Active clients, good adherence expected",
        "thresholds": ScoringThresholds(red_max=60, orange_max=85),
    },
    "high-performance": {
        "name": "High Performance",
        "description": "Elite athletes, competitive clients - Stricter standards",
        "thresholds": ScoringThresholds(red_max=75, orange_max=89),
    },
    "custom": {
        "name": "Custom",
        "description": "Customized thresholds for specific needs",
        "thresholds": ScoringThresholds(red_max=70, orange_max=85),
    },
}

DEFAULT_PROFILE = "lifestyle"


def classify_score(score: float, thresholds: ScoringThresholds) -> str:
    """
    Classify a 0-100 score.

    score <= red_max -> red, score <= orange_max -> orange, else green.
    """
    if score <= thresholds.red_max:
        return RED
    if score <= thresholds.orange_max:
        return ORANGE
    return GREEN


def validate_thresholds(red_max: Any, orange_max: Any) -> Tuple[bool, Optional[str]]:
    """
    Check 0 <= red_max < orange_max <= 100.

    Returns:
        (is_valid, error_message) tuple
    """
    for name, value in (("redMax", red_max), ("orangeMax", orange_max)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False, f"{name} must be a number"

    if red_max < 0:
        return False, "redMax must be at least 0"
    if orange_max > 100:
        return False, "orangeMax must be at most 100"
    if red_max >= orange_max:
        return False, "redMax must be lower than orangeMax"

    return True, None


def get_default_thresholds(profile: str) -> ScoringThresholds:
    """Thresholds of a named profile; unknown profiles fall back to lifestyle."""
    return SCORING_PROFILES.get(profile, SCORING_PROFILES[DEFAULT_PROFILE])["thresholds"]


def resolve_thresholds(
    config: Optional[Dict[str, Any]],
    default_profile: str = DEFAULT_PROFILE,
) -> ScoringThresholds:
    """
    Resolve a client's effective thresholds from their stored scoring config.

    An explicit ``thresholds`` override wins, then the client's profile,
    then ``default_profile``. Overrides still stored in the old
    ``{red, yellow}`` format are converted on read.
    """
    if not config:
        return get_default_thresholds(default_profile)

    override = config.get("thresholds") or {}
    if override.get("redMax") is not None and override.get("orangeMax") is not None:
        return ScoringThresholds.from_document(override)
    if override.get("red") is not None and override.get("yellow") is not None:
        return convert_legacy_thresholds(override)

    return get_default_thresholds(config.get("scoringProfile") or default_profile)


def convert_legacy_thresholds(old: Dict[str, Any]) -> ScoringThresholds:
    """
    Convert the old ``{red, yellow, green}`` format.

    Old values were exclusive lower bounds ("below red is red"), new ones are
    inclusive maxima, so each bound moves down by one.
    """
    if old.get("red") is not None and old.get("yellow") is not None:
        return ScoringThresholds(red_max=old["red"] - 1, orange_max=old["yellow"] - 1)

    return SCORING_PROFILES[DEFAULT_PROFILE]["thresholds"]


def describe_score_ranges(thresholds: ScoringThresholds) -> str:
    return (
        f"Red: 0-{thresholds.red_max}% | "
        f"Orange: {thresholds.red_max + 1}-{thresholds.orange_max}% | "
        f"Green: {thresholds.orange_max + 1}-100%"
    )
