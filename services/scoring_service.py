"""
Review scoring engine.

Computes the points a review earns and the cafe's new per-amenity running
averages from a snapshot of the cafe. Pure: no database access, inputs are
never mutated.
"""

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional

import yaml

from config import Config

logger = logging.getLogger(__name__)

ONE_DECIMAL = Decimal('0.1')


@dataclass(frozen=True)
class ScoringRules:
    base_points: int = Config.BASE_REVIEW_POINTS
    consensus_bonus: int = Config.CONSENSUS_BONUS_POINTS
    consensus_tolerance: float = Config.CONSENSUS_TOLERANCE


@dataclass(frozen=True)
class VenueSnapshot:
    """Cafe state read at the start of a review transaction"""
    review_count: int
    amenities: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ReviewOutcome:
    earned_points: int
    amenities: Dict[str, float]
    review_count: int
    bonus_keys: tuple = ()


DEFAULT_RULES = ScoringRules()


def load_scoring_rules(path: Optional[str] = None) -> ScoringRules:
    """Load reward rules from a YAML file, falling back to Config defaults.

    The file may override any of ``base_points``, ``consensus_bonus`` and
    ``consensus_tolerance``; unknown keys are ignored. A missing file, bad
    YAML or a value of the wrong type all yield the defaults. Parsed files are
    cached until their modification time changes.
    """
    path = path or os.environ.get('REVIEW_RULES_PATH')
    if not path or not os.path.exists(path):
        return DEFAULT_RULES

    try:
        mtime = os.path.getmtime(path)
    except OSError:
        return DEFAULT_RULES
    return _read_rules_file(path, mtime)


@lru_cache(maxsize=16)
def _read_rules_file(path: str, mtime: float) -> ScoringRules:
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not read scoring rules from {path}: {e}; using defaults")
        return DEFAULT_RULES

    if not isinstance(data, dict):
        logger.warning(f"Scoring rules in {path} are not a mapping; using defaults")
        return DEFAULT_RULES

    try:
        return ScoringRules(
            base_points=int(data.get('base_points', DEFAULT_RULES.base_points)),
            consensus_bonus=int(data.get('consensus_bonus', DEFAULT_RULES.consensus_bonus)),
            consensus_tolerance=float(data.get('consensus_tolerance', DEFAULT_RULES.consensus_tolerance)),
        )
    except (TypeError, ValueError) as e:
        logger.warning(f"Invalid scoring rule value in {path}: {e}; using defaults")
        return DEFAULT_RULES


def round_score(value: Any) -> float:
    """Round to one decimal place, halves away from zero (6.25 -> 6.3, -0.25 -> -0.3)."""
    return float(Decimal(str(value)).quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP))


def compute_review_outcome(snapshot: VenueSnapshot,
                           ratings: Mapping[str, float],
                           rules: ScoringRules = DEFAULT_RULES) -> ReviewOutcome:
    """Score a review against the cafe snapshot it was submitted for.

    Every review earns ``rules.base_points``. Each rated amenity adds
    ``rules.consensus_bonus`` when the cafe has no reviews yet, or when the
    score lies within ``rules.consensus_tolerance`` of the current average.

    Averages follow ``new = (old * count + score) / (count + 1)``; a cafe's
    first review takes the submitted scores as-is. Amenities missing from a
    reviewed cafe count as an old average of 0. Ratings are not clamped.
    """
    count = snapshot.review_count
    prior = snapshot.amenities or {}
    is_new_venue = count == 0

    earned_points = rules.base_points
    bonus_keys = []
    amenities = dict(prior)

    for key, user_score in ratings.items():
        prior_avg = prior.get(key)

        if is_new_venue or (prior_avg is not None and abs(user_score - prior_avg) <= rules.consensus_tolerance):
            earned_points += rules.consensus_bonus
            bonus_keys.append(key)

        if is_new_venue:
            new_avg = user_score
        else:
            new_avg = ((prior_avg or 0) * count + user_score) / (count + 1)

        amenities[key] = round_score(new_avg)

    return ReviewOutcome(
        earned_points=earned_points,
        amenities=amenities,
        review_count=count + 1,
        bonus_keys=tuple(bonus_keys),
    )


__all__ = [
    'ScoringRules',
    'VenueSnapshot',
    'ReviewOutcome',
    'load_scoring_rules',
    'round_score',
    'compute_review_outcome',
]
