"""
Configuration parameters for the Mail Manager system.

This module defines the default constants used by the allocation engine, including:
- Weight thresholds that decide how many robots a mail item needs.
- Priority defaults for items that carry no explicit priority level.

The constants are only defaults. The pool itself reads its thresholds from a
WeightPolicy instance given at construction.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

# --- Robot Capacity & Weight Thresholds (grams) ---

# Heaviest item a single robot can carry in its hand.
INDIVIDUAL_MAX_WEIGHT: int = 2000

# Heaviest item a team of two robots can carry.
PAIR_MAX_WEIGHT: int = 2600

# Heaviest item a team of three robots can carry. Anything above is rejected.
TRIPLE_MAX_WEIGHT: int = 3000

# Largest team the pool will ever form.
MAX_TEAM_SIZE: int = 3


# --- Priority ---

# Priority given to mail items that are not priority items.
DEFAULT_PRIORITY: int = 1


@dataclass(frozen=True)
class WeightPolicy:
    """
    Weight thresholds used to compute the team size of a mail item.

    Attributes:
        individual_max_weight (int): Upper bound (inclusive) for a single robot.
        pair_max_weight (int): Upper bound (inclusive) for a team of two.
        triple_max_weight (int): Upper bound (inclusive) for a team of three.
    """
    individual_max_weight: int = INDIVIDUAL_MAX_WEIGHT
    pair_max_weight: int = PAIR_MAX_WEIGHT
    triple_max_weight: int = TRIPLE_MAX_WEIGHT

    def __post_init__(self) -> None:
        if not 0 < self.individual_max_weight < self.pair_max_weight < self.triple_max_weight:
            raise ValueError(
                "Weight thresholds must satisfy 0 < individual < pair < triple, "
                f"got {self.individual_max_weight}, {self.pair_max_weight}, {self.triple_max_weight}."
            )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "WeightPolicy":
        """
        Builds a policy from a plain mapping, e.g. a parsed configuration file.

        Missing keys fall back to the module defaults.

        Args:
            mapping (Mapping[str, Any]): Keys among 'individual_max_weight',
                                         'pair_max_weight' and 'triple_max_weight'.

        Returns:
            WeightPolicy: The validated policy.

        Raises:
            ValueError: If a key is unknown or the thresholds are not increasing.
        """
        known = {'individual_max_weight', 'pair_max_weight', 'triple_max_weight'}
        unknown = set(mapping) - known
        if unknown:
            raise ValueError(f"Unknown weight policy keys: {sorted(unknown)}")

        return cls(
            individual_max_weight=int(mapping.get('individual_max_weight', INDIVIDUAL_MAX_WEIGHT)),
            pair_max_weight=int(mapping.get('pair_max_weight', PAIR_MAX_WEIGHT)),
            triple_max_weight=int(mapping.get('triple_max_weight', TRIPLE_MAX_WEIGHT)),
        )

    def required_robots(self, weight: int) -> Optional[int]:
        """
        Number of robots needed to carry an item of the given weight.

        Args:
            weight (int): Weight of the mail item.

        Returns:
            Optional[int]: 1, 2 or 3, or None if no team can carry it.
        """
        if weight <= self.individual_max_weight:
            return 1
        if weight <= self.pair_max_weight:
            return 2
        if weight <= self.triple_max_weight:
            return MAX_TEAM_SIZE
        return None
