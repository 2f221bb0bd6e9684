from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class RubricCriterion:
    """A single ``[<points>] <text>`` line of a scorer rubric."""
    points: str   # raw points string, parsed exactly at the rubric scale
    text: str


@dataclass
class Rubric:
    """Ordered scorer-rubric criteria for one item plus the derived scale."""
    item_identifier: str
    criteria: List[RubricCriterion] = field(default_factory=list)
    scale: int = 0   # max fractional digits across all point strings

    def __len__(self) -> int:
        return len(self.criteria)


@dataclass(frozen=True)
class PreserveMetDowngradeNotice:
    """Emitted when a recorded met criterion is kept despite a ``met=false`` decision."""
    item_identifier: str
    rubric_index: int   # 1-based
