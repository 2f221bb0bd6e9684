"""
QTI Rubric Scoring

Applies rubric-based scorer decisions to QTI 3 results documents.
"""

from qti_scoring.core.logging import use_stdlib_logging

use_stdlib_logging()

from qti_scoring.core.exceptions import ScoringError, ScoringFailure
from qti_scoring.models.rubric import PreserveMetDowngradeNotice
from qti_scoring.scoring.engine import ScoringOptions, apply_scoring_updates
from qti_scoring.scoring.item_resolver import MappingRow, parse_mapping_table

__version__ = "1.0.0"

__all__ = [
    "MappingRow",
    "PreserveMetDowngradeNotice",
    "ScoringError",
    "ScoringFailure",
    "ScoringOptions",
    "apply_scoring_updates",
    "parse_mapping_table",
]
