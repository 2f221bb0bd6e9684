"""
Core Package - QTI Rubric Scoring
qti_scoring/core/__init__.py

Core infrastructure: exceptions, logging.
"""

from qti_scoring.core.exceptions import (
    ScoringError,
    ScoringFailure,
    item_result_path,
)
from qti_scoring.core.logging import configure_logging

__all__ = [
    # Exceptions
    "ScoringError",
    "ScoringFailure",
    "item_result_path",
    # Logging
    "configure_logging",
]
