from enum import Enum

class BaseType(str, Enum):
    BOOLEAN = "boolean"
    FLOAT = "float"
    STRING = "string"

class ResolutionMode(str, Enum):
    IDENTITY = "identity"  # scoring identifier == itemResult identifier
    ORDERED = "ordered"    # item order + itemResult/@sequenceIndex
    MAPPING = "mapping"    # resultItemIdentifier,itemIdentifier table

SCORE_OUTCOME = "SCORE"
COMMENT_OUTCOME = "COMMENT"


def rubric_met_outcome(index: int) -> str:
    """Outcome identifier for the 1-based rubric criterion ``index``."""
    return f"RUBRIC_{index}_MET"
