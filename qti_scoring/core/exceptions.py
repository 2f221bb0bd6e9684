"""
Custom Exceptions - QTI Rubric Scoring
qti_scoring/core/exceptions.py

A single structured failure type covers every inconsistency the engine and
the batch layer can detect. The payload addresses a location in the results
document (or one of the other inputs) plus an optional identifier.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


RESULTS_ROOT_PATH = "/assessmentResult"
TEST_RESULT_PATH = "/assessmentResult/testResult"
ITEM_RESULT_PATH = "/assessmentResult/itemResult"
ASSESSMENT_TEST_PATH = "/assessmentTest"
MAPPING_PATH = "/mapping"


def item_result_path(identifier: str) -> str:
    """Locator for one itemResult entry."""
    return f"{ITEM_RESULT_PATH}[@identifier='{identifier}']"


class ScoringError(BaseModel):
    """Error surface: ``{path, identifier?, reason}``."""

    path: str = Field(default="/", description="Addressable location of the failure")
    identifier: Optional[str] = Field(default=None, description="Offending identifier")
    reason: str = Field(..., description="Human-readable reason")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ScoringFailure(Exception):
    """Raised at the first violated invariant."""

    def __init__(self, reason: str, path: str = "/", identifier: Optional[str] = None):
        self.payload = ScoringError(path=path, identifier=identifier or None, reason=reason)
        super().__init__(reason)

    @property
    def path(self) -> str:
        return self.payload.path

    @property
    def identifier(self) -> Optional[str]:
        return self.payload.identifier

    @property
    def reason(self) -> str:
        return self.payload.reason

    @classmethod
    def for_item(cls, identifier: str, reason: str) -> "ScoringFailure":
        return cls(reason, item_result_path(identifier), identifier)

    @classmethod
    def for_assessment_test(cls, reason: str, identifier: Optional[str] = None) -> "ScoringFailure":
        return cls(reason, ASSESSMENT_TEST_PATH, identifier)

    @classmethod
    def for_mapping(cls, reason: str, identifier: Optional[str] = None) -> "ScoringFailure":
        return cls(reason, MAPPING_PATH, identifier)

    @classmethod
    def for_input(cls, input_name: str, reason: str) -> "ScoringFailure":
        """CLI input locations such as ``/results`` or ``/scoring-template``."""
        return cls(reason, f"/{input_name}")
