from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, field_validator


class CriterionDecision(BaseModel):
    """
    One scorer decision for a rubric criterion, matched by position.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    met: StrictBool = Field(
        ...,
        description="Whether the criterion was met"
    )

    criterion_text: Optional[StrictStr] = Field(
        default=None,
        alias="criterionText",
        description="Optional cross-check against the rubric criterion text"
    )

    @field_validator("criterion_text", mode="before")
    @classmethod
    def reject_explicit_null(cls, v):
        # Only runs for a supplied value; an omitted key keeps the None default.
        if v is None:
            raise ValueError("criterionText must be a string when present")
        return v


class ScoringItem(BaseModel):
    """
    One entry of the scoring payload ``items`` list.

    ``criteria`` and ``comment`` are kept raw; their shape is validated
    while the item is merged so that failures surface in payload order.
    """

    model_config = ConfigDict(extra="ignore")

    identifier: StrictStr = Field(
        ...,
        min_length=1,
        description="Item identifier as known to the item sources"
    )

    criteria: Any = Field(
        default=None,
        description="Array of criterion decisions, one per rubric criterion"
    )

    comment: Any = Field(
        default=None,
        description="Free-text scorer comment"
    )

    @property
    def has_criteria(self) -> bool:
        return "criteria" in self.model_fields_set

    @property
    def has_comment(self) -> bool:
        return "comment" in self.model_fields_set
