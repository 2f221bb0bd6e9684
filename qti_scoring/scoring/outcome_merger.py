"""
Outcome Merger
qti_scoring/scoring/outcome_merger.py

Writes scorer decisions into itemResult/testResult outcome variables:

    RUBRIC_<n>_MET  boolean  one per rubric criterion
    SCORE           float    item score = Σ points of met criteria
    COMMENT         string   scorer comment, when supplied

and recomputes the test-level SCORE over every itemResult carrying a SCORE.
Existing outcome variables are overwritten in place (first match wins),
missing ones are appended.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import structlog
from pydantic import ValidationError

from qti_scoring.core.exceptions import ScoringFailure
from qti_scoring.models.enumerations import (
    COMMENT_OUTCOME,
    SCORE_OUTCOME,
    BaseType,
    rubric_met_outcome,
)
from qti_scoring.models.rubric import PreserveMetDowngradeNotice, Rubric
from qti_scoring.models.scoring_input import CriterionDecision, ScoringItem
from qti_scoring.pipelines.xml_codec import qualify, text_content
from qti_scoring.scoring.utils import aggregate_scaled, format_scaled, parse_decimal, to_scaled_int

logger = structlog.get_logger(__name__)

RUBRIC_MET_PATTERN = re.compile(r"RUBRIC_(\d+)_MET", re.ASCII)

DowngradeCallback = Callable[[PreserveMetDowngradeNotice], None]


@dataclass
class ItemScore:
    """Scaled score written for one item."""
    item_identifier: str
    scaled: int
    scale: int

    @property
    def formatted(self) -> str:
        return format_scaled(self.scaled, self.scale)


# ---------------------------------------------------------------------------
# Outcome variable access
# ---------------------------------------------------------------------------

class OutcomeWriter:
    """Reads and upserts outcomeVariable children of one result entry."""

    def __init__(self, entry: ET.Element, namespace: Optional[str]):
        self.entry = entry
        self.namespace = namespace
        self._outcome_tag = qualify(namespace, "outcomeVariable")
        self._value_tag = qualify(namespace, "value")

    def outcomes(self) -> List[ET.Element]:
        return self.entry.findall(self._outcome_tag)

    def find(self, identifier: str) -> Optional[ET.Element]:
        for outcome in self.outcomes():
            if outcome.get("identifier") == identifier:
                return outcome
        return None

    def value_of(self, identifier: str) -> Optional[str]:
        outcome = self.find(identifier)
        if outcome is None:
            return None
        return text_content(outcome.find(self._value_tag)).strip()

    def recorded_met(self) -> Dict[int, bool]:
        """Already-recorded RUBRIC_<n>_MET values, first entry per index."""
        recorded: Dict[int, bool] = {}
        for outcome in self.outcomes():
            match = RUBRIC_MET_PATTERN.fullmatch(outcome.get("identifier") or "")
            if match is None:
                continue
            index = int(match.group(1))
            if index in recorded:
                continue
            raw = text_content(outcome.find(self._value_tag)).strip()
            if raw == "true":
                recorded[index] = True
            elif raw == "false":
                recorded[index] = False
        return recorded

    def upsert(self, identifier: str, base_type: BaseType, value: str) -> None:
        outcome = self.find(identifier)
        if outcome is None:
            outcome = ET.SubElement(self.entry, self._outcome_tag)
        outcome.set("identifier", identifier)
        outcome.set("baseType", base_type.value)

        values = outcome.findall(self._value_tag)
        if values:
            target = values[0]
            for extra in values[1:]:
                outcome.remove(extra)
            for child in list(target):
                target.remove(child)
        else:
            target = ET.SubElement(outcome, self._value_tag)
        target.text = value


# ---------------------------------------------------------------------------
# Per-item merge
# ---------------------------------------------------------------------------

def _criterion_decision(identifier: str, raw, index: int) -> CriterionDecision:
    if not isinstance(raw, dict):
        raise ScoringFailure.for_item(identifier, f"criterion must be an object at index {index}")
    try:
        return CriterionDecision.model_validate(raw)
    except ValidationError as exc:
        fields = {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
        if "met" in fields:
            raise ScoringFailure.for_item(
                identifier, f"criterion met must be boolean at index {index}"
            ) from exc
        raise ScoringFailure.for_item(
            identifier, f"criterionText must be string at index {index}"
        ) from exc


def validate_item_shape(item: ScoringItem) -> None:
    """Checks that do not need the rubric: presence and the comment type."""
    identifier = item.identifier
    if not item.has_criteria and not item.has_comment:
        raise ScoringFailure.for_item(identifier, "criteria or comment required")
    if item.has_comment and (not isinstance(item.comment, str) or not item.comment):
        raise ScoringFailure.for_item(identifier, "comment must be a non-empty string")


def merge_criteria(
    item: ScoringItem,
    rubric: Rubric,
    writer: OutcomeWriter,
    preserve_met: bool = False,
    on_downgrade: Optional[DowngradeCallback] = None,
) -> ItemScore:
    """
    Apply the criterion decisions of ``item`` and write RUBRIC_<n>_MET + SCORE.

    With ``preserve_met`` a recorded ``true`` is never turned into ``false``;
    each blocked downgrade is reported through ``on_downgrade``.
    """
    identifier = item.identifier
    if not isinstance(item.criteria, list):
        raise ScoringFailure.for_item(identifier, "criteria must be an array")
    if len(item.criteria) != len(rubric.criteria):
        raise ScoringFailure.for_item(
            identifier,
            f"criteria length ({len(item.criteria)}) does not match "
            f"rubric criteria count ({len(rubric.criteria)})",
        )

    recorded = writer.recorded_met() if preserve_met else {}

    # Validate every criterion before touching the document.
    final_met: List[bool] = []
    for index, (raw, criterion) in enumerate(zip(item.criteria, rubric.criteria), start=1):
        decision = _criterion_decision(identifier, raw, index)
        if decision.criterion_text is not None and decision.criterion_text != criterion.text:
            raise ScoringFailure.for_item(
                identifier, f"criterionText does not match rubric criterion at index {index}"
            )

        met = bool(decision.met)
        if preserve_met and recorded.get(index) is True and not met:
            met = True
            logger.warning("preserve_met_downgrade_blocked", item=identifier, rubric_index=index)
            if on_downgrade is not None:
                on_downgrade(PreserveMetDowngradeNotice(item_identifier=identifier, rubric_index=index))
        final_met.append(met)

    scaled = 0
    for index, (met, criterion) in enumerate(zip(final_met, rubric.criteria), start=1):
        if met:
            scaled += to_scaled_int(criterion.points, rubric.scale)
        writer.upsert(rubric_met_outcome(index), BaseType.BOOLEAN, "true" if met else "false")

    score = ItemScore(item_identifier=identifier, scaled=scaled, scale=rubric.scale)
    writer.upsert(SCORE_OUTCOME, BaseType.FLOAT, score.formatted)
    logger.info("item_scored", item=identifier, score=score.formatted, scale=score.scale)
    return score


def merge_comment(item: ScoringItem, writer: OutcomeWriter) -> None:
    writer.upsert(COMMENT_OUTCOME, BaseType.STRING, item.comment)


# ---------------------------------------------------------------------------
# Test-level aggregation
# ---------------------------------------------------------------------------

def collect_item_scores(item_results: Iterable[ET.Element], namespace: Optional[str]) -> List[Tuple[int, int]]:
    """(scaled, scale) of every itemResult whose SCORE holds a finite number."""
    scores: List[Tuple[int, int]] = []
    for entry in item_results:
        parsed = parse_decimal(OutcomeWriter(entry, namespace).value_of(SCORE_OUTCOME) or "")
        if parsed is not None:
            scores.append(parsed)
    return scores


def update_test_score(
    test_result: ET.Element,
    item_results: Iterable[ET.Element],
    namespace: Optional[str],
) -> Optional[str]:
    """
    Recompute testResult SCORE at the finest item scale.

    Returns the written value, or None when no itemResult carries a SCORE.
    """
    scores = collect_item_scores(item_results, namespace)
    if not scores:
        return None
    total, scale = aggregate_scaled(scores)
    value = format_scaled(total, scale)
    OutcomeWriter(test_result, namespace).upsert(SCORE_OUTCOME, BaseType.FLOAT, value)
    logger.info("test_score_aggregated", items=len(scores), score=value, scale=scale)
    return value
