"""
scoring/engine.py - Scoring Update Engine

Applies a scoring payload to a QTI 3 results document.

Function: apply_scoring_updates(results_xml, item_source_xmls, scoring_input, ...) -> str

Pipeline steps:
  1.  Validate the scoring payload shape
  2.  Parse the results document; check root, namespace, testResult
  3.  Parse item sources, keyed by identifier
  4.  Resolve scoring identifiers to itemResult entries
  5.  Per scoring item: rubric lookup (cached), criteria merge, comment merge
  6.  Recompute the testResult SCORE over all scored itemResults
  7.  Serialize the mutated document

The first violated invariant raises ScoringFailure; the caller's inputs are
never mutated and nothing is returned on failure.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

import structlog
from pydantic import ValidationError

from qti_scoring.core.exceptions import (
    ITEM_RESULT_PATH,
    RESULTS_ROOT_PATH,
    TEST_RESULT_PATH,
    ScoringFailure,
)
from qti_scoring.models.scoring_input import ScoringItem
from qti_scoring.pipelines.xml_codec import children, parse_document, serialize_document, split_tag
from qti_scoring.scoring.item_resolver import MappingRow, select_resolver
from qti_scoring.scoring.outcome_merger import (
    DowngradeCallback,
    OutcomeWriter,
    merge_comment,
    merge_criteria,
    update_test_score,
    validate_item_shape,
)
from qti_scoring.scoring.rubric_extractor import RubricCache, index_item_sources

logger = structlog.get_logger(__name__)

RESULTS_NAMESPACE = "http://www.imsglobal.org/xsd/imsqti_result_v3p0"
RESULTS_ROOT = "assessmentResult"


@dataclass
class ScoringOptions:
    """Caller-controlled merge policy."""
    preserve_met: bool = False
    on_preserve_met_downgrade: Optional[DowngradeCallback] = None
    indent: str = "  "


@dataclass
class ScoringRequest:
    """Already-loaded inputs for one results document."""
    results_xml: str
    item_source_xmls: List[str]
    scoring_input: Any
    item_order: Optional[List[str]] = None
    mapping: Optional[List[MappingRow]] = None
    options: ScoringOptions = field(default_factory=ScoringOptions)


def read_scoring_items(scoring_input: Any) -> List[ScoringItem]:
    """Validate the payload envelope and return its items in order."""
    if isinstance(scoring_input, (str, bytes)):
        try:
            scoring_input = json.loads(scoring_input)
        except ValueError as exc:
            raise ScoringFailure(f"failed to parse scoring input: {exc}") from exc

    if not isinstance(scoring_input, dict):
        raise ScoringFailure("scoring input must be an object", "/scoring")
    items = scoring_input.get("items")
    if not isinstance(items, list) or not items:
        raise ScoringFailure("scoring input items missing or empty", "/scoring/items")

    scoring_items: List[ScoringItem] = []
    for index, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            raise ScoringFailure(f"scoring item must be an object at index {index}", "/scoring/items")
        try:
            scoring_items.append(ScoringItem.model_validate(raw))
        except ValidationError as exc:
            raise ScoringFailure("missing item identifier in scoring input", ITEM_RESULT_PATH) from exc
    return scoring_items


def apply_scoring_updates(
    results_xml: str,
    item_source_xmls: Sequence[str],
    scoring_input: Any,
    item_order: Optional[Sequence[str]] = None,
    mapping: Optional[List[MappingRow]] = None,
    options: Optional[ScoringOptions] = None,
) -> str:
    """
    Merge scorer decisions into ``results_xml`` and return the updated XML.

    Args:
        results_xml: QTI 3 results document (assessmentResult root).
        item_source_xmls: Item source documents holding the scorer rubrics.
        scoring_input: Parsed JSON payload (or its text).
        item_order: Ordered item identifiers; binds itemResult/@sequenceIndex.
        mapping: resultItemIdentifier -> itemIdentifier rows.
        options: Preserve-met policy, downgrade callback, output indent.

    Raises:
        ScoringFailure: at the first violated invariant.
    """
    options = options or ScoringOptions()
    scoring_items = read_scoring_items(scoring_input)

    root = parse_document(results_xml, "failed to parse results")
    namespace, local = split_tag(root.tag)
    if local != RESULTS_ROOT:
        raise ScoringFailure(f"root element must be {RESULTS_ROOT}")
    if not namespace:
        raise ScoringFailure("missing results namespace", RESULTS_ROOT_PATH)
    if namespace != RESULTS_NAMESPACE:
        raise ScoringFailure(f"unexpected results namespace: {namespace}", RESULTS_ROOT_PATH)

    test_results = list(children(root, namespace, "testResult"))
    if not test_results:
        raise ScoringFailure("testResult not found", TEST_RESULT_PATH)
    if len(test_results) > 1:
        raise ScoringFailure("multiple testResult entries", TEST_RESULT_PATH)
    item_results = list(children(root, namespace, "itemResult"))

    sources = index_item_sources(list(item_source_xmls))
    resolver = select_resolver(item_order=item_order, mapping=mapping)
    resolved = resolver.resolve(item_results, sources)
    rubrics = RubricCache(sources)

    for item in scoring_items:
        entry = resolved.entry_for(item.identifier)
        validate_item_shape(item)
        writer = OutcomeWriter(entry, namespace)

        if item.has_criteria:
            merge_criteria(
                item,
                rubrics.get(item.identifier),
                writer,
                preserve_met=options.preserve_met,
                on_downgrade=options.on_preserve_met_downgrade,
            )
        if item.has_comment:
            merge_comment(item, writer)

    update_test_score(test_results[0], item_results, namespace)
    logger.info(
        "scoring_applied",
        mode=resolved.mode.value,
        items=len(scoring_items),
        preserve_met=options.preserve_met,
    )
    return serialize_document(root, namespace, options.indent)


def apply_request(request: ScoringRequest) -> str:
    """apply_scoring_updates() for a bundled ScoringRequest."""
    return apply_scoring_updates(
        request.results_xml,
        request.item_source_xmls,
        request.scoring_input,
        item_order=request.item_order,
        mapping=request.mapping,
        options=request.options,
    )
