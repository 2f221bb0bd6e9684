"""
Rubric Extractor
qti_scoring/scoring/rubric_extractor.py

Reads the scorer-view rubric block of a QTI item source:

    <qti-item-body>
      <qti-rubric-block view="scorer">
        <qti-p>[2] Thesis is clear</qti-p>
        <qti-p>[1.5] Uses evidence</qti-p>
      </qti-rubric-block>
    </qti-item-body>

Each paragraph becomes a RubricCriterion; the rubric scale is the largest
number of fractional digits among the point values.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, List, Optional

import structlog

from qti_scoring.core.exceptions import ScoringFailure
from qti_scoring.models.rubric import Rubric, RubricCriterion
from qti_scoring.pipelines.xml_codec import children, parse_document, split_tag, text_content
from qti_scoring.scoring.utils import max_scale

logger = structlog.get_logger(__name__)

ITEM_NAMESPACE = "http://www.imsglobal.org/xsd/imsqti_v3p0"
ITEM_ROOT = "qti-assessment-item"
ITEM_BODY = "qti-item-body"
RUBRIC_BLOCK = "qti-rubric-block"
PARAGRAPH = "qti-p"
SCORER_VIEW = "scorer"

RUBRIC_LINE_PATTERN = re.compile(r"\s*\[([+-]?[0-9]+(?:\.[0-9]+)?)\]\s*(.+?)\s*")


@dataclass
class ItemSource:
    """A parsed item source document."""
    identifier: str
    namespace: Optional[str]
    root: ET.Element


def parse_item_source(text: str) -> ItemSource:
    """Parse one item source and check its root, namespace and identifier."""
    root = parse_document(text, "failed to parse item source")
    namespace, local = split_tag(root.tag)
    if local != ITEM_ROOT:
        raise ScoringFailure(f"root element must be {ITEM_ROOT}")
    if namespace and namespace != ITEM_NAMESPACE:
        raise ScoringFailure(f"unexpected item namespace: {namespace}")
    identifier = root.get("identifier")
    if not identifier:
        raise ScoringFailure("missing item identifier")
    return ItemSource(identifier=identifier, namespace=namespace, root=root)


def index_item_sources(texts: List[str]) -> Dict[str, ItemSource]:
    """Parse every item source, keyed by identifier; duplicates fail."""
    sources: Dict[str, ItemSource] = {}
    for text in texts:
        source = parse_item_source(text)
        if source.identifier in sources:
            raise ScoringFailure(f"duplicate item identifier in sources: {source.identifier}")
        sources[source.identifier] = source
    return sources


def extract_rubric(source: ItemSource) -> Rubric:
    """Build the Rubric of ``source`` from its scorer rubric block."""
    identifier = source.identifier
    ns = source.namespace

    body = next(children(source.root, ns, ITEM_BODY), None)
    if body is None:
        raise ScoringFailure.for_item(identifier, "scorer rubric not found")

    scorer_block = next(
        (block for block in children(body, ns, RUBRIC_BLOCK) if block.get("view") == SCORER_VIEW),
        None,
    )
    if scorer_block is None:
        raise ScoringFailure.for_item(identifier, "scorer rubric not found")

    paragraphs = list(children(scorer_block, ns, PARAGRAPH))
    if not paragraphs:
        raise ScoringFailure.for_item(identifier, "scorer rubric not found")

    criteria: List[RubricCriterion] = []
    for index, paragraph in enumerate(paragraphs, start=1):
        match = RUBRIC_LINE_PATTERN.fullmatch(text_content(paragraph))
        if match is None:
            raise ScoringFailure.for_item(identifier, f"rubric line parse failed at index {index}")
        criteria.append(RubricCriterion(points=match.group(1), text=match.group(2).strip()))

    rubric = Rubric(
        item_identifier=identifier,
        criteria=criteria,
        scale=max_scale(c.points for c in criteria),
    )
    logger.debug("rubric_extracted", item=identifier, criteria=len(criteria), scale=rubric.scale)
    return rubric


class RubricCache:
    """Per-run rubric cache so a reused item source is parsed once."""

    def __init__(self, sources: Dict[str, ItemSource]):
        self._sources = sources
        self._rubrics: Dict[str, Rubric] = {}

    def get(self, identifier: str) -> Rubric:
        rubric = self._rubrics.get(identifier)
        if rubric is None:
            source = self._sources.get(identifier)
            if source is None:
                raise ScoringFailure.for_item(identifier, "scoring source not found")
            rubric = extract_rubric(source)
            self._rubrics[identifier] = rubric
        return rubric

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._rubrics
