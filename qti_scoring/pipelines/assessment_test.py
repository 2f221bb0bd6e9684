"""
Assessment Test Reader
qti_scoring/pipelines/assessment_test.py

Reads the ordered item refs of a qti-assessment-test document and loads the
referenced item sources relative to the test file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from qti_scoring.core.exceptions import ScoringFailure
from qti_scoring.pipelines.xml_codec import children, parse_document, split_tag

logger = logging.getLogger(__name__)

TEST_ROOT = "qti-assessment-test"


@dataclass
class AssessmentItemRef:
    identifier: str
    href: str


@dataclass
class AssessmentTest:
    """Item refs in test order plus the loaded item sources."""
    item_refs: List[AssessmentItemRef]
    item_source_xmls: List[str]

    @property
    def item_order(self) -> List[str]:
        return [ref.identifier for ref in self.item_refs]


def parse_assessment_test(text: str) -> List[AssessmentItemRef]:
    """Item refs across all test parts and sections, in document order."""
    root = parse_document(text, "failed to parse assessment test")
    namespace, local = split_tag(root.tag)
    if local != TEST_ROOT:
        raise ScoringFailure.for_assessment_test(f"root element must be {TEST_ROOT}")

    refs: List[AssessmentItemRef] = []
    for part in children(root, namespace, "qti-test-part"):
        for section in children(part, namespace, "qti-assessment-section"):
            for ref in children(section, namespace, "qti-assessment-item-ref"):
                identifier = ref.get("identifier")
                href = ref.get("href")
                if not identifier:
                    raise ScoringFailure.for_assessment_test("item ref missing identifier")
                if not href:
                    raise ScoringFailure.for_assessment_test("item ref missing href", identifier)
                refs.append(AssessmentItemRef(identifier=identifier, href=href))

    if not refs:
        raise ScoringFailure.for_assessment_test("assessment test has no item refs")
    return refs


def load_assessment_test(path: Path) -> AssessmentTest:
    """Parse the test at ``path`` and read every referenced item file."""
    refs = parse_assessment_test(path.read_text(encoding="utf-8"))
    base_dir = path.resolve().parent

    sources: List[str] = []
    for ref in refs:
        item_path = (base_dir / ref.href).resolve()
        if not item_path.is_file():
            raise ScoringFailure.for_assessment_test(f"missing item file: {item_path}", ref.identifier)
        sources.append(item_path.read_text(encoding="utf-8"))

    logger.info("Loaded assessment test %s with %d item refs", path, len(refs))
    return AssessmentTest(item_refs=refs, item_source_xmls=sources)
