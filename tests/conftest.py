# tests/conftest.py

"""
Pytest Fixtures - Shared QTI documents for the scoring engine and CLI tests

DOCUMENT REFERENCE:
- Items:   ITEM-ESSAY   [2] Thesis is clear / [1.5] Uses evidence     (scale 1)
           ITEM-SHORT   [10] Correct answer                           (scale 0)
           ITEM-PRECISE [0.25] Units stated / [0.5] Working shown      (scale 2)
- Results: itemResult Q1 (sequenceIndex 1), Q2 (sequenceIndex 2), one testResult
"""

import json
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Sequence

import pytest

RESULTS_NS = "http://www.imsglobal.org/xsd/imsqti_result_v3p0"
ITEM_NS = "http://www.imsglobal.org/xsd/imsqti_v3p0"


# =============================================================================
# DOCUMENT BUILDERS
# =============================================================================

def outcome_xml(identifier: str, base_type: str, value: str) -> str:
    return (
        f'<outcomeVariable identifier="{identifier}" cardinality="single" baseType="{base_type}">'
        f"<value>{value}</value></outcomeVariable>"
    )


def item_result_xml(
    identifier: str,
    outcomes: Sequence[str] = (),
    sequence_index: Optional[int] = None,
) -> str:
    seq = f' sequenceIndex="{sequence_index}"' if sequence_index is not None else ""
    return (
        f'<itemResult identifier="{identifier}"{seq} datestamp="2026-01-01T00:00:00" sessionStatus="final">'
        + "".join(outcomes)
        + "</itemResult>"
    )


def results_xml(
    item_results: Sequence[str] = (),
    test_outcomes: Sequence[str] = (),
    namespace: Optional[str] = RESULTS_NS,
    include_test_result: bool = True,
) -> str:
    xmlns = f' xmlns="{namespace}"' if namespace else ""
    test_result = (
        '<testResult identifier="TEST" datestamp="2026-01-01T00:00:00">'
        + "".join(test_outcomes)
        + "</testResult>"
        if include_test_result
        else ""
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<assessmentResult{xmlns}>"
        '<context sourcedId="candidate-1"/>'
        + test_result
        + "".join(item_results)
        + "</assessmentResult>"
    )


def item_xml(
    identifier: str,
    lines: Sequence[str],
    view: str = "scorer",
    namespace: Optional[str] = ITEM_NS,
) -> str:
    xmlns = f' xmlns="{namespace}"' if namespace else ""
    paragraphs = "".join(f"<qti-p>{line}</qti-p>" for line in lines)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<qti-assessment-item{xmlns} identifier="{identifier}" title="{identifier}">'
        "<qti-item-body>"
        "<qti-p>Write your answer.</qti-p>"
        '<qti-rubric-block view="candidate"><qti-p>Be concise.</qti-p></qti-rubric-block>'
        f'<qti-rubric-block view="{view}">{paragraphs}</qti-rubric-block>'
        "</qti-item-body>"
        "</qti-assessment-item>"
    )


def assessment_test_xml(refs: Sequence[tuple]) -> str:
    item_refs = "".join(
        f'<qti-assessment-item-ref identifier="{identifier}" href="{href}"/>' for identifier, href in refs
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<qti-assessment-test xmlns="{ITEM_NS}" identifier="TEST" title="Test">'
        '<qti-test-part identifier="P1" navigation-mode="linear" submission-mode="individual">'
        f'<qti-assessment-section identifier="S1" title="Section" visible="true">{item_refs}'
        "</qti-assessment-section></qti-test-part></qti-assessment-test>"
    )


def scoring_json(items: List[Dict]) -> str:
    return json.dumps({"items": items})


# =============================================================================
# DOCUMENT READERS
# =============================================================================

def outcomes_of(xml_text: str, entry_identifier: Optional[str] = None) -> Dict[str, str]:
    """Outcome identifier -> value for an itemResult (or the testResult when None)."""
    root = ET.fromstring(xml_text)
    ns = {"r": RESULTS_NS}
    if entry_identifier is None:
        entry = root.find("r:testResult", ns)
    else:
        entry = root.find(f"r:itemResult[@identifier='{entry_identifier}']", ns)
    assert entry is not None
    values: Dict[str, str] = {}
    for outcome in entry.findall("r:outcomeVariable", ns):
        values.setdefault(outcome.get("identifier"), outcome.findtext("r:value", default="", namespaces=ns))
    return values


def base_types_of(xml_text: str, entry_identifier: str) -> Dict[str, str]:
    root = ET.fromstring(xml_text)
    ns = {"r": RESULTS_NS}
    entry = root.find(f"r:itemResult[@identifier='{entry_identifier}']", ns)
    return {o.get("identifier"): o.get("baseType") for o in entry.findall("r:outcomeVariable", ns)}


# =============================================================================
# ITEM SOURCE FIXTURES
# =============================================================================

@pytest.fixture
def essay_item():
    """Two criteria, scale 1."""
    return item_xml("ITEM-ESSAY", ["[2] Thesis is clear", "[1.5] Uses evidence"])


@pytest.fixture
def short_item():
    """Single criterion, scale 0."""
    return item_xml("ITEM-SHORT", ["[10] Correct answer"])


@pytest.fixture
def precise_item():
    """Two criteria, scale 2."""
    return item_xml("ITEM-PRECISE", ["[0.25] Units stated", "[0.5] Working shown"])


@pytest.fixture
def three_criteria_item():
    return item_xml("ITEM-THREE", ["[1] First", "[1] Second", "[1] Third"])


# =============================================================================
# RESULTS FIXTURES
# =============================================================================

@pytest.fixture
def identity_results():
    """itemResult identifiers equal the item identifiers."""
    return results_xml([
        item_result_xml("ITEM-ESSAY", sequence_index=1),
        item_result_xml("ITEM-SHORT", sequence_index=2),
    ])


@pytest.fixture
def sequenced_results():
    """itemResults named Q1/Q2, bound to items via sequenceIndex."""
    return results_xml([
        item_result_xml("Q1", sequence_index=1),
        item_result_xml("Q2", sequence_index=2),
    ])


@pytest.fixture
def essay_both_met():
    return scoring_json([
        {"identifier": "ITEM-ESSAY", "criteria": [{"met": True}, {"met": True}]}
    ])
