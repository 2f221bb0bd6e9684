"""
Item Resolver
qti_scoring/scoring/item_resolver.py

Binds item identifiers (as used by item sources and the scoring payload) to
itemResult entries of the results document. Three strategies, picked by the
auxiliary input the caller supplies:

    no extra input        -> IdentityResolver   (identifier == itemResult/@identifier)
    ordered item list     -> OrderedResolver    (k-th item <-> itemResult/@sequenceIndex == k)
    CSV mapping table     -> MappingResolver    (resultItemIdentifier,itemIdentifier)

Every strategy produces the same ResolvedItems value, which the outcome
merger consumes without knowing which strategy ran.
"""

from __future__ import annotations

import csv
import io
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Set

import structlog

from qti_scoring.core.exceptions import ITEM_RESULT_PATH, ScoringFailure
from qti_scoring.models.enumerations import ResolutionMode
from qti_scoring.scoring.utils import parse_number

logger = structlog.get_logger(__name__)

MAPPING_HEADER = ["resultItemIdentifier", "itemIdentifier"]


@dataclass(frozen=True)
class MappingRow:
    result_identifier: str
    item_identifier: str


@dataclass
class ResolvedItems:
    """Item identifier -> itemResult binding produced by a resolver."""
    mode: ResolutionMode
    entries: Dict[str, ET.Element] = field(default_factory=dict)
    # Item identifiers the scoring payload may reference; None = any bound entry.
    allowed: Optional[Set[str]] = None

    def entry_for(self, identifier: str) -> ET.Element:
        if self.allowed is not None and identifier not in self.allowed:
            if self.mode is ResolutionMode.MAPPING:
                raise ScoringFailure.for_item(identifier, "item identifier not mapped")
            raise ScoringFailure.for_item(identifier, "assessment test missing item identifier")
        entry = self.entries.get(identifier)
        if entry is None:
            raise ScoringFailure.for_item(identifier, "itemResult not found")
        return entry


class ItemResolver:
    """Base class: turns itemResult entries into a ResolvedItems binding."""

    mode: ResolutionMode

    def resolve(self, item_results: List[ET.Element], item_sources: Mapping[str, object]) -> ResolvedItems:
        raise NotImplementedError


class IdentityResolver(ItemResolver):
    mode = ResolutionMode.IDENTITY

    def resolve(self, item_results, item_sources):
        entries: Dict[str, ET.Element] = {}
        for entry in item_results:
            identifier = entry.get("identifier")
            if not identifier:
                continue
            if identifier in entries:
                raise ScoringFailure.for_item(identifier, "duplicate itemResult identifier")
            entries[identifier] = entry
        return ResolvedItems(mode=self.mode, entries=entries)


class OrderedResolver(ItemResolver):
    mode = ResolutionMode.ORDERED

    def __init__(self, item_order: List[str]):
        self.item_order = item_order

    def _validate_order(self, item_sources: Mapping[str, object]) -> List[str]:
        if not self.item_order:
            raise ScoringFailure.for_assessment_test("assessment test has no item refs")
        seen: Set[str] = set()
        for identifier in self.item_order:
            if not identifier:
                raise ScoringFailure.for_assessment_test("assessment test item identifier missing")
            if identifier in seen:
                raise ScoringFailure.for_assessment_test(
                    f"duplicate item identifier in assessment test: {identifier}"
                )
            if identifier not in item_sources:
                raise ScoringFailure.for_assessment_test(
                    f"item identifier not found in item sources: {identifier}", identifier
                )
            seen.add(identifier)
        return list(self.item_order)

    @staticmethod
    def _by_sequence_index(item_results: List[ET.Element], max_index: int) -> Dict[int, ET.Element]:
        by_index: Dict[int, ET.Element] = {}
        for entry in item_results:
            result_id = entry.get("identifier", "")
            raw = entry.get("sequenceIndex")
            if raw is None or raw == "":
                raise ScoringFailure.for_item(result_id, "sequenceIndex is required")
            number = parse_number(raw)
            if number is None or number != number.to_integral_value() or number < 1:
                raise ScoringFailure.for_item(result_id, "sequenceIndex must be a positive integer")
            sequence_index = int(number)
            if sequence_index > max_index:
                raise ScoringFailure.for_item(result_id, "sequenceIndex exceeds assessment test item count")
            if sequence_index in by_index:
                raise ScoringFailure.for_item(result_id, "duplicate sequenceIndex in results")
            by_index[sequence_index] = entry
        return by_index

    def resolve(self, item_results, item_sources):
        order = self._validate_order(item_sources)
        by_index = self._by_sequence_index(item_results, len(order))

        entries = {order[index - 1]: entry for index, entry in by_index.items()}
        for identifier in order:
            if identifier not in entries:
                raise ScoringFailure.for_item(identifier, "itemResult missing for assessment test item")

        logger.debug("items_resolved", mode=self.mode.value, items=len(entries))
        return ResolvedItems(mode=self.mode, entries=entries, allowed=set(order))


class MappingResolver(ItemResolver):
    mode = ResolutionMode.MAPPING

    def __init__(self, rows: List[MappingRow]):
        self.rows = rows

    def _validate_rows(self, item_sources: Mapping[str, object]) -> Dict[str, str]:
        result_to_item: Dict[str, str] = {}
        seen_items: Set[str] = set()
        for row in self.rows:
            if row.result_identifier in result_to_item:
                raise ScoringFailure.for_mapping(
                    f"duplicate result identifier in mapping: {row.result_identifier}",
                    row.result_identifier,
                )
            if row.item_identifier in seen_items:
                raise ScoringFailure.for_mapping(
                    f"duplicate item identifier in mapping: {row.item_identifier}",
                    row.item_identifier,
                )
            if row.item_identifier not in item_sources:
                raise ScoringFailure.for_mapping(
                    f"mapping item identifier not found in item sources: {row.item_identifier}",
                    row.item_identifier,
                )
            result_to_item[row.result_identifier] = row.item_identifier
            seen_items.add(row.item_identifier)
        return result_to_item

    def resolve(self, item_results, item_sources):
        result_to_item = self._validate_rows(item_sources)

        by_result_id: Dict[str, ET.Element] = {}
        for entry in item_results:
            result_id = entry.get("identifier")
            if not result_id:
                raise ScoringFailure("itemResult identifier missing", ITEM_RESULT_PATH)
            if result_id in by_result_id:
                raise ScoringFailure.for_item(result_id, "duplicate itemResult identifier")
            if result_id not in result_to_item:
                raise ScoringFailure.for_item(result_id, "itemResult not mapped")
            by_result_id[result_id] = entry

        entries: Dict[str, ET.Element] = {}
        for result_id, item_id in result_to_item.items():
            entry = by_result_id.get(result_id)
            if entry is None:
                raise ScoringFailure.for_mapping(
                    f"mapping result identifier not found in results: {result_id}", result_id
                )
            entries[item_id] = entry

        logger.debug("items_resolved", mode=self.mode.value, items=len(entries))
        return ResolvedItems(mode=self.mode, entries=entries, allowed=set(entries))


def parse_mapping_table(text: str) -> List[MappingRow]:
    """
    Parse ``resultItemIdentifier,itemIdentifier`` CSV text.

    Blank lines are skipped and cells are trimmed. Uniqueness is checked by
    MappingResolver, not here.
    """
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    header: Optional[List[str]] = None
    rows: List[MappingRow] = []
    for record in reader:
        cells = [cell.strip() for cell in record]
        if not any(cells):
            continue
        if header is None:
            header = cells
            if header != MAPPING_HEADER:
                raise ScoringFailure.for_mapping("mapping header must be " + ",".join(MAPPING_HEADER))
            continue
        if len(cells) != 2:
            raise ScoringFailure.for_mapping(f"mapping row must have two columns at line {reader.line_num}")
        if not cells[0] or not cells[1]:
            raise ScoringFailure.for_mapping(f"mapping row has empty identifier at line {reader.line_num}")
        rows.append(MappingRow(result_identifier=cells[0], item_identifier=cells[1]))
    if header is None:
        raise ScoringFailure.for_mapping("mapping header must be " + ",".join(MAPPING_HEADER))
    return rows


def select_resolver(
    item_order: Optional[Iterable[str]] = None,
    mapping: Optional[List[MappingRow]] = None,
) -> ItemResolver:
    """Pick the strategy from whichever auxiliary input is present."""
    if item_order is not None and mapping is not None:
        raise ScoringFailure("item order and mapping table are mutually exclusive")
    if item_order is not None:
        return OrderedResolver(list(item_order))
    if mapping is not None:
        return MappingResolver(mapping)
    return IdentityResolver()
