"""
Scoring Runner - batch driver and CLI
qti_scoring/pipelines/runner.py

Applies scoring payloads to QTI results files in place.
Steps per run:
1. Validate arguments and input paths
2. Load item sources (assessment test refs or --item files) and the optional mapping table
3. Pair results files with scoring payloads (single, glob, or regex + template)
4. For each pair: run the engine, write the updated results atomically

Examples:
  # Single results file, items from the assessment test
  qti-score --results results.xml --scoring scoring.json --assessment-test test.xml

  # Item sources passed directly, identity resolution
  qti-score --results results.xml --scoring scoring.json --item q1.xml --item q2.xml

  # External result/item identifier mapping
  qti-score --results results.xml --scoring scoring.json --item q1.xml --mapping map.csv

  # Batch: results/*.xml paired with scoring/*.json by file name
  qti-score --results "results/*.xml" --scoring "scoring/*.json" --assessment-test test.xml

  # Batch with a regex + template pairing
  qti-score --results "results/**/*.xml" --scoring scoring \\
      --results-regex "(?<cand>[^/]+)/result\\.xml" --scoring-template "{cand}.json" \\
      --assessment-test test.xml

  # Never downgrade recorded RUBRIC_<n>_MET=true
  qti-score --results results.xml --scoring scoring.json --assessment-test test.xml --preserve-met

On failure a JSON object {path, identifier?, reason} is printed to stdout
and the exit status is 2.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from qti_scoring.config import Settings, get_settings
from qti_scoring.core.exceptions import ScoringError, ScoringFailure
from qti_scoring.core.logging import configure_logging
from qti_scoring.models.rubric import PreserveMetDowngradeNotice
from qti_scoring.pipelines.assessment_test import load_assessment_test
from qti_scoring.pipelines.file_matching import InputPair, has_glob_pattern, resolve_input_pairs
from qti_scoring.scoring.engine import ScoringOptions, ScoringRequest, apply_request
from qti_scoring.scoring.item_resolver import MappingRow, parse_mapping_table

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 2


@dataclass
class BatchState:
    """State container for one CLI run."""

    # Inputs shared by every pair
    item_source_xmls: List[str] = field(default_factory=list)
    item_order: Optional[List[str]] = None
    mapping: Optional[List[MappingRow]] = None

    # Progress
    pairs: List[InputPair] = field(default_factory=list)
    processed: List[Path] = field(default_factory=list)
    failed: List[Path] = field(default_factory=list)
    errors: List[ScoringError] = field(default_factory=list)
    downgrades: List[PreserveMetDowngradeNotice] = field(default_factory=list)

    @property
    def is_batch(self) -> bool:
        return len(self.pairs) > 1


class BatchRunner:
    """Runs the scoring engine over every results/scoring pair."""

    def __init__(
        self,
        preserve_met: bool = False,
        continue_on_error: bool = False,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.preserve_met = preserve_met
        self.continue_on_error = continue_on_error
        self.state = BatchState()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_sources(
        self,
        assessment_test: Optional[Path] = None,
        items: Optional[List[Path]] = None,
        mapping: Optional[Path] = None,
    ) -> None:
        if assessment_test is not None:
            test = load_assessment_test(assessment_test)
            self.state.item_source_xmls = test.item_source_xmls
            if mapping is None:
                self.state.item_order = test.item_order
        for item_path in items or []:
            self.state.item_source_xmls.append(item_path.read_text(encoding="utf-8"))
        if mapping is not None:
            self.state.mapping = parse_mapping_table(mapping.read_text(encoding="utf-8"))

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def _report_downgrade(self, notice: PreserveMetDowngradeNotice) -> None:
        self.state.downgrades.append(notice)
        print(
            f"preserve-met: {notice.item_identifier} RUBRIC_{notice.rubric_index}_MET "
            f"stays true (requested false)",
            file=sys.stderr,
        )

    def process_pair(self, pair: InputPair) -> None:
        request = ScoringRequest(
            results_xml=pair.results_path.read_text(encoding="utf-8"),
            item_source_xmls=self.state.item_source_xmls,
            scoring_input=pair.scoring_path.read_text(encoding="utf-8"),
            item_order=self.state.item_order,
            mapping=self.state.mapping,
            options=ScoringOptions(
                preserve_met=self.preserve_met,
                on_preserve_met_downgrade=self._report_downgrade,
                indent=self.settings.XML_INDENT,
            ),
        )
        output = apply_request(request)
        self.write_in_place(pair.results_path, output)
        self.state.processed.append(pair.results_path)
        logger.info("Updated %s from %s", pair.results_path, pair.scoring_path)

    def run(self, pairs: List[InputPair]) -> BatchState:
        """Process ``pairs`` in order; stops at the first failure unless continue_on_error."""
        self.state.pairs = pairs
        for pair in pairs:
            try:
                self.process_pair(pair)
            except ScoringFailure as exc:
                self.state.failed.append(pair.results_path)
                self.state.errors.append(exc.payload)
                if self.state.is_batch:
                    print(f"batch: failed for results file {pair.results_path}", file=sys.stderr)
                if not self.continue_on_error:
                    raise
                logger.warning("Skipping %s: %s", pair.results_path, exc.reason)
        return self.state

    def write_in_place(self, target: Path, contents: str) -> None:
        """Write via a temp file in the same directory, then rename over ``target``."""
        temp = target.parent / (
            f"{self.settings.TEMP_FILE_PREFIX}{target.name}-{os.getpid()}-{int(time.time() * 1000)}"
        )
        try:
            temp.write_text(contents, encoding="utf-8")
            os.replace(temp, target)
        finally:
            if temp.exists():
                try:
                    temp.unlink()
                except OSError as exc:
                    print(f"warning: failed to remove temp file {temp}: {exc}", file=sys.stderr)


# ----------------------------------------------------------------------
# CLI
# ----------------------------------------------------------------------

def write_error(error: ScoringError) -> int:
    print(json.dumps(error.to_dict(), indent=2))
    return EXIT_FAILURE


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qti-score",
        description="Apply rubric scoring decisions to QTI 3 results files (in place)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--results", default=None, help="Results XML file or glob")
    parser.add_argument("--scoring", default=None, help="Scoring JSON file, glob, or directory (regex mode)")
    parser.add_argument("--assessment-test", default=None, dest="assessment_test",
                        help="qti-assessment-test XML; gives item sources and item order")
    parser.add_argument("--item", action="append", default=[], dest="items",
                        help="Item source XML (repeatable); used instead of --assessment-test")
    parser.add_argument("--mapping", default=None,
                        help="CSV with header resultItemIdentifier,itemIdentifier")
    parser.add_argument("--results-regex", default=None, dest="results_regex",
                        help="Regex matched against each results path (relative to the results root)")
    parser.add_argument("--scoring-template", default=None, dest="scoring_template",
                        help="Scoring path template, e.g. '{base}.json' or '{1}/scoring.json'")
    parser.add_argument("--preserve-met", action="store_true", default=None, dest="preserve_met",
                        help="Never turn a recorded RUBRIC_<n>_MET=true into false")
    parser.add_argument("--continue-on-error", action="store_true", default=None, dest="continue_on_error",
                        help="Keep processing remaining pairs after a failed one")
    parser.add_argument("--log-level", default=None, dest="log_level",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Override LOG_LEVEL")
    return parser


def _check_arguments(args: argparse.Namespace) -> None:
    if not args.results or not args.scoring or not (args.assessment_test or args.items):
        raise ScoringFailure("missing required arguments")
    if args.scoring_template and not args.results_regex:
        raise ScoringFailure.for_input("scoring-template", "scoring-template requires results-regex")
    if args.results_regex and not args.scoring_template:
        raise ScoringFailure.for_input("scoring-template", "scoring-template is required when results-regex is set")

    regex_mode = bool(args.results_regex and args.scoring_template)
    if not has_glob_pattern(args.results) and not Path(args.results).is_file():
        raise ScoringFailure(f"missing results file: {args.results}")
    if regex_mode:
        if not has_glob_pattern(args.scoring) and not Path(args.scoring).exists():
            raise ScoringFailure.for_input("scoring", f"missing scoring path: {args.scoring}")
    elif not has_glob_pattern(args.scoring) and not Path(args.scoring).is_file():
        raise ScoringFailure(f"missing scoring file: {args.scoring}")
    if args.assessment_test and not Path(args.assessment_test).is_file():
        raise ScoringFailure(f"missing assessment test file: {args.assessment_test}")
    for item in args.items:
        if not Path(item).is_file():
            raise ScoringFailure(f"missing item file: {item}")
    if args.mapping and not Path(args.mapping).is_file():
        raise ScoringFailure(f"missing mapping file: {args.mapping}")


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point; returns the process exit status."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.LOG_LEVEL, settings.LOG_FORMAT)

    runner = BatchRunner(
        preserve_met=settings.PRESERVE_MET if args.preserve_met is None else args.preserve_met,
        continue_on_error=settings.CONTINUE_ON_ERROR if args.continue_on_error is None else args.continue_on_error,
        settings=settings,
    )

    try:
        _check_arguments(args)
        runner.load_sources(
            assessment_test=Path(args.assessment_test) if args.assessment_test else None,
            items=[Path(item) for item in args.items],
            mapping=Path(args.mapping) if args.mapping else None,
        )
        pairs = resolve_input_pairs(
            args.results,
            args.scoring,
            results_regex=args.results_regex,
            scoring_template=args.scoring_template,
        )
        state = runner.run(pairs)
    except ScoringFailure as exc:
        return write_error(exc.payload)
    except Exception as exc:
        logger.exception("Unexpected error")
        return write_error(ScoringError(path="/", reason=f"unexpected error: {exc}"))

    if state.errors:
        return write_error(state.errors[0])
    logger.info("Processed %d results file(s)", len(state.processed))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
