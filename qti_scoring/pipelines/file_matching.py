"""
Input Pairing
qti_scoring/pipelines/file_matching.py

Expands the --results/--scoring arguments (plain paths or globs) and pairs
each results file with its scoring payload:

  - one results file + one scoring file        -> a single pair
  - results glob + scoring glob                -> matched by relative path
                                                  without extension (case-insensitive)
  - --results-regex + --scoring-template       -> scoring path rendered from
                                                  the regex groups of each results path
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Union

from qti_scoring.core.exceptions import ScoringFailure

GLOB_PATTERN = re.compile(r"[*?]")
TEMPLATE_TOKEN = re.compile(r"\{([^{}]+)\}")
# JavaScript-style named groups, e.g. (?<candidate>\w+)
JS_NAMED_GROUP = re.compile(r"\(\?<(?![=!])")

PathLike = Union[str, Path]


@dataclass
class GlobExpansion:
    pattern: str
    root_dir: Path
    matches: List[Path] = field(default_factory=list)
    is_glob: bool = False


@dataclass(frozen=True)
class InputPair:
    results_path: Path
    scoring_path: Path


def has_glob_pattern(value: str) -> bool:
    return bool(GLOB_PATTERN.search(value))


def expand_path_or_glob(pattern: str, cwd: Optional[PathLike] = None) -> GlobExpansion:
    """
    Expand ``pattern`` relative to ``cwd``.

    The root directory is the longest wildcard-free leading part of the
    pattern; matches are files only, sorted.
    """
    base = Path(cwd) if cwd is not None else Path(os.getcwd())

    if not has_glob_pattern(pattern):
        resolved = (base / pattern).resolve()
        return GlobExpansion(
            pattern=pattern,
            root_dir=resolved.parent,
            matches=[resolved] if resolved.exists() else [],
            is_glob=False,
        )

    normalized = pattern.replace("\\", "/")
    pattern_path = Path(normalized)
    anchor = pattern_path.anchor
    segments = [s for s in normalized[len(anchor):].split("/") if s]

    wildcard_at = next(i for i, s in enumerate(segments) if has_glob_pattern(s))
    start = Path(anchor) if pattern_path.is_absolute() else base
    root_dir = start.joinpath(*segments[:wildcard_at]).resolve()
    glob_part = "/".join(segments[wildcard_at:])

    matches = sorted(p for p in root_dir.glob(glob_part) if p.is_file()) if root_dir.is_dir() else []
    return GlobExpansion(pattern=pattern, root_dir=root_dir, matches=matches, is_glob=True)


def relative_posix(root_dir: Path, file_path: Path) -> str:
    return Path(os.path.relpath(file_path, root_dir)).as_posix()


def match_key(root_dir: Path, file_path: Path) -> str:
    """Relative path without extension, lower-cased."""
    relative = PurePosixPath(relative_posix(root_dir, file_path))
    return str(relative.with_name(relative.stem)).lower()


def compile_results_regex(pattern: str) -> re.Pattern:
    try:
        return re.compile(JS_NAMED_GROUP.sub("(?P<", pattern), re.IGNORECASE)
    except re.error as exc:
        raise ScoringFailure.for_input("results-regex", f"invalid results regex: {exc}") from exc


def template_tokens(relative_path: str, regex: re.Pattern) -> Dict[str, str]:
    """Tokens available to --scoring-template for one results path."""
    match = regex.fullmatch(relative_path)
    if match is None:
        raise ScoringFailure.for_input(
            "results-regex", f"results regex did not match results entry: {relative_path}"
        )

    parsed = PurePosixPath(relative_path)
    parent = str(parsed.parent)
    tokens: Dict[str, str] = {
        "path": relative_path,
        "dir": "" if parent == "." else parent,
        "base": parsed.stem,
        "ext": parsed.suffix,
    }
    for index, value in enumerate(match.groups(), start=1):
        if value is not None:
            tokens[str(index)] = value
    for name, value in match.groupdict().items():
        if value is not None:
            tokens[name] = value
            tokens.setdefault(name.lower(), value)
    return tokens


def render_template(template: str, tokens: Dict[str, str]) -> str:
    def substitute(match: re.Match) -> str:
        name = match.group(1)
        value = tokens.get(name, tokens.get(name.lower()))
        if value is None:
            raise ScoringFailure.for_input("scoring-template", f"unknown template token: {name}")
        return value

    return TEMPLATE_TOKEN.sub(substitute, template)


def _scoring_root(scoring_arg: str, expansion: GlobExpansion, base: Path) -> Path:
    if has_glob_pattern(scoring_arg):
        return expansion.root_dir
    resolved = (base / scoring_arg).resolve()
    if resolved.is_dir():
        return resolved
    return expansion.root_dir


def _regex_pairs(
    results: GlobExpansion,
    scoring_root: Path,
    regex: re.Pattern,
    template: str,
) -> List[InputPair]:
    pairs: List[InputPair] = []
    seen = set()
    for results_path in results.matches:
        relative = relative_posix(results.root_dir, results_path)
        rendered = Path(render_template(template, template_tokens(relative, regex)))
        scoring_path = rendered if rendered.is_absolute() else (scoring_root / rendered).resolve()
        if scoring_path in seen:
            raise ScoringFailure.for_input(
                "scoring", f"scoring template resolved duplicate scoring path: {scoring_path}"
            )
        if not scoring_path.exists():
            raise ScoringFailure.for_input(
                "scoring", f"scoring file not found for results entry: {relative}"
            )
        seen.add(scoring_path)
        pairs.append(InputPair(results_path=results_path, scoring_path=scoring_path))
    return pairs


def resolve_input_pairs(
    results_arg: str,
    scoring_arg: str,
    results_regex: Optional[str] = None,
    scoring_template: Optional[str] = None,
    cwd: Optional[PathLike] = None,
) -> List[InputPair]:
    """Pair every results file with its scoring payload, sorted by results path."""
    base = Path(cwd) if cwd is not None else Path(os.getcwd())
    results = expand_path_or_glob(results_arg, base)
    if not results.matches:
        raise ScoringFailure.for_input("results", f"results glob matched no files: {results_arg}")

    scoring = expand_path_or_glob(scoring_arg, base)
    regex_mode = bool(results_regex and scoring_template)

    if regex_mode:
        regex = compile_results_regex(results_regex)
        pairs = _regex_pairs(results, _scoring_root(scoring_arg, scoring, base), regex, scoring_template)
        return sorted(pairs, key=lambda p: str(p.results_path))

    if not scoring.matches:
        raise ScoringFailure.for_input("scoring", f"scoring glob matched no files: {scoring_arg}")
    if len(results.matches) > 1 and not scoring.is_glob:
        raise ScoringFailure.for_input("scoring", "scoring must be a glob when results matches multiple files")
    if len(results.matches) == 1 and len(scoring.matches) == 1:
        return [InputPair(results_path=results.matches[0], scoring_path=scoring.matches[0])]

    scoring_by_key: Dict[str, Path] = {}
    for scoring_path in scoring.matches:
        key = match_key(scoring.root_dir, scoring_path)
        if key in scoring_by_key:
            raise ScoringFailure.for_input("scoring", f"scoring glob has duplicate entry for: {key}")
        scoring_by_key[key] = scoring_path

    pairs: List[InputPair] = []
    for results_path in results.matches:
        key = match_key(results.root_dir, results_path)
        scoring_path = scoring_by_key.get(key)
        if scoring_path is None:
            raise ScoringFailure.for_input("scoring", f"scoring file not found for results entry: {key}")
        pairs.append(InputPair(results_path=results_path, scoring_path=scoring_path))
    return sorted(pairs, key=lambda p: str(p.results_path))
