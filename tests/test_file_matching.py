# tests/test_file_matching.py
"""
Results/scoring pairing for single files, globs and regex templates
"""

import re

import pytest

from qti_scoring.core.exceptions import ScoringFailure
from qti_scoring.pipelines.file_matching import (
    compile_results_regex,
    expand_path_or_glob,
    has_glob_pattern,
    match_key,
    render_template,
    resolve_input_pairs,
    template_tokens,
)


def touch(path, text="x"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestGlobExpansion:

    def test_has_glob_pattern(self):
        assert has_glob_pattern("results/*.xml")
        assert has_glob_pattern("r?.xml")
        assert not has_glob_pattern("results/a.xml")

    def test_root_is_wildcard_free_prefix(self, tmp_path):
        touch(tmp_path / "results" / "b.xml")
        touch(tmp_path / "results" / "a.xml")
        touch(tmp_path / "results" / "notes.txt")
        expansion = expand_path_or_glob("results/*.xml", tmp_path)
        assert expansion.is_glob
        assert expansion.root_dir == (tmp_path / "results").resolve()
        assert [p.name for p in expansion.matches] == ["a.xml", "b.xml"]

    def test_recursive_glob(self, tmp_path):
        touch(tmp_path / "results" / "c1" / "result.xml")
        touch(tmp_path / "results" / "c2" / "result.xml")
        expansion = expand_path_or_glob("results/**/*.xml", tmp_path)
        assert len(expansion.matches) == 2

    def test_plain_path(self, tmp_path):
        target = touch(tmp_path / "one.xml")
        expansion = expand_path_or_glob("one.xml", tmp_path)
        assert not expansion.is_glob
        assert expansion.matches == [target.resolve()]

    def test_match_key_is_case_insensitive(self, tmp_path):
        assert match_key(tmp_path, tmp_path / "Sub" / "Cand-1.XML") == "sub/cand-1"


class TestTemplates:

    def test_js_named_groups(self):
        regex = compile_results_regex(r"(?<cand>[^/]+)/result\.xml")
        assert regex.fullmatch("c1/result.xml").group("cand") == "c1"

    def test_invalid_regex(self):
        with pytest.raises(ScoringFailure) as exc:
            compile_results_regex("(unclosed")
        assert exc.value.reason.startswith("invalid results regex: ")
        assert exc.value.path == "/results-regex"

    def test_tokens(self):
        regex = re.compile(r"(?P<Cand>[^/]+)/(\w+)\.xml")
        tokens = template_tokens("c1/result.xml", regex)
        assert tokens["path"] == "c1/result.xml"
        assert tokens["dir"] == "c1"
        assert tokens["base"] == "result"
        assert tokens["ext"] == ".xml"
        assert tokens["1"] == "c1"
        assert tokens["2"] == "result"
        assert tokens["Cand"] == tokens["cand"] == "c1"

    def test_top_level_dir_is_empty(self):
        tokens = template_tokens("a.xml", re.compile(r".*"))
        assert tokens["dir"] == ""

    def test_regex_must_match(self):
        with pytest.raises(ScoringFailure) as exc:
            template_tokens("other.txt", re.compile(r".*\.xml"))
        assert exc.value.reason == "results regex did not match results entry: other.txt"

    def test_render(self):
        assert render_template("{dir}/{base}.json", {"dir": "c1", "base": "result"}) == "c1/result.json"

    def test_render_case_insensitive_lookup(self):
        assert render_template("{CAND}.json", {"cand": "c1"}) == "c1.json"

    def test_unknown_token(self):
        with pytest.raises(ScoringFailure) as exc:
            render_template("{missing}.json", {"base": "a"})
        assert exc.value.reason == "unknown template token: missing"
        assert exc.value.path == "/scoring-template"


class TestResolveInputPairs:

    def test_single_pair(self, tmp_path):
        results = touch(tmp_path / "r.xml")
        scoring = touch(tmp_path / "s.json")
        pairs = resolve_input_pairs("r.xml", "s.json", cwd=tmp_path)
        assert [(p.results_path, p.scoring_path) for p in pairs] == [(results.resolve(), scoring.resolve())]

    def test_glob_pairs_by_relative_name(self, tmp_path):
        touch(tmp_path / "results" / "alice.xml")
        touch(tmp_path / "results" / "bob.xml")
        touch(tmp_path / "scoring" / "Bob.json")
        touch(tmp_path / "scoring" / "alice.json")
        pairs = resolve_input_pairs("results/*.xml", "scoring/*.json", cwd=tmp_path)
        assert [(p.results_path.stem, p.scoring_path.name) for p in pairs] == [
            ("alice", "alice.json"),
            ("bob", "Bob.json"),
        ]

    def test_results_glob_without_matches(self, tmp_path):
        touch(tmp_path / "s.json")
        with pytest.raises(ScoringFailure) as exc:
            resolve_input_pairs("results/*.xml", "s.json", cwd=tmp_path)
        assert exc.value.reason == "results glob matched no files: results/*.xml"
        assert exc.value.path == "/results"

    def test_scoring_glob_without_matches(self, tmp_path):
        touch(tmp_path / "results" / "a.xml")
        with pytest.raises(ScoringFailure) as exc:
            resolve_input_pairs("results/*.xml", "scoring/*.json", cwd=tmp_path)
        assert exc.value.reason == "scoring glob matched no files: scoring/*.json"

    def test_many_results_need_scoring_glob(self, tmp_path):
        touch(tmp_path / "results" / "a.xml")
        touch(tmp_path / "results" / "b.xml")
        touch(tmp_path / "s.json")
        with pytest.raises(ScoringFailure) as exc:
            resolve_input_pairs("results/*.xml", "s.json", cwd=tmp_path)
        assert exc.value.reason == "scoring must be a glob when results matches multiple files"

    def test_missing_scoring_counterpart(self, tmp_path):
        touch(tmp_path / "results" / "a.xml")
        touch(tmp_path / "results" / "b.xml")
        touch(tmp_path / "scoring" / "a.json")
        with pytest.raises(ScoringFailure) as exc:
            resolve_input_pairs("results/*.xml", "scoring/*.json", cwd=tmp_path)
        assert exc.value.reason == "scoring file not found for results entry: b"

    def test_duplicate_scoring_key(self, tmp_path):
        touch(tmp_path / "results" / "a.xml")
        touch(tmp_path / "results" / "b.xml")
        touch(tmp_path / "scoring" / "a.json")
        touch(tmp_path / "scoring" / "a.txt")
        with pytest.raises(ScoringFailure) as exc:
            resolve_input_pairs("results/*.xml", "scoring/*", cwd=tmp_path)
        assert exc.value.reason == "scoring glob has duplicate entry for: a"

    def test_regex_template(self, tmp_path):
        touch(tmp_path / "results" / "c1" / "result.xml")
        touch(tmp_path / "results" / "c2" / "result.xml")
        touch(tmp_path / "scoring" / "c1.json")
        touch(tmp_path / "scoring" / "c2.json")
        pairs = resolve_input_pairs(
            "results/**/*.xml",
            "scoring",
            results_regex=r"(?<cand>[^/]+)/result\.xml",
            scoring_template="{cand}.json",
            cwd=tmp_path,
        )
        assert [p.scoring_path.name for p in pairs] == ["c1.json", "c2.json"]
        assert pairs[0].results_path.parent.name == "c1"

    def test_regex_template_missing_scoring(self, tmp_path):
        touch(tmp_path / "results" / "c1" / "result.xml")
        (tmp_path / "scoring").mkdir()
        with pytest.raises(ScoringFailure) as exc:
            resolve_input_pairs(
                "results/**/*.xml",
                "scoring",
                results_regex=r"(?<cand>[^/]+)/result\.xml",
                scoring_template="{cand}.json",
                cwd=tmp_path,
            )
        assert exc.value.reason == "scoring file not found for results entry: c1/result.xml"

    def test_regex_template_duplicate_target(self, tmp_path):
        touch(tmp_path / "results" / "c1" / "result.xml")
        touch(tmp_path / "results" / "c2" / "result.xml")
        touch(tmp_path / "scoring" / "all.json")
        with pytest.raises(ScoringFailure) as exc:
            resolve_input_pairs(
                "results/**/*.xml",
                "scoring",
                results_regex=r".*",
                scoring_template="all.json",
                cwd=tmp_path,
            )
        assert exc.value.reason.startswith("scoring template resolved duplicate scoring path: ")
