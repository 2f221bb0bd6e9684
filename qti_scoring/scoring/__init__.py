"""
scoring/ - Scoring Update Engine

Modules:
    utils.py                  - Fixed-point decimal parsing, formatting, aggregation
    rubric_extractor.py       - Scorer rubric extraction from item sources
    item_resolver.py          - Item identifier -> itemResult binding strategies
    outcome_merger.py         - RUBRIC_<n>_MET / SCORE / COMMENT upserts, test SCORE
    engine.py                 - apply_scoring_updates() orchestration
"""
