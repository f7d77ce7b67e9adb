# tests/test_regexp.py
from __future__ import annotations

from manage_functions.domain.regexp import regexp_matches


def test_regexp_is_unanchored_search() -> None:
    assert regexp_matches("OpenSSH 7.4p1", r"SSH \d") is True
    assert regexp_matches("OpenSSH 7.4p1", r"^SSH") is False


def test_bad_regexp_matches_nothing() -> None:
    assert regexp_matches("anything", "(unclosed") is False


def test_empty_pattern_matches_everything() -> None:
    assert regexp_matches("", "") is True
