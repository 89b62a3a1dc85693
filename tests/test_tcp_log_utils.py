"""
Unit tests for the filter predicate engine.
"""

import pytest
from collections import deque

from conftest import make_record

from tcp_log_viewer.tcp_log_utils import FilterSpec, drain_queue, filter_records, passes, split_terms


RECORDS = [
    make_record("Connected to host", severity="Log", category="LogNet"),
    make_record("Packet loss detected", severity="Warning", category="LogNet"),
    make_record("Shader compiled", severity="Display", category="LogRender"),
    make_record("Crash in render thread", severity="Fatal", category="LogRender"),
    make_record("Tick", severity="Verbose", category="LogTemp"),
    make_record("Save failed", severity="Error", category="LogSave"),
]


def messages(spec):
    return [r.message for r in filter_records(RECORDS, spec)]


class TestSplitTerms:
    def test_partition_and_casefold(self):
        assert split_terms(" LogNet , !LogTemp,,") == (["logtemp"], ["lognet"])

    def test_bare_bang_is_ignored(self):
        assert split_terms("!") == ([], [])


class TestSeverity:
    """Exact match and threshold terms."""

    def test_exact_match_is_case_insensitive(self):
        assert messages(FilterSpec(severity_filter="warning")) == ["Packet loss detected"]

    def test_exact_match_is_not_substring(self):
        assert messages(FilterSpec(severity_filter="Verb")) == []

    def test_threshold(self):
        assert messages(FilterSpec(severity_filter=">Warning")) == [
            "Packet loss detected",
            "Crash in render thread",
            "Save failed",
        ]

    def test_threshold_with_unknown_name_matches_nothing(self):
        assert messages(FilterSpec(severity_filter=">Loud")) == []

    def test_unknown_record_severity_never_meets_threshold(self):
        rec = make_record(severity="Custom")
        assert passes(rec, FilterSpec(severity_filter=">VeryVerbose")) is False

    def test_threshold_or_exact(self):
        assert messages(FilterSpec(severity_filter=">Error, Verbose")) == [
            "Crash in render thread",
            "Tick",
            "Save failed",
        ]

    def test_exclusion(self):
        assert "Tick" not in messages(FilterSpec(severity_filter="!Verbose"))
        assert len(messages(FilterSpec(severity_filter="!Verbose"))) == 5


class TestSubstringFields:
    """Category and message filters."""

    def test_category_scenario_inclusion_with_exclusion(self):
        spec = FilterSpec(category_filter="Log, !LogTemp")
        assert "Tick" not in messages(spec)
        assert len(messages(spec)) == 5

    def test_exclusion_wins_over_inclusion(self):
        spec = FilterSpec(category_filter="LogNet, !LogNet")
        assert messages(spec) == []

    def test_message_or_logic(self):
        spec = FilterSpec(message_filter="shader, SAVE")
        assert messages(spec) == ["Shader compiled", "Save failed"]

    def test_fields_are_anded(self):
        spec = FilterSpec(severity_filter=">Warning", category_filter="LogRender")
        assert messages(spec) == ["Crash in render thread"]

    @pytest.mark.parametrize("text", ["", "   ", ",", " , ,, "])
    def test_empty_or_commas_only_passes_everything(self, text):
        spec = FilterSpec(severity_filter=text, category_filter=text, message_filter=text)
        assert len(messages(spec)) == len(RECORDS)

    def test_exclusions_only(self):
        assert len(messages(FilterSpec(message_filter="!tick, !save"))) == 4


class TestFilterSpec:
    def test_updated_keeps_unspecified_fields(self):
        spec = FilterSpec("Error", "LogNet", "x").updated(category=" LogRender ")
        assert spec == FilterSpec("Error", "LogRender", "x")

    def test_is_empty(self):
        assert FilterSpec().is_empty()
        assert FilterSpec(" ", "", "").is_empty()
        assert not FilterSpec(message_filter="a").is_empty()

    def test_filtering_is_idempotent(self):
        spec = FilterSpec(severity_filter="!Verbose", category_filter="Log")
        once = filter_records(RECORDS, spec)
        assert filter_records(once, spec) == once


def test_drain_queue_respects_limit():
    q = deque(range(5))
    assert drain_queue(q, 3) == [0, 1, 2]
    assert list(q) == [3, 4]
    assert drain_queue(q, 10) == [3, 4]
