"""
Tests for Prompt Differ
=======================
Lookahead alignment, diff-match-patch alignment and panel rendering.
"""

import logging

import pytest

from config_logging import ValidationError
from audit_compare.models import DiffKind, DiffPart
from audit_compare.differ import PromptDiffer, diff, compute_diff, LOOKAHEAD_WINDOW

EQ, INS, DEL = DiffKind.EQUAL, DiffKind.INSERTED, DiffKind.DELETED


def _pairs(parts):
    return [(p.kind, p.text) for p in parts]


@pytest.fixture
def prompt_pair():
    """Original prompt and an optimised revision."""
    original = (
        'User Instruction: "Write a super exciting marketing snippet about the new iPhone 15 launch for Gen Z.\n'
        'Meta Strategy:\n'
        '- Tone: Extremely Hype & Energetic.\n'
        '- Constraint: No superlatives allowed (Ad Law).\n'
        '## Product Info (DO NOT EDIT)\n'
        '- Model: iPhone 15'
    )
    revised = (
        'User Instruction: "Write an exciting marketing snippet about the iPhone 15 launch for Gen Z.\n'
        'Meta Strategy:\n'
        '- Tone: Hype & Energetic, but factual.\n'
        '- Constraint: No superlatives allowed (Ad Law). Never use "best", "No.1" or "#1".\n'
        '- Only state facts listed under Facts.\n'
        '## Product Info (DO NOT EDIT)\n'
        '- Model: iPhone 15'
    )
    return original, revised


class TestLookaheadDiff:
    """Tests for the default single-pass alignment."""

    def test_inserted_word(self):
        parts = diff("the cat sat", "the big cat sat", strategy='lookahead')
        assert _pairs(parts) == [
            (EQ, "the"), (EQ, " "), (INS, "big"), (INS, " "),
            (EQ, "cat"), (EQ, " "), (EQ, "sat"),
        ]

    def test_deleted_word(self):
        parts = diff("the big cat", "the cat", strategy='lookahead')
        assert _pairs(parts) == [
            (EQ, "the"), (EQ, " "), (DEL, "big"), (DEL, " "), (EQ, "cat"),
        ]

    def test_substitution(self):
        assert _pairs(diff("a", "b", strategy='lookahead')) == [(DEL, "a"), (INS, "b")]

    def test_empty_old_is_all_inserted(self):
        parts = diff("", "a b", strategy='lookahead')
        assert _pairs(parts) == [(INS, "a"), (INS, " "), (INS, "b")]

    def test_empty_new_is_all_deleted(self):
        parts = diff("a b", "", strategy='lookahead')
        assert _pairs(parts) == [(DEL, "a"), (DEL, " "), (DEL, "b")]

    def test_both_empty(self):
        assert diff("", "", strategy='lookahead') == []

    def test_identical_is_all_equal(self, prompt_pair):
        original, _ = prompt_pair
        parts = diff(original, original, strategy='lookahead')
        assert parts
        assert all(p.kind is EQ for p in parts)
        assert "".join(p.text for p in parts) == original

    def test_tie_prefers_deletion(self):
        """Both sides resync at k=2; the deletion run is taken."""
        parts = diff("x y", "y x", strategy='lookahead')
        assert _pairs(parts) == [
            (DEL, "x"), (DEL, " "), (EQ, "y"), (INS, " "), (INS, "x"),
        ]

    def test_resync_inside_window(self):
        parts = diff("z", "w z", strategy='lookahead')
        assert _pairs(parts) == [(INS, "w"), (INS, " "), (EQ, "z")]

    def test_resync_beyond_window_is_substitution(self):
        revised = " ".join(["w"] * 20 + ["z"])
        parts = diff("z", revised, strategy='lookahead')
        assert _pairs(parts[:2]) == [(DEL, "z"), (INS, "w")]
        assert all(p.kind is INS for p in parts[2:])

    def test_window_of_one_never_resyncs(self):
        differ = PromptDiffer(strategy='lookahead', lookahead=1)
        parts = differ.diff("z", "w z")
        assert _pairs(parts) == [(DEL, "z"), (INS, "w"), (INS, " "), (INS, "z")]

    def test_default_window(self):
        assert PromptDiffer(strategy='lookahead').lookahead == LOOKAHEAD_WINDOW == 15


class TestOptimalDiff:
    """Tests for the diff-match-patch token alignment."""

    def test_inserted_word(self):
        parts = diff("the cat sat", "the big cat sat", strategy='optimal')
        assert _pairs(parts) == [
            (EQ, "the"), (EQ, " "), (INS, "big"), (INS, " "),
            (EQ, "cat"), (EQ, " "), (EQ, "sat"),
        ]

    def test_one_token_per_part(self):
        parts = diff("alpha beta gamma", "alpha delta gamma", strategy='optimal')
        assert all(len(p.text) > 0 for p in parts)
        assert DiffPart(DEL, "beta") in parts
        assert DiffPart(INS, "delta") in parts

    def test_empty_inputs(self):
        assert diff("", "", strategy='optimal') == []
        assert _pairs(diff("", "a", strategy='optimal')) == [(INS, "a")]
        assert _pairs(diff("a", "", strategy='optimal')) == [(DEL, "a")]


class TestRoundTrip:
    """Both strategies reconstruct both inputs."""

    @pytest.mark.parametrize("strategy", ['lookahead', 'optimal'])
    def test_prompt_revision(self, prompt_pair, strategy):
        original, revised = prompt_pair
        parts = diff(original, revised, strategy=strategy)
        assert "".join(p.text for p in parts if p.kind in (EQ, DEL)) == original
        assert "".join(p.text for p in parts if p.kind in (EQ, INS)) == revised

    @pytest.mark.parametrize("strategy", ['lookahead', 'optimal'])
    def test_reordered_sentences(self, strategy):
        original = "First, check facts. Then write. Finally, review tone!"
        revised = "Then write. Finally, review tone! First, check facts (twice)."
        result = compute_diff(original, revised, strategy=strategy)
        assert result.old_text == original
        assert result.new_text == revised


class TestCompare:
    """Tests for DiffResult rendering and statistics."""

    def test_panels(self):
        result = compute_diff("a b", "a c", strategy='lookahead')
        assert result.old_html == 'a <span class="aud-word-deleted">b</span>'
        assert result.new_html == 'a <span class="aud-word-added">c</span>'

    def test_html_is_escaped(self):
        result = compute_diff("<b>", "<i>", strategy='lookahead')
        assert result.old_html == '<span class="aud-word-deleted">&lt;b&gt;</span>'
        assert result.new_html == '<span class="aud-word-added">&lt;i&gt;</span>'

    def test_stats(self):
        result = compute_diff("a b", "a c", strategy='lookahead')
        assert result.stats == {
            'total_parts': 4,
            'equal': 2,
            'inserted': 1,
            'deleted': 1,
            'total_changes': 2,
        }
        assert result.has_changes

    def test_compare_logs_timed_operation(self, caplog):
        with caplog.at_level(logging.INFO, logger='audit_compare.differ'):
            compute_diff("a b", "a c", strategy='lookahead')
        assert 'prompt_diff completed' in caplog.text

    def test_to_dict(self):
        data = compute_diff("same", "same", strategy='optimal').to_dict()
        assert data['strategy'] == 'optimal'
        assert data['parts'] == [{'kind': 'equal', 'text': 'same'}]
        assert data['stats']['total_changes'] == 0


class TestDifferValidation:

    def test_unknown_strategy(self):
        with pytest.raises(ValidationError) as exc:
            PromptDiffer(strategy='myers')
        assert exc.value.details['field'] == 'strategy'

    def test_non_string_strategy(self):
        with pytest.raises(ValidationError) as exc:
            PromptDiffer(strategy=3)
        assert exc.value.details['field'] == 'strategy'

    def test_window_must_be_positive(self):
        with pytest.raises(ValidationError):
            PromptDiffer(strategy='lookahead', lookahead=0)

    def test_strategy_from_config(self, monkeypatch):
        import config_logging
        monkeypatch.setenv('PAR_DIFF_STRATEGY', 'optimal')
        config_logging.reset_config()
        try:
            assert PromptDiffer().strategy == 'optimal'
        finally:
            config_logging.reset_config()
