"""Tests for tagged report extraction."""

from __future__ import annotations

from src.coordination.extraction import MalformedReport, extract_tagged_json

TAG = "VERIFIER_REPORT_JSON"


class TestWellFormed:
    def test_parses_block_inside_prose(self):
        text = 'Checked everything.\n<<<VERIFIER_REPORT_JSON>>>\n{"verdict": "PASS"}\n<<<END>>>\nBye'
        assert extract_tagged_json(text, TAG) == {"verdict": "PASS"}

    def test_first_block_wins(self):
        text = (
            '<<<VERIFIER_REPORT_JSON>>>{"n": 1}<<<END>>>'
            '<<<VERIFIER_REPORT_JSON>>>{"n": 2}<<<END>>>'
        )
        assert extract_tagged_json(text, TAG) == {"n": 1}

    def test_other_tags_ignored(self):
        text = (
            '<<<BUILDER_REPORT_JSON>>>{"who": "builder"}<<<END>>>'
            '<<<VERIFIER_REPORT_JSON>>>{"who": "verifier"}<<<END>>>'
        )
        assert extract_tagged_json(text, TAG) == {"who": "verifier"}

    def test_nested_markers_not_balanced(self):
        """END closes at its first occurrence after the start marker."""
        text = '<<<VERIFIER_REPORT_JSON>>>{"a": "<<<END>>>"}<<<END>>>'
        result = extract_tagged_json(text, TAG)
        assert isinstance(result, MalformedReport)
        assert result.raw == '{"a": "'


class TestMalformed:
    def test_corrupted_json_keeps_raw_and_error(self):
        text = "<<<VERIFIER_REPORT_JSON>>>\n{verdict: PASS,,}\n<<<END>>>"
        result = extract_tagged_json(text, TAG)
        assert isinstance(result, MalformedReport)
        assert result.raw == "{verdict: PASS,,}"
        assert result.parse_error

    def test_to_dict_shape(self):
        result = MalformedReport(parse_error="Expecting value", raw="{oops")
        assert result.to_dict() == {"parseError": "Expecting value", "raw": "{oops"}

    def test_empty_block_is_malformed(self):
        result = extract_tagged_json("<<<VERIFIER_REPORT_JSON>>><<<END>>>", TAG)
        assert isinstance(result, MalformedReport)
        assert result.raw == ""


class TestNotFound:
    def test_no_markers(self):
        assert extract_tagged_json("just some prose", TAG) is None

    def test_missing_end_marker(self):
        assert extract_tagged_json('<<<VERIFIER_REPORT_JSON>>>{"verdict": "PASS"}', TAG) is None

    def test_end_before_start_does_not_count(self):
        text = '<<<END>>> preamble <<<VERIFIER_REPORT_JSON>>>{"verdict": "PASS"}'
        assert extract_tagged_json(text, TAG) is None

    def test_empty_text(self):
        assert extract_tagged_json("", TAG) is None
