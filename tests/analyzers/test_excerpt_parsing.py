import pytest

from src.analyzers.excerpt_synthesizer import decode_string_array, parse_excerpts
from src.errors import MalformedGenerationOutput

PLAIN = '["A 2024 Ofcom survey found 40% of kids own a phone.", "Dopamine, a neurotransmitter, rises with likes."]'


class TestParseExcerpts:
    def test_plain_array(self):
        assert parse_excerpts(PLAIN) == [
            "A 2024 Ofcom survey found 40% of kids own a phone.",
            "Dopamine, a neurotransmitter, rises with likes.",
        ]

    def test_json_fence_parses_like_unwrapped(self):
        assert parse_excerpts(f"```json\n{PLAIN}\n```") == parse_excerpts(PLAIN)

    def test_bare_fence_and_whitespace(self):
        assert parse_excerpts(f"  ```\n{PLAIN}\n```  \n") == parse_excerpts(PLAIN)

    def test_empty_array(self):
        assert parse_excerpts("[]") == []

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "   ",
            "Sorry, I cannot help with that.",
            '{"excerpts": ["a"]}',
            '"just a string"',
            '["complete item", "truncated ite',
            '["ok", 42]',
            '["ok", null]',
            'Here you go: ["a", "b"]',
        ],
    )
    def test_malformed_output_yields_empty_list(self, raw):
        assert parse_excerpts(raw) == []

    def test_none_input(self):
        assert parse_excerpts(None) == []


def test_decode_string_array_reports_position():
    with pytest.raises(MalformedGenerationOutput, match="line 1"):
        decode_string_array('["a", ')


def test_decode_string_array_rejects_object():
    with pytest.raises(MalformedGenerationOutput, match="expected array"):
        decode_string_array('{"a": 1}')
