"""
Tests for ResponseParser
"""
import json

from manga_narrator.models.narration import Gender
from manga_narrator.services.response_parser import (
    ResponseParser,
    build_fallback_analysis,
    extract_json_text,
)


class TestExtractJsonText:
    """Test fence stripping"""

    def test_strips_json_fence(self):
        assert extract_json_text('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_plain_fence(self):
        assert extract_json_text('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_empty_input(self):
        assert extract_json_text(None) == ""
        assert extract_json_text("   ") == ""


class TestResponseParser:
    """Test parsing of vision model output"""

    def setup_method(self):
        self.parser = ResponseParser()

    def test_well_formed_payload_keeps_values(self, manga_payload):
        analysis = self.parser.parse(json.dumps(manga_payload))

        assert analysis.overall_scene == "Two friends in a park"
        assert analysis.reading_order == [0, 1]
        assert len(analysis.panels) == 2
        panel = analysis.panels[0]
        assert panel.setting == "A park in spring"
        assert panel.dialogue == ["Spring is beautiful"]
        assert panel.characters[0].gender == Gender.FEMALE
        assert panel.characters[0].is_speaking is True

    def test_fenced_payload(self, manga_payload):
        raw = "```json\n" + json.dumps(manga_payload) + "\n```"
        analysis = self.parser.parse(raw)
        assert analysis.overall_scene == "Two friends in a park"

    def test_json_surrounded_by_prose(self, manga_payload):
        raw = "Here is the analysis: " + json.dumps(manga_payload) + " Hope this helps!"
        analysis = self.parser.parse(raw)
        assert len(analysis.panels) == 2

    def test_non_json_returns_fallback(self):
        analysis = self.parser.parse("I cannot see any manga here.")

        assert analysis.overall_scene == "Unable to parse manga analysis"
        assert analysis.reading_order == [0]
        assert len(analysis.panels) == 1
        panel = analysis.panels[0]
        assert panel.id == 0
        assert panel.setting == "Analysis parsing failed"
        assert panel.characters == []
        assert panel.dialogue == []

    def test_empty_text_returns_fallback(self):
        assert self.parser.parse("") == build_fallback_analysis()

    def test_non_object_payload_returns_fallback(self):
        assert self.parser.parse("[1, 2, 3]") == build_fallback_analysis()

    def test_missing_reading_order_defaults_to_index_order(self):
        raw = json.dumps({"panels": [{"dialogue": ["a"]}, {"dialogue": ["b"]}, {}]})
        analysis = self.parser.parse(raw)

        assert analysis.reading_order == [0, 1, 2]
        assert [panel.id for panel in analysis.panels] == [0, 1, 2]
        assert analysis.overall_scene == ""

    def test_non_list_fields_become_empty(self):
        raw = json.dumps({
            "overallScene": None,
            "readingOrder": "0,1",
            "panels": [{"characters": "none", "actions": None, "emotions": 3, "dialogue": "hi"}],
        })
        analysis = self.parser.parse(raw)

        panel = analysis.panels[0]
        assert analysis.overall_scene == ""
        assert analysis.reading_order == [0]
        assert panel.characters == []
        assert panel.actions == []
        assert panel.emotions == []
        assert panel.dialogue == []

    def test_non_string_items_are_stringified(self):
        raw = json.dumps({"panels": [{"dialogue": ["Hey", 42, None]}]})
        analysis = self.parser.parse(raw)
        assert analysis.panels[0].dialogue == ["Hey", "42", ""]

    def test_character_normalization(self):
        raw = json.dumps({"panels": [{"characters": [
            {"gender": "ROBOT", "isSpeaking": "true"},
            {"gender": "Male"},
        ]}]})
        characters = self.parser.parse(raw).panels[0].characters

        assert characters[0].gender == Gender.NEUTRAL
        assert characters[0].is_speaking is True
        assert characters[1].gender == Gender.MALE
        assert characters[1].is_speaking is False
        assert characters[1].description == ""

    def test_invalid_reading_order_entries_dropped(self):
        raw = json.dumps({"readingOrder": [1, "0", True, "x", 2.5], "panels": [{}, {}]})
        analysis = self.parser.parse(raw)
        assert analysis.reading_order == [1, 0]

    def test_parse_never_raises_on_garbage(self):
        for raw in ["{", "}{", "null", "42", '"text"', "{\"panels\": [}"]:
            analysis = self.parser.parse(raw)
            assert analysis.panels
