# tests/models/test_schema.py
"""Tests for decoding and loading the question schema"""

import json
import pytest

from medley.core.exceptions import SchemaError
from medley.models.schema import (
    DEFAULT_SCHEMA_PATH,
    DataSchema,
    QuestionType,
    is_completion_sentinel,
    load_schema,
    load_schema_from_dict,
    parse_schema,
)
from medley.models.consult import StructuredConsult


@pytest.mark.unit
class TestParseSchema:

    def test_wire_names(self, base_schema):
        q1 = base_schema.get("q1")

        assert base_schema.intro.first_question_id == "q1"
        assert q1.type == QuestionType.SINGLE_CHOICE
        assert q1.predefined_responses == ["Option 1", "Option 2"]
        assert q1.next_id == "q2"
        assert base_schema.first_question is q1

    def test_json_text(self):
        raw = json.dumps({
            "version": "1",
            "intro": {"firstQuestionId": "a"},
            "questions": [{"id": "a", "prompt": "A?", "type": "date"}]
        })

        schema = parse_schema(raw)

        assert schema.get("a").type == QuestionType.DATE
        assert schema.get("a").next_id is None

    def test_unknown_question_type_is_rejected(self):
        with pytest.raises(SchemaError):
            parse_schema({"questions": [{"id": "a", "prompt": "A?", "type": "slider"}]})

    def test_malformed_json_is_rejected(self):
        with pytest.raises(SchemaError):
            parse_schema("{not json", source="inline")

    def test_duplicate_ids_last_wins(self):
        schema = parse_schema({"questions": [
            {"id": "a", "prompt": "First", "type": "free_text"},
            {"id": "a", "prompt": "Second", "type": "free_text"},
        ]})

        assert schema.get("a").prompt == "Second"

    def test_info_flag(self, info_schema):
        assert not info_schema.get("hair_loss_amount").has_info
        assert info_schema.get("family_history").has_info

    def test_dangling_references(self, dangling_schema, base_schema):
        assert dangling_schema.dangling_references() == ["missing_question"]
        assert base_schema.dangling_references() == []

    def test_sentinels(self):
        assert is_completion_sentinel("consultation_end")
        assert is_completion_sentinel("__complete__")
        assert not is_completion_sentinel(None)
        assert not is_completion_sentinel("q1")


@pytest.mark.unit
class TestLoadSchema:

    def test_missing_file_degrades_to_empty(self, tmp_path):
        schema = load_schema(tmp_path / "nope.json")

        assert schema.is_empty
        assert schema.first_question is None

    def test_malformed_file_degrades_to_empty(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{\"questions\": [", encoding="utf-8")

        assert load_schema(path).is_empty

    def test_undecodable_file_degrades_to_empty(self, tmp_path):
        path = tmp_path / "latin.json"
        path.write_bytes(b'{"version": "\xff\xfe", "questions": []}')

        assert load_schema(path) == DataSchema.empty()

    def test_malformed_dict_degrades_to_empty(self):
        assert load_schema_from_dict({"questions": "nope"}) == DataSchema.empty()

    def test_file_round_trip(self, tmp_path):
        path = tmp_path / "schema.json"
        path.write_text(json.dumps({
            "version": "2",
            "intro": {"firstQuestionId": "a"},
            "questions": [{"id": "a", "prompt": "A?", "type": "free_text", "next": {"default": "consultation_end"}}]
        }), encoding="utf-8")

        schema = load_schema(str(path))

        assert schema.version == "2"
        assert schema.first_question.id == "a"


@pytest.mark.unit
class TestPackagedSchema:

    @pytest.fixture
    def schema(self):
        return load_schema(DEFAULT_SCHEMA_PATH)

    def test_loads(self, schema):
        assert not schema.is_empty
        assert schema.first_question is not None

    def test_graph_is_closed(self, schema):
        assert schema.dangling_references() == []

    def test_every_question_fills_a_consult_field(self, schema):
        for question in schema.questions:
            assert StructuredConsult.accepts(question.id), question.id

    def test_walk_reaches_the_sentinel(self, schema):
        seen = set()
        question = schema.first_question
        while question is not None:
            assert question.id not in seen, "cycle in packaged schema"
            seen.add(question.id)
            next_id = question.next_id
            if is_completion_sentinel(next_id):
                break
            question = schema.get(next_id)

        assert is_completion_sentinel(next_id)
        assert len(seen) == len(schema.questions)
