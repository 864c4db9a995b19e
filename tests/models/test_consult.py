# tests/models/test_consult.py
"""Tests for the structured consult record and chat messages"""

import pytest

from medley.models.chat import ChatMessage, ChatRole
from medley.models.consult import MappedAnswer, StructuredConsult


@pytest.mark.unit
class TestMappedAnswer:

    def test_value_ids_default_to_value_id(self):
        mapped = MappedAnswer(key_path="hair_type", value_id="fine")

        assert mapped.value_ids == ["fine"]


@pytest.mark.unit
class TestStructuredConsult:

    def test_starts_empty(self):
        consult = StructuredConsult()

        assert consult.answered_fields() == []
        assert consult.treatment_goals == []
        assert consult.hair_loss_location is None

    def test_scalar_field(self):
        consult = StructuredConsult()

        assert consult.apply(MappedAnswer(key_path="stress_frequency", value_id="sometimes"))
        assert consult.stress_frequency == "sometimes"
        assert consult.answered_fields() == ["stress_frequency"]

    def test_list_field_deduplicates_in_order(self):
        consult = StructuredConsult()

        consult.apply(MappedAnswer(key_path="treatment_goals", value_id="regrow", value_ids=["regrow", "thicken"]))
        consult.apply(MappedAnswer(key_path="treatment_goals", value_id="thicken", value_ids=["thicken", "scalp_health"]))

        assert consult.treatment_goals == ["regrow", "thicken", "scalp_health"]

    def test_multiple_values_on_scalar_field_are_joined(self):
        consult = StructuredConsult()

        consult.apply(MappedAnswer(key_path="hair_pattern", value_id="wavy", value_ids=["wavy", "curly"]))

        assert consult.hair_pattern == "wavy, curly"

    def test_unknown_key_path_is_dropped(self):
        consult = StructuredConsult()

        assert consult.apply(MappedAnswer(key_path="q1", value_id="opt1")) is False
        assert consult.answered_fields() == []

    def test_json_field_names(self):
        consult = StructuredConsult(hair_type="thick")

        dumped = consult.model_dump()

        assert dumped["hair_type"] == "thick"
        assert dumped["treatment_goals"] == []
        assert "LIST_FIELDS" not in dumped


@pytest.mark.unit
class TestChatMessage:

    def test_ids_are_unique(self):
        assert ChatMessage(role=ChatRole.MODEL).id != ChatMessage(role=ChatRole.MODEL).id

    def test_placeholder(self):
        message = ChatMessage(role=ChatRole.MODEL, is_streaming=True)

        assert message.is_placeholder
        message.text = "Hi"
        assert not message.is_placeholder
