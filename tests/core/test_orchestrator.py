# tests/core/test_orchestrator.py
"""
Tests for the consultation orchestrator.

Covers the session state machine, in-place streaming updates, info pacing,
busy rejection and recovery from unexpected failures.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, Mock, patch

from medley.core.config import Settings
from medley.core.exceptions import ConsultBusyError
from medley.core.orchestrator import ConsultEventType, ConsultOrchestrator, ConsultPhase
from medley.models.chat import ChatRole
from medley.models.schema import DataSchema
from medley.models.turns import StreamingTurn

from tests.fakes import FakeBackend


@pytest.fixture
def make_orchestrator(fake_backend, prompt_manager, fast_settings):
    def factory(schema, backend=None, settings=None):
        return ConsultOrchestrator(
            schema,
            backend or fake_backend,
            prompt_manager=prompt_manager,
            settings=settings or fast_settings
        )
    return factory


def model_texts(orchestrator):
    return [m.text for m in orchestrator.messages if m.role == ChatRole.MODEL]


@pytest.mark.unit
class TestStart:

    async def test_opening_turn(self, make_orchestrator, base_schema, fake_backend):
        orchestrator = make_orchestrator(base_schema)

        await orchestrator.start()

        assert orchestrator.phase == ConsultPhase.AWAITING_ANSWER
        assert orchestrator.current_question_id == "q1"
        assert orchestrator.predefined_responses == ["Option 1", "Option 2"]
        assert len(orchestrator.messages) == 1
        opening = orchestrator.messages[0]
        assert opening.role == ChatRole.MODEL
        assert opening.text == fake_backend.reply
        assert not opening.is_streaming

    async def test_prewarm_is_fired(self, make_orchestrator, base_schema, fake_backend):
        orchestrator = make_orchestrator(base_schema)

        await orchestrator.start()
        await asyncio.sleep(0)

        assert fake_backend.prewarm_calls == 1

    async def test_prewarm_failure_is_ignored(self, make_orchestrator, base_schema, fake_backend):
        fake_backend.prewarm = AsyncMock(side_effect=RuntimeError("cold"))
        orchestrator = make_orchestrator(base_schema)

        await orchestrator.start()
        await asyncio.sleep(0)

        assert orchestrator.phase == ConsultPhase.AWAITING_ANSWER

    async def test_empty_schema_greets_without_question(self, make_orchestrator, fake_backend):
        orchestrator = make_orchestrator(DataSchema.empty())

        await orchestrator.start()

        assert model_texts(orchestrator) == ["Let's get started."]
        assert orchestrator.current_question is None
        assert fake_backend.stream_calls == []
        assert await orchestrator.send("hello") is False

    async def test_failing_backend_opens_with_first_prompt(self, make_orchestrator, base_schema, failing_backend):
        orchestrator = make_orchestrator(base_schema, backend=failing_backend)

        await orchestrator.start()

        assert model_texts(orchestrator) == ["What is your main concern?"]

    async def test_restart_resets_session(self, make_orchestrator, two_question_schema):
        orchestrator = make_orchestrator(two_question_schema)
        await orchestrator.start()
        await orchestrator.send("At the crown")

        await orchestrator.start()

        assert len(orchestrator.messages) == 1
        assert orchestrator.data.answered_fields() == []
        assert orchestrator.current_question_id == "hair_loss_location"

    def test_backend_is_required(self, base_schema):
        with pytest.raises(ValueError):
            ConsultOrchestrator(base_schema, None)


@pytest.mark.unit
class TestSend:

    async def test_user_and_model_messages(self, make_orchestrator, base_schema, fake_backend):
        orchestrator = make_orchestrator(base_schema)
        await orchestrator.start()

        accepted = await orchestrator.send("Option 2")

        assert accepted is True
        roles = [m.role for m in orchestrator.messages]
        assert roles == [ChatRole.MODEL, ChatRole.USER, ChatRole.MODEL]
        assert orchestrator.messages[1].text == "Option 2"
        assert orchestrator.messages[2].text == fake_backend.reply
        assert not any(m.is_streaming for m in orchestrator.messages)
        assert orchestrator.current_question_id == "q2"
        assert orchestrator.predefined_responses == []

    async def test_stream_events_update_one_message_in_place(self, make_orchestrator, base_schema, fake_backend):
        orchestrator = make_orchestrator(base_schema)
        await orchestrator.start()

        events = [event async for event in orchestrator.send_stream("Option 1")]

        assert events[0].type == ConsultEventType.MESSAGE_STARTED
        assert events[0].message.is_streaming
        assert events[0].message.text == ""
        assert events[-1].type == ConsultEventType.STATE

        message_ids = {e.message.id for e in events if e.message is not None}
        assert len(message_ids) == 1
        assert message_ids.pop() == orchestrator.messages[-1].id

        deltas = "".join(e.delta for e in events if e.type == ConsultEventType.MESSAGE_DELTA)
        assert deltas == fake_backend.reply

        completed = [e for e in events if e.type == ConsultEventType.MESSAGE_COMPLETED]
        assert len(completed) == 1
        assert not completed[0].message.is_streaming

    async def test_send_after_completion_is_ignored(self, make_orchestrator, base_schema):
        orchestrator = make_orchestrator(base_schema)
        await orchestrator.start()
        await orchestrator.send("Option 1")
        await orchestrator.send("Nothing else")
        message_count = len(orchestrator.messages)

        assert orchestrator.is_complete
        assert await orchestrator.send("Hello?") is False
        assert len(orchestrator.messages) == message_count

    async def test_send_before_start_is_ignored(self, make_orchestrator, base_schema):
        orchestrator = make_orchestrator(base_schema)

        assert await orchestrator.send("Option 1") is False
        assert orchestrator.messages == []


@pytest.mark.unit
class TestAdvance:

    async def test_sentinel_completes_without_lookup(self, make_orchestrator, base_schema):
        orchestrator = make_orchestrator(base_schema)
        await orchestrator.start()
        orchestrator.schema = Mock(wraps=base_schema)

        await orchestrator.advance("consultation_end")

        assert orchestrator.phase == ConsultPhase.COMPLETE
        assert orchestrator.is_complete
        assert orchestrator.predefined_responses == []
        orchestrator.schema.get.assert_not_called()

    async def test_unresolved_id_ends_quietly(self, make_orchestrator, base_schema):
        orchestrator = make_orchestrator(base_schema)
        await orchestrator.start()

        await orchestrator.advance("does_not_exist")

        assert orchestrator.is_complete

    async def test_plain_successor_adds_no_turn(self, make_orchestrator, base_schema):
        orchestrator = make_orchestrator(base_schema)
        await orchestrator.start()

        await orchestrator.advance("q2")

        assert orchestrator.current_question_id == "q2"
        assert len(orchestrator.messages) == 1

    async def test_dangling_reference_keeps_last_message(self, make_orchestrator, dangling_schema, fake_backend):
        orchestrator = make_orchestrator(dangling_schema)
        await orchestrator.start()

        assert await orchestrator.send("Fine") is True

        assert orchestrator.is_complete
        last = orchestrator.messages[-1]
        assert last.text == "Thank you for sharing that information."
        assert not last.is_streaming
        assert orchestrator.data.hair_type == "fine"
        assert await orchestrator.send("Thick") is False


@pytest.mark.unit
class TestInfoSequencing:

    async def test_info_summary_then_question(self, make_orchestrator, info_schema, fake_backend):
        orchestrator = make_orchestrator(info_schema)
        await orchestrator.start()

        await orchestrator.send("A lot")

        # opening, ack, info summary, standalone question
        assert len(fake_backend.stream_calls) == 4
        assert "Genetics is the most common driver" in fake_backend.stream_calls[2][0]
        assert "Has anyone in your family" in fake_backend.stream_calls[3][0]
        assert len(model_texts(orchestrator)) == 4
        assert orchestrator.current_question_id == "family_history"
        assert orchestrator.predefined_responses == ["Yes", "No"]

    async def test_pause_between_info_and_question(self, make_orchestrator, info_schema, fake_backend):
        orchestrator = make_orchestrator(info_schema, settings=Settings(INFO_PAUSE_SECONDS=0.4))
        await orchestrator.start()

        await orchestrator.send("A lot")

        info_started = fake_backend.stream_calls[2][1]
        question_started = fake_backend.stream_calls[3][1]
        assert question_started - info_started >= 0.4 - 0.005

    async def test_pause_uses_configured_seconds(self, make_orchestrator, info_schema):
        orchestrator = make_orchestrator(info_schema, settings=Settings(INFO_PAUSE_SECONDS=0.4))
        await orchestrator.start()

        with patch("medley.core.orchestrator.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await orchestrator.send("A lot")

        # The scripted backend also yields control with sleep(0)
        pauses = [c for c in mock_sleep.await_args_list if c.args == (0.4,)]
        assert len(pauses) == 1

    async def test_answer_rejected_during_pause(self, make_orchestrator, info_schema):
        orchestrator = make_orchestrator(info_schema, settings=Settings(INFO_PAUSE_SECONDS=0.3))
        await orchestrator.start()

        task = asyncio.create_task(orchestrator.send("A lot"))
        await asyncio.sleep(0.1)

        assert orchestrator.is_busy
        with pytest.raises(ConsultBusyError):
            await orchestrator.send("Yes")

        await task
        assert not orchestrator.is_busy
        assert await orchestrator.send("Yes") is True
        assert orchestrator.data.family_history == "yes"


@pytest.mark.unit
class TestBusyRejection:

    async def test_second_send_while_streaming(self, make_orchestrator, base_schema, fake_backend):
        orchestrator = make_orchestrator(base_schema)
        await orchestrator.start()
        fake_backend.gate = asyncio.Event()

        task = asyncio.create_task(orchestrator.send("Option 1"))
        await asyncio.sleep(0.01)

        with pytest.raises(ConsultBusyError):
            await orchestrator.send("Option 2")
        with pytest.raises(ConsultBusyError):
            await orchestrator.start()

        fake_backend.gate.set()
        assert await task is True

        user_texts = [m.text for m in orchestrator.messages if m.role == ChatRole.USER]
        assert user_texts == ["Option 1"]


@pytest.mark.unit
class TestFailureRecovery:

    async def test_unexpected_error_appends_apology(self, make_orchestrator, two_question_schema):
        orchestrator = make_orchestrator(two_question_schema)
        await orchestrator.start()

        async def exploding(question, user_text):
            yield StreamingTurn(partial_text="Half a sen")
            raise RuntimeError("boom")

        with patch.object(orchestrator.generator, "stream_next_turn", exploding):
            assert await orchestrator.send("At the crown") is True

        assert orchestrator.messages[-1].text == "I apologize, I'm having a little trouble. Could you try again?"
        assert [m.role for m in orchestrator.messages] == [ChatRole.MODEL, ChatRole.USER, ChatRole.MODEL]
        assert not any(m.is_streaming for m in orchestrator.messages)
        assert orchestrator.current_question_id == "hair_loss_location"
        assert orchestrator.phase == ConsultPhase.AWAITING_ANSWER
        assert orchestrator.data.answered_fields() == []

    async def test_retry_after_failure(self, make_orchestrator, two_question_schema):
        orchestrator = make_orchestrator(two_question_schema)
        await orchestrator.start()

        with patch.object(orchestrator.generator, "stream_next_turn", side_effect=RuntimeError("boom")):
            await orchestrator.send("At the crown")

        await orchestrator.send("At the crown")

        assert orchestrator.data.hair_loss_location == "crown"
        assert orchestrator.current_question_id == "goals_text"


@pytest.mark.unit
class TestDisplaySurface:

    async def test_update_message_by_id(self, make_orchestrator, base_schema):
        orchestrator = make_orchestrator(base_schema)
        await orchestrator.start()
        message_id = orchestrator.messages[0].id

        assert orchestrator.update_message(message_id, "Edited", is_streaming=False)
        assert orchestrator.messages[0].text == "Edited"
        assert not orchestrator.update_message("unknown-id", "x", is_streaming=False)

    async def test_snapshot_is_a_copy(self, make_orchestrator, base_schema):
        orchestrator = make_orchestrator(base_schema)
        await orchestrator.start()

        snapshot = orchestrator.snapshot()
        snapshot.messages[0].text = "changed"
        snapshot.predefined_responses.clear()

        assert orchestrator.messages[0].text != "changed"
        assert orchestrator.predefined_responses == ["Option 1", "Option 2"]
        assert snapshot.current_question_id == "q1"
        assert snapshot.is_complete is False


@pytest.mark.integration
class TestStructuredResult:

    async def test_two_question_round_trip(self, make_orchestrator, two_question_schema):
        orchestrator = make_orchestrator(two_question_schema)
        await orchestrator.start()

        await orchestrator.send("At the crown")
        await orchestrator.send("I would like my hair to look fuller again")

        data = orchestrator.data
        assert orchestrator.is_complete
        assert orchestrator.predefined_responses == []
        assert sorted(data.answered_fields()) == ["goals_text", "hair_loss_location"]
        assert data.hair_loss_location == "crown"
        assert data.goals_text == "I would like my hair to look fuller again"
        assert data.treatment_goals == []

    async def test_round_trip_with_failing_backend(self, make_orchestrator, two_question_schema, failing_backend):
        orchestrator = make_orchestrator(two_question_schema, backend=failing_backend)
        await orchestrator.start()

        await orchestrator.send("At the crown")
        await orchestrator.send("Fuller hair")

        assert model_texts(orchestrator) == [
            "Where have you noticed the most change?",
            "What would you like to change about your hair?",
            "Thank you for your time.",
        ]
        assert orchestrator.data.hair_loss_location == "crown"
        assert orchestrator.data.goals_text == "Fuller hair"
