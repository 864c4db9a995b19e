# medley/core/orchestrator.py
"""
Consultation Orchestrator - owns one consultation session.

Drives the question graph as a small state machine:

    not_started -> awaiting_answer(q1) -> awaiting_answer(q2) -> ... -> complete

Every model turn is delivered through the streaming protocol into a
placeholder message that is updated in place by id. Mapped answers are
written to the consult record only after a turn's terminal event.

All mutation happens on the task that calls `start`/`send`; a lock marks the
in-flight turn so overlapping sends are rejected instead of interleaved.
"""

import asyncio
import logging
from enum import Enum
from typing import AsyncIterator, List, Optional

from pydantic import BaseModel, Field

from medley.core.config import Settings, settings as default_settings
from medley.core.exceptions import ConsultBusyError, FlowError
from medley.core.prompt_manager import PromptManager, PromptType
from medley.core.turn_generator import TurnGenerator
from medley.models.chat import ChatMessage, ChatRole
from medley.models.consult import StructuredConsult
from medley.models.schema import DataSchema, Question, is_completion_sentinel
from medley.models.turns import StreamingTurn
from medley.services.backend import ConversationBackend

logger = logging.getLogger(__name__)


class ConsultPhase(str, Enum):
    NOT_STARTED = "not_started"
    AWAITING_ANSWER = "awaiting_answer"
    COMPLETE = "complete"


class ConsultEventType(str, Enum):
    MESSAGE_STARTED = "message_started"
    MESSAGE_DELTA = "message_delta"
    MESSAGE_COMPLETED = "message_completed"
    STATE = "state"


class ConsultSnapshot(BaseModel):
    """Read-only copy of the display surface"""
    phase: ConsultPhase
    current_question_id: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    predefined_responses: List[str] = Field(default_factory=list)
    is_complete: bool = False
    data: StructuredConsult = Field(default_factory=StructuredConsult)


class ConsultEvent(BaseModel):
    """
    Display update emitted while a turn runs.

    Message events carry a copy of the affected message; `delta` is the text
    appended since the previous event for that message. The final `state`
    event carries a full snapshot.
    """
    type: ConsultEventType
    message: Optional[ChatMessage] = None
    delta: str = ""
    snapshot: Optional[ConsultSnapshot] = None


class _TurnOutcome:
    """Receives the terminal event of a driven turn"""

    def __init__(self):
        self.terminal: Optional[StreamingTurn] = None


class ConsultOrchestrator:
    """
    Session state machine for one consultation.

    Args:
        schema: Loaded question graph
        backend: Generative backend, always injected
        prompt_manager: Prompt registry (a fresh one if omitted)
        settings: Application settings, used for the info pause
    """

    def __init__(
        self,
        schema: DataSchema,
        backend: ConversationBackend,
        *,
        prompt_manager: Optional[PromptManager] = None,
        settings: Optional[Settings] = None
    ):
        if backend is None:
            raise ValueError("ConsultOrchestrator requires a backend")

        self.schema = schema
        self.backend = backend
        self.prompt_manager = prompt_manager or PromptManager()
        self.generator = TurnGenerator(schema, backend, self.prompt_manager)
        self.info_pause_seconds = (settings or default_settings).INFO_PAUSE_SECONDS

        self.phase = ConsultPhase.NOT_STARTED
        self.current_question_id: Optional[str] = None
        self.messages: List[ChatMessage] = []
        self.predefined_responses: List[str] = []
        self.data = StructuredConsult()

        self._lock = asyncio.Lock()
        self._prewarm_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Display surface
    # ------------------------------------------------------------------

    @property
    def current_question(self) -> Optional[Question]:
        return self.schema.get(self.current_question_id)

    @property
    def is_complete(self) -> bool:
        return self.phase == ConsultPhase.COMPLETE

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    def snapshot(self) -> ConsultSnapshot:
        return ConsultSnapshot(
            phase=self.phase,
            current_question_id=self.current_question_id,
            messages=[message.model_copy() for message in self.messages],
            predefined_responses=list(self.predefined_responses),
            is_complete=self.is_complete,
            data=self.data.model_copy(deep=True)
        )

    def update_message(self, message_id: str, text: str, is_streaming: bool) -> bool:
        """
        Update a message in place by id.

        Returns:
            False if no message has that id
        """
        for message in self.messages:
            if message.id == message_id:
                message.text = text
                message.is_streaming = is_streaming
                return True
        logger.warning(f"Update for unknown message {message_id} ignored")
        return False

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Reset the session and deliver the opening turn"""
        async for _ in self.start_stream():
            pass

    async def start_stream(self) -> AsyncIterator[ConsultEvent]:
        self._reject_if_busy()

        async with self._lock:
            self.messages = []
            self.data = StructuredConsult()
            self.phase = ConsultPhase.NOT_STARTED
            self.current_question_id = None
            self.predefined_responses = []

            first_question = self.schema.first_question
            if first_question is not None:
                self._set_current_question(first_question)
            else:
                logger.warning("Schema has no resolvable first question, greeting only")

            self._fire_prewarm()

            try:
                async for event in self._drive_turn(self.generator.stream_opening(), _TurnOutcome()):
                    yield event
            except Exception as e:
                logger.error(f"Opening turn failed: {e}", exc_info=True)
                self._settle_streaming_messages(drop=True)
                self._append_apology()

            logger.info(f"Consultation started at question {self.current_question_id}")
            yield self._state_event()

    async def send(self, user_text: str) -> bool:
        """
        Answer the current question.

        Returns:
            False if the input was ignored because there is no question to answer

        Raises:
            ConsultBusyError: If a turn is still in flight
        """
        self._reject_if_busy()

        if not self._accepts_answers():
            return False

        async for _ in self.send_stream(user_text):
            pass
        return True

    async def send_stream(self, user_text: str) -> AsyncIterator[ConsultEvent]:
        """
        Streaming version of `send` for the HTTP surface.

        Yields:
            Message events for every model turn, then a final state event
        """
        self._reject_if_busy()

        async with self._lock:
            if not self._accepts_answers():
                yield self._state_event()
                return

            question = self.current_question
            saved_state = (
                self.phase,
                self.current_question_id,
                list(self.predefined_responses),
                self.data.model_copy(deep=True)
            )

            self.messages.append(ChatMessage(role=ChatRole.USER, text=user_text))

            try:
                outcome = _TurnOutcome()
                stream = self.generator.stream_next_turn(question, user_text)
                async for event in self._drive_turn(stream, outcome):
                    yield event

                terminal = outcome.terminal
                if terminal is None:
                    raise FlowError("Turn ended without a terminal event", current_question=question.id)

                if terminal.mapped_answer is not None:
                    self.data.apply(terminal.mapped_answer)

                async for event in self._advance_events(terminal.next_question_id, terminal.next_question_info):
                    yield event

            except Exception as e:
                logger.error(f"Turn after question {question.id} failed: {e}", exc_info=True)
                self._settle_streaming_messages(drop=True)
                self.phase, self.current_question_id, self.predefined_responses, self.data = saved_state
                self._append_apology()

            finally:
                self._settle_streaming_messages()

            yield self._state_event()

    async def advance(self, next_id: Optional[str], info: Optional[str] = None) -> None:
        """Move to the question `next_id`, showing its info first if it has any"""
        async for _ in self._advance_events(next_id, info):
            pass

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _advance_events(self, next_id: Optional[str], info: Optional[str]) -> AsyncIterator[ConsultEvent]:
        if is_completion_sentinel(next_id):
            logger.info("Consultation complete")
            self.phase = ConsultPhase.COMPLETE
            self.predefined_responses = []
            return

        next_question = self.schema.get(next_id)
        if next_question is None:
            logger.warning(f"Next question '{next_id}' does not resolve, ending consultation")
            self.phase = ConsultPhase.COMPLETE
            self.predefined_responses = []
            return

        self._set_current_question(next_question)

        if info:
            async for event in self._drive_turn(self.generator.stream_info_summary(info), _TurnOutcome()):
                yield event

            await asyncio.sleep(self.info_pause_seconds)

            async for event in self._drive_turn(self.generator.stream_question(next_question), _TurnOutcome()):
                yield event

    def _set_current_question(self, question: Question):
        self.current_question_id = question.id
        self.predefined_responses = list(question.predefined_responses or [])
        self.phase = ConsultPhase.AWAITING_ANSWER

    # ------------------------------------------------------------------
    # Turn delivery
    # ------------------------------------------------------------------

    async def _drive_turn(
        self,
        stream: AsyncIterator[StreamingTurn],
        outcome: _TurnOutcome
    ) -> AsyncIterator[ConsultEvent]:
        """Apply one turn's events to a fresh placeholder message, in order"""
        placeholder = ChatMessage(role=ChatRole.MODEL, is_streaming=True)
        self.messages.append(placeholder)
        yield ConsultEvent(type=ConsultEventType.MESSAGE_STARTED, message=placeholder.model_copy())

        text = ""
        async for event in stream:
            if event.is_complete:
                outcome.terminal = event
                continue

            delta = event.partial_text[len(text):]
            text = event.partial_text
            self.update_message(placeholder.id, text, is_streaming=True)
            yield ConsultEvent(
                type=ConsultEventType.MESSAGE_DELTA,
                message=placeholder.model_copy(),
                delta=delta
            )

        self.update_message(placeholder.id, text, is_streaming=False)
        yield ConsultEvent(type=ConsultEventType.MESSAGE_COMPLETED, message=placeholder.model_copy())

    def _settle_streaming_messages(self, drop: bool = False):
        """Finalize messages left streaming; empty placeholders are always removed"""
        kept = []
        for message in self.messages:
            if message.is_streaming:
                if drop or not message.text:
                    continue
                message.is_streaming = False
            kept.append(message)
        self.messages = kept

    def _append_apology(self):
        self.messages.append(ChatMessage(
            role=ChatRole.MODEL,
            text=self.prompt_manager.get_prompt(PromptType.APOLOGY)
        ))

    def _state_event(self) -> ConsultEvent:
        return ConsultEvent(type=ConsultEventType.STATE, snapshot=self.snapshot())

    # ------------------------------------------------------------------
    # Guards and background work
    # ------------------------------------------------------------------

    def _reject_if_busy(self):
        if self._lock.locked():
            raise ConsultBusyError(
                self.prompt_manager.get_prompt(PromptType.BUSY),
                current_question=self.current_question_id
            )

    def _accepts_answers(self) -> bool:
        if self.phase == ConsultPhase.COMPLETE:
            logger.info("Consultation already complete, input ignored")
            return False
        if self.current_question is None:
            logger.info("No current question, input ignored")
            return False
        return True

    def _fire_prewarm(self):
        """Start backend warmup without waiting for it"""
        self._prewarm_task = asyncio.create_task(self._prewarm())

    async def _prewarm(self):
        try:
            await self.backend.prewarm()
        except Exception as e:
            logger.debug(f"Backend prewarm failed: {e}")
