# medley/core/turn_generator.py
"""
Turn Generator - produces the text of every consultation turn.

Planning decides which turn kind comes next from the question graph and is
pure. Generation renders a planned turn through the backend, either single
shot or as a StreamingTurn sequence, and substitutes the turn's
deterministic fallback text whenever the backend fails.

The generator never mutates the schema or the consult record.
"""

import logging
from typing import AsyncIterator, Optional

from medley.core.answer_mapper import AnswerMapper
from medley.core.prompt_manager import PromptManager, PromptType
from medley.core.streaming import fallback_stream, stream_turn
from medley.models.chat import ChatMessage, ChatRole
from medley.models.consult import MappedAnswer
from medley.models.schema import DataSchema, Question, is_completion_sentinel
from medley.models.turns import (
    AckTurn,
    AckWithInfoTurn,
    ClosingTurn,
    DanglingTurn,
    InfoSummaryTurn,
    OpeningTurn,
    QuestionTurn,
    StreamingTurn,
    Turn,
)
from medley.services.backend import ConversationBackend

logger = logging.getLogger(__name__)


class TurnGenerator:
    """
    Plans and renders consultation turns.

    Args:
        schema: Question graph, read only
        backend: Generative backend capability
        prompt_manager: Prompt registry
        answer_mapper: Maps user replies, built from the backend if omitted
    """

    def __init__(
        self,
        schema: DataSchema,
        backend: ConversationBackend,
        prompt_manager: Optional[PromptManager] = None,
        answer_mapper: Optional[AnswerMapper] = None
    ):
        self.schema = schema
        self.backend = backend
        self.prompt_manager = prompt_manager or PromptManager()
        self.answer_mapper = answer_mapper or AnswerMapper(backend, self.prompt_manager)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan_opening(self) -> OpeningTurn:
        first_id = self.schema.intro.first_question_id
        first_question = self.schema.get(first_id)
        if first_question is None:
            return OpeningTurn(
                fallback_text=self.prompt_manager.get_prompt(PromptType.GREETING_FALLBACK),
                next_question_id=first_id or None
            )
        return OpeningTurn(
            first_question=first_question,
            fallback_text=first_question.prompt,
            next_question_id=first_question.id
        )

    def plan_next(self, question: Question, user_text: Optional[str]) -> Turn:
        """
        Decide the turn that answers `user_text` to `question`.

        Returns:
            QuestionTurn when there is no user text, otherwise the
            acknowledgment, closing or dangling turn for the successor
        """
        if user_text is None:
            return QuestionTurn(
                question=question,
                fallback_text=question.prompt,
                next_question_id=question.next_id
            )

        next_id = question.next_id

        if next_id is None or is_completion_sentinel(next_id):
            return ClosingTurn(
                question=question,
                user_text=user_text,
                fallback_text=self.prompt_manager.get_prompt(PromptType.CLOSING_FALLBACK),
                next_question_id=next_id
            )

        next_question = self.schema.get(next_id)
        if next_question is None:
            logger.warning(f"Question {question.id} points to unknown question {next_id}")
            return DanglingTurn(
                question=question,
                missing_question_id=next_id,
                fallback_text=self.prompt_manager.get_prompt(PromptType.DANGLING_FALLBACK),
                next_question_id=None
            )

        if next_question.has_info:
            return AckWithInfoTurn(
                question=question,
                user_text=user_text,
                next_question=next_question,
                fallback_text=self.prompt_manager.get_prompt(PromptType.ACK_FALLBACK),
                next_question_id=next_question.id,
                next_question_info=next_question.info
            )

        return AckTurn(
            question=question,
            user_text=user_text,
            next_question=next_question,
            fallback_text=next_question.prompt,
            next_question_id=next_question.id
        )

    def plan_info_summary(self, info: str) -> InfoSummaryTurn:
        return InfoSummaryTurn(info=info, fallback_text=info)

    def plan_question(self, question: Question) -> QuestionTurn:
        return QuestionTurn(
            question=question,
            fallback_text=question.prompt,
            next_question_id=question.next_id
        )

    # ------------------------------------------------------------------
    # Prompt rendering
    # ------------------------------------------------------------------

    def build_prompt(self, turn: Turn) -> str:
        pm = self.prompt_manager

        if isinstance(turn, OpeningTurn):
            return pm.get_prompt(PromptType.OPENING, first_question_prompt=turn.first_question.prompt)
        if isinstance(turn, AckTurn):
            return pm.get_prompt(
                PromptType.ACK_WITH_QUESTION,
                question_prompt=turn.question.prompt,
                user_text=turn.user_text,
                next_question_prompt=turn.next_question.prompt
            )
        if isinstance(turn, AckWithInfoTurn):
            return pm.get_prompt(
                PromptType.ACK_ONLY,
                question_prompt=turn.question.prompt,
                user_text=turn.user_text
            )
        if isinstance(turn, InfoSummaryTurn):
            return pm.get_prompt(PromptType.INFO_SUMMARY, info=turn.info)
        if isinstance(turn, QuestionTurn):
            return pm.get_prompt(PromptType.QUESTION, question_prompt=turn.question.prompt)
        if isinstance(turn, ClosingTurn):
            return pm.get_prompt(PromptType.CLOSING)

        raise ValueError(f"Turn kind '{turn.kind}' has no generation prompt")

    @property
    def system_prompt(self) -> str:
        return self.prompt_manager.get_prompt(PromptType.CONSULT_SYSTEM)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(self, turn: Turn) -> str:
        """Single-shot text for a turn, falling back on any failure"""
        if not turn.requires_generation:
            return turn.fallback_text

        try:
            text = await self.backend.generate(self.build_prompt(turn), system_prompt=self.system_prompt)
        except Exception as e:
            logger.warning(f"Generation failed for {turn.kind} turn, using fallback: {e}")
            return turn.fallback_text

        return text.strip() or turn.fallback_text

    def stream(self, turn: Turn, mapped_answer: Optional[MappedAnswer] = None) -> AsyncIterator[StreamingTurn]:
        """StreamingTurn events for a planned turn"""
        metadata = dict(
            mapped_answer=mapped_answer,
            next_question_id=turn.next_question_id,
            next_question_info=turn.next_question_info
        )

        if not turn.requires_generation:
            return fallback_stream(turn.fallback_text, **metadata)

        try:
            prompt = self.build_prompt(turn)
            system_prompt = self.system_prompt
        except Exception as e:
            logger.error(f"Could not build prompt for {turn.kind} turn: {e}")
            return fallback_stream(turn.fallback_text, **metadata)

        return stream_turn(
            lambda: self.backend.generate_stream(prompt, system_prompt=system_prompt),
            fallback_text=turn.fallback_text,
            **metadata
        )

    # ------------------------------------------------------------------
    # Turn entry points
    # ------------------------------------------------------------------

    async def opening_message(self) -> ChatMessage:
        """Non-streaming opening, used where streaming is not wanted"""
        text = await self.generate(self.plan_opening())
        return ChatMessage(role=ChatRole.MODEL, text=text)

    def stream_opening(self) -> AsyncIterator[StreamingTurn]:
        return self.stream(self.plan_opening())

    async def stream_next_turn(self, question: Question, user_text: Optional[str]) -> AsyncIterator[StreamingTurn]:
        """
        Map the user's answer, then stream the turn that follows it.

        The mapped answer rides on every event and is final on the terminal one.
        """
        mapped = None
        if user_text is not None:
            mapped = await self.answer_mapper.map_answer(user_text, question)

        turn = self.plan_next(question, user_text)
        logger.debug(f"Planned {turn.kind} turn after question {question.id}")

        async for event in self.stream(turn, mapped_answer=mapped):
            yield event

    def stream_info_summary(self, info: str) -> AsyncIterator[StreamingTurn]:
        return self.stream(self.plan_info_summary(info))

    def stream_question(self, question: Question) -> AsyncIterator[StreamingTurn]:
        return self.stream(self.plan_question(question))
