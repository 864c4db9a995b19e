# medley/core/answer_mapper.py
"""
Answer Mapper - converts raw user text into a typed answer.

Resolution order, first match wins:
1. Exact option match (label case-insensitive, or id)
2. Free text passthrough for free_text questions
3. Model-assisted categorization against the option set
4. No mapping
"""

import logging
import re
from typing import List, Optional

from medley.core.prompt_manager import PromptManager, PromptType
from medley.models.consult import MappedAnswer
from medley.models.schema import Option, Question, QuestionType
from medley.prompts.categorization_prompts import CARDINALITY_MULTIPLE, CARDINALITY_SINGLE
from medley.services.backend import ConversationBackend

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"[\s,;]+")


class AnswerMapper:
    """Maps user replies onto a question's answer space"""

    def __init__(self, backend: ConversationBackend, prompt_manager: Optional[PromptManager] = None):
        self.backend = backend
        self.prompt_manager = prompt_manager or PromptManager()

    async def map_answer(self, raw_text: str, question: Question) -> Optional[MappedAnswer]:
        """
        Resolve `raw_text` for `question`.

        Never raises for backend failures; categorization errors degrade to
        the first declared option.

        Returns:
            MappedAnswer keyed by the question id, or None
        """
        option = self.match_option(raw_text, question)
        if option is not None:
            return MappedAnswer(key_path=question.id, value_id=option.id)

        if question.type == QuestionType.FREE_TEXT:
            return MappedAnswer(key_path=question.id, value_id=raw_text)

        if question.options:
            value_ids = await self._categorize(raw_text, question)
            return MappedAnswer(key_path=question.id, value_id=value_ids[0], value_ids=value_ids)

        logger.debug(f"No mapping rule for question {question.id} ({question.type.value})")
        return None

    @staticmethod
    def match_option(raw_text: str, question: Question) -> Optional[Option]:
        for option in question.options or []:
            if option.label.casefold() == raw_text.casefold() or option.id == raw_text:
                return option
        return None

    async def _categorize(self, raw_text: str, question: Question) -> List[str]:
        options = question.options
        try:
            prompt = self.build_categorization_prompt(raw_text, question)
            reply = await self.backend.categorize(prompt)
        except Exception as e:
            logger.warning(f"Categorization failed for {question.id}, using first option: {e}")
            return [options[0].id]

        value_ids = self.validate_reply(reply, question)
        logger.info(f"Categorized answer for {question.id} as {value_ids}")
        return value_ids

    def build_categorization_prompt(self, raw_text: str, question: Question) -> str:
        options = question.options or []
        multiple = question.type == QuestionType.MULTIPLE_CHOICE
        return self.prompt_manager.get_prompt(
            PromptType.CATEGORIZE,
            question_prompt=question.prompt,
            user_text=raw_text,
            options_list="\n".join(f"- {option.id}: {option.label}" for option in options),
            cardinality=CARDINALITY_MULTIPLE if multiple else CARDINALITY_SINGLE,
            option_ids=", ".join(option.id for option in options)
        )

    @staticmethod
    def validate_reply(reply: Optional[str], question: Question) -> List[str]:
        """
        Turn an untrusted categorization reply into known option ids.

        Tries the whole reply, then individual tokens, then substring
        containment, and finally falls back to the first declared option.
        """
        options = question.options or []
        known = [option.id for option in options]
        text = (reply or "").strip()

        if text in known:
            return [text]

        tokens = {token.strip("\"'.`") for token in _TOKEN_SPLIT.split(text) if token}
        matched = [option_id for option_id in known if option_id in tokens]
        if matched:
            if question.type == QuestionType.MULTIPLE_CHOICE:
                return matched
            return matched[:1]

        contained = [option_id for option_id in known if option_id in text]
        if contained:
            if question.type == QuestionType.MULTIPLE_CHOICE:
                return contained
            # Longest contained id wins ("opt10" over "opt1")
            return [max(contained, key=len)]

        logger.warning(f"Categorization reply {text[:50]!r} matched no option of {question.id}")
        return known[:1]
