# medley/models/turns.py
"""
Turn kinds and the streaming event record.

A turn is one generated conversational message plus its routing metadata.
Every kind is a separate model tagged by `kind`, so code that dispatches on a
turn handles an explicit, closed set of cases.
"""

from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from medley.models.consult import MappedAnswer
from medley.models.schema import Question


class TurnBase(BaseModel):
    """Fields shared by all turn kinds"""
    model_config = ConfigDict(frozen=True)

    fallback_text: str
    next_question_id: Optional[str] = None
    next_question_info: Optional[str] = None

    @property
    def requires_generation(self) -> bool:
        return True


class OpeningTurn(TurnBase):
    """Greeting plus the first question"""
    kind: Literal["opening"] = "opening"
    first_question: Optional[Question] = None

    @property
    def requires_generation(self) -> bool:
        return self.first_question is not None


class AckTurn(TurnBase):
    """Acknowledgment fused with the next question (successor has no info)"""
    kind: Literal["ack"] = "ack"
    question: Question
    user_text: str
    next_question: Question


class AckWithInfoTurn(TurnBase):
    """Acknowledgment only; the successor's info is shown before it is asked"""
    kind: Literal["ack_with_info"] = "ack_with_info"
    question: Question
    user_text: str
    next_question: Question


class InfoSummaryTurn(TurnBase):
    """Friendlier restatement of a question's supplementary info"""
    kind: Literal["info_summary"] = "info_summary"
    info: str


class QuestionTurn(TurnBase):
    """Just the phrasing of a question"""
    kind: Literal["question"] = "question"
    question: Question


class ClosingTurn(TurnBase):
    """Warm closing once the successor is the sentinel or absent"""
    kind: Literal["closing"] = "closing"
    question: Question
    user_text: str


class DanglingTurn(TurnBase):
    """Successor id does not resolve; a fixed thank-you ends the flow"""
    kind: Literal["dangling"] = "dangling"
    question: Question
    missing_question_id: str

    @property
    def requires_generation(self) -> bool:
        return False


Turn = Annotated[
    Union[
        OpeningTurn,
        AckTurn,
        AckWithInfoTurn,
        InfoSummaryTurn,
        QuestionTurn,
        ClosingTurn,
        DanglingTurn,
    ],
    Field(discriminator="kind"),
]


class StreamingTurn(BaseModel):
    """
    One event of the streaming protocol.

    Non-terminal events carry a growing `partial_text`. The single terminal
    event has `is_complete=True`, an empty `partial_text` and the finalized
    routing metadata.
    """
    model_config = ConfigDict(frozen=True)

    partial_text: str = ""
    is_complete: bool = False
    mapped_answer: Optional[MappedAnswer] = None
    next_question_id: Optional[str] = None
    next_question_info: Optional[str] = None
