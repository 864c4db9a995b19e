# medley/models/schema.py
"""
Question schema for the consultation.

The schema is a static document describing the question graph: nodes,
prompts, answer options and the `next` branching rule. It is loaded once per
session and never mutated afterwards.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from medley.core.exceptions import SchemaError

logger = logging.getLogger(__name__)

# Reserved next ids meaning "no further questions"
COMPLETION_SENTINEL = "consultation_end"
COMPLETION_SENTINELS = frozenset({COMPLETION_SENTINEL, "__complete__"})

DEFAULT_SCHEMA_PATH = Path(__file__).parent.parent / "resources" / "data_schema.json"


def is_completion_sentinel(question_id: Optional[str]) -> bool:
    return question_id in COMPLETION_SENTINELS


class QuestionType(str, Enum):
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    FREE_TEXT = "free_text"
    NUMBER = "number"
    DATE = "date"


class Option(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str


class NextRules(BaseModel):
    model_config = ConfigDict(frozen=True)

    default: Optional[str] = None


class Question(BaseModel):
    """A node in the branching question graph"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    prompt: str
    type: QuestionType
    info: Optional[str] = None
    options: Optional[List[Option]] = None
    predefined_responses: Optional[List[str]] = Field(default=None, alias="predefinedResponses")
    next: Optional[NextRules] = None

    @property
    def next_id(self) -> Optional[str]:
        return self.next.default if self.next else None

    @property
    def has_info(self) -> bool:
        return bool(self.info)


class Intro(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    first_question_id: str = Field(default="", alias="firstQuestionId")


class DataSchema(BaseModel):
    """Immutable question graph plus id lookup"""
    model_config = ConfigDict(frozen=True)

    version: str = ""
    intro: Intro = Field(default_factory=Intro)
    questions: List[Question] = Field(default_factory=list)

    @property
    def by_id(self) -> Dict[str, Question]:
        # Later duplicates shadow earlier ones
        return {question.id: question for question in self.questions}

    def get(self, question_id: Optional[str]) -> Optional[Question]:
        if not question_id:
            return None
        return self.by_id.get(question_id)

    @property
    def first_question(self) -> Optional[Question]:
        return self.get(self.intro.first_question_id)

    @property
    def is_empty(self) -> bool:
        return not self.questions

    @classmethod
    def empty(cls) -> "DataSchema":
        return cls()

    def dangling_references(self) -> List[str]:
        """
        List `next.default` targets that neither resolve nor are a sentinel.

        Used for diagnostics only; the orchestrator treats these as an
        implicit end of the consultation.
        """
        known = self.by_id
        return [
            question.next_id
            for question in self.questions
            if question.next_id
            and not is_completion_sentinel(question.next_id)
            and question.next_id not in known
        ]


def parse_schema(data: Union[Dict[str, Any], str, bytes], source: str = "<memory>") -> DataSchema:
    """
    Decode a schema document.

    Raises:
        SchemaError: If the document is not valid JSON or does not match the schema
    """
    try:
        if isinstance(data, (str, bytes)):
            return DataSchema.model_validate_json(data)
        return DataSchema.model_validate(data)
    except PydanticValidationError as e:
        raise SchemaError(
            f"Schema document is malformed: {e.error_count()} validation error(s)",
            source=source,
            details={"errors": [err["msg"] for err in e.errors()[:5]]}
        ) from e


def load_schema_from_dict(data: Dict[str, Any]) -> DataSchema:
    """Decode an in-memory schema, degrading to an empty schema on failure"""
    try:
        return parse_schema(data)
    except SchemaError as e:
        logger.warning(f"Falling back to empty schema: {e}")
        return DataSchema.empty()


def load_schema(path: Optional[Union[str, Path]] = None) -> DataSchema:
    """
    Load the schema document from disk.

    Missing or malformed files never raise; they are logged and an empty
    schema is returned so the consultation can still greet the user.

    Args:
        path: Schema file location, defaults to the packaged hair-loss schema

    Returns:
        Parsed DataSchema, or an empty one
    """
    schema_path = Path(path) if path else DEFAULT_SCHEMA_PATH

    if not schema_path.is_file():
        logger.warning(f"Schema file missing at {schema_path}, using empty schema")
        return DataSchema.empty()

    try:
        raw = schema_path.read_text(encoding="utf-8")
        schema = parse_schema(raw, source=str(schema_path))
    except (OSError, UnicodeDecodeError, SchemaError) as e:
        logger.warning(f"Could not load schema from {schema_path}: {e}")
        return DataSchema.empty()

    dangling = schema.dangling_references()
    if dangling:
        logger.warning(f"Schema {schema_path.name} has unresolved next ids: {dangling}")

    logger.info(f"Loaded schema v{schema.version or '?'} with {len(schema.questions)} questions")
    return schema


