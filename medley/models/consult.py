# medley/models/consult.py

import logging
from typing import ClassVar, List, Optional, Tuple
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


class MappedAnswer(BaseModel):
    """
    Structured extraction of one user answer.

    `key_path` is always the id of the answered question; the consult record
    is keyed flat by question id. `value_ids` holds every validated option for
    multiple choice answers and mirrors `value_id` otherwise.
    """
    key_path: str
    value_id: str
    value_ids: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _fill_value_ids(self) -> "MappedAnswer":
        if not self.value_ids:
            self.value_ids = [self.value_id]
        return self


class StructuredConsult(BaseModel):
    """
    Accumulated result of a consultation.

    Every field is named after the question that fills it. Fields stay None
    until answered; `treatment_goals` collects several values without
    duplicates.
    """
    consultation_start: Optional[str] = None
    hair_loss_location: Optional[str] = None
    hair_loss_amount: Optional[str] = None
    changes_timing: Optional[str] = None
    hair_pattern: Optional[str] = None
    hair_type: Optional[str] = None
    hair_length: Optional[str] = None
    family_history: Optional[str] = None
    stress_frequency: Optional[str] = None
    hair_care_time: Optional[str] = None
    goals_text: Optional[str] = None
    treatment_goals: List[str] = Field(default_factory=list)

    LIST_FIELDS: ClassVar[Tuple[str, ...]] = ("treatment_goals",)

    @classmethod
    def accepts(cls, key_path: str) -> bool:
        return key_path in cls.model_fields

    def apply(self, mapped: MappedAnswer) -> bool:
        """
        Write a mapped answer into the field named by its key path.

        Returns:
            True if a field was set, False for unknown key paths
        """
        key = mapped.key_path
        if not self.accepts(key):
            logger.warning(f"No consult field for key path '{key}', answer dropped")
            return False

        if key in self.LIST_FIELDS:
            values: List[str] = getattr(self, key)
            for value in mapped.value_ids:
                if value not in values:
                    values.append(value)
        else:
            setattr(self, key, ", ".join(mapped.value_ids))

        logger.debug(f"Consult field {key} set to {getattr(self, key)!r}")
        return True

    def answered_fields(self) -> List[str]:
        answered = []
        for name in type(self).model_fields:
            value = getattr(self, name)
            if value:
                answered.append(name)
        return answered
