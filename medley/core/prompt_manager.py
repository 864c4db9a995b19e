# medley/core/prompt_manager.py
"""
Centralized prompt management for the consultation engine.

Keeps every prompt in one registry that supports:
- Organized prompt storage by category
- Variable substitution with missing-variable checks
- Lookup by typed key
"""
from typing import Dict, Any, Optional, List
from enum import Enum
from dataclasses import dataclass
import logging
import re
from medley.core.exceptions import PromptError

logger = logging.getLogger(__name__)


class PromptCategory(str, Enum):
    """Categories for organizing prompts"""
    CONSULT = "consult"
    CATEGORIZATION = "categorization"
    COMMON = "common"


class PromptType(str, Enum):
    """Enum for all prompt types - maps to prompt keys"""

    # Turn generation
    CONSULT_SYSTEM = "consult.system"
    OPENING = "consult.opening"
    ACK_WITH_QUESTION = "consult.ack_with_question"
    ACK_ONLY = "consult.ack_only"
    INFO_SUMMARY = "consult.info_summary"
    QUESTION = "consult.question"
    CLOSING = "consult.closing"

    # Answer categorization
    CATEGORIZE = "categorization.categorize"

    # Fixed texts
    GREETING_FALLBACK = "common.greeting.fallback"
    ACK_FALLBACK = "common.ack.fallback"
    CLOSING_FALLBACK = "common.closing.fallback"
    DANGLING_FALLBACK = "common.dangling.fallback"
    APOLOGY = "common.apology"
    BUSY = "common.busy"


@dataclass
class Prompt:
    """Represents a single prompt template"""
    key: str
    template: str
    category: PromptCategory
    description: str = ""
    variables: List[str] = None

    def __post_init__(self):
        if self.variables is None:
            self.variables = self._extract_variables()

    def _extract_variables(self) -> List[str]:
        pattern = r'\{(\w+)\}'
        return sorted(set(re.findall(pattern, self.template)))

    def format(self, **kwargs) -> str:
        """
        Format the prompt with provided variables.

        Raises:
            PromptError: If required variables are missing
        """
        missing = set(self.variables) - set(kwargs.keys())
        if missing:
            raise PromptError(
                prompt_type=self.key,
                message=f"Missing required variables: {sorted(missing)}",
                details={"missing_variables": sorted(missing)}
            )

        try:
            return self.template.format(**kwargs)
        except (KeyError, IndexError) as e:
            raise PromptError(
                prompt_type=self.key,
                message=f"Error formatting prompt: {e}",
                details={"error": str(e)}
            )


class PromptManager:
    """
    Registry of all prompts.

    Prompts are defined as module constants in `medley.prompts` and
    registered under dotted keys on first use.
    """

    def __init__(self):
        self.prompts: Dict[str, Prompt] = {}
        self._loaded = False

    def get_prompt(self, prompt_type, **kwargs) -> str:
        """
        Get a formatted prompt by PromptType or string key.

        Args:
            prompt_type: PromptType enum value or string key
            **kwargs: Variables for formatting
        """
        key = prompt_type.value if hasattr(prompt_type, 'value') else str(prompt_type)
        return self.get(key, **kwargs)

    def load_prompts(self):
        """Register all prompts from the prompt modules."""
        if self._loaded:
            logger.debug("Prompts already loaded")
            return

        self._define_prompts()

        self._loaded = True
        logger.info(f"Loaded {len(self.prompts)} prompts")

    def _define_prompts(self):
        from medley.prompts import (
            consult_prompts,
            categorization_prompts,
            common_prompts
        )

        consult = {
            PromptType.CONSULT_SYSTEM: consult_prompts.CONSULT_SYSTEM,
            PromptType.OPENING: consult_prompts.OPENING_TEMPLATE,
            PromptType.ACK_WITH_QUESTION: consult_prompts.ACK_WITH_QUESTION_TEMPLATE,
            PromptType.ACK_ONLY: consult_prompts.ACK_ONLY_TEMPLATE,
            PromptType.INFO_SUMMARY: consult_prompts.INFO_SUMMARY_TEMPLATE,
            PromptType.QUESTION: consult_prompts.QUESTION_TEMPLATE,
            PromptType.CLOSING: consult_prompts.CLOSING_TEMPLATE,
        }
        for prompt_type, template in consult.items():
            self.add_prompt(Prompt(
                key=prompt_type.value,
                template=template,
                category=PromptCategory.CONSULT
            ))

        self.add_prompt(Prompt(
            key=PromptType.CATEGORIZE.value,
            template=categorization_prompts.CATEGORIZE_TEMPLATE,
            category=PromptCategory.CATEGORIZATION,
            variables=["question_prompt", "user_text", "options_list", "cardinality", "option_ids"]
        ))

        # Fixed texts: CONSTANT_NAME -> common.constant.name
        for name in dir(common_prompts):
            value = getattr(common_prompts, name)
            if isinstance(value, str) and name.isupper() and not name.startswith('_'):
                key = f"common.{'.'.join(name.lower().split('_'))}"
                self.add_prompt(Prompt(
                    key=key,
                    template=value,
                    category=PromptCategory.COMMON,
                    description=f"Auto-imported from {common_prompts.__name__}.{name}",
                    variables=[]
                ))

    def add_prompt(self, prompt: Prompt):
        if prompt.key in self.prompts:
            logger.warning(f"Overwriting existing prompt: {prompt.key}")
        self.prompts[prompt.key] = prompt

    def get(self, key: str, **kwargs) -> str:
        """
        Get a formatted prompt by key.

        Raises:
            PromptError: If prompt not found or formatting fails
        """
        if not self._loaded:
            self.load_prompts()

        if key not in self.prompts:
            raise PromptError(
                prompt_type=key,
                message=f"Prompt not found: {key}",
                details={"available_keys": list(self.prompts.keys())}
            )

        prompt = self.prompts[key]

        if not prompt.variables:
            return prompt.template.strip()

        return prompt.format(**kwargs).strip()

    def list_prompts(self, category: Optional[PromptCategory] = None) -> List[str]:
        if not self._loaded:
            self.load_prompts()

        if category:
            return [
                key for key, prompt in self.prompts.items()
                if prompt.category == category
            ]

        return list(self.prompts.keys())

    def get_prompt_info(self, key: str) -> Dict[str, Any]:
        if not self._loaded:
            self.load_prompts()

        if key not in self.prompts:
            raise PromptError(
                prompt_type=key,
                message=f"Prompt not found: {key}"
            )

        prompt = self.prompts[key]
        return {
            "key": prompt.key,
            "category": prompt.category.value,
            "description": prompt.description,
            "variables": prompt.variables,
            "template_preview": prompt.template[:100] + "..." if len(prompt.template) > 100 else prompt.template
        }


# Global instance for easy access
_prompt_manager = None


def get_prompt_manager() -> PromptManager:
    """Get the global PromptManager instance"""
    global _prompt_manager
    if _prompt_manager is None:
        _prompt_manager = PromptManager()
        _prompt_manager.load_prompts()
    return _prompt_manager
