# medley/prompts/__init__.py
"""Prompts package - centralized prompt management"""

# Import all prompt modules for PromptManager
from . import consult_prompts
from . import categorization_prompts
from . import common_prompts

__all__ = [
    'consult_prompts',
    'categorization_prompts',
    'common_prompts'
]
