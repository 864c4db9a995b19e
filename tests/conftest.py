# tests/conftest.py
"""
Shared fixtures for the consultation tests.

Provides the scripted backend, sample schemas and settings with a
configurable info pause.
"""

import pytest

from medley.core.config import Settings
from medley.core.prompt_manager import PromptManager
from medley.models.schema import DataSchema, parse_schema

from tests.fakes import FakeBackend


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def failing_backend():
    return FakeBackend(succeed=False)


@pytest.fixture
def prompt_manager():
    pm = PromptManager()
    pm.load_prompts()
    return pm


@pytest.fixture
def fast_settings():
    """Settings without the info pause"""
    return Settings(INFO_PAUSE_SECONDS=0)


@pytest.fixture
def base_schema() -> DataSchema:
    """Two generic questions ending in the completion sentinel"""
    return parse_schema({
        "version": "test",
        "intro": {"firstQuestionId": "q1"},
        "questions": [
            {
                "id": "q1",
                "prompt": "What is your main concern?",
                "type": "single_choice",
                "options": [
                    {"id": "opt1", "label": "Option 1"},
                    {"id": "opt2", "label": "Option 2"}
                ],
                "predefinedResponses": ["Option 1", "Option 2"],
                "next": {"default": "q2"}
            },
            {
                "id": "q2",
                "prompt": "Tell us more.",
                "type": "free_text",
                "next": {"default": "__complete__"}
            }
        ]
    })


@pytest.fixture
def two_question_schema() -> DataSchema:
    """One single_choice and one free_text question keyed by consult fields"""
    return parse_schema({
        "version": "test",
        "intro": {"firstQuestionId": "hair_loss_location"},
        "questions": [
            {
                "id": "hair_loss_location",
                "prompt": "Where have you noticed the most change?",
                "type": "single_choice",
                "options": [
                    {"id": "hairline", "label": "At the top"},
                    {"id": "crown", "label": "At the crown"},
                    {"id": "diffuse", "label": "All over"}
                ],
                "predefinedResponses": ["At the top", "At the crown", "All over"],
                "next": {"default": "goals_text"}
            },
            {
                "id": "goals_text",
                "prompt": "What would you like to change about your hair?",
                "type": "free_text",
                "next": {"default": "consultation_end"}
            }
        ]
    })


@pytest.fixture
def info_schema() -> DataSchema:
    """The second question carries supplementary info"""
    return parse_schema({
        "version": "test",
        "intro": {"firstQuestionId": "hair_loss_amount"},
        "questions": [
            {
                "id": "hair_loss_amount",
                "prompt": "How much hair do you think you've lost?",
                "type": "single_choice",
                "options": [
                    {"id": "little", "label": "A little"},
                    {"id": "a_lot", "label": "A lot"}
                ],
                "next": {"default": "family_history"}
            },
            {
                "id": "family_history",
                "info": "Genetics is the most common driver of hair loss.",
                "prompt": "Has anyone in your family experienced hair loss?",
                "type": "single_choice",
                "options": [
                    {"id": "yes", "label": "Yes"},
                    {"id": "no", "label": "No"}
                ],
                "predefinedResponses": ["Yes", "No"],
                "next": {"default": "consultation_end"}
            }
        ]
    })


@pytest.fixture
def dangling_schema() -> DataSchema:
    """The only question points at an id that does not exist"""
    return parse_schema({
        "version": "test",
        "intro": {"firstQuestionId": "hair_type"},
        "questions": [
            {
                "id": "hair_type",
                "prompt": "Is your hair fine, medium or thick?",
                "type": "single_choice",
                "options": [
                    {"id": "fine", "label": "Fine"},
                    {"id": "thick", "label": "Thick"}
                ],
                "predefinedResponses": ["Fine", "Thick"],
                "next": {"default": "missing_question"}
            }
        ]
    })
