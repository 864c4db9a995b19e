# medley/prompts/categorization_prompts.py
"""
Prompts for model-assisted answer categorization.

Used when a free-form reply to a choice question matches no option exactly.
The model must answer with option ids only; the caller validates the reply.
"""

CATEGORIZE_TEMPLATE = """Question: {question_prompt}
User's response: {user_text}
Available response options:
{options_list}
Based on the user's response, return {cardinality} of the following option IDs:
{option_ids}
Respond with the option IDs only, separated by commas."""

CARDINALITY_SINGLE = "exactly one"
CARDINALITY_MULTIPLE = "one or more"
