"""
Language-model collaborator used for fallback classification and narrative summaries.
"""

from ticket_assistant.llm.language_model import (
    LanguageModelClient,
    get_language_model,
    parse_json_object,
)

__all__ = [
    "LanguageModelClient",
    "get_language_model",
    "parse_json_object",
]
