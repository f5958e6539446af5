"""
Prompt templates for the language-model collaborator.
"""

from ticket_assistant.prompts.base import PromptTemplate, PromptVersion
from ticket_assistant.prompts.router_prompts import RouterPrompts
from ticket_assistant.prompts.summary_prompts import SummaryPrompts

__all__ = [
    'PromptTemplate',
    'PromptVersion',
    'RouterPrompts',
    'SummaryPrompts',
]
