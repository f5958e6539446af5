"""
Prompts for multi-ticket narrative summaries.
"""
from .base import PromptTemplate


class SummaryPrompts:

    SYSTEM = (
        "You are a support analyst writing short, factual overviews of support tickets. "
        "Use only the facts you are given."
    )

    @staticmethod
    def get_multi_ticket_prompt() -> PromptTemplate:
        return PromptTemplate(
            content="""Write a short overview (one or two paragraphs) of these {count} support tickets.

TICKETS:
{tickets}

OBSERVED PATTERNS:
{patterns}

RULES:
- Mention only facts present above; do not invent customers, dates or outcomes
- Point out what the tickets have in common and what stands out
- No headings and no bullet points""",
            description="Narrative across a small sample of tickets",
            tags=["summary"],
        )
