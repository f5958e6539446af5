"""
Prompts for language-model intent classification.
"""
from .base import PromptTemplate, PromptVersion


class RouterPrompts:
    """Prompts used when the rule table cannot classify a message."""

    SYSTEM = (
        "You classify requests sent to a support-ticket database assistant. "
        "Respond with a single JSON object and nothing else."
    )

    @staticmethod
    def get_classification_prompt() -> PromptTemplate:
        return PromptTemplate(
            content="""Decide what the user wants from the ticket database assistant.

USER MESSAGE: "{message}"

RECENT CONVERSATION (oldest first):
{history}

SESSION CONTEXT:
{context}

ACTIONS:
├── "chat": greetings, thanks, small talk or questions the assistant cannot answer from data
├── "explain": questions about fields (TicketID, TicketNumber, CustomerID) or the data structure
├── "query": requests to list, find, filter or count tickets
├── "continueQuery": requests to see more of the previous results (only if cachedResults > 0)
└── "summarize": requests to summarize one or more tickets

RESPONSE FORMAT:
{{
  "action": "chat" | "explain" | "query" | "continueQuery" | "summarize",
  "instruction": "what the next stage should do, in plain words",
  "confidence": 0.0 to 1.0,
  "reasoning": "one short sentence",
  "response": "reply text, for chat only",
  "concept": "TicketID | TicketNumber | CustomerID | structure, for explain only",
  "ticket_references": ["ticket numbers or ids, for summarize only"]
}}

Never invent ticket numbers, customers or data.""",
            version=PromptVersion.V1_1,
            description="Classify a free-text message into a routing action",
            tags=["router", "classification"],
            variables={"history": "(none)", "context": "{}"},
        )
