"""
Repositories package for ticket data access.
"""

from ticket_assistant.repositories.ticket_repository import (
    DynamoTicketRepository,
    InMemoryTicketRepository,
    TicketRepository,
    get_ticket_repository
)

__all__ = [
    'DynamoTicketRepository',
    'InMemoryTicketRepository',
    'TicketRepository',
    'get_ticket_repository'
]
