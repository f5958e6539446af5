"""
Pytest configuration file.

This file is automatically loaded by pytest before any tests run.
It sets up the test environment configuration and shared ticket fixtures.
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Set APP_ENV to test before any other imports
os.environ['APP_ENV'] = 'test'
os.environ.pop('OPENAI_API_KEY', None)

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


BASE_CREATED = datetime(2025, 1, 6, 10, 0, 0)


def build_ticket(
    n: int,
    state_type: str = "open",
    state: str = None,
    customer: str = None,
    queue: str = "Technical Support",
    priority_id: int = 3,
    message_count: int = 3,
    with_attachment: bool = False,
):
    """Ticket document in the stored layout; ``n`` drives ids, number and creation time."""
    created = BASE_CREATED + timedelta(hours=n)
    priorities = {1: "1 very low", 2: "2 low", 3: "3 normal", 4: "4 high", 5: "5 very high"}
    ticket = {
        "TicketID": 13001950 + n,
        "TicketNumber": f"20250106{10000000 + n}",
        "Title": f"Issue number {n}",
        "CustomerID": customer or f"customer{n % 5}@email.com",
        "State": state or ("closed successful" if state_type == "closed" else state_type),
        "StateType": state_type,
        "Priority": priorities[priority_id],
        "PriorityID": priority_id,
        "Queue": queue,
        "Owner": "agent.smith",
        "Created": created.strftime("%Y-%m-%d %H:%M:%S"),
    }
    if state_type == "closed":
        ticket["Closed"] = (created + timedelta(minutes=135)).strftime("%Y-%m-%d %H:%M:%S")
        ticket["SolutionInMin"] = 135

    senders = ["customer", "agent", "customer", "agent", "system"]
    articles = []
    for i in range(message_count):
        articles.append({
            "TicketID": ticket["TicketID"],
            "From": ticket["CustomerID"] if senders[i % 5] == "customer" else "support@company.com",
            "To": "support@company.com" if senders[i % 5] == "customer" else ticket["CustomerID"],
            "Subject": f"Message {i + 1} on ticket {n}",
            "Body": f"Body of message {i + 1}.",
            "SenderType": senders[i % 5],
            "CreateTime": (created + timedelta(minutes=10 * i)).strftime("%Y-%m-%d %H:%M:%S"),
            "IsVisibleForCustomer": 1,
        })

    attachments = []
    if with_attachment:
        attachments.append({
            "Filename": "screenshot.png",
            "ContentType": "image/png",
            "FilesizeRaw": 20480,
            "Disposition": "attachment",
        })

    return {"key": str(ticket["TicketID"]), "data": {"ticket": ticket, "article": articles, "attachment": attachments}}


@pytest.fixture
def make_ticket():
    return build_ticket


@pytest.fixture
def sample_tickets():
    """Twelve tickets: mixed states, queues and priorities."""
    tickets = []
    for n in range(1, 13):
        tickets.append(build_ticket(
            n,
            state_type=["open", "new", "pending", "closed"][n % 4],
            queue=["Technical Support", "Billing Support", "Sales"][n % 3],
            priority_id=(n % 5) + 1,
            customer="john@email.com" if n in (2, 7) else None,
        ))
    return tickets


@pytest.fixture
def many_tickets():
    """45 plain tickets for pagination tests."""
    return [build_ticket(n, message_count=1) for n in range(1, 46)]


class FakeClock:
    """Injectable clock for session expiry tests."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2025, 1, 6, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def fake_clock():
    return FakeClock()
