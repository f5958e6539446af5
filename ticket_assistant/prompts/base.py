"""
Base classes for prompt management with versioning support.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List
from enum import Enum


class PromptVersion(Enum):
    """Prompt version enumeration for tracking changes."""
    V1_0 = "1.0"
    V1_1 = "1.1"


@dataclass
class PromptTemplate:
    """
    Prompt text plus metadata.

    Attributes:
        content: The prompt text, with ``str.format`` placeholders
        version: Version identifier for tracking
        description: Human-readable description
        created_at: When this version was created
        tags: Optional tags for categorization
        variables: Default values for placeholders
    """
    content: str
    version: PromptVersion = PromptVersion.V1_0
    description: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    tags: List[str] = field(default_factory=list)
    variables: Dict[str, Any] = field(default_factory=dict)

    def format(self, **kwargs) -> str:
        """Format the template, with ``kwargs`` overriding the default variables."""
        format_vars = {**self.variables, **kwargs}
        return self.content.format(**format_vars)
