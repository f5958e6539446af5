"""Security helpers (log redaction)."""
from .pii_redactor import PIIRedactionFilter, redact_pii

__all__ = ["PIIRedactionFilter", "redact_pii"]
