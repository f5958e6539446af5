"""
Input sanitization for text placed inside language-model prompts.

User messages and ticket bodies (which customers write) both end up in
prompts, so both pass through here first.
"""
import re
import logging
import unicodedata

logger = logging.getLogger(__name__)

_INJECTION_PATTERNS = [
    # Role markers and overrides
    r'^\s*(System|Assistant|User|Human|AI)\s*:',
    r'system\s+message\s*:',
    r'Ignore\s+(all\s+)?previous\s+instructions?',
    r'Forget\s+(all\s+)?previous\s+instructions?',
    r'Disregard\s+(all\s+)?(previous|prior|above)\s+instructions?',
    r'You\s+are\s+now\b',
    r'Pretend\s+to\s+be\b',
    # Template and special-token injection
    r'\[INST\].*?\[/INST\]',
    r'<\|.*?\|>',
    r'\{\{.*?\}\}',
    r'<script.*?</script>',
    r'<script.*?>',
    r'javascript:',
]


def normalize_unicode(text: str) -> str:
    """
    Normalize Unicode so fullwidth or look-alike characters cannot dodge the patterns.

    NFKC folds compatibility characters to their ASCII equivalents; non-printable
    characters other than common whitespace are dropped.
    """
    if not text:
        return ""

    normalized = unicodedata.normalize('NFKC', text)
    return ''.join(
        char for char in normalized
        if char.isprintable() or char in ('\n', '\r', '\t', ' ')
    )


def sanitize_text_input(text: str, max_length: int = 500) -> str:
    """Strip prompt-injection markers from ``text`` while keeping the request readable."""
    if not text:
        return ""

    sanitized = normalize_unicode(text).strip()

    for pattern in _INJECTION_PATTERNS:
        cleaned = re.sub(pattern, '', sanitized, flags=re.IGNORECASE | re.MULTILINE | re.DOTALL)
        if cleaned != sanitized:
            logger.warning(f"Removed prompt-injection pattern from input: {pattern}")
            sanitized = cleaned

    sanitized = re.sub(r'\s+', ' ', sanitized).strip()

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + "..."

    return sanitized
