"""
Security callbacks for the language-model agents.
Run before and after every LLM call made by the collaborators.
"""

import logging
import re

logger = logging.getLogger(__name__)

# Patterns for PII detection
PII_PATTERNS = {
    "email": r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b",
    "phone": r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b",
    "ssn": r"\b\d{3}-\d{2}-\d{4}\b",
    "credit_card": r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b",
}

# Malicious prompt patterns
MALICIOUS_PATTERNS = [
    r"ignore (all )?previous instructions",
    r"disregard.*(rules|instructions)",
    r"you are now",
    r"reveal (your|the) (system )?prompt",
    r"<script>",
    r"DROP TABLE",
    r"../../../",  # Path traversal
]


class UnsafeInputError(ValueError):
    """User text rejected before it reaches a model."""


def screen_utterance(text: str) -> str:
    """
    Check one piece of user text before it reaches a model.

    PII is only logged: users legitimately dictate phone numbers and
    e-mail addresses into a voice assistant.

    Raises:
        UnsafeInputError: If a prompt-injection pattern is found
    """
    for pii_type, pattern in PII_PATTERNS.items():
        if re.search(pattern, text, re.IGNORECASE):
            logger.warning(f"PII detected in input: {pii_type}")

    for pattern in MALICIOUS_PATTERNS:
        if re.search(pattern, text, re.IGNORECASE):
            logger.error(f"Malicious prompt detected: {pattern}")
            raise UnsafeInputError("Invalid input detected. Please rephrase your request.")

    return text


def redact_text(text: str) -> str:
    """Mask SSNs and e-mail user names in text that will be spoken back."""
    text = re.sub(r"\b\d{3}-\d{2}-\d{4}\b", "XXX-XX-XXXX", text)
    return re.sub(r"\b([A-Za-z0-9._%+-]+)@([A-Za-z0-9.-]+\.[A-Z|a-z]{2,})\b", r"****@\2", text)


def _parts_with_text(content):
    if content is None or not getattr(content, "parts", None):
        return []
    return [part for part in content.parts if getattr(part, "text", None)]


def before_model_callback(callback_context=None, llm_request=None):
    """
    ADK callback executed BEFORE sending a request to the LLM.

    Screens every user-authored part of the request. Raising here aborts
    the model call; the dialogue controller turns that into a fallback
    answer for the turn.

    Returns:
        None, so the request proceeds unchanged
    """
    contents = getattr(llm_request, "contents", None) or []

    for content in contents:
        if getattr(content, "role", None) != "user":
            continue
        for part in _parts_with_text(content):
            screen_utterance(part.text)

    return None


def after_model_callback(callback_context=None, llm_response=None):
    """
    ADK callback executed AFTER the LLM generates a response.

    Redacts SSNs and e-mail user names in place and logs the size of the
    output for the audit trail.

    Returns:
        None, so the (modified) response is used as-is
    """
    content = getattr(llm_response, "content", None)

    total = 0
    for part in _parts_with_text(content):
        part.text = redact_text(part.text)
        total += len(part.text)

    logger.info(f"Model response generated: {total} characters")
    return None
