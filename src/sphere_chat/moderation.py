"""Content moderation gate applied before a send is issued."""

BANNED_TERMS = ("badword1", "badword2")


def is_blocked(text: str) -> bool:
    """True if `text` contains any banned term (case-sensitive substring)."""
    return any(term in text for term in BANNED_TERMS)
