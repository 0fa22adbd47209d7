"""Analytics-export intent detection."""

ANALYTICS_PHRASES = (
    "show analytics",
    "view analytics",
    "export analytics",
    "download analytics",
    "analytics report",
    "export data",
    "download data",
    "export my data",
    "chat history",
    "conversation history",
    "export chat",
    "download chat",
    "usage report",
)

CANCEL_WORD = "cancel"


def is_analytics_request(message: str) -> bool:
    """Whether the message asks for an analytics export.

    Matching is a case-insensitive substring search over a fixed phrase
    list.
    """
    text = message.lower()
    return any(phrase in text for phrase in ANALYTICS_PHRASES)


def is_cancel(message: str) -> bool:
    return message.strip().lower() == CANCEL_WORD
