"""
System Message Filter

The protocol client reports every server text line through one generic
message event, including ordinary player chat that also arrives through the
chat event. These heuristics keep only lines that look like server notices.
They are best-effort and will misclassify some server formats.
"""

import re

CHAT_QUOTE_PREFIX = '<'          # "<Alice> hi"
CHAT_SEPARATOR = '»'        # "Server » restart"
PLAYER_CHAT_MARKER = '[Player]'
TIMESTAMPED_PLAYER_PATTERN = re.compile(r'\[\d{2}:\d{2}:\d{2}\]\[Server\]\[Player\]')


def is_system_message(text: str) -> bool:
    """True if a server text line should be stored and shown as a system message"""
    if not text or not text.strip():
        return False
    if text.startswith(CHAT_QUOTE_PREFIX):
        return False
    if CHAT_SEPARATOR in text:
        return False
    if PLAYER_CHAT_MARKER in text:
        return False
    if TIMESTAMPED_PLAYER_PATTERN.search(text):
        return False
    return True
