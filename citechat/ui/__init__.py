"""Chat client side: stream consumption, conversation state, citations.

Responsibilities:
    - Consuming and repairing the frame stream from the API
    - Keeping each answer's passages attached to that answer
    - Resolving inline markers into clickable references
    - NiceGUI page rendering the conversation

The page module is imported by the entry point only, so the client pieces
can be used without NiceGUI's page registration.
"""

from citechat.ui.citations import CitationRef, CitationSegments, PassageRef, resolve
from citechat.ui.session import ChatSession, ConversationTurn

__all__ = [
    "ChatSession",
    "CitationRef",
    "CitationSegments",
    "ConversationTurn",
    "PassageRef",
    "resolve",
]
