"""Conversational session about an analyzed report.

Responsibilities:
    - Ordered transcript with a single in-flight turn
    - Progressive accumulation of streamed replies
    - Context digest and persona sent with every turn
    - History replay in the service's role vocabulary
    - Injected explain-term requests through the same entry point
"""

from lablens.chat.context import build_context_digest, explain_prompt, replay_history
from lablens.chat.session import FALLBACK_MESSAGE, ChatSession, ChatState, ChatTurn

__all__ = [
    "FALLBACK_MESSAGE",
    "ChatSession",
    "ChatState",
    "ChatTurn",
    "build_context_digest",
    "explain_prompt",
    "replay_history",
]
