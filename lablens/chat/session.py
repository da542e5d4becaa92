"""Streaming chat session grounded in one analysis result.

State machine:

    idle --submit--> sending --first text--> streaming --end--> idle
                        \\________________________/
                                 failure --> error --> idle

At most one turn is in flight. A submit while a turn is pending is dropped,
not queued. Accepted submits append the user message and an empty assistant
placeholder immediately; streamed increments replace the placeholder's
content with the accumulated text. On failure one fallback assistant message
is inserted and the session returns to idle. A turn that is closed before
it finishes also returns the session to idle.
"""

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from enum import Enum

from lablens.chat.context import (
    build_chat_instruction,
    build_greeting,
    explain_prompt,
    replay_history,
)
from lablens.models import AnalysisResult, ChatMessage, ChatRole
from lablens.service.base import ConversationRequest, GenerativeService, TextChunk

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "I am having trouble connecting. Please try again."


class ChatState(str, Enum):
    """Lifecycle states of a chat session."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    ERROR = "error"


class ChatTurn:
    """One accepted submission.

    Iterate it to drive the stream; each item is the assistant reply
    accumulated so far. A turn can only be consumed once, and the session
    stays pending until it has finished or been closed with aclose().

    Attributes:
        request: The service request for this turn.
        message: The user text that started the turn.
        reply: The assistant message holding the outcome.
        error: The failure that ended the turn, if any.
    """

    def __init__(
        self,
        session: "ChatSession",
        request: ConversationRequest,
        reply: ChatMessage,
    ) -> None:
        self._session = session
        self._consumed = False
        self._stream: AsyncGenerator[str, None] | None = None
        self.request = request
        self.message = request.message
        self.reply = reply
        self.error: Exception | None = None
        self.finished = False

    @property
    def failed(self) -> bool:
        return self.error is not None

    def __aiter__(self) -> AsyncIterator[str]:
        if self._consumed:
            raise RuntimeError("Chat turn has already been consumed")
        self._consumed = True
        self._stream = self._session._drive(self)
        return self._stream

    async def wait(self) -> ChatMessage:
        """Drain the stream and return the final assistant message."""
        async for _ in self:
            pass
        return self.reply

    async def aclose(self) -> None:
        """Abandon the turn and release the session.

        Safe to call at any point, including before iteration starts and
        after the turn has finished.
        """
        self._consumed = True
        if self._stream is not None:
            await self._stream.aclose()
        if not self.finished:
            self._session._finish(self, abandoned=True)


class ChatSession:
    """Conversation about one AnalysisResult.

    Owns the transcript exclusively. Other components read it through the
    transcript property and add messages only through submit().
    """

    def __init__(
        self,
        service: GenerativeService,
        context: AnalysisResult,
        *,
        greet: bool = True,
    ) -> None:
        """Initialize the session.

        Args:
            service: Generative service used for every turn.
            context: Analysis result that grounds the conversation.
            greet: Seed the transcript with an opening assistant message.
        """
        self._service = service
        self._context = context
        self._transcript: list[ChatMessage] = []
        self._state = ChatState.IDLE
        self._pending = False

        if greet:
            self._transcript.append(
                ChatMessage(role=ChatRole.ASSISTANT, content=build_greeting(context))
            )

    @property
    def context(self) -> AnalysisResult:
        return self._context

    @property
    def transcript(self) -> list[ChatMessage]:
        """Copy of the transcript, oldest first."""
        return [m.model_copy() for m in self._transcript]

    @property
    def pending(self) -> bool:
        return self._pending

    @property
    def state(self) -> ChatState:
        return self._state

    def submit(self, text: str) -> ChatTurn | None:
        """Start a turn for typed or injected text.

        Args:
            text: Message to send.

        Returns:
            The turn to drive, or None if the text was blank or a turn is
            already pending (the text is dropped).
        """
        if not text or not text.strip():
            return None
        if self._pending:
            logger.info("Chat turn already in flight, dropping submission")
            return None

        request = ConversationRequest(
            model=self._service.model_name,
            system_instruction=build_chat_instruction(self._context),
            history=replay_history(self._transcript),
            message=text,
        )

        self._pending = True
        self._state = ChatState.SENDING
        self._transcript.append(ChatMessage(role=ChatRole.USER, content=text))
        placeholder = ChatMessage(role=ChatRole.ASSISTANT, content="")
        self._transcript.append(placeholder)

        return ChatTurn(self, request, placeholder)

    async def send(self, text: str) -> ChatMessage | None:
        """Submit text and wait for the complete reply."""
        turn = self.submit(text)
        if turn is None:
            return None
        return await turn.wait()

    def explain(self, term: str) -> ChatTurn | None:
        """Ask about a term as if the user had typed the question."""
        return self.submit(explain_prompt(term))

    async def _drive(self, turn: ChatTurn) -> AsyncGenerator[str, None]:
        placeholder = turn.reply
        accumulated = ""
        abandoned = True
        try:
            async for chunk in self._service.stream(turn.request):
                if not isinstance(chunk, TextChunk) or not chunk.value:
                    continue
                accumulated += chunk.value
                placeholder.content = accumulated
                self._state = ChatState.STREAMING
                yield accumulated
            abandoned = False
        except Exception as e:
            abandoned = False
            self._state = ChatState.ERROR
            logger.error(f"Chat turn failed: {e}")
            turn.error = e
            turn.reply = self._insert_fallback(placeholder)
        finally:
            # abandoned is still True if the consumer closed or cancelled the stream.
            self._finish(turn, abandoned=abandoned)

    def _finish(self, turn: ChatTurn, *, abandoned: bool) -> None:
        if turn.finished:
            return
        turn.finished = True
        if abandoned:
            logger.info("Chat turn abandoned before completion")
            if not turn.reply.content:
                turn.reply.content = FALLBACK_MESSAGE
        self._pending = False
        self._state = ChatState.IDLE

    def _insert_fallback(self, placeholder: ChatMessage) -> ChatMessage:
        if not placeholder.content:
            placeholder.content = FALLBACK_MESSAGE
            return placeholder
        fallback = ChatMessage(role=ChatRole.ASSISTANT, content=FALLBACK_MESSAGE)
        self._transcript.append(fallback)
        return fallback
