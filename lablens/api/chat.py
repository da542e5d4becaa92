"""Server-Sent Events chat endpoints.

Each event is a JSON StreamChunk whose content is the full assistant reply
accumulated so far. The last event has done=true.
"""

import asyncio
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import StreamingResponse

from lablens.api.routes import Orchestrator
from lablens.chat.session import ChatSession, ChatTurn
from lablens.models.schemas import (
    ChatRequest,
    ExplainRequest,
    StreamChunk,
    StreamStatus,
    TranscriptResponse,
)
from lablens.orchestrator import NoAnalysisError, SessionOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def _sse(chunk: StreamChunk) -> str:
    return f"data: {chunk.model_dump_json()}\n\n"


# Turns driven in the background, held until done so they are not collected.
_active_turns: set[asyncio.Task[None]] = set()


async def _relay(turn: ChatTurn, updates: asyncio.Queue[str | None]) -> None:
    try:
        async for snapshot in turn:
            updates.put_nowait(snapshot)
    finally:
        updates.put_nowait(None)


def _start_turn(turn: ChatTurn) -> asyncio.Queue[str | None]:
    """Drive a turn in the background and return its snapshot queue.

    The turn runs to completion whether or not the client keeps reading,
    so a disconnect never leaves the session pending.
    """
    updates: asyncio.Queue[str | None] = asyncio.Queue()
    task = asyncio.create_task(_relay(turn, updates))
    _active_turns.add(task)
    task.add_done_callback(_active_turns.discard)
    return updates


async def _stream_turn(
    turn: ChatTurn | None,
    updates: asyncio.Queue[str | None] | None,
) -> AsyncIterator[str]:
    """Render a chat turn as SSE events."""
    if turn is None or updates is None:
        yield _sse(StreamChunk(content="", done=True, status=StreamStatus.IGNORED))
        return

    yield _sse(StreamChunk(content="", done=False, status=StreamStatus.RECEIVED))

    while True:
        snapshot = await updates.get()
        if snapshot is None:
            break
        yield _sse(StreamChunk(content=snapshot, done=False, status=StreamStatus.GENERATING))

    if turn.failed:
        yield _sse(
            StreamChunk(
                content=turn.reply.content,
                done=True,
                status=StreamStatus.ERROR,
                error="Chat service unavailable",
            )
        )
    else:
        yield _sse(StreamChunk(content=turn.reply.content, done=True, status=StreamStatus.COMPLETE))


def _require_chat(orchestrator: SessionOrchestrator) -> ChatSession:
    if orchestrator.chat is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Run an analysis before starting a chat",
        )
    return orchestrator.chat


def _event_stream(turn: ChatTurn | None) -> StreamingResponse:
    return StreamingResponse(
        _stream_turn(turn, _start_turn(turn) if turn is not None else None),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("", response_model=TranscriptResponse)
async def get_transcript(orchestrator: Orchestrator) -> TranscriptResponse:
    """Return the chat transcript and whether a reply is in flight."""
    chat = _require_chat(orchestrator)
    return TranscriptResponse(messages=chat.transcript, pending=chat.pending)


@router.post("/stream")
async def chat_stream(request: ChatRequest, orchestrator: Orchestrator) -> StreamingResponse:
    """Send a message and stream the reply.

    A message sent while another reply is streaming is dropped and answered
    with a single done event whose status is "ignored".
    """
    chat = _require_chat(orchestrator)
    return _event_stream(chat.submit(request.message))


@router.post("/explain")
async def chat_explain(request: ExplainRequest, orchestrator: Orchestrator) -> StreamingResponse:
    """Ask the assistant to explain a term from the analysis view."""
    try:
        turn = orchestrator.explain_term(request.term)
    except NoAnalysisError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return _event_stream(turn)
