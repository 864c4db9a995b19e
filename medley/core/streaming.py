# medley/core/streaming.py
"""
Streaming protocol adapter.

Wraps a backend's incremental output (growing full-text snapshots) into the
normalized StreamingTurn event sequence:

- zero or more partial events whose text only ever grows by extension,
- exactly one terminal event (`is_complete=True`, empty text, routing data),
- on failure, the fallback text as a single synthetic partial (only when no
  partial was delivered yet), followed by the terminal event.

Each call returns a fresh, single-use async iterator. Cancellation of the
consuming task propagates; every other error is absorbed here.
"""

import logging
from typing import AsyncIterator, Callable, Optional

from medley.models.consult import MappedAnswer
from medley.models.turns import StreamingTurn

logger = logging.getLogger(__name__)

SnapshotFactory = Callable[[], AsyncIterator[str]]


async def stream_turn(
    snapshots: SnapshotFactory,
    *,
    fallback_text: str,
    mapped_answer: Optional[MappedAnswer] = None,
    next_question_id: Optional[str] = None,
    next_question_info: Optional[str] = None,
) -> AsyncIterator[StreamingTurn]:
    """
    Normalize backend snapshots into StreamingTurn events.

    Args:
        snapshots: Zero-argument callable returning the backend snapshot stream;
            called lazily so errors while opening the stream are absorbed too
        fallback_text: Text delivered when generation fails before any output
        mapped_answer: Answer attached to the terminal event
        next_question_id: Routing target attached to the terminal event
        next_question_info: Successor info attached to the terminal event

    Yields:
        Partial events in generation order, then one terminal event
    """
    delivered = ""
    source = None

    try:
        source = snapshots()
        async for snapshot in source:
            if not snapshot or snapshot == delivered:
                continue
            if not snapshot.startswith(delivered):
                # Never rewrite text the consumer already shows
                logger.debug("Dropping non-monotonic snapshot from backend")
                continue
            delivered = snapshot
            yield StreamingTurn(
                partial_text=delivered,
                is_complete=False,
                mapped_answer=mapped_answer,
                next_question_id=next_question_id,
                next_question_info=next_question_info,
            )
    except Exception as e:
        logger.warning(f"Generation stream failed, using fallback text: {e}")
        if not delivered:
            delivered = fallback_text
            yield StreamingTurn(
                partial_text=fallback_text,
                is_complete=False,
                mapped_answer=mapped_answer,
                next_question_id=next_question_id,
                next_question_info=next_question_info,
            )
    finally:
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            await aclose()

    if not delivered:
        # Backend finished without producing text
        logger.warning("Generation stream produced no text, using fallback text")
        yield StreamingTurn(
            partial_text=fallback_text,
            is_complete=False,
            mapped_answer=mapped_answer,
            next_question_id=next_question_id,
            next_question_info=next_question_info,
        )

    yield StreamingTurn(
        partial_text="",
        is_complete=True,
        mapped_answer=mapped_answer,
        next_question_id=next_question_id,
        next_question_info=next_question_info,
    )


async def fallback_stream(
    text: str,
    *,
    mapped_answer: Optional[MappedAnswer] = None,
    next_question_id: Optional[str] = None,
    next_question_info: Optional[str] = None,
) -> AsyncIterator[StreamingTurn]:
    """Deliver a fixed text through the same protocol, without a backend"""
    yield StreamingTurn(
        partial_text=text,
        is_complete=False,
        mapped_answer=mapped_answer,
        next_question_id=next_question_id,
        next_question_info=next_question_info,
    )
    yield StreamingTurn(
        partial_text="",
        is_complete=True,
        mapped_answer=mapped_answer,
        next_question_id=next_question_id,
        next_question_info=next_question_info,
    )


async def collect_text(stream: AsyncIterator[StreamingTurn]) -> str:
    """Consume a stream and return the last partial text"""
    text = ""
    async for event in stream:
        if event.is_complete:
            break
        text = event.partial_text
    return text
