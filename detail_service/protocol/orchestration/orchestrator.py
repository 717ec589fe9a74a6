import time
from typing import Any, AsyncGenerator, Callable, Dict, Optional

from detail_service.core.errors import NoSearchResults, status_of, user_message
from detail_service.core.interfaces import ChatProvider, ConversationStore, SearchProvider
from detail_service.core.logging import logger
from detail_service.core.types import StreamEvent
from detail_service.protocol.orchestration.emitter import NdjsonEmitter
from detail_service.protocol.prompts import build_messages
from detail_service.protocol.sections import SectionTracker


async def orchestrate(
    conversation_id: str,
    query: str,
    provider: ChatProvider,
    search_factory: Callable[[], SearchProvider],
    store: ConversationStore,
    api_key: Optional[str] = None,
    history_turns: int = 3,
) -> AsyncGenerator[bytes, None]:
    """
    Core pipeline: search -> prompt -> chat stream -> section tracking -> NDJSON.

    The assistant message received so far is stored even when the stream
    fails part way, so a partial reasoning section stays displayable.
    """
    emitter = NdjsonEmitter()

    def event(kind: StreamEvent, data: Dict[str, Any]) -> bytes:
        return emitter.emit({"type": kind, "conversation_id": conversation_id, "data": data})

    tracker = SectionTracker()
    turn_index: Optional[int] = None

    try:
        query = (query or "").strip()
        if not query:
            raise ValueError("Query must not be empty")
        logger.info(f"Answer started: conversation_id={conversation_id}, provider={provider.name}")

        # 1. Prior turns, read before this one is appended
        history = [t for t in await store.get_turns(conversation_id) if t.get("assistant_message")]
        if history_turns >= 0:
            history = history[-history_turns:] if history_turns else []

        # 2. Web search
        search = search_factory()
        found = await search.search(query)
        results = found.get("results") or []
        logger.info(f"Search results received: {len(results)}")
        if not results:
            raise NoSearchResults(query)
        yield event(StreamEvent.SEARCH_RESULTS, {"results": results})

        # 3. Record the turn with an empty assistant message
        turn_index = await store.add_turn(conversation_id, query, results, int(time.time()))

        # 4. Stream the model reply, tracking which section is arriving
        messages = build_messages(query, results, history)
        async for delta in provider.stream(messages, api_key=api_key):
            if not delta:
                continue
            changed = tracker.feed(delta)
            yield event(StreamEvent.TEXT, {"delta": delta})
            if changed:
                logger.debug(f"Section changed: {tracker.section}")
                yield event(StreamEvent.SECTION, {"section": tracker.section})

        split = tracker.result
        yield event(StreamEvent.ANSWER, {**split.to_dict(), "section": tracker.section})
        logger.info(
            f"Answer complete: conversation_id={conversation_id}, "
            f"reasoning_len={len(split.reasoning)}, answer_len={len(split.final_answer)}"
        )

    except Exception as e:
        logger.exception(f"Exception in orchestrate: conversation_id={conversation_id}, error={e}")
        data: Dict[str, Any] = {"message": user_message(e), "status": status_of(e)}
        details = getattr(e, "details", None)
        if details:
            data["details"] = details
        if tracker.text:
            data["partial"] = tracker.result.to_dict()
        yield event(StreamEvent.ERROR, data)

    finally:
        if turn_index is not None and tracker.text:
            await store.set_assistant_message(conversation_id, turn_index, tracker.text)

    logger.info(f"Orchestration complete: conversation_id={conversation_id}")
    yield event(StreamEvent.DONE, {})
