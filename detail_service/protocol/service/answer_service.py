from datetime import datetime
import json
import time
import uuid
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional

from detail_service.core.factory import ChatProviderRegistry
from detail_service.core.interfaces import ConversationStore, SearchProvider
from detail_service.core.types import StreamEvent
from detail_service.protocol.sections import classify


class AnswerService:
    def __init__(
        self,
        search_factory: Callable[..., SearchProvider],
        chat: ChatProviderRegistry,
        store: ConversationStore,
        history_turns: int = 3,
    ):
        """Initialize with a search client factory, chat providers and a conversation store"""
        self.search_factory = search_factory
        self.chat = chat
        self.store = store
        self.history_turns = history_turns

    async def stream(
        self,
        query: str,
        conversation_id: Optional[str] = None,
        provider: Optional[str] = None,
        api_key: Optional[str] = None,
        search_api_key: Optional[str] = None,
    ) -> AsyncGenerator[bytes, None]:
        """Drive the answer pipeline to stream NDJSON bytes"""
        from detail_service.protocol.orchestration.orchestrator import orchestrate

        chat_provider = self.chat.get(provider)
        async for chunk in orchestrate(
            conversation_id=conversation_id or str(uuid.uuid4()),
            query=query,
            provider=chat_provider,
            search_factory=lambda: self.search_factory(search_api_key),
            store=self.store,
            api_key=api_key,
            history_turns=self.history_turns,
        ):
            yield chunk

    async def answer(self, query: str, **kwargs: Any) -> Dict[str, Any]:
        """Run the pipeline to completion and collect the NDJSON events into one record."""
        out: Dict[str, Any] = {"results": [], "reasoning": "", "final_answer": "", "text": ""}
        async for chunk in self.stream(query, **kwargs):
            evt = json.loads(chunk)
            data = evt.get("data", {})
            out["conversation_id"] = evt.get("conversation_id")
            if evt["type"] == StreamEvent.SEARCH_RESULTS:
                out["results"] = data.get("results", [])
            elif evt["type"] == StreamEvent.TEXT:
                out["text"] += data.get("delta", "")
            elif evt["type"] == StreamEvent.ANSWER:
                out["reasoning"] = data.get("reasoning", "")
                out["final_answer"] = data.get("final_answer", "")
            elif evt["type"] == StreamEvent.ERROR:
                out["error"] = data
        if "error" in out and out["text"]:
            out.update(classify(out["text"]).to_dict())
        return out

    async def search(self, query: str, api_key: Optional[str] = None) -> Dict[str, Any]:
        return await self.search_factory(api_key).search(query)

    # --- Conversation Management ---

    async def create_conversation(self) -> Dict[str, Any]:
        """Creates a new conversation and returns its details."""
        conversation_id = str(uuid.uuid4())
        created_at = int(time.time())
        await self.store.create_conversation(conversation_id, created_at)
        return {
            "conversation_id": conversation_id,
            "created_at": datetime.fromtimestamp(created_at).isoformat(),
            "turns": 0,
        }

    async def list_conversations(self) -> List[Dict[str, Any]]:
        return await self.store.list_conversations()

    async def get_turns(self, conversation_id: str) -> List[Dict[str, Any]]:
        """Turns of a conversation, each with its assistant message split into sections."""
        turns = await self.store.get_turns(conversation_id)
        for turn in turns:
            turn.update(classify(turn.get("assistant_message", "")).to_dict())
        return turns

    async def delete_conversation(self, conversation_id: str) -> bool:
        return await self.store.delete_conversation(conversation_id)

    async def delete_all_conversations(self) -> int:
        return await self.store.delete_all()

    def list_providers(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": name,
                "requires_client_key": self.chat.get(name).requires_client_key,
                "default": name == self.chat.default,
            }
            for name in self.chat.names()
        ]
