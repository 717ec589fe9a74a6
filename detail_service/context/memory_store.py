"""Async in-memory conversation store implementing ConversationStore"""
import datetime
from typing import Any, Dict, List

from detail_service.core.interfaces import ConversationStore


def _iso(ts: int) -> str:
    return datetime.datetime.fromtimestamp(ts).isoformat()


class MemoryStore(ConversationStore):
    def __init__(self):
        self.conversations: Dict[str, Dict[str, Any]] = {}

    def _get(self, conversation_id: str) -> Dict[str, Any]:
        now = int(datetime.datetime.now().timestamp())
        return self.conversations.setdefault(conversation_id, {"created_at": now, "turns": []})

    async def create_conversation(self, conversation_id: str, created_at: int) -> None:
        self.conversations.setdefault(conversation_id, {"created_at": created_at, "turns": []})

    async def list_conversations(self) -> List[Dict[str, Any]]:
        items = sorted(self.conversations.items(), key=lambda kv: kv[1]["created_at"], reverse=True)
        return [
            {"conversation_id": cid, "created_at": _iso(c["created_at"]), "turns": len(c["turns"])}
            for cid, c in items
        ]

    async def add_turn(self, conversation_id: str, query: str, results: List[Dict[str, Any]], timestamp: int) -> int:
        turns = self._get(conversation_id)["turns"]
        turns.append({"query": query, "results": list(results), "timestamp": timestamp, "assistant_message": ""})
        return len(turns) - 1

    async def set_assistant_message(self, conversation_id: str, index: int, message: str) -> None:
        turns = self._get(conversation_id)["turns"]
        if 0 <= index < len(turns):
            turns[index]["assistant_message"] = message

    async def get_turns(self, conversation_id: str) -> List[Dict[str, Any]]:
        conv = self.conversations.get(conversation_id)
        return [dict(t) for t in conv["turns"]] if conv else []

    async def delete_conversation(self, conversation_id: str) -> bool:
        return self.conversations.pop(conversation_id, None) is not None

    async def delete_all(self) -> int:
        count = len(self.conversations)
        self.conversations.clear()
        return count
