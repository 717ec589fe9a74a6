from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Dict, Any, Optional


class SearchProvider(ABC):
    @abstractmethod
    async def search(self, query: str, max_results: Optional[int] = None, **kwargs: Any) -> Dict[str, Any]:
        """Run a web search and return {"results": [...], "meta": {...}}"""
        ...


class ChatProvider(ABC):
    name: str = ""
    requires_client_key: bool = False

    @abstractmethod
    def stream(
        self,
        messages: List[Dict[str, Any]],
        api_key: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """Stream plain text deltas of the assistant reply"""
        ...


class ConversationStore(ABC):
    @abstractmethod
    async def create_conversation(self, conversation_id: str, created_at: int) -> None:
        ...

    @abstractmethod
    async def list_conversations(self) -> List[Dict[str, Any]]:
        """List all conversations, newest first."""
        ...

    @abstractmethod
    async def add_turn(self, conversation_id: str, query: str, results: List[Dict[str, Any]], timestamp: int) -> int:
        """Append a turn with an empty assistant message. Returns the turn index."""
        ...

    @abstractmethod
    async def set_assistant_message(self, conversation_id: str, index: int, message: str) -> None:
        ...

    @abstractmethod
    async def get_turns(self, conversation_id: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation by ID. Returns True if deleted, False if not found."""
        ...

    @abstractmethod
    async def delete_all(self) -> int:
        """Delete all conversations and return how many were deleted."""
        ...
