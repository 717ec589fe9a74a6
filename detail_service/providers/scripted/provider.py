import asyncio
from typing import Any, AsyncIterator, Dict, List, Optional

from detail_service.core.interfaces import ChatProvider

DEFAULT_SCRIPT = (
    "Step-by-step reasoning:\n"
    "1. The question asks about: {query}\n"
    "2. The search results were reviewed for relevant facts.\n\n"
    "Final Answer:\n"
    "This is a scripted answer to: {query}"
)


class ScriptedProvider(ChatProvider):
    """Offline provider that streams a canned reply in fixed-size chunks.

    `{query}` in the script is replaced by the last user message's first line
    after "Question:" (or the whole message when there is none).
    """

    def __init__(
        self,
        name: str = "scripted",
        script: str = DEFAULT_SCRIPT,
        chunk_size: int = 8,
        delay: float = 0.0,
    ):
        self.name = name
        self.script = script
        self.chunk_size = max(1, chunk_size)
        self.delay = delay

    @staticmethod
    def _query_of(messages: List[Dict[str, Any]]) -> str:
        prompt = messages[-1].get("content", "") if messages else ""
        for line in prompt.splitlines():
            if line.startswith("Question:"):
                return line[len("Question:") :].strip()
        return prompt.strip()

    async def stream(
        self,
        messages: List[Dict[str, Any]],
        api_key: Optional[str] = None,
    ) -> AsyncIterator[str]:
        text = self.script.replace("{query}", self._query_of(messages))
        for i in range(0, len(text), self.chunk_size):
            if self.delay:
                await asyncio.sleep(self.delay)
            yield text[i : i + self.chunk_size]
