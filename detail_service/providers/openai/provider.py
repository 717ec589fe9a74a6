import json
import logging
import os
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from detail_service.core.errors import (
    AuthenticationError,
    MissingAPIKey,
    RateLimitError,
    UpstreamError,
)
from detail_service.core.interfaces import ChatProvider
from detail_service.protocol.prompts import REASONING_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


def parse_sse_line(line: str) -> Optional[str]:
    """Return the payload of an SSE `data:` line, or None for anything else."""
    if not line or line.startswith(":"):
        return None
    if not line.startswith("data:"):
        return None
    return line[len("data:") :].strip()


def delta_content(payload: Dict[str, Any]) -> str:
    choices = payload.get("choices") or []
    if not choices:
        return ""
    delta = choices[0].get("delta") or {}
    return delta.get("content") or ""


class OpenAICompatibleProvider(ChatProvider):
    """Streams chat completions from any OpenAI-compatible endpoint.

    `key_source="client"` means every request must carry its own key (the
    browser keeps it); `"server"` reads it from `api_key_env`.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        model: str,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        key_source: str = "server",
        api_key_env: Optional[str] = None,
        system_prompt: bool | str = False,
        connect_timeout: float = 5.0,
        read_timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if key_source not in ("client", "server"):
            raise ValueError(f"key_source must be 'client' or 'server', got {key_source!r}")
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.key_source = key_source
        self.api_key_env = api_key_env
        if system_prompt is True:
            self.system_prompt = REASONING_SYSTEM_PROMPT
        else:
            self.system_prompt = system_prompt or ""
        self.timeout = httpx.Timeout(connect=connect_timeout, read=read_timeout, write=10.0, pool=5.0)
        self._transport = transport

    @property
    def requires_client_key(self) -> bool:
        return self.key_source == "client"

    def _resolve_key(self, api_key: Optional[str]) -> str:
        if self.key_source == "client":
            if not api_key:
                raise MissingAPIKey(f"{self.display_name} API key is required")
            return api_key
        key = os.environ.get(self.api_key_env or "", "")
        if not key:
            logger.error(f"{self.api_key_env} is missing for provider '{self.name}'")
            raise MissingAPIKey(f"{self.api_key_env} is not set in environment variables", status_code=500)
        return key

    @property
    def display_name(self) -> str:
        return "OpenAI" if self.name == "openai" else self.name

    def build_payload(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        if self.system_prompt:
            messages = [{"role": "system", "content": self.system_prompt}, *messages]
        return {
            "model": self.model,
            "messages": messages,
            "stream": True,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    def _raise_for_status(self, status: int, body: str) -> None:
        logger.error(f"{self.display_name} API error: status={status}")
        if status == 401:
            raise AuthenticationError(details=body)
        if status == 429:
            raise RateLimitError(details=body)
        raise UpstreamError(f"{self.display_name} API request failed", details=body, status_code=status)

    async def stream(
        self,
        messages: List[Dict[str, Any]],
        api_key: Optional[str] = None,
    ) -> AsyncIterator[str]:
        key = self._resolve_key(api_key)
        payload = self.build_payload(messages)
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {key}",
        }
        url = f"{self.base_url}/chat/completions"
        logger.info(f"Sending request to {self.display_name}: model={self.model}, messages={len(payload['messages'])}")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            async with client.stream("POST", url, headers=headers, json=payload) as response:
                if response.status_code != 200:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    self._raise_for_status(response.status_code, body[:500])

                logger.info(f"Received response from {self.display_name}")
                async for line in response.aiter_lines():
                    data = parse_sse_line(line)
                    if data is None:
                        continue
                    if data == DONE_SENTINEL:
                        break
                    try:
                        chunk = json.loads(data)
                    except json.JSONDecodeError:
                        logger.warning(f"Skipping malformed stream chunk: {data[:80]!r}")
                        continue
                    if chunk.get("error"):
                        err = chunk["error"]
                        message = err.get("message") if isinstance(err, dict) else str(err)
                        raise UpstreamError(f"{self.display_name} stream error", details=message)
                    text = delta_content(chunk)
                    if text:
                        yield text
