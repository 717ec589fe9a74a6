from typing import Any, AsyncIterator, List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from detail_service.core.errors import MissingAPIKey, ProviderError, ProviderNotFound
from detail_service.core.logging import logger

router = APIRouter(tags=["chat"])


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: Any = Field(None, description="OpenAI-style chat messages.")
    api_key: Optional[str] = Field(None, alias="apiKey", description="Provider key for client-keyed providers.")


def _valid_messages(messages: Any) -> bool:
    if not isinstance(messages, list) or not messages:
        return False
    return all(isinstance(m, dict) and "role" in m and "content" in m for m in messages)


async def _prime(agen: AsyncIterator[str]) -> List[str]:
    """Pull the first chunk so upstream failures surface before headers are sent."""
    try:
        return [await agen.__anext__()]
    except StopAsyncIteration:
        return []


@router.get("/providers")
def list_providers(request: Request):
    """List configured chat providers."""
    return request.app.state.answer_svc.list_providers()


@router.post("/chat/{provider_name}")
async def chat(provider_name: str, body: ChatRequest, request: Request):
    """Forward messages to a chat provider and relay the reply as a plain text stream."""
    svc = request.app.state.answer_svc
    try:
        provider = svc.chat.get(provider_name)
    except ProviderNotFound as e:
        return JSONResponse(e.to_dict(), status_code=e.status_code)

    if not _valid_messages(body.messages):
        return JSONResponse({"error": "Invalid messages format"}, status_code=400)

    logger.info(
        f"/chat/{provider_name} called: messages={len(body.messages)}, "
        f"api_key={'present' if body.api_key else 'missing'}"
    )

    agen = provider.stream(body.messages, api_key=body.api_key)
    try:
        head = await _prime(agen)
    except MissingAPIKey as e:
        return JSONResponse({"error": e.message}, status_code=e.status_code)
    except ProviderError as e:
        logger.error(f"{provider_name} API error: {e.status_code} {e.message}")
        if e.status_code in (401, 429):
            return JSONResponse(e.to_dict(), status_code=e.status_code)
        if provider.requires_client_key:
            # client-keyed providers pass the upstream status through
            return JSONResponse(
                {"error": e.message, "details": e.details, "status": e.status_code},
                status_code=e.status_code,
            )
        return JSONResponse(
            {"error": "Failed to process chat request", "details": e.details or e.message, "type": type(e).__name__},
            status_code=500,
        )
    except Exception as e:
        logger.exception(f"Internal error in /chat/{provider_name}: {e}")
        return JSONResponse(
            {"error": "Failed to process chat request", "details": str(e), "type": type(e).__name__},
            status_code=500,
        )

    async def relay():
        try:
            for chunk in head:
                yield chunk
            async for chunk in agen:
                if await request.is_disconnected():
                    logger.info(f"Client disconnected from /chat/{provider_name}")
                    break
                yield chunk
        except Exception as e:
            logger.exception(f"Stream aborted in /chat/{provider_name}: {e}")
            raise
        finally:
            await agen.aclose()

    return StreamingResponse(relay(), media_type="text/plain; charset=utf-8")
