from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from detail_service.core.errors import ProviderNotFound
from detail_service.core.logging import logger
from detail_service.protocol.sections import classify, current_section

router = APIRouter(tags=["answer"])


class AnswerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(..., description="The user's question.")
    conversation_id: Optional[str] = Field(None, description="Conversation to append this turn to.")
    provider: Optional[str] = Field(None, description="Chat provider name; the configured default if omitted.")
    api_key: Optional[str] = Field(None, alias="apiKey", description="Chat provider key for client-keyed providers.")
    search_api_key: Optional[str] = Field(None, alias="searchApiKey", description="Optional search key override.")


class SplitRequest(BaseModel):
    text: str = Field(..., description="Assistant text accumulated so far.")


def _check(request: Request, body: AnswerRequest) -> Optional[JSONResponse]:
    if not body.query.strip():
        return JSONResponse({"error": "Query is required"}, status_code=400)
    try:
        provider = request.app.state.answer_svc.chat.get(body.provider)
    except ProviderNotFound as e:
        return JSONResponse(e.to_dict(), status_code=e.status_code)
    if provider.requires_client_key and not body.api_key:
        name = getattr(provider, "display_name", provider.name)
        return JSONResponse({"error": f"{name} API key is required"}, status_code=400)
    return None


def _kwargs(body: AnswerRequest) -> dict:
    return {
        "conversation_id": body.conversation_id,
        "provider": body.provider,
        "api_key": body.api_key,
        "search_api_key": body.search_api_key,
    }


@router.post("/answer/stream")
async def answer_stream(request: Request, body: AnswerRequest):
    """Search, then stream the model's reasoning and final answer as NDJSON events."""
    error = _check(request, body)
    if error is not None:
        return error
    logger.info(f"/answer/stream called: conversation_id={body.conversation_id}, provider={body.provider}")
    svc = request.app.state.answer_svc

    async def event_generator():
        try:
            async for chunk in svc.stream(body.query, **_kwargs(body)):
                # Check disconnect BEFORE yielding
                if await request.is_disconnected():
                    logger.info(f"Client disconnected: conversation_id={body.conversation_id}")
                    break
                yield chunk
        except Exception as e:
            logger.exception(f"Exception in /answer/stream: {e}")
            raise

    return StreamingResponse(event_generator(), media_type="application/x-ndjson")


@router.post("/answer")
async def answer(request: Request, body: AnswerRequest):
    """Run the whole pipeline and return the split answer in one response."""
    error = _check(request, body)
    if error is not None:
        return error
    out = await request.app.state.answer_svc.answer(body.query, **_kwargs(body))
    if "error" in out and not out["text"]:
        err = out["error"]
        return JSONResponse({"error": err.get("message"), "details": err.get("details")}, status_code=err.get("status", 500))
    return out


@router.post("/split")
def split(body: SplitRequest):
    """Split arbitrary assistant text into reasoning and final answer."""
    result = classify(body.text)
    return {**result.to_dict(), "section": current_section(body.text)}
