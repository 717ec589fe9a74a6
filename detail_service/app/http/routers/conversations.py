from typing import Any, Dict, List
from fastapi import APIRouter, Request, HTTPException
from pydantic import BaseModel, Field

router = APIRouter(prefix="/conversations", tags=["conversations"])


class Conversation(BaseModel):
    conversation_id: str = Field(..., description="The unique identifier for the conversation.")
    created_at: str = Field(..., description="The timestamp when the conversation was created.")
    turns: int = Field(0, description="Number of answered queries.")


class Turn(BaseModel):
    query: str
    results: List[Dict[str, Any]]
    timestamp: int
    assistant_message: str
    reasoning: str
    final_answer: str


@router.post("", response_model=Conversation)
async def create_conversation(request: Request):
    """Create a new conversation."""
    svc = request.app.state.answer_svc
    return await svc.create_conversation()


@router.get("", response_model=List[Conversation])
async def list_conversations(request: Request):
    """List all conversations."""
    svc = request.app.state.answer_svc
    return await svc.list_conversations()


@router.get("/{conversation_id}/turns", response_model=List[Turn])
async def get_turns(conversation_id: str, request: Request):
    """Get the turns of a conversation."""
    svc = request.app.state.answer_svc
    turns = await svc.get_turns(conversation_id)
    if not turns:
        raise HTTPException(status_code=404, detail="Conversation not found or has no turns")
    return turns


@router.delete("/{conversation_id}", status_code=204)
async def delete_conversation(conversation_id: str, request: Request):
    """Delete a conversation by ID."""
    svc = request.app.state.answer_svc
    success = await svc.delete_conversation(conversation_id)
    if not success:
        raise HTTPException(status_code=404, detail="Conversation not found")


@router.delete("", status_code=200)
async def delete_all_conversations(request: Request):
    """Delete all conversations."""
    svc = request.app.state.answer_svc
    count = await svc.delete_all_conversations()
    return {"deleted_count": count}
