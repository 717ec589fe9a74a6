from enum import StrEnum
from typing import TypedDict, Dict, Any, List


class StreamEvent(StrEnum):
    SEARCH_RESULTS = "search_results"
    TEXT = "text"
    SECTION = "section"
    ANSWER = "answer"
    ERROR = "error"
    DONE = "done"


class Section(StrEnum):
    NONE = "none"
    REASONING = "reasoning"
    ANSWER = "answer"


class Event(TypedDict, total=False):
    type: str  # "search_results" | "text" | "section" | "answer" | "error" | "done"
    conversation_id: str
    data: Dict[str, Any]
    ts: str


class SearchResult(TypedDict, total=False):
    title: str
    url: str
    content: str
    score: float
    published_date: str


class ChatMessage(TypedDict):
    role: str  # "system" | "user" | "assistant"
    content: str


SearchResults = List[SearchResult]
