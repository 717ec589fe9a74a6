"""Error taxonomy shared by the providers, the answer pipeline and the routers.

Provider failures carry the HTTP status they should surface as, so routers can
translate them without inspecting message text.
"""
from typing import Any, Dict, Optional


class DetailError(Exception):
    """Base class for service errors."""


class ProviderError(DetailError):
    status_code = 500
    default_message = "Upstream provider request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message or self.default_message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class AuthenticationError(ProviderError):
    status_code = 401
    default_message = "Authentication failed. Please check your API key."


class RateLimitError(ProviderError):
    status_code = 429
    default_message = "Rate limit exceeded. Please try again later."

    def __init__(self, message: Optional[str] = None, *, retry_after: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class UpstreamError(ProviderError):
    status_code = 502
    default_message = "Upstream API request failed"


class MissingAPIKey(ProviderError):
    status_code = 400
    default_message = "API key is required"


class ProviderNotFound(ProviderError):
    status_code = 404
    default_message = "Provider not found"


class NoSearchResults(DetailError):
    def __init__(self, query: str):
        self.query = query
        super().__init__("No search results found for your query")


def user_message(exc: BaseException) -> str:
    """Short, user-facing description of a pipeline failure."""
    if isinstance(exc, RateLimitError):
        return "Rate limit reached. Please wait a moment and try again."
    if isinstance(exc, (AuthenticationError, MissingAPIKey)):
        return "Invalid or missing API key. Please check your API keys in settings."
    return str(exc) or "An error occurred"


def status_of(exc: BaseException) -> int:
    if isinstance(exc, NoSearchResults):
        return 404
    if isinstance(exc, ValueError):
        return 400
    return getattr(exc, "status_code", 500)
