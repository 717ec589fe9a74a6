from importlib import import_module
from typing import Any, Dict, List, Optional, cast
import inspect
import os

from detail_service.core.config import load_settings
from detail_service.core.errors import MissingAPIKey, ProviderNotFound
from detail_service.core.interfaces import ChatProvider, ConversationStore, SearchProvider
from detail_service.core.logging import logger


def load(dotted: str, **kwargs: Any) -> Any:
    """Import a dotted path and instantiate the class if callable.
    Filters kwargs to match the constructor signature (unless **kwargs is accepted)."""
    module, cls = dotted.rsplit(".", 1)
    mod = import_module(module)
    obj = getattr(mod, cls)

    if isinstance(obj, type):
        # class: inspect __init__ signature
        sig = inspect.signature(obj.__init__)
        params = list(sig.parameters.values())
        accepts_kwargs = any(p.kind == p.VAR_KEYWORD for p in params)
        if accepts_kwargs:
            return obj(**kwargs)
        # Filter only accepted params (skip 'self')
        allowed = {p.name for p in params if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY) and p.name != "self"}
        filtered = {k: v for k, v in kwargs.items() if k in allowed}
        return obj(**filtered)

    # callable or object (rare)
    return obj


class ChatProviderRegistry:
    """Builds the named chat providers listed under `chat.providers`"""

    def __init__(self, providers_cfg: List[Dict[str, Any]], default: Optional[str] = None):
        self.providers: Dict[str, ChatProvider] = {}
        for pcfg in providers_cfg or []:
            name = pcfg.get("name")
            if not name:
                continue
            impl = pcfg.get("impl", "")
            args = dict(pcfg.get("args", {}) or {})
            args.setdefault("name", name)
            try:
                self.providers[name] = cast(ChatProvider, load(impl, **args))
            except (ImportError, AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Skipping chat provider '{name}' ({impl}): {e}")
        self.default = default if default in self.providers else next(iter(self.providers), None)

    def get(self, name: Optional[str] = None) -> ChatProvider:
        key = name or self.default
        provider = self.providers.get(key) if key else None
        if provider is None:
            raise ProviderNotFound(f"Chat provider '{key}' is not configured")
        return provider

    def names(self) -> List[str]:
        return list(self.providers)


class ServiceFactory:
    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config if config is not None else load_settings()
        self._search: SearchProvider | None = None
        self._chat: ChatProviderRegistry | None = None
        self._store: ConversationStore | None = None

    def get_search(self, api_key: Optional[str] = None) -> SearchProvider:
        """Configured search client. A caller-supplied key builds a one-off client."""
        search_cfg = self.config.get("search", {}) or {}
        impl = search_cfg.get("impl", "")
        args = dict(search_cfg.get("args", {}) or {})
        if api_key:
            return cast(SearchProvider, load(impl, api_key=api_key, **args))

        if not self._search:
            key_env = search_cfg.get("api_key_env", "TAVILY_API_KEY")
            key = search_cfg.get("api_key") or os.environ.get(key_env, "")
            if not key:
                raise MissingAPIKey(f"Search API key missing: set {key_env}")
            self._search = cast(SearchProvider, load(impl, api_key=key, **args))
        return self._search

    def get_chat_registry(self) -> ChatProviderRegistry:
        if not self._chat:
            chat_cfg = self.config.get("chat", {}) or {}
            self._chat = ChatProviderRegistry(chat_cfg.get("providers", []), chat_cfg.get("default"))
        return self._chat

    def get_store(self) -> ConversationStore:
        if not self._store:
            store_cfg = self.config.get("store", {}) or {}
            impl = store_cfg.get("impl", "detail_service.context.memory_store.MemoryStore")
            args = store_cfg.get("args", {}) or {}
            self._store = cast(ConversationStore, load(impl, **args))
        return self._store

    def get_answer_service(self):
        from detail_service.protocol.service.answer_service import AnswerService

        limits = self.config.get("limits", {}) or {}
        return AnswerService(
            search_factory=self.get_search,
            chat=self.get_chat_registry(),
            store=self.get_store(),
            history_turns=limits.get("history_turns", 3),
        )
