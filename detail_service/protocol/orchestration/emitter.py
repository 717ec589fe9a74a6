import json
import datetime
from typing import Dict, Any


class NdjsonEmitter:
    """Emitter producing NDJSON bytes for unified event schema"""
    def emit(self, event: Dict[str, Any]) -> bytes:
        # Build envelope with UTC timestamp
        out = {
            "type": event.get("type", ""),
            "conversation_id": event.get("conversation_id", ""),
            "data": event.get("data", {}),
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }
        return (json.dumps(out, ensure_ascii=False) + "\n").encode("utf-8")
