# -*- coding: utf-8 -*-

import json
import logging
import time
from pathlib import Path
from typing import Optional

LOGGER = logging.getLogger(__name__)

MAX_TRACE_CONTENT_CHARS = 20000


def clip_text(text: str, max_chars: int) -> str:
    if not isinstance(text, str):
        return str(text)
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + f"...[truncated {len(text) - max_chars} chars]"


class TraceLog:
    """
    Append-only JSONL record of a run: model calls, tool calls, code
    iterations and judgments. With no path the events only go to the logger.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)

    def event(self, event: dict) -> None:
        event = dict(event)
        event.setdefault("ts", time.time())
        for key in ("content", "output", "result"):
            if isinstance(event.get(key), str):
                event[key] = clip_text(event[key], MAX_TRACE_CONTENT_CHARS)
        LOGGER.debug("trace_%s", event.get("type", "event"), extra={"trace": event})
        if self.path is None:
            return
        try:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")
        except OSError as exc:
            LOGGER.warning("trace_write_failed", extra={"path": str(self.path), "error": str(exc)})
